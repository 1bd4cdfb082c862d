"""How long rejected drafts are kept before hard deletion."""

import os
from dataclasses import dataclass
from datetime import datetime, timedelta

RETENTION_ENV_VAR = "PENDING_APPROVAL_RETENTION_DAYS"
DEFAULT_RETENTION_DAYS = 30


@dataclass(frozen=True)
class RetentionPolicy:
    retention_days: int = DEFAULT_RETENTION_DAYS

    def __post_init__(self):
        if self.retention_days < 0:
            raise ValueError(f"retention_days must be >= 0, got {self.retention_days}")

    @property
    def hard_delete_on_reject(self) -> bool:
        """Zero retention: rejection deletes the draft and the approval row at once."""
        return self.retention_days == 0

    def cutoff(self, now: datetime | None = None) -> datetime:
        return (now or datetime.now()) - timedelta(days=self.retention_days)

    @classmethod
    def from_env(cls, default: int = DEFAULT_RETENTION_DAYS) -> "RetentionPolicy":
        raw = os.environ.get(RETENTION_ENV_VAR)
        if raw is None or raw.strip() == "":
            return cls(default)
        try:
            return cls(int(raw))
        except ValueError as e:
            raise ValueError(f"{RETENTION_ENV_VAR} must be a non-negative integer, got {raw!r}") from e
