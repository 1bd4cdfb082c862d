"""Data models for pending confirmations."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum


class ConfirmationType(str, Enum):
    IDENTIFIER_ATTRIBUTION = "identifier_attribution"
    ENTITY_MERGE = "entity_merge"
    FACT_SUBJECT = "fact_subject"
    FACT_VALUE = "fact_value"


class ConfirmationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    EXPIRED = "expired"


class ResolvedBy(str, Enum):
    USER = "user"
    AUTO = "auto"
    EXPIRED = "expired"


DEFAULT_EXPIRY = {
    ConfirmationType.IDENTIFIER_ATTRIBUTION: timedelta(days=7),
    ConfirmationType.ENTITY_MERGE: timedelta(days=30),
    ConfirmationType.FACT_SUBJECT: timedelta(days=7),
    ConfirmationType.FACT_VALUE: timedelta(days=7),
}

DECLINE_OPTION_ID = "decline"


@dataclass
class ConfirmationOption:
    id: str
    label: str
    sublabel: str | None = None
    entity_id: str | None = None
    is_create_new: bool = False
    is_decline: bool = False
    is_other: bool = False

    def to_dict(self) -> dict:
        return {k: v for k, v in self.__dict__.items() if v not in (None, False)}

    @classmethod
    def from_dict(cls, data: dict) -> "ConfirmationOption":
        return cls(
            id=data["id"],
            label=data.get("label", ""),
            sublabel=data.get("sublabel"),
            entity_id=data.get("entity_id"),
            is_create_new=bool(data.get("is_create_new")),
            is_decline=bool(data.get("is_decline")),
            is_other=bool(data.get("is_other")),
        )


@dataclass
class CreateConfirmation:
    """Input for ConfirmationManager.create."""

    type: ConfirmationType
    context: dict
    options: list[ConfirmationOption]
    confidence: float | None = None
    source_message_id: str | None = None
    source_entity_id: str | None = None
    source_pending_fact_id: str | None = None
    source_extracted_event_id: str | None = None


@dataclass
class PendingConfirmation:
    id: str
    type: ConfirmationType
    context: dict
    options: list[ConfirmationOption]
    status: ConfirmationStatus = ConfirmationStatus.PENDING
    confidence: float | None = None
    source_message_id: str | None = None
    source_entity_id: str | None = None
    source_pending_fact_id: str | None = None
    source_extracted_event_id: str | None = None
    selected_option_id: str | None = None
    resolution: dict | None = None
    resolved_at: datetime | None = None
    resolved_by: ResolvedBy | None = None
    expires_at: datetime | None = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def selected_option(self) -> ConfirmationOption | None:
        if not self.selected_option_id:
            return None
        for option in self.options:
            if option.id == self.selected_option_id:
                return option
        return None

    @property
    def is_pending(self) -> bool:
        return self.status == ConfirmationStatus.PENDING
