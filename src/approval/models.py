"""Data models for the draft-item approval workflow."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ApprovalItemType(str, Enum):
    FACT = "fact"
    ACTIVITY = "activity"
    COMMITMENT = "commitment"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class CreateApproval:
    """Input for ApprovalManager.create. The target row must already exist as a draft."""

    item_type: ApprovalItemType
    target_id: str
    batch_id: str
    confidence: float
    source_quote: str | None = None
    source_interaction_id: str | None = None
    message_ref: str | None = None
    source_entity_id: str | None = None
    context: str | None = None


@dataclass
class PendingApproval:
    id: str
    item_type: ApprovalItemType
    target_id: str
    batch_id: str
    confidence: float
    status: ApprovalStatus = ApprovalStatus.PENDING
    source_quote: str | None = None
    source_interaction_id: str | None = None
    message_ref: str | None = None
    source_entity_id: str | None = None
    context: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    reviewed_at: datetime | None = None


@dataclass
class BatchOperationResult:
    processed: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class CleanupResult:
    approvals: int = 0
    targets: int = 0
    orphaned: dict[str, int] = field(default_factory=dict)

    @property
    def total_orphaned(self) -> int:
        return sum(self.orphaned.values())
