"""Draft-item approval workflow (facts, activities, commitments)."""

from .cleanup import ApprovalCleanup
from .manager import ApprovalManager
from .models import (
    ApprovalItemType,
    ApprovalStatus,
    BatchOperationResult,
    CleanupResult,
    CreateApproval,
    PendingApproval,
)
from .retention import RetentionPolicy

__all__ = [
    "ApprovalCleanup",
    "ApprovalItemType",
    "ApprovalManager",
    "ApprovalStatus",
    "BatchOperationResult",
    "CleanupResult",
    "CreateApproval",
    "PendingApproval",
    "RetentionPolicy",
]
