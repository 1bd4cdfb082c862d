"""Pending confirmations: one-shot human choices with handler dispatch."""

from .handlers import HandlerRegistry, build_registry
from .manager import ConfirmationManager
from .models import (
    ConfirmationOption,
    ConfirmationStatus,
    ConfirmationType,
    CreateConfirmation,
    PendingConfirmation,
    ResolvedBy,
)

__all__ = [
    "ConfirmationManager",
    "ConfirmationOption",
    "ConfirmationStatus",
    "ConfirmationType",
    "CreateConfirmation",
    "HandlerRegistry",
    "PendingConfirmation",
    "ResolvedBy",
    "build_registry",
]
