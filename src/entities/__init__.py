"""Entities, identifiers and the draft records that reference them."""

from .activities import ActivityStore, CommitmentStore
from .models import (
    Activity,
    ActivityStatus,
    ActivityType,
    Commitment,
    CommitmentStatus,
    Entity,
    EntityIdentifier,
    EntityType,
    ExtractedEvent,
    PendingFact,
    PendingFactStatus,
)
from .pending import ExtractedEventStore, PendingFactStore
from .store import EntityStore

__all__ = [
    "Activity",
    "ActivityStatus",
    "ActivityStore",
    "ActivityType",
    "Commitment",
    "CommitmentStatus",
    "CommitmentStore",
    "Entity",
    "EntityIdentifier",
    "EntityStore",
    "EntityType",
    "ExtractedEvent",
    "ExtractedEventStore",
    "PendingFact",
    "PendingFactStatus",
    "PendingFactStore",
]
