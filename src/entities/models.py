"""Records that confirmation handlers and approvals act on."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class EntityType(str, Enum):
    PERSON = "person"
    ORGANIZATION = "organization"


class ActivityType(str, Enum):
    TASK = "task"
    PROJECT = "project"


class ActivityStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CommitmentStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PendingFactStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class Entity:
    id: str
    name: str
    entity_type: EntityType = EntityType.PERSON
    created_at: datetime = field(default_factory=datetime.now)
    deleted_at: datetime | None = None


@dataclass
class EntityIdentifier:
    id: str
    entity_id: str
    identifier_type: str  # telegram_user_id, phone, email, ...
    identifier_value: str
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class Activity:
    id: str
    name: str
    owner_entity_id: str
    activity_type: ActivityType = ActivityType.TASK
    description: str | None = None
    status: ActivityStatus = ActivityStatus.DRAFT
    created_at: datetime = field(default_factory=datetime.now)
    deleted_at: datetime | None = None


@dataclass
class Commitment:
    id: str
    title: str
    entity_id: str | None = None
    description: str | None = None
    status: CommitmentStatus = CommitmentStatus.DRAFT
    created_at: datetime = field(default_factory=datetime.now)
    deleted_at: datetime | None = None


@dataclass
class PendingFact:
    """Extracted fact held until its subject entity is settled."""

    id: str
    entity_id: str | None
    fact_type: str
    value: str | None = None
    confidence: float | None = None
    source_quote: str | None = None
    status: PendingFactStatus = PendingFactStatus.PENDING
    created_at: datetime = field(default_factory=datetime.now)
    reviewed_at: datetime | None = None


@dataclass
class ExtractedEvent:
    id: str
    event_type: str
    content: str
    entity_id: str | None = None
    enrichment: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)
