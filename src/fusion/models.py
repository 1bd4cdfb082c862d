"""Data models for facts and fusion decisions."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class FactSource(str, Enum):
    MANUAL = "manual"
    EXTRACTED = "extracted"
    IMPORTED = "imported"

    @property
    def priority(self) -> int:
        """Trust priority: manual entries outrank extraction outranks imports."""
        return SOURCE_PRIORITY[self]


SOURCE_PRIORITY = {
    FactSource.MANUAL: 100,
    FactSource.EXTRACTED: 70,
    FactSource.IMPORTED: 50,
}


class FactRank(str, Enum):
    PREFERRED = "preferred"
    NORMAL = "normal"
    DEPRECATED = "deprecated"


class FactStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"


class FactCategory(str, Enum):
    PERSONAL = "personal"
    CONTACT = "contact"
    PROFESSIONAL = "professional"
    BUSINESS = "business"
    LEGAL = "legal"
    FINANCIAL = "financial"
    PREFERENCES = "preferences"


# Fact types whose values legitimately change over time (job moves, relocations)
TEMPORAL_FACT_TYPES = frozenset({"position", "company", "department", "location", "status"})


class FusionAction(str, Enum):
    CONFIRM = "confirm"
    ENRICH = "enrich"
    SUPERSEDE = "supersede"
    COEXIST = "coexist"
    CONFLICT = "conflict"


class ResultAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


@dataclass
class Fact:
    id: str
    entity_id: str
    fact_type: str
    value: str | None = None
    category: FactCategory | None = None
    value_date: str | None = None
    value_json: dict | None = None
    source: FactSource = FactSource.EXTRACTED
    confidence: float | None = None
    confirmation_count: int = 1
    rank: FactRank = FactRank.NORMAL
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    superseded_by: str | None = None
    supersedes_id: str | None = None
    needs_review: bool = False
    review_reason: str | None = None
    source_interaction_id: str | None = None
    status: FactStatus = FactStatus.ACTIVE
    deleted_at: datetime | None = None
    embedding: list[float] | None = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def is_current(self) -> bool:
        return (
            self.valid_until is None
            and self.deleted_at is None
            and self.status == FactStatus.ACTIVE
        )


@dataclass
class NewFactData:
    """A proposed fact not yet persisted."""

    fact_type: str
    value: str | None = None
    source: FactSource = FactSource.EXTRACTED
    confidence: float | None = None
    category: FactCategory | None = None
    value_date: str | None = None
    value_json: dict | None = None
    source_interaction_id: str | None = None
    status: FactStatus = FactStatus.ACTIVE

    def to_dict(self) -> dict:
        return {
            "fact_type": self.fact_type,
            "value": self.value,
            "source": self.source.value,
            "confidence": self.confidence,
            "category": self.category.value if self.category else None,
            "value_date": self.value_date,
            "value_json": self.value_json,
            "source_interaction_id": self.source_interaction_id,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NewFactData":
        return cls(
            fact_type=data["fact_type"],
            value=data.get("value"),
            source=FactSource(data.get("source") or FactSource.EXTRACTED.value),
            confidence=data.get("confidence"),
            category=FactCategory(data["category"]) if data.get("category") else None,
            value_date=data.get("value_date"),
            value_json=data.get("value_json"),
            source_interaction_id=data.get("source_interaction_id"),
            status=FactStatus(data.get("status") or FactStatus.ACTIVE.value),
        )


@dataclass
class FusionDecision:
    action: FusionAction
    explanation: str
    confidence: float
    merged_value: str | None = None


@dataclass
class FusionResult:
    """Outcome of creating a fact through the fusion path."""

    fact: Fact | None
    action: ResultAction
    reason: str = ""
    existing_fact_id: str | None = None
    needs_review: bool = False
    new_fact_data: NewFactData | None = None
    fusion_action: FusionAction | None = None
    conflict_token: str | None = None


@dataclass
class DuplicateCandidate:
    fact: Fact
    similarity: float
    match: str  # "exact" | "lexical" | "temporal" | "semantic"
