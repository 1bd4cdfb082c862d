"""Fact fusion: duplicate detection, fusion decisions and their application."""

from .applier import FusionApplier
from .cache import DecisionCache, NullDecisionCache, TTLDecisionCache
from .candidates import DuplicateCandidateFinder
from .classifier import FusionClassifier
from .conflicts import ConflictChoice, ConflictResolutionService, LoggingConflictNotifier
from .models import (
    DuplicateCandidate,
    Fact,
    FactCategory,
    FactRank,
    FactSource,
    FactStatus,
    FusionAction,
    FusionDecision,
    FusionResult,
    NewFactData,
    ResultAction,
)
from .pipeline import FusionPipeline
from .policy import DEFAULT_POLICY, FusionPolicy
from .store import FactStore

__all__ = [
    "ConflictChoice",
    "ConflictResolutionService",
    "DEFAULT_POLICY",
    "DecisionCache",
    "DuplicateCandidate",
    "DuplicateCandidateFinder",
    "Fact",
    "FactCategory",
    "FactRank",
    "FactSource",
    "FactStatus",
    "FactStore",
    "FusionAction",
    "FusionApplier",
    "FusionClassifier",
    "FusionDecision",
    "FusionPipeline",
    "FusionPolicy",
    "FusionResult",
    "LoggingConflictNotifier",
    "NewFactData",
    "NullDecisionCache",
    "ResultAction",
    "TTLDecisionCache",
]
