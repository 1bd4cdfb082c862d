"""Tunable thresholds for duplicate detection, fusion and review routing."""

from dataclasses import dataclass


@dataclass(frozen=True)
class FusionPolicy:
    """All fusion thresholds in one place.

    Defaults reproduce the production calibration; override via the
    ``fusion`` section of config.yaml.
    """

    # Classifier
    fusion_confidence_threshold: float = 0.7
    oracle_timeout: float = 30.0
    oracle_model: str = "cheap"
    context_max_chars: int = 300

    # Applier
    confirm_boost: float = 0.05
    confirm_default_confidence: float = 0.85
    enrich_boost: float = 0.1
    enrich_base_confidence: float = 0.7

    # Lexical matching
    lexical_duplicate_threshold: float = 0.95
    fuzzy_match_threshold: float = 0.8
    temporal_min_similarity: float = 0.3

    # Semantic matching
    semantic_similarity_threshold: float = 0.5
    semantic_top_k: int = 5
    # Above this a semantic match is the same fact reworded
    semantic_duplicate_threshold: float = 0.85

    # Dedup gateway routing
    auto_merge_threshold: float = 0.9
    approval_threshold: float = 0.7

    # Confirmation handlers: auto-approve pending facts at or above this
    auto_resolve_threshold: float = 0.8

    # Decision cache
    cache_ttl_seconds: float = 300.0
    cache_max_size: int = 100


DEFAULT_POLICY = FusionPolicy()
