"""Shared CLI utilities: service wiring from config."""

import structlog
from rich.console import Console

console = Console()
logger = structlog.get_logger()

FACTS_COLLECTION = "entity_facts"
ACTIVITIES_COLLECTION = "activities"


def get_components(config_model=None, with_fusion: bool = False) -> dict:
    """Build stores and managers from config.

    Args:
        config_model: FactFusionConfig (loaded from disk when None).
        with_fusion: Also build the vector index, oracle and fusion pipeline.
    """
    from approval import ApprovalCleanup, ApprovalManager
    from cli.config import load_config_model
    from confirmation import ConfirmationManager, build_registry
    from entities import (
        ActivityStore,
        CommitmentStore,
        EntityStore,
        ExtractedEventStore,
        PendingFactStore,
    )
    from fusion import ConflictResolutionService, FactStore

    config_model = config_model or load_config_model()
    db_path = config_model.paths.db_path
    policy = config_model.fusion.to_policy()
    retention = config_model.approval.to_policy()

    index = None
    if with_fusion and config_model.paths.chroma_dir:
        from fusion.vectors import EmbeddingOracle, VectorIndex

        index = VectorIndex(config_model.paths.chroma_dir, FACTS_COLLECTION, embedder=EmbeddingOracle())

    facts = FactStore(db_path, index=index)
    entities = EntityStore(db_path)
    pending_facts = PendingFactStore(db_path)
    events = ExtractedEventStore(db_path)
    activities = ActivityStore(db_path)
    commitments = CommitmentStore(db_path)
    conflicts = ConflictResolutionService(facts)

    registry = build_registry(entities, pending_facts, events, facts, policy=policy)

    components = {
        "config_model": config_model,
        "policy": policy,
        "facts": facts,
        "entities": entities,
        "pending_facts": pending_facts,
        "events": events,
        "activities": activities,
        "commitments": commitments,
        "conflicts": conflicts,
        "confirmations": ConfirmationManager(db_path, registry),
        "approvals": ApprovalManager(db_path, retention=retention),
        "cleanup": ApprovalCleanup(db_path, retention=retention),
    }
    if with_fusion:
        components["pipeline"] = build_pipeline(config_model, facts, conflicts, index, policy)
    return components


def build_pipeline(config_model, facts, conflicts, index, policy):
    """Wire finder, classifier (oracle + cache) and applier into a FusionPipeline."""
    from fusion import (
        DuplicateCandidateFinder,
        FusionApplier,
        FusionClassifier,
        FusionPipeline,
        NullDecisionCache,
        TTLDecisionCache,
    )
    from llm import ReasoningOracle

    llm_cfg = config_model.llm
    retry_cfg = config_model.retry
    oracle = ReasoningOracle(
        provider_name=llm_cfg.provider,
        api_key=llm_cfg.api_key,
        max_attempts=retry_cfg.max_attempts,
        min_wait=retry_cfg.min_wait,
        max_wait=retry_cfg.max_wait,
    )
    if llm_cfg.model:
        policy = _with_model(policy, llm_cfg.model)

    cache = (
        TTLDecisionCache(ttl=policy.cache_ttl_seconds, max_size=policy.cache_max_size)
        if config_model.fusion.cache_enabled
        else NullDecisionCache()
    )
    return FusionPipeline(
        store=facts,
        finder=DuplicateCandidateFinder(facts, index=index, policy=policy),
        applier=FusionApplier(facts, conflicts=conflicts, policy=policy),
        classifier=FusionClassifier(oracle, cache=cache, policy=policy),
    )


def _with_model(policy, model: str):
    from dataclasses import replace

    return replace(policy, oracle_model=model)
