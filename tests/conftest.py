"""Shared test fixtures for factfusion."""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fusion.models import Fact, FactSource, FusionAction, FusionDecision, NewFactData  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_metrics():
    from observability import metrics

    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture(autouse=True)
def _no_retention_env(monkeypatch):
    monkeypatch.delenv("PENDING_APPROVAL_RETENTION_DAYS", raising=False)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "factfusion.db"


@pytest.fixture
def fact_store(db_path):
    from fusion.store import FactStore

    return FactStore(db_path, index=None)


@pytest.fixture
def entity_store(db_path, fact_store):
    """EntityStore sharing the db with FactStore (merge moves entity_facts rows)."""
    from entities.store import EntityStore

    return EntityStore(db_path)


@pytest.fixture
def make_fact():
    """Build an unsaved Fact with sensible defaults."""

    def _make(**overrides) -> Fact:
        defaults = dict(
            id="fact-1",
            entity_id="ent-1",
            fact_type="position",
            value="Engineer",
            source=FactSource.EXTRACTED,
            confidence=0.8,
        )
        defaults.update(overrides)
        return Fact(**defaults)

    return _make


@pytest.fixture
def new_fact():
    def _make(fact_type="position", value="Engineer", **kw) -> NewFactData:
        return NewFactData(fact_type=fact_type, value=value, **kw)

    return _make


@pytest.fixture
def decision():
    def _make(action=FusionAction.CONFIRM, confidence=0.9, explanation="ok", merged_value=None):
        return FusionDecision(
            action=action, confidence=confidence, explanation=explanation, merged_value=merged_value
        )

    return _make


@pytest.fixture
def mock_provider():
    """LLMProvider mock whose complete() returns the queued JSON texts in order."""
    from llm.base import Completion

    provider = MagicMock()

    def queue(*texts):
        provider.complete.side_effect = [Completion(text=t, model="test") for t in texts]

    provider.queue = queue
    provider.complete.return_value = Completion(text="{}", model="test")
    return provider
