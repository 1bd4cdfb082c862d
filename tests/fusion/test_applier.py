"""Tests for applying fusion decisions to the fact store."""

from unittest.mock import MagicMock

import pytest

from fusion.applier import FusionApplier
from fusion.conflicts import ConflictResolutionService
from fusion.models import FactRank, FusionAction, ResultAction
from observability import metrics


@pytest.fixture
def notifier():
    notifier = MagicMock()
    notifier.notify.return_value = True
    return notifier


@pytest.fixture
def conflicts(fact_store, notifier):
    return ConflictResolutionService(fact_store, notifier=notifier)


@pytest.fixture
def applier(fact_store, conflicts):
    return FusionApplier(fact_store, conflicts)


@pytest.fixture
def existing(fact_store, new_fact):
    return fact_store.create("ent-1", new_fact("position", "Engineer at Acme", confidence=0.8))


class TestConfirm:
    def test_bumps_count_and_confidence(self, applier, existing, new_fact, decision):
        result = applier.apply(existing, new_fact("position", "Engineer @ Acme"), decision(), "ent-1")

        assert result.action == ResultAction.UPDATED
        assert result.fusion_action == FusionAction.CONFIRM
        assert result.fact.id == existing.id
        assert result.fact.confirmation_count == 2
        assert result.fact.confidence == pytest.approx(0.85)
        assert metrics.count("fusion.action.confirm") == 1

    def test_confidence_capped(self, fact_store, applier, new_fact, decision):
        fact = fact_store.create("ent-1", new_fact("email", "a@b.com", confidence=0.98))
        result = applier.apply(fact, new_fact("email", "A@b.com"), decision(), "ent-1")
        assert result.fact.confidence == 1.0

    def test_missing_confidence_uses_default(self, fact_store, applier, new_fact, decision):
        fact = fact_store.create("ent-1", new_fact("email", "a@b.com"))
        result = applier.apply(fact, new_fact("email", "A@b.com"), decision(), "ent-1")
        assert result.fact.confidence == 0.85


class TestEnrich:
    def test_replaces_value(self, applier, existing, new_fact, decision):
        result = applier.apply(
            existing,
            new_fact("position", "Lead"),
            decision(FusionAction.ENRICH, merged_value="Lead engineer at Acme"),
            "ent-1",
        )
        assert result.action == ResultAction.UPDATED
        assert result.fact.value == "Lead engineer at Acme"
        assert result.fact.confidence == pytest.approx(0.9)
        assert result.fact.confirmation_count == 2

    def test_without_merged_value_skips(self, fact_store, applier, existing, new_fact, decision):
        result = applier.apply(
            existing, new_fact("position", "Lead"), decision(FusionAction.ENRICH), "ent-1"
        )
        assert result.action == ResultAction.SKIPPED
        assert fact_store.get(existing.id).value == "Engineer at Acme"

    def test_missing_confidence_uses_base(self, applier):
        assert applier.enriched_confidence(None) == pytest.approx(0.8)
        assert applier.enriched_confidence(0.95) == 1.0


class TestSupersede:
    def test_creates_preferred_fact(self, fact_store, applier, existing, new_fact, decision):
        result = applier.apply(
            existing, new_fact("position", "CTO"), decision(FusionAction.SUPERSEDE), "ent-1"
        )

        assert result.action == ResultAction.CREATED
        assert result.fact.value == "CTO"
        assert result.fact.rank == FactRank.PREFERRED
        assert result.existing_fact_id == existing.id
        assert fact_store.get(existing.id).superseded_by == result.fact.id


class TestCoexist:
    def test_both_stay_current(self, fact_store, applier, existing, new_fact, decision):
        result = applier.apply(
            existing, new_fact("position", "Board member"), decision(FusionAction.COEXIST), "ent-1"
        )

        assert result.action == ResultAction.CREATED
        assert result.fact.rank == FactRank.NORMAL
        assert fact_store.get(result.fact.id).valid_from is not None
        values = {f.value for f in fact_store.get_current("ent-1", "position")}
        assert values == {"Engineer at Acme", "Board member"}


class TestConflict:
    def test_marks_review_and_notifies(
        self, fact_store, applier, conflicts, notifier, existing, new_fact, decision
    ):
        incoming = new_fact("position", "Engineer at Globex")
        result = applier.apply(
            existing,
            incoming,
            decision(FusionAction.CONFLICT, 0.6, explanation="Different employers"),
            "ent-1",
        )

        assert result.action == ResultAction.SKIPPED
        assert result.needs_review is True
        assert result.new_fact_data is incoming
        assert result.conflict_token is not None
        assert len(result.conflict_token) == 8

        stored = fact_store.get(existing.id)
        assert stored.needs_review is True
        assert stored.review_reason == (
            'Conflict with new fact: "Engineer at Globex". Different employers'
        )
        notifier.notify.assert_called_once()
        assert conflicts.get_conflict(result.conflict_token)["existing_fact_id"] == existing.id
        # Nothing new was written
        assert len(fact_store.get_current("ent-1", "position")) == 1

    def test_notification_failure_still_flags(
        self, fact_store, applier, notifier, existing, new_fact, decision
    ):
        notifier.notify.side_effect = RuntimeError("channel down")

        result = applier.apply(
            existing, new_fact("position", "Globex"), decision(FusionAction.CONFLICT), "ent-1"
        )

        assert result.needs_review is True
        assert result.conflict_token is None
        assert fact_store.get(existing.id).needs_review is True

    def test_without_conflict_service(self, fact_store, existing, new_fact, decision):
        result = FusionApplier(fact_store).apply(
            existing, new_fact("position", "Globex"), decision(FusionAction.CONFLICT), "ent-1"
        )
        assert result.needs_review is True
        assert result.conflict_token is None


class TestUnknownAction:
    def test_unknown_action_skipped(self, applier, existing, new_fact, decision):
        result = applier.apply(existing, new_fact(), decision(action="merge"), "ent-1")
        assert result.action == ResultAction.SKIPPED
        assert result.reason == "Unknown action: merge"
        assert result.existing_fact_id == existing.id
