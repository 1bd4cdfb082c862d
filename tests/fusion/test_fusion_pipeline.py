"""Tests for the create-with-dedup fusion pipeline."""

from unittest.mock import MagicMock

import pytest

from fusion.applier import FusionApplier
from fusion.candidates import DuplicateCandidateFinder
from fusion.models import FactSource, FusionAction, FusionDecision, ResultAction
from fusion.pipeline import FusionPipeline
from fusion.store import FactStore


@pytest.fixture
def classifier():
    classifier = MagicMock()
    classifier.decide.return_value = FusionDecision(
        action=FusionAction.CONFIRM, explanation="same", confidence=0.95
    )
    return classifier


def _pipeline(store, classifier=None):
    return FusionPipeline(
        store, DuplicateCandidateFinder(store), FusionApplier(store), classifier=classifier
    )


class TestCreateWithDedup:
    def test_creates_when_no_candidates(self, fact_store, classifier, new_fact):
        result = _pipeline(fact_store, classifier).create_with_dedup("ent-1", new_fact("email", "a@b.com"))

        assert result.action == ResultAction.CREATED
        assert result.reason == "Created without embedding"
        assert fact_store.get(result.fact.id).value == "a@b.com"
        assert fact_store.get(result.fact.id).valid_from is not None
        classifier.decide.assert_not_called()

    def test_near_exact_match_goes_to_classifier(self, fact_store, classifier, new_fact):
        existing = fact_store.create("ent-1", new_fact("title", "Senior staff engineer at Acme Corporation"))

        result = _pipeline(fact_store, classifier).create_with_dedup(
            "ent-1", new_fact("title", "Senior staff engineer at Acme Corporations")
        )

        classifier.decide.assert_called_once()
        assert classifier.decide.call_args.args[0].id == existing.id
        assert result.fusion_action == FusionAction.CONFIRM
        assert fact_store.get(existing.id).confirmation_count == 2

    def test_exact_duplicate_skipped_without_oracle(self, fact_store, classifier, new_fact):
        existing = fact_store.create("ent-1", new_fact("email", "a@b.com"))

        result = _pipeline(fact_store, classifier).create_with_dedup("ent-1", new_fact("email", "A@B.com"))

        assert result.action == ResultAction.SKIPPED
        assert result.reason == "Exact duplicate exists"
        assert result.existing_fact_id == existing.id
        classifier.decide.assert_not_called()

    def test_candidate_goes_to_classifier(self, fact_store, classifier, new_fact):
        existing = fact_store.create("ent-1", new_fact("position", "Engineer", confidence=0.8))

        result = _pipeline(fact_store, classifier).create_with_dedup(
            "ent-1",
            new_fact("position", "Senior Engineer", source=FactSource.MANUAL),
            message_context="I got promoted",
        )

        classifier.decide.assert_called_once()
        args = classifier.decide.call_args.args
        assert args[0].id == existing.id
        assert args[1:] == ("Senior Engineer", FactSource.MANUAL, "I got promoted")
        assert result.action == ResultAction.UPDATED
        assert result.fusion_action == FusionAction.CONFIRM
        assert fact_store.get(existing.id).confirmation_count == 2

    def test_conflict_decision_flags_existing(self, fact_store, classifier, new_fact):
        existing = fact_store.create("ent-1", new_fact("company", "Acme"))
        classifier.decide.return_value = FusionDecision(
            action=FusionAction.CONFLICT, explanation="Different employers", confidence=0.6
        )

        result = _pipeline(fact_store, classifier).create_with_dedup("ent-1", new_fact("company", "Acne"))

        assert result.action == ResultAction.SKIPPED
        assert result.needs_review is True
        assert fact_store.get(existing.id).needs_review is True

    def test_without_classifier_temporal_supersedes(self, fact_store, new_fact):
        existing = fact_store.create("ent-1", new_fact("position", "Engineer"))

        result = _pipeline(fact_store).create_with_dedup("ent-1", new_fact("position", "Senior Engineer"))

        assert result.action == ResultAction.CREATED
        assert result.fusion_action == FusionAction.SUPERSEDE
        assert result.reason.startswith("Superseded: Temporal update")
        assert fact_store.get(existing.id).superseded_by == result.fact.id

    def test_without_classifier_similar_skipped(self, fact_store, new_fact):
        existing = fact_store.create("ent-1", new_fact("email", "john@acme.com"))

        result = _pipeline(fact_store).create_with_dedup("ent-1", new_fact("email", "jon@acme.com"))

        assert result.action == ResultAction.SKIPPED
        assert result.reason.startswith("Similar fact exists (lexical")
        assert result.existing_fact_id == existing.id
        assert len(fact_store.get_current("ent-1")) == 1

    def test_skip_fusion_bypasses_classifier(self, fact_store, classifier, new_fact):
        fact_store.create("ent-1", new_fact("email", "john@acme.com"))

        result = _pipeline(fact_store, classifier).create_with_dedup(
            "ent-1", new_fact("email", "jon@acme.com"), skip_fusion=True
        )

        assert result.action == ResultAction.SKIPPED
        classifier.decide.assert_not_called()

    def test_embedding_computed_once_and_stored(self, db_path, new_fact):
        index = MagicMock()
        index.available = True
        index.embed.return_value = [0.1, 0.2]
        index.query.return_value = []
        store = FactStore(db_path, index=index)

        result = _pipeline(store).create_with_dedup("ent-1", new_fact("email", "a@b.com"))

        assert result.reason == "Created with embedding"
        index.embed.assert_called_once_with("a@b.com")
        assert index.upsert.call_args.kwargs["embedding"] == [0.1, 0.2]


class TestCreateBatch:
    def test_collapses_duplicates_before_dedup(self, fact_store, new_fact):
        results = _pipeline(fact_store).create_batch(
            "ent-1",
            [
                new_fact("email", "a@b.com", confidence=0.4),
                new_fact("email", "A@B.COM", confidence=0.9),
                new_fact("phone", "+100"),
            ],
        )

        assert len(results) == 2
        assert all(r.action == ResultAction.CREATED for r in results)
        emails = fact_store.get_current("ent-1", "email")
        assert len(emails) == 1
        assert emails[0].confidence == 0.9
