"""Tests for entities, identifiers and entity merge."""

import pytest

from entities.models import EntityType
from errors import ConflictError, NotFoundError


class TestEntities:
    def test_create_and_get(self, entity_store):
        entity = entity_store.create("Acme", EntityType.ORGANIZATION)
        loaded = entity_store.get(entity.id)
        assert loaded.name == "Acme"
        assert loaded.entity_type == EntityType.ORGANIZATION
        assert loaded.deleted_at is None

    def test_get_missing(self, entity_store):
        assert entity_store.get("nope") is None

    def test_find_exact_is_case_insensitive(self, entity_store):
        entity = entity_store.create("John Smith")
        assert entity_store.find_exact("john smith", EntityType.PERSON).id == entity.id
        assert entity_store.find_exact("john smith", "organization") is None

    def test_search_partial_excludes_exact(self, entity_store):
        entity_store.create("John")
        longer = entity_store.create("John Smith")
        entity_store.create("Jane Doe")

        found = entity_store.search_partial("john", EntityType.PERSON)
        assert [e.id for e in found] == [longer.id]


class TestIdentifiers:
    def test_add_and_list(self, entity_store):
        entity = entity_store.create("John")
        entity_store.add_identifier(entity.id, "email", "john@acme.com")
        entity_store.add_identifier(entity.id, "telegram_user_id", "12345")

        idents = entity_store.get_identifiers(entity.id)
        assert [(i.identifier_type, i.identifier_value) for i in idents] == [
            ("email", "john@acme.com"),
            ("telegram_user_id", "12345"),
        ]

    def test_identifier_unique_across_entities(self, entity_store):
        a = entity_store.create("John")
        b = entity_store.create("Johnny")
        entity_store.add_identifier(a.id, "email", "john@acme.com")

        with pytest.raises(ConflictError):
            entity_store.add_identifier(b.id, "email", "john@acme.com")
        assert entity_store.get_identifiers(b.id) == []

    def test_unknown_entity(self, entity_store):
        with pytest.raises(NotFoundError):
            entity_store.add_identifier("nope", "email", "x@y.com")


class TestMerge:
    def test_moves_identifiers_and_facts(self, entity_store, fact_store, new_fact):
        source = entity_store.create("J. Smith")
        target = entity_store.create("John Smith")
        entity_store.add_identifier(source.id, "phone", "+100")
        fact_store.create(source.id, new_fact("email", "js@acme.com"))

        result = entity_store.merge(source.id, target.id)

        assert result == {"identifiers_moved": 1, "facts_moved": 1}
        assert [i.identifier_value for i in entity_store.get_identifiers(target.id)] == ["+100"]
        assert [f.value for f in fact_store.get_current(target.id)] == ["js@acme.com"]
        assert entity_store.get(source.id) is None
        assert entity_store.get(source.id, include_deleted=True).deleted_at is not None

    def test_self_merge_rejected(self, entity_store):
        entity = entity_store.create("John")
        with pytest.raises(ConflictError):
            entity_store.merge(entity.id, entity.id)

    def test_missing_entity_rolls_back(self, entity_store):
        source = entity_store.create("John")
        entity_store.add_identifier(source.id, "phone", "+100")

        with pytest.raises(NotFoundError):
            entity_store.merge(source.id, "missing")

        assert entity_store.get(source.id) is not None
        assert len(entity_store.get_identifiers(source.id)) == 1

    def test_merged_entity_cannot_merge_again(self, entity_store):
        a = entity_store.create("A")
        b = entity_store.create("B")
        entity_store.merge(a.id, b.id)
        with pytest.raises(NotFoundError):
            entity_store.merge(a.id, b.id)
