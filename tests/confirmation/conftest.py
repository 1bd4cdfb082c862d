"""Fixtures for confirmation tests."""

from datetime import datetime, timedelta

import pytest

from confirmation.handlers import build_registry
from confirmation.manager import ConfirmationManager
from entities.pending import ExtractedEventStore, PendingFactStore


class FakeClock:
    def __init__(self, start=datetime(2025, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def pending_facts(db_path):
    return PendingFactStore(db_path)


@pytest.fixture
def events(db_path):
    return ExtractedEventStore(db_path)


@pytest.fixture
def registry(entity_store, pending_facts, events, fact_store):
    return build_registry(entity_store, pending_facts, events, fact_store)


@pytest.fixture
def manager(db_path, registry, clock):
    return ConfirmationManager(db_path, registry, clock=clock)
