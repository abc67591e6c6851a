"""Shared fixtures: seeded randomness, a frozen calendar and an in-memory store."""

from __future__ import annotations

import datetime

import numpy as np
import pytest

from core.errors import StoreError
from core.session import UserSession
from core.store import InMemoryDocumentStore

TODAY = datetime.date(2024, 1, 3)


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def clock():
    return lambda: TODAY


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def session(store, rng, clock):
    user_session = UserSession("alice", store, rng=rng, clock=clock)
    yield user_session
    user_session.close()


class FlakyStore(InMemoryDocumentStore):
    """Store whose durable write can be switched off mid-test."""

    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    def _persist(self, documents):
        if self.fail:
            raise StoreError("backend unavailable")


@pytest.fixture
def flaky_store():
    return FlakyStore()
