"""Shared fixtures: an in-memory profile store and a frozen clock."""

from __future__ import annotations

import pytest

from otpgate.lifecycle import TwoFactorLifecycle
from otpgate.store import InMemoryProfileStore

NOW = 1_700_000_000.0


class FrozenClock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class EventRecorder:
    def __init__(self) -> None:
        self.events: list[tuple[str, str | None]] = []

    async def __call__(self, event_type: str, message: str, *, account_id: str | None = None) -> None:
        self.events.append((event_type, account_id))

    @property
    def types(self) -> list[str]:
        return [event_type for event_type, _ in self.events]


@pytest.fixture
def store() -> InMemoryProfileStore:
    store = InMemoryProfileStore()
    store.add_profile("acct-1", username="alice")
    return store


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def lifecycle(store, clock, recorder) -> TwoFactorLifecycle:
    return TwoFactorLifecycle(store, issuer="WordPress CMS", clock=clock, on_event=recorder)
