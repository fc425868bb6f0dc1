"""Shared fixtures: a controllable clock and event loop for timing tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from markit.app import NotesApp
from markit.autosave import AutosaveScheduler, SwitchPolicy
from markit.repository import NoteRepository
from markit.storage import MemoryKeyValueStore, PersistenceAdapter

EPOCH = datetime(2026, 1, 1, tzinfo=UTC)


class FakeClock:
    """Wall clock driven by tests; ``seconds`` is the offset from EPOCH."""

    def __init__(self) -> None:
        self.seconds = 0.0

    def __call__(self) -> datetime:
        return EPOCH + timedelta(seconds=self.seconds)

    def at(self, seconds: float) -> datetime:
        return EPOCH + timedelta(seconds=seconds)


class FakeTimerHandle:
    def __init__(self, when: float, callback, args: tuple) -> None:
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeLoop:
    """Just enough of an asyncio loop for call_later-based scheduling."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.timers: list[FakeTimerHandle] = []

    def time(self) -> float:
        return self.clock.seconds

    def call_later(self, delay: float, callback, *args) -> FakeTimerHandle:
        handle = FakeTimerHandle(self.time() + delay, callback, args)
        self.timers.append(handle)
        return handle

    @property
    def scheduled(self) -> list[FakeTimerHandle]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        """Move time forward, firing due timers in order."""
        target = self.clock.seconds + seconds
        while True:
            due = [t for t in self.scheduled if t.when <= target]
            if not due:
                break
            handle = min(due, key=lambda t: t.when)
            self.timers.remove(handle)
            self.clock.seconds = handle.when
            handle.callback(*handle.args)
        self.clock.seconds = target


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def loop(clock: FakeClock) -> FakeLoop:
    return FakeLoop(clock)


@pytest.fixture()
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture()
def persistence(kv: MemoryKeyValueStore) -> PersistenceAdapter:
    return PersistenceAdapter(kv)


@pytest.fixture()
def repository(persistence: PersistenceAdapter, clock: FakeClock) -> NoteRepository:
    """A repository seeded with an empty collection."""
    repo = NoteRepository(persistence, clock=clock)
    repo.replace_all([])
    return repo


def make_app(
    persistence: PersistenceAdapter,
    clock: FakeClock,
    loop: FakeLoop,
    policy: SwitchPolicy = SwitchPolicy.FLUSH,
) -> NotesApp:
    repository = NoteRepository(persistence, clock=clock)
    autosave = AutosaveScheduler(repository, 2000, policy=policy, loop=loop)
    return NotesApp(persistence, repository, autosave)


@pytest.fixture()
def app(persistence: PersistenceAdapter, clock: FakeClock, loop: FakeLoop) -> NotesApp:
    """A started app with the flush switch policy."""
    notes_app = make_app(persistence, clock, loop)
    notes_app.start()
    return notes_app
