"""Tests for the debounced autosave scheduler."""

import asyncio
from unittest.mock import MagicMock

import pytest

from conftest import FakeClock, FakeLoop
from markit.autosave import AutosaveScheduler, SwitchPolicy
from markit.repository import NoteRepository


def _scheduler(repository, loop, policy=SwitchPolicy.FLUSH) -> AutosaveScheduler:
    return AutosaveScheduler(repository, 2000, policy=policy, loop=loop)


class TestDebounce:
    def test_single_commit_with_latest_values(
        self, repository: NoteRepository, loop: FakeLoop, clock: FakeClock
    ) -> None:
        note = repository.create()
        update = MagicMock(wraps=repository.update)
        repository.update = update
        autosave = _scheduler(repository, loop)

        autosave.edit(note.id, content="E1")
        loop.advance(0.5)
        autosave.edit(note.id, content="E2")
        loop.advance(1.5)
        update.assert_not_called()

        loop.advance(0.5)
        update.assert_called_once_with(note.id, content="E2")
        committed = repository.get(note.id)
        assert committed.content == "E2"
        assert committed.updated_at == clock.at(2.5)
        assert autosave.pending is None

        loop.advance(10)
        update.assert_called_once()

    def test_fields_merge_latest_per_field(self, repository: NoteRepository, loop: FakeLoop) -> None:
        note = repository.create()
        autosave = _scheduler(repository, loop)
        autosave.edit(note.id, title="T1")
        autosave.edit(note.id, content="C1")
        autosave.edit(note.id, title="T2")
        assert autosave.pending.fields == {"title": "T2", "content": "C1"}
        loop.advance(2)
        committed = repository.get(note.id)
        assert (committed.title, committed.content) == ("T2", "C1")

    def test_deadline_tracks_last_edit(self, repository: NoteRepository, loop: FakeLoop) -> None:
        note = repository.create()
        autosave = _scheduler(repository, loop)
        autosave.edit(note.id, content="a")
        loop.advance(1.5)
        autosave.edit(note.id, content="b")
        assert autosave.pending.deadline == 3.5
        assert len(loop.scheduled) == 1

    def test_empty_edit_does_not_schedule(self, repository: NoteRepository, loop: FakeLoop) -> None:
        note = repository.create()
        autosave = _scheduler(repository, loop)
        autosave.edit(note.id)
        assert autosave.pending is None
        assert loop.scheduled == []

    def test_commit_for_deleted_note_is_dropped(
        self, repository: NoteRepository, loop: FakeLoop
    ) -> None:
        note = repository.create()
        autosave = _scheduler(repository, loop)
        autosave.edit(note.id, content="late")
        repository.delete(note.id)
        loop.advance(2)
        assert autosave.pending is None
        assert repository.list() == ()

    def test_stale_timer_is_ignored(self, repository: NoteRepository, loop: FakeLoop) -> None:
        note = repository.create()
        autosave = _scheduler(repository, loop)
        autosave.edit(note.id, content="x")
        autosave._on_timer("some-other-note")
        assert autosave.pending is not None
        assert repository.get(note.id).content != "x"


class TestSwitchPolicy:
    def test_flush_commits_on_cancel(self, repository: NoteRepository, loop: FakeLoop) -> None:
        note = repository.create()
        autosave = _scheduler(repository, loop, SwitchPolicy.FLUSH)
        autosave.edit(note.id, title="kept")
        committed = autosave.cancel()
        assert committed.title == "kept"
        assert repository.get(note.id).title == "kept"
        assert autosave.pending is None
        assert loop.scheduled == []

    def test_discard_drops_on_cancel(self, repository: NoteRepository, loop: FakeLoop) -> None:
        """The reference behavior: an edit pending at switch time is lost."""
        note = repository.create()
        autosave = _scheduler(repository, loop, SwitchPolicy.DISCARD)
        autosave.edit(note.id, title="lost")
        assert autosave.cancel() is None
        loop.advance(5)
        assert repository.get(note.id).title == "Untitled Note"
        assert autosave.pending is None

    def test_edit_for_other_note_resolves_pending(
        self, repository: NoteRepository, loop: FakeLoop, clock: FakeClock
    ) -> None:
        a = repository.create()
        clock.seconds = 1
        b = repository.create()
        autosave = _scheduler(repository, loop, SwitchPolicy.FLUSH)
        autosave.edit(a.id, content="for a")
        autosave.edit(b.id, content="for b")
        assert repository.get(a.id).content == "for a"
        assert autosave.pending.note_id == b.id
        loop.advance(2)
        assert repository.get(b.id).content == "for b"

    def test_policy_from_string(self, repository: NoteRepository, loop: FakeLoop) -> None:
        autosave = AutosaveScheduler(repository, policy="discard", loop=loop)
        assert autosave.policy is SwitchPolicy.DISCARD


class TestExplicitResolution:
    def test_flush_without_pending(self, repository: NoteRepository, loop: FakeLoop) -> None:
        assert _scheduler(repository, loop).flush() is None

    def test_cancel_without_pending(self, repository: NoteRepository, loop: FakeLoop) -> None:
        assert _scheduler(repository, loop).cancel() is None

    def test_flush_commits_now(self, repository: NoteRepository, loop: FakeLoop, clock) -> None:
        note = repository.create()
        autosave = _scheduler(repository, loop)
        autosave.edit(note.id, content="now")
        clock.seconds = 0.25
        assert autosave.flush().updated_at == clock.at(0.25)
        loop.advance(5)
        assert repository.get(note.id).updated_at == clock.at(0.25)

    def test_discard_returns_dropped_edit(self, repository: NoteRepository, loop: FakeLoop) -> None:
        note = repository.create()
        autosave = _scheduler(repository, loop)
        autosave.edit(note.id, content="gone")
        dropped = autosave.discard()
        assert dropped.note_id == note.id
        assert dropped.fields == {"content": "gone"}
        assert loop.scheduled == []


class TestRunningLoop:
    @pytest.mark.asyncio
    async def test_commits_on_real_event_loop(self, repository: NoteRepository) -> None:
        """Without an injected loop the scheduler uses the running one."""
        note = repository.create()
        autosave = AutosaveScheduler(repository, delay_ms=20)
        autosave.edit(note.id, content="first")
        await asyncio.sleep(0.005)
        autosave.edit(note.id, content="second")
        assert repository.get(note.id).content != "second"
        await asyncio.sleep(0.1)
        assert repository.get(note.id).content == "second"
        assert autosave.pending is None

    def test_requires_running_loop_without_injection(self, repository: NoteRepository) -> None:
        note = repository.create()
        autosave = AutosaveScheduler(repository)
        with pytest.raises(RuntimeError):
            autosave.edit(note.id, content="x")
