"""Debounced autosave of the currently open note.

Rapid edits are collected into one pending update that is committed to the
repository once no further edit arrives for the quiescence period. The timer
runs on an asyncio event loop and is keyed by note id: a timer that fires
for a note other than the pending one is ignored.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from markit.config import AUTOSAVE_DELAY_MS
from markit.metrics import AUTOSAVE_EVENTS
from markit.models import Note
from markit.repository import NoteRepository

logger = logging.getLogger(__name__)


class SwitchPolicy(str, Enum):
    """What happens to a pending edit when the open note changes."""

    FLUSH = "flush"
    DISCARD = "discard"


@dataclass
class PendingEdit:
    """Uncommitted field values for one note."""

    note_id: str
    fields: dict[str, str] = field(default_factory=dict)
    deadline: float = 0.0


class AutosaveScheduler:
    """Debounces edits to one open note and commits them after quiescence.

    ``cancel()`` must be called explicitly when the open note changes or the
    editor closes; with :attr:`SwitchPolicy.FLUSH` it commits the pending
    edit, with :attr:`SwitchPolicy.DISCARD` the edit is lost.
    """

    def __init__(
        self,
        repository: NoteRepository,
        delay_ms: int = AUTOSAVE_DELAY_MS,
        *,
        policy: SwitchPolicy = SwitchPolicy.FLUSH,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._repository = repository
        self._delay = delay_ms / 1000
        self._policy = SwitchPolicy(policy)
        self._loop = loop
        self._pending: Optional[PendingEdit] = None
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def policy(self) -> SwitchPolicy:
        return self._policy

    @property
    def pending(self) -> Optional[PendingEdit]:
        """The uncommitted edit, if any."""
        return self._pending

    def edit(
        self,
        note_id: str,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
    ) -> None:
        """Record new field values and restart the quiescence timer."""
        if self._pending is not None and self._pending.note_id != note_id:
            self.cancel()

        changes = {
            name: value
            for name, value in (("title", title), ("content", content))
            if value is not None
        }
        if not changes:
            return

        loop = self._loop or asyncio.get_running_loop()
        self._cancel_timer()
        if self._pending is None:
            self._pending = PendingEdit(note_id=note_id)
        self._pending.fields.update(changes)
        self._pending.deadline = loop.time() + self._delay
        self._handle = loop.call_later(self._delay, self._on_timer, note_id)

    def flush(self) -> Optional[Note]:
        """Commit the pending edit now. Returns the updated note, if any."""
        if self._pending is None:
            return None
        return self._commit("flush")

    def discard(self) -> Optional[PendingEdit]:
        """Drop the pending edit without committing it."""
        self._cancel_timer()
        dropped, self._pending = self._pending, None
        if dropped is not None:
            AUTOSAVE_EVENTS.labels(outcome="discard").inc()
            logger.warning(
                "Autosave discarded pending edit for note %s fields=%s",
                dropped.note_id,
                sorted(dropped.fields),
            )
        return dropped

    def cancel(self) -> Optional[Note]:
        """Stop the timer and resolve the pending edit per the switch policy."""
        if self._pending is None:
            self._cancel_timer()
            return None
        if self._policy is SwitchPolicy.FLUSH:
            return self.flush()
        self.discard()
        return None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_timer(self, note_id: str) -> None:
        self._handle = None
        if self._pending is None or self._pending.note_id != note_id:
            AUTOSAVE_EVENTS.labels(outcome="stale").inc()
            logger.info(
                "Autosave skipped: note token mismatch (note switched before timer fired)"
            )
            return
        self._commit("commit")

    def _commit(self, outcome: str) -> Optional[Note]:
        self._cancel_timer()
        pending, self._pending = self._pending, None
        AUTOSAVE_EVENTS.labels(outcome=outcome).inc()
        note = self._repository.update(pending.note_id, **pending.fields)
        if note is None:
            logger.info("Autosave target %s was deleted; edit dropped", pending.note_id)
        else:
            logger.debug("Autosave %s for note %s", outcome, pending.note_id)
        return note

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
