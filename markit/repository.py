"""In-memory note collection, the single writer of note data."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from markit.metrics import NOTE_MUTATIONS, NOTES_STORED
from markit.models import DEFAULT_CONTENT, DEFAULT_TITLE, Note, utc_now
from markit.storage import MarkitError, PersistenceAdapter

logger = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)

# Longest id still treated as a millisecond counter.
_MAX_NUMERIC_ID_DIGITS = 18


def _numeric_id(note_id: str) -> Optional[int]:
    if (
        note_id.isascii()
        and note_id.isdigit()
        and len(note_id) <= _MAX_NUMERIC_ID_DIGITS
    ):
        return int(note_id)
    return None


class StoreNotLoadedError(MarkitError):
    """A save was attempted before the collection was seeded from storage."""


class NoteRepository:
    """Owns the ordered note collection, newest-created first.

    Every mutation is mirrored to the persistence adapter. Saving is refused
    until :meth:`replace_all` has seeded the collection, so a cold start can
    never overwrite durable state with an empty list.
    """

    def __init__(
        self,
        persistence: PersistenceAdapter,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._persistence = persistence
        self._clock = clock
        self._notes: list[Note] = []
        self._seeded = False
        self._last_id = 0

    @property
    def seeded(self) -> bool:
        """Whether the collection has been seeded from storage."""
        return self._seeded

    def __len__(self) -> int:
        return len(self._notes)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list(self) -> tuple[Note, ...]:
        """Return every note, newest-created first."""
        return tuple(self._notes)

    def get(self, note_id: str) -> Optional[Note]:
        """Return the note with ``note_id``, or None."""
        index = self._index_of(note_id)
        return None if index is None else self._notes[index]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def replace_all(self, notes: Iterable[Note]) -> None:
        """Seed the collection from persisted state. Never saves."""
        notes = list(notes)
        ids = [n.id for n in notes]
        if len(set(ids)) != len(ids):
            raise ValueError("Duplicate note ids in seed collection")

        self._notes = notes
        numeric_ids = (n for n in map(_numeric_id, ids) if n is not None)
        self._last_id = max(numeric_ids, default=0)
        self._seeded = True
        NOTES_STORED.set(len(self._notes))
        logger.info("Repository seeded with %d notes", len(self._notes))

    def create(self) -> Note:
        """Insert a new default note at the front and return it."""
        self._require_seeded()
        now = self._clock()
        note = Note(
            id=self._next_id(now),
            title=DEFAULT_TITLE,
            content=DEFAULT_CONTENT,
            created_at=now,
            updated_at=now,
        )
        self._notes.insert(0, note)
        self._persist()
        NOTE_MUTATIONS.labels(operation="create").inc()
        logger.info("Created note %s", note.id)
        return note

    def update(
        self,
        note_id: str,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
    ) -> Optional[Note]:
        """Apply field changes in place; unknown ids are ignored."""
        index = self._index_of(note_id)
        if index is None:
            logger.info("Update skipped: note %s no longer exists", note_id)
            return None

        current = self._notes[index]
        changes: dict[str, object] = {}
        if title is not None:
            changes["title"] = title
        if content is not None:
            changes["content"] = content
        if not changes:
            return current

        changes["updated_at"] = self._stamp_after(current.updated_at)
        updated = current.model_copy(update=changes)
        self._notes[index] = updated
        self._persist()
        NOTE_MUTATIONS.labels(operation="update").inc()
        logger.debug("Updated note %s fields=%s", note_id, sorted(changes))
        return updated

    def delete(self, note_id: str) -> bool:
        """Remove the note; returns False if it did not exist."""
        index = self._index_of(note_id)
        if index is None:
            logger.info("Delete skipped: note %s does not exist", note_id)
            return False

        del self._notes[index]
        self._persist()
        NOTE_MUTATIONS.labels(operation="delete").inc()
        logger.info("Deleted note %s", note_id)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _index_of(self, note_id: str) -> Optional[int]:
        for index, note in enumerate(self._notes):
            if note.id == note_id:
                return index
        return None

    def _next_id(self, now: datetime) -> str:
        candidate = max(int(now.timestamp() * 1000), self._last_id + 1)
        taken = {n.id for n in self._notes}
        while str(candidate) in taken:
            candidate += 1
        self._last_id = candidate
        return str(candidate)

    def _stamp_after(self, previous: datetime) -> datetime:
        now = self._clock()
        return now if now > previous else previous + _TICK

    def _require_seeded(self) -> None:
        if not self._seeded:
            raise StoreNotLoadedError(
                "Refusing to save before notes were loaded from storage"
            )

    def _persist(self) -> None:
        self._require_seeded()
        NOTES_STORED.set(len(self._notes))
        self._persistence.save(self._notes)
