"""Application context wiring storage, repository, autosave and export.

``NotesApp`` is what a UI layer talks to. It holds the only notion of the
"currently open note"; the repository stays agnostic of it.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from markit.autosave import AutosaveScheduler, SwitchPolicy
from markit.config import Settings
from markit.export import ExportArtifact, export_note
from markit.models import Note
from markit.repository import NoteRepository
from markit.search import filter_notes
from markit.storage import FileKeyValueStore, PersistenceAdapter, atomic_write_bytes

logger = logging.getLogger(__name__)


class NotesApp:
    """Top-level owner of the note engine."""

    def __init__(
        self,
        persistence: PersistenceAdapter,
        repository: NoteRepository,
        autosave: AutosaveScheduler,
    ) -> None:
        self._persistence = persistence
        self._repository = repository
        self._autosave = autosave
        self._current_id: Optional[str] = None
        self._started = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> "NotesApp":
        """Build an app backed by files under ``settings.data_dir``."""
        persistence = PersistenceAdapter(
            FileKeyValueStore(settings.data_dir), key=settings.storage_key
        )
        repository = NoteRepository(persistence)
        autosave = AutosaveScheduler(
            repository,
            settings.autosave_delay_ms,
            policy=SwitchPolicy(settings.switch_policy),
            loop=loop,
        )
        return cls(persistence, repository, autosave)

    @property
    def repository(self) -> NoteRepository:
        return self._repository

    @property
    def autosave(self) -> AutosaveScheduler:
        return self._autosave

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Seed the repository from durable storage. Safe to call twice."""
        if self._started:
            return
        self._repository.replace_all(self._persistence.load())
        self._started = True
        logger.info("Notes app started with %d notes", len(self._repository))

    def shutdown(self) -> None:
        """Close the editor, resolving any pending edit."""
        self.close_note()
        logger.info("Notes app shut down")

    # ------------------------------------------------------------------
    # Open note
    # ------------------------------------------------------------------

    @property
    def current_note_id(self) -> Optional[str]:
        return self._current_id

    @property
    def current_note(self) -> Optional[Note]:
        """The open note as the editor shows it, pending edits included."""
        if self._current_id is None:
            return None
        note = self._repository.get(self._current_id)
        if note is None:
            return None
        pending = self._autosave.pending
        if pending is not None and pending.note_id == note.id:
            return note.model_copy(update=pending.fields)
        return note

    def new_note(self) -> Note:
        """Create a note and open it."""
        self._autosave.cancel()
        note = self._repository.create()
        self._current_id = note.id
        return note

    def open_note(self, note_id: str) -> Optional[Note]:
        """Switch the editor to ``note_id``; unknown ids leave it unchanged."""
        note = self._repository.get(note_id)
        if note is None:
            logger.info("Open skipped: note %s does not exist", note_id)
            return None
        if note_id != self._current_id:
            self._autosave.cancel()
            self._current_id = note_id
        return self.current_note

    def close_note(self) -> None:
        self._autosave.cancel()
        self._current_id = None

    def edit(self, *, title: Optional[str] = None, content: Optional[str] = None) -> Optional[Note]:
        """Debounced edit of the open note. Returns the draft view."""
        if self._current_id is None:
            logger.debug("Edit ignored: no note is open")
            return None
        self._autosave.edit(self._current_id, title=title, content=content)
        return self.current_note

    # ------------------------------------------------------------------
    # Collection operations
    # ------------------------------------------------------------------

    def list_notes(self) -> tuple[Note, ...]:
        return self._repository.list()

    def search(self, term: str) -> list[Note]:
        return filter_notes(self._repository.list(), term)

    def update_note(
        self,
        note_id: str,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
    ) -> Optional[Note]:
        """Commit fields immediately, bypassing the debounce."""
        return self._repository.update(note_id, title=title, content=content)

    def delete_note(self, note_id: str) -> bool:
        pending = self._autosave.pending
        if pending is not None and pending.note_id == note_id:
            self._autosave.discard()
        if self._current_id == note_id:
            self._current_id = None
        return self._repository.delete(note_id)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_current(self) -> Optional[ExportArtifact]:
        """Export the open note as displayed, or None if nothing is open."""
        note = self.current_note
        return None if note is None else export_note(note)

    def export_to(self, directory: Path, note_id: Optional[str] = None) -> Optional[Path]:
        """Write a note's export artifact into ``directory``.

        Defaults to the open note. Returns the written path, or None when
        there is nothing to export.
        """
        if note_id is None or note_id == self._current_id:
            artifact = self.export_current()
        else:
            note = self._repository.get(note_id)
            artifact = None if note is None else export_note(note)
        if artifact is None:
            return None

        path = Path(directory) / artifact.filename
        atomic_write_bytes(path, artifact.data)
        logger.info("Exported %d bytes to %s", len(artifact.data), path)
        return path
