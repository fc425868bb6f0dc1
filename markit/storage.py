"""Key/value storage layer for the note collection.

The whole collection lives under one namespace key as a single JSON array.
Reads recover from absent or corrupt values by starting fresh; writes
replace the stored value in one step and surface failures to the caller.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Iterable, Optional, Protocol

from pydantic import ValidationError

from markit.config import STORAGE_KEY
from markit.metrics import PERSISTENCE_OPERATIONS
from markit.models import NOTE_LIST, Note

logger = logging.getLogger(__name__)


class MarkitError(Exception):
    """Base class for note engine failures."""


class PersistenceError(MarkitError):
    """Writing the collection to durable storage failed."""


class KeyValueStore(Protocol):
    """Durable string storage with whole-value replacement."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryKeyValueStore:
    """In-process store, used for tests and embedding."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class FileKeyValueStore:
    """One file per key under a data directory."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    def path_for(self, key: str) -> Path:
        if not key or key.startswith(".") or "/" in key or "\\" in key:
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._root / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        atomic_write_text(self.path_for(key), value)


def atomic_write_text(path: Path, text: str, encoding: str = "utf-8") -> None:
    """Write to a temp file in the same directory, fsync, then replace."""
    atomic_write_bytes(path, text.encode(encoding))


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Byte variant of :func:`atomic_write_text`."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.parent / f".{path.name}.tmp-{uuid.uuid4().hex}"
    try:
        with open(tmp_path, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        tmp_path.replace(path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


class PersistenceAdapter:
    """Loads and saves the full note collection under a fixed key."""

    def __init__(self, store: KeyValueStore, key: str = STORAGE_KEY) -> None:
        self._store = store
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def load(self) -> list[Note]:
        """Return the stored notes, or an empty list if none can be recovered."""
        try:
            raw = self._store.get(self._key)
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            logger.error(
                "Failed to read notes under %r: %s — starting fresh", self._key, exc
            )
            PERSISTENCE_OPERATIONS.labels(operation="load", outcome="corrupt").inc()
            return []

        if raw is None:
            logger.info("No stored notes under %r — starting fresh", self._key)
            PERSISTENCE_OPERATIONS.labels(operation="load", outcome="absent").inc()
            return []

        try:
            notes = NOTE_LIST.validate_json(raw)
        except ValidationError as exc:
            logger.error(
                "Stored notes under %r are malformed (%d errors): %s — starting fresh",
                self._key,
                exc.error_count(),
                exc,
            )
            PERSISTENCE_OPERATIONS.labels(operation="load", outcome="corrupt").inc()
            return []

        seen: set[str] = set()
        for note in notes:
            if note.id in seen:
                logger.error(
                    "Stored notes under %r repeat id %s — starting fresh", self._key, note.id
                )
                PERSISTENCE_OPERATIONS.labels(operation="load", outcome="corrupt").inc()
                return []
            seen.add(note.id)

        logger.info("Loaded %d notes from %r", len(notes), self._key)
        PERSISTENCE_OPERATIONS.labels(operation="load", outcome="ok").inc()
        return notes

    def save(self, notes: Iterable[Note]) -> None:
        """Replace the stored collection with ``notes``."""
        notes = list(notes)
        payload = NOTE_LIST.dump_json(notes, by_alias=True).decode("utf-8")
        try:
            self._store.set(self._key, payload)
        except OSError as exc:
            logger.error(
                "Failed to save %d notes under %r: %s", len(notes), self._key, exc
            )
            PERSISTENCE_OPERATIONS.labels(operation="save", outcome="error").inc()
            raise PersistenceError(f"Could not save notes under {self._key!r}") from exc
        PERSISTENCE_OPERATIONS.labels(operation="save", outcome="ok").inc()
        logger.debug("Saved %d notes under %r", len(notes), self._key)
