"""Free-text filtering over the note collection."""

from __future__ import annotations

from typing import Iterable

from markit.models import Note


def filter_notes(notes: Iterable[Note], term: str) -> list[Note]:
    """Return notes whose title or content contains the term (case-insensitive).

    An empty term matches everything. Input order is preserved; the scan is
    recomputed on every call.
    """
    q = term.lower()
    return [n for n in notes if q in n.title.lower() or q in n.content.lower()]
