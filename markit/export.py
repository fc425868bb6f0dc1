"""Markdown export of a single note."""

from __future__ import annotations

import re
from dataclasses import dataclass

from markit.models import Note

EXPORT_EXTENSION = ".md"
EXPORT_MEDIA_TYPE = "text/markdown"
FALLBACK_STEM = "untitled"
MAX_STEM_LENGTH = 120

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9]")


@dataclass(frozen=True)
class ExportArtifact:
    """Bytes ready to hand to a download or file writer."""

    filename: str
    data: bytes
    media_type: str = EXPORT_MEDIA_TYPE


def export_filename(title: str) -> str:
    """Derive ``<sanitized-title>.md`` from a note title.

    The stem is cut to MAX_STEM_LENGTH characters. Titles with no ASCII
    letters or digits fall back to ``untitled.md``.
    """
    stem = _UNSAFE_CHARS.sub("_", title).lower()[:MAX_STEM_LENGTH]
    if not stem.strip("_"):
        stem = FALLBACK_STEM
    return f"{stem}{EXPORT_EXTENSION}"


def export_note(note: Note) -> ExportArtifact:
    """Raw UTF-8 content of the note, untransformed."""
    return ExportArtifact(
        filename=export_filename(note.title),
        data=note.content.encode("utf-8"),
    )
