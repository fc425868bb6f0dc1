"""
Note Manager MCP Server

Exposes the MarkIt note engine (create, edit, search, export) via the
Model Context Protocol.  Runs on port 8001 with SSE transport.
"""

import logging
from datetime import UTC, datetime
from typing import Optional

from mcp.server.fastmcp import FastMCP

from markit.app import NotesApp
from markit.config import settings
from markit.export import EXPORT_MEDIA_TYPE
from markit.models import Note

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger("note_manager")

# ---------------------------------------------------------------------------
# MCP server + notes app
# ---------------------------------------------------------------------------
mcp = FastMCP("note-manager", host=settings.server_host, port=settings.server_port)
_app: Optional[NotesApp] = None


def get_app() -> NotesApp:
    """Return the started notes app, building it on first use."""
    global _app
    if _app is None:
        _app = NotesApp.from_settings(settings)
        _app.start()
    return _app


def _note_dict(note: Note) -> dict:
    return note.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool()
def create_note() -> dict:
    """Create a new note with default title and content and open it.

    Use this tool when the user wants to start writing a new note.

    Returns:
        Dictionary with the new note and a confirmation message.
    """
    note = get_app().new_note()
    logger.info("Tool create_note invoked — id=%s", note.id)
    return {"note": _note_dict(note), "message": f"Note '{note.title}' created."}


@mcp.tool()
def open_note(note_id: str) -> dict:
    """Open an existing note for editing.

    Any pending edit on the previously open note is resolved first.

    Args:
        note_id: Identifier of the note to open.

    Returns:
        Dictionary with the opened note, or an error if it does not exist.
    """
    note = get_app().open_note(note_id)
    logger.info("Tool open_note invoked — id=%s, found=%s", note_id, note is not None)
    if note is None:
        return {"error": f"Note {note_id} not found."}
    return {"note": _note_dict(note)}


@mcp.tool()
async def edit_note(title: Optional[str] = None, content: Optional[str] = None) -> dict:
    """Edit the currently open note; the change is autosaved after a pause.

    Args:
        title: New title, if it changed.
        content: New markdown body, if it changed.

    Returns:
        Dictionary with the draft note as currently displayed.
    """
    app = get_app()
    draft = app.edit(title=title, content=content)
    logger.info("Tool edit_note invoked — open=%s", app.current_note_id)
    if draft is None:
        return {"error": "No note is open."}
    return {"note": _note_dict(draft), "pending": app.autosave.pending is not None}


@mcp.tool()
def close_note() -> dict:
    """Close the editor, resolving any pending edit per the switch policy.

    Returns:
        Dictionary with a confirmation message.
    """
    app = get_app()
    closed = app.current_note_id
    app.close_note()
    logger.info("Tool close_note invoked — id=%s", closed)
    return {"closed": closed, "message": "Editor closed."}


@mcp.tool()
def update_note(
    note_id: str, title: Optional[str] = None, content: Optional[str] = None
) -> dict:
    """Immediately update a note's title and/or content.

    Args:
        note_id: Identifier of the note to change.
        title: Optional new title.
        content: Optional new markdown body.

    Returns:
        Dictionary with the updated note, or an error if it does not exist.
    """
    note = get_app().update_note(note_id, title=title, content=content)
    logger.info("Tool update_note invoked — id=%s, found=%s", note_id, note is not None)
    if note is None:
        return {"error": f"Note {note_id} not found."}
    return {"note": _note_dict(note)}


@mcp.tool()
def delete_note(note_id: str) -> dict:
    """Delete a note by id. Deleting a missing note is not an error.

    Args:
        note_id: Identifier of the note to delete.

    Returns:
        Dictionary telling whether a note was removed.
    """
    deleted = get_app().delete_note(note_id)
    logger.info("Tool delete_note invoked — id=%s, deleted=%s", note_id, deleted)
    return {"deleted": deleted}


@mcp.tool()
def list_notes() -> dict:
    """List every note, most recently created first.

    Returns:
        Dictionary with the notes and their count.
    """
    notes = get_app().list_notes()
    logger.info("Tool list_notes invoked — found=%d", len(notes))
    return {"count": len(notes), "notes": [_note_dict(n) for n in notes]}


@mcp.tool()
def search_notes(query: str = "") -> dict:
    """Search notes by keyword (case-insensitive match on title and content).

    An empty query returns every note.

    Args:
        query: The search string to match against note titles and content.

    Returns:
        Dictionary with matching notes and their count.
    """
    results = get_app().search(query)
    logger.info("Tool search_notes invoked — query='%s', found=%d", query, len(results))
    return {"count": len(results), "notes": [_note_dict(n) for n in results]}


@mcp.tool()
def export_note(note_id: Optional[str] = None) -> dict:
    """Export a note as a markdown file into the configured export directory.

    Args:
        note_id: Note to export; defaults to the currently open note.

    Returns:
        Dictionary with the written path and size, or an error.
    """
    path = get_app().export_to(settings.export_dir, note_id)
    logger.info("Tool export_note invoked — id=%s, path=%s", note_id, path)
    if path is None:
        return {"error": "Nothing to export."}
    return {
        "filename": path.name,
        "path": str(path),
        "bytes": path.stat().st_size,
        "media_type": EXPORT_MEDIA_TYPE,
    }


@mcp.tool()
def health_check() -> dict:
    """Check whether the Note Manager server is healthy.

    Returns:
        Dictionary with server status, note count, and timestamp.
    """
    app = get_app()
    logger.info("Tool health_check invoked")
    return {
        "status": "healthy",
        "server": "note-manager",
        "total_notes": len(app.repository),
        "open_note": app.current_note_id,
        "timestamp": datetime.now(UTC).isoformat(),
    }


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    logger.info("Starting Note Manager MCP server on port %d ...", settings.server_port)
    try:
        mcp.run(transport="sse")
    finally:
        if _app is not None:
            _app.shutdown()
