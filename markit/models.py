"""Pydantic models for the note engine."""

from datetime import UTC, datetime

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    model_validator,
)

DEFAULT_TITLE = "Untitled Note"
DEFAULT_CONTENT = "# New Note\n\nStart writing your markdown here..."


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


class Note(BaseModel):
    """A single markdown note.

    Instances are frozen: the repository hands out values, never handles,
    and produces a new instance on every committed change.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1, description="Opaque unique identifier")
    title: str = Field(default=DEFAULT_TITLE, description="Note title")
    content: str = Field(default=DEFAULT_CONTENT, description="Raw markdown body")
    created_at: AwareDatetime = Field(
        ..., alias="createdAt", description="Creation timestamp"
    )
    updated_at: AwareDatetime = Field(
        ..., alias="updatedAt", description="Last committed change"
    )

    @model_validator(mode="after")
    def _updated_not_before_created(self) -> "Note":
        if self.updated_at < self.created_at:
            raise ValueError("updatedAt must not precede createdAt")
        return self


# Wire format of the whole collection: a JSON array of note records.
NOTE_LIST = TypeAdapter(list[Note])
