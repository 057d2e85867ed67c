"""Data models for the NoteSync client.

These are the internal, strongly-typed shapes. Wire-format records never
leave ``notesync.models.wire``; everything past that boundary uses the
models defined here.
"""

from enum import Enum
from typing import FrozenSet, Optional

from pydantic import BaseModel, Field, field_validator


class NoteKind(str, Enum):
    """Kinds of notes. Content is interpreted only by the matching editor."""

    DRAWING = "drawing"  # Freeform canvas document
    MARKDOWN = "markdown"  # Markdown text document


def _validate_id(v: str, field_name: str) -> str:
    if not v or not v.strip():
        raise ValueError(f"{field_name} cannot be empty")
    return v


class Folder(BaseModel):
    """A grouping node in the note tree."""

    id: str = Field(..., description="Server-assigned opaque folder ID")
    name: str = Field(..., description="Display name")
    parent_id: Optional[str] = Field(
        default=None, description="Parent folder ID, or None for a root folder"
    )

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        return _validate_id(v, "Folder ID")

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


class Note(BaseModel):
    """A drawing or markdown note.

    ``content`` is an opaque payload owned by the editor; the engine never
    looks inside it.
    """

    id: str = Field(..., description="Server-assigned opaque note ID")
    name: str = Field(..., description="Display name")
    folder_id: Optional[str] = Field(
        default=None, description="Containing folder ID, or None at the root"
    )
    kind: NoteKind = Field(default=NoteKind.DRAWING, description="Note kind")
    content: bytes = Field(default=b"", description="Opaque editor payload")
    is_public: bool = Field(default=False, description="Readable without auth")
    collaborators: FrozenSet[str] = Field(
        default_factory=frozenset, description="Node identifiers with edit access"
    )

    model_config = {"extra": "forbid", "frozen": True}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        return _validate_id(v, "Note ID")

    @property
    def is_root(self) -> bool:
        return self.folder_id is None

    def has_collaborator(self, node_id: str) -> bool:
        """Check whether a node currently has access to this note."""
        return node_id in self.collaborators


class Invite(BaseModel):
    """A pending collaboration offer, held outside the note tree."""

    note_id: str = Field(..., description="Note the invite grants access to")
    inviter_id: str = Field(..., description="Node identifier of the inviter")
    note_name: str = Field(default="", description="Name of the shared note")

    model_config = {"extra": "forbid", "frozen": True}

    @property
    def key(self) -> tuple:
        """Identity of an invite: one per (note, inviter) pair."""
        return (self.note_id, self.inviter_id)


class PublicNote(BaseModel):
    """Read-only projection of a note served on the public path.

    Carries no folder context; ``collaborators`` is informational only.
    """

    id: str
    name: str
    kind: NoteKind = NoteKind.DRAWING
    content: bytes = b""
    is_public: bool = True
    collaborators: FrozenSet[str] = Field(default_factory=frozenset)

    model_config = {"extra": "forbid", "frozen": True}

    def text(self, encoding: str = "utf-8") -> str:
        """Decode markdown content for display."""
        if self.kind is not NoteKind.MARKDOWN:
            raise ValueError("Only markdown notes can be decoded as text")
        return self.content.decode(encoding, errors="replace")
