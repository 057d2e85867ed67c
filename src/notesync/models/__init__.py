"""Entity and wire models for the NoteSync client."""

from notesync.models.schema import Folder, Invite, Note, NoteKind, PublicNote

__all__ = [
    "Folder",
    "Invite",
    "Note",
    "NoteKind",
    "PublicNote",
]
