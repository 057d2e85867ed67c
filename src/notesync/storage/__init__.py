"""Local state for the NoteSync client."""

from notesync.storage.invite_store import InviteStore
from notesync.storage.tree_store import StoreSnapshot, TreeStore

__all__ = [
    "InviteStore",
    "StoreSnapshot",
    "TreeStore",
]
