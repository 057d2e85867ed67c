"""
NoteSync - client-side synchronization engine for a shared note tree.

This package keeps an in-memory tree of folders and notes (drawings or markdown
documents) consistent with a remote authority that owns storage, collaboration
permissions and a real-time push channel. Writes go through the mutation
engine; authoritative snapshots are merged by the reconciliation engine.

This version uses asyncio for all network operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("notesync")
except PackageNotFoundError:
    __version__ = "0.3.0"
