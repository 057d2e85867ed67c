"""Engines that read from and write to the remote authority."""

from notesync.services.mutation_engine import MutationEngine
from notesync.services.public_notes import PublicNoteReader
from notesync.services.reconciliation import ReconciliationEngine

__all__ = [
    "MutationEngine",
    "PublicNoteReader",
    "ReconciliationEngine",
]
