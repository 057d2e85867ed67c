"""Reconciliation: wholesale replacement of the tree from authoritative snapshots."""
import logging
from typing import Any, Iterable, Optional

from notesync.exceptions import ConfigurationError, NoteSyncError
from notesync.models.wire import (
    Operation,
    encode_request,
    folder_from_wire,
    note_from_wire,
    split_structure,
    structure_from_push,
    unwrap_result,
)
from notesync.observability import timed_operation
from notesync.storage.hierarchy import normalize_snapshot
from notesync.storage.tree_store import TreeStore
from notesync.transport.http import RemoteAuthority
from notesync.transport.push import PushChannel

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """Replaces the tree store whenever a full structure arrives.

    There is no delta merge: the initial load, an explicit refresh and every
    push-channel structure message all end in ``TreeStore.replace_all``. The
    client does not tell its own echoes apart from other collaborators'
    changes. A snapshot that fails translation leaves the store untouched.
    """

    def __init__(self, store: TreeStore, remote: Optional[RemoteAuthority] = None):
        self._store = store
        self._remote = remote
        self.applied_count = 0

    def apply_snapshot(
        self,
        raw_folders: Iterable[Any],
        raw_notes: Iterable[Any],
        source: str = "snapshot",
    ) -> None:
        """Translate wire records and replace the store with them.

        Args:
            raw_folders: Folder records with server-side field names
            raw_notes: Note records with server-side field names
            source: Where the snapshot came from, for logs and metrics

        Raises:
            ProtocolError: A record could not be translated (store unchanged)
        """
        operation = Operation.GET_STRUCTURE.value
        with timed_operation("reconcile", source=source) as op:
            folders = [folder_from_wire(raw, operation) for raw in raw_folders]
            notes = [note_from_wire(raw, operation) for raw in raw_notes]
            folders, notes = normalize_snapshot(folders, notes)
            self._store.replace_all(folders, notes)
            self.applied_count += 1
            op["folder_count"] = len(folders)
            op["note_count"] = len(notes)
        logger.debug(
            f"Reconciled from {source}: {len(folders)} folders, {len(notes)} notes"
        )

    async def refresh(self) -> None:
        """Fetch the full structure from the remote authority and apply it."""
        if self._remote is None:
            raise ConfigurationError(
                "ReconciliationEngine has no remote authority to fetch from",
                config_key="remote",
            )
        body = await self._remote.send(encode_request(Operation.GET_STRUCTURE))
        payload = unwrap_result(Operation.GET_STRUCTURE, body)
        raw_folders, raw_notes = split_structure(payload)
        self.apply_snapshot(raw_folders, raw_notes, source="fetch")

    def handle_push(self, message: Any) -> bool:
        """Apply a push-channel message if it carries a full structure.

        Returns:
            True when the store was replaced.
        """
        structure = structure_from_push(message)
        if structure is None:
            logger.debug("Push message without structure payload ignored")
            return False
        raw_folders, raw_notes = structure
        self.apply_snapshot(raw_folders, raw_notes, source="push")
        return True

    async def follow(self, channel: PushChannel) -> None:
        """Reconcile every structure message from the channel until cancelled."""
        async for message in channel.messages():
            try:
                self.handle_push(message)
            except NoteSyncError as e:
                logger.warning(f"Ignoring malformed push message: {e}")
