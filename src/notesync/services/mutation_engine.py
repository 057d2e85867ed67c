"""Mutation engine: every user-initiated write to the note tree.

Operations fall into three classes, each with one timing contract:

* **Confirm-then-apply** (rename/move/delete of folders and notes, content
  saves): the request goes out first and the equivalent local change is
  applied only after the remote authority acknowledges it. A failed call
  leaves the store exactly as it was.
* **Apply-from-response** (public flag, collaborator changes, accepting an
  invite): the response carries the canonical Note, which replaces the local
  copy. Nothing changes locally unless the response is an Ok variant.
* **Refetch** (creating folders/notes, importing): the server assigns ids,
  so the full structure is fetched and reconciled after success.

Local invariants (no cycles, referenced folders exist, names non-empty) are
checked before anything is sent; violations never reach the network.

The event loop may run a reconciliation while a request is in flight. The
local step then runs against the new snapshot: a target that disappeared is
a no-op, and a change that would break an invariant of the new snapshot is
skipped and left for the next reconciliation to settle.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from notesync.exceptions import (
    CollaboratorNotFoundError,
    FolderNotFoundError,
    InvalidMoveError,
    InviteNotFoundError,
    NoteNotFoundError,
    NoteSyncError,
    ProtocolError,
    ValidationError,
)
from notesync.models.schema import Folder, Invite, Note, NoteKind
from notesync.models.wire import (
    Operation,
    bytes_from_wire,
    encode_request,
    folder_from_wire,
    invite_from_wire,
    note_from_wire,
    unwrap_result,
)
from notesync.observability import timed_operation
from notesync.services.reconciliation import ReconciliationEngine
from notesync.storage.hierarchy import would_create_cycle
from notesync.storage.invite_store import InviteStore
from notesync.storage.tree_store import TreeStore
from notesync.transport.http import RemoteAuthority

logger = logging.getLogger(__name__)


def _require_name(name: str, field: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(f"{field} cannot be empty", field=field, value=name)
    return name


class MutationEngine:
    """Executes commands against the remote authority and the tree store.

    Every public coroutine marks the store as loading for its duration,
    clears the previous error when it starts, records its failure message in
    ``TreeStore.error`` and re-raises. No operation is retried.
    """

    def __init__(
        self,
        remote: RemoteAuthority,
        store: TreeStore,
        invites: InviteStore,
        reconciler: Optional[ReconciliationEngine] = None,
    ):
        """Initialize the engine.

        Args:
            remote: Request/response channel to the remote authority.
            store: Tree store to mutate; shared with views and reconciliation.
            invites: Pending-invite state.
            reconciler: Used for the refetch after creates and imports.
                Created on top of ``store`` and ``remote`` when None.
        """
        self._remote = remote
        self._store = store
        self._invites = invites
        self._reconciler = reconciler or ReconciliationEngine(store, remote)

    @property
    def store(self) -> TreeStore:
        return self._store

    @property
    def invites(self) -> InviteStore:
        return self._invites

    # ========== Protocol helpers ==========

    @contextmanager
    def _operation(self, name: str, **context: Any) -> Iterator[Dict[str, Any]]:
        self._store.begin_operation()
        error: Optional[str] = None
        try:
            with timed_operation(name, **context) as op:
                yield op
        except NoteSyncError as e:
            error = e.message
            logger.warning(f"{name} failed: {e}")
            raise
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.error(f"{name} failed unexpectedly: {e}", exc_info=True)
            raise
        finally:
            self._store.end_operation(error)

    async def _call(self, operation: Operation, *args: Any) -> Any:
        body = await self._remote.send(encode_request(operation, *args))
        return unwrap_result(operation, body)

    def _require_folder(self, folder_id: str) -> Folder:
        folder = self._store.get_folder(folder_id)
        if folder is None:
            raise FolderNotFoundError(folder_id)
        return folder

    def _require_optional_folder(self, folder_id: Optional[str]) -> None:
        if folder_id is not None:
            self._require_folder(folder_id)

    def _require_note(self, note_id: str) -> Note:
        note = self._store.get_note(note_id)
        if note is None:
            raise NoteNotFoundError(note_id)
        return note

    def _note_from_response(self, operation: Operation, payload: Any) -> Note:
        if payload is None:
            raise ProtocolError(
                "Expected the updated note in the response",
                operation=operation.value,
            )
        return note_from_wire(payload, operation.value)

    def _graft(self, note: Note) -> Note:
        """Fit a server-provided note into the local tree."""
        if note.folder_id is not None and self._store.get_folder(note.folder_id) is None:
            logger.debug(
                f"Note '{note.id}' references folder '{note.folder_id}' outside "
                "the local tree; placing it at the root"
            )
            note = note.model_copy(update={"folder_id": None})
        return note

    def _replace_note(self, note: Note) -> Optional[Note]:
        if self._store.get_note(note.id) is None:
            logger.info(f"Note '{note.id}' left the tree while in flight; response dropped")
            return None
        return self._store.upsert_note(self._graft(note))

    # ========== Structure ==========

    async def refresh_structure(self) -> None:
        """Fetch the full structure and replace the store with it."""
        with self._operation("refresh_structure") as op:
            await self._reconciler.refresh()
            op["total"] = len(self._store)

    # ========== Folders ==========

    async def create_folder(self, name: str, parent_id: Optional[str] = None) -> Optional[Folder]:
        """Create a folder; the store is refreshed from the server afterwards.

        Returns:
            The folder as returned by the server, when it returned one.
        """
        with self._operation("create_folder", parent_id=parent_id) as op:
            _require_name(name, "Folder name")
            self._require_optional_folder(parent_id)
            payload = await self._call(Operation.CREATE_FOLDER, name, parent_id)
            folder = (
                folder_from_wire(payload, Operation.CREATE_FOLDER.value)
                if payload is not None
                else None
            )
            await self._reconciler.refresh()
            if folder is not None:
                op["folder_id"] = folder.id
            return folder

    async def rename_folder(self, folder_id: str, name: str) -> Optional[Folder]:
        with self._operation("rename_folder", folder_id=folder_id):
            _require_name(name, "Folder name")
            self._require_folder(folder_id)
            await self._call(Operation.RENAME_FOLDER, folder_id, name)
            return self._store.update_folder(folder_id, name=name)

    async def move_folder(
        self, folder_id: str, new_parent_id: Optional[str]
    ) -> Optional[Folder]:
        """Reparent a folder (None moves it to the root).

        Raises:
            InvalidMoveError: The target is the folder itself or one of its
                descendants. Detected locally; nothing is sent.
        """
        with self._operation(
            "move_folder", folder_id=folder_id, new_parent_id=new_parent_id
        ):
            self._require_folder(folder_id)
            self._require_optional_folder(new_parent_id)
            if would_create_cycle(self._store.folder_map, folder_id, new_parent_id):
                raise InvalidMoveError(folder_id, new_parent_id)

            await self._call(Operation.MOVE_FOLDER, folder_id, new_parent_id)

            # The snapshot may have been replaced while the request was out
            if new_parent_id is not None and (
                self._store.get_folder(new_parent_id) is None
                or would_create_cycle(self._store.folder_map, folder_id, new_parent_id)
            ):
                logger.warning(
                    f"Move of '{folder_id}' under '{new_parent_id}' no longer fits the "
                    "current snapshot; waiting for the next reconciliation"
                )
                return self._store.get_folder(folder_id)
            return self._store.update_folder(folder_id, parent_id=new_parent_id)

    async def delete_folder(self, folder_id: str) -> int:
        """Delete a folder. Its notes and child folders move to the root.

        Returns:
            Number of notes and folders that were moved to the root.
        """
        with self._operation("delete_folder", folder_id=folder_id) as op:
            self._require_folder(folder_id)
            await self._call(Operation.DELETE_FOLDER, folder_id)

            orphaned = 0
            with self._store.batch():
                self._store.remove_folder(folder_id)
                for note in self._store.child_notes(folder_id):
                    self._store.update_note(note.id, folder_id=None)
                    orphaned += 1
                for child in self._store.child_folders(folder_id):
                    self._store.update_folder(child.id, parent_id=None)
                    orphaned += 1
            op["orphaned"] = orphaned
            return orphaned

    # ========== Notes ==========

    async def create_note(
        self,
        name: str,
        folder_id: Optional[str] = None,
        kind: NoteKind = NoteKind.DRAWING,
    ) -> Optional[Note]:
        """Create an empty note; the store is refreshed from the server afterwards."""
        with self._operation("create_note", folder_id=folder_id, kind=kind.value) as op:
            _require_name(name, "Note name")
            self._require_optional_folder(folder_id)
            payload = await self._call(Operation.CREATE_NOTE, name, folder_id, kind)
            note = (
                note_from_wire(payload, Operation.CREATE_NOTE.value)
                if payload is not None
                else None
            )
            await self._reconciler.refresh()
            if note is not None:
                op["note_id"] = note.id
            return note

    async def rename_note(self, note_id: str, name: str) -> Optional[Note]:
        """Rename a note; the open note's name follows without changing selection."""
        with self._operation("rename_note", note_id=note_id):
            _require_name(name, "Note name")
            self._require_note(note_id)
            await self._call(Operation.RENAME_NOTE, note_id, name)
            return self._store.update_note(note_id, name=name)

    async def move_note(self, note_id: str, folder_id: Optional[str]) -> Optional[Note]:
        with self._operation("move_note", note_id=note_id, folder_id=folder_id):
            self._require_note(note_id)
            self._require_optional_folder(folder_id)
            await self._call(Operation.MOVE_NOTE, note_id, folder_id)

            if folder_id is not None and self._store.get_folder(folder_id) is None:
                logger.warning(
                    f"Folder '{folder_id}' vanished while moving note '{note_id}'; "
                    "waiting for the next reconciliation"
                )
                return self._store.get_note(note_id)
            return self._store.update_note(note_id, folder_id=folder_id)

    async def delete_note(self, note_id: str) -> None:
        """Delete a note; clears the selection if it was the open note."""
        with self._operation("delete_note", note_id=note_id):
            self._require_note(note_id)
            await self._call(Operation.DELETE_NOTE, note_id)
            self._store.remove_note(note_id)

    async def open_note(self, note_id: str) -> Note:
        """Load a note with its content and make it the open note."""
        with self._operation("open_note", note_id=note_id):
            self._require_note(note_id)
            payload = await self._call(Operation.GET_NOTE, note_id)
            note = self._graft(self._note_from_response(Operation.GET_NOTE, payload))
            if self._store.get_note(note_id) is None:
                logger.info(f"Note '{note_id}' left the tree while opening; not selecting")
                return note
            self._store.select_note(note)
            return note

    def close_note(self) -> None:
        """Clear the open note. Purely local."""
        self._store.select_note(None)

    async def save_note_content(self, note_id: str, content: bytes) -> Optional[Note]:
        """Store new editor content for a note. The content is not inspected."""
        with self._operation("save_note_content", note_id=note_id) as op:
            self._require_note(note_id)
            await self._call(Operation.UPDATE_NOTE_CONTENT, note_id, bytes(content))
            op["size"] = len(content)
            return self._store.update_note(note_id, content=bytes(content))

    # ========== Sharing ==========

    async def set_note_public(self, note_id: str, is_public: bool) -> Optional[Note]:
        """Toggle public visibility; applied only from an Ok response."""
        with self._operation("set_note_public", note_id=note_id, is_public=is_public):
            self._require_note(note_id)
            payload = await self._call(Operation.SET_NOTE_PUBLIC, note_id, is_public)
            if payload is None:
                return self._store.update_note(note_id, is_public=is_public)
            return self._replace_note(
                self._note_from_response(Operation.SET_NOTE_PUBLIC, payload)
            )

    async def invite_collaborator(self, note_id: str, node_id: str) -> Optional[Note]:
        with self._operation("invite_collaborator", note_id=note_id, node_id=node_id):
            _require_name(node_id, "Node ID")
            self._require_note(note_id)
            payload = await self._call(Operation.INVITE_COLLABORATOR, note_id, node_id)
            return self._replace_note(
                self._note_from_response(Operation.INVITE_COLLABORATOR, payload)
            )

    async def remove_collaborator(self, note_id: str, node_id: str) -> Optional[Note]:
        with self._operation("remove_collaborator", note_id=note_id, node_id=node_id):
            note = self._require_note(note_id)
            if not note.has_collaborator(node_id):
                raise CollaboratorNotFoundError(note_id, node_id)
            payload = await self._call(Operation.REMOVE_COLLABORATOR, note_id, node_id)
            return self._replace_note(
                self._note_from_response(Operation.REMOVE_COLLABORATOR, payload)
            )

    # ========== Invites ==========

    async def get_invites(self) -> List[Invite]:
        """Refresh the pending invites from the server."""
        with self._operation("get_invites") as op:
            payload = await self._call(Operation.GET_INVITES)
            if not isinstance(payload, list):
                raise ProtocolError(
                    "Expected a list of invites",
                    operation=Operation.GET_INVITES.value,
                    payload=payload,
                )
            invites = [
                invite_from_wire(raw, Operation.GET_INVITES.value) for raw in payload
            ]
            self._invites.replace_all(invites)
            op["result_count"] = len(invites)
            return self._invites.invites

    async def accept_invite(self, note_id: str, inviter_id: str) -> Note:
        """Accept an invite: the returned note joins the tree, the invite goes away."""
        with self._operation("accept_invite", note_id=note_id, inviter_id=inviter_id):
            if self._invites.get(note_id, inviter_id) is None:
                raise InviteNotFoundError(note_id, inviter_id)
            payload = await self._call(Operation.ACCEPT_INVITE, note_id, inviter_id)
            note = self._graft(
                self._note_from_response(Operation.ACCEPT_INVITE, payload)
            )
            with self._store.batch():
                self._invites.remove(note_id, inviter_id)
                self._store.upsert_note(note)
            return note

    async def reject_invite(self, note_id: str, inviter_id: str) -> None:
        with self._operation("reject_invite", note_id=note_id, inviter_id=inviter_id):
            if self._invites.get(note_id, inviter_id) is None:
                raise InviteNotFoundError(note_id, inviter_id)
            await self._call(Operation.REJECT_INVITE, note_id, inviter_id)
            self._invites.remove(note_id, inviter_id)

    # ========== Export / import ==========

    async def export_all(self) -> bytes:
        """Return the server's compressed export of the whole tree, unexamined."""
        with self._operation("export_all") as op:
            payload = await self._call(Operation.EXPORT_ALL)
            blob = bytes_from_wire(payload, Operation.EXPORT_ALL.value)
            op["size"] = len(blob)
            return blob

    async def import_all(self, blob: bytes) -> None:
        """Hand a compressed export to the server, then refetch the structure."""
        with self._operation("import_all", size=len(blob)):
            if not blob:
                raise ValidationError("Import data cannot be empty", field="blob")
            await self._call(Operation.IMPORT_ALL, bytes(blob))
            await self._reconciler.refresh()
