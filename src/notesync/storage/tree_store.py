"""In-memory snapshot of the folder/note tree."""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from notesync.models.schema import Folder, Note

logger = logging.getLogger(__name__)

Listener = Callable[["TreeStore"], None]


@dataclass(frozen=True)
class StoreSnapshot:
    """Immutable copy of everything the store holds, for comparisons."""

    folders: Tuple[Folder, ...]
    notes: Tuple[Note, ...]
    current_note: Optional[Note]


class TreeStore:
    """Owner of the current folders and notes.

    The store is an explicitly constructed object; every engine and view that
    needs it receives it by injection. It does not enforce tree invariants
    itself: the mutation engine checks them before asking for a change and the
    reconciliation engine normalizes snapshots before ``replace_all``.

    Besides the tree, the store carries the view state shared with the UI
    layer: the currently open note, the last error message, and a loading
    flag derived from the number of operations in flight.

    Element mutators on a missing id are no-ops returning None, so a response
    that lands after a reconciliation removed its target cannot crash.
    """

    def __init__(
        self,
        folders: Iterable[Folder] = (),
        notes: Iterable[Note] = (),
    ):
        self._folders: Dict[str, Folder] = {f.id: f for f in folders}
        self._notes: Dict[str, Note] = {n.id: n for n in notes}
        self.current_note: Optional[Note] = None
        self.error: Optional[str] = None
        self._pending = 0
        self._listeners: List[Listener] = []
        self._batch_depth = 0
        self._dirty = False
        # Number of wholesale replacements so far
        self.generation = 0

    # ========== Reads ==========

    @property
    def folders(self) -> List[Folder]:
        return list(self._folders.values())

    @property
    def notes(self) -> List[Note]:
        return list(self._notes.values())

    @property
    def folder_map(self) -> Dict[str, Folder]:
        """Read-only view intended for the pure hierarchy functions."""
        return dict(self._folders)

    @property
    def note_map(self) -> Dict[str, Note]:
        return dict(self._notes)

    def get_folder(self, folder_id: str) -> Optional[Folder]:
        return self._folders.get(folder_id)

    def get_note(self, note_id: str) -> Optional[Note]:
        return self._notes.get(note_id)

    def child_folders(self, parent_id: Optional[str]) -> List[Folder]:
        """Folders directly under ``parent_id`` (None for the root), in snapshot order."""
        return [f for f in self._folders.values() if f.parent_id == parent_id]

    def child_notes(self, folder_id: Optional[str]) -> List[Note]:
        """Notes directly in ``folder_id`` (None for the root), in snapshot order."""
        return [n for n in self._notes.values() if n.folder_id == folder_id]

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            folders=tuple(self._folders.values()),
            notes=tuple(self._notes.values()),
            current_note=self.current_note,
        )

    def __len__(self) -> int:
        return len(self._folders) + len(self._notes)

    # ========== Change notification ==========

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callable run after every change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @contextmanager
    def batch(self) -> Iterator["TreeStore"]:
        """Group several mutators so listeners see only the final state."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._notify()

    def _changed(self) -> None:
        if self._batch_depth:
            self._dirty = True
        else:
            self._notify()

    def _notify(self) -> None:
        self._dirty = False
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Store listener {listener!r} failed: {e}", exc_info=True)

    # ========== Wholesale replacement ==========

    def replace_all(self, folders: Iterable[Folder], notes: Iterable[Note]) -> None:
        """Replace the whole tree. Anything not in the new snapshot is gone.

        The open note follows the snapshot: it is refreshed from the new
        version of itself or cleared when the note no longer exists. A
        refreshed note keeps the content that was loaded for the editor when
        the snapshot carries none.
        """
        self._folders = {f.id: f for f in folders}
        self._notes = {n.id: n for n in notes}
        self.generation += 1

        if self.current_note is not None:
            fresh = self._notes.get(self.current_note.id)
            if fresh is None:
                logger.info(
                    f"Open note '{self.current_note.id}' left the tree; clearing selection"
                )
                self.current_note = None
            elif not fresh.content and self.current_note.content:
                self.current_note = fresh.model_copy(
                    update={"content": self.current_note.content}
                )
            else:
                self.current_note = fresh
        self._changed()

    # ========== Element mutators ==========

    def upsert_folder(self, folder: Folder) -> Folder:
        self._folders[folder.id] = folder
        self._changed()
        return folder

    def update_folder(self, folder_id: str, **changes: Any) -> Optional[Folder]:
        """Apply field changes to a folder; None when the folder is gone."""
        folder = self._folders.get(folder_id)
        if folder is None:
            logger.debug(f"update_folder on missing folder '{folder_id}' ignored")
            return None
        updated = folder.model_copy(update=changes)
        self._folders[folder_id] = updated
        self._changed()
        return updated

    def remove_folder(self, folder_id: str) -> Optional[Folder]:
        removed = self._folders.pop(folder_id, None)
        if removed is not None:
            self._changed()
        return removed

    def upsert_note(self, note: Note) -> Note:
        self._notes[note.id] = note
        if self.current_note is not None and self.current_note.id == note.id:
            self.current_note = note
        self._changed()
        return note

    def update_note(self, note_id: str, **changes: Any) -> Optional[Note]:
        """Apply field changes to a note (and the open copy); None when gone."""
        note = self._notes.get(note_id)
        if note is None:
            logger.debug(f"update_note on missing note '{note_id}' ignored")
            return None
        updated = note.model_copy(update=changes)
        self._notes[note_id] = updated
        if self.current_note is not None and self.current_note.id == note_id:
            self.current_note = self.current_note.model_copy(update=changes)
        self._changed()
        return updated

    def remove_note(self, note_id: str) -> Optional[Note]:
        removed = self._notes.pop(note_id, None)
        deselected = self.current_note is not None and self.current_note.id == note_id
        if deselected:
            self.current_note = None
        if removed is not None or deselected:
            self._changed()
        return removed

    # ========== View state ==========

    def select_note(self, note: Optional[Note]) -> None:
        """Set (or clear, with None) the currently open note."""
        self.current_note = note
        self._changed()

    @property
    def is_loading(self) -> bool:
        return self._pending > 0

    def begin_operation(self) -> None:
        """Mark an operation as started and clear the previous error."""
        self._pending += 1
        self.error = None
        self._changed()

    def end_operation(self, error: Optional[str] = None) -> None:
        """Mark an operation as finished, recording its error if any."""
        self._pending = max(0, self._pending - 1)
        if error is not None:
            self.error = error
        self._changed()

    def clear_error(self) -> None:
        self.error = None
        self._changed()
