"""Pure functions over a (folders, notes) snapshot.

Nothing here touches shared state: every function receives the snapshot it
works on as an argument, so the same code serves the live store, tests and
the reconciliation boundary.
"""
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from notesync.models.schema import Folder, Note

logger = logging.getLogger(__name__)


def ancestor_chain(folders: Mapping[str, Folder], folder_id: Optional[str]) -> List[str]:
    """Walk ``parent_id`` links from ``folder_id`` up to a root.

    The returned list starts with ``folder_id`` itself. The walk stops at a
    null parent, at a parent that is not in the snapshot, or when an id
    repeats, so it terminates even on a corrupted snapshot.
    """
    chain: List[str] = []
    seen: Set[str] = set()
    current = folder_id
    while current is not None and current not in seen:
        chain.append(current)
        seen.add(current)
        folder = folders.get(current)
        if folder is None:
            break
        current = folder.parent_id
    return chain


def ancestor_ids(folders: Mapping[str, Folder], folder_id: Optional[str]) -> Set[str]:
    """Return the ids of every folder above ``folder_id`` (excluding itself)."""
    return set(ancestor_chain(folders, folder_id)[1:])


def would_create_cycle(
    folders: Mapping[str, Folder], folder_id: str, new_parent_id: Optional[str]
) -> bool:
    """Check whether moving ``folder_id`` under ``new_parent_id`` closes a loop.

    Moving to the root never does. Otherwise the move is invalid when the
    target is the folder itself or any of its descendants, i.e. when
    ``folder_id`` appears on the target's ancestor chain. O(depth).
    """
    if new_parent_id is None:
        return False
    return folder_id in ancestor_chain(folders, new_parent_id)


def children_index(folders: Iterable[Folder]) -> Dict[Optional[str], List[str]]:
    """Map each parent id (None for root) to its child folder ids, in order."""
    index: Dict[Optional[str], List[str]] = {}
    for folder in folders:
        index.setdefault(folder.parent_id, []).append(folder.id)
    return index


def build_tree(
    folders: Mapping[str, Folder], notes: Mapping[str, Note]
) -> Dict[str, Any]:
    """Get the snapshot as a nested structure rooted at the null parent.

    Returns:
        ``{"folders": [...], "notes": [...]}`` for the root, where each folder
        entry is ``{"folder": Folder, "folders": [...], "notes": [...]}``.
    """
    by_parent = children_index(folders.values())
    notes_by_folder: Dict[Optional[str], List[Note]] = {}
    for note in notes.values():
        notes_by_folder.setdefault(note.folder_id, []).append(note)

    def expand(parent_id: Optional[str], visiting: Set[str]) -> Dict[str, Any]:
        entries = []
        for child_id in by_parent.get(parent_id, []):
            if child_id in visiting:
                continue
            entry = expand(child_id, visiting | {child_id})
            entry["folder"] = folders[child_id]
            entries.append(entry)
        return {"folders": entries, "notes": notes_by_folder.get(parent_id, [])}

    return expand(None, set())


def normalize_snapshot(
    folders: Iterable[Folder], notes: Iterable[Note]
) -> Tuple[List[Folder], List[Note]]:
    """Make a server snapshot satisfy the tree invariants.

    - duplicate ids keep the last occurrence (at the first one's position)
    - a ``parent_id``/``folder_id`` naming a missing folder becomes None
    - a parent chain that loops is broken by re-rooting the folder whose
      parent link closes the loop

    The result depends only on the input order, so normalizing the same
    payload twice gives the same snapshot.
    """
    folder_map: Dict[str, Folder] = {}
    for folder in folders:
        if folder.id in folder_map:
            logger.warning(f"Duplicate folder id '{folder.id}' in snapshot; keeping last")
        folder_map[folder.id] = folder

    for folder_id, folder in list(folder_map.items()):
        parent = folder.parent_id
        if parent is not None and (parent == folder_id or parent not in folder_map):
            logger.warning(
                f"Folder '{folder_id}' has dangling parent '{parent}'; moving to root"
            )
            folder_map[folder_id] = folder.model_copy(update={"parent_id": None})

    # Folders known to reach a root without looping
    grounded: Set[str] = set()
    for start in list(folder_map):
        path: List[str] = []
        on_path: Set[str] = set()
        current: Optional[str] = start
        while current is not None and current not in grounded:
            if current in on_path:
                # path[-1] points back into the path: cut its link
                closing = path[-1]
                logger.warning(
                    f"Folder '{closing}' closes a parent cycle; moving to root"
                )
                folder_map[closing] = folder_map[closing].model_copy(
                    update={"parent_id": None}
                )
                break
            path.append(current)
            on_path.add(current)
            current = folder_map[current].parent_id
        grounded.update(path)

    note_map: Dict[str, Note] = {}
    for note in notes:
        if note.id in note_map:
            logger.warning(f"Duplicate note id '{note.id}' in snapshot; keeping last")
        if note.folder_id is not None and note.folder_id not in folder_map:
            logger.warning(
                f"Note '{note.id}' has dangling folder '{note.folder_id}'; moving to root"
            )
            note = note.model_copy(update={"folder_id": None})
        note_map[note.id] = note

    return list(folder_map.values()), list(note_map.values())
