"""Tests for the pure hierarchy functions."""
import logging
import random

from notesync.models.schema import Folder, Note
from notesync.storage.hierarchy import (
    ancestor_chain,
    ancestor_ids,
    build_tree,
    children_index,
    normalize_snapshot,
    would_create_cycle,
)


def folders_of(*pairs):
    """Build a folder map from (id, parent_id) pairs."""
    return {fid: Folder(id=fid, name=fid.upper(), parent_id=parent) for fid, parent in pairs}


def has_cycle(folders):
    for folder_id in folders:
        seen = set()
        current = folder_id
        while current is not None:
            if current in seen:
                return True
            seen.add(current)
            folder = folders.get(current)
            current = folder.parent_id if folder else None
    return False


class TestAncestors:
    """Tests for ancestor walks."""

    def test_chain_starts_with_self(self):
        folders = folders_of(("a", None), ("b", "a"), ("c", "b"))
        assert ancestor_chain(folders, "c") == ["c", "b", "a"]
        assert ancestor_ids(folders, "c") == {"a", "b"}

    def test_root_has_no_ancestors(self):
        folders = folders_of(("a", None))
        assert ancestor_ids(folders, "a") == set()
        assert ancestor_chain(folders, None) == []

    def test_chain_stops_on_missing_parent(self):
        folders = folders_of(("b", "ghost"))
        assert ancestor_chain(folders, "b") == ["b", "ghost"]

    def test_chain_terminates_on_corrupt_loop(self):
        folders = folders_of(("a", "b"), ("b", "a"))
        assert ancestor_chain(folders, "a") == ["a", "b"]


class TestWouldCreateCycle:
    """Tests for move validation."""

    def test_move_into_self(self):
        folders = folders_of(("a", None))
        assert would_create_cycle(folders, "a", "a")

    def test_move_into_descendant(self):
        folders = folders_of(("a", None), ("b", "a"), ("c", "b"))
        assert would_create_cycle(folders, "a", "c")
        assert would_create_cycle(folders, "b", "c")

    def test_move_to_root_never_cycles(self):
        folders = folders_of(("a", None), ("b", "a"))
        assert not would_create_cycle(folders, "b", None)

    def test_move_to_sibling_or_ancestor(self):
        folders = folders_of(("a", None), ("b", "a"), ("c", "a"), ("d", "c"))
        assert not would_create_cycle(folders, "d", "b")
        assert not would_create_cycle(folders, "d", "a")
        assert not would_create_cycle(folders, "c", "b")

    def test_random_valid_moves_never_create_cycles(self):
        """Applying only moves that pass the check keeps the tree acyclic."""
        rng = random.Random(1234)
        ids = [f"f{i}" for i in range(12)]
        folders = folders_of(*[(fid, None) for fid in ids])
        for _ in range(500):
            folder_id = rng.choice(ids)
            target = rng.choice(ids + [None])
            if would_create_cycle(folders, folder_id, target):
                continue
            folders[folder_id] = folders[folder_id].model_copy(update={"parent_id": target})
            assert not has_cycle(folders)


class TestBuildTree:
    """Tests for the nested view of a snapshot."""

    def test_nested_structure(self):
        folders = folders_of(("a", None), ("b", "a"), ("c", None))
        notes = {
            "n1": Note(id="n1", name="In B", folder_id="b"),
            "n2": Note(id="n2", name="Root note"),
        }
        tree = build_tree(folders, notes)
        assert [e["folder"].id for e in tree["folders"]] == ["a", "c"]
        assert [n.id for n in tree["notes"]] == ["n2"]
        a_entry = tree["folders"][0]
        b_entry = a_entry["folders"][0]
        assert b_entry["folder"].id == "b"
        assert [n.id for n in b_entry["notes"]] == ["n1"]

    def test_children_index(self):
        folders = folders_of(("a", None), ("b", "a"), ("c", "a"))
        index = children_index(folders.values())
        assert index[None] == ["a"]
        assert index["a"] == ["b", "c"]


class TestNormalizeSnapshot:
    """Tests for repairing server snapshots."""

    def test_clean_snapshot_unchanged(self):
        folders = list(folders_of(("a", None), ("b", "a")).values())
        notes = [Note(id="n1", name="x", folder_id="b")]
        out_folders, out_notes = normalize_snapshot(folders, notes)
        assert out_folders == folders
        assert out_notes == notes

    def test_duplicate_ids_keep_last(self):
        folders = [Folder(id="a", name="first"), Folder(id="a", name="second")]
        out_folders, _ = normalize_snapshot(folders, [])
        assert [f.name for f in out_folders] == ["second"]

    def test_dangling_references_move_to_root(self, caplog):
        caplog.set_level(logging.WARNING, logger="notesync")
        folders = [Folder(id="b", name="B", parent_id="ghost")]
        notes = [Note(id="n1", name="x", folder_id="missing")]
        out_folders, out_notes = normalize_snapshot(folders, notes)
        assert out_folders[0].parent_id is None
        assert out_notes[0].folder_id is None
        assert "dangling" in caplog.text

    def test_cycles_are_broken(self):
        folders = list(folders_of(("a", "c"), ("b", "a"), ("c", "b"), ("d", "d")).values())
        out_folders, _ = normalize_snapshot(folders, [])
        result = {f.id: f for f in out_folders}
        assert not has_cycle(result)
        assert result["d"].parent_id is None
        # Exactly one folder of the a/b/c loop was re-rooted
        assert sum(1 for fid in "abc" if result[fid].parent_id is None) == 1

    def test_normalization_is_deterministic(self):
        folders = list(folders_of(("a", "c"), ("b", "a"), ("c", "b")).values())
        first, _ = normalize_snapshot(folders, [])
        second, _ = normalize_snapshot(folders, [])
        assert first == second
        again, _ = normalize_snapshot(first, [])
        assert again == first
