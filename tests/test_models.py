# tests/test_models.py
"""Tests for the data models used by the NoteSync client."""
import pytest
from pydantic import ValidationError

from notesync.models.schema import Folder, Invite, Note, NoteKind, PublicNote


class TestFolderModel:
    """Tests for the Folder model."""

    def test_folder_creation(self):
        """Test creating root and nested folders."""
        root = Folder(id="f1", name="Work")
        child = Folder(id="f2", name="Projects", parent_id="f1")
        assert root.is_root
        assert not child.is_root
        assert child.parent_id == "f1"

    def test_folder_requires_id(self):
        """Empty or blank ids are rejected."""
        with pytest.raises(ValidationError):
            Folder(id="", name="Work")
        with pytest.raises(ValidationError):
            Folder(id="   ", name="Work")

    def test_folder_is_frozen(self):
        """Folders are values; updates go through model_copy."""
        folder = Folder(id="f1", name="Work")
        with pytest.raises(ValidationError):
            folder.name = "Other"
        renamed = folder.model_copy(update={"name": "Other"})
        assert renamed.name == "Other"
        assert folder.name == "Work"

    def test_folder_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            Folder(id="f1", name="Work", color="red")


class TestNoteModel:
    """Tests for the Note model."""

    def test_note_defaults(self):
        """A bare note is an empty private drawing at the root."""
        note = Note(id="n1", name="Sketch")
        assert note.kind is NoteKind.DRAWING
        assert note.content == b""
        assert note.is_public is False
        assert note.collaborators == frozenset()
        assert note.is_root

    def test_note_collaborators(self):
        note = Note(id="n1", name="Shared", collaborators={"alice.os", "bob.os"})
        assert note.has_collaborator("alice.os")
        assert not note.has_collaborator("carol.os")

    def test_note_requires_id(self):
        with pytest.raises(ValidationError):
            Note(id="", name="Sketch")

    def test_note_content_is_opaque_bytes(self):
        """Content is stored as given, whatever it contains."""
        payload = bytes(range(256))
        note = Note(id="n1", name="Binary", content=payload)
        assert note.content == payload


class TestInviteModel:
    """Tests for the Invite model."""

    def test_invite_key(self):
        invite = Invite(note_id="n1", inviter_id="alice.os", note_name="Plan")
        assert invite.key == ("n1", "alice.os")

    def test_invite_equality(self):
        """Invites with the same fields compare equal."""
        a = Invite(note_id="n1", inviter_id="alice.os")
        b = Invite(note_id="n1", inviter_id="alice.os")
        assert a == b


class TestPublicNote:
    """Tests for the PublicNote projection."""

    def test_markdown_text(self):
        note = PublicNote(id="n1", name="Readme", kind=NoteKind.MARKDOWN, content="# Hi".encode())
        assert note.text() == "# Hi"

    def test_drawing_has_no_text(self):
        note = PublicNote(id="n1", name="Sketch", content=b"{}")
        with pytest.raises(ValueError):
            note.text()

    def test_invalid_utf8_is_replaced(self):
        note = PublicNote(id="n1", name="Odd", kind=NoteKind.MARKDOWN, content=b"a\xffb")
        assert note.text() == "a�b"
