"""Common test fixtures for the NoteSync client."""

import pytest

from notesync.config import config
from notesync.observability import metrics
from notesync.services.mutation_engine import MutationEngine
from notesync.services.reconciliation import ReconciliationEngine
from notesync.storage.invite_store import InviteStore
from notesync.storage.tree_store import TreeStore
from tests.fakes import FakeRemote


@pytest.fixture(params=["asyncio"])
def anyio_backend(request):
    """Restrict anyio tests to asyncio only (trio is not installed)."""
    return request.param


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Keep the global metrics collector independent between tests."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def test_config(tmp_path, monkeypatch):
    """Point the global config at a local server and a temp log dir."""
    monkeypatch.setattr(config, "server_url", "http://notes.test")
    monkeypatch.setattr(config, "push_url", None)
    monkeypatch.setattr(config, "log_dir", tmp_path / "logs")
    yield config


@pytest.fixture
def remote():
    """An empty fake remote authority."""
    return FakeRemote()


@pytest.fixture
def seeded_remote():
    """A fake remote holding a small tree.

    Work/            (f1)
      Projects/      (f2)
        Plan         (n2, markdown)
      Sketch         (n1, drawing)
    Personal/        (f3)
    Loose            (n3, at root)
    """
    fake = FakeRemote()
    fake.add_folder("Work")
    fake.add_folder("Projects", parent_id="f1")
    fake.add_folder("Personal")
    fake.add_note("Sketch", folder_id="f1", content=[1, 2, 3])
    fake.add_note("Plan", folder_id="f2", note_type="Markdown", content=list(b"# plan"))
    fake.add_note("Loose")
    return fake


@pytest.fixture
def store():
    return TreeStore()


@pytest.fixture
def invites():
    return InviteStore()


@pytest.fixture
def reconciler(store, seeded_remote):
    return ReconciliationEngine(store, seeded_remote)


@pytest.fixture
def engine(seeded_remote, store, invites, reconciler):
    """A mutation engine wired to the seeded fake remote (store not yet loaded)."""
    return MutationEngine(seeded_remote, store, invites, reconciler)


@pytest.fixture
async def loaded_engine(engine, anyio_backend):
    """The seeded engine after the initial structure fetch."""
    await engine.refresh_structure()
    return engine
