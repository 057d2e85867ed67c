"""Tests for the session composition root and the command line."""
import asyncio
import gzip
import json

import pytest

from notesync import main as cli
from notesync.config import NoteSyncConfig
from notesync.services.reconciliation import ReconciliationEngine
from notesync.session import NoteSyncSession
from notesync.storage.hierarchy import build_tree
from notesync.storage.tree_store import TreeStore
from tests.fakes import FakePushChannel


@pytest.fixture
def session_config(tmp_path):
    return NoteSyncConfig(server_url="http://notes.test", push_enabled=False, log_dir=tmp_path)


class TestSession:
    """Wiring and lifecycle."""

    @pytest.mark.anyio
    async def test_components_share_one_store(self, session_config, seeded_remote):
        session = NoteSyncSession(session_config, remote=seeded_remote)
        assert session.engine.store is session.store
        assert session.engine.invites is session.invites
        await session.start()
        assert len(session.store) == 6
        assert not session.following
        await session.close()
        # A remote passed in is owned by the caller
        assert not seeded_remote.closed

    @pytest.mark.anyio
    async def test_start_follows_push_channel(self, session_config, seeded_remote):
        seeded_remote.add_folder("Pushed")
        channel = FakePushChannel([seeded_remote.structure_message()])
        del seeded_remote.folders["f4"]

        async with NoteSyncSession(session_config, remote=seeded_remote, push_channel=channel) as session:
            await session.start(follow_push=True)
            await session.wait()
            assert session.store.get_folder("f4").name == "Pushed"

    @pytest.mark.anyio
    async def test_close_cancels_follower(self, session_config, seeded_remote):
        class EndlessChannel:
            url = "ws://endless"

            def close(self):
                pass

            async def messages(self):
                while True:
                    await asyncio.sleep(3600)
                    yield None

        session = NoteSyncSession(session_config, remote=seeded_remote, push_channel=EndlessChannel())
        await session.start(follow_push=True)
        assert session.following
        await session.close()
        assert not session.following

    def test_default_push_channel_uses_config(self, session_config, seeded_remote):
        session = NoteSyncSession(session_config, remote=seeded_remote)
        assert session.push_channel.url == "ws://notes.test"
        assert session.push_channel.reconnect_delay == session_config.push_reconnect_delay


class TestFormatTree:
    def test_format_tree(self, seeded_remote):
        store = TreeStore()
        ReconciliationEngine(store).handle_push(seeded_remote.structure_message())
        lines = cli.format_tree(build_tree(store.folder_map, store.note_map))
        assert lines == [
            "Work/  [f1]",
            "  Projects/  [f2]",
            "    Plan  (md) [n2]",
            "  Sketch  (draw) [n1]",
            "Personal/  [f3]",
            "Loose  (draw) [n3]",
        ]


class TestCommandLine:
    """The notesync console script, run against the fake server."""

    @pytest.fixture
    def fake_server(self, monkeypatch, seeded_remote, test_config):
        monkeypatch.setattr(test_config, "push_enabled", False)
        original = NoteSyncSession.__init__

        def init(self, config=None, remote=None, push_channel=None):
            original(self, config, remote=seeded_remote, push_channel=push_channel)

        monkeypatch.setattr(NoteSyncSession, "__init__", init)
        monkeypatch.setattr(cli, "configure_logging", lambda *a, **kw: None)
        return seeded_remote

    def run_cli(self, *argv):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(list(argv))
        return exc_info.value.code

    def test_tree(self, fake_server, capsys):
        assert self.run_cli("tree") == 0
        out = capsys.readouterr().out
        assert "Work/  [f1]" in out
        assert "Plan  (md) [n2]" in out

    def test_export_and_import(self, fake_server, tmp_path, capsys):
        archive = tmp_path / "backup.gz"
        assert self.run_cli("export", str(archive)) == 0
        data = json.loads(gzip.decompress(archive.read_bytes()))
        assert set(data["folders"]) == {"f1", "f2", "f3"}

        fake_server.folders.clear()
        assert self.run_cli("import", str(archive)) == 0
        assert set(fake_server.folders) == {"f1", "f2", "f3"}
        assert "6 items" in capsys.readouterr().out

    def test_public(self, fake_server, capsys):
        fake_server.notes["n2"]["is_public"] = True
        assert self.run_cli("public", "n2") == 0
        assert "# plan" in capsys.readouterr().out

    def test_public_error_exit_code(self, fake_server, capsys):
        assert self.run_cli("public", "n1") == 1
        assert "Note is not public" in capsys.readouterr().err

    def test_invites(self, fake_server, capsys):
        fake_server.add_invite("x1", "Shared plan", "alice.os")
        assert self.run_cli("invites") == 0
        assert "Shared plan  from alice.os" in capsys.readouterr().out

    def test_server_url_option(self, fake_server, test_config):
        self.run_cli("--server-url", "http://elsewhere:9000", "tree")
        assert test_config.server_url == "http://elsewhere:9000"
