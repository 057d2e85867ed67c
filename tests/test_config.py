"""Tests for NoteSyncConfig."""
import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from notesync.config import NoteSyncConfig


class TestDefaults:
    """Environment-driven defaults."""

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NOTESYNC_SERVER_URL", "https://notes.example.com")
        monkeypatch.setenv("NOTESYNC_REQUEST_TIMEOUT", "5")
        monkeypatch.setenv("NOTESYNC_PUSH_ENABLED", "no")
        monkeypatch.setenv("NOTESYNC_LOG_DIR", str(tmp_path))

        cfg = NoteSyncConfig()
        assert cfg.server_url == "https://notes.example.com"
        assert cfg.request_timeout == 5.0
        assert cfg.push_enabled is False
        assert cfg.log_dir == Path(tmp_path)

    def test_push_enabled_flag_values(self, monkeypatch):
        for value in ("true", "1", "YES"):
            monkeypatch.setenv("NOTESYNC_PUSH_ENABLED", value)
            assert NoteSyncConfig().push_enabled is True


class TestUrls:
    """URL helpers."""

    def test_api_url(self):
        cfg = NoteSyncConfig(server_url="http://host:8080/app/", api_path="/api")
        assert cfg.get_api_url() == "http://host:8080/app/api"

    def test_public_url_quotes_id(self):
        cfg = NoteSyncConfig(server_url="http://host", public_path="public/")
        assert cfg.get_public_url("a/b") == "http://host/public/a%2Fb"

    def test_push_url_derived_from_server(self):
        assert NoteSyncConfig(server_url="http://host:8080", push_url=None).get_push_url() == "ws://host:8080"
        assert NoteSyncConfig(server_url="https://host", push_url=None).get_push_url() == "wss://host"

    def test_explicit_push_url(self):
        cfg = NoteSyncConfig(server_url="http://host", push_url="ws://other/updates")
        assert cfg.get_push_url() == "ws://other/updates"


class TestValidation:
    """Rejected settings."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"server_url": "ftp://host"},
            {"push_url": "http://host/ws"},
            {"request_timeout": 0},
            {"push_reconnect_delay": -1},
        ],
    )
    def test_invalid_settings(self, overrides):
        with pytest.raises(ValidationError):
            NoteSyncConfig(**overrides)

    def test_long_timeout_warns(self, caplog):
        caplog.set_level(logging.WARNING, logger="notesync")
        cfg = NoteSyncConfig(server_url="http://host", request_timeout=600)
        assert cfg.request_timeout == 600
        assert "unusually long" in caplog.text
