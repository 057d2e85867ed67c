"""Configuration module for the NoteSync client."""

import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from notesync import __version__

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config: survives reinstalls, lives alongside the logs
_USER_ENV = Path.home() / ".notesync" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class NoteSyncConfig(BaseModel):
    """Configuration for the NoteSync client."""

    # Remote authority location
    server_url: str = Field(
        default_factory=lambda: os.getenv("NOTESYNC_SERVER_URL", "http://localhost:8080")
    )
    api_path: str = Field(default_factory=lambda: os.getenv("NOTESYNC_API_PATH", "/api"))
    public_path: str = Field(
        default_factory=lambda: os.getenv("NOTESYNC_PUBLIC_PATH", "/public")
    )
    # Push channel. When unset the URL is derived from server_url (http -> ws).
    push_url: Optional[str] = Field(
        default_factory=lambda: os.getenv("NOTESYNC_PUSH_URL") or None
    )
    push_enabled: bool = Field(
        default_factory=lambda: _env_flag("NOTESYNC_PUSH_ENABLED", "true")
    )
    # Timeouts are a transport concern; the engine never times out on its own
    request_timeout: float = Field(
        default_factory=lambda: float(os.getenv("NOTESYNC_REQUEST_TIMEOUT", "30.0"))
    )
    push_reconnect_delay: float = Field(
        default_factory=lambda: float(
            os.getenv("NOTESYNC_PUSH_RECONNECT_DELAY", "2.0")
        )
    )
    # Logging
    log_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTESYNC_LOG_DIR", str(Path.home() / ".notesync" / "logs"))
        )
    )
    client_version: str = Field(default=__version__)

    @model_validator(mode="after")
    def _validate_connection_config(self) -> "NoteSyncConfig":
        """Validate URLs and timing settings."""
        if not self.server_url.startswith(("http://", "https://")):
            raise ValueError("server_url must start with http:// or https://")
        if self.push_url and not self.push_url.startswith(("ws://", "wss://")):
            raise ValueError("push_url must start with ws:// or wss://")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")
        if self.push_reconnect_delay <= 0:
            raise ValueError("push_reconnect_delay must be > 0")
        if self.request_timeout > 300:
            logger.warning(
                "request_timeout=%.1fs is unusually long; a stalled request "
                "keeps its operation pending for that whole window.",
                self.request_timeout,
            )
        return self

    def _join(self, path: str) -> str:
        return self.server_url.rstrip("/") + "/" + path.lstrip("/")

    def get_api_url(self) -> str:
        """Get the URL that accepts tagged request bodies."""
        return self._join(self.api_path)

    def get_public_url(self, note_id: str) -> str:
        """Get the unauthenticated read URL for a single note."""
        return self._join(self.public_path).rstrip("/") + "/" + quote(note_id, safe="")

    def get_push_url(self) -> str:
        """Get the push channel URL.

        Falls back to the server URL with its scheme swapped to ws/wss.
        """
        if self.push_url:
            return self.push_url
        if self.server_url.startswith("https://"):
            return "wss://" + self.server_url[len("https://"):]
        return "ws://" + self.server_url[len("http://"):]


# Create a global config instance
config = NoteSyncConfig()
