"""Composition root: one store, one remote, the engines wired around them."""
import asyncio
import logging
from typing import Any, Optional

from notesync.config import NoteSyncConfig
from notesync.config import config as default_config
from notesync.exceptions import NoteSyncError
from notesync.services.mutation_engine import MutationEngine
from notesync.services.public_notes import PublicNoteReader
from notesync.services.reconciliation import ReconciliationEngine
from notesync.storage.invite_store import InviteStore
from notesync.storage.tree_store import TreeStore
from notesync.transport.http import HttpRemote, RemoteAuthority
from notesync.transport.push import PushChannel

logger = logging.getLogger(__name__)


class NoteSyncSession:
    """Everything a client needs, constructed explicitly and shared by injection.

    Attributes:
        store: The tree store views read from.
        invites: Pending invites.
        engine: Mutation engine for user commands.
        reconciler: Reconciliation engine fed by fetches and the push channel.
        public_notes: Reader for the unauthenticated public path.
    """

    def __init__(
        self,
        config: Optional[NoteSyncConfig] = None,
        remote: Optional[RemoteAuthority] = None,
        push_channel: Optional[PushChannel] = None,
    ):
        self.config = config or default_config
        self._owns_remote = remote is None
        self.remote: RemoteAuthority = remote or HttpRemote(self.config)
        self._push_channel = push_channel
        self._follow_task: Optional["asyncio.Task[None]"] = None

        self.store = TreeStore()
        self.invites = InviteStore()
        self.reconciler = ReconciliationEngine(self.store, self.remote)
        self.engine = MutationEngine(self.remote, self.store, self.invites, self.reconciler)
        self.public_notes = PublicNoteReader(self.remote)

    @property
    def push_channel(self) -> PushChannel:
        if self._push_channel is None:
            self._push_channel = PushChannel(
                self.config.get_push_url(),
                reconnect_delay=self.config.push_reconnect_delay,
            )
        return self._push_channel

    @property
    def following(self) -> bool:
        return self._follow_task is not None and not self._follow_task.done()

    async def start(self, follow_push: Optional[bool] = None) -> None:
        """Load the initial structure and, if enabled, start following pushes.

        Args:
            follow_push: Override ``config.push_enabled``.
        """
        await self.engine.refresh_structure()
        if follow_push is None:
            follow_push = self.config.push_enabled
        if follow_push and not self.following:
            channel = self.push_channel
            logger.info(f"Following push channel at {channel.url}")
            self._follow_task = asyncio.create_task(self.reconciler.follow(channel))

    async def wait(self) -> None:
        """Block until the push follower stops (or return at once if none runs)."""
        if self._follow_task is not None:
            await self._follow_task

    async def close(self) -> None:
        if self._follow_task is not None:
            if self._push_channel is not None:
                self._push_channel.close()
            self._follow_task.cancel()
            try:
                await self._follow_task
            except asyncio.CancelledError:
                pass
            except NoteSyncError as e:
                logger.warning(f"Push follower stopped with an error: {e}")
            self._follow_task = None
        if self._owns_remote:
            await self.remote.aclose()

    async def __aenter__(self) -> "NoteSyncSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
