"""Push channel: server-initiated structure updates over a websocket."""
import asyncio
import json
import logging
from typing import Any, AsyncIterator, Callable, Optional

from websockets.asyncio.client import connect
from websockets.exceptions import InvalidURI, WebSocketException

from notesync.exceptions import ErrorCode, TransportError

logger = logging.getLogger(__name__)


def decode_push_message(raw: Any) -> Optional[Any]:
    """Decode one frame as JSON; undecodable frames are logged and dropped."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Dropping non-UTF-8 push frame")
            return None
    try:
        return json.loads(raw)
    except ValueError as e:
        logger.warning(f"Dropping push frame that is not JSON: {e}")
        return None


class PushChannel:
    """Reconnecting websocket consumer.

    ``messages()`` yields decoded messages until ``close()`` is called or the
    consuming task is cancelled. A dropped connection is re-opened after
    ``reconnect_delay`` seconds; messages sent while disconnected are lost,
    which is harmless because every structure message is a full snapshot.
    """

    def __init__(
        self,
        url: str,
        reconnect_delay: float = 2.0,
        connector: Callable[[str], Any] = connect,
    ):
        self.url = url
        self.reconnect_delay = reconnect_delay
        self._connector = connector
        self._closed = False
        self.connected = False
        self.connection_count = 0

    def close(self) -> None:
        """Stop after the current connection ends."""
        self._closed = True

    async def messages(self) -> AsyncIterator[Any]:
        while not self._closed:
            try:
                async with self._connector(self.url) as websocket:
                    self.connected = True
                    self.connection_count += 1
                    logger.info(f"Push channel connected: {self.url}")
                    async for raw in websocket:
                        message = decode_push_message(raw)
                        if message is not None:
                            yield message
                        if self._closed:
                            return
            except InvalidURI as e:
                raise TransportError(
                    f"Invalid push channel URL '{self.url}'",
                    operation="PushChannel",
                    code=ErrorCode.PUSH_CHANNEL_FAILED,
                    original_error=e,
                ) from e
            except (WebSocketException, OSError) as e:
                logger.warning(f"Push channel error: {e}")
            finally:
                self.connected = False

            if self._closed:
                break
            logger.info(f"Push channel disconnected; retrying in {self.reconnect_delay}s")
            await asyncio.sleep(self.reconnect_delay)
