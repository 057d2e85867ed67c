"""Request/response transport to the remote authority over HTTP."""
import logging
from typing import Any, Optional, Protocol

import httpx

from notesync.config import NoteSyncConfig
from notesync.exceptions import (
    ErrorCode,
    ProtocolError,
    PublicNoteUnavailableError,
    TransportError,
)
from notesync.models.wire import Request

logger = logging.getLogger(__name__)


def operation_name(body: Request) -> str:
    """Name of the operation a request body encodes, for logs and errors."""
    if isinstance(body, str):
        return body
    return next(iter(body), "?")


class RemoteAuthority(Protocol):
    """What the engines need from the remote authority.

    ``send`` posts one tagged request and returns the decoded JSON body;
    ``fetch_public`` reads a note through the unauthenticated path.
    Implementations raise ``TransportError`` for network failures and
    non-success statuses and ``ProtocolError`` for undecodable bodies.
    """

    async def send(self, body: Request) -> Any: ...

    async def fetch_public(self, note_id: str) -> Any: ...

    async def aclose(self) -> None: ...


class HttpRemote:
    """``RemoteAuthority`` backed by an ``httpx.AsyncClient``.

    Every tagged request is POSTed as JSON to the API URL. Timeouts come
    from ``config.request_timeout``; nothing is retried here.
    """

    def __init__(
        self,
        config: NoteSyncConfig,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the transport.

        Args:
            config: Client configuration (URLs and timeout).
            client: Pre-built client, e.g. one using ``httpx.MockTransport``.
                A client passed in is not closed by ``aclose``.
        """
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.request_timeout)
        self._headers = {"User-Agent": f"notesync/{config.client_version}"}

    async def send(self, body: Request) -> Any:
        operation = operation_name(body)
        url = self._config.get_api_url()
        try:
            response = await self._client.post(url, json=body, headers=self._headers)
        except httpx.HTTPError as e:
            raise TransportError(
                f"{operation} request failed: {e.__class__.__name__}",
                operation=operation,
                original_error=e,
            ) from e

        if not response.is_success:
            raise TransportError(
                f"{operation} request failed with HTTP {response.status_code}",
                operation=operation,
                status_code=response.status_code,
                code=ErrorCode.HTTP_STATUS,
            )
        return self._decode(response, operation)

    async def fetch_public(self, note_id: str) -> Any:
        url = self._config.get_public_url(note_id)
        try:
            response = await self._client.get(url, headers=self._headers)
        except httpx.HTTPError as e:
            raise TransportError(
                f"Public read of '{note_id}' failed: {e.__class__.__name__}",
                operation="PublicNote",
                original_error=e,
            ) from e

        if response.status_code == httpx.codes.NOT_FOUND:
            message = None
            try:
                body = response.json()
                if isinstance(body, dict) and isinstance(body.get("Err"), str):
                    message = body["Err"]
            except ValueError:
                pass
            raise PublicNoteUnavailableError(note_id, message)
        if not response.is_success:
            raise TransportError(
                f"Public read of '{note_id}' failed with HTTP {response.status_code}",
                operation="PublicNote",
                status_code=response.status_code,
                code=ErrorCode.HTTP_STATUS,
            )
        return self._decode(response, "PublicNote")

    @staticmethod
    def _decode(response: httpx.Response, operation: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(
                "Response body is not valid JSON",
                operation=operation,
                code=ErrorCode.PROTOCOL_INVALID_JSON,
                payload=response.text[:100],
            ) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpRemote":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
