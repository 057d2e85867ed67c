"""Read-only access to notes through the unauthenticated public path."""
import logging
from typing import Any

from notesync.exceptions import ProtocolError, PublicNoteUnavailableError, ValidationError
from notesync.models.schema import PublicNote
from notesync.models.wire import public_note_from_wire
from notesync.observability import traced
from notesync.transport.http import RemoteAuthority

logger = logging.getLogger(__name__)


class PublicNoteReader:
    """Fetches single public notes. Never touches the tree store."""

    def __init__(self, remote: RemoteAuthority):
        self._remote = remote

    @traced("fetch_public_note")
    async def fetch(self, note_id: str) -> PublicNote:
        """Fetch a public note by id.

        Raises:
            PublicNoteUnavailableError: The note does not exist or is not public
            TransportError: The request failed
            ProtocolError: The body is not a note
        """
        if not note_id or not note_id.strip():
            raise ValidationError("Note ID cannot be empty", field="note_id")

        body = await self._remote.fetch_public(note_id)
        raw = self._unwrap(note_id, body)
        note = public_note_from_wire(raw)
        if not note.is_public:
            logger.warning(f"Public path served non-public note '{note_id}'; refusing it")
            raise PublicNoteUnavailableError(note_id)
        return note

    @staticmethod
    def _unwrap(note_id: str, body: Any) -> Any:
        if isinstance(body, dict) and len(body) == 1:
            if "Ok" in body:
                return body["Ok"]
            if "Err" in body:
                message = body["Err"]
                raise PublicNoteUnavailableError(
                    note_id, message if isinstance(message, str) else None
                )
        if isinstance(body, dict) and "id" in body:
            return body
        raise ProtocolError(
            "Public note response is neither a note nor a result variant",
            operation="PublicNote",
            payload=body,
        )
