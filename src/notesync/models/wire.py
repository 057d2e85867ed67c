"""Wire shapes for the remote authority and the single translation boundary.

Requests are tagged unions keyed by operation name with a small positional
payload, e.g. ``{"MoveFolder": ["f1", None]}``. Responses are ``{"Ok": ...}``
or ``{"Err": "message"}``, optionally wrapped in the operation name
(``{"MoveFolder": {"Ok": {...}}}``). Records use server-side snake_case names
(``parent_id``, ``folder_id``, ``note_type``, ``is_public``) and carry content
as a list of byte values.

Nothing shaped like a wire record is allowed past the ``*_from_wire``
functions in this module.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from notesync.exceptions import ErrorCode, ProtocolError, RemoteError
from notesync.models.schema import Folder, Invite, Note, NoteKind, PublicNote

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    """Operation names understood by the remote authority."""

    GET_STRUCTURE = "GetStructure"
    CREATE_FOLDER = "CreateFolder"
    RENAME_FOLDER = "RenameFolder"
    MOVE_FOLDER = "MoveFolder"
    DELETE_FOLDER = "DeleteFolder"
    CREATE_NOTE = "CreateNote"
    RENAME_NOTE = "RenameNote"
    MOVE_NOTE = "MoveNote"
    DELETE_NOTE = "DeleteNote"
    GET_NOTE = "GetNote"
    UPDATE_NOTE_CONTENT = "UpdateNoteContent"
    SET_NOTE_PUBLIC = "SetNotePublic"
    INVITE_COLLABORATOR = "InviteCollaborator"
    REMOVE_COLLABORATOR = "RemoveCollaborator"
    GET_INVITES = "GetInvites"
    ACCEPT_INVITE = "AcceptInvite"
    REJECT_INVITE = "RejectInvite"
    EXPORT_ALL = "ExportAll"
    IMPORT_ALL = "ImportAll"


# Wire names for note kinds
_KIND_TO_WIRE = {
    NoteKind.DRAWING: "Tldraw",
    NoteKind.MARKDOWN: "Markdown",
}
_WIRE_TO_KIND = {v: k for k, v in _KIND_TO_WIRE.items()}

Request = Union[str, Dict[str, Any]]


def kind_to_wire(kind: NoteKind) -> str:
    return _KIND_TO_WIRE[kind]


def kind_from_wire(value: Optional[str]) -> NoteKind:
    """Translate a wire note type. A missing type means a drawing."""
    if not value:
        return NoteKind.DRAWING
    try:
        return _WIRE_TO_KIND[value]
    except KeyError:
        raise ProtocolError(
            f"Unknown note type '{value}'", payload=value
        ) from None


def bytes_to_wire(data: bytes) -> List[int]:
    return list(data)


def bytes_from_wire(value: Any, operation: Optional[str] = None) -> bytes:
    """Decode a list of byte values (or raw bytes) into ``bytes``."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, list):
        raise ProtocolError(
            "Expected a list of byte values", operation=operation, payload=value
        )
    try:
        return bytes(value)
    except (TypeError, ValueError) as e:
        raise ProtocolError(
            f"Invalid byte sequence: {e}", operation=operation, payload=value[:10]
        ) from e


def _arg_to_wire(arg: Any) -> Any:
    if isinstance(arg, (bytes, bytearray)):
        return bytes_to_wire(bytes(arg))
    if isinstance(arg, NoteKind):
        return kind_to_wire(arg)
    return arg


def encode_request(operation: Operation, *args: Any) -> Request:
    """Build the tagged request body for an operation.

    Zero arguments encode as the bare operation name, one argument as the
    bare value, and several arguments as a positional list.

    Examples:
        >>> encode_request(Operation.GET_STRUCTURE)
        'GetStructure'
        >>> encode_request(Operation.DELETE_NOTE, "n1")
        {'DeleteNote': 'n1'}
        >>> encode_request(Operation.MOVE_FOLDER, "f1", None)
        {'MoveFolder': ['f1', None]}
    """
    if not args:
        return operation.value
    if len(args) == 1:
        return {operation.value: _arg_to_wire(args[0])}
    return {operation.value: [_arg_to_wire(a) for a in args]}


def unwrap_result(operation: Operation, body: Any) -> Any:
    """Return the ``Ok`` payload of a response or raise for ``Err``.

    Raises:
        RemoteError: The response is an error variant
        ProtocolError: The response is neither variant
    """
    if isinstance(body, dict) and len(body) == 1 and operation.value in body:
        body = body[operation.value]

    if isinstance(body, dict) and len(body) == 1:
        if "Ok" in body:
            return body["Ok"]
        if "Err" in body:
            message = body["Err"]
            raise RemoteError(
                operation.value,
                message if isinstance(message, str) else str(message),
            )

    raise ProtocolError(
        "Response is neither an Ok nor an Err variant",
        operation=operation.value,
        payload=body,
    )


class WireFolder(BaseModel):
    """Folder as sent by the remote authority."""

    id: str
    name: str
    parent_id: Optional[str] = None

    model_config = {"extra": "ignore"}


class WireNote(BaseModel):
    """Note as sent by the remote authority."""

    id: str
    name: str
    folder_id: Optional[str] = None
    note_type: Optional[str] = None
    content: List[int] = Field(default_factory=list)
    is_public: bool = False
    collaborators: List[str] = Field(default_factory=list)

    model_config = {"extra": "ignore"}

    @field_validator("content", mode="before")
    @classmethod
    def accept_null_content(cls, v: Any) -> Any:
        return [] if v is None else v


class WireInvite(BaseModel):
    """Pending invite as sent by the remote authority."""

    note_id: str
    inviter_node_id: str
    note_name: str = ""

    model_config = {"extra": "ignore"}


def _parse(model: type, raw: Any, operation: Optional[str]) -> Any:
    if not isinstance(raw, dict):
        raise ProtocolError(
            f"Expected a {model.__name__} object", operation=operation, payload=raw
        )
    try:
        return model.model_validate(raw)
    except PydanticValidationError as e:
        raise ProtocolError(
            f"Malformed {model.__name__}: {e.error_count()} validation error(s)",
            operation=operation,
            payload=raw,
        ) from e


def _build(model: type, raw: Any, operation: Optional[str], **fields: Any) -> Any:
    try:
        return model(**fields)
    except PydanticValidationError as e:
        raise ProtocolError(
            f"Invalid {model.__name__}: {e.errors()[0]['msg']}",
            operation=operation,
            payload=raw,
        ) from e


def folder_from_wire(raw: Any, operation: Optional[str] = None) -> Folder:
    """Translate a wire folder into the internal ``Folder``."""
    wire = _parse(WireFolder, raw, operation)
    return _build(
        Folder, raw, operation, id=wire.id, name=wire.name, parent_id=wire.parent_id or None
    )


def note_from_wire(raw: Any, operation: Optional[str] = None) -> Note:
    """Translate a wire note into the internal ``Note``."""
    wire = _parse(WireNote, raw, operation)
    return _build(
        Note,
        raw,
        operation,
        id=wire.id,
        name=wire.name,
        folder_id=wire.folder_id or None,
        kind=kind_from_wire(wire.note_type),
        content=bytes_from_wire(wire.content, operation),
        is_public=wire.is_public,
        collaborators=frozenset(wire.collaborators),
    )


def invite_from_wire(raw: Any, operation: Optional[str] = None) -> Invite:
    """Translate a wire invite into the internal ``Invite``."""
    wire = _parse(WireInvite, raw, operation)
    return _build(
        Invite,
        raw,
        operation,
        note_id=wire.note_id,
        inviter_id=wire.inviter_node_id,
        note_name=wire.note_name,
    )


def public_note_from_wire(raw: Any) -> PublicNote:
    """Translate a public-path note; folder context is dropped."""
    note = note_from_wire(raw, "PublicNote")
    return _build(
        PublicNote,
        raw,
        "PublicNote",
        id=note.id,
        name=note.name,
        kind=note.kind,
        content=note.content,
        is_public=note.is_public,
        collaborators=note.collaborators,
    )


def split_structure(payload: Any, operation: str = Operation.GET_STRUCTURE.value) -> Tuple[list, list]:
    """Split a ``GetStructure`` Ok payload into raw folder and note lists."""
    if (
        isinstance(payload, (list, tuple))
        and len(payload) == 2
        and isinstance(payload[0], list)
        and isinstance(payload[1], list)
    ):
        return payload[0], payload[1]
    raise ProtocolError(
        "Structure payload must be a [folders, notes] pair",
        operation=operation,
        code=ErrorCode.PROTOCOL_UNEXPECTED_SHAPE,
        payload=payload,
    )


def structure_from_push(message: Any) -> Optional[Tuple[list, list]]:
    """Extract raw folder and note lists from a push-channel message.

    Returns None when the message does not carry a full structure, or carries
    an error variant (logged).
    """
    if not isinstance(message, dict) or Operation.GET_STRUCTURE.value not in message:
        return None
    try:
        payload = unwrap_result(Operation.GET_STRUCTURE, message)
    except RemoteError as e:
        logger.warning(f"Push channel delivered a structure error: {e.message}")
        return None
    return split_structure(payload)
