"""Custom exceptions for the NoteSync client.

Provides a structured exception hierarchy with error codes and
machine-readable error information. Three failure families exist:
errors rejected locally before anything is sent, transport failures,
and application-level rejections returned by the remote authority.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Folder errors (1xxx)
    FOLDER_NOT_FOUND = 1001
    FOLDER_MOVE_CYCLE = 1002

    # Note errors (2xxx)
    NOTE_NOT_FOUND = 2001
    PUBLIC_NOTE_UNAVAILABLE = 2002

    # Invite / collaboration errors (3xxx)
    INVITE_NOT_FOUND = 3001
    COLLABORATOR_NOT_FOUND = 3002

    # Transport errors (4xxx)
    TRANSPORT_FAILED = 4001
    HTTP_STATUS = 4002
    PUSH_CHANNEL_FAILED = 4003

    # Protocol errors (5xxx)
    PROTOCOL_INVALID_JSON = 5001
    PROTOCOL_UNEXPECTED_SHAPE = 5002
    REMOTE_REJECTED = 5003

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001


class NoteSyncError(Exception):
    """Base exception for all NoteSync errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    @property
    def sent(self) -> bool:
        """Whether the failed operation reached the network."""
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class LocalRejectionError(NoteSyncError):
    """Base for invariant violations detected before contacting the server."""

    @property
    def sent(self) -> bool:
        return False


class FolderNotFoundError(LocalRejectionError):
    """Raised when a folder id is not in the current snapshot."""

    def __init__(self, folder_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Folder with ID '{folder_id}' not found",
            code=ErrorCode.FOLDER_NOT_FOUND,
            details={"folder_id": folder_id},
        )
        self.folder_id = folder_id


class NoteNotFoundError(LocalRejectionError):
    """Raised when a note id is not in the current snapshot."""

    def __init__(self, note_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Note with ID '{note_id}' not found",
            code=ErrorCode.NOTE_NOT_FOUND,
            details={"note_id": note_id},
        )
        self.note_id = note_id


class InvalidMoveError(LocalRejectionError):
    """Raised when a folder move would create a cycle."""

    def __init__(self, folder_id: str, target_parent_id: str):
        super().__init__(
            "Cannot move a folder into itself or a descendant",
            code=ErrorCode.FOLDER_MOVE_CYCLE,
            details={"folder_id": folder_id, "target_parent_id": target_parent_id},
        )
        self.folder_id = folder_id
        self.target_parent_id = target_parent_id


class InviteNotFoundError(LocalRejectionError):
    """Raised when no pending invite matches a note and inviter."""

    def __init__(self, note_id: str, inviter_id: str):
        super().__init__(
            f"No pending invite for note '{note_id}' from '{inviter_id}'",
            code=ErrorCode.INVITE_NOT_FOUND,
            details={"note_id": note_id, "inviter_id": inviter_id},
        )
        self.note_id = note_id
        self.inviter_id = inviter_id


class CollaboratorNotFoundError(LocalRejectionError):
    """Raised when removing a node that is not a collaborator of the note."""

    def __init__(self, note_id: str, node_id: str):
        super().__init__(
            f"'{node_id}' is not a collaborator on note '{note_id}'",
            code=ErrorCode.COLLABORATOR_NOT_FOUND,
            details={"note_id": note_id, "node_id": node_id},
        )
        self.note_id = note_id
        self.node_id = node_id


class TransportError(NoteSyncError):
    """Raised when a call fails at the transport level.

    Covers unreachable servers, timeouts and non-success HTTP statuses.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
        code: ErrorCode = ErrorCode.TRANSPORT_FAILED,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {}
        if operation:
            details["operation"] = operation
        if status_code is not None:
            details["status_code"] = status_code
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.status_code = status_code
        self.original_error = original_error


class ProtocolError(NoteSyncError):
    """Raised when a response is not valid JSON or has an unexpected shape."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.PROTOCOL_UNEXPECTED_SHAPE,
        payload: Optional[Any] = None,
    ):
        details: Dict[str, Any] = {}
        if operation:
            details["operation"] = operation
        if payload is not None:
            details["payload"] = str(payload)[:100]  # Truncate for safety

        super().__init__(message, code=code, details=details)
        self.operation = operation


class RemoteError(NoteSyncError):
    """Raised when the remote authority answers with an error variant."""

    def __init__(self, operation: str, message: str):
        super().__init__(
            message,
            code=ErrorCode.REMOTE_REJECTED,
            details={"operation": operation},
        )
        self.operation = operation


class PublicNoteUnavailableError(NoteSyncError):
    """Raised when a note cannot be read through the public path."""

    def __init__(self, note_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Note '{note_id}' is not publicly accessible",
            code=ErrorCode.PUBLIC_NOTE_UNAVAILABLE,
            details={"note_id": note_id},
        )
        self.note_id = note_id


class ConfigurationError(NoteSyncError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key


class ValidationError(LocalRejectionError):
    """Raised when command arguments are invalid before anything is sent."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value
