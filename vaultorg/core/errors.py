"""
vaultorg Foundation: Error Types.

Typed errors for file relocation, each carrying an ErrorCode and a
user-facing message suitable for a notice.
"""
import errno
from enum import Enum
from typing import Optional

from vaultorg.core.constants import ErrorCode


class PathErrorReason(Enum):
    """Why a path was rejected."""

    EMPTY = "empty"
    ABSOLUTE = "absolute"
    TRAVERSAL = "traversal"
    INVALID_CHARACTERS = "invalid-characters"
    TOO_LONG = "too-long"
    RESERVED_NAME = "reserved-name"


_REASON_MESSAGES = {
    PathErrorReason.EMPTY: "Path cannot be empty",
    PathErrorReason.ABSOLUTE: "Absolute paths are not allowed",
    PathErrorReason.TRAVERSAL: "Path traversal (../) is not allowed",
    PathErrorReason.INVALID_CHARACTERS: "Path contains invalid characters",
    PathErrorReason.TOO_LONG: "Path is too long",
    PathErrorReason.RESERVED_NAME: "Path uses a reserved system name",
}


def _friendly(operation: str) -> str:
    return operation.replace("-", " ")


class VaultOrganizerError(Exception):
    """Base class for all vaultorg relocation errors."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INTERNAL_ERROR):
        """Initialize VaultOrganizerError.

        Args:
            message: Technical error message
            error_code: Associated error code
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code

    def user_message(self) -> str:
        """Return a message suitable for a user-visible notice."""
        return self.message


class InvalidPathError(VaultOrganizerError):
    """A path is invalid or not portable across filesystems."""

    def __init__(self, path: str, reason: PathErrorReason, details: Optional[str] = None):
        """Initialize InvalidPathError.

        Args:
            path: The offending path, as given
            reason: Rejection reason
            details: Optional human-readable detail
        """
        suffix = f" - {details}" if details else ""
        super().__init__(f'Invalid path "{path}": {reason.value}{suffix}', ErrorCode.INVALID_INPUT)
        self.path = path
        self.reason = reason
        self.details = details

    def user_message(self) -> str:
        extra = f" ({self.details})" if self.details else ""
        return f'Invalid path "{self.path}": {_REASON_MESSAGES[self.reason]}{extra}.'


class FilePermissionError(VaultOrganizerError):
    """A file operation was refused for lack of permission."""

    def __init__(
        self, file_path: str, operation: str, original_error: Optional[BaseException] = None
    ):
        super().__init__(
            f'Permission denied: Cannot {_friendly(operation)} "{file_path}"',
            ErrorCode.PERMISSION_DENIED,
        )
        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error

    def user_message(self) -> str:
        return (
            f'Permission denied: Cannot {_friendly(self.operation)} "{self.file_path}". '
            "Check file permissions and try again."
        )


class FileConflictError(VaultOrganizerError):
    """The destination exists, is locked, or is in use."""

    CONFLICT_TYPES = ("exists", "locked", "in-use")

    _REASONS = {
        "exists": "a file already exists at that location",
        "locked": "the destination file is locked",
        "in-use": "the destination file is currently in use",
    }

    def __init__(
        self,
        source_path: str,
        destination_path: Optional[str],
        conflict_type: str,
        operation: str,
        original_error: Optional[BaseException] = None,
    ):
        if conflict_type not in self.CONFLICT_TYPES:
            raise ValueError(f"Unknown conflict type: {conflict_type}")
        self.source_path = source_path
        self.destination_path = destination_path
        self.conflict_type = conflict_type
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            f"File conflict: {self._base_message()} - file {conflict_type}", ErrorCode.CONFLICT
        )

    def _base_message(self) -> str:
        operation = _friendly(self.operation)
        if self.destination_path:
            return f'Cannot {operation} "{self.source_path}" to "{self.destination_path}"'
        return f'Cannot {operation} "{self.source_path}"'

    def user_message(self) -> str:
        return f"{self._base_message()}: {self._REASONS[self.conflict_type]}."


class FileOperationError(VaultOrganizerError):
    """A file operation failed for an uncategorized reason."""

    def __init__(
        self, file_path: str, operation: str, original_error: Optional[BaseException] = None
    ):
        super().__init__(
            f'File operation failed: {_friendly(operation)} on "{file_path}"',
            ErrorCode.INTERNAL_ERROR,
        )
        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error

    def user_message(self) -> str:
        details = f": {self.original_error}" if str(self.original_error or "") else ""
        return f'Failed to {_friendly(self.operation)} "{self.file_path}"{details}.'


_PERMISSION_ERRNOS = {errno.EACCES, errno.EPERM}
_EXISTS_ERRNOS = {errno.EEXIST, errno.ENOTEMPTY}
_LOCKED_ERRNOS = {errno.EBUSY}
_IN_USE_ERRNOS = {errno.ETXTBSY}


def categorize_error(
    error: BaseException,
    file_path: str,
    operation: str,
    destination_path: Optional[str] = None,
) -> VaultOrganizerError:
    """Map an arbitrary exception onto a vaultorg error type.

    OSError errno values are checked first; otherwise the message text is
    inspected, since collaborators may raise plain exceptions.

    Args:
        error: The exception raised by a collaborator
        file_path: Path of the file being operated on
        operation: Operation name (e.g. "move", "create-folder")
        destination_path: Optional destination of the operation

    Returns:
        A VaultOrganizerError subclass instance
    """
    if isinstance(error, VaultOrganizerError):
        return error

    target = destination_path or file_path
    code = getattr(error, "errno", None)
    message = str(error).lower()

    if code in _PERMISSION_ERRNOS or isinstance(error, PermissionError) or any(
        token in message for token in ("permission", "eacces", "eperm", "access denied")
    ):
        return FilePermissionError(file_path, operation, error)

    if code in _EXISTS_ERRNOS or isinstance(error, FileExistsError) or any(
        token in message for token in ("already exists", "eexist", "file exists")
    ):
        return FileConflictError(file_path, target, "exists", operation, error)

    if code in _LOCKED_ERRNOS or "locked" in message or "ebusy" in message:
        return FileConflictError(file_path, target, "locked", operation, error)

    if code in _IN_USE_ERRNOS or any(
        token in message for token in ("in use", "being used", "etxtbsy")
    ):
        return FileConflictError(file_path, target, "in-use", operation, error)

    if code == errno.ENAMETOOLONG or "path too long" in message or "enametoolong" in message:
        return InvalidPathError(target, PathErrorReason.TOO_LONG)

    if code == errno.EINVAL or any(
        token in message for token in ("invalid path", "invalid character", "einval")
    ):
        return InvalidPathError(target, PathErrorReason.INVALID_CHARACTERS)

    return FileOperationError(file_path, operation, error)
