"""Error taxonomy shared by the storage, media and task layers."""

from __future__ import annotations


class StorageError(Exception):
    """Base class for failures surfaced by the storage service."""


class InvalidInputError(StorageError):
    """Input rejected by validation; user-correctable."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid input: {message}")
        self.message = message


class NotFoundError(StorageError):
    """A lookup by identifier matched nothing."""

    def __init__(self, what: str = "Entity") -> None:
        super().__init__(f"{what} not found")
        self.what = what


class PersistenceFailure(StorageError):
    """Wrapped error from the underlying database layer."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(str(cause))
        self.cause = cause


class MediaError(Exception):
    """Base class for media import and thumbnail failures."""


class UnsupportedFormatError(MediaError):
    def __init__(self, content_type: str = "") -> None:
        detail = f": {content_type}" if content_type else ""
        super().__init__(f"The picked item is not a supported format{detail}")
        self.content_type = content_type


class CopyError(MediaError):
    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"Failed to copy file: {cause}")
        self.cause = cause


class ReadingError(MediaError):
    def __init__(self, cause: BaseException | None = None) -> None:
        msg = "Failed to decode media file"
        if cause is not None:
            msg = f"{msg}: {cause}"
        super().__init__(msg)
        self.cause = cause


class MediaStorageError(MediaError):
    """A storage failure raised while importing or removing media."""

    def __init__(self, error: StorageError) -> None:
        super().__init__(str(error))
        self.error = error


class OperationCancelled(Exception):
    """The owner of an operation cancelled it; never shown to the user."""
