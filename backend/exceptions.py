"""Exception classes for the library service."""


class LibraryError(Exception):
    """
    Base exception class for all library errors.
    """
    pass


class ValidationError(LibraryError):
    """
    Raised when a required field is missing or malformed.
    """
    pass


class DuplicateTitleError(ValidationError):
    """
    Raised when a record with the same title already exists.
    """
    pass


class AccessDeniedError(LibraryError):
    """
    Raised when the supplied code matches neither the record's secret code
    nor the override code.
    """
    pass


class RecordNotFoundError(LibraryError):
    """
    Raised when a requested record does not exist.
    """
    pass


class EmptyFolderError(LibraryError):
    """
    Raised when a folder has no member objects to download.
    """
    pass


class FolderSetupError(LibraryError):
    """
    Raised when the folder record cannot be created. Nothing has been
    uploaded when this is raised.
    """
    pass


class ArchiveError(LibraryError):
    """
    Raised when a folder archive cannot be built.
    """
    pass


class LinkExpiredError(LibraryError):
    """
    Raised when a signed retrieval URL is used after its window.
    """
    pass


class InvalidSignatureError(LibraryError):
    """
    Raised when a signed retrieval URL has been tampered with.
    """
    pass
