"""
Exceptions for ShareZone core
Everything derives from ShareZoneError so callers have one general error catcher
"""


class ShareZoneError(Exception):
    # general container for errors
    pass


class StorageError(ShareZoneError):
    # raised if the object store or metadata store fails
    pass


class ObjectNotFoundError(StorageError):
    # raised when no object exists at a storage path
    pass


class InvalidPathError(StorageError):
    # raised when a storage path escapes the store root or is empty
    pass


class FileRecordNotFoundError(ShareZoneError):
    # raised when a file id has no metadata record
    pass


class UserNotFoundError(ShareZoneError):
    # raised when the user DNE in the DB
    pass


class UserExistsError(ShareZoneError):
    # raised when creating an existing user
    pass


class AccessDeniedError(ShareZoneError):
    # raised when a caller is neither the owner nor holding a ready share session
    pass


class FileTooLargeError(ShareZoneError):
    # raised when an upload exceeds max_upload_bytes
    pass


class EntropySourceUnavailable(ShareZoneError):
    # platform random source could not be read; never retried
    pass


class DecryptionFailed(ShareZoneError):
    # wrong key, corrupted or truncated envelope
    pass


class RetrievalFailed(ShareZoneError):
    # object store fetch failed; caller may retry manually
    pass


class AccessGateError(ShareZoneError):
    """Terminal or retryable outcome of a share visit.

    These are attached to an :class:`~sharezone.core.access.AccessSession`
    as ``session.error`` rather than raised out of the gate.
    """

    default_message = "Access denied."

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return self.args[0]


class ShareNotFound(AccessGateError):
    default_message = "File not found or the share link is invalid."


class ShareExpired(AccessGateError):
    default_message = "This share link has expired."


class PasswordIncorrect(AccessGateError):
    default_message = "Incorrect password. Please try again."


class PasswordAttemptsExceeded(AccessGateError):
    default_message = "Too many incorrect attempts. Please wait before trying again."

    def __init__(self, retry_after: int, message=None):
        super().__init__(message)
        self.retry_after = retry_after


class ShareLookupFailed(AccessGateError):
    default_message = (
        "An unexpected error occurred while trying to retrieve file details. "
        "Please try again later."
    )
