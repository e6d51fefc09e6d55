from __future__ import annotations


class SessionStoreError(Exception):
    """Base class for every failure raised by the session stores and engine."""

    retryable = False


class NetworkError(SessionStoreError):
    """Transient transport failure. The whole operation may be retried."""

    retryable = True


class AuthError(SessionStoreError):
    """Credentials were rejected. Terminal until the user signs in again.

    When raised out of a migration pass, ``migrated`` holds how many sessions
    were moved before the rejection.
    """

    migrated = 0


class CorruptionError(SessionStoreError):
    """Local device data could not be parsed."""


class ConflictError(SessionStoreError):
    def __init__(self, session_id: str, message: str | None = None):
        super().__init__(message or f"Session already exists: {session_id}")
        self.session_id = session_id


class NotFoundError(SessionStoreError):
    def __init__(self, session_id: str, message: str | None = None):
        super().__init__(message or f"Session does not exist: {session_id}")
        self.session_id = session_id


class NoValidRecordsError(SessionStoreError):
    """An import document contained zero usable session records."""

    def __init__(self, message: str = "No valid chat sessions found in document", *, total: int = 0):
        super().__init__(message)
        self.total = total


class InvalidDocumentError(NoValidRecordsError):
    """The import document itself is unreadable (bad JSON, no sessions array)."""


class RemoteStoreError(SessionStoreError):
    """Remote store rejected a request for a reason outside the typed cases."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
