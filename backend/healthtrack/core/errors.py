"""Domain error taxonomy shared by services and the HTTP layer."""
from __future__ import annotations


class TrackerError(Exception):
    """Base class for errors raised by tracker services."""

    code = "tracker_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TrackerError):
    """Malformed or missing input; no state was changed."""

    code = "validation_error"
    status_code = 422


class NoActiveSessionError(TrackerError):
    code = "no_active_session"
    status_code = 404

    def __init__(self, kind: str) -> None:
        super().__init__(f"No active {kind} session")
        self.kind = kind


class NotFoundError(TrackerError):
    code = "not_found"
    status_code = 404


class InvalidStateError(TrackerError):
    """The requested transition is not allowed from the record's current state."""

    code = "invalid_state"
    status_code = 409


class AlreadyActiveError(TrackerError):
    code = "already_active"
    status_code = 409

    def __init__(self, kind: str, session_id: int) -> None:
        super().__init__(f"A {kind} session is already active (id={session_id})")
        self.kind = kind
        self.session_id = session_id


class GenerationError(TrackerError):
    """The external text-generation call failed or returned unusable data."""

    code = "generation_error"
    status_code = 502


class StorageError(TrackerError):
    code = "storage_error"
    status_code = 500
