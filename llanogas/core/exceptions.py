"""Domain errors raised by services and rendered by the API layer."""

from typing import Iterable


class LlanogasError(Exception):
    """Base class; ``status_code`` is the HTTP status the API renders."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidStateError(LlanogasError):
    """Case state precondition not met."""

    status_code = 400

    def __init__(
        self,
        message: str,
        current_state: str | None = None,
        required_states: Iterable[str] = (),
    ):
        super().__init__(message)
        self.current_state = current_state
        self.required_states = list(required_states)


class NotFoundError(LlanogasError):
    """Case, reviewer, email or other record not found."""

    status_code = 404


class ValidationError(LlanogasError):
    """Missing or invalid input fields."""

    status_code = 422


class TransientExternalError(LlanogasError):
    """Mailbox provider or OAuth failure; the next attempt may succeed."""

    status_code = 503

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.provider_status = status_code


class InternalError(LlanogasError):
    """Unexpected persistence or runtime failure."""

    status_code = 500


class ConflictError(LlanogasError):
    """Unique value already in use (e.g. a user email)."""

    status_code = 409
