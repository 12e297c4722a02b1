"""
Error taxonomy for the delivery subsystem.

Only ValidationError is raised to the immediate caller of submit_batch.
Everything else is absorbed into delivery record / job state.
"""


class RelayGateError(Exception):
    """Base class for all RelayGate errors."""


class ValidationError(RelayGateError):
    """Malformed batch or job input. Rejected before anything is enqueued."""

    def __init__(self, message: str, details: list[dict] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> dict:
        return {
            "error": "Validation Error",
            "message": self.message,
            "details": self.details,
        }


class ProviderError(RelayGateError):
    """The messaging provider rejected or could not perform a send."""


class CallbackDeliveryError(RelayGateError):
    """A callback POST did not return a 2xx response."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_text: str | None = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text


class StoreUnavailable(RelayGateError):
    """The record store cannot be reached."""


class StateTransitionError(RelayGateError):
    """A transition was requested from a terminal or unexpected state."""
