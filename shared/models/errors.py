"""Error taxonomy shared by clients, services and the API server."""


class BridgeError(Exception):
    """Base class for all errors raised deliberately by the bridge."""


class InputError(BridgeError):
    """The caller referenced something that does not exist (e.g. the selected page).

    Fatal to the current operation and never retried.
    """


class ServiceError(BridgeError):
    """A backend service (document store, embedding, LLM, vector store) failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientServiceError(ServiceError):
    """Network failure, 5xx or retryable 429. Retried with backoff before it surfaces."""


class QuotaError(ServiceError):
    """429 carrying a quota-exhausted error code. Surfaced immediately, never retried."""


class ServiceResponseError(ServiceError):
    """Any other non-2xx response from a backend."""
