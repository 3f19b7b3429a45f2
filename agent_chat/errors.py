"""Error taxonomy for the agent chat client.

Transport and protocol failures share ``AgentServiceError`` so callers can
treat every failed turn uniformly (message + optional code). Storage failures
live in a separate branch because they are recovered locally.
"""


class AgentServiceError(Exception):
    """Raised when a turn against the remote agent fails.

    Attributes:
        message: Human-readable description of the failure.
        status_code: HTTP status code, when the failure came from a response.
        code: Machine-readable error code (e.g. ``STREAM_TIMEOUT``).
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, code={self.code!r})"


class NetworkError(AgentServiceError):
    """Raised when the agent gateway cannot be reached."""

    def __init__(self, message: str, code: str = "NETWORK_ERROR") -> None:
        super().__init__(message, status_code=0, code=code)


class StreamTimeoutError(AgentServiceError):
    """Raised when no terminal event arrives within the stream budget."""

    def __init__(
        self,
        message: str = "Stream timeout - request took too long",
    ) -> None:
        super().__init__(message, status_code=504, code="STREAM_TIMEOUT")


class ProtocolError(AgentServiceError):
    """Raised for malformed or unexpected events and explicit ``error`` events."""

    pass


class StorageError(Exception):
    """Base class for durable storage failures."""

    pass


class StorageCapacityError(StorageError):
    """Raised by a storage backend when a write exceeds its capacity."""

    pass


class StorageUnavailableError(StorageError):
    """Raised when durable storage is disabled or otherwise unusable."""

    pass
