"""Custom exception classes for the application."""

from typing import Optional


class PriceWatchException(Exception):
    """Base exception for all PriceWatch errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class ConfigurationError(PriceWatchException):
    """Raised when the runtime configuration is unusable."""


class NotFoundError(PriceWatchException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class FetchError(PriceWatchException):
    """Raised when a product page cannot be downloaded.

    ``kind`` is one of ``network``, ``timeout`` or ``http_status``.
    """

    NETWORK = "network"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"

    def __init__(
        self,
        url: str,
        kind: str,
        status_code: Optional[int] = None,
        message: Optional[str] = None,
    ):
        self.url = url
        self.kind = kind
        self.status_code = status_code
        detail = message or (f"HTTP {status_code}" if status_code else kind)
        super().__init__(f"Fetch failed for {url}: {detail}")

    @property
    def retryable(self) -> bool:
        """Network and timeout failures are transient, as are 408/429/5xx."""
        if self.kind in (self.NETWORK, self.TIMEOUT):
            return True
        if self.status_code is None:
            return False
        return self.status_code in (408, 429) or self.status_code >= 500

    @classmethod
    def network(cls, url: str, message: Optional[str] = None) -> "FetchError":
        return cls(url, cls.NETWORK, message=message)

    @classmethod
    def timeout(cls, url: str, message: Optional[str] = None) -> "FetchError":
        return cls(url, cls.TIMEOUT, message=message)

    @classmethod
    def http_status(cls, url: str, status_code: int) -> "FetchError":
        return cls(url, cls.HTTP_STATUS, status_code=status_code)


class ExtractionError(PriceWatchException):
    """Raised when a fetched page does not have the expected structure."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"Extraction failed for {url}: {message}")


class StorageError(PriceWatchException):
    """Raised when the storage backend fails an operation."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"Storage error during {operation}: {message}")


class UpdateConflictError(StorageError):
    """Raised when a conditional write finds the row changed since it was read."""

    def __init__(self, operation: str, identifier: str):
        self.identifier = identifier
        super().__init__(operation, f"{identifier} was modified concurrently")


class DispatchError(PriceWatchException):
    """Raised when a notification channel fails to deliver."""

    def __init__(self, channel: str, message: str):
        self.channel = channel
        super().__init__(f"Notification via {channel} failed: {message}")
