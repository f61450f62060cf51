# shelfsync/clients/errors.py

"""Failure taxonomy for remote catalog requests.

Every error is transient and retryable by user action; the message is
suitable for showing to the user as-is.
"""


class CatalogClientError(Exception):
    """Base class for all remote catalog failures."""


class NetworkError(CatalogClientError):
    """The request never produced an HTTP response."""


class RequestTimeoutError(CatalogClientError):
    """The request was cancelled after exceeding its timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__("Request timeout. Please try again.")
        self.timeout = timeout


class HttpError(CatalogClientError):
    """The server answered with a status outside 200-299."""

    def __init__(self, status: int) -> None:
        super().__init__(f"HTTP error! status: {status}")
        self.status = status


class DecodeError(CatalogClientError):
    """The response body could not be decoded into the expected shape."""
