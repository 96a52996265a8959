"""Custom exceptions for pyatwatcher."""

from __future__ import annotations


class PyAtWatcherException(Exception):
    """Base class for pyatwatcher exceptions."""


class MalformedCatalogError(PyAtWatcherException):
    """Raised when a device catalog payload does not match the expected schema."""


class TransportError(PyAtWatcherException):
    """Base class for errors raised by the mTLS transport."""


class HandshakeError(TransportError):
    """Raised when the TLS handshake or a trust decision fails."""


class TransportConnectionError(TransportError):
    """Raised when the network call itself cannot complete."""


class FetchError(PyAtWatcherException):
    """Base class for errors raised while fetching the device catalog."""


class FetchNetworkError(FetchError):
    """Raised when the transport failed to deliver a response."""

    def __init__(self, cause: TransportError) -> None:
        """Initialize the network error."""
        self.cause = cause
        super().__init__(f"Network error: {cause}")


class FetchDecodeError(FetchError):
    """Raised when a 200 response could not be decoded into a catalog."""

    def __init__(self, cause: MalformedCatalogError) -> None:
        """Initialize the decode error."""
        self.cause = cause
        super().__init__(f"Decode error: {cause}")


class UnexpectedStatusError(FetchError):
    """Raised when the backend answers with a status other than 200."""

    def __init__(self, status_code: int) -> None:
        """Initialize the status error."""
        self.status_code = status_code
        super().__init__(f"Unexpected HTTP status {status_code}")


class FeedbackBusyError(PyAtWatcherException):
    """Raised when the feedback animation is triggered while already running."""
