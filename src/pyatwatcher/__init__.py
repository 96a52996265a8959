"""Python library for selecting and unlocking devices behind an mTLS backend."""

from .client import CatalogClient
from .feedback import FeedbackScheduler
from .models import Building, Catalog, Device, Level
from .selection import ConfirmationToken, SelectionEngine, SelectionState
from .transport import (
    AuthChallenge,
    AuthenticationMethod,
    ChallengeDisposition,
    ClientIdentity,
    MTLSChallengeHandler,
    MTLSTransport,
    TransportResponse,
    create_session,
)

from .exceptions import (
    FeedbackBusyError,
    FetchDecodeError,
    FetchError,
    FetchNetworkError,
    HandshakeError,
    MalformedCatalogError,
    PyAtWatcherException,
    TransportConnectionError,
    TransportError,
    UnexpectedStatusError,
)

__version__ = "0.1.0"

__all__ = [
    "AuthChallenge",
    "AuthenticationMethod",
    "Building",
    "Catalog",
    "CatalogClient",
    "ChallengeDisposition",
    "ClientIdentity",
    "ConfirmationToken",
    "Device",
    "FeedbackBusyError",
    "FeedbackScheduler",
    "FetchDecodeError",
    "FetchError",
    "FetchNetworkError",
    "HandshakeError",
    "Level",
    "MTLSChallengeHandler",
    "MTLSTransport",
    "MalformedCatalogError",
    "PyAtWatcherException",
    "SelectionEngine",
    "SelectionState",
    "TransportConnectionError",
    "TransportError",
    "TransportResponse",
    "UnexpectedStatusError",
    "__version__",
    "create_session",
]
