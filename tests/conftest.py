"""Global fixtures for pyatwatcher tests."""

import copy
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from pyatwatcher.models import Catalog

from .const import MOCK_PAYLOAD


@pytest.fixture
def payload() -> dict[str, Any]:
    """Return a fresh copy of the mock device list payload."""
    return copy.deepcopy(MOCK_PAYLOAD)


@pytest.fixture
def catalog(payload: dict[str, Any]) -> Catalog:
    """Return the decoded mock catalog."""
    return Catalog.from_dict(payload)


def make_response(status: int = 200, body: bytes = b"", peer_cert: Any = b"cert") -> MagicMock:
    """Build a fake aiohttp response carrying an optional peer certificate."""
    response = MagicMock()
    response.peer_certificate = peer_cert
    response.status = status
    response.url = "https://backend.test/api/atvunlock/list"
    response.read = AsyncMock(return_value=body)
    return response


def make_session(response: MagicMock | None = None, side_effect: Exception | None = None) -> MagicMock:
    """Build a fake aiohttp session whose request() yields the response."""
    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    if side_effect is not None:
        session.request.return_value.__aenter__.side_effect = side_effect
    else:
        session.request.return_value.__aenter__.return_value = response
    session.request.return_value.__aexit__.return_value = False
    return session
