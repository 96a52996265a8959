"""Client fetching the device catalog from the unlock backend."""

from __future__ import annotations

from collections.abc import Callable
import logging

from .const import DEVICE_LIST_URL
from .exceptions import (
    FetchDecodeError,
    FetchNetworkError,
    MalformedCatalogError,
    TransportError,
    UnexpectedStatusError,
)
from .models import Catalog, Device
from .transport import MTLSTransport

_LOGGER = logging.getLogger(__name__)

CatalogListener = Callable[[Catalog], None]


class CatalogClient:
    """Fetches the building/level/device hierarchy and keeps the latest copy."""

    def __init__(self, transport: MTLSTransport, url: str = DEVICE_LIST_URL) -> None:
        """Initialize the client."""
        if not isinstance(transport, MTLSTransport):
            raise TypeError("transport must be an instance of MTLSTransport")
        self._transport = transport
        self._url = url
        self._catalog = Catalog.empty()
        self._listeners: list[CatalogListener] = []

    @property
    def catalog(self) -> Catalog:
        """Return the last successfully fetched catalog (empty before that)."""
        return self._catalog

    @property
    def smart_device(self) -> Device | None:
        """Return the device pre-associated with this client, if any."""
        return self._catalog.smart

    def add_listener(self, listener: CatalogListener) -> Callable[[], None]:
        """Register a callback run after each catalog replacement.

        Returns:
            A callable removing the listener again.

        """
        self._listeners.append(listener)

        def remove_listener() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove_listener

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._catalog)
            except Exception:
                _LOGGER.exception("Error in catalog listener")

    async def async_fetch_catalog(self) -> None:
        """Fetch the device list and replace the catalog.

        No retries are made. On failure the previous catalog stays in place.

        Raises:
            FetchNetworkError: If the transport could not complete the request.
            FetchDecodeError: If the 200 response is not a valid catalog.
            UnexpectedStatusError: If the backend answers with another status.

        """
        _LOGGER.debug("Updating available devices from %s", self._url)
        try:
            response = await self._transport.fetch(self._url, "GET")
        except TransportError as err:
            _LOGGER.error("Unable to fetch available devices: %s", err)
            raise FetchNetworkError(err) from err

        if response.status != 200:
            _LOGGER.error("Unexpected status %s fetching available devices", response.status)
            raise UnexpectedStatusError(response.status)

        try:
            catalog = Catalog.from_json(response.body)
        except MalformedCatalogError as err:
            _LOGGER.error("Failed to decode device list: %s", err)
            raise FetchDecodeError(err) from err

        self._catalog = catalog
        _LOGGER.info(
            "Device list updated. Found %d buildings.", len(catalog.buildings)
        )
        self._notify()

    async def async_close(self) -> None:
        """Close the underlying transport session."""
        await self._transport.close_session()
