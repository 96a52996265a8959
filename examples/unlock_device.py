#!/usr/bin/env python3

"""
Example script to unlock a device using the async pyatwatcher library.

Reads the client certificate (ATWATCHER_CERTFILE), its key
(ATWATCHER_KEYFILE) and optionally a CA bundle (ATWATCHER_CAFILE) and the
device list URL (ATWATCHER_URL) from environment variables.

Requires building, level and device id as command-line arguments.

Usage:
  export ATWATCHER_CERTFILE="client.pem"
  export ATWATCHER_KEYFILE="client.key"
  python3 unlock_device.py A 0 u1
"""

import argparse
import asyncio
import logging
import os
import sys

from pyatwatcher import (
    CatalogClient,
    ClientIdentity,
    ConfirmationToken,
    FetchError,
    MTLSTransport,
    SelectionEngine,
)
from pyatwatcher.const import DEVICE_LIST_URL

# --- Configuration ---
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)

CERTFILE = os.getenv("ATWATCHER_CERTFILE")
KEYFILE = os.getenv("ATWATCHER_KEYFILE")
CAFILE = os.getenv("ATWATCHER_CAFILE")
URL = os.getenv("ATWATCHER_URL", DEVICE_LIST_URL)

if not CERTFILE:
    logging.error("Please set the ATWATCHER_CERTFILE environment variable.")
    sys.exit(1)

# --- Argument Parsing ---
parser = argparse.ArgumentParser(description="Unlock a device behind the mTLS backend.")
parser.add_argument("building", help="Building name, e.g. A.")
parser.add_argument("level", type=int, help="Level within the building.")
parser.add_argument("device_id", help="Identifier of the device to unlock.")
args = parser.parse_args()


async def submit_unlock(token: ConfirmationToken) -> None:
    """Stand-in for the unlock request; the backend contract lives elsewhere."""
    logging.info("Unlock requested for %s", token.label)


# --- Main Async Function ---
async def main():
    """Run the async unlock script."""
    transport = MTLSTransport(ClientIdentity(CERTFILE, KEYFILE), cafile=CAFILE)
    client = CatalogClient(transport, url=URL)
    try:
        await client.async_fetch_catalog()

        catalog = client.catalog
        if client.smart_device:
            logging.info(
                "Device assigned to this client: %s (room %s)",
                client.smart_device.name,
                client.smart_device.room,
            )
        if not catalog.has_level(args.building, args.level):
            logging.error(
                "Level %s.%s not found. Buildings: %s",
                args.building,
                args.level,
                ", ".join(catalog.building_names()),
            )
            sys.exit(1)

        engine = SelectionEngine(lambda: client.catalog, submit_unlock)
        engine.add_listener(lambda state: logging.debug("Selection: %s", state))

        steps = (
            lambda: engine.set_building(args.building),
            lambda: engine.set_level(args.level),
            lambda: engine.set_device(args.device_id),
        )
        for step in steps:
            if not step() or not engine.advance():
                logging.error("Selection rejected at step %d", engine.state.step)
                sys.exit(1)

        token = engine.confirm()
        if token is None:
            logging.error("Unlock could not be confirmed.")
            sys.exit(1)

        await engine.async_wait_idle()
        logging.info("Done. Selection reset to %s", engine.state)

    except FetchError as e:
        logging.error("Fetching the device list failed: %s", e)
    finally:
        await client.async_close()
        logging.info("Transport session closed.")


if __name__ == "__main__":
    asyncio.run(main())
