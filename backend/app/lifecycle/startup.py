"""
Startup Logic for the Web Server

This module defines the startup routine executed once when the application
lifespan begins, before the listener accepts connections.

Responsibilities:
-----------------
- Create the `posts` table once the data store is connected. When the boot
  sequence does not wait for the connection, this is deferred to the
  `connected` event.

Functions:
----------
- `startup_event(store)`: Runs the startup work for a data store handle.

Usage:
------
    from app.lifecycle.startup import startup_event
    await startup_event(store)
"""

import asyncio
import logging
from typing import Set

from app.core.data_types import ConnectionState
from app.data.connection import DataStore
from app.data.db_operations import ensure_schema

logger = logging.getLogger(__name__)

_pending: Set["asyncio.Task[None]"] = set()


def _report_schema_setup(task: "asyncio.Task[None]") -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Deferred schema setup failed: %s", exc, exc_info=exc)


def _schedule_schema_setup(store: DataStore) -> None:
    task = asyncio.get_running_loop().create_task(ensure_schema(store))
    _pending.add(task)
    task.add_done_callback(_report_schema_setup)


async def startup_event(store: DataStore) -> None:
    """
    Prepares the data store for request handling.

    Args:
        store (DataStore): The process data store handle.

    Returns:
        None
    """
    logger.info("Starting up: preparing data store schema...")
    if store.state is ConnectionState.CONNECTED:
        await ensure_schema(store)
    elif store.state is ConnectionState.CONNECTING:
        store.on("connected", lambda: _schedule_schema_setup(store))
