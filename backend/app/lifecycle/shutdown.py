"""
Shutdown Logic for the Web Server

This module defines cleanup routines for the end of the application lifespan.

Responsibilities:
-----------------
- Close the data store connection so the server side releases it promptly.

Functions:
----------
- `shutdown_event(store)`: Runs the shutdown work for a data store handle.

Usage:
------
    from app.lifecycle.shutdown import shutdown_event
    await shutdown_event(store)
"""

import logging

from app.data.connection import DataStore

logger = logging.getLogger(__name__)


async def shutdown_event(store: DataStore) -> None:
    """
    Closes the data store connection on shutdown.

    Returns:
        None
    """
    logger.info("Shutting down: closing data store connection...")
    await store.close()
