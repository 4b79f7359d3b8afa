"""
Process Orchestrator

This module sequences the boot of the web server and owns the process-level
failure policy.

Boot Order:
-----------
1. Configuration: every key in `REQUIRED_KEYS` must resolve.
2. Environment classification (`classify`).
3. Data store connection attempt starts (non-blocking).
4. Pipeline assembly (`assemble`) and application build.
5. Wait for the data store (unless `dataStore.awaitConnection` is false).
6. Listen.

Failure Policy:
---------------
- Missing configuration or a failed data store connection ends the process
  with exit code 1. There is no degraded mode without a data store.
- With `dataStore.awaitConnection` false the listener starts right away, as
  the connection may still be pending; a later `error` event stops the
  running server and the process still exits with 1.
- Failures inside request handling are contained by the error boundary and
  never reach this module.

Usage:
------
    from app.lifecycle.orchestrator import main
    main()
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Mapping, Optional

import psycopg2
from fastapi import FastAPI

from app.api.dispatcher import build_application, create_server
from app.core.config import REQUIRED_KEYS, Configuration, settings as process_settings
from app.core.env import classify
from app.core.errors import ConfigError, DataStoreConnectionError
from app.core.logger import FAILURE_MARK, setup_logging
from app.core.pipeline import assemble, stage_kinds
from app.data.connection import DataStore, connect
from app.lifecycle.shutdown import shutdown_event
from app.lifecycle.startup import startup_event

logger = logging.getLogger(__name__)


def build_lifespan(store: DataStore) -> Callable[[FastAPI], Any]:
    """Creates the application lifespan running the startup and shutdown routines for `store`."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await startup_event(store)
        yield
        await shutdown_event(store)

    return lifespan


class Orchestrator:
    """
    Boots the server and maps fatal failures to the process exit code.

    Args:
        settings (Configuration): Application configuration.
        environ (Optional[Mapping[str, str]]): Environment for classification.
        connect_fn (Callable): Driver connect function.
        server_factory (Callable): Builds the listener from `(app, host, port)`.
    """

    def __init__(
        self,
        settings: Configuration = process_settings,
        environ: Optional[Mapping[str, str]] = None,
        connect_fn: Callable[..., Any] = psycopg2.connect,
        server_factory: Callable[[FastAPI, str, int], Any] = create_server,
    ) -> None:
        self.settings = settings
        self.environ = environ
        self.connect_fn = connect_fn
        self.server_factory = server_factory
        self.server: Optional[Any] = None
        self.store: Optional[DataStore] = None
        self.app: Optional[FastAPI] = None
        self.exit_code = 0

    def _on_store_error(self, exc: BaseException) -> None:
        self.exit_code = 1
        if self.server is not None:
            logger.error("%s Stopping server: data store connection failed.", FAILURE_MARK)
            self.server.should_exit = True

    def boot(self) -> FastAPI:
        """
        Runs steps 1-4 of the boot order. Must be called from a running event loop.

        Raises:
            ConfigError: If configuration is incomplete.
        """
        self.settings.require(REQUIRED_KEYS)
        flags = classify(self.settings, self.environ)
        logger.info("Booting in %s mode (%s)", flags.deployment_mode, flags.build_mode)

        self.store = connect(
            self.settings("dataStore.uri"),
            connect_timeout=self.settings.get("dataStore.connectTimeout", 10),
            connect_fn=self.connect_fn,
        )
        self.store.on("error", self._on_store_error)

        pipeline = assemble(self.settings, flags)
        logger.info("Request pipeline: %s", " -> ".join(stage_kinds(pipeline)))
        self.app = build_application(pipeline, self.store, flags, lifespan=build_lifespan(self.store))
        return self.app

    async def run(self) -> int:
        """
        Boots and serves until shutdown.

        Returns:
            int: Process exit code.
        """
        try:
            app = self.boot()
        except ConfigError as exc:
            logger.error("%s %s", FAILURE_MARK, exc)
            if self.store is not None:
                await self.store.close()
            return 1

        if self.settings.get("dataStore.awaitConnection", True):
            try:
                await self.store.ready()
            except DataStoreConnectionError as exc:
                logger.error("%s Startup aborted: %s", FAILURE_MARK, exc)
                return 1

        self.server = self.server_factory(app, self.settings("host"), int(self.settings("port")))
        await self.server.serve()
        return self.exit_code


def main() -> None:
    """Console entry point: configures logging, runs the orchestrator and exits with its code."""
    setup_logging(console_level=process_settings.get("log.consoleLevel", "INFO"))
    sys.exit(asyncio.run(Orchestrator().run()))
