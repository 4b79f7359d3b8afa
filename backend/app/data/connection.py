"""
Data Store Connection Handle

This module owns the single PostgreSQL connection of the process and its
connection state. The handle is created by the orchestrator and passed
explicitly to the stages that need it (GraphQL endpoint, render endpoint).

Responsibilities:
-----------------
- Open the connection on a worker thread so the boot sequence can carry on
  assembling the pipeline while the driver connects.
- Emit exactly one terminal event per attempt: `connected` or `error`.
- Run queries for request handlers and translate driver failures into
  `DataStoreError` so the error boundary can answer them.
- Close the connection on shutdown.

No retries are attempted. A failed attempt is fatal for the process; restarting
is left to the process supervisor.

Usage:
------
    from app.data.connection import connect

    store = connect(config("dataStore.uri"), connect_timeout=10)
    store.on("error", lambda exc: ...)
    await store.ready()
    rows = await store.fetch_all("SELECT id, title FROM posts")
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence
from urllib.parse import urlsplit, urlunsplit

import psycopg2
from psycopg2.extras import RealDictCursor

from app.core.data_types import ConnectionState
from app.core.errors import DataStoreConnectionError, DataStoreError, DataStoreUnavailableError
from app.core.logger import FAILURE_MARK, SUCCESS_MARK

logger = logging.getLogger(__name__)

EVENTS = ("connected", "error")

Row = Dict[str, Any]
Listener = Callable[..., None]


def mask_uri(uri: str) -> str:
    """Returns `uri` with any password replaced by `***`."""
    parts = urlsplit(uri)
    if not parts.password:
        return uri
    netloc = parts.netloc.replace(f":{parts.password}@", ":***@", 1)
    return urlunsplit(parts._replace(netloc=netloc))


class DataStore:
    """
    Handle around one driver connection and its lifecycle state.

    Args:
        uri (str): libpq connection string or `postgresql://` URI.
        connect_timeout (int): Seconds the driver waits for the server.
        connect_fn (Callable): Driver connect function; `psycopg2.connect` by default.
    """

    def __init__(
        self,
        uri: str,
        connect_timeout: int = 10,
        connect_fn: Callable[..., Any] = psycopg2.connect,
    ) -> None:
        self.uri = uri
        self.connect_timeout = connect_timeout
        self._connect_fn = connect_fn
        self._conn: Optional[Any] = None
        self._error: Optional[BaseException] = None
        self._task: Optional["asyncio.Task[None]"] = None
        self._listeners: Dict[str, List[Listener]] = {event: [] for event in EVENTS}
        self.state = ConnectionState.IDLE

    def describe(self) -> str:
        return mask_uri(self.uri)

    # === Events ===

    def on(self, event: str, callback: Listener) -> "DataStore":
        """
        Registers a listener for `connected` (no arguments) or `error` (the exception).

        Raises:
            ValueError: If `event` is not a known event name.
        """
        if event not in self._listeners:
            raise ValueError(f"Unknown data store event: {event}")
        self._listeners[event].append(callback)
        return self

    def _emit(self, event: str, *args: Any) -> None:
        for callback in list(self._listeners[event]):
            callback(*args)

    # === Lifecycle ===

    def open(self) -> "DataStore":
        """
        Starts the connection attempt in the background. Requires a running event loop.

        Raises:
            RuntimeError: If an attempt was already started.
        """
        if self.state is not ConnectionState.IDLE:
            raise RuntimeError(f"Connection attempt already made (state: {self.state.value})")
        self.state = ConnectionState.CONNECTING
        logger.info("Connecting to data store at %s", self.describe())
        self._task = asyncio.get_running_loop().create_task(self._attempt())
        return self

    async def _attempt(self) -> None:
        try:
            conn = await asyncio.to_thread(
                self._connect_fn, self.uri, connect_timeout=self.connect_timeout
            )
            conn.autocommit = True
        except Exception as exc:
            # any failure, not only driver errors, ends the attempt as `failed`
            self._error = exc
            self.state = ConnectionState.FAILED
            logger.error("%s", exc)
            logger.error("%s Data store connection error. Please make sure the database is running.", FAILURE_MARK)
            self._emit("error", exc)
            return

        self._conn = conn
        self.state = ConnectionState.CONNECTED
        logger.info("%s Connected to the data store.", SUCCESS_MARK)
        self._emit("connected")

    async def ready(self) -> None:
        """
        Waits for the connection attempt to finish.

        Raises:
            DataStoreConnectionError: If the attempt failed.
            RuntimeError: If `open()` was never called.
        """
        if self._task is None:
            raise RuntimeError("Data store connection was never opened")
        await asyncio.shield(self._task)
        if self.state is ConnectionState.FAILED:
            raise DataStoreConnectionError(
                f"Could not connect to data store at {self.describe()}: {self._error}"
            ) from self._error

    async def close(self) -> None:
        """Closes the connection if one was established."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if self._conn is not None:
            await asyncio.to_thread(self._conn.close)
            self._conn = None
        if self.state is ConnectionState.CONNECTED:
            self.state = ConnectionState.CLOSED
            logger.info("Data store connection closed.")

    # === Queries ===

    def _require(self) -> Any:
        if self.state is not ConnectionState.CONNECTED or self._conn is None:
            raise DataStoreUnavailableError(f"Data store is not connected (state: {self.state.value})")
        return self._conn

    def _run(self, conn: Any, sql: str, params: Sequence[Any], fetch: str) -> Any:
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(sql, params)
                if fetch == "all":
                    return [dict(row) for row in cur.fetchall()]
                if fetch == "one":
                    row = cur.fetchone()
                    return dict(row) if row is not None else None
                return cur.rowcount
        except psycopg2.Error as exc:
            raise DataStoreError(f"Data store query failed: {exc}") from exc

    async def _call(self, sql: str, params: Sequence[Any], fetch: str) -> Any:
        conn = self._require()
        try:
            return await asyncio.to_thread(self._run, conn, sql, params, fetch)
        except asyncio.CancelledError:
            # client went away; stop the statement on the server side
            conn.cancel()
            raise

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Row]:
        return await self._call(sql, params, "all")

    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Row]:
        return await self._call(sql, params, "one")

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        return await self._call(sql, params, "none")


def connect(
    uri: str,
    connect_timeout: int = 10,
    connect_fn: Callable[..., Any] = psycopg2.connect,
) -> DataStore:
    """
    Creates a data store handle and starts connecting without blocking the caller.

    Args:
        uri (str): Connection string.
        connect_timeout (int): Driver connect timeout in seconds.
        connect_fn (Callable[..., Any]): Driver connect function.

    Returns:
        DataStore: Handle in the `connecting` state.
    """
    return DataStore(uri, connect_timeout=connect_timeout, connect_fn=connect_fn).open()
