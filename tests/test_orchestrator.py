"""Tests of the boot sequence and the process failure policy."""

import asyncio
from unittest.mock import MagicMock

import psycopg2

from app.core.config import load_config
from app.core.data_types import ConnectionState
from app.data.connection import connect
from app.lifecycle import startup
from app.lifecycle.orchestrator import Orchestrator
from conftest import TEST_URI


class FakeServer:
    """Listener double that serves until `should_exit` is set or the poll budget runs out."""

    def __init__(self, app, host, port, polls=0):
        self.app = app
        self.host = host
        self.port = port
        self.polls = polls
        self.should_exit = False
        self.served = False

    async def serve(self):
        self.served = True
        for _ in range(self.polls):
            if self.should_exit:
                return
            await asyncio.sleep(0.01)


class ServerFactory:
    def __init__(self, polls=0):
        self.polls = polls
        self.servers = []

    def __call__(self, app, host, port):
        server = FakeServer(app, host, port, polls=self.polls)
        self.servers.append(server)
        return server


def _connected(uri, connect_timeout):
    return MagicMock()


def _refused(uri, connect_timeout):
    raise psycopg2.OperationalError("connection refused")


def _settings(environ=None, **overrides):
    return load_config(
        environ={"DATABASE_URI": TEST_URI} if environ is None else environ,
        overrides={key.replace("__", "."): value for key, value in overrides.items()},
    )


def test_boot_serves_after_connecting(caplog):
    caplog.set_level("INFO")
    factory = ServerFactory()
    orchestrator = Orchestrator(settings=_settings(port=8088), environ={}, connect_fn=_connected, server_factory=factory)

    exit_code = asyncio.run(orchestrator.run())

    assert exit_code == 0
    assert len(factory.servers) == 1
    server = factory.servers[0]
    assert server.served
    assert (server.host, server.port) == ("0.0.0.0", 8088)
    assert orchestrator.store.state is ConnectionState.CONNECTED
    assert "Connected to the data store" in caplog.text
    assert "security-headers -> compression" in caplog.text


def test_failed_connection_never_listens():
    factory = ServerFactory()
    orchestrator = Orchestrator(settings=_settings(), environ={}, connect_fn=_refused, server_factory=factory)

    assert asyncio.run(orchestrator.run()) == 1
    assert factory.servers == []
    assert orchestrator.store.state is ConnectionState.FAILED


def test_missing_connection_string_fails_boot(caplog):
    factory = ServerFactory()
    orchestrator = Orchestrator(settings=_settings(environ={}), environ={}, connect_fn=_connected, server_factory=factory)

    assert asyncio.run(orchestrator.run()) == 1
    assert factory.servers == []
    assert orchestrator.store is None
    assert "dataStore.uri" in caplog.text


def test_late_connection_failure_stops_the_listener():
    factory = ServerFactory(polls=500)
    orchestrator = Orchestrator(
        settings=_settings(dataStore__awaitConnection=False),
        environ={},
        connect_fn=_refused,
        server_factory=factory,
    )

    exit_code = asyncio.run(orchestrator.run())

    assert exit_code == 1
    assert factory.servers[0].should_exit is True


def test_development_environment_selects_nonce_stage(caplog):
    caplog.set_level("INFO")
    orchestrator = Orchestrator(
        settings=_settings(),
        environ={"APP_ENV": "development", "BUILD_FLAG_IS_DEV": "true"},
        connect_fn=_connected,
        server_factory=ServerFactory(),
    )

    assert asyncio.run(orchestrator.run()) == 0
    assert "Booting in development mode (dev-build)" in caplog.text
    assert "nonce-injector -> compression -> static-bundle-server" in caplog.text


def test_schema_setup_waits_for_pending_connection():
    conn = MagicMock()
    cursor = conn.cursor.return_value.__enter__.return_value

    async def scenario():
        store = connect(TEST_URI, connect_fn=lambda uri, connect_timeout: conn)
        await startup.startup_event(store)
        cursor.execute.assert_not_called()
        await store.ready()
        await asyncio.gather(*startup._pending)

    asyncio.run(scenario())
    sql = cursor.execute.call_args[0][0]
    assert "CREATE TABLE IF NOT EXISTS posts" in sql


def test_unexpected_connect_failure_exits_cleanly(caplog):
    def broken(uri, connect_timeout):
        raise ValueError("invalid connection option")

    factory = ServerFactory()
    orchestrator = Orchestrator(settings=_settings(), environ={}, connect_fn=broken, server_factory=factory)

    assert asyncio.run(orchestrator.run()) == 1
    assert factory.servers == []
    assert "Startup aborted" in caplog.text


def test_failed_deferred_schema_setup_is_logged(caplog):
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value.execute.side_effect = psycopg2.ProgrammingError("permission denied")

    async def scenario():
        store = connect(TEST_URI, connect_fn=lambda uri, connect_timeout: conn)
        await startup.startup_event(store)
        await store.ready()
        tasks = list(startup._pending)
        await asyncio.gather(*tasks, return_exceptions=True)
        return tasks

    tasks = asyncio.run(scenario())

    assert len(tasks) == 1
    assert not startup._pending
    assert "Deferred schema setup failed" in caplog.text
    assert "permission denied" in caplog.text
