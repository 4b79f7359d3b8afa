"""Unit tests for the configuration store and environment parsing helpers."""

from pathlib import Path

import pytest

from app.core import env
from app.core.config import REQUIRED_KEYS, ROOT_DIR, config, load_config, settings
from app.core.errors import ConfigError

URI = "postgresql://app@localhost/app"


def test_defaults_resolve_nested_key_paths():
    cfg = load_config(environ={"DATABASE_URI": URI})
    assert cfg("bundles.client.webPath") == "/client/"
    assert cfg("serviceWorker.fileName") == "sw.js"
    assert cfg("serviceWorker.offlinePageFileName") == "offline.html"
    assert cfg("serviceWorker.enabled") is True
    assert cfg("port") == 1337
    assert cfg("dataStore.uri") == URI


def test_environment_variables_override_defaults():
    cfg = load_config(environ={
        "DATABASE_URI": URI,
        "PORT": "8080",
        "SERVICE_WORKER_ENABLED": "false",
        "CLIENT_WEB_PATH": "/assets/",
        "DISABLE_SSR": "1",
        "LOG_LEVEL": "debug",
    })
    assert cfg("port") == 8080
    assert cfg("serviceWorker.enabled") is False
    assert cfg("bundles.client.webPath") == "/assets/"
    assert cfg("disableSSR") is True
    assert cfg("log.consoleLevel") == "DEBUG"


def test_overrides_use_dotted_paths():
    cfg = load_config(environ={"DATABASE_URI": URI}, overrides={"serviceWorker.fileName": "worker.js"})
    assert cfg("serviceWorker.fileName") == "worker.js"
    assert cfg("serviceWorker.offlinePageFileName") == "offline.html"


def test_missing_key_raises_config_error():
    cfg = load_config(environ={"DATABASE_URI": URI})
    with pytest.raises(ConfigError, match="serviceWorker.missing"):
        cfg("serviceWorker.missing")


def test_get_returns_default_for_missing_key():
    cfg = load_config(environ={"DATABASE_URI": URI})
    assert cfg.get("not.there", 42) == 42


def test_lookup_through_a_scalar_is_missing():
    cfg = load_config(environ={"DATABASE_URI": URI})
    with pytest.raises(ConfigError):
        cfg("port.number")


def test_require_lists_every_missing_key():
    cfg = load_config(environ={})
    with pytest.raises(ConfigError) as exc_info:
        cfg.require(["dataStore.uri", "port", "nope"])
    message = str(exc_info.value)
    assert "dataStore.uri" in message
    assert "nope" in message
    assert "port" not in message.split(":", 1)[1]


def test_required_keys_resolve_with_a_connection_string():
    load_config(environ={"DATABASE_URI": URI}).require(REQUIRED_KEYS)


def test_configuration_is_read_only():
    cfg = load_config(environ={"DATABASE_URI": URI})
    section = cfg("serviceWorker")
    with pytest.raises(TypeError):
        section["enabled"] = False


def test_resolve_path_anchors_relative_paths_at_root(tmp_path: Path):
    cfg = load_config(environ={"DATABASE_URI": URI}, overrides={"bundles.client.outputPath": str(tmp_path)})
    assert cfg.resolve_path("publicAssetsPath") == ROOT_DIR / "public"
    assert cfg.resolve_path("bundles.client.outputPath") == tmp_path


def test_module_level_lookup_uses_process_settings():
    assert config("serviceWorker.fileName") == settings("serviceWorker.fileName")


def test_malformed_number_is_rejected():
    with pytest.raises(ConfigError, match="PORT"):
        load_config(environ={"DATABASE_URI": URI, "PORT": "eighty"})


def test_malformed_boolean_is_rejected():
    with pytest.raises(ConfigError, match="DISABLE_SSR"):
        env.boolean("DISABLE_SSR", environ={"DISABLE_SSR": "maybe"})


def test_env_helpers_fall_back_to_defaults():
    assert env.string("HOST", "localhost", environ={}) == "localhost"
    assert env.number("PORT", 3000, environ={"PORT": " "}) == 3000
    assert env.boolean("FLAG", True, environ={}) is True
