"""Unit tests for environment classification."""

import pytest

from app.core.config import load_config
from app.core.env import classify

URI = "postgresql://app@localhost/app"


@pytest.fixture
def cfg():
    return load_config(environ={"DATABASE_URI": URI})


@pytest.mark.parametrize("marker", ["development", "Development", "  DEVELOPMENT "])
def test_explicit_development_marker(cfg, marker):
    flags = classify(cfg, environ={"APP_ENV": marker})
    assert flags.deployment_mode == "development"
    assert flags.is_development


@pytest.mark.parametrize("environ", [
    {},
    {"APP_ENV": ""},
    {"APP_ENV": "production"},
    {"APP_ENV": "dev"},
    {"APP_ENV": "staging"},
    {"APP_ENV": "develop ment"},
])
def test_anything_else_is_production(cfg, environ):
    assert classify(cfg, environ=environ).deployment_mode == "production"


@pytest.mark.parametrize("value, expected", [
    ("true", True),
    ("TRUE", True),
    ("1", True),
    ("false", False),
    ("0", False),
    ("", False),
    ("garbage", False),
])
def test_build_flag(cfg, value, expected):
    assert classify(cfg, environ={"BUILD_FLAG_IS_DEV": value}).is_dev_build is expected


def test_unset_build_flag_is_a_production_build(cfg):
    flags = classify(cfg, environ={})
    assert flags.is_dev_build is False
    assert flags.build_mode == "prod-build"


def test_service_worker_flag_follows_configuration():
    enabled = load_config(environ={"DATABASE_URI": URI})
    disabled = load_config(environ={"DATABASE_URI": URI}, overrides={"serviceWorker.enabled": False})
    assert classify(enabled, environ={}).service_worker_enabled is True
    assert classify(disabled, environ={}).service_worker_enabled is False


def test_flags_are_immutable(cfg):
    flags = classify(cfg, environ={})
    with pytest.raises(AttributeError):
        flags.deployment_mode = "development"
