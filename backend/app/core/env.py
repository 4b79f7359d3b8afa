"""
Environment Variable Parsing and Environment Classification

This module reads process-start environment variables and derives the
`EnvironmentFlags` record that drives pipeline assembly.

Functions:
----------
- `string(name, default)`, `number(name, default)`, `boolean(name, default)`:
    Typed environment lookups used by the configuration defaults.
- `classify(settings, environ)`:
    Pure function returning `EnvironmentFlags` from the environment and configuration.

Environment Variables:
----------------------
- `APP_ENV`: deployment mode marker. Only the exact value `development`
  (case-insensitive) selects development; anything else, including an unset
  variable, is production.
- `BUILD_FLAG_IS_DEV`: set by the bundler. Only an explicit true marker
  (`true`, `1`, `yes`) marks a development build.

Example:
--------
    from app.core.config import settings
    from app.core.env import classify

    flags = classify(settings)
"""

import os
from typing import TYPE_CHECKING, Mapping, Optional

from app.core.data_types import EnvironmentFlags
from app.core.errors import ConfigError

if TYPE_CHECKING:
    from app.core.config import Configuration

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off", ""}


def _lookup(name: str, environ: Optional[Mapping[str, str]]) -> Optional[str]:
    source = os.environ if environ is None else environ
    return source.get(name)


def string(name: str, default: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Returns the environment variable as a string, or `default` when unset.
    """
    value = _lookup(name, environ)
    return default if value is None else value


def number(name: str, default: Optional[int] = None, environ: Optional[Mapping[str, str]] = None) -> Optional[int]:
    """
    Returns the environment variable parsed as an integer.

    Raises:
        ConfigError: If the variable is set but is not an integer.
    """
    value = _lookup(name, environ)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"Environment variable {name} must be an integer, got {value!r}") from None


def boolean(name: str, default: bool = False, environ: Optional[Mapping[str, str]] = None) -> bool:
    """
    Returns the environment variable parsed as a boolean.

    Raises:
        ConfigError: If the variable is set to an unrecognized value.
    """
    value = _lookup(name, environ)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigError(f"Environment variable {name} must be a boolean, got {value!r}")


def classify(settings: "Configuration", environ: Optional[Mapping[str, str]] = None) -> EnvironmentFlags:
    """
    Derives the environment flags used to assemble the request pipeline.

    Unknown or missing markers resolve to production behavior; the production
    branch is the one that installs security headers.

    Args:
        settings (Configuration): Loaded application configuration.
        environ (Optional[Mapping[str, str]]): Environment to read; defaults to `os.environ`.

    Returns:
        EnvironmentFlags: Immutable classification for this process.
    """
    mode = (string("APP_ENV", "", environ) or "").strip().lower()
    build_flag = (string("BUILD_FLAG_IS_DEV", "", environ) or "").strip().lower()

    return EnvironmentFlags(
        deployment_mode="development" if mode == "development" else "production",
        is_dev_build=build_flag in _TRUE_VALUES,
        service_worker_enabled=bool(settings("serviceWorker.enabled")),
    )
