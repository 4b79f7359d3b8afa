"""
Project Configuration Store

This module centralizes configuration for the web server: listener settings,
client bundle locations, service worker behavior, HTML shell defaults and the
data store connection.

Contents:
---------
- Project directory constants (`ROOT_DIR`, `TEMPLATES_PATH`, `LOG_PATH`, ...)
- `Configuration`: immutable nested mapping with dotted key-path lookup
- `load_config()`: builds a `Configuration` from defaults and environment variables
- `settings` / `config()`: the process-wide configuration and its lookup shortcut
- `REQUIRED_KEYS`: key paths that must resolve before the pipeline is assembled

Key Concepts:
-------------
- Key paths: nested values are addressed with dots, e.g. `bundles.client.webPath`.
- Immutability: every nested mapping is exposed through `MappingProxyType`; the
  configuration is loaded once at process start and only read afterwards.
- Fail-fast: a missing key raises `ConfigError`. The orchestrator validates
  `REQUIRED_KEYS` at boot so that a missing key never surfaces per request.

Usage:
------
    from app.core.config import config, settings

    web_path = config("bundles.client.webPath")
    public_dir = settings.resolve_path("publicAssetsPath")

Environment Variables:
----------------------
- `.env` file is loaded first (python-dotenv); real environment variables win.
- `HOST`, `PORT`, `PUBLIC_ASSETS_PATH`, `CLIENT_WEB_PATH`, `CLIENT_OUTPUT_PATH`,
  `SERVICE_WORKER_ENABLED`, `DISABLE_SSR`, `DATABASE_URI`,
  `DATABASE_CONNECT_TIMEOUT`, `DATABASE_AWAIT_CONNECTION`, `LOG_LEVEL`.
"""

from dotenv import load_dotenv

from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Final, Iterable, Mapping, Optional, Tuple

from app.core import env
from app.core.errors import ConfigError

load_dotenv()

# === Directories ===

ROOT_DIR: Final[Path] = Path(__file__).resolve().parents[2]
TEMPLATES_PATH: Final[Path] = ROOT_DIR / "templates"
LOG_PATH: Final[Path] = ROOT_DIR / "logs"
LOG_FILE: Final[Path] = LOG_PATH / "server.log"

LOG_PATH.mkdir(parents=True, exist_ok=True)

# === Fixed Routes ===

GRAPHQL_PATH: Final[str] = "/graphql"

# Key paths queried by the pipeline assembler and the orchestrator
REQUIRED_KEYS: Final[Tuple[str, ...]] = (
    "host",
    "port",
    "publicAssetsPath",
    "bundles.client.webPath",
    "bundles.client.outputPath",
    "serviceWorker.enabled",
    "serviceWorker.fileName",
    "serviceWorker.offlinePageFileName",
    "dataStore.uri",
)

_MISSING = object()


def _defaults(environ: Optional[Mapping[str, str]]) -> Dict[str, Any]:
    values: Dict[str, Any] = {
        "host": env.string("HOST", "0.0.0.0", environ),
        "port": env.number("PORT", 1337, environ),
        "publicAssetsPath": env.string("PUBLIC_ASSETS_PATH", "public", environ),
        "disableSSR": env.boolean("DISABLE_SSR", False, environ),
        "bundles": {
            "client": {
                "webPath": env.string("CLIENT_WEB_PATH", "/client/", environ),
                "outputPath": env.string("CLIENT_OUTPUT_PATH", "build/client", environ),
                "assetsFileName": "assets.json",
                "maxAge": 365 * 24 * 60 * 60,
            }
        },
        "serviceWorker": {
            "enabled": env.boolean("SERVICE_WORKER_ENABLED", True, environ),
            "fileName": "sw.js",
            "offlinePageFileName": "offline.html",
        },
        "htmlPage": {
            "defaultTitle": "Universal Web App",
            "description": "A server-rendered web application.",
            "preloadPostCount": 10,
        },
        "compression": {
            "minimumSize": 500,
        },
        "security": {
            "hstsMaxAge": 365 * 24 * 60 * 60,
        },
        "dataStore": {
            "connectTimeout": env.number("DATABASE_CONNECT_TIMEOUT", 10, environ),
            "awaitConnection": env.boolean("DATABASE_AWAIT_CONNECTION", True, environ),
        },
        "log": {
            "consoleLevel": env.string("LOG_LEVEL", "INFO", environ).upper(),
        },
    }
    # No default connection string: an unset DATABASE_URI fails the boot
    uri = env.string("DATABASE_URI", None, environ)
    if uri:
        values["dataStore"]["uri"] = uri
    return values


def _assign(tree: Dict[str, Any], path: str, value: Any) -> None:
    *parents, leaf = path.split(".")
    node = tree
    for part in parents:
        child = node.get(part)
        if not isinstance(child, dict):
            child = node[part] = {}
        node = child
    node[leaf] = value


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    return value


class Configuration:
    """
    Immutable nested configuration with dotted key-path lookup.

    Instances are callable: `settings("port")` is the same as `settings.get("port")`.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values: Mapping[str, Any] = _freeze(values)

    def get(self, path: str, default: Any = _MISSING) -> Any:
        """
        Resolves a dotted key path.

        Args:
            path (str): Key path such as `serviceWorker.fileName`.
            default (Any): Value returned when the path is missing. If omitted,
                a missing path raises.

        Returns:
            Any: The stored value (nested sections are read-only mappings).

        Raises:
            ConfigError: If the path does not resolve and no default is given.
        """
        node: Any = self._values
        for part in path.split("."):
            if not isinstance(node, Mapping) or part not in node:
                if default is _MISSING:
                    raise ConfigError(f"Missing configuration value for key path '{path}'")
                return default
            node = node[part]
        return node

    def __call__(self, path: str) -> Any:
        return self.get(path)

    def require(self, paths: Iterable[str]) -> None:
        """
        Verifies that every key path resolves to a non-null value.

        Raises:
            ConfigError: Listing all missing key paths at once.
        """
        missing = [path for path in paths if self.get(path, None) is None]
        if missing:
            raise ConfigError(f"Missing required configuration values: {', '.join(missing)}")

    def resolve_path(self, path: str) -> Path:
        """Returns the filesystem path stored at `path`, anchored at `ROOT_DIR` when relative."""
        location = Path(self.get(path))
        return location if location.is_absolute() else ROOT_DIR / location


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Configuration:
    """
    Builds the configuration from defaults, environment variables and overrides.

    Args:
        environ (Optional[Mapping[str, str]]): Environment to read; defaults to `os.environ`.
        overrides (Optional[Mapping[str, Any]]): Dotted key paths to replace, applied last.

    Returns:
        Configuration: The frozen configuration.
    """
    values = _defaults(environ)
    for path, value in (overrides or {}).items():
        _assign(values, path, value)
    return Configuration(values)


settings: Final[Configuration] = load_config()


def config(path: str) -> Any:
    """Looks up a key path in the process-wide configuration."""
    return settings(path)
