"""
Typed Data Structures for the Boot and Request-Dispatch Layer

This module defines the small, immutable records passed between the boot
sequence components. They standardize how environment classification, pipeline
stages and data store connection state are represented.

Key Structures:
---------------
- `DeploymentMode`: `"development"` or `"production"`.
- `EnvironmentFlags`: Flags derived once at process start by `app.core.env.classify`.
- `StageKind`: The closed set of request-processing stage variants.
- `Stage`: One entry of an assembled pipeline (kind, bound path, options).
- `Pipeline`: Ordered tuple of stages; position is precedence.
- `ConnectionState`: Lifecycle of the data store connection handle.
- `PostRecord`: Row shape of the `posts` table.

Usage:
------
    from app.core.data_types import EnvironmentFlags, Stage, StageKind

    flags = EnvironmentFlags(deployment_mode="production", is_dev_build=False,
                             service_worker_enabled=True)

Notes:
------
- Records are frozen dataclasses and are safe to share across requests.
- Stage options are wrapped in read-only mappings.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Literal, Mapping, Optional, Tuple, TypedDict

DeploymentMode = Literal["development", "production"]


@dataclass(frozen=True)
class EnvironmentFlags:
    """
    Process-wide environment classification.

    Attributes:
        deployment_mode (DeploymentMode): `"development"` only when explicitly marked.
        is_dev_build (bool): True when the client bundle was produced by a development build.
        service_worker_enabled (bool): Mirrors the `serviceWorker.enabled` configuration key.
    """
    deployment_mode: DeploymentMode
    is_dev_build: bool
    service_worker_enabled: bool

    @property
    def is_development(self) -> bool:
        return self.deployment_mode == "development"

    @property
    def build_mode(self) -> str:
        return "dev-build" if self.is_dev_build else "prod-build"


class StageKind(str, Enum):
    """Closed set of stage variants, named as they appear in logs."""

    NONCE_INJECTOR = "nonce-injector"
    SECURITY_HEADERS = "security-headers"
    COMPRESSION = "compression"
    SERVICE_WORKER_ROUTE = "service-worker-route"
    OFFLINE_PAGE_ROUTE = "offline-page-route"
    STATIC_BUNDLE_SERVER = "static-bundle-server"
    STATIC_PUBLIC_SERVER = "static-public-server"
    QUERY_ENDPOINT = "query-endpoint"
    RENDER_ENDPOINT = "render-endpoint"
    ERROR_BOUNDARY = "error-boundary"


@dataclass(frozen=True)
class Stage:
    """
    One unit of the request-handling chain.

    Attributes:
        kind (StageKind): Which variant this stage is.
        path (Optional[str]): URL path or prefix the stage is bound to, if any.
        directory (Optional[Path]): Filesystem directory for file-serving stages.
        options (Mapping[str, Any]): Read-only, stage-specific settings.
    """
    kind: StageKind
    path: Optional[str] = None
    directory: Optional[Path] = None
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))


Pipeline = Tuple[Stage, ...]


class ConnectionState(str, Enum):
    """
    Data store connection lifecycle.

    `CONNECTING -> CONNECTED` and `CONNECTING -> FAILED` are the only terminal
    transitions of a connection attempt. `CLOSED` follows `CONNECTED` at shutdown.
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"
    CLOSED = "closed"


class PostRecord(TypedDict):
    """
    Represents one row of the `posts` table.

    Attributes:
        id (int): Primary key.
        title (str): Post title.
        body (str): Post body text.
        created_at (datetime): Insertion timestamp.
    """
    id: int
    title: str
    body: str
    created_at: datetime
