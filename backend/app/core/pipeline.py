"""
Request Pipeline Assembly

This module turns the configuration and the environment flags into the ordered
list of stages every request is run through.

Key Responsibilities:
---------------------
- Choose between the development nonce injector and the production security
  header set (exactly one of them, decided once here).
- Install the service worker and offline page routes only for production
  builds with the service worker enabled, ahead of the static servers so the
  worker path is never answered by a file lookup.
- Bind the static bundle server, the public assets server, the GraphQL
  endpoint and the catch-all render endpoint, in decreasing specificity.
- Close the pipeline with the error boundary.

Functions:
----------
- `assemble(settings, flags)`: Builds the pipeline. Pure, no I/O.
- `stage_kinds(pipeline)`: Ordered stage kinds, for logging and inspection.

Usage:
------
    from app.core.config import settings
    from app.core.env import classify
    from app.core.pipeline import assemble

    pipeline = assemble(settings, classify(settings))
"""

import logging
from typing import List, Tuple

from app.core.config import GRAPHQL_PATH, Configuration
from app.core.data_types import EnvironmentFlags, Pipeline, Stage, StageKind

logger = logging.getLogger(__name__)

RENDER_PATH = "/{path:path}"


def _environment_stage(settings: Configuration, flags: EnvironmentFlags) -> Stage:
    if flags.is_development:
        return Stage(StageKind.NONCE_INJECTOR)
    return Stage(
        StageKind.SECURITY_HEADERS,
        options={"hsts_max_age": settings.get("security.hstsMaxAge", 365 * 24 * 60 * 60)},
    )


def _service_worker_stages(settings: Configuration, web_path: str) -> Tuple[Stage, Stage]:
    output_dir = settings.resolve_path("bundles.client.outputPath")
    file_name = settings("serviceWorker.fileName")
    offline_name = settings("serviceWorker.offlinePageFileName")
    return (
        Stage(
            StageKind.SERVICE_WORKER_ROUTE,
            path=f"/{file_name}",
            directory=output_dir,
            options={"file_name": file_name},
        ),
        Stage(
            StageKind.OFFLINE_PAGE_ROUTE,
            path=f"{web_path}{offline_name}",
            directory=output_dir,
            options={"file_name": offline_name},
        ),
    )


def assemble(settings: Configuration, flags: EnvironmentFlags) -> Pipeline:
    """
    Builds the ordered request pipeline for this process.

    Args:
        settings (Configuration): Validated application configuration.
        flags (EnvironmentFlags): Environment classification from `classify()`.

    Returns:
        Pipeline: Stages in the order they must be installed.

    Raises:
        ConfigError: If a key path read here is missing.
    """
    web_path = settings("bundles.client.webPath")
    install_service_worker = not flags.is_dev_build and flags.service_worker_enabled

    stages: List[Stage] = [
        _environment_stage(settings, flags),
        Stage(
            StageKind.COMPRESSION,
            options={"minimum_size": settings.get("compression.minimumSize", 500)},
        ),
    ]

    if install_service_worker:
        stages.extend(_service_worker_stages(settings, web_path))

    stages.extend([
        Stage(
            StageKind.STATIC_BUNDLE_SERVER,
            path=web_path,
            directory=settings.resolve_path("bundles.client.outputPath"),
            options={"max_age": settings.get("bundles.client.maxAge", 0)},
        ),
        Stage(
            StageKind.STATIC_PUBLIC_SERVER,
            path="/",
            directory=settings.resolve_path("publicAssetsPath"),
        ),
        Stage(
            StageKind.QUERY_ENDPOINT,
            path=GRAPHQL_PATH,
            options={"graphiql": True, "pretty": True},
        ),
        Stage(
            StageKind.RENDER_ENDPOINT,
            path=RENDER_PATH,
            options={
                "disable_ssr": bool(settings.get("disableSSR", False)),
                "title": settings.get("htmlPage.defaultTitle", ""),
                "description": settings.get("htmlPage.description", ""),
                "preload_count": settings.get("htmlPage.preloadPostCount", 10),
                "web_path": web_path,
                "assets_file": settings.resolve_path("bundles.client.outputPath")
                / settings.get("bundles.client.assetsFileName", "assets.json"),
                "service_worker_path": (
                    f"/{settings('serviceWorker.fileName')}" if install_service_worker else None
                ),
            },
        ),
        Stage(StageKind.ERROR_BOUNDARY),
    ])

    pipeline: Pipeline = tuple(stages)
    logger.debug("Assembled pipeline: %s", " -> ".join(stage_kinds(pipeline)))
    return pipeline


def stage_kinds(pipeline: Pipeline) -> Tuple[str, ...]:
    """Returns the stage kind names of `pipeline` in order."""
    return tuple(stage.kind.value for stage in pipeline)
