"""
Request Dispatcher

This module turns an assembled pipeline into a FastAPI application and runs it
behind uvicorn.

Key Responsibilities:
---------------------
- Install every stage strictly in pipeline order through a per-kind installer
  table; an unknown stage kind is a programming error.
- Middleware stages become ASGI middleware, first stage outermost.
- Route stages are appended to the router in order; the router tries them in
  sequence and the first match wins, so the render catch-all installed last
  only sees requests nobody else claimed.
- The error boundary registers the exception handlers.
- Bind the listener and log one confirmation line once it accepts connections.

Functions:
----------
- `build_application(pipeline, store, flags, lifespan)`: FastAPI app for a pipeline.
- `create_server(app, host, port)`: uvicorn server logging the listening line.
- `serve(app, host, port)`: Runs the server until shutdown.
"""

import logging
from typing import Callable, Dict, List, Optional

import uvicorn
from fastapi import FastAPI

from app.api.endpoints.assets import StaticDirectoryRoute, build_file_endpoint
from app.api.endpoints.query import build_graphql_router
from app.api.endpoints.render import build_render_endpoint
from app.api.error_handlers import register_exception_handlers
from app.core.data_types import EnvironmentFlags, Pipeline, Stage, StageKind
from app.core.logger import SUCCESS_MARK
from app.core.middleware import register_middleware
from app.data.connection import DataStore

logger = logging.getLogger(__name__)


class _Installer:
    """Applies the stages of one pipeline to one FastAPI app."""

    def __init__(self, app: FastAPI, store: DataStore, flags: EnvironmentFlags) -> None:
        self.app = app
        self.store = store
        self.flags = flags
        self.middleware: List[Stage] = []

    def install(self, pipeline: Pipeline) -> None:
        for stage in pipeline:
            INSTALLERS[stage.kind](self, stage)
            logger.debug("Installed stage %s%s", stage.kind.value, f" at {stage.path}" if stage.path else "")
        # after the error boundary, which must stay the innermost middleware
        register_middleware(self.app, self.middleware)

    def middleware_stage(self, stage: Stage) -> None:
        self.middleware.append(stage)

    def service_worker(self, stage: Stage) -> None:
        self.app.add_api_route(
            stage.path,
            build_file_endpoint(
                stage.directory / stage.options["file_name"],
                media_type="application/javascript",
                headers={"Cache-Control": "no-store"},
            ),
            methods=["GET", "HEAD"],
            include_in_schema=False,
        )

    def offline_page(self, stage: Stage) -> None:
        self.app.add_api_route(
            stage.path,
            build_file_endpoint(stage.directory / stage.options["file_name"], media_type="text/html"),
            methods=["GET", "HEAD"],
            include_in_schema=False,
        )

    def static_bundle(self, stage: Stage) -> None:
        headers = {"Cache-Control": f"public, max-age={stage.options['max_age']}, immutable"}
        self.app.router.routes.append(
            StaticDirectoryRoute(stage.path, stage.directory, headers=headers, name=stage.kind.value)
        )

    def static_public(self, stage: Stage) -> None:
        self.app.router.routes.append(
            StaticDirectoryRoute(stage.path, stage.directory, name=stage.kind.value)
        )

    def query_endpoint(self, stage: Stage) -> None:
        self.app.include_router(
            build_graphql_router(stage, self.store, self.flags),
            prefix=stage.path,
            include_in_schema=False,
        )

    def render_endpoint(self, stage: Stage) -> None:
        self.app.add_api_route(
            stage.path,
            build_render_endpoint(stage, self.store),
            methods=["GET", "HEAD"],
            include_in_schema=False,
        )

    def error_boundary(self, stage: Stage) -> None:
        register_exception_handlers(self.app)


INSTALLERS: Dict[StageKind, Callable[[_Installer, Stage], None]] = {
    StageKind.NONCE_INJECTOR: _Installer.middleware_stage,
    StageKind.SECURITY_HEADERS: _Installer.middleware_stage,
    StageKind.COMPRESSION: _Installer.middleware_stage,
    StageKind.SERVICE_WORKER_ROUTE: _Installer.service_worker,
    StageKind.OFFLINE_PAGE_ROUTE: _Installer.offline_page,
    StageKind.STATIC_BUNDLE_SERVER: _Installer.static_bundle,
    StageKind.STATIC_PUBLIC_SERVER: _Installer.static_public,
    StageKind.QUERY_ENDPOINT: _Installer.query_endpoint,
    StageKind.RENDER_ENDPOINT: _Installer.render_endpoint,
    StageKind.ERROR_BOUNDARY: _Installer.error_boundary,
}


def build_application(
    pipeline: Pipeline,
    store: DataStore,
    flags: EnvironmentFlags,
    lifespan: Optional[Callable] = None,
) -> FastAPI:
    """
    Creates the FastAPI application serving `pipeline`.

    The interactive docs and OpenAPI routes are disabled; they would otherwise be
    registered ahead of the pipeline and shadow the render catch-all.

    Args:
        pipeline (Pipeline): Stages from `app.core.pipeline.assemble`.
        store (DataStore): Data store handle for the query and render stages.
        flags (EnvironmentFlags): Process environment flags.
        lifespan (Optional[Callable]): Startup/shutdown context manager.

    Returns:
        FastAPI: The application.
    """
    app = FastAPI(
        debug=False,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.pipeline = pipeline
    _Installer(app, store, flags).install(pipeline)
    return app


class ListeningServer(uvicorn.Server):
    """uvicorn server that logs a single confirmation line once its socket is bound."""

    async def startup(self, sockets=None) -> None:
        await super().startup(sockets=sockets)
        if self.started:
            logger.info("%s Server listening on port %s", SUCCESS_MARK, self.config.port)


def create_server(app: FastAPI, host: str, port: int) -> ListeningServer:
    """
    Creates the listener for `app`.

    uvicorn's own logging config is disabled so its records use the handlers
    from `setup_logging()`, and the `server` header is not sent.
    """
    server_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        lifespan="on",
        log_config=None,
        server_header=False,
    )
    return ListeningServer(server_config)


async def serve(app: FastAPI, host: str, port: int) -> None:
    """Binds `host:port` and serves `app` until the process is asked to stop."""
    await create_server(app, host, port).serve()
