"""
Server-Side Render Endpoint

This module defines the catch-all route that answers every `GET` request not
claimed by an earlier stage with the application's HTML shell.

Key Responsibilities:
---------------------
- Read the client bundle's asset manifest (`assets.json`) to find the entry
  script and stylesheet URLs.
- Preload the latest posts from the data store and embed them as the initial
  application state (skipped when SSR is disabled).
- Render `templates/index.html` with the request nonce applied to inline and
  bundle scripts, and the service worker registration when it is installed.

Main Components:
----------------
1. **AssetManifest**: script and stylesheet URLs of the client entry chunk.
2. **load_asset_manifest**: parses the bundler's manifest, with fallbacks.
3. **build_render_endpoint**: creates the endpoint for one `render-endpoint` stage.

Note:
-----
Data store failures raised while preloading propagate to the error boundary,
which answers with a 503.
"""

import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, NamedTuple

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.templating import Jinja2Templates
from starlette.responses import Response

from app.core.config import TEMPLATES_PATH
from app.core.data_types import Stage
from app.data.connection import DataStore
from app.data.db_operations import list_posts

logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(TEMPLATES_PATH))

ENTRY_CHUNK = "index"


class AssetManifest(NamedTuple):
    """
    Client entry chunk URLs.

    Attributes:
        scripts (List[str]): Script URLs, in load order.
        styles (List[str]): Stylesheet URLs.
    """
    scripts: List[str]
    styles: List[str]


def load_asset_manifest(assets_file: Path, web_path: str) -> AssetManifest:
    """
    Reads the entry chunk from the bundler's manifest.

    The manifest maps chunk names to `{"js": url, "css": url}`. When the file is
    missing or unreadable the conventional `{web_path}index.js` is used.

    Args:
        assets_file (Path): Location of `assets.json`.
        web_path (str): Public URL prefix of the client bundle.

    Returns:
        AssetManifest: URLs for the entry chunk.
    """
    fallback = AssetManifest(scripts=[f"{web_path}{ENTRY_CHUNK}.js"], styles=[])
    try:
        manifest = json.loads(assets_file.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.debug("No asset manifest at %s; using %s", assets_file, fallback.scripts[0])
        return fallback
    except (OSError, ValueError) as exc:
        logger.warning("Could not read asset manifest %s: %s", assets_file, exc)
        return fallback

    entry = manifest.get(ENTRY_CHUNK) if isinstance(manifest, dict) else None
    if not isinstance(entry, dict) or not entry.get("js"):
        logger.warning("Asset manifest %s has no '%s' entry chunk", assets_file, ENTRY_CHUNK)
        return fallback

    return AssetManifest(
        scripts=[entry["js"]],
        styles=[entry["css"]] if entry.get("css") else [],
    )


def serialize_state(state: Dict[str, Any]) -> str:
    """JSON for embedding inside a `<script>` element."""
    return json.dumps(jsonable_encoder(state)).replace("</", "<\\/")


def build_render_endpoint(stage: Stage, store: DataStore) -> Callable[..., Awaitable[Response]]:
    """
    Creates the catch-all render endpoint for one `render-endpoint` stage.

    Args:
        stage (Stage): The assembled stage and its options.
        store (DataStore): Data store handle used for the preloaded state.

    Returns:
        Callable[..., Awaitable[Response]]: Endpoint suitable for `add_api_route`.
    """
    options = stage.options
    assets = load_asset_manifest(options["assets_file"], options["web_path"])

    async def render_page(request: Request, path: str) -> Response:
        state: Dict[str, Any] = {"posts": []}
        if not options["disable_ssr"]:
            state["posts"] = await list_posts(store, options["preload_count"])

        logger.debug("Rendering /%s", path)
        return templates.TemplateResponse(
            request,
            "index.html",
            {
                "title": options["title"],
                "description": options["description"],
                "nonce": getattr(request.state, "nonce", None),
                "scripts": assets.scripts,
                "styles": assets.styles,
                "service_worker_path": options["service_worker_path"],
                "ssr": not options["disable_ssr"],
                "state_json": serialize_state(state),
            },
        )

    return render_page
