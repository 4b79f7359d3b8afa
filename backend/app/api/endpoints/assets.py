"""
File-Serving Route Stages

This module provides the routes that answer requests straight from disk:

- `StaticDirectoryRoute`: serves any file below a directory under a URL prefix.
  It only claims a request when the file actually exists, so requests for
  unknown paths fall through to the next route (GraphQL, then the render
  catch-all). Used for both the client bundle and the public assets.
- `build_file_endpoint`: endpoint for one fixed file (service worker script,
  offline page). A missing file is reported as a 404 to the error boundary.

Notes:
------
- Only `GET` and `HEAD` are served.
- Paths escaping the directory and dot-files never match.
"""

from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Tuple

from fastapi import HTTPException
from starlette.responses import FileResponse
from starlette.routing import BaseRoute, Match, NoMatchFound
from starlette.types import Receive, Scope, Send

SERVED_METHODS = ("GET", "HEAD")


class StaticDirectoryRoute(BaseRoute):
    """
    Route serving files from `directory` for paths below `prefix`.

    Args:
        prefix (str): URL prefix, e.g. `/client/` or `/`.
        directory (Path): Directory holding the files.
        headers (Optional[Dict[str, str]]): Extra response headers (caching).
        name (Optional[str]): Route name, for debugging.
    """

    def __init__(
        self,
        prefix: str,
        directory: Path,
        headers: Optional[Dict[str, str]] = None,
        name: Optional[str] = None,
    ) -> None:
        self.prefix = prefix if prefix.endswith("/") else f"{prefix}/"
        self.directory = Path(directory)
        self.headers = dict(headers or {})
        self.name = name

    def __repr__(self) -> str:
        return f"{type(self).__name__}(prefix={self.prefix!r}, directory={str(self.directory)!r})"

    def resolve(self, path: str) -> Optional[Path]:
        """
        Maps a request path to an existing file, or None when this route does not serve it.
        """
        if not path.startswith(self.prefix):
            return None
        relative = path[len(self.prefix):]
        parts = [part for part in relative.split("/") if part]
        if not parts or any(part.startswith(".") for part in parts):
            return None

        root = self.directory.resolve()
        candidate = root.joinpath(*parts).resolve()
        try:
            candidate.relative_to(root)
        except ValueError:
            return None
        return candidate if candidate.is_file() else None

    def matches(self, scope: Scope) -> Tuple[Match, Scope]:
        if scope["type"] != "http" or scope["method"] not in SERVED_METHODS:
            return Match.NONE, {}
        if self.resolve(scope["path"]) is None:
            return Match.NONE, {}
        return Match.FULL, {}

    def url_path_for(self, name: str, **path_params: str):
        raise NoMatchFound(name, path_params)

    async def handle(self, scope: Scope, receive: Receive, send: Send) -> None:
        file_path = self.resolve(scope["path"])
        if file_path is None:
            # removed between match and handle
            raise HTTPException(status_code=404)
        response = FileResponse(file_path, headers=self.headers)
        await response(scope, receive, send)


def build_file_endpoint(
    file_path: Path,
    media_type: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Callable[[], Awaitable[FileResponse]]:
    """
    Creates an endpoint returning one file produced by the client build.

    Args:
        file_path (Path): The file to serve.
        media_type (Optional[str]): Content type; guessed from the name when omitted.
        headers (Optional[Dict[str, str]]): Extra response headers.

    Returns:
        Callable[[], Awaitable[FileResponse]]: Endpoint suitable for `add_api_route`.
    """

    async def serve_file() -> FileResponse:
        if not file_path.is_file():
            raise HTTPException(status_code=404)
        return FileResponse(file_path, media_type=media_type, headers=headers)

    return serve_file
