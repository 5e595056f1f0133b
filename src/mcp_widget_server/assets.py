"""Static asset gateway.

Serves the frontend build output under ``/assets/`` with path
containment, extension based content types and long-lived caching.
Asset requests never touch a session.
"""

from __future__ import annotations

import logging
import stat
from pathlib import Path

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import FileResponse, PlainTextResponse, Response

from mcp_widget_server.security.validator import contained_path

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".js": "application/javascript",
    ".css": "text/css",
    ".html": "text/html",
    ".json": "application/json",
    ".map": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"
CACHE_CONTROL = "public, max-age=31536000, immutable"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "content-type",
    "Cross-Origin-Resource-Policy": "cross-origin",
}


def content_type_for(path: Path) -> str:
    """Map a file extension to its content type."""
    return CONTENT_TYPES.get(path.suffix.lower(), DEFAULT_CONTENT_TYPE)


class StaticAssetGateway:
    """Serves files from one base directory.

    The containment check runs on the resolved path, so ``..`` segments
    and symlinks cannot escape the base directory.
    """

    def __init__(self, base_dir: Path) -> None:
        """Initialize the gateway.

        Args:
            base_dir: Directory holding the built assets. It need not
                exist yet; every request then answers 404.
        """
        self.base_dir = Path(base_dir)

    def resolve(self, relative_path: str) -> Path | None:
        """Return the contained path for a request, or None to answer 404.

        The path is not checked for existence here; ``response_for`` stats
        it before serving.
        """
        if not relative_path:
            return None
        return contained_path(relative_path, self.base_dir)

    async def response_for(self, method: str, relative_path: str) -> Response:
        """Build the response for one asset request.

        Args:
            method: HTTP method.
            relative_path: Path below ``/assets/``.

        Returns:
            204 for OPTIONS, the file streamed for GET, 404 otherwise, 500
            when the file cannot be read.
        """
        if method == "OPTIONS":
            return Response(status_code=204, headers=CORS_HEADERS)
        if method not in ("GET", "HEAD"):
            return PlainTextResponse("Not Found", status_code=404)

        path = self.resolve(relative_path)
        if path is None:
            return PlainTextResponse("Not Found", status_code=404)
        try:
            stat_result = await run_in_threadpool(path.stat)
        except (FileNotFoundError, NotADirectoryError):
            return PlainTextResponse("Not Found", status_code=404)
        except OSError:
            logger.exception("Failed to serve asset %s", relative_path)
            return PlainTextResponse("Failed to read asset", status_code=500)
        if not stat.S_ISREG(stat_result.st_mode):
            return PlainTextResponse("Not Found", status_code=404)

        headers = {"Cache-Control": CACHE_CONTROL, **CORS_HEADERS}
        return FileResponse(
            path, stat_result=stat_result, media_type=content_type_for(path), headers=headers
        )

    async def endpoint(self, request: Request) -> Response:
        """Starlette endpoint for ``/assets/{path:path}``."""
        return await self.response_for(request.method, request.path_params.get("path", ""))
