"""Middleware for the local RPC server."""

from __future__ import annotations

import json

from aiohttp import web

from log_config.logger import get_logger

logger = get_logger(__name__)


class BadRequest(Exception):
    """Raised by handlers for malformed request bodies; rendered as HTTP 400."""


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Render handler failures as JSON errors instead of HTML pages."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except BadRequest as e:
        logger.warning(f"Bad request {request.method} {request.path}: {e}")
        return web.json_response({"error": str(e)}, status=400)
    except Exception as e:
        logger.opt(exception=e).error(f"Unhandled error in {request.method} {request.path}")
        return web.json_response({"error": "Internal error"}, status=500)


@web.middleware
async def security_headers_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Add security headers to all responses."""
    response = await handler(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "no-referrer"
    return response


async def read_json(request: web.Request) -> dict:
    """Parse the request body as a JSON object; an empty body is ``{}``."""
    if not request.can_read_body:
        return {}
    text = await request.text()
    if not text.strip():
        return {}
    try:
        data = json.loads(text)
    except ValueError as e:
        raise BadRequest(f"Invalid JSON body: {e}") from e
    if not isinstance(data, dict):
        raise BadRequest("JSON body must be an object")
    return data


__all__ = [
    "BadRequest",
    "error_middleware",
    "read_json",
    "security_headers_middleware",
]
