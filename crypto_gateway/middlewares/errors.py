import logging

from aiohttp import web

from .db_session import Handler

logger = logging.getLogger(__name__)


def error_response(status: int, message: str, error: str | None = None) -> web.Response:
    payload = {"success": False, "message": message}
    if error:
        payload["error"] = error
    return web.json_response(payload, status=status)


@web.middleware
async def json_error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Render every failure as ``{"success": false, "message", "error"}``."""
    try:
        return await handler(request)
    except web.HTTPException as exc:
        if exc.status < 400:
            raise
        return error_response(exc.status, exc.reason)
    except Exception as exc:
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return error_response(500, "Internal server error", str(exc))
