from aiohttp import web

from .payments import API_PREFIX, PAYMENT_SERVICE_KEY, routes


def setup_routes(app: web.Application) -> None:
    """Register all HTTP routes."""
    app.add_routes(routes)


__all__ = ["API_PREFIX", "PAYMENT_SERVICE_KEY", "setup_routes"]
