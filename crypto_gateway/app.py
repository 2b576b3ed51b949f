"""aiohttp application factory."""

from __future__ import annotations

from aiohttp import web
from sqlalchemy.ext.asyncio import async_sessionmaker

from crypto_gateway.handlers import PAYMENT_SERVICE_KEY, setup_routes
from crypto_gateway.middlewares import DbSessionMiddleware, json_error_middleware
from crypto_gateway.payments import CryptoPaymentService


def create_app(service: CryptoPaymentService, sessionmaker: async_sessionmaker) -> web.Application:
    app = web.Application(
        middlewares=[json_error_middleware, DbSessionMiddleware(sessionmaker)],
    )
    app[PAYMENT_SERVICE_KEY] = service
    setup_routes(app)
    return app
