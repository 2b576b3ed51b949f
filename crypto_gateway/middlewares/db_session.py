from typing import Awaitable, Callable

from aiohttp import web
from sqlalchemy.ext.asyncio import async_sessionmaker

SESSION_KEY = "db_session"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


class DbSessionMiddleware:
    """Middleware for injecting database session into handlers."""

    __middleware_version__ = 1

    def __init__(self, session_pool: async_sessionmaker) -> None:
        """Initialize with session pool."""
        self._session_pool = session_pool

    async def __call__(self, request: web.Request, handler: Handler) -> web.StreamResponse:
        """Expose a session as ``request["db_session"]`` and commit or roll back around the handler."""
        async with self._session_pool() as session:
            request[SESSION_KEY] = session
            try:
                response = await handler(request)
            except Exception:
                if session.in_transaction():
                    await session.rollback()
                raise
            if session.in_transaction():
                if response.status < 400:
                    await session.commit()
                else:
                    await session.rollback()
            return response
