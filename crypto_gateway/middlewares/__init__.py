from .db_session import SESSION_KEY, DbSessionMiddleware
from .errors import error_response, json_error_middleware

__all__ = ["DbSessionMiddleware", "SESSION_KEY", "error_response", "json_error_middleware"]
