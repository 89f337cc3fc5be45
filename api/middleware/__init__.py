from .auth import require_role
from .logging import RequestLoggingMiddleware

__all__ = ["require_role", "RequestLoggingMiddleware"]
