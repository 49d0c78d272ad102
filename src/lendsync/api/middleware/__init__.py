"""API middleware package."""

from src.lendsync.api.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
