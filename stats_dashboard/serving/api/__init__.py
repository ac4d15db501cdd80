"""
REST API Module
"""
from .middleware import RequestLoggingMiddleware
from .routes import health_router, stats_router

__all__ = ["RequestLoggingMiddleware", "health_router", "stats_router"]
