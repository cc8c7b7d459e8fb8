"""
Middleware package for the Rental Marketplace API.
"""

from .request_context import RequestContextMiddleware, FixedWindowRateLimiter

__all__ = ["RequestContextMiddleware", "FixedWindowRateLimiter"]
