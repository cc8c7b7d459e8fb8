"""
Request middleware: request ids, body size limit, per-client rate limiting and access logging.
"""

from typing import Callable, Dict, Tuple
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import logging
import time
import uuid

from rental_api.services.error_handler import ErrorHandlerService
from rental_api.utils.exceptions import APIException, BadRequestError, RateLimitExceededError

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    """
    In-process fixed window counter keyed by client address.
    """

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._windows: Dict[str, Tuple[float, int]] = {}

    def hit(self, client: str, now: float) -> None:
        """
        Count one request for the client.

        Raises:
            RateLimitExceededError: If the client used up the current window
        """
        self._evict(now)
        window_start, count = self._windows.get(client, (now, 0))
        if now - window_start >= self.window_seconds:
            window_start, count = now, 0

        if count >= self.max_requests:
            retry_after = max(1, int(self.window_seconds - (now - window_start)))
            raise RateLimitExceededError(retry_after)

        self._windows[client] = (window_start, count + 1)

    def _evict(self, now: float) -> None:
        stale = [
            client for client, (start, _) in self._windows.items()
            if now - start > self.window_seconds * 2
        ]
        for client in stale:
            del self._windows[client]


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an id, enforces the body size limit and
    optional rate limit, and logs method, path, status and duration.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_request_size: int = 1024 * 1024,
        enable_rate_limiting: bool = False,
        rate_limit_requests: int = 100,
        rate_limit_window: int = 60
    ):
        super().__init__(app)
        self.max_request_size = max_request_size
        self.rate_limiter = (
            FixedWindowRateLimiter(rate_limit_requests, rate_limit_window) if enable_rate_limiting else None
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        start_time = time.perf_counter()

        try:
            self._check_size(request)
            if self.rate_limiter:
                self.rate_limiter.hit(self._client_ip(request), time.monotonic())
        except APIException as exc:
            response = ErrorHandlerService.handle_api_exception(exc, request)
            self._log(request, response.status_code, request_id, start_time)
            return response

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        self._log(request, response.status_code, request_id, start_time)
        return response

    def _check_size(self, request: Request) -> None:
        content_length = request.headers.get("content-length")
        if not content_length:
            return
        try:
            size = int(content_length)
        except ValueError:
            raise BadRequestError("Invalid content-length header")
        if size > self.max_request_size:
            raise BadRequestError(
                f"Request size {size} bytes exceeds maximum allowed size {self.max_request_size} bytes"
            )

    @staticmethod
    def _client_ip(request: Request) -> str:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    @staticmethod
    def _log(request: Request, status_code: int, request_id: str, start_time: float) -> None:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"[{request_id}] {request.method} {request.url.path} -> {status_code} ({duration_ms:.1f}ms)",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 1),
            }
        )
