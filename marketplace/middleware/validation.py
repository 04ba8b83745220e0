"""
Request middleware: request ids, size limits, optional rate limiting and
request/response logging.
"""

from typing import Callable, Dict, Any
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import logging
import time
import uuid

from marketplace.services.error_handler import ErrorHandlerService
from marketplace.utils.exceptions import APIException, BadRequestError, RateLimitExceededError

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPES = ("application/json", "multipart/form-data", "application/x-www-form-urlencoded")


class ValidationMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with a short id used in logs and error bodies, rejects
    oversized or mistyped bodies and applies a fixed-window rate limit per client.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_request_size: int = 10 * 1024 * 1024,
        enable_request_logging: bool = True,
        enable_rate_limiting: bool = False,
        rate_limit_requests: int = 100,
        rate_limit_window: int = 60
    ):
        super().__init__(app)
        self.max_request_size = max_request_size
        self.enable_request_logging = enable_request_logging
        self.enable_rate_limiting = enable_rate_limiting
        self.rate_limit_requests = rate_limit_requests
        self.rate_limit_window = rate_limit_window
        self.request_counts: Dict[str, Dict[str, Any]] = {}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        start_time = time.time()

        try:
            self._validate_request_size(request)
            if self.enable_rate_limiting:
                self._apply_rate_limiting(request)
            self._validate_content_type(request)
        except APIException as exc:
            response = ErrorHandlerService.handle_api_exception(exc, request)
            response.headers["X-Request-ID"] = request_id
            return response

        if self.enable_request_logging:
            logger.info(
                f"Request [{request_id}]: {request.method} {request.url.path}",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "client_ip": self._get_client_ip(request),
                }
            )

        response = await call_next(request)

        processing_time = time.time() - start_time
        if self.enable_request_logging:
            logger.info(
                f"Response [{request_id}]: {response.status_code} - {processing_time:.3f}s",
                extra={
                    "request_id": request_id,
                    "status_code": response.status_code,
                    "processing_time": processing_time,
                }
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Processing-Time"] = f"{processing_time:.3f}"
        return response

    def _validate_request_size(self, request: Request) -> None:
        """
        Raises:
            BadRequestError: If the declared body size exceeds the limit
        """
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

    def _validate_content_type(self, request: Request) -> None:
        if request.method not in ("POST", "PUT", "PATCH"):
            return

        content_type = request.headers.get("content-type", "")
        if content_type and request.url.path.startswith("/api/") and not content_type.startswith(JSON_CONTENT_TYPES):
            raise BadRequestError(f"Unsupported content type '{content_type}'. Expected 'application/json'")

    def _apply_rate_limiting(self, request: Request) -> None:
        """
        Raises:
            RateLimitExceededError: If the client used up its window
        """
        client_ip = self._get_client_ip(request)
        current_time = time.time()
        self._clean_rate_limit_data(current_time)

        client_data = self.request_counts.setdefault(client_ip, {"count": 0, "window_start": current_time})

        if current_time - client_data["window_start"] > self.rate_limit_window:
            client_data["count"] = 0
            client_data["window_start"] = current_time

        if client_data["count"] >= self.rate_limit_requests:
            retry_after = int(self.rate_limit_window - (current_time - client_data["window_start"]))
            raise RateLimitExceededError(max(retry_after, 1))

        client_data["count"] += 1

    def _get_client_ip(self, request: Request) -> str:
        # Proxies put the original client first
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"

    def _clean_rate_limit_data(self, current_time: float) -> None:
        expired_clients = [
            client_ip for client_ip, data in self.request_counts.items()
            if current_time - data["window_start"] > self.rate_limit_window * 2
        ]
        for client_ip in expired_clients:
            del self.request_counts[client_ip]
