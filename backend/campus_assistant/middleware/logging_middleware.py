"""Request logging middleware"""
import time
import logging
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("api.request")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and latency of every request"""

    skip_paths: tuple[str, ...] = ("/health", "/docs", "/redoc", "/openapi.json", "/favicon.ico")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"
        should_log = not any(path.startswith(p) for p in self.skip_paths)

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.exception(f"{method} {path} - ERROR - {duration_ms:.2f}ms - {client_ip} - {str(e)}")
            raise

        duration_ms = (time.time() - start_time) * 1000
        if should_log:
            status_code = response.status_code
            log_msg = f"{method} {path} - {status_code} - {duration_ms:.2f}ms - {client_ip}"
            if status_code >= 500:
                logger.error(log_msg)
            elif status_code >= 400:
                logger.warning(log_msg)
            else:
                logger.info(log_msg)

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response
