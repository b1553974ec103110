"""
Application middleware for request/response processing
"""

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable
import logging
import time
import uuid

from .config import settings

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID to each request"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log all requests and responses"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                "Request failed: %s %s %s (%.3fs)",
                request.method, request.url.path, e, process_time
            )
            raise

        process_time = time.time() - start_time
        logger.info(
            "%s %s -> %s (%.3fs) request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            process_time,
            getattr(request.state, "request_id", "N/A"),
        )
        response.headers["X-Process-Time"] = f"{process_time:.4f}"
        return response


def setup_middleware(app: FastAPI) -> None:
    """Register middleware; the last added runs first"""
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
