import logging
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from medinexa.core.logger import logger

class LogMiddleware(BaseHTTPMiddleware):
    """One log line per request; rejected queue actions (4xx/5xx) log at WARNING."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            level,
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"in {elapsed * 1000:.1f}ms",
        )
        return response
