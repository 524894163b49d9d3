"""Per-request correlation and access logging for the QuoteFlow API."""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging_config import get_logger
from .request_id import generate_request_id, set_owner_id, set_request_id

logger = get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Bind the request ID and caller to the logging context.

    A caller-supplied X-Request-ID is reused so gateway and API lines share
    one ID; it is echoed back on the response. The owner comes from the
    unverified X-User-ID header and is only used for log correlation.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        set_owner_id(request.headers.get("X-User-ID"))

        route = {"method": request.method, "path": request.url.path}
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"{request.method} {request.url.path} raised {type(e).__name__}",
                extra={**route, "duration_ms": round((time.perf_counter() - started) * 1000, 2)},
                exc_info=True
            )
            raise

        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={
                **route,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            }
        )
        response.headers["X-Request-ID"] = request_id
        return response
