from __future__ import annotations

import time
import uuid
from collections.abc import Callable

import sentry_sdk
import structlog
from fastapi import Request, Response

REQUEST_ID_HEADER = "X-Request-ID"

logger = structlog.get_logger(__name__)


def _tag_sentry_scope(rid: str, request: Request) -> None:
    scope = sentry_sdk.get_isolation_scope()
    scope.set_tag("request_id", rid)
    scope.set_tag("path", request.url.path)
    scope.set_tag("method", request.method)


async def request_id_middleware(request: Request, call_next: Callable) -> Response:
    """Attach/propagate Request-ID and emit structured access log.

    - Prefer inbound X-Request-ID; generate UUID4 if absent
    - Bind request_id, path, method to contextvars so service logs include it
    - Emit one-line access log event="http_request"
    - Always set X-Request-ID on the response

    Query strings are never logged: they carry caller coordinates.
    """
    rid = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    structlog.contextvars.bind_contextvars(
        request_id=rid, path=request.url.path, method=request.method
    )
    _tag_sentry_scope(rid, request)

    client_ip = (request.client.host if request.client else None) or "-"
    start_ns = time.perf_counter_ns()
    try:
        response = await call_next(request)
    except Exception:
        logger.error(
            "http_request",
            status=500,
            duration_ms=round((time.perf_counter_ns() - start_ns) / 1_000_000.0, 3),
            client_ip=client_ip,
            exc_info=True,
        )
        raise
    else:
        logger.info(
            "http_request",
            status=response.status_code,
            duration_ms=round((time.perf_counter_ns() - start_ns) / 1_000_000.0, 3),
            client_ip=client_ip,
        )
        response.headers[REQUEST_ID_HEADER] = rid
        return response
    finally:
        # Clear per-request bindings to avoid leakage across tasks
        structlog.contextvars.clear_contextvars()
