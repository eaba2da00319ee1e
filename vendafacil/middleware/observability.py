from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from vendafacil.core.metrics import request_metrics
from vendafacil.core.request_context import clear_request_context, set_request_context

logger = logging.getLogger(__name__)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        set_request_context(request_id=request_id, channel="http")

        status_code = 500
        endpoint = request.url.path
        method = request.method

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            store_id = _extract_store_id(request)
            member_id = _extract_member_id(request)
            duration_ms = round((time.perf_counter() - start) * 1000, 2)

            set_request_context(store_id=store_id, member_id=member_id)
            request_metrics.observe(
                endpoint=_route_template(request),
                method=method,
                status_code=status_code,
                duration_ms=duration_ms,
                store_id=store_id,
            )

            logger.info(
                "request completed",
                extra={
                    "request_id": request_id,
                    "store_id": store_id,
                    "member_id": member_id,
                    "endpoint": endpoint,
                    "method": method,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                },
            )

            if "response" in locals():
                response.headers["X-Request-ID"] = request_id

            clear_request_context()


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or request.url.path


def _extract_store_id(request: Request) -> str | None:
    store = request.path_params.get("store_id")
    if store:
        return str(store)
    session = getattr(request.state, "staff_session", None)
    if session and session.get("store_id") is not None:
        return str(session["store_id"])
    return None


def _extract_member_id(request: Request) -> str | None:
    session = getattr(request.state, "staff_session", None)
    if not session or session.get("member_id") is None:
        return None
    return str(session["member_id"])
