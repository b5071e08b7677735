from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.stockflow.core.logging import log_json
from app.stockflow.core.metrics import metrics
from app.stockflow.db.session import get_db_time_ms, start_db_timer, stop_db_timer

logger = logging.getLogger("stockflow.request")

METRICS_ROUTE = "/stockflow/ops/metrics"


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def build_request_log_payload(
    *,
    request: Request,
    response: Response | None,
    latency_ms: float,
    db_time_ms: float | None,
) -> dict:
    state = request.state
    return {
        "event": "http_request",
        "trace_id": getattr(state, "trace_id", ""),
        "user_id": getattr(state, "user_id", None),
        "method": request.method,
        "route": _route_template(request),
        "transfer_id": request.path_params.get("transfer_id"),
        "status_code": response.status_code if response is not None else 500,
        "latency_ms": round(latency_ms, 2),
        "db_time_ms": None if db_time_ms is None else round(db_time_ms, 2),
        "error_code": getattr(state, "error_code", None),
        "error_class": getattr(state, "error_class", None),
    }


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Outermost middleware: one log line and one metrics sample per request."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        token = start_db_timer()
        response: Response | None = None
        try:
            response = await call_next(request)
            return response
        finally:
            latency_ms = (time.perf_counter() - started) * 1000
            db_time_ms = get_db_time_ms()
            stop_db_timer(token)
            self._finish(request, response, latency_ms, db_time_ms)

    @staticmethod
    def _finish(request: Request, response: Response | None, latency_ms: float, db_time_ms: float | None) -> None:
        payload = build_request_log_payload(
            request=request,
            response=response,
            latency_ms=latency_ms,
            db_time_ms=db_time_ms,
        )
        if payload["route"] == METRICS_ROUTE:
            return
        log_json(logger, payload, level=logging.WARNING if payload["status_code"] >= 500 else logging.INFO)
        metrics.record_http_request(
            route=payload["route"],
            method=payload["method"],
            status_code=payload["status_code"],
            latency_ms=latency_ms,
        )
