"""Prometheus metrics for the chat engine and its HTTP surface."""

import time
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.responses import Response

# ----- Domain -----

CHATS_CREATED = Counter(
    "chatledger_chats_created_total",
    "Chats created, split by whether the client chose the id",
    ["client_supplied"],
)
MESSAGES_APPENDED = Counter(
    "chatledger_messages_appended_total",
    "Messages appended to chat logs",
    ["role"],
)
REPLY_FAILURES = Counter(
    "chatledger_reply_failures_total",
    "Sends whose reply generation failed after the user turn was stored",
    ["reason"],
)
REPLY_LATENCY = Histogram(
    "chatledger_reply_duration_seconds",
    "Time spent waiting for the reply generator",
)

# ----- HTTP -----

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
REQUEST_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "In-progress HTTP requests",
    ["method"],
)


def route_template(request: Request) -> str:
    """Templated route path, so chat ids do not explode label cardinality."""
    path = getattr(request.scope.get("route"), "path", None)
    return path if isinstance(path, str) and path else "unknown"


async def metrics_endpoint(request: Request) -> Response:
    _ = request
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def setup_metrics(app: FastAPI) -> None:
    """Instrument every request and expose ``/metrics``."""

    @app.middleware("http")
    async def record_request(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        in_progress = REQUEST_IN_PROGRESS.labels(method=request.method)
        in_progress.inc()
        started = time.perf_counter()
        status_code = "500"
        try:
            response = await call_next(request)
            status_code = str(response.status_code)
            return response
        finally:
            path = route_template(request)
            REQUEST_LATENCY.labels(method=request.method, path=path).observe(
                time.perf_counter() - started
            )
            REQUEST_COUNT.labels(method=request.method, path=path, status_code=status_code).inc()
            in_progress.dec()

    app.add_route("/metrics", metrics_endpoint, methods=["GET"], include_in_schema=False)
