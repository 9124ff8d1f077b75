"""FastAPI application routes, middleware, and metrics."""

import time
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from structlog.contextvars import bind_contextvars, clear_contextvars

from destinations.autocomplete_service.autocomplete import (
    AutocompleteServiceError,
    InvalidInputError,
    UpstreamMalformedError,
    UpstreamUnavailableError,
    list_cities,
    search_cities,
)
from destinations.health.health_check import is_autocomplete_api_available
from destinations.logging_config import logger
from destinations.models.city import City
from destinations.models.health import Dependencies, HealthResponse

app = FastAPI(title="destinations")

REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "path", "status_code"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "HTTP request duration in seconds", ["path"]
)
UNMATCHED_PATH = "<unmatched>"


@app.middleware("http")
async def request_logging(request: Request, call_next):
    """Log request details, attach a request ID, and record metrics.

    Metrics are labelled with the route template, so every search string
    shares the ``/locations/{search_string}`` series and paths with no
    matching route share the ``<unmatched>`` series.

    Args:
        request: Incoming HTTP request.
        call_next: FastAPI handler for the next middleware/app.

    Returns:
        The response produced by the downstream handler.
    """
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    bind_contextvars(request_id=request_id)
    start = time.perf_counter()
    response = None
    try:
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response
    finally:
        duration_s = time.perf_counter() - start
        status_code = getattr(response, "status_code", 500)
        route = request.scope.get("route")
        path = getattr(route, "path", UNMATCHED_PATH)
        logger.info(
            "HTTP_REQUEST",
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            duration_ms=round(duration_s * 1000, 2),
        )
        REQUEST_COUNT.labels(
            method=request.method, path=path, status_code=status_code
        ).inc()
        REQUEST_LATENCY.labels(path=path).observe(duration_s)
        clear_contextvars()


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    """Convert rejected search strings into 400 responses."""
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(UpstreamMalformedError)
async def upstream_malformed_handler(request: Request, exc: UpstreamMalformedError):
    """Convert unreadable upstream payloads into 502 responses.

    Args:
        request: Incoming HTTP request.
        exc: Raised payload error.

    Returns:
        A JSON response with the error detail.
    """
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(UpstreamUnavailableError)
async def upstream_unavailable_handler(
    request: Request, exc: UpstreamUnavailableError
):
    """Convert upstream outages and bad statuses into 503 responses.

    Args:
        request: Incoming HTTP request.
        exc: Raised availability error.

    Returns:
        A JSON response with the error detail.
    """
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(AutocompleteServiceError)
async def autocomplete_service_error_handler(
    request: Request, exc: AutocompleteServiceError
):
    """Convert any other autocomplete service error into a 500 response."""
    logger.error("AUTOCOMPLETE_SERVICE_ERROR", error=str(exc))
    return JSONResponse(status_code=500, content={"detail": "Unexpected error"})


@app.get("/locations", response_model=list[City])
def get_locations():
    """List cities for an empty query, skipping names that contain "School".

    Returns:
        City models in upstream order.
    """
    return list_cities()


@app.get("/locations/{search_string}", response_model=list[City])
def get_locations_for_search(search_string: str):
    """List every city suggested for the search string.

    Args:
        search_string: Text to autocomplete, taken from the path.

    Returns:
        City models in upstream order.
    """
    return search_cities(search_string)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Report API health and dependency availability."""
    return HealthResponse(
        status="ok",
        dependencies=Dependencies(
            autocomplete_api=await is_autocomplete_api_available()
        ),
    )


@app.get("/metrics")
async def metrics():
    """Expose Prometheus metrics for scraping."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
