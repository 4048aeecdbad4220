"""
Main FastAPI application for Directory Service.

This file wires together all layers:
- Domain: Entities, decoding rules and exceptions
- Cache: Partitioned in-memory record store
- Infrastructure: Notion API client
- Services / Workers: Fetching and periodic refresh
- Routers: HTTP endpoints
"""

import logging
import os
import sys
import time
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from . import __version__
from .cache.record_cache import RecordCache
from .config import get_settings
from .domain.entities import EntityKind
from .domain.exceptions import RecordNotFoundException
from .infrastructure.notion_client import NotionClient
from .metrics import (http_request_duration_seconds, http_requests_total,
                      metrics_response)
from .routers import health_router, records_router
from .services.fetcher import RecordFetcher
from .workers.refresh_worker import RefreshWorker

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


def configure_logging(level: str) -> None:
    """Route stdlib and structlog output to stdout at the configured level."""
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the cache, the Notion client and the refresh worker, runs the
    initial refresh cycle and tears everything down on shutdown. Missing
    credentials or database ids abort startup.
    """
    try:
        settings = get_settings()
    except ValidationError as e:
        logger.error(
            "Missing required configuration, refusing to start",
            fields=[".".join(str(loc) for loc in error["loc"]) for error in e.errors()],
        )
        raise

    configure_logging(settings.LOG_LEVEL)
    logger.info("Starting Directory Service...", version=__version__)

    cache = RecordCache()
    client = NotionClient(
        integration_secret=settings.INTEGRATION_SECRET,
        base_url=settings.NOTION_API_URL,
        notion_version=settings.NOTION_VERSION,
        timeout_seconds=settings.NOTION_TIMEOUT_SECONDS,
        page_size=settings.NOTION_PAGE_SIZE,
        rate_limit_requests=settings.NOTION_RATE_LIMIT_REQUESTS,
        rate_limit_window=settings.NOTION_RATE_LIMIT_WINDOW,
    )
    fetcher = RecordFetcher(
        client,
        cache,
        settings.database_ids,
        fetch_article_content=settings.FETCH_ARTICLE_CONTENT,
    )
    worker = RefreshWorker(
        fetcher,
        cache,
        interval_seconds=settings.REFRESH_INTERVAL_SECONDS,
        step_delay_seconds=settings.REFRESH_STEP_DELAY_MS / 1000,
    )

    app.state.cache = cache
    app.state.refresh_worker = worker

    await worker.start()
    logger.info("Directory Service started", ready=worker.is_ready())

    yield

    # Shutdown
    logger.info("Shutting down Directory Service...")
    await worker.stop()
    await client.close()
    logger.info("Directory Service shut down complete")


def create_app() -> FastAPI:
    """
    Application factory.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="Directory Service",
        description="Cached read-only API over the club's Notion databases",
        version=__version__,
        lifespan=lifespan,
    )

    # Read straight from the environment: the app is built before Settings can load
    cors_origins = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Add request ID for log correlation."""
        request_id = request.headers.get("X-Request-ID", f"req-{id(request)}")
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        structlog.contextvars.clear_contextvars()
        return response

    @app.middleware("http")
    async def track_metrics(request: Request, call_next):
        """Track Prometheus metrics."""
        start_time = time.perf_counter()
        response = await call_next(request)

        route = request.scope.get("route")
        endpoint = getattr(route, "path", "unmatched")
        http_requests_total.labels(
            method=request.method, endpoint=endpoint, status=response.status_code
        ).inc()
        http_request_duration_seconds.labels(
            method=request.method, endpoint=endpoint
        ).observe(time.perf_counter() - start_time)
        return response

    @app.exception_handler(RecordNotFoundException)
    async def record_not_found_handler(request: Request, exc: RecordNotFoundException):
        return JSONResponse(
            status_code=404,
            content={"success": False, "error": "not_found", "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle all unhandled exceptions."""
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "request_id": request.headers.get("X-Request-ID"),
            },
        )

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        """Prometheus metrics endpoint."""
        return metrics_response()

    @app.get("/")
    async def root():
        """Root endpoint with service information."""
        return {
            "service": "Directory Service",
            "version": __version__,
            "status": "operational",
            "collections": [f"/{kind.path}" for kind in EntityKind],
            "health": "/api/v1/health",
            "ready": "/api/v1/ready",
        }

    # Catch-all collection routes go last so they never shadow the routes above
    app.include_router(health_router.router)
    app.include_router(records_router.router)

    return app


app = create_app()


def run() -> None:
    """Run the service with uvicorn, serving TLS when a certificate is configured."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    ssl_options = {}
    if settings.SSL_CERTFILE and settings.SSL_KEYFILE:
        ssl_options = {
            "ssl_certfile": settings.SSL_CERTFILE,
            "ssl_keyfile": settings.SSL_KEYFILE,
        }

    uvicorn.run(
        "app.app:app",
        host=settings.SERVICE_HOST,
        port=settings.SERVICE_PORT,
        log_level=settings.LOG_LEVEL.lower(),
        **ssl_options,
    )


if __name__ == "__main__":
    run()
