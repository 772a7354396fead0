"""FastAPI application serving the Asset Cache metrics."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import anyio.to_thread
from fastapi import FastAPI, Request, status
from fastapi.responses import PlainTextResponse

from ..exceptions import AccExporterError
from ..monitoring.analyzer import MetricsAnalyzer, MetricsAnalyzing
from ..utils.config import ExporterSettings, get_settings
from ..utils.logging import log_error, setup_logger
from .rate_limit import RateLimiter, ScrapeGuardMiddleware, client_identity
from .routes.metrics import create_metrics_router

logger = setup_logger(__name__, context={"component": "FastAPI"})

FAILURE_MESSAGE = "Failed to retrieve metrics."


def create_app(
    settings: ExporterSettings | None = None,
    *,
    analyzer: MetricsAnalyzing | None = None,
    error_log: logging.Logger | None = None,
    limiter: RateLimiter | None = None,
) -> FastAPI:
    """
    Build the exporter application.

    Args:
        settings: Exporter settings (defaults to the cached global settings)
        analyzer: Metrics pipeline, built from settings when omitted
        error_log: Durable error log receiving failure details
        limiter: Rate limiter, built from settings when omitted

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # type: ignore
        """Size the worker pool used by the sync metrics route."""
        thread_limiter = anyio.to_thread.current_default_thread_limiter()
        thread_limiter.total_tokens = settings.worker_threads
        logger.info(
            "Metrics exporter starting up with %d worker threads...", settings.worker_threads
        )
        yield
        logger.info("Metrics exporter shutting down...")

    app = FastAPI(
        title="Asset Cache Metrics Exporter",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.analyzer = analyzer or MetricsAnalyzer.from_settings(settings)
    app.state.error_log = error_log

    @app.exception_handler(AccExporterError)
    async def exporter_exception_handler(
        request: Request, exc: AccExporterError
    ) -> PlainTextResponse:
        """Log extraction failures and hide their details from the client."""
        log_error(
            logger,
            request.app.state.error_log,
            f"{exc.__class__.__name__}: {exc}",
            client=client_identity(request),
        )
        return PlainTextResponse(
            FAILURE_MESSAGE,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    app.add_middleware(
        ScrapeGuardMiddleware,
        metrics_path=settings.metrics_path,
        limiter=limiter
        or RateLimiter(
            window_seconds=settings.rate_limit_window_seconds,
            max_clients=settings.rate_limit_max_clients,
        ),
    )
    app.include_router(create_metrics_router(settings.metrics_path), tags=["monitoring"])

    return app
