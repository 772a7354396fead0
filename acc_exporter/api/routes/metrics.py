"""Prometheus metrics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from ...utils.logging import setup_logger

logger = setup_logger(__name__, context={"component": "metrics_route"})


def metrics(request: Request) -> PlainTextResponse:
    """Read the newest metrics row and expose it in the text exposition format.

    Declared sync so each scrape runs in the worker thread pool; extraction
    errors propagate to the application's exception handler.
    """

    logger.info("Received scrape, reading metrics database")
    document = request.app.state.analyzer.analyze()
    return PlainTextResponse(document)


def create_metrics_router(metrics_path: str) -> APIRouter:
    """Return a router serving :func:`metrics` at ``metrics_path``."""

    scoped = APIRouter()
    scoped.add_api_route(
        metrics_path,
        metrics,
        methods=["GET"],
        include_in_schema=False,
        response_class=PlainTextResponse,
    )
    return scoped
