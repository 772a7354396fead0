"""Per-request metrics pipeline: read the newest row and render it."""

from __future__ import annotations

import time
from typing import Protocol

from ..models.source import MetricsSource
from ..utils.config import ExporterSettings
from ..utils.logging import setup_logger
from .exposition import DEFAULT_PREFIX, format_exposition, render_document

logger = setup_logger(__name__, context={"component": "analyzer"})


class MetricsAnalyzing(Protocol):
    """Anything that can produce an exposition document on demand."""

    def analyze(self) -> str:  # pragma: no cover - protocol
        ...


class MetricsAnalyzer:
    """Reads the newest metrics row and renders it as an exposition document."""

    def __init__(self, source: MetricsSource, *, prefix: str = DEFAULT_PREFIX) -> None:
        self.source = source
        self.prefix = prefix

    @classmethod
    def from_settings(cls, settings: ExporterSettings) -> MetricsAnalyzer:
        return cls(MetricsSource.from_settings(settings), prefix=settings.metric_prefix)

    def analyze(self) -> str:
        """Return the exposition document for the newest row.

        Extraction errors propagate unchanged to the caller.
        """
        start = time.perf_counter()
        row = self.source.read_latest()
        document = render_document(format_exposition(row, self.prefix))
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "Rendered %d metrics",
            len(row),
            extra={"status": "success", "duration_ms": duration_ms},
        )
        return document
