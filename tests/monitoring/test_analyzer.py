"""End-to-end tests for the per-request metrics pipeline."""

from __future__ import annotations

from pathlib import Path

import pytest

from acc_exporter.exceptions import FileNotReadableError, NoDataError
from acc_exporter.models.source import MetricsSource
from acc_exporter.monitoring.analyzer import MetricsAnalyzer
from acc_exporter.utils.config import ExporterSettings


def test_document_starts_with_bytes_served(make_metrics_db) -> None:
    db_path = make_metrics_db(
        {"ZBYTESSERVED": "INTEGER", "ZCREATIONDATE": "TIMESTAMP"},
        [(100, 700000000), (12345, 700000100)],
    )

    document = MetricsAnalyzer(MetricsSource(db_path)).analyze()
    lines = document.splitlines()

    assert lines[:3] == [
        "# HELP acc_zbytesserved ZBYTESSERVED",
        "# TYPE acc_zbytesserved gauge",
        "acc_zbytesserved 12345",
    ]
    assert lines[3:] == [
        "# HELP acc_zcreationdate ZCREATIONDATE",
        "# TYPE acc_zcreationdate gauge",
        "acc_zcreationdate 700000100",
    ]
    assert document.endswith("\n")


def test_full_default_row(metrics_db: Path) -> None:
    document = MetricsAnalyzer(MetricsSource(metrics_db)).analyze()

    lines = document.splitlines()
    assert len(lines) == 3 * 7
    assert "acc_zhitratio 0.5" in lines
    assert "acc_zactive 1" in lines
    assert "# HELP acc_zcacheused ZCACHEUSED (unit: bytes)" in lines
    assert "acc_zcacheused 1024" in lines
    assert "acc_znote NaN" in lines


def test_repeated_scrapes_are_identical(metrics_db: Path) -> None:
    analyzer = MetricsAnalyzer(MetricsSource(metrics_db))

    assert analyzer.analyze().encode() == analyzer.analyze().encode()


def test_from_settings_applies_prefix(metrics_db: Path) -> None:
    settings = ExporterSettings(database_path=metrics_db, metric_prefix="cache_")

    document = MetricsAnalyzer.from_settings(settings).analyze()

    assert document.startswith("# HELP cache_z_pk Z_PK\n")


def test_extraction_errors_propagate(tmp_path: Path, make_metrics_db) -> None:
    with pytest.raises(FileNotReadableError):
        MetricsAnalyzer(MetricsSource(tmp_path / "missing.db")).analyze()

    with pytest.raises(NoDataError):
        MetricsAnalyzer(MetricsSource(make_metrics_db(rows=[]))).analyze()
