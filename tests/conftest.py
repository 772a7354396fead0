"""Pytest configuration - no path manipulation, rely on proper package installation."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import NullPool

from acc_exporter.utils.config import get_settings

MetricsDbFactory = Callable[..., Path]

DEFAULT_COLUMNS: dict[str, str] = {
    "Z_PK": "INTEGER PRIMARY KEY",
    "ZBYTESSERVED": "INTEGER",
    "ZCREATIONDATE": "TIMESTAMP",
    "ZHITRATIO": "REAL",
    "ZACTIVE": "VARCHAR",
    "ZCACHEUSED": "VARCHAR",
    "ZNOTE": "VARCHAR",
}

DEFAULT_ROWS: list[tuple[Any, ...]] = [
    # Inserted out of order so ordering must come from ZCREATIONDATE.
    (2, 12345, 700000100, 0.5, "true", "1024 bytes", None),
    (1, 100, 700000000, 0.25, "false", "512 bytes", "old"),
]


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep exporter environment variables from leaking into tests."""

    for key in list(os.environ):
        if key.startswith("ACC_EXPORTER_"):
            monkeypatch.delenv(key, raising=False)

    get_settings(reload=True)
    yield
    get_settings(reload=True)


def create_metrics_database(
    path: Path,
    columns: dict[str, str] | None = None,
    rows: Sequence[tuple[Any, ...]] = (),
    *,
    table: str = "ZMETRIC",
) -> Path:
    """Create a SQLite file holding ``table`` with ``columns`` and ``rows``."""

    columns = DEFAULT_COLUMNS if columns is None else columns
    engine = create_engine(f"sqlite:///{path}", poolclass=NullPool)
    try:
        with engine.begin() as connection:
            definition = ", ".join(f'"{name}" {kind}'.strip() for name, kind in columns.items())
            connection.execute(text(f'CREATE TABLE "{table}" ({definition})'))
            placeholders = ", ".join(f":c{index}" for index in range(len(columns)))
            for row in rows:
                connection.execute(
                    text(f'INSERT INTO "{table}" VALUES ({placeholders})'),
                    {f"c{index}": value for index, value in enumerate(row)},
                )
    finally:
        engine.dispose()
    return path


@pytest.fixture
def make_metrics_db(tmp_path: Path) -> MetricsDbFactory:
    """Factory creating metrics databases inside the test's temporary directory."""

    counter = {"value": 0}

    def _factory(
        columns: dict[str, str] | None = None,
        rows: Sequence[tuple[Any, ...]] | None = None,
        *,
        table: str = "ZMETRIC",
    ) -> Path:
        counter["value"] += 1
        path = tmp_path / f"Metrics-{counter['value']}.db"
        return create_metrics_database(
            path,
            columns,
            DEFAULT_ROWS if rows is None else rows,
            table=table,
        )

    return _factory


@pytest.fixture
def metrics_db(make_metrics_db: MetricsDbFactory) -> Path:
    """Metrics database with the default schema and two rows."""

    return make_metrics_db()
