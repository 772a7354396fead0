"""SQLite access for the Asset Cache metrics table.

Each read opens the database file, introspects the table, fetches the newest
row and closes the file again. Nothing is pooled or cached between reads.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from urllib.parse import quote

from sqlalchemy import Connection, create_engine
from sqlalchemy.engine import URL
from sqlalchemy.exc import DBAPIError
from sqlalchemy.pool import NullPool

from ..exceptions import (
    DatabaseOpenError,
    FileNotReadableError,
    NoColumnsError,
    NoDataError,
    PrepareError,
)
from ..utils.config import ExporterSettings
from ..utils.logging import setup_logger
from .metric_row import ColumnSchema, MetricRow

logger = setup_logger(__name__, context={"component": "source"})


def build_database_url(path: str | Path, *, read_only: bool = False) -> URL:
    """Return the SQLAlchemy URL for the SQLite file at ``path``."""

    if read_only:
        return URL.create(
            "sqlite",
            database=f"file:{quote(str(path))}",
            query={"mode": "ro", "uri": "true"},
        )
    return URL.create("sqlite", database=str(path))


def _driver_message(exc: DBAPIError) -> str:
    return str(exc.orig) if exc.orig is not None else str(exc)


@contextmanager
def open_source_connection(path: str | Path, *, read_only: bool = False) -> Iterator[Connection]:
    """Open a connection to the database file and close it on every exit path.

    Raises:
        DatabaseOpenError: If SQLite refuses to open the file
    """

    engine = create_engine(build_database_url(path, read_only=read_only), poolclass=NullPool)
    try:
        try:
            connection = engine.connect()
        except DBAPIError as exc:
            raise DatabaseOpenError(
                f"Unable to open database {path}: {_driver_message(exc)}"
            ) from exc
        with connection:
            yield connection
    finally:
        engine.dispose()


def _quote(connection: Connection, identifier: str) -> str:
    return connection.dialect.identifier_preparer.quote_identifier(identifier)


def read_column_schema(connection: Connection, table: str) -> ColumnSchema:
    """Return the column names of ``table`` in declaration order.

    Raises:
        PrepareError: If the schema query cannot be executed
        NoColumnsError: If the table reports no columns (e.g. it does not exist)
    """

    statement = f"PRAGMA table_info({_quote(connection, table)})"
    try:
        rows = connection.exec_driver_sql(statement).all()
    except DBAPIError as exc:
        raise PrepareError(
            f"Unable to read schema of table '{table}': {_driver_message(exc)}"
        ) from exc

    # table_info rows are (cid, name, type, notnull, dflt_value, pk)
    columns = tuple(row[1] for row in rows if row[1] is not None)
    if not columns:
        raise NoColumnsError(table)
    return columns


def fetch_latest_row(
    connection: Connection,
    schema: ColumnSchema,
    table: str,
    order_column: str,
) -> MetricRow:
    """Select every schema column of the newest row ordered by ``order_column``.

    Raises:
        PrepareError: If the ordering column is missing or the query fails
        NoDataError: If the table is empty
    """

    # SQLite falls back to a string literal for unknown quoted identifiers,
    # which would silently drop the ordering.
    if order_column not in schema:
        raise PrepareError(f"Ordering column '{order_column}' not found in table '{table}'")

    selected = ", ".join(_quote(connection, column) for column in schema)
    statement = (
        f"SELECT {selected} FROM {_quote(connection, table)} "
        f"ORDER BY {_quote(connection, order_column)} DESC LIMIT 1"
    )
    try:
        row = connection.exec_driver_sql(statement).first()
    except DBAPIError as exc:
        raise PrepareError(
            f"Unable to select newest row from '{table}': {_driver_message(exc)}"
        ) from exc

    if row is None:
        raise NoDataError(table)
    return MetricRow.from_pairs(zip(schema, row))


class MetricsSource:
    """Reads the newest row of the metrics table from a SQLite file."""

    def __init__(
        self,
        database_path: str | Path,
        *,
        table: str = "ZMETRIC",
        order_column: str = "ZCREATIONDATE",
        read_only: bool = False,
    ) -> None:
        self.database_path = Path(database_path)
        self.table = table
        self.order_column = order_column
        self.read_only = read_only

    @classmethod
    def from_settings(cls, settings: ExporterSettings) -> MetricsSource:
        return cls(
            settings.database_path,
            table=settings.table_name,
            order_column=settings.order_column,
            read_only=settings.read_only,
        )

    def is_readable(self) -> bool:
        path = self.database_path
        return path.is_file() and os.access(path, os.R_OK)

    def read_latest(self) -> MetricRow:
        """
        Read the newest metrics row.

        Returns:
            MetricRow with one entry per table column, in declaration order

        Raises:
            FileNotReadableError: If the database file cannot be read
            DatabaseOpenError: If SQLite refuses to open the file
            PrepareError: If a query cannot be compiled or executed
            NoColumnsError: If the table reports no columns
            NoDataError: If the table is empty
        """
        if not self.is_readable():
            raise FileNotReadableError(str(self.database_path))

        logger.debug("Reading newest row from %s", self.database_path)
        with open_source_connection(self.database_path, read_only=self.read_only) as connection:
            schema = read_column_schema(connection, self.table)
            return fetch_latest_row(connection, schema, self.table, self.order_column)
