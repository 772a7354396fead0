"""Custom exceptions for the Asset Cache metrics exporter."""

from __future__ import annotations


class AccExporterError(Exception):
    """Base exception for all exporter errors."""

    pass


class ConfigurationError(AccExporterError):
    """Raised when configuration is invalid or missing."""

    pass


class ExtractionError(AccExporterError):
    """Raised when the newest metrics row cannot be read from the database."""

    pass


class FileNotReadableError(ExtractionError):
    """Raised when the database file cannot be opened for reading."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Database file is not readable: {path}")
        self.path = path


class DatabaseOpenError(ExtractionError):
    """Raised when SQLite refuses to open the database file."""

    pass


class PrepareError(ExtractionError):
    """Raised when a schema or row query cannot be compiled or executed."""

    pass


class NoDataError(ExtractionError):
    """Raised when the metrics table contains no rows."""

    def __init__(self, table: str) -> None:
        super().__init__(f"No rows found in table '{table}'")
        self.table = table


class NoColumnsError(ExtractionError):
    """Raised when the metrics table reports no columns."""

    def __init__(self, table: str) -> None:
        super().__init__(f"No columns found in table '{table}'")
        self.table = table
