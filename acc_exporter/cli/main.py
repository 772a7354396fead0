"""Command line entry point for the Asset Cache metrics exporter."""

from pathlib import Path

import click

from acc_exporter.api.main import create_app
from acc_exporter.exceptions import ConfigurationError, ExtractionError
from acc_exporter.monitoring.analyzer import MetricsAnalyzer
from acc_exporter.server import MetricsServer
from acc_exporter.utils.config import ExporterSettings, load_settings
from acc_exporter.utils.logging import configure_logging, setup_error_log, setup_logger

logger = setup_logger(__name__, context={"component": "cli"})

config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML configuration file (ACC_EXPORTER_* environment variables take precedence)",
)
database_option = click.option(
    "--database",
    "database_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to the Asset Cache Metrics.db file",
)


def _load(config_path: Path | None, **overrides) -> ExporterSettings:
    try:
        return load_settings(config_path, **overrides)
    except ConfigurationError as exc:
        raise click.UsageError(str(exc)) from exc


@click.group()
def cli() -> None:
    """Expose the newest Asset Cache metrics row to Prometheus."""


@cli.command()
@config_option
@database_option
@click.option("--host", default=None, help="Interface to bind (default 0.0.0.0)")
@click.option("--port", type=int, default=None, help="Port to listen on (default 9200)")
def serve(
    config_path: Path | None,
    database_path: Path | None,
    host: str | None,
    port: int | None,
) -> None:
    """
    Serve /metrics and restart the listener whenever it fails.

    Examples:

        # Defaults: 0.0.0.0:9200, the system Metrics.db
        acc-exporter serve

        # Local copy of the database on another port
        acc-exporter serve --database ./Metrics.db --port 9300
    """
    settings = _load(config_path, database_path=database_path, host=host, port=port)
    configure_logging(settings.log_level, force=True)
    error_log = setup_error_log(settings.error_log_path)

    logger.info("Launching metrics server...")
    app = create_app(settings, error_log=error_log)
    server = MetricsServer(app, settings, error_log=error_log)
    server.serve_forever()


@cli.command()
@config_option
@database_option
def dump(config_path: Path | None, database_path: Path | None) -> None:
    """Print the exposition document for the newest row once and exit."""

    settings = _load(config_path, database_path=database_path)
    # Keep stdout for the document.
    configure_logging("WARNING", force=True)
    try:
        document = MetricsAnalyzer.from_settings(settings).analyze()
    except ExtractionError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    click.echo(document, nl=False)


if __name__ == "__main__":
    cli()
