"""Prometheus text exposition rendering for a single metrics row."""

from __future__ import annotations

import math

from prometheus_client.utils import floatToGoString

from ..models.metric_row import MetricRow, SqlValue

DEFAULT_PREFIX = "acc_"
NAN_LITERAL = "NaN"

_BOOLEAN_WORDS = {"true": "1", "false": "0"}


def escape_help(text: str) -> str:
    """Escape backslashes and line breaks so HELP text stays on one line."""

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return text.replace("\\", r"\\").replace("\n", r"\n")


def derive_metric_name(column: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Return the metric name for a table column.

    ``" Z Some Col "`` becomes ``acc_z_some_col``.
    """

    name = column.strip().lower()
    for separator in (" ", "\r", "\n"):
        name = name.replace(separator, "_")
    return prefix + name


def render_value(value: SqlValue) -> tuple[str, str | None]:
    """Render a column value as a sample value and an optional unit.

    Returns:
        Tuple of (rendered value, unit or ``None``)
    """
    if value is None:
        return NAN_LITERAL, None
    if isinstance(value, bool):
        return str(int(value)), None
    if isinstance(value, int):
        return str(value), None
    if isinstance(value, float):
        # Finite floats keep plain decimal notation (700000100.123, not 7.00000100123e+08).
        if math.isfinite(value):
            return repr(value), None
        return floatToGoString(value), None

    text = value.strip()
    if not text:
        return NAN_LITERAL, None

    boolean = _BOOLEAN_WORDS.get(text.lower())
    if boolean is not None:
        return boolean, None

    # "1024 bytes" -> value "1024", unit "bytes"
    tokens = text.split(maxsplit=1)
    if len(tokens) == 2:
        return tokens[0], tokens[1]
    return text, None


def render_metric(column: str, value: SqlValue, prefix: str = DEFAULT_PREFIX) -> list[str]:
    """Return the HELP, TYPE and sample lines for one column."""

    metric_name = derive_metric_name(column, prefix)
    rendered, unit = render_value(value)

    help_text = escape_help(column.strip())
    if unit:
        help_text = f"{help_text} (unit: {escape_help(unit)})"

    return [
        f"# HELP {metric_name} {help_text}",
        f"# TYPE {metric_name} gauge",
        f"{metric_name} {rendered}",
    ]


def format_exposition(row: MetricRow, prefix: str = DEFAULT_PREFIX) -> list[str]:
    """Render every column of ``row`` in order, three lines per column."""

    lines: list[str] = []
    for item in row:
        lines.extend(render_metric(item.name, item.value, prefix))
    return lines


def render_document(lines: list[str]) -> str:
    """Join exposition lines into a response body terminated by a line feed."""

    if not lines:
        return ""
    return "\n".join(lines) + "\n"
