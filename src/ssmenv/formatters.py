"""Output formatters for ssmenv."""

from __future__ import annotations

import json
import shlex

from rich.table import Table
from rich.text import Text

from ssmenv.models import Parameter

_MAX_VALUE_LEN = 60
_REDACTED_LABEL = "[redacted]"


def _truncate(value: str) -> str:
    if len(value) <= _MAX_VALUE_LEN:
        return value
    return value[:_MAX_VALUE_LEN] + "…"


def render_env(values: dict[str, str]) -> str:
    """Render ``NAME=value`` lines, one per variable."""
    return "\n".join(f"{name}={value}" for name, value in values.items())


def render_export(values: dict[str, str]) -> str:
    """Render shell ``export NAME=value`` lines with the value quoted."""
    return "\n".join(f"export {name}={shlex.quote(value)}" for name, value in values.items())


def render_json(values: dict[str, str]) -> str:
    return json.dumps(values, indent=2)


def render_table(params: list[Parameter], include_secrets: bool = False) -> Table:
    """Render the resolved parameters as a Rich table.

    Parameters shadowed by a later one with the same variable name are dimmed
    and struck through.

    Args:
        params: Parameters in projection order.
        include_secrets: When *False*, SecureString values are replaced with
            ``[redacted]``.

    Returns:
        A :class:`rich.table.Table`.
    """
    table = Table(title="SSM parameters", show_lines=False)
    table.add_column("Variable", style="bold green")
    table.add_column("Path", style="cyan")
    table.add_column("Type", style="dim")
    table.add_column("Value")

    winners = {p.env_name: i for i, p in enumerate(params)}
    for i, param in enumerate(params):
        if param.is_secure and not include_secrets:
            value = Text(_REDACTED_LABEL, style="dim red")
        else:
            value = Text(_truncate(param.value), style="italic")
        style = None if winners[param.env_name] == i else "dim strike"
        table.add_row(param.env_name, param.path, param.type, value, style=style)

    return table
