"""Tests for ssmenv.formatters."""

from __future__ import annotations

import json
import shlex

from rich.console import Console
from rich.table import Table

from ssmenv.formatters import (
    _truncate,
    render_env,
    render_export,
    render_json,
    render_table,
)
from ssmenv.models import Parameter


def _param(path: str, value: str = "val", type_: str = "String") -> Parameter:
    return Parameter(path=path, name=path.rsplit("/", 1)[-1], value=value, type=type_)


def _render_to_str(rich_obj) -> str:
    """Render a Rich renderable to a plain string."""
    console = Console(force_terminal=False, width=200)
    with console.capture() as cap:
        console.print(rich_obj)
    return cap.get()


class TestTruncate:
    def test_short_value_unchanged(self):
        assert _truncate("hello") == "hello"

    def test_long_value_truncated(self):
        result = _truncate("x" * 61)
        assert result.endswith("…")
        assert len(result) == 61


class TestRenderEnv:
    def test_one_line_per_variable(self):
        assert render_env({"DB_HOST": "localhost", "DB_PORT": "5432"}) == (
            "DB_HOST=localhost\nDB_PORT=5432"
        )

    def test_value_not_quoted(self):
        assert render_env({"LIST": "a, b"}) == "LIST=a, b"

    def test_empty(self):
        assert render_env({}) == ""


class TestRenderExport:
    def test_export_prefix(self):
        assert render_export({"DB_HOST": "localhost"}) == "export DB_HOST=localhost"

    def test_quotes_shell_metacharacters(self):
        line = render_export({"PASSWORD": "p@ss word;$x"})
        assert line == f"export PASSWORD={shlex.quote('p@ss word;$x')}"
        assert shlex.split(line)[1] == "PASSWORD=p@ss word;$x"


class TestRenderJson:
    def test_round_trips(self):
        values = {"A": "1", "B": "two"}
        assert json.loads(render_json(values)) == values


class TestRenderTable:
    def test_returns_table(self):
        assert isinstance(render_table([_param("/app/key")]), Table)

    def test_shows_variable_and_path(self):
        output = _render_to_str(render_table([_param("/app/db_host", "localhost")]))
        assert "DB_HOST" in output
        assert "/app/db_host" in output
        assert "localhost" in output

    def test_secure_string_redacted_by_default(self):
        params = [_param("/app/password", "FAKE-secret", "SecureString")]
        output = _render_to_str(render_table(params))
        assert "FAKE-secret" not in output
        assert "[redacted]" in output

    def test_include_secrets(self):
        params = [_param("/app/password", "FAKE-secret", "SecureString")]
        output = _render_to_str(render_table(params, include_secrets=True))
        assert "FAKE-secret" in output

    def test_lists_shadowed_parameters(self):
        params = [_param("/a/X", "first"), _param("/b/X", "second")]
        table = render_table(params)
        assert table.row_count == 2
        assert table.rows[0].style == "dim strike"
        assert table.rows[1].style is None
