"""CLI entry point for ssmenv."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from ssmenv import __version__
from ssmenv.fetcher import ENV_REGION, FetchError, make_client
from ssmenv.formatters import render_env, render_export, render_json, render_table
from ssmenv.models import ValidationError, split_csv, validate_path
from ssmenv.projector import NameCollisionError, project
from ssmenv.reconciler import resolve_parameters
from ssmenv.retry import RetryPolicy

err_console = Console(stderr=True)

ENV_PATHS = "SSM_PATHS"
DEFAULT_PATHS_FILE = "ssm_paths.txt"

EXIT_INVALID = 1
EXIT_FETCH_FAILED = 2


def _abort(msg: str, code: int = EXIT_INVALID) -> None:
    err_console.print(f"[bold red]Error:[/] {escape(msg)}", highlight=False, soft_wrap=True)
    sys.exit(code)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    # botocore is chatty at DEBUG and would drown out our own output.
    logging.getLogger("botocore").setLevel(logging.WARNING)


def _read_paths_file(path: Path) -> list[str]:
    with open(path) as fh:
        return [line.strip() for line in fh if line.strip()]


def _resolve_paths(paths_opt: str | None, paths_file: Path) -> list[str]:
    """Pick paths from ``--paths``, then ``SSM_PATHS``, then the paths file.

    ``SSM_PATHS`` set to an empty string means "no paths" and suppresses the
    file lookup.
    """
    if paths_opt is not None:
        return split_csv(paths_opt)
    if ENV_PATHS in os.environ:
        return split_csv(os.environ[ENV_PATHS])
    if paths_file.is_file():
        return _read_paths_file(paths_file)
    return []


@click.command()
@click.option(
    "--paths",
    "paths_opt",
    default=None,
    help=f"Comma-separated path hierarchies, e.g. /prod/app/. Falls back to ${ENV_PATHS}.",
)
@click.option(
    "--paths-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_PATHS_FILE,
    show_default=True,
    help="Newline-separated paths, read when neither --paths nor "
    f"${ENV_PATHS} is given.",
)
@click.option("--tags", "tags_opt", default=None, help="Comma-separated tag keys.")
@click.option("--profile", default=None, help="AWS named profile.")
@click.option("--region", default=None, help=f"AWS region. Falls back to ${ENV_REGION}.")
@click.option(
    "--max-retries",
    type=click.IntRange(min=0),
    default=None,
    help="Retries per call when throttled (default: $SSM_MAX_RETRIES or 5).",
)
@click.option(
    "--max-backoff",
    type=click.FloatRange(min=0),
    default=None,
    help="Upper bound in seconds of each random backoff (default: $SSM_MAX_BACKOFF or 1).",
)
@click.option(
    "--deadline",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Give up retrying a throttled call after this many seconds (per call).",
)
@click.option(
    "--output",
    type=click.Choice(["env", "export", "json", "table"]),
    default="env",
    help="Output format (default: env).",
)
@click.option(
    "--include-secrets",
    is_flag=True,
    default=False,
    help="Show SecureString values in table output (default: redacted).",
)
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Fail when two parameters map to the same variable name.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log SSM calls to stderr.")
@click.version_option(__version__, "--version", "-V")
def main(
    paths_opt: str | None,
    paths_file: Path,
    tags_opt: str | None,
    profile: str | None,
    region: str | None,
    max_retries: int | None,
    max_backoff: float | None,
    deadline: float | None,
    output: str,
    include_secrets: bool,
    strict: bool,
    verbose: bool,
) -> None:
    """Print AWS SSM parameters as NAME=value environment assignments.

    Parameters are selected by path hierarchy (recursively), by tag, or
    both.  With both, only parameters under the paths that carry the tags
    are printed.  The variable name is the last path segment, uppercased.

    \b
    Examples:
      ssmenv --paths /prod/app/
      ssmenv --paths /prod/app/,/prod/shared/ --output export
      ssmenv --tags Environment
      ssmenv --paths /prod/ --tags Service --output table
    """
    _configure_logging(verbose)

    try:
        paths = _resolve_paths(paths_opt, paths_file)
        tags = split_csv(tags_opt)
        retry = RetryPolicy.from_env(
            max_retries=max_retries, max_backoff=max_backoff, deadline=deadline
        )
        if not paths and not tags:
            raise ValidationError(
                f"At least one of --paths (or ${ENV_PATHS}) or --tags is required."
            )
        for path in paths:
            validate_path(path)
    except (ValidationError, OSError) as exc:
        _abort(str(exc))
        return

    try:
        client = make_client(profile, region)
        params = resolve_parameters(client, paths, tags, retry=retry)
        values = project(params, on_collision="error" if strict else "overwrite")
    except ValidationError as exc:
        _abort(str(exc))
        return
    except (FetchError, NameCollisionError) as exc:
        _abort(str(exc), code=EXIT_FETCH_FAILED)
        return

    if output == "table":
        Console().print(render_table(params, include_secrets=include_secrets))
        return
    if output == "json":
        rendered = render_json(values)
    elif output == "export":
        rendered = render_export(values)
    else:
        rendered = render_env(values)
    if rendered:
        click.echo(rendered)
