"""Project SSM parameters onto environment variable names."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, MutableMapping
from typing import Literal

from ssmenv.fetcher import make_client
from ssmenv.models import Parameter
from ssmenv.reconciler import resolve_parameters
from ssmenv.retry import RetryPolicy

logger = logging.getLogger(__name__)

CollisionPolicy = Literal["overwrite", "error"]


class NameCollisionError(ValueError):
    """Raised when two parameter paths map to the same variable name."""

    def __init__(self, env_name: str, first: str, second: str) -> None:
        super().__init__(
            f"Parameters {first} and {second} both map to environment variable {env_name}"
        )
        self.env_name = env_name
        self.paths = (first, second)


def project(
    params: Iterable[Parameter],
    on_collision: CollisionPolicy = "overwrite",
) -> dict[str, str]:
    """Map each parameter's uppercased leaf name to its value.

    Two paths sharing a leaf segment (``/a/X`` and ``/b/X``) collide.  With
    ``on_collision="overwrite"`` the later parameter in iteration order wins
    and a warning is logged; with ``"error"`` a :class:`NameCollisionError`
    is raised.
    """
    values: dict[str, str] = {}
    sources: dict[str, str] = {}
    for param in params:
        env_name = param.env_name
        previous = sources.get(env_name)
        if previous is not None and previous != param.path:
            if on_collision == "error":
                raise NameCollisionError(env_name, previous, param.path)
            logger.warning("%s from %s overrides %s", env_name, param.path, previous)
        values[env_name] = param.value
        sources[env_name] = param.path
    return values


def apply_to_environ(
    values: dict[str, str],
    environ: MutableMapping[str, str] | None = None,
) -> None:
    """Set every entry of *values* in *environ* (``os.environ`` by default)."""
    target = os.environ if environ is None else environ
    for name, value in values.items():
        target[name] = value


def load(
    paths: list[str] | None = None,
    tags: list[str] | None = None,
    *,
    profile: str | None = None,
    region: str | None = None,
    retry: RetryPolicy | None = None,
    on_collision: CollisionPolicy = "overwrite",
    environ: MutableMapping[str, str] | None = None,
) -> dict[str, str]:
    """Fetch parameters and export them into the current process environment.

    Returns the mapping that was applied.
    """
    client = make_client(profile, region)
    params = resolve_parameters(client, paths, tags, retry=retry or RetryPolicy.from_env())
    values = project(params, on_collision=on_collision)
    apply_to_environ(values, environ)
    return values
