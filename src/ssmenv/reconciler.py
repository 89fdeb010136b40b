"""Choose a retrieval strategy for paths and tags and reconcile the results."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ssmenv.fetcher import describe_by_tags, fetch_by_paths, get_by_names
from ssmenv.models import Parameter, ValidationError, validate_path
from ssmenv.retry import RetryPolicy

if TYPE_CHECKING:
    from mypy_boto3_ssm import SSMClient

logger = logging.getLogger(__name__)


def intersect(params: list[Parameter], names: list[str]) -> list[Parameter]:
    """Keep the parameters of *params* whose path is one of *names*.

    Order follows *params*.
    """
    lookup = set(names)
    return [p for p in params if p.path in lookup]


def resolve_parameters(
    client: SSMClient,
    paths: list[str] | None = None,
    tags: list[str] | None = None,
    retry: RetryPolicy | None = None,
) -> list[Parameter]:
    """Fetch the parameters selected by *paths* and/or *tags*.

    * tags only: find tagged names with DescribeParameters, then resolve
      them with GetParameters (result in resolution order).
    * paths only: every parameter under the paths.
    * both: parameters under the paths that also carry the tags.  This is
      an intersection, not a union.

    Args:
        client: SSM client shared by every call.
        paths: Path hierarchies; each must contain ``/``.
        tags: Tag keys; a parameter must carry them to match.
        retry: Retry policy for every store call.

    Raises:
        ValidationError: If neither paths nor tags are given, or a path is
            not a hierarchy.  Raised before any store call.
        FetchError: On any AWS API error.
    """
    paths = list(paths or [])
    tags = list(tags or [])
    if not paths and not tags:
        raise ValidationError("At least one path or tag must be given.")
    for path in paths:
        validate_path(path)

    if not paths:
        names = describe_by_tags(client, tags, retry=retry)
        return get_by_names(client, names, retry=retry)

    if not tags:
        return fetch_by_paths(client, paths, retry=retry)

    names = describe_by_tags(client, tags, retry=retry)
    params = fetch_by_paths(client, paths, retry=retry)
    selected = intersect(params, names)
    logger.debug(
        "%d of %d parameter(s) under the given paths carry the given tags",
        len(selected),
        len(params),
    )
    return selected
