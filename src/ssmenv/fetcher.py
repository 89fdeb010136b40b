"""Fetch parameters from AWS SSM Parameter Store."""

from __future__ import annotations

import logging
import math
import os
import re
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ssmenv.models import Parameter, tag_filters
from ssmenv.retry import RetryAborted, RetryPolicy, call_with_retry

if TYPE_CHECKING:
    from mypy_boto3_ssm import SSMClient

logger = logging.getLogger(__name__)

ENV_REGION = "SSM_REGION"

MAX_BATCH_SIZE = 10  # GetParameters allows at most 10 names per call

_ARN_RE = re.compile(r"arn:aws[a-zA-Z-]*:[a-zA-Z0-9-]+:\S+")
_ACCOUNT_RE = re.compile(r"\b\d{12}\b")

# Throttling is handled by call_with_retry, so botocore makes a single attempt.
_CLIENT_CONFIG = Config(retries={"total_max_attempts": 1, "mode": "standard"})

Page = tuple[list, str | None]


class FetchError(Exception):
    """Raised when an SSM API call fails.

    ``partial`` holds whatever a paginated query accumulated before failing.
    """

    def __init__(self, message: str, partial: list | None = None) -> None:
        super().__init__(message)
        self.partial = partial if partial is not None else []


class InvalidParametersError(FetchError):
    """Raised when GetParameters reports names it cannot resolve."""

    def __init__(self, names: list[str]) -> None:
        super().__init__(f"Invalid parameters: {', '.join(names)}")
        self.names = names


def _sanitize_error(msg: str) -> str:
    """Strip ARNs and AWS account IDs from error messages."""
    msg = _ARN_RE.sub("arn:***", msg)
    msg = _ACCOUNT_RE.sub("***", msg)
    return msg


def _wrap(exc: Exception, partial: list | None = None) -> FetchError:
    sanitized = _sanitize_error(str(exc))
    return FetchError(f"Failed to fetch parameters from SSM: {sanitized}", partial=partial)


def make_client(profile: str | None = None, region: str | None = None) -> SSMClient:
    """Create the SSM client shared by every fetch in one run.

    *region* falls back to the ``SSM_REGION`` environment variable, then to
    the normal boto3 resolution chain.
    """
    region = region or os.environ.get(ENV_REGION) or None
    try:
        session = boto3.Session(profile_name=profile, region_name=region)
        return session.client("ssm", config=_CLIENT_CONFIG)  # type: ignore[return-value]
    except BotoCoreError as exc:
        raise FetchError(f"Failed to create SSM client: {_sanitize_error(str(exc))}") from exc


def paginate(request: Callable[[str | None], Page]) -> list:
    """Call *request* with successive continuation tokens until exhausted.

    *request* receives ``None`` first, then each token the previous page
    returned, and must return ``(items, next_token)``.

    Returns:
        All items, in page order.

    Raises:
        FetchError: On the first failing call; ``partial`` carries the items
            collected so far.
    """
    items: list = []
    token: str | None = None
    pages = 0
    while True:
        try:
            page, token = request(token)
        except (ClientError, BotoCoreError, RetryAborted) as exc:
            logger.debug("Pagination failed after %d page(s), %d item(s)", pages, len(items))
            raise _wrap(exc, partial=items) from exc
        pages += 1
        items.extend(page)
        if not token:
            return items


def fetch_by_paths(
    client: SSMClient,
    paths: list[str],
    retry: RetryPolicy | None = None,
) -> list[Parameter]:
    """Fetch all parameters recursively under each of *paths*, decrypted.

    Results keep input path order, then store order within each path.

    Raises:
        FetchError: On any AWS API error.
    """
    params: list[Parameter] = []
    for path in paths:

        def request(token: str | None, path: str = path) -> Page:
            kwargs: dict[str, Any] = {
                "Path": path,
                "Recursive": True,
                "WithDecryption": True,
            }
            if token:
                kwargs["NextToken"] = token
            response = call_with_retry(client.get_parameters_by_path, policy=retry, **kwargs)
            return response.get("Parameters", []), response.get("NextToken")

        try:
            items = paginate(request)
        except FetchError as exc:
            exc.partial = params + [Parameter.from_api(i) for i in exc.partial]
            raise
        logger.debug("Fetched %d parameter(s) under %s", len(items), path)
        params.extend(Parameter.from_api(item) for item in items)
    return params


def describe_by_tags(
    client: SSMClient,
    tags: list[str],
    retry: RetryPolicy | None = None,
) -> list[str]:
    """Return the names of every parameter carrying all of *tags*.

    DescribeParameters never returns values, only metadata.

    Raises:
        FetchError: On any AWS API error.
    """
    filters = tag_filters(tags)

    def request(token: str | None) -> Page:
        kwargs: dict[str, Any] = {"ParameterFilters": filters}
        if token:
            kwargs["NextToken"] = token
        response = call_with_retry(client.describe_parameters, policy=retry, **kwargs)
        return [item["Name"] for item in response.get("Parameters", [])], response.get("NextToken")

    names = paginate(request)
    logger.debug("Found %d parameter(s) tagged %s", len(names), ", ".join(tags))
    return names


def _chunks(names: list[str], size: int) -> Iterator[list[str]]:
    for i in range(0, len(names), size):
        yield names[i : i + size]


def get_by_names(
    client: SSMClient,
    names: list[str],
    retry: RetryPolicy | None = None,
    batch_size: int = MAX_BATCH_SIZE,
) -> list[Parameter]:
    """Resolve *names* to decrypted parameters, ``batch_size`` names per call.

    Args:
        client: SSM client.
        names: Full parameter names, in the order results should come back.
        retry: Retry policy applied to every GetParameters call.
        batch_size: Names per call, 1 to :data:`MAX_BATCH_SIZE`.

    Returns:
        Parameters in the order of *names*.

    Raises:
        InvalidParametersError: If SSM reports any name as invalid.  Every
            batch is checked first so the error lists all of them.
        FetchError: On any other AWS API error.
    """
    if not 1 <= batch_size <= MAX_BATCH_SIZE:
        raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}")

    params: list[Parameter] = []
    invalid: list[str] = []
    for batch in _chunks(names, batch_size):
        try:
            response = call_with_retry(
                client.get_parameters, policy=retry, Names=batch, WithDecryption=True
            )
        except (ClientError, BotoCoreError, RetryAborted) as exc:
            raise _wrap(exc) from exc
        invalid.extend(response.get("InvalidParameters", []))
        # GetParameters does not preserve request order.
        position = {name: i for i, name in enumerate(batch)}
        items = sorted(
            response.get("Parameters", []),
            key=lambda item: position.get(item["Name"], len(batch)),
        )
        params.extend(Parameter.from_api(item) for item in items)

    if invalid:
        raise InvalidParametersError(invalid)
    logger.debug(
        "Resolved %d parameter(s) in %d call(s)",
        len(params),
        math.ceil(len(names) / batch_size),
    )
    return params
