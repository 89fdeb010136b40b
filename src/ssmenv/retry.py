"""Bounded random-backoff retry for rate-limited SSM calls."""

from __future__ import annotations

import logging
import os
import random
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from botocore.exceptions import ClientError

from ssmenv.models import ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 5
DEFAULT_MAX_BACKOFF = 1.0  # seconds

ENV_MAX_RETRIES = "SSM_MAX_RETRIES"
ENV_MAX_BACKOFF = "SSM_MAX_BACKOFF"

RATE_LIMIT_CODES = frozenset(
    {
        "ThrottlingException",
        "Throttling",
        "TooManyUpdates",
        "RequestLimitExceeded",
        "TooManyRequestsException",
    }
)


class RetryAborted(Exception):
    """Raised when backoff stops before the retry budget is spent."""


class RetryDeadlineExceeded(RetryAborted):
    """The next backoff would end past the caller's deadline."""


class RetryCancelled(RetryAborted):
    """The caller's cancel event was set during backoff."""


@dataclass
class RetryPolicy:
    """How many times and how long to back off on rate-limit errors.

    ``max_retries`` counts retries, so a call that keeps getting throttled is
    attempted ``max_retries + 1`` times.  Each backoff sleeps a uniformly
    random duration in ``[0, max_backoff]`` regardless of the attempt number.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    max_backoff: float = DEFAULT_MAX_BACKOFF
    deadline: float | None = None             # per call: seconds from that call's first attempt
    cancel: threading.Event | None = None
    sleep: Callable[[float], Any] = field(default=time.sleep, repr=False)
    jitter: Callable[[float, float], float] = field(default=random.uniform, repr=False)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValidationError("max_retries must be >= 0.")
        if self.max_backoff < 0:
            raise ValidationError("max_backoff must be >= 0.")
        if self.deadline is not None and self.deadline <= 0:
            raise ValidationError("deadline must be > 0.")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides: Any) -> RetryPolicy:
        """Build a policy from ``SSM_MAX_RETRIES`` / ``SSM_MAX_BACKOFF``.

        Explicit *overrides* that are not ``None`` win over the environment.
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, Any] = {}
        raw_retries = env.get(ENV_MAX_RETRIES)
        if raw_retries:
            try:
                kwargs["max_retries"] = int(raw_retries)
            except ValueError:
                raise ValidationError(
                    f"{ENV_MAX_RETRIES} must be an integer, got {raw_retries!r}."
                ) from None
        raw_backoff = env.get(ENV_MAX_BACKOFF)
        if raw_backoff:
            try:
                kwargs["max_backoff"] = float(raw_backoff)
            except ValueError:
                raise ValidationError(
                    f"{ENV_MAX_BACKOFF} must be a number, got {raw_backoff!r}."
                ) from None
        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**kwargs)


def is_rate_limited(exc: BaseException) -> bool:
    """True when *exc* is a throttling response from AWS."""
    if not isinstance(exc, ClientError):
        return False
    response = exc.response or {}
    code = response.get("Error", {}).get("Code", "")
    status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return code in RATE_LIMIT_CODES or status == 429


def call_with_retry(
    func: Callable[..., T],
    *args: Any,
    policy: RetryPolicy | None = None,
    **kwargs: Any,
) -> T:
    """Call ``func(*args, **kwargs)``, retrying on rate-limit errors.

    Args:
        func: The store call to make.
        policy: Retry bounds; defaults to :class:`RetryPolicy` defaults.

    Returns:
        The first successful response.

    Raises:
        ClientError: The last throttling error once the budget is spent, or
            any non-throttling error immediately.
        RetryDeadlineExceeded: If the next backoff would overrun ``deadline``.
        RetryCancelled: If ``policy.cancel`` is set while backing off.
    """
    policy = policy or RetryPolicy()
    started = policy.clock()
    attempt = 0
    while True:
        try:
            return func(*args, **kwargs)
        except ClientError as exc:
            if not is_rate_limited(exc) or attempt >= policy.max_retries:
                raise
            attempt += 1
            delay = policy.jitter(0, policy.max_backoff)
            if policy.deadline is not None:
                elapsed = policy.clock() - started
                if elapsed + delay > policy.deadline:
                    raise RetryDeadlineExceeded(
                        f"Retry deadline of {policy.deadline:g}s exceeded "
                        f"after {attempt} attempt(s)"
                    ) from exc
            logger.warning(
                "Rate limited by SSM (%s); retry %d/%d in %.2fs",
                exc.response.get("Error", {}).get("Code", "429"),
                attempt,
                policy.max_retries,
                delay,
            )
            if policy.cancel is not None:
                if policy.cancel.wait(delay):
                    raise RetryCancelled("Retry cancelled during backoff") from exc
            else:
                policy.sleep(delay)
