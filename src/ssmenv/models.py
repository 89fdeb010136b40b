"""Data models for ssmenv."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

PARAMETER_TYPES = ("String", "SecureString", "StringList")
ParameterType = Literal["String", "SecureString", "StringList"]

TAG_PREFIX = "tag:"


class ValidationError(ValueError):
    """Raised when user input is rejected before contacting SSM."""


@dataclass
class Parameter:
    """Represents a single SSM Parameter Store parameter."""

    path: str              # full SSM path, e.g. /prod/app/DB_HOST
    name: str              # leaf segment only, e.g. "DB_HOST"
    value: str             # decrypted value
    type: ParameterType    # "String" | "SecureString" | "StringList"
    version: int = 0
    last_modified: datetime | None = None

    def __post_init__(self) -> None:
        if self.type not in PARAMETER_TYPES:
            raise ValueError(
                f"Invalid parameter type {self.type!r}; "
                f"expected one of {PARAMETER_TYPES}"
            )

    @classmethod
    def from_api(cls, item: dict) -> Parameter:
        """Build a :class:`Parameter` from a ``Parameters`` entry of an SSM response."""
        path = item["Name"]
        return cls(
            path=path,
            name=leaf_name(path),
            value=item.get("Value", ""),
            type=item.get("Type", "String"),
            version=item.get("Version", 0),
            last_modified=item.get("LastModifiedDate"),
        )

    @property
    def is_secure(self) -> bool:
        return self.type == "SecureString"

    @property
    def is_string_list(self) -> bool:
        return self.type == "StringList"

    @property
    def env_name(self) -> str:
        """Environment variable name: the leaf segment, uppercased."""
        return self.name.upper()


def leaf_name(path: str) -> str:
    """Return the substring after the final ``/`` of *path*."""
    return path.rsplit("/", 1)[-1]


def validate_path(path: str) -> str:
    """Validate that *path* is a path hierarchy rather than a flat name.

    Returns the path unchanged so callers can validate inline.

    Raises:
        ValidationError: If *path* is empty or contains no ``/``.
    """
    if not path or not path.strip():
        raise ValidationError("Path must not be empty.")
    if "/" not in path:
        raise ValidationError(
            f"Invalid path {path!r} - only path hierarchies are supported "
            "(e.g. '/production/webapp/')."
        )
    return path


def tag_filters(tags: list[str]) -> list[dict]:
    """Build one ``ParameterFilters`` entry per tag key.

    Only tag existence is matched, so no ``Values`` are sent.
    """
    filters = []
    for tag in tags:
        key = tag.strip()
        if key.startswith(TAG_PREFIX):
            key = key[len(TAG_PREFIX):]
        if not key:
            raise ValidationError("Tag keys must not be empty.")
        filters.append({"Key": f"{TAG_PREFIX}{key}"})
    return filters


def split_csv(raw: str | None) -> list[str]:
    """Split a comma-separated option value, dropping blank entries."""
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]
