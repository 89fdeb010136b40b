"""Shared pytest fixtures for ssmenv tests."""

from __future__ import annotations

import os
from datetime import UTC, datetime

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from ssmenv.retry import RetryPolicy

SEED_PARAMETERS = [
    ("/prod/app/db_host", "prod-db.example.com", "String"),
    ("/prod/app/db_port", "5432", "String"),
    ("/prod/app/db_password", "FAKE-test-password", "SecureString"),
    ("/prod/app/allowed_ips", "10.0.0.1,10.0.0.2", "StringList"),
    ("/prod/shared/region", "us-east-1", "String"),
    ("/staging/app/db_host", "staging-db.example.com", "String"),
]


def throttle(operation: str = "GetParametersByPath") -> ClientError:
    return ClientError(
        {
            "Error": {"Code": "ThrottlingException", "Message": "Rate exceeded"},
            "ResponseMetadata": {"HTTPStatusCode": 400},
        },
        operation,
    )


def denied(operation: str = "GetParametersByPath") -> ClientError:
    return ClientError(
        {"Error": {"Code": "AccessDeniedException", "Message": "Access denied"}},
        operation,
    )


class FakeSSM:
    """Scripted stand-in for the boto3 SSM client.

    Parameters are served in insertion order, ``page_size`` per page, with
    the offset of the next page as the continuation token.  ``failures`` maps
    a method name to exceptions raised, one per call, before it succeeds.
    """

    def __init__(
        self,
        parameters: dict[str, str] | None = None,
        tags: dict[str, set[str]] | None = None,
        page_size: int = 2,
        failures: dict[str, list[Exception]] | None = None,
    ) -> None:
        self.parameters = dict(parameters or {})
        self.tags = tags or {}
        self.page_size = page_size
        self.failures = {k: list(v) for k, v in (failures or {}).items()}
        self.calls: list[tuple[str, dict]] = []

    def _record(self, op: str, kwargs: dict) -> None:
        self.calls.append((op, kwargs))
        pending = self.failures.get(op)
        if pending:
            raise pending.pop(0)

    def calls_to(self, op: str) -> list[dict]:
        return [kwargs for name, kwargs in self.calls if name == op]

    def _item(self, name: str) -> dict:
        return {
            "Name": name,
            "Value": self.parameters[name],
            "Type": "String",
            "Version": 1,
            "LastModifiedDate": datetime(2024, 1, 1, tzinfo=UTC),
        }

    def _page(self, items: list, token: str | None) -> tuple[list, str | None]:
        start = int(token) if token else 0
        end = start + self.page_size
        return items[start:end], (str(end) if end < len(items) else None)

    def get_parameters_by_path(self, **kwargs) -> dict:
        self._record("get_parameters_by_path", kwargs)
        prefix = kwargs["Path"].rstrip("/") + "/"
        names = [n for n in self.parameters if n.startswith(prefix)]
        page, token = self._page(names, kwargs.get("NextToken"))
        response: dict = {"Parameters": [self._item(n) for n in page]}
        if token:
            response["NextToken"] = token
        return response

    def describe_parameters(self, **kwargs) -> dict:
        self._record("describe_parameters", kwargs)
        wanted = {f["Key"].removeprefix("tag:") for f in kwargs.get("ParameterFilters", [])}
        names = [n for n in self.parameters if wanted <= self.tags.get(n, set())]
        page, token = self._page(names, kwargs.get("NextToken"))
        response: dict = {"Parameters": [{"Name": n, "Type": "String"} for n in page]}
        if token:
            response["NextToken"] = token
        return response

    def get_parameters(self, **kwargs) -> dict:
        self._record("get_parameters", kwargs)
        names = kwargs["Names"]
        found = [n for n in names if n in self.parameters]
        # SSM does not return parameters in request order.
        return {
            "Parameters": [self._item(n) for n in reversed(found)],
            "InvalidParameters": [n for n in names if n not in self.parameters],
        }


@pytest.fixture()
def aws_credentials():
    """Ensure moto doesn't try to use real AWS credentials."""
    os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
    os.environ.setdefault("AWS_SECURITY_TOKEN", "testing")
    os.environ.setdefault("AWS_SESSION_TOKEN", "testing")


@pytest.fixture()
def ssm_client(aws_credentials):
    """A moto-mocked SSM client with the seed parameters pre-loaded."""
    with mock_aws():
        client = boto3.client("ssm", region_name="us-east-1")
        for name, value, type_ in SEED_PARAMETERS:
            client.put_parameter(Name=name, Value=value, Type=type_)
        yield client


@pytest.fixture()
def delays() -> list[float]:
    return []


@pytest.fixture()
def fast_retry(delays):
    """A retry policy that records backoff delays in ``delays`` instead of sleeping."""
    return RetryPolicy(
        max_retries=3,
        max_backoff=0.5,
        sleep=delays.append,
        jitter=lambda low, high: high,
    )
