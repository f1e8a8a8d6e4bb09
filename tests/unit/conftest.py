"""Unit test environment helpers."""

import pytest

_DRIVER_ENV_VARS = (
    "AWS_REGION",
    "ATHENA_OUTPUT_LOCATION",
    "ATHENA_DATABASE",
    "ATHENA_WORKGROUP",
    "ATHENA_WORKGROUP_REMOTE_CREATION",
    "ATHENA_READ_ONLY",
    "ATHENA_POLL_INTERVAL_SECONDS",
    "ATHENA_DDL_QUERY_TIMEOUT_SECONDS",
    "ATHENA_DML_QUERY_TIMEOUT_SECONDS",
    "ATHENA_MONEY_WISE",
    "ATHENA_DRIVER_TRACE_QUERIES",
)


@pytest.fixture(autouse=True)
def _minimal_env(monkeypatch):
    """Clear driver env vars so unit tests never pick up a developer's AWS setup."""
    for name in _DRIVER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_workgroup_cache():
    """Empty the process-wide workgroup cache after each test."""
    from athenadriver.workgroup import DEFAULT_WORKGROUP_CACHE

    yield
    DEFAULT_WORKGROUP_CACHE.invalidate()
