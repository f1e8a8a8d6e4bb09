import pytest

from athenadriver.config import (
    DDL_QUERY_TIMEOUT_SECONDS,
    DML_QUERY_TIMEOUT_SECONDS,
    DriverConfig,
    ServiceLimitOverride,
    WorkgroupConfig,
)
from athenadriver.remote import StatementType, is_execution_id
from athenadriver.util.env import get_env_bool, get_env_float, get_env_str
from athenadriver.util.read_only import is_read_only_statement
from athenadriver.util.timeouts import query_timeout_seconds


def test_from_env_requires_region_and_output_location():
    with pytest.raises(ValueError) as exc_info:
        DriverConfig.from_env()
    assert "AWS_REGION" in str(exc_info.value)
    assert "ATHENA_OUTPUT_LOCATION" in str(exc_info.value)


def test_from_env_defaults(monkeypatch):
    monkeypatch.setenv("AWS_REGION", "us-west-2")
    monkeypatch.setenv("ATHENA_OUTPUT_LOCATION", "s3://bucket/out/")

    config = DriverConfig.from_env()

    assert config.database == "default"
    assert config.workgroup.effective_name == "primary"
    assert config.allow_workgroup_remote_creation is True
    assert config.read_only is False
    assert config.poll_interval_seconds == 3.0
    assert config.service_limit_override is None
    assert config.money_wise is False


def test_from_env_overrides(monkeypatch):
    monkeypatch.setenv("AWS_REGION", "us-west-2")
    monkeypatch.setenv("ATHENA_OUTPUT_LOCATION", "s3://bucket/out/")
    monkeypatch.setenv("ATHENA_DATABASE", "sales")
    monkeypatch.setenv("ATHENA_WORKGROUP", "analytics")
    monkeypatch.setenv("ATHENA_WORKGROUP_REMOTE_CREATION", "false")
    monkeypatch.setenv("ATHENA_READ_ONLY", "yes")
    monkeypatch.setenv("ATHENA_POLL_INTERVAL_SECONDS", "0.5")
    monkeypatch.setenv("ATHENA_DML_QUERY_TIMEOUT_SECONDS", "60")
    monkeypatch.setenv("ATHENA_MONEY_WISE", "1")

    config = DriverConfig.from_env()

    assert config.database == "sales"
    assert config.workgroup.name == "analytics"
    assert config.allow_workgroup_remote_creation is False
    assert config.read_only is True
    assert config.poll_interval_seconds == 0.5
    assert config.service_limit_override == ServiceLimitOverride(dml_query_timeout_seconds=60.0)
    assert config.money_wise is True


def test_invalid_env_values(monkeypatch):
    monkeypatch.setenv("ATHENA_READ_ONLY", "maybe")
    with pytest.raises(ValueError):
        get_env_bool("ATHENA_READ_ONLY")

    monkeypatch.setenv("ATHENA_POLL_INTERVAL_SECONDS", "soon")
    with pytest.raises(ValueError):
        get_env_float("ATHENA_POLL_INTERVAL_SECONDS")


def test_blank_env_value_is_unset(monkeypatch):
    monkeypatch.setenv("ATHENA_DATABASE", "   ")
    assert get_env_str("ATHENA_DATABASE", "default") == "default"


def test_poll_interval_must_be_positive():
    with pytest.raises(ValueError):
        DriverConfig(poll_interval_seconds=0)


def test_empty_workgroup_name_falls_back_to_primary():
    assert WorkgroupConfig(name="").effective_name == "primary"


@pytest.mark.parametrize(
    "statement_type, expected",
    [
        (StatementType.DDL, DDL_QUERY_TIMEOUT_SECONDS),
        (StatementType.DML, DML_QUERY_TIMEOUT_SECONDS),
        (StatementType.UTILITY, DML_QUERY_TIMEOUT_SECONDS),
        (None, DML_QUERY_TIMEOUT_SECONDS),
    ],
)
def test_query_timeout_defaults(statement_type, expected):
    assert query_timeout_seconds(statement_type) == expected


def test_query_timeout_override():
    override = ServiceLimitOverride(ddl_query_timeout_seconds=120)
    assert query_timeout_seconds(StatementType.DDL, override) == 120
    assert query_timeout_seconds(StatementType.DML, override) == DML_QUERY_TIMEOUT_SECONDS


@pytest.mark.parametrize(
    "sql, read_only",
    [
        ("SELECT 1", True),
        ("  select * from t", True),
        ("(SELECT 1) UNION (SELECT 2)", True),
        ("WITH x AS (SELECT 1) SELECT * FROM x", True),
        ("SHOW TABLES", True),
        ("DESCRIBE t", True),
        ("EXPLAIN SELECT 1", True),
        ("-- c\nSELECT 1", True),
        ("/* c */ SHOW TABLES", True),
        ("/* multi\nline */\n-- second\n(SELECT 1)", True),
        ("-- SELECT\nDROP TABLE t", False),
        ("CREATE TABLE t2 AS SELECT * FROM t", False),
        ("INSERT INTO t VALUES (1)", False),
        ("DROP TABLE t", False),
        ("MSCK REPAIR TABLE t", False),
        ("", False),
    ],
)
def test_read_only_classification(sql, read_only):
    assert is_read_only_statement(sql) is read_only


@pytest.mark.parametrize(
    "text, expected",
    [
        ("3f1d9c2e-8b7a-4c6d-9e0f-1a2b3c4d5e6f", True),
        (" 3F1D9C2E-8B7A-4C6D-9E0F-1A2B3C4D5E6F\n", True),
        ("3f1d9c2e8b7a4c6d9e0f1a2b3c4d5e6f", False),
        ("SELECT 1", False),
    ],
)
def test_execution_id_shape(text, expected):
    assert is_execution_id(text) is expected
