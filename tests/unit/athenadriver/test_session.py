import asyncio

import pytest

from athenadriver import __version__
from athenadriver.cancellation import CancellationToken
from athenadriver.errors import (
    CallerCancelledError,
    ErrorCode,
    InterfaceError,
    InvalidQueryError,
    OperationalError,
    ProgrammingError,
    TransactionUnsupportedError,
    UnknownPseudoCommandError,
)
from athenadriver.session import Session
from athenadriver.workgroup import WorkgroupCache
from tests._support.athena_fakes import (
    QUERY_ID,
    FakeAthenaClient,
    client_error,
    make_config,
    result_response,
)


def _session(client, **config):
    return Session(make_config(**config), client=client, workgroup_cache=WorkgroupCache())


@pytest.mark.asyncio
async def test_query_sends_native_execution_parameters():
    client = FakeAthenaClient()
    session = _session(client)

    await session.query("SELECT * FROM t WHERE a = ? AND b = ?", [1, "x"])

    (start,) = client.calls_to("start_query_execution")
    assert start["QueryString"] == "SELECT * FROM t WHERE a = ? AND b = ?"
    assert start["ExecutionParameters"] == ["1", "x"]


@pytest.mark.asyncio
async def test_query_validates_arguments_before_submitting():
    client = FakeAthenaClient()
    session = _session(client)

    with pytest.raises(InvalidQueryError):
        await session.query("SELECT * FROM t WHERE a = ?", [1, 2])
    assert client.calls == []


@pytest.mark.asyncio
async def test_execute_interpolates_and_returns_update_count():
    client = FakeAthenaClient(
        pages={None: result_response([], [], header=False, update_count=3)}
    )
    session = _session(client, money_wise=True)

    outcome = await session.execute("INSERT INTO t VALUES (?, ?)", [1, "it's"])

    (start,) = client.calls_to("start_query_execution")
    assert start["QueryString"] == "INSERT INTO t VALUES (1, 'it\\'s')"
    assert "ExecutionParameters" not in start
    assert outcome.rows_affected == 3
    assert outcome.last_insert_id == -1
    assert outcome.query_id == QUERY_ID
    assert outcome.usage.outcome == "succeeded"


@pytest.mark.asyncio
async def test_execute_without_update_count_reports_zero():
    session = _session(FakeAthenaClient())
    outcome = await session.execute("SELECT 1")
    assert outcome.rows_affected == 0


@pytest.mark.asyncio
async def test_driver_version_needs_no_remote_call():
    client = FakeAthenaClient()
    session = _session(client)

    cursor = await session.query("pc:get_driver_version")

    assert cursor.fetchall() == [(__version__,)]
    assert client.calls == []


@pytest.mark.asyncio
async def test_unknown_pseudo_command():
    client = FakeAthenaClient()
    with pytest.raises(UnknownPseudoCommandError):
        await _session(client).query("pc:explode SELECT 1")
    assert client.calls == []


@pytest.mark.asyncio
async def test_ping():
    client = FakeAthenaClient()
    await _session(client).ping()
    assert client.calls_to("start_query_execution")[0]["QueryString"] == "SELECT 1"


@pytest.mark.asyncio
async def test_ping_failure_is_operational_error():
    client = FakeAthenaClient()
    client.start_error = client_error("StartQueryExecution", code="UnrecognizedClientException")

    with pytest.raises(OperationalError) as exc_info:
        await _session(client).ping()
    assert exc_info.value.reason_code is ErrorCode.CONNECTION_UNAVAILABLE


def test_begin_is_rejected():
    with pytest.raises(TransactionUnsupportedError) as exc_info:
        _session(FakeAthenaClient()).begin()
    assert str(exc_info.value) == "Athena doesn't support transactions"


@pytest.mark.asyncio
async def test_one_statement_at_a_time():
    client = FakeAthenaClient(states=["RUNNING"])
    session = _session(client)
    token = CancellationToken()

    task = asyncio.create_task(session.query("SELECT * FROM big_table", cancel_token=token))
    assert await asyncio.to_thread(client.polled.wait, 5)

    with pytest.raises(ProgrammingError):
        await session.query("SELECT 1")

    token.cancel()
    with pytest.raises(CallerCancelledError):
        await task
    client.states = ["SUCCEEDED"]
    cursor = await session.query("SELECT 1")
    assert cursor.fetchall() == [(1,)]


@pytest.mark.asyncio
async def test_closed_session_rejects_statements():
    session = _session(FakeAthenaClient())
    session.close()

    assert session.closed
    with pytest.raises(InterfaceError):
        await session.query("SELECT 1")
