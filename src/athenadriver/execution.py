"""Query execution state machine.

A statement goes SUBMITTED -> QUEUED/RUNNING -> SUCCEEDED/FAILED/CANCELLED.
``QueryRunner`` submits it, polls Athena at a fixed interval and turns the
terminal state into a result cursor or an exception. Between polls it waits
on two things at once, the interval timer and the caller's cancellation
token, and acts on whichever fires first:

* cancellation: the execution is stopped remotely and the caller's reason
  is raised (a failing stop call is raised instead);
* timer: the elapsed time is checked against the statement-type timeout.
  Reaching it raises ``QueryTimeoutError`` without stopping the remote
  execution; Athena enforces its own limits on it.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from athenadriver.cancellation import CancellationToken
from athenadriver.config import DEFAULT_WORKGROUP_NAME, MAX_QUERY_STRING_LENGTH, DriverConfig
from athenadriver.errors import (
    InternalError,
    InvalidQueryError,
    QueryCancelledError,
    QueryFailedError,
    QueryTimeoutError,
    WorkgroupDisabledError,
    WorkgroupUnavailableError,
)
from athenadriver.executor import AthenaAsyncQueryExecutor
from athenadriver.pseudo_commands import PseudoCommandKind
from athenadriver.remote import (
    QueryExecution,
    QueryState,
    execution_id_from_error,
    is_execution_id,
    service_request_id_from_error,
)
from athenadriver.results import ResultCursor, ResultPage
from athenadriver.usage import QueryUsage, record_usage
from athenadriver.util.read_only import enforce_read_only_sql
from athenadriver.util.timeouts import query_timeout_seconds

logger = logging.getLogger(__name__)

STOP_OK = "OK"


@dataclass(frozen=True)
class StatementRequest:
    """What to run: query text, native parameters and an optional pseudo command."""

    query: str
    execution_params: List[str] = field(default_factory=list)
    command: Optional[PseudoCommandKind] = None


@dataclass
class ExecutionContext:
    """Per-statement execution state, owned by one session."""

    query_id: Optional[str] = None
    submitted_at: Optional[float] = None
    snapshot: Optional[QueryExecution] = None
    usage: Optional[QueryUsage] = None

    @property
    def state(self) -> Optional[QueryState]:
        """Return the last observed state; None while only submitted."""
        return self.snapshot.state if self.snapshot is not None else None

    def observe(self, snapshot: QueryExecution) -> None:
        """Record a new status snapshot; terminal states are final."""
        if self.snapshot is not None and self.snapshot.state.is_terminal:
            raise InternalError(
                f"execution {self.query_id} already reached {self.snapshot.state.value}"
            )
        self.snapshot = snapshot


def validate_query_text(query: str) -> None:
    """Reject empty queries and queries longer than Athena accepts."""
    if not query.strip():
        raise InvalidQueryError("query is empty")
    if len(query) > MAX_QUERY_STRING_LENGTH:
        raise InvalidQueryError(
            f"query is {len(query)} characters long, the maximum is {MAX_QUERY_STRING_LENGTH}"
        )


class QueryRunner:
    """Drives one statement from submission to a terminal outcome."""

    def __init__(
        self,
        executor: AthenaAsyncQueryExecutor,
        config: DriverConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize with the remote executor and session config."""
        self._executor = executor
        self._config = config
        self._clock = clock

    async def run(
        self,
        request: StatementRequest,
        context: ExecutionContext,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ResultCursor:
        """Run request to completion and return its result cursor."""
        query = request.query
        targets_execution = is_execution_id(query)
        if not (targets_execution and request.command is not PseudoCommandKind.STOP_QUERY_ID):
            enforce_read_only_sql(query, self._config.read_only)
        validate_query_text(query)

        workgroup = await self._ensure_workgroup()

        if targets_execution:
            return await self._run_on_execution(query.strip(), request.command, context)
        if request.command is PseudoCommandKind.STOP_QUERY_ID:
            raise InvalidQueryError("stop_query_id requires an execution id")

        context.submitted_at = self._clock()
        try:
            query_id = await self._executor.submit(query, request.execution_params, workgroup)
        except Exception as exc:
            context.query_id = execution_id_from_error(exc)
            logger.error(
                "athena_submit_failed workgroup=%s query_id=%s error=%s",
                workgroup,
                context.query_id,
                exc,
            )
            if request.command is PseudoCommandKind.GET_QUERY_ID:
                request_id = service_request_id_from_error(exc)
                if request_id:
                    return ResultCursor(ResultPage.single_value(request_id))
            raise
        context.query_id = query_id
        logger.debug("athena_submitted workgroup=%s query_id=%s", workgroup, query_id)

        if request.command is PseudoCommandKind.GET_QUERY_ID:
            return ResultCursor(ResultPage.single_value(query_id), query_id=query_id)
        if request.command is PseudoCommandKind.GET_QUERY_ID_STATUS:
            snapshot = await self._executor.poll(query_id)
            context.observe(snapshot)
            return ResultCursor(ResultPage.single_value(snapshot.state.value), query_id=query_id)

        await self._wait_for_terminal(context, cancel_token)
        return await self._executor.open_results(query_id)

    async def _ensure_workgroup(self) -> str:
        workgroup_config = self._config.workgroup
        name = workgroup_config.effective_name
        if name == DEFAULT_WORKGROUP_NAME:
            return name

        try:
            workgroup = await self._executor.resolve_workgroup(name)
        except Exception as exc:
            logger.warning("athena_workgroup_lookup_failed workgroup=%s error=%s", name, exc)
            if not self._config.allow_workgroup_remote_creation:
                raise WorkgroupUnavailableError(
                    f"workgroup {name!r} doesn't exist and workgroup remote creation is disabled"
                ) from exc
            await self._executor.create_workgroup(workgroup_config)
            logger.info("athena_workgroup_created workgroup=%s", name)
            return name

        if not workgroup.is_enabled:
            logger.warning("athena_workgroup_disabled workgroup=%s", name)
            raise WorkgroupDisabledError(f"workgroup {name!r} is disabled")
        return name

    async def _run_on_execution(
        self,
        query_id: str,
        command: Optional[PseudoCommandKind],
        context: ExecutionContext,
    ) -> ResultCursor:
        context.query_id = query_id
        if command is PseudoCommandKind.GET_QUERY_ID_STATUS:
            snapshot = await self._executor.poll(query_id)
            context.observe(snapshot)
            return ResultCursor(ResultPage.single_value(snapshot.state.value), query_id=query_id)
        if command is PseudoCommandKind.STOP_QUERY_ID:
            try:
                await self._executor.cancel(query_id)
            except Exception as exc:
                logger.error("athena_stop_failed query_id=%s error=%s", query_id, exc)
                raise
            return ResultCursor(ResultPage.single_value(STOP_OK), query_id=query_id)

        # Re-reading results of a finished execution scans nothing.
        if self._config.money_wise:
            context.usage = record_usage(query_id, None, "cached")
        return await self._executor.open_results(query_id)

    async def _wait_for_terminal(
        self, context: ExecutionContext, cancel_token: Optional[CancellationToken]
    ) -> QueryExecution:
        try:
            return await self._poll_until_terminal(context, cancel_token)
        except asyncio.CancelledError:
            # The awaiting task was cancelled; the remote execution must not outlive it.
            if context.state is None or not context.state.is_terminal:
                await asyncio.shield(self._stop(context))
            raise

    async def _poll_until_terminal(
        self, context: ExecutionContext, cancel_token: Optional[CancellationToken]
    ) -> QueryExecution:
        query_id = context.query_id
        while True:
            snapshot = await self._executor.poll(query_id)
            context.observe(snapshot)

            if snapshot.state is QueryState.CANCELLED:
                logger.error("athena_query_cancelled query_id=%s", query_id)
                self._account(context, "cancelled")
                raise QueryCancelledError(f"query {query_id} was cancelled")
            if snapshot.state is QueryState.FAILED:
                reason = snapshot.state_change_reason or f"query {query_id} failed"
                logger.error("athena_query_failed query_id=%s reason=%s", query_id, reason)
                self._account(context, "failed")
                raise QueryFailedError(reason, query_id=query_id)
            if snapshot.state is QueryState.SUCCEEDED:
                self._account(context, "succeeded")
                return snapshot

            cancel_reason = await self._sleep_or_cancelled(cancel_token)
            if cancel_reason is not None:
                await self._stop(context)
                raise cancel_reason

            timeout = query_timeout_seconds(
                snapshot.statement_type, self._config.service_limit_override
            )
            if self._clock() - context.submitted_at > timeout:
                logger.error(
                    "athena_query_timeout query_id=%s statement_type=%s timeout_seconds=%s",
                    query_id,
                    snapshot.statement_type.value if snapshot.statement_type else None,
                    timeout,
                )
                raise QueryTimeoutError(query_id, timeout)

    async def _sleep_or_cancelled(
        self, cancel_token: Optional[CancellationToken]
    ) -> Optional[BaseException]:
        interval = self._config.poll_interval_seconds
        if cancel_token is None:
            await asyncio.sleep(interval)
            return None
        if cancel_token.cancelled:
            return cancel_token.reason

        timer = asyncio.ensure_future(asyncio.sleep(interval))
        cancelled = asyncio.ensure_future(cancel_token.wait())
        try:
            done, _ = await asyncio.wait({timer, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (timer, cancelled):
                task.cancel()
            await asyncio.gather(timer, cancelled, return_exceptions=True)
        if cancelled in done:
            return cancelled.result()
        return None

    async def _stop(self, context: ExecutionContext) -> None:
        try:
            await self._executor.cancel(context.query_id)
        except Exception as exc:
            logger.error("athena_stop_failed query_id=%s error=%s", context.query_id, exc)
            raise
        logger.error("athena_query_stopped_by_caller query_id=%s", context.query_id)
        self._account(context, "caller_cancelled")

    def _account(self, context: ExecutionContext, outcome: str) -> None:
        if self._config.money_wise:
            context.usage = record_usage(context.query_id, context.snapshot, outcome)
