import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, Sequence

from athenadriver.cancellation import CancellationToken
from athenadriver.config import DriverConfig
from athenadriver.errors import (
    Error,
    ErrorCode,
    InterfaceError,
    OperationalError,
    ProgrammingError,
    TransactionUnsupportedError,
)
from athenadriver.execution import ExecutionContext, QueryRunner, StatementRequest
from athenadriver.executor import AthenaAsyncQueryExecutor
from athenadriver.interpolation import build_execution_params, interpolate_params
from athenadriver.pseudo_commands import PseudoCommandKind, parse_pseudo_command
from athenadriver.remote import AthenaClient, build_default_client
from athenadriver.results import ResultCursor, ResultPage
from athenadriver.usage import QueryUsage
from athenadriver.version import __version__
from athenadriver.workgroup import DEFAULT_WORKGROUP_CACHE, WorkgroupCache

logger = logging.getLogger(__name__)

PING_QUERY = "SELECT 1"


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of a statement run for its effect rather than its rows."""

    rows_affected: int
    query_id: Optional[str] = None
    usage: Optional[QueryUsage] = None
    last_insert_id: int = -1


class Session:
    """One Athena session running at most one statement at a time.

    ``query`` returns a row cursor; arguments are validated by client-side
    interpolation and sent to Athena as native execution parameters next to
    the placeholder text. ``execute`` interpolates the arguments into the
    query text and returns the affected row count.
    """

    def __init__(
        self,
        config: DriverConfig,
        client: Optional[AthenaClient] = None,
        workgroup_cache: Optional[WorkgroupCache] = None,
        page_size: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Bind the session to a client, its config and a shared workgroup cache."""
        self._config = config
        self._client = client if client is not None else build_default_client(config)
        executor = AthenaAsyncQueryExecutor(
            self._client,
            config,
            workgroup_cache if workgroup_cache is not None else DEFAULT_WORKGROUP_CACHE,
            page_size=page_size,
        )
        self._runner = QueryRunner(executor, config, clock=clock)
        self._busy = False
        self._closed = False
        self._last_context: Optional[ExecutionContext] = None

    @property
    def config(self) -> DriverConfig:
        """Return the session configuration."""
        return self._config

    @property
    def closed(self) -> bool:
        """Return True once close() has been called."""
        return self._closed

    @property
    def last_context(self) -> Optional[ExecutionContext]:
        """Return the execution context of the most recent statement, failed or not."""
        return self._last_context

    async def query(
        self,
        sql: str,
        args: Optional[Sequence[Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ResultCursor:
        """Run sql and return a cursor over its rows."""
        with self._exclusive():
            return await self._run(sql, args, cancel_token, native_params=True)

    async def execute(
        self,
        sql: str,
        args: Optional[Sequence[Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ExecutionResult:
        """Run sql for its effect and return the affected row count."""
        with self._exclusive():
            cursor = await self._run(sql, args, cancel_token, native_params=False)
        try:
            rows_affected = cursor.update_count or 0
        finally:
            cursor.close()
        context = self._last_context
        return ExecutionResult(
            rows_affected=rows_affected,
            query_id=context.query_id if context else None,
            usage=context.usage if context else None,
        )

    async def ping(self, cancel_token: Optional[CancellationToken] = None) -> None:
        """Check that credentials and the network path to Athena work."""
        try:
            cursor = await self.query(PING_QUERY, cancel_token=cancel_token)
        except (InterfaceError, ProgrammingError):
            raise
        except Exception as exc:
            logger.warning("athena_ping_failed error=%s", exc)
            raise OperationalError(
                f"Athena is unreachable: {exc}", reason_code=ErrorCode.CONNECTION_UNAVAILABLE
            ) from exc
        cursor.close()

    def begin(self) -> None:
        """Reject transactions, which Athena does not have."""
        raise TransactionUnsupportedError()

    def close(self) -> None:
        """Close the session; further statements are rejected."""
        self._closed = True
        self._last_context = None

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if self._closed:
            raise InterfaceError("session is closed")
        if self._busy:
            raise ProgrammingError("session is already running a statement")
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    async def _run(
        self,
        sql: str,
        args: Optional[Sequence[Any]],
        cancel_token: Optional[CancellationToken],
        native_params: bool,
    ) -> ResultCursor:
        context = ExecutionContext()
        self._last_context = context

        parsed = parse_pseudo_command(sql)
        if parsed.kind is PseudoCommandKind.GET_DRIVER_VERSION:
            return ResultCursor(ResultPage.single_value(__version__))

        text = parsed.query
        execution_params: List[str] = []
        arguments = list(args) if args is not None else []
        if arguments:
            interpolated = interpolate_params(text, arguments)
            if native_params:
                execution_params = build_execution_params(arguments)
            else:
                text = interpolated

        request = StatementRequest(
            query=text, execution_params=execution_params, command=parsed.kind
        )
        try:
            return await self._runner.run(request, context, cancel_token)
        except Error as exc:
            logger.debug("athena_statement_rejected reason_code=%s", exc.reason_code.value)
            raise
