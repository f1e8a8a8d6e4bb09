"""Blocking PEP 249 connection and cursor over the async session.

Each statement runs to completion on a private event loop. ``Cursor.cancel``
may be called from another thread while ``execute`` is blocked; the running
statement is stopped remotely and ``execute`` raises ``CallerCancelledError``.
"""

import asyncio
import dataclasses
import datetime
import logging
from typing import Any, Awaitable, Iterator, List, Mapping, Optional, Sequence, Tuple, TypeVar

from athenadriver import errors
from athenadriver.cancellation import CancellationToken
from athenadriver.config import DriverConfig
from athenadriver.errors import InterfaceError, ProgrammingError
from athenadriver.remote import AthenaClient
from athenadriver.results import ResultCursor
from athenadriver.session import Session
from athenadriver.usage import QueryUsage
from athenadriver.workgroup import WorkgroupCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DBAPITypeObject:
    """Compares equal to every Athena type name in its group."""

    def __init__(self, *values: str) -> None:
        """Initialize with the lower-case Athena type names of the group."""
        self.values = frozenset(values)

    def __eq__(self, other: object) -> bool:
        """Match a column type name, ignoring parameters such as decimal(10,2)."""
        if isinstance(other, str):
            return other.split("(", 1)[0].strip().lower() in self.values
        return NotImplemented

    def __hash__(self) -> int:
        """Hash by the group of type names."""
        return hash(self.values)


STRING = DBAPITypeObject("varchar", "char", "string", "json", "array", "map", "row", "struct")
BINARY = DBAPITypeObject("varbinary")
NUMBER = DBAPITypeObject(
    "boolean", "tinyint", "smallint", "integer", "int", "bigint", "float", "real", "double",
    "decimal",
)
DATETIME = DBAPITypeObject("date", "timestamp", "time")
ROWID = DBAPITypeObject()

Date = datetime.date
Time = datetime.time
Timestamp = datetime.datetime
Binary = bytes


def DateFromTicks(ticks: float) -> datetime.date:  # noqa: N802
    """Build a local date from seconds since the epoch."""
    return datetime.date.fromtimestamp(ticks)


def TimeFromTicks(ticks: float) -> datetime.time:  # noqa: N802
    """Build a local time of day from seconds since the epoch."""
    return datetime.datetime.fromtimestamp(ticks).time()


def TimestampFromTicks(ticks: float) -> datetime.datetime:  # noqa: N802
    """Build a naive local datetime from seconds since the epoch."""
    return datetime.datetime.fromtimestamp(ticks)


def _run(awaitable: Awaitable[T]) -> T:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(awaitable)
    if asyncio.iscoroutine(awaitable):
        awaitable.close()
    raise InterfaceError(
        "the blocking connection cannot be used inside a running event loop; "
        "use athenadriver.Session instead"
    )


def _positional(parameters: Optional[Sequence[Any]]) -> Optional[Sequence[Any]]:
    if parameters is None:
        return None
    if isinstance(parameters, Mapping) or isinstance(parameters, (str, bytes)):
        raise ProgrammingError("parameters must be a sequence matching the '?' placeholders")
    return parameters


class Connection:
    """PEP 249 connection; Athena has no transactions so commit is a no-op."""

    Warning = errors.Warning
    Error = errors.Error
    InterfaceError = errors.InterfaceError
    DatabaseError = errors.DatabaseError
    DataError = errors.DataError
    OperationalError = errors.OperationalError
    IntegrityError = errors.IntegrityError
    InternalError = errors.InternalError
    ProgrammingError = errors.ProgrammingError
    NotSupportedError = errors.NotSupportedError

    def __init__(
        self,
        config: DriverConfig,
        client: Optional[AthenaClient] = None,
        workgroup_cache: Optional[WorkgroupCache] = None,
        page_size: Optional[int] = None,
    ) -> None:
        """Open a session over config; client and cache default to shared ones."""
        self._session = Session(
            config, client=client, workgroup_cache=workgroup_cache, page_size=page_size
        )

    @property
    def session(self) -> Session:
        """Return the async session statements run on."""
        return self._session

    @property
    def closed(self) -> bool:
        """Return True once the connection has been closed."""
        return self._session.closed

    def cursor(self) -> "Cursor":
        """Return a new cursor bound to this connection."""
        self._check_open()
        return Cursor(self)

    def close(self) -> None:
        """Close the session; later calls raise InterfaceError."""
        self._session.close()

    def commit(self) -> None:
        """Do nothing; every statement commits on its own."""
        self._check_open()

    def rollback(self) -> None:
        """Always fails; Athena has no transactions."""
        self._check_open()
        raise errors.TransactionUnsupportedError()

    def begin(self) -> None:
        """Always fails; Athena has no transactions."""
        self._check_open()
        self._session.begin()

    def ping(self) -> None:
        """Run a trivial query; raises OperationalError when Athena is unreachable."""
        _run(self._session.ping())

    def _check_open(self) -> None:
        if self._session.closed:
            raise InterfaceError("connection is closed")

    def __enter__(self) -> "Connection":
        """Return the connection itself."""
        return self

    def __exit__(self, *exc_info: Any) -> None:
        """Close the connection."""
        self.close()


class Cursor:
    """PEP 249 cursor with the Athena execution id and usage of its last statement."""

    arraysize = 1

    def __init__(self, connection: Connection) -> None:
        """Initialize a cursor with no result set."""
        self._connection = connection
        self._result: Optional[ResultCursor] = None
        self._rowcount = -1
        self._query_id: Optional[str] = None
        self._usage: Optional[QueryUsage] = None
        self._token: Optional[CancellationToken] = None
        self._closed = False

    @property
    def connection(self) -> Connection:
        """Return the connection that created this cursor."""
        return self._connection

    @property
    def description(self) -> Optional[List[Tuple[Any, ...]]]:
        """Return the seven-item column descriptions of the current result set."""
        return self._result.description if self._result is not None else None

    @property
    def rowcount(self) -> int:
        """Return rows affected by the last statement, or -1 when unknown."""
        return self._rowcount

    @property
    def query_id(self) -> Optional[str]:
        """Return the Athena execution id of the last statement, if one was assigned."""
        return self._query_id

    @property
    def usage(self) -> Optional[QueryUsage]:
        """Return scanned-bytes accounting for the last statement in money-wise mode."""
        return self._usage

    @property
    def closed(self) -> bool:
        """Return True once the cursor has been closed."""
        return self._closed

    def execute(self, operation: str, parameters: Optional[Sequence[Any]] = None) -> "Cursor":
        """Run operation, binding parameters to its '?' placeholders."""
        self._start()
        session = self._connection.session
        token = CancellationToken()
        self._token = token
        try:
            result = _run(session.query(operation, _positional(parameters), token))
        finally:
            self._token = None
            self._capture(session)
        self._result = result
        self._rowcount = result.update_count if result.update_count is not None else -1
        return self

    def executemany(
        self, operation: str, seq_of_parameters: Sequence[Sequence[Any]]
    ) -> "Cursor":
        """Run operation once per parameter set; rowcount is the total affected."""
        self._start()
        session = self._connection.session
        total = 0
        for parameters in seq_of_parameters:
            token = CancellationToken()
            self._token = token
            try:
                outcome = _run(session.execute(operation, _positional(parameters), token))
            finally:
                self._token = None
                self._capture(session)
            total += outcome.rows_affected
        self._rowcount = total
        return self

    def cancel(self) -> None:
        """Stop the statement currently running on this cursor; safe from any thread."""
        token = self._token
        if token is not None:
            logger.info("athena_cursor_cancel query_id=%s", self._query_id)
            token.cancel()

    def fetchone(self) -> Optional[Tuple[Any, ...]]:
        """Return the next row, or None when the result set is exhausted."""
        return self._require_result().fetchone()

    def fetchmany(self, size: Optional[int] = None) -> List[Tuple[Any, ...]]:
        """Return up to size rows, arraysize by default."""
        return self._require_result().fetchmany(self.arraysize if size is None else size)

    def fetchall(self) -> List[Tuple[Any, ...]]:
        """Return every remaining row."""
        return self._require_result().fetchall()

    def __iter__(self) -> Iterator[Tuple[Any, ...]]:
        """Iterate over the remaining rows."""
        return iter(self._require_result())

    def setinputsizes(self, sizes: Any) -> None:
        """Accepted for compatibility; has no effect."""
        pass

    def setoutputsize(self, size: Any, column: Optional[int] = None) -> None:
        """Accepted for compatibility; has no effect."""
        pass

    def close(self) -> None:
        """Release the current result set; later calls raise InterfaceError."""
        if self._result is not None:
            self._result.close()
        self._result = None
        self._closed = True

    def __enter__(self) -> "Cursor":
        """Return the cursor itself."""
        return self

    def __exit__(self, *exc_info: Any) -> None:
        """Close the cursor."""
        self.close()

    def _start(self) -> None:
        if self._closed:
            raise InterfaceError("cursor is closed")
        self._connection._check_open()
        if self._result is not None:
            self._result.close()
        self._result = None
        self._rowcount = -1
        self._query_id = None
        self._usage = None

    def _capture(self, session: Session) -> None:
        context = session.last_context
        if context is not None:
            self._query_id = context.query_id
            self._usage = context.usage

    def _require_result(self) -> ResultCursor:
        if self._closed:
            raise InterfaceError("cursor is closed")
        if self._result is None:
            raise ProgrammingError("no result set; call execute() first")
        return self._result


def connect(
    config: Optional[DriverConfig] = None,
    *,
    client: Optional[AthenaClient] = None,
    workgroup_cache: Optional[WorkgroupCache] = None,
    page_size: Optional[int] = None,
    **overrides: Any,
) -> Connection:
    """Open a connection.

    Without config, settings come from keyword overrides when given and from
    the environment otherwise (see ``DriverConfig.from_env``). Overrides are
    applied on top of an explicit config.
    """
    if config is None:
        config = DriverConfig(**overrides) if overrides else DriverConfig.from_env()
    elif overrides:
        config = dataclasses.replace(config, **overrides)
    return Connection(config, client=client, workgroup_cache=workgroup_cache, page_size=page_size)
