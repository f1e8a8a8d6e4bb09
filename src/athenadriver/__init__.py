"""PEP 249 driver for Amazon Athena."""

from athenadriver.cancellation import CancellationToken
from athenadriver.config import DriverConfig, ServiceLimitOverride, WorkgroupConfig
from athenadriver.dbapi import (
    BINARY,
    DATETIME,
    NUMBER,
    ROWID,
    STRING,
    Binary,
    Connection,
    Cursor,
    Date,
    DateFromTicks,
    Time,
    TimeFromTicks,
    Timestamp,
    TimestampFromTicks,
    connect,
)
from athenadriver.errors import (
    CallerCancelledError,
    DatabaseError,
    DataError,
    Error,
    ErrorCode,
    IntegrityError,
    InterfaceError,
    InternalError,
    NotSupportedError,
    OperationalError,
    ProgrammingError,
    QueryCancelledError,
    QueryFailedError,
    QueryTimeoutError,
    Warning,
)
from athenadriver.session import ExecutionResult, Session
from athenadriver.usage import QueryUsage
from athenadriver.version import __version__

apilevel = "2.0"
threadsafety = 1
paramstyle = "qmark"

__all__ = [
    "BINARY",
    "DATETIME",
    "NUMBER",
    "ROWID",
    "STRING",
    "Binary",
    "CallerCancelledError",
    "CancellationToken",
    "Connection",
    "Cursor",
    "DataError",
    "DatabaseError",
    "Date",
    "DateFromTicks",
    "DriverConfig",
    "Error",
    "ErrorCode",
    "ExecutionResult",
    "IntegrityError",
    "InterfaceError",
    "InternalError",
    "NotSupportedError",
    "OperationalError",
    "ProgrammingError",
    "QueryCancelledError",
    "QueryFailedError",
    "QueryTimeoutError",
    "QueryUsage",
    "ServiceLimitOverride",
    "Session",
    "Time",
    "TimeFromTicks",
    "Timestamp",
    "TimestampFromTicks",
    "Warning",
    "WorkgroupConfig",
    "__version__",
    "apilevel",
    "connect",
    "paramstyle",
    "threadsafety",
]
