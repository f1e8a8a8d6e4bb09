"""Driver error taxonomy.

The classes follow the PEP 249 exception hierarchy so that generic database
code can catch them uniformly. Every driver-raised error carries a bounded
``reason_code`` for logs and telemetry. Errors raised by the remote service
client (boto3/botocore) are propagated unchanged and are not wrapped here.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Bounded reason codes attached to driver errors."""

    INVALID_QUERY = "INVALID_QUERY"
    UNSUPPORTED_ARGUMENT_TYPE = "UNSUPPORTED_ARGUMENT_TYPE"
    QUERY_BUFFER_OVERFLOW = "QUERY_BUFFER_OVERFLOW"
    UNKNOWN_PSEUDO_COMMAND = "UNKNOWN_PSEUDO_COMMAND"
    READONLY_VIOLATION = "READONLY_VIOLATION"
    TRANSACTION_UNSUPPORTED = "TRANSACTION_UNSUPPORTED"
    WORKGROUP_DISABLED = "WORKGROUP_DISABLED"
    WORKGROUP_UNAVAILABLE = "WORKGROUP_UNAVAILABLE"
    QUERY_FAILED = "QUERY_FAILED"
    QUERY_CANCELLED = "QUERY_CANCELLED"
    CALLER_CANCELLED = "CALLER_CANCELLED"
    QUERY_TIMEOUT = "QUERY_TIMEOUT"
    RESULT_SHAPE_MISMATCH = "RESULT_SHAPE_MISMATCH"
    INTERFACE_MISUSE = "INTERFACE_MISUSE"
    CONNECTION_UNAVAILABLE = "CONNECTION_UNAVAILABLE"


class Warning(Exception):  # noqa: A001
    """Important warnings such as data truncation."""


class Error(Exception):
    """Base class of every driver error."""

    reason_code: ErrorCode = ErrorCode.INTERFACE_MISUSE

    def __init__(self, message: str, *, reason_code: Optional[ErrorCode] = None) -> None:
        """Initialize with a message and an optional reason code override."""
        super().__init__(message)
        if reason_code is not None:
            self.reason_code = reason_code


class InterfaceError(Error):
    """Errors related to the driver interface rather than the database."""


class DatabaseError(Error):
    """Errors related to the database."""


class DataError(DatabaseError):
    """Problems with the processed data."""


class OperationalError(DatabaseError):
    """Errors related to the operation of the remote service."""


class IntegrityError(DatabaseError):
    """Relational integrity violations (never raised by Athena)."""


class InternalError(DatabaseError):
    """Internal driver or service inconsistencies."""


class ProgrammingError(DatabaseError):
    """Programming errors: malformed queries, misuse of closed objects."""


class NotSupportedError(DatabaseError):
    """A method or API not supported by Athena was used."""


class InvalidQueryError(ProgrammingError):
    """Query text is empty, too long, or placeholders do not match arguments."""

    reason_code = ErrorCode.INVALID_QUERY


class UnsupportedArgumentTypeError(ProgrammingError):
    """A query argument has a type that cannot be rendered as SQL."""

    reason_code = ErrorCode.UNSUPPORTED_ARGUMENT_TYPE

    def __init__(self, value: object) -> None:
        """Record the offending Python type."""
        self.argument_type = type(value)
        super().__init__(f"query argument of type {type(value).__name__!r} is not supported")


class QueryBufferOverflowError(ProgrammingError):
    """Interpolated query text grew past the allowed maximum."""

    reason_code = ErrorCode.QUERY_BUFFER_OVERFLOW


class UnknownPseudoCommandError(ProgrammingError):
    """A ``pc:`` query named a command the driver does not know."""

    reason_code = ErrorCode.UNKNOWN_PSEUDO_COMMAND

    def __init__(self, command: str) -> None:
        """Record the unknown command text."""
        self.command = command
        super().__init__(f"pseudo command {command!r} doesn't exist")


class WriteViolationError(ProgrammingError):
    """A non read-only statement was issued on a read-only session."""

    reason_code = ErrorCode.READONLY_VIOLATION


class TransactionUnsupportedError(NotSupportedError):
    """Athena has no transactions."""

    reason_code = ErrorCode.TRANSACTION_UNSUPPORTED

    def __init__(self) -> None:
        """Initialize with the fixed message."""
        super().__init__("Athena doesn't support transactions")


class WorkgroupDisabledError(OperationalError):
    """The configured workgroup exists but is disabled."""

    reason_code = ErrorCode.WORKGROUP_DISABLED


class WorkgroupUnavailableError(OperationalError):
    """The configured workgroup could not be found and may not be created."""

    reason_code = ErrorCode.WORKGROUP_UNAVAILABLE


class QueryFailedError(OperationalError):
    """Athena reported the execution as FAILED."""

    reason_code = ErrorCode.QUERY_FAILED

    def __init__(self, reason: str, query_id: Optional[str] = None) -> None:
        """Keep the backend reason text as the message."""
        self.reason = reason
        self.query_id = query_id
        super().__init__(reason)


class QueryCancelledError(OperationalError):
    """Athena reported the execution as CANCELLED."""

    reason_code = ErrorCode.QUERY_CANCELLED


class CallerCancelledError(OperationalError):
    """The caller cancelled the statement while it was still running."""

    reason_code = ErrorCode.CALLER_CANCELLED


class QueryTimeoutError(OperationalError, TimeoutError):
    """Client-side polling gave up after the statement-type timeout."""

    reason_code = ErrorCode.QUERY_TIMEOUT

    def __init__(self, query_id: str, timeout_seconds: float) -> None:
        """Record the execution and the timeout that elapsed."""
        self.query_id = query_id
        self.timeout_seconds = timeout_seconds
        super().__init__(f"query {query_id} timed out after {float(timeout_seconds):g}s")


class ResultShapeError(DataError):
    """A result row does not have one cell per declared column."""

    reason_code = ErrorCode.RESULT_SHAPE_MISMATCH
