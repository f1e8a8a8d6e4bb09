import hashlib
from contextlib import contextmanager
from typing import Awaitable, Callable, Iterator, Optional, TypeVar

from athenadriver.util.env import get_env_bool

T = TypeVar("T")

PROVIDER = "athena"


def trace_enabled() -> bool:
    """Return True when driver query tracing is enabled."""
    return get_env_bool("ATHENA_DRIVER_TRACE_QUERIES", False)


def _hash_sql(sql: str) -> str:
    return hashlib.sha256(sql.encode("utf-8")).hexdigest()


@contextmanager
def _query_span(
    name: str, execution_model: str, sql: Optional[str], query_id: Optional[str]
) -> Iterator[None]:
    from opentelemetry import trace

    tracer = trace.get_tracer("athenadriver")
    with tracer.start_as_current_span(name) as span:
        span.set_attribute("db.provider", PROVIDER)
        span.set_attribute("db.execution_model", execution_model)
        if sql:
            span.set_attribute("db.statement_hash", _hash_sql(sql))
        if query_id:
            span.set_attribute("db.query_id", query_id)
        try:
            yield
            span.set_attribute("db.status", "ok")
        except Exception:
            span.set_attribute("db.status", "error")
            raise


async def trace_query_operation(
    name: str,
    operation: Awaitable[T],
    sql: Optional[str] = None,
    query_id: Optional[str] = None,
) -> T:
    """Trace a remote Athena operation with OTEL when enabled."""
    if not trace_enabled():
        return await operation

    with _query_span(name, "async", sql, query_id):
        return await operation


def trace_sync_operation(
    name: str,
    operation: Callable[[], T],
    sql: Optional[str] = None,
    query_id: Optional[str] = None,
) -> T:
    """Trace a blocking Athena call (result page fetches) with OTEL when enabled."""
    if not trace_enabled():
        return operation()

    with _query_span(name, "sync", sql, query_id):
        return operation()
