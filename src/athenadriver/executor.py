import asyncio
from typing import List, Optional

from athenadriver.config import DriverConfig, WorkgroupConfig
from athenadriver.remote import AthenaClient, QueryExecution
from athenadriver.results import ResultCursor
from athenadriver.tracing import trace_query_operation
from athenadriver.workgroup import Workgroup, WorkgroupCache, create_workgroup_remotely


class AthenaAsyncQueryExecutor:
    """Async wrappers around the blocking Athena client calls.

    Each remote call runs in a worker thread so the poll loop can keep
    racing its timer against caller cancellation.
    """

    def __init__(
        self,
        client: AthenaClient,
        config: DriverConfig,
        workgroup_cache: WorkgroupCache,
        page_size: Optional[int] = None,
    ) -> None:
        """Initialize executor with a client, session config and workgroup cache."""
        self._client = client
        self._config = config
        self._workgroup_cache = workgroup_cache
        self._page_size = page_size

    @property
    def client(self) -> AthenaClient:
        """Return the underlying Athena client."""
        return self._client

    async def submit(self, sql: str, params: Optional[List[str]], workgroup: str) -> str:
        """Submit a query for asynchronous execution and return its execution id."""
        return await trace_query_operation(
            "athenadriver.query.submit",
            asyncio.to_thread(
                _start_query_execution,
                self._client,
                sql,
                params or [],
                self._config.database,
                self._config.output_location,
                workgroup,
            ),
            sql=sql,
        )

    async def poll(self, query_id: str) -> QueryExecution:
        """Return the current status snapshot of an execution."""
        response = await trace_query_operation(
            "athenadriver.query.poll",
            asyncio.to_thread(self._client.get_query_execution, QueryExecutionId=query_id),
            query_id=query_id,
        )
        return QueryExecution.from_response(query_id, response)

    async def cancel(self, query_id: str) -> None:
        """Ask Athena to stop a running execution."""
        await trace_query_operation(
            "athenadriver.query.stop",
            asyncio.to_thread(self._client.stop_query_execution, QueryExecutionId=query_id),
            query_id=query_id,
        )

    async def open_results(self, query_id: str) -> ResultCursor:
        """Fetch the first result page of a finished execution."""
        return await trace_query_operation(
            "athenadriver.query.fetch",
            asyncio.to_thread(ResultCursor.open, self._client, query_id, self._page_size),
            query_id=query_id,
        )

    async def resolve_workgroup(self, name: str) -> Workgroup:
        """Look a workgroup up through the shared cache."""
        return await asyncio.to_thread(self._workgroup_cache.resolve, self._client, name)

    async def create_workgroup(self, workgroup: WorkgroupConfig) -> None:
        """Create the configured workgroup remotely."""
        await asyncio.to_thread(create_workgroup_remotely, self._client, workgroup)


def _start_query_execution(
    client: AthenaClient,
    sql: str,
    params: List[str],
    database: str,
    output_location: str,
    workgroup: str,
) -> str:
    kwargs = {
        "QueryString": sql,
        "QueryExecutionContext": {"Database": database},
        "WorkGroup": workgroup,
    }
    if output_location:
        kwargs["ResultConfiguration"] = {"OutputLocation": output_location}
    if params:
        kwargs["ExecutionParameters"] = params
    response = client.start_query_execution(**kwargs)
    return response["QueryExecutionId"]
