"""Remote Athena capability consumed by the driver.

The driver never talks HTTP itself. It is handed an object with the six
Athena operations below, spelled the way the boto3 ``athena`` client spells
them, so a real boto3 client or a scripted fake can be plugged in.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from athenadriver.config import DriverConfig

logger = logging.getLogger(__name__)

_EXECUTION_ID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


@runtime_checkable
class AthenaClient(Protocol):
    """Subset of the boto3 Athena client used by the driver."""

    def start_query_execution(self, **kwargs: Any) -> Dict[str, Any]:
        """Submit a query and return ``{"QueryExecutionId": ...}``."""
        ...

    def get_query_execution(self, *, QueryExecutionId: str) -> Dict[str, Any]:
        """Return the current status snapshot of an execution."""
        ...

    def stop_query_execution(self, *, QueryExecutionId: str) -> Dict[str, Any]:
        """Ask Athena to stop an execution."""
        ...

    def get_query_results(self, **kwargs: Any) -> Dict[str, Any]:
        """Return one page of results for a finished execution."""
        ...

    def get_work_group(self, *, WorkGroup: str) -> Dict[str, Any]:
        """Return workgroup metadata."""
        ...

    def create_work_group(self, **kwargs: Any) -> Dict[str, Any]:
        """Create a workgroup."""
        ...


class QueryState(str, Enum):
    """Athena query execution states."""

    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        """Return True for states no execution ever leaves."""
        return self in (QueryState.SUCCEEDED, QueryState.FAILED, QueryState.CANCELLED)


class StatementType(str, Enum):
    """Statement classification reported by Athena."""

    DDL = "DDL"
    DML = "DML"
    UTILITY = "UTILITY"


@dataclass(frozen=True)
class QueryExecution:
    """One status snapshot of a remote query execution."""

    execution_id: str
    state: QueryState
    state_change_reason: Optional[str] = None
    statement_type: Optional[StatementType] = None
    bytes_scanned: Optional[int] = None

    @classmethod
    def from_response(cls, execution_id: str, response: Dict[str, Any]) -> "QueryExecution":
        """Build a snapshot from a ``get_query_execution`` response."""
        payload = response.get("QueryExecution") or {}
        status = payload.get("Status") or {}
        raw_state = status.get("State")
        try:
            state = QueryState(raw_state)
        except ValueError:
            logger.warning(
                "athena_unknown_state query_id=%s state=%s treated_as=RUNNING",
                execution_id,
                raw_state,
            )
            state = QueryState.RUNNING

        statement_type = None
        raw_type = payload.get("StatementType")
        if raw_type:
            try:
                statement_type = StatementType(raw_type)
            except ValueError:
                statement_type = None

        statistics = payload.get("Statistics") or {}
        return cls(
            execution_id=payload.get("QueryExecutionId") or execution_id,
            state=state,
            state_change_reason=status.get("StateChangeReason"),
            statement_type=statement_type,
            bytes_scanned=statistics.get("DataScannedInBytes"),
        )


def is_execution_id(text: str) -> bool:
    """Return True when text has the shape of an Athena execution id."""
    return bool(_EXECUTION_ID_RE.match(text.strip()))


def _error_response(exc: BaseException) -> Dict[str, Any]:
    response = getattr(exc, "response", None)
    return response if isinstance(response, dict) else {}


def execution_id_from_error(exc: BaseException) -> Optional[str]:
    """Return an execution id the service assigned before a submission failed."""
    return _error_response(exc).get("QueryExecutionId")


def service_request_id_from_error(exc: BaseException) -> Optional[str]:
    """Return the service request id carried by a botocore-style error response."""
    metadata = _error_response(exc).get("ResponseMetadata") or {}
    return metadata.get("RequestId")


def build_default_client(config: DriverConfig) -> AthenaClient:
    """Build a boto3 Athena client for the configured region."""
    import boto3

    return boto3.client("athena", region_name=config.region)
