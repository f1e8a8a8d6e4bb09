from typing import Optional

from athenadriver.config import (
    DDL_QUERY_TIMEOUT_SECONDS,
    DML_QUERY_TIMEOUT_SECONDS,
    ServiceLimitOverride,
)
from athenadriver.remote import StatementType


def query_timeout_seconds(
    statement_type: Optional[StatementType],
    override: Optional[ServiceLimitOverride] = None,
) -> float:
    """Return how long the client keeps polling a statement of the given type.

    DDL statements get the DDL limit; DML, UTILITY and not-yet-classified
    statements get the DML limit. Overrides replace the service defaults.
    """
    ddl_timeout: float = DDL_QUERY_TIMEOUT_SECONDS
    dml_timeout: float = DML_QUERY_TIMEOUT_SECONDS
    if override is not None:
        if override.ddl_query_timeout_seconds is not None:
            ddl_timeout = override.ddl_query_timeout_seconds
        if override.dml_query_timeout_seconds is not None:
            dml_timeout = override.dml_query_timeout_seconds

    if statement_type is StatementType.DDL:
        return ddl_timeout
    return dml_timeout
