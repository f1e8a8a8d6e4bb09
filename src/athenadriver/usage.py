import logging
from dataclasses import dataclass
from typing import Optional

from athenadriver.remote import QueryExecution

logger = logging.getLogger(__name__)

PRICE_PER_TB_USD = 5.0
BYTES_PER_TB = 1024**4
MINIMUM_BILLED_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True)
class QueryUsage:
    """Bytes scanned by one execution and what Athena charges for them."""

    query_id: str
    bytes_scanned: int
    billed_bytes: int
    cost_usd: float
    outcome: str

    @classmethod
    def compute(cls, query_id: str, bytes_scanned: Optional[int], outcome: str) -> "QueryUsage":
        """Apply Athena's per-TB price with its 10 MB minimum to scanned bytes."""
        scanned = int(bytes_scanned or 0)
        billed = max(scanned, MINIMUM_BILLED_BYTES) if scanned > 0 else 0
        return cls(
            query_id=query_id,
            bytes_scanned=scanned,
            billed_bytes=billed,
            cost_usd=billed / BYTES_PER_TB * PRICE_PER_TB_USD,
            outcome=outcome,
        )


def record_usage(
    query_id: str, snapshot: Optional[QueryExecution], outcome: str
) -> QueryUsage:
    """Compute and log usage from the latest status snapshot of an execution."""
    usage = QueryUsage.compute(
        query_id, snapshot.bytes_scanned if snapshot is not None else None, outcome
    )
    logger.info(
        "athena_query_usage query_id=%s outcome=%s bytes_scanned=%s billed_bytes=%s cost_usd=%.6f",
        usage.query_id,
        usage.outcome,
        usage.bytes_scanned,
        usage.billed_bytes,
        usage.cost_usd,
    )
    return usage
