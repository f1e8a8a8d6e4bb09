"""Result pages and the cursor that walks them.

Athena hands results back one page at a time. ``ResultCursor`` holds the
current page, fetches the next one only when the current one is used up,
and stops after the page that carries no continuation token. For SELECT
queries the first row of the first page repeats the column names; it is
dropped once, when the cursor is built, and never on later pages.
"""

import logging
from dataclasses import dataclass, field
from decimal import InvalidOperation
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from athenadriver.errors import DataError, ProgrammingError, ResultShapeError
from athenadriver.remote import AthenaClient
from athenadriver.tracing import trace_sync_operation
from athenadriver.type_conversion import convert_value

logger = logging.getLogger(__name__)

SYNTHETIC_COLUMN_NAME = "_col0"
SYNTHETIC_COLUMN_TYPE = "varchar"

Row = Tuple[Any, ...]


@dataclass(frozen=True)
class ColumnInfo:
    """Column descriptor from result set metadata."""

    name: str
    type: str
    nullable: Optional[str] = None
    precision: Optional[int] = None
    scale: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ColumnInfo":
        """Build from one ``ColumnInfo`` entry of a results response."""
        return cls(
            name=payload.get("Name") or payload.get("Label") or "",
            type=payload.get("Type") or "varchar",
            nullable=payload.get("Nullable"),
            precision=payload.get("Precision"),
            scale=payload.get("Scale"),
        )

    def description_entry(self) -> Tuple[Any, ...]:
        """Return the PEP 249 seven-item description for this column."""
        null_ok = None
        if self.nullable == "NOT_NULL":
            null_ok = False
        elif self.nullable == "NULLABLE":
            null_ok = True
        return (self.name, self.type, None, None, self.precision, self.scale, null_ok)


@dataclass(frozen=True)
class ResultPage:
    """One page of results: columns, string-encoded rows and paging data."""

    columns: List[ColumnInfo] = field(default_factory=list)
    rows: List[List[Optional[str]]] = field(default_factory=list)
    next_token: Optional[str] = None
    update_count: Optional[int] = None

    @property
    def is_last(self) -> bool:
        """Return True when no further page follows."""
        return not self.next_token

    @classmethod
    def from_response(cls, response: Dict[str, Any]) -> "ResultPage":
        """Build from a ``get_query_results`` response."""
        result_set = response.get("ResultSet") or {}
        metadata = (result_set.get("ResultSetMetadata") or {}).get("ColumnInfo") or []
        rows = [
            [datum.get("VarCharValue") for datum in row.get("Data") or []]
            for row in result_set.get("Rows") or []
        ]
        return cls(
            columns=[ColumnInfo.from_payload(column) for column in metadata],
            rows=rows,
            next_token=response.get("NextToken") or None,
            update_count=response.get("UpdateCount"),
        )

    @classmethod
    def single_value(cls, value: str) -> "ResultPage":
        """Build a one-row, one-column page carrying value."""
        return cls(
            columns=[ColumnInfo(name=SYNTHETIC_COLUMN_NAME, type=SYNTHETIC_COLUMN_TYPE)],
            rows=[[value]],
        )

    def has_header_row(self) -> bool:
        """Return True when the first row repeats the column names exactly."""
        if not self.rows or not self.columns:
            return False
        return self.rows[0] == [column.name for column in self.columns]


class ResultCursor:
    """Row cursor over one logical result set spanning one or more pages."""

    def __init__(
        self,
        first_page: ResultPage,
        query_id: Optional[str] = None,
        client: Optional[AthenaClient] = None,
        page_size: Optional[int] = None,
    ) -> None:
        """Wrap an already fetched first page; later pages come from client."""
        if not first_page.is_last and client is None:
            raise ValueError("a client is required to fetch pages after the first one")
        self._client = client
        self._query_id = query_id
        self._page_size = page_size
        self._columns = list(first_page.columns)
        self._update_count = first_page.update_count
        self._rows = first_page.rows[1:] if first_page.has_header_row() else first_page.rows
        self._next_token = first_page.next_token
        self._position = 0
        self._closed = False

    @classmethod
    def open(
        cls, client: AthenaClient, query_id: str, page_size: Optional[int] = None
    ) -> "ResultCursor":
        """Fetch the first page of query_id and return a cursor positioned before it."""
        first_page = _fetch_page(client, query_id, None, page_size)
        return cls(first_page, query_id=query_id, client=client, page_size=page_size)

    @property
    def query_id(self) -> Optional[str]:
        """Return the execution the rows belong to."""
        return self._query_id

    @property
    def columns(self) -> List[ColumnInfo]:
        """Return the column descriptors of the result set."""
        return list(self._columns)

    @property
    def description(self) -> Optional[List[Tuple[Any, ...]]]:
        """Return the PEP 249 description, or None for execution-count results."""
        if not self._columns:
            return None
        return [column.description_entry() for column in self._columns]

    @property
    def update_count(self) -> Optional[int]:
        """Return the number of rows the statement affected, when Athena reports it."""
        return self._update_count

    @property
    def is_execution_count(self) -> bool:
        """Return True when the statement produced a count rather than rows."""
        return not self._columns

    @property
    def closed(self) -> bool:
        """Return True once close() has been called."""
        return self._closed

    def fetchone(self) -> Optional[Row]:
        """Return the next row, or None once every page is exhausted."""
        self._check_open()
        while self._position >= len(self._rows):
            if not self._next_token:
                return None
            self._advance_page()
        raw = self._rows[self._position]
        self._position += 1
        return self._convert_row(raw)

    def fetchmany(self, size: int) -> List[Row]:
        """Return up to size rows."""
        rows: List[Row] = []
        while len(rows) < size:
            row = self.fetchone()
            if row is None:
                break
            rows.append(row)
        return rows

    def fetchall(self) -> List[Row]:
        """Return every remaining row."""
        return list(self)

    def __iter__(self) -> Iterator[Row]:
        """Iterate over the remaining rows."""
        while True:
            row = self.fetchone()
            if row is None:
                return
            yield row

    def close(self) -> None:
        """Release the page held by the cursor; remaining rows are discarded."""
        self._closed = True
        self._rows = []
        self._next_token = None
        self._client = None

    def _check_open(self) -> None:
        if self._closed:
            raise ProgrammingError("result cursor is closed")

    def _advance_page(self) -> None:
        page = _fetch_page(self._client, self._query_id, self._next_token, self._page_size)
        self._rows = page.rows
        self._next_token = page.next_token
        self._position = 0

    def _convert_row(self, raw: Sequence[Optional[str]]) -> Row:
        if len(raw) != len(self._columns):
            raise ResultShapeError(
                f"row has {len(raw)} fields but result set declares "
                f"{len(self._columns)} columns (query_id={self._query_id})"
            )
        try:
            return tuple(
                convert_value(value, column.type) for value, column in zip(raw, self._columns)
            )
        except (ValueError, InvalidOperation) as exc:
            raise DataError(f"cannot convert result row: {exc}") from exc


def _fetch_page(
    client: AthenaClient,
    query_id: str,
    next_token: Optional[str],
    page_size: Optional[int],
) -> ResultPage:
    kwargs: Dict[str, Any] = {"QueryExecutionId": query_id}
    if next_token:
        kwargs["NextToken"] = next_token
    if page_size:
        kwargs["MaxResults"] = page_size
    response = trace_sync_operation(
        "athenadriver.results.fetch_page",
        lambda: client.get_query_results(**kwargs),
        query_id=query_id,
    )
    page = ResultPage.from_response(response)
    logger.debug(
        "athena_results_page query_id=%s rows=%s last=%s", query_id, len(page.rows), page.is_last
    )
    return page
