from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

LogicalType = str

_TIMESTAMP_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[ T](\d{2}):(\d{2}):(\d{2})(?:\.(\d{1,9}))?$"
)


def logical_type_from_athena_type(db_type: Optional[str]) -> LogicalType:
    """Map an Athena column type string to a logical type."""
    if not db_type:
        return "string"
    base = re.split(r"[\s(<]", db_type.strip().lower(), maxsplit=1)[0]
    if base == "boolean":
        return "boolean"
    if base in {"tinyint", "smallint", "int", "integer", "bigint"}:
        return "integer"
    if base in {"float", "real", "double"}:
        return "float"
    if base == "decimal":
        return "numeric"
    if base == "date":
        return "date"
    if base == "timestamp":
        # Zoned timestamps carry a zone name Python cannot parse reliably.
        return "string" if "zone" in db_type.lower() else "timestamp"
    if base == "varbinary":
        return "binary"
    return "string"


def _parse_boolean(text: str) -> Any:
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return text


def _parse_timestamp(text: str) -> Any:
    match = _TIMESTAMP_RE.match(text)
    if match is None:
        return text
    year, month, day, hour, minute, second, fraction = match.groups()
    microsecond = int((fraction or "0")[:6].ljust(6, "0"))
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), microsecond
    )


def _parse_date(text: str) -> Any:
    try:
        return date.fromisoformat(text)
    except ValueError:
        return text


_CONVERTERS: Dict[LogicalType, Callable[[str], Any]] = {
    "boolean": _parse_boolean,
    "integer": int,
    "float": float,
    "numeric": Decimal,
    "date": _parse_date,
    "timestamp": _parse_timestamp,
    "binary": bytes.fromhex,
}


def convert_value(value: Optional[str], db_type: Optional[str]) -> Any:
    """Convert one string-encoded Athena cell to a Python value."""
    if value is None:
        return None
    converter = _CONVERTERS.get(logical_type_from_athena_type(db_type))
    if converter is None:
        return value
    return converter(value)
