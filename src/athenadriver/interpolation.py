"""Turn typed query arguments into SQL literal text.

Two renderings are provided. ``interpolate_params`` rewrites a ``?``
placeholder query in place, quoting and backslash-escaping text and bytes.
``build_execution_params`` produces the per-placeholder strings that Athena
binds natively; text and bytes go through untouched there so callers can pass
typed literals such as ``TIMESTAMP '2024-07-01 00:00:00.000'``.
"""

import math
import re
from datetime import MAXYEAR, MINYEAR, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, List, Sequence

from athenadriver.config import MAX_QUERY_STRING_LENGTH
from athenadriver.errors import (
    InvalidQueryError,
    QueryBufferOverflowError,
    UnsupportedArgumentTypeError,
)

PLACEHOLDER = "?"
# Interpolated text may grow to this multiple of the maximum query length.
MAX_GROWTH_FACTOR = 10
ZERO_TIMESTAMP_LITERAL = "'0000-00-00'"
GREGORIAN_CYCLE_YEARS = 400

_STRING_ESCAPES = str.maketrans(
    {
        "\x00": "\\0",
        "\n": "\\n",
        "\r": "\\r",
        "\x1a": "\\Z",
        "'": "\\'",
        '"': '\\"',
        "\\": "\\\\",
    }
)
_BYTE_ESCAPES = {
    b"\x00": b"\\0",
    b"\n": b"\\n",
    b"\r": b"\\r",
    b"\x1a": b"\\Z",
    b"'": b"\\'",
    b'"': b'\\"',
    b"\\": b"\\\\",
}
_BYTE_ESCAPE_RE = re.compile(b"[\x00\n\r\x1a'\"\\\\]")


def escape_string_backslash(value: str) -> str:
    """Backslash-escape NUL, CR, LF, SUB, quotes and backslashes."""
    return value.translate(_STRING_ESCAPES)


def escape_bytes_backslash(value: bytes) -> str:
    """Backslash-escape bytes the way ``escape_string_backslash`` escapes text.

    Bytes that are not valid UTF-8 survive as surrogate escapes so the exact
    byte sequence can be recovered with ``encode("utf-8", "surrogateescape")``.
    """
    escaped = _BYTE_ESCAPE_RE.sub(lambda match: _BYTE_ESCAPES[match.group(0)], value)
    return escaped.decode("utf-8", "surrogateescape")


def format_float(value: float) -> str:
    """Render the shortest round-tripping text in ``%g`` layout.

    Exponent notation is used when the decimal exponent is below -4 or at
    least 6, so ``1e6`` renders as ``1e+06`` and ``123456.5`` stays as is.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"

    sign, digit_tuple, exponent = Decimal(repr(float(value))).normalize().as_tuple()
    prefix = "-" if sign else ""
    digits = "".join(str(digit) for digit in digit_tuple)
    if digits == "0":
        return prefix + "0"

    point = len(digits) + exponent
    decimal_exponent = point - 1
    if decimal_exponent < -4 or decimal_exponent >= 6:
        mantissa = digits[0]
        if len(digits) > 1:
            mantissa += "." + digits[1:]
        exp_sign = "-" if decimal_exponent < 0 else "+"
        return f"{prefix}{mantissa}e{exp_sign}{abs(decimal_exponent):02d}"
    if point <= 0:
        return f"{prefix}0.{'0' * -point}{digits}"
    if point >= len(digits):
        return prefix + digits + "0" * (point - len(digits))
    return f"{prefix}{digits[:point]}.{digits[point:]}"


def _is_zero_timestamp(value: datetime) -> bool:
    offset = value.utcoffset() or timedelta(0)
    return offset == timedelta(0) and value.replace(tzinfo=None) == datetime.min


def format_timestamp(value: datetime) -> str:
    """Render a datetime as a quoted UTC literal with optional microseconds.

    Naive datetimes are taken to already be in UTC. Values carrying a
    ``nanosecond`` attribute are rounded to the nearest microsecond.
    """
    if _is_zero_timestamp(value):
        return ZERO_TIMESTAMP_LITERAL

    nanoseconds = getattr(value, "nanosecond", 0) or 0
    # UTC conversion and rounding may cross year 1 or 9999; the Gregorian
    # calendar repeats every 400 years, so shift away from the edge first.
    year_shift = 0
    if value.year <= MINYEAR:
        year_shift = GREGORIAN_CYCLE_YEARS
    elif value.year >= MAXYEAR:
        year_shift = -GREGORIAN_CYCLE_YEARS
    if year_shift:
        value = value.replace(year=value.year + year_shift)

    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    if nanoseconds >= 500:
        value = value + timedelta(microseconds=1)

    text = (
        f"{value.year - year_shift:04d}-{value.month:02d}-{value.day:02d} "
        f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += f".{value.microsecond:06d}"
    return f"'{text}'"


def _render_scalar(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return "%d" % value
    if isinstance(value, float):
        return format_float(value)
    if isinstance(value, datetime):
        return format_timestamp(value)
    raise UnsupportedArgumentTypeError(value)


def _check_growth(size: int, max_query_length: int) -> None:
    if size + 4 > MAX_GROWTH_FACTOR * max_query_length:
        raise QueryBufferOverflowError(
            f"interpolated query exceeds {MAX_GROWTH_FACTOR * max_query_length} characters"
        )


def render_literal(value: Any) -> str:
    """Render one argument as an inline SQL literal."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "_binary'" + escape_bytes_backslash(bytes(value)) + "'"
    if isinstance(value, str):
        return "'" + escape_string_backslash(value) + "'"
    return _render_scalar(value)


def render_execution_param(value: Any) -> str:
    """Render one argument for Athena's native parameter binding."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", "surrogateescape")
    if isinstance(value, str):
        return value
    return _render_scalar(value)


def interpolate_params(
    query: str, args: Sequence[Any], max_query_length: int = MAX_QUERY_STRING_LENGTH
) -> str:
    """Replace every ``?`` in query with the literal for the matching argument."""
    if query.count(PLACEHOLDER) != len(args):
        raise InvalidQueryError(
            f"query has {query.count(PLACEHOLDER)} placeholders but {len(args)} arguments"
        )

    fragments = query.split(PLACEHOLDER)
    parts: List[str] = []
    size = 0
    for fragment, arg in zip(fragments, args):
        literal = render_literal(arg)
        parts.append(fragment)
        parts.append(literal)
        size += len(fragment) + len(literal)
        _check_growth(size, max_query_length)
    parts.append(fragments[-1])
    return "".join(parts)


def build_execution_params(
    args: Sequence[Any], max_query_length: int = MAX_QUERY_STRING_LENGTH
) -> List[str]:
    """Build the ExecutionParameters list sent alongside a placeholder query."""
    params: List[str] = []
    size = 0
    for arg in args:
        param = render_execution_param(arg)
        params.append(param)
        size += len(param)
        _check_growth(size, max_query_length)
    return params
