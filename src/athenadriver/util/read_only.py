"""Read-only statement classification for read-only sessions."""

import logging
import re

from athenadriver.errors import WriteViolationError

logger = logging.getLogger(__name__)

READ_ONLY_KEYWORDS = frozenset({"SELECT", "SHOW", "DESC", "DESCRIBE", "EXPLAIN", "WITH", "VALUES"})
_SQL_COMMENT_RE = re.compile(r"(--[^\n]*|/\*.*?\*/)", flags=re.DOTALL)
_FIRST_KEYWORD_RE = re.compile(r"^[\s(]*([A-Za-z]+)")


def is_read_only_statement(sql: str) -> bool:
    """Return True when the statement's leading keyword only reads data."""
    match = _FIRST_KEYWORD_RE.match(_SQL_COMMENT_RE.sub(" ", sql))
    if match is None:
        return False
    return match.group(1).upper() in READ_ONLY_KEYWORDS


def enforce_read_only_sql(sql: str, read_only: bool) -> None:
    """Raise WriteViolationError when a writing statement reaches a read-only session."""
    if not read_only or is_read_only_statement(sql):
        return
    logger.warning("athena_write_violation query=%s", sql)
    raise WriteViolationError("writing to Athena database is disallowed in read-only mode")
