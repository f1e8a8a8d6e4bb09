"""In-band ``pc:`` control commands carried in the query text.

``pc:get_query_id <sql>``          submit and return the execution id only
``pc:get_query_id_status <id>``    return the current state of an execution
``pc:stop_query_id <id>``          stop an execution and return ``OK``
``pc:get_driver_version``          return the driver version, no remote call
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from athenadriver.errors import InvalidQueryError, UnknownPseudoCommandError

PSEUDO_COMMAND_PREFIX = "pc:"

_COMMAND_RE = re.compile(r"^(\S+)(?:\s+(.*))?$", re.DOTALL)


class PseudoCommandKind(str, Enum):
    """Known pseudo commands."""

    GET_QUERY_ID = "get_query_id"
    GET_QUERY_ID_STATUS = "get_query_id_status"
    STOP_QUERY_ID = "stop_query_id"
    GET_DRIVER_VERSION = "get_driver_version"


@dataclass(frozen=True)
class PseudoCommand:
    """A parsed query: an optional control command plus the remaining text."""

    kind: Optional[PseudoCommandKind]
    query: str

    @property
    def is_plain(self) -> bool:
        """Return True when no pseudo command was present."""
        return self.kind is None


def parse_pseudo_command(query: str) -> PseudoCommand:
    """Split a query into its pseudo command (if any) and the remainder."""
    if not query.startswith(PSEUDO_COMMAND_PREFIX):
        return PseudoCommand(kind=None, query=query)

    body = query[len(PSEUDO_COMMAND_PREFIX) :].strip()
    match = _COMMAND_RE.match(body)
    if match is None:
        raise UnknownPseudoCommandError(body)

    name, remainder = match.group(1), (match.group(2) or "").strip()
    try:
        kind = PseudoCommandKind(name)
    except ValueError:
        raise UnknownPseudoCommandError(name) from None

    if kind is PseudoCommandKind.GET_DRIVER_VERSION:
        return PseudoCommand(kind=kind, query="")
    if not remainder:
        raise InvalidQueryError(f"pseudo command {name!r} requires a query or execution id")
    return PseudoCommand(kind=kind, query=remainder)
