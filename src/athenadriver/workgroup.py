import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from athenadriver.config import WorkgroupConfig
from athenadriver.remote import AthenaClient

WORKGROUP_CACHE_TTL_SECONDS = 10 * 60

WORKGROUP_STATE_ENABLED = "ENABLED"
WORKGROUP_STATE_DISABLED = "DISABLED"


@dataclass(frozen=True)
class Workgroup:
    """Workgroup metadata as reported by Athena."""

    name: str
    state: str
    configuration: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None

    @property
    def is_enabled(self) -> bool:
        """Return True when the workgroup accepts queries."""
        return self.state == WORKGROUP_STATE_ENABLED

    @classmethod
    def from_response(cls, name: str, response: Dict[str, Any]) -> "Workgroup":
        """Build from a ``get_work_group`` response."""
        payload = response.get("WorkGroup") or {}
        return cls(
            name=payload.get("Name") or name,
            state=payload.get("State") or WORKGROUP_STATE_DISABLED,
            configuration=dict(payload.get("Configuration") or {}),
            description=payload.get("Description"),
        )


def create_workgroup_remotely(client: AthenaClient, workgroup: WorkgroupConfig) -> None:
    """Create the configured workgroup, sending tags only when there are any."""
    kwargs: Dict[str, Any] = {
        "Name": workgroup.effective_name,
        "Configuration": dict(workgroup.configuration),
    }
    tags = workgroup.tag_list()
    if tags:
        kwargs["Tags"] = tags
    client.create_work_group(**kwargs)


@dataclass
class _CacheEntry:
    value: Workgroup
    expires_at: float


@dataclass
class _Flight:
    future: "Future[Workgroup]" = field(default_factory=Future)
    waiters: int = 0


class WorkgroupCache:
    """Time-bounded, single-flight memo of workgroup lookups.

    Concurrent ``resolve`` calls for a name that is not cached share one
    ``get_work_group`` call: the first caller fetches, the others block on
    the same future and receive the same workgroup or the same exception.
    Successful lookups are kept for ``ttl_seconds`` after the fetch
    completes; failures are never kept. The cache applies no policy of its
    own, so a disabled workgroup is cached like any other.
    """

    def __init__(
        self,
        ttl_seconds: float = WORKGROUP_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty cache."""
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, _CacheEntry] = {}
        self._flights: Dict[str, _Flight] = {}
        self._logger = logging.getLogger(__name__)

    def resolve(self, client: AthenaClient, name: str) -> Workgroup:
        """Return workgroup metadata for name, fetching it at most once at a time."""
        with self._lock:
            entry = self._entries.get(name)
            if entry is not None and self._clock() < entry.expires_at:
                self._logger.debug("workgroup_cache_hit name=%s", name)
                return entry.value
            self._entries.pop(name, None)

            flight = self._flights.get(name)
            leader = flight is None
            if flight is None:
                flight = _Flight()
                self._flights[name] = flight
            else:
                flight.waiters += 1

        if not leader:
            self._logger.debug("workgroup_cache_join name=%s", name)
            return flight.future.result()

        self._logger.debug("workgroup_cache_miss name=%s", name)
        try:
            workgroup = Workgroup.from_response(name, client.get_work_group(WorkGroup=name))
        except BaseException as exc:
            with self._lock:
                self._flights.pop(name, None)
            flight.future.set_exception(exc)
            raise

        with self._lock:
            self._entries[name] = _CacheEntry(
                value=workgroup, expires_at=self._clock() + self._ttl_seconds
            )
            self._flights.pop(name, None)
        flight.future.set_result(workgroup)
        return workgroup

    def invalidate(self, name: Optional[str] = None) -> int:
        """Drop one cached workgroup, or all of them, and return how many were dropped."""
        with self._lock:
            if name is None:
                count = len(self._entries)
                self._entries.clear()
            else:
                count = 1 if self._entries.pop(name, None) is not None else 0
        self._logger.info("workgroup_cache_invalidate name=%s entries_cleared=%s", name, count)
        return count

    def __len__(self) -> int:
        """Return the number of cached workgroups, expired ones included."""
        with self._lock:
            return len(self._entries)


DEFAULT_WORKGROUP_CACHE = WorkgroupCache()
