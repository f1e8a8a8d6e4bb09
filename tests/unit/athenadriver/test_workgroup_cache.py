import threading
import time

import pytest

from athenadriver.config import WorkgroupConfig
from athenadriver.workgroup import WorkgroupCache, create_workgroup_remotely
from tests._support.athena_fakes import FakeAthenaClient


class _BlockingWorkgroupClient:
    """get_work_group blocks until released so concurrent lookups overlap."""

    def __init__(self, error=None):
        self.entered = threading.Event()
        self.release = threading.Event()
        self.error = error
        self.calls = 0
        self._lock = threading.Lock()

    def get_work_group(self, *, WorkGroup):
        with self._lock:
            self.calls += 1
        self.entered.set()
        assert self.release.wait(5)
        if self.error is not None:
            raise self.error
        return {"WorkGroup": {"Name": WorkGroup, "State": "ENABLED"}}


def _wait_for_waiters(cache, name, count):
    deadline = time.monotonic() + 5
    while time.monotonic() < deadline:
        with cache._lock:
            flight = cache._flights.get(name)
            if flight is not None and flight.waiters >= count:
                return
        time.sleep(0.005)
    raise AssertionError(f"expected {count} waiters on {name}")


def _resolve_concurrently(cache, client, name, followers):
    results = []
    lock = threading.Lock()

    def resolve():
        try:
            outcome = cache.resolve(client, name)
        except Exception as exc:  # noqa: BLE001 - collected for assertions
            outcome = exc
        with lock:
            results.append(outcome)

    leader = threading.Thread(target=resolve)
    leader.start()
    assert client.entered.wait(5)
    others = [threading.Thread(target=resolve) for _ in range(followers)]
    for thread in others:
        thread.start()
    _wait_for_waiters(cache, name, followers)
    client.release.set()
    for thread in [leader, *others]:
        thread.join(5)
    return results


def test_concurrent_lookups_share_one_fetch():
    cache = WorkgroupCache()
    client = _BlockingWorkgroupClient()

    results = _resolve_concurrently(cache, client, "analytics", followers=4)

    assert client.calls == 1
    assert len(results) == 5
    assert all(result is results[0] for result in results)
    assert results[0].name == "analytics"
    assert results[0].is_enabled


def test_concurrent_lookup_failure_is_shared_and_not_cached():
    cache = WorkgroupCache()
    error = RuntimeError("throttled")
    client = _BlockingWorkgroupClient(error=error)

    results = _resolve_concurrently(cache, client, "analytics", followers=3)

    assert client.calls == 1
    assert results == [error] * 4
    assert len(cache) == 0

    retry = FakeAthenaClient(workgroups={"analytics": "ENABLED"})
    assert cache.resolve(retry, "analytics").is_enabled
    assert len(retry.calls_to("get_work_group")) == 1


def test_entries_expire_after_ttl():
    now = [1000.0]
    cache = WorkgroupCache(ttl_seconds=600, clock=lambda: now[0])
    client = FakeAthenaClient(workgroups={"analytics": "ENABLED"})

    cache.resolve(client, "analytics")
    now[0] += 599
    cache.resolve(client, "analytics")
    assert len(client.calls_to("get_work_group")) == 1

    now[0] += 2
    cache.resolve(client, "analytics")
    assert len(client.calls_to("get_work_group")) == 2


def test_disabled_workgroup_is_cached_as_is():
    cache = WorkgroupCache()
    client = FakeAthenaClient(workgroups={"frozen": "DISABLED"})

    assert not cache.resolve(client, "frozen").is_enabled
    assert not cache.resolve(client, "frozen").is_enabled
    assert len(client.calls_to("get_work_group")) == 1


def test_missing_workgroup_raises_and_is_not_cached():
    cache = WorkgroupCache()
    client = FakeAthenaClient()

    with pytest.raises(Exception):
        cache.resolve(client, "missing")
    assert len(cache) == 0
    assert cache._flights == {}


def test_invalidate():
    cache = WorkgroupCache()
    client = FakeAthenaClient(workgroups={"a": "ENABLED", "b": "ENABLED"})
    cache.resolve(client, "a")
    cache.resolve(client, "b")

    assert cache.invalidate("a") == 1
    assert cache.invalidate("a") == 0
    assert len(cache) == 1
    assert cache.invalidate() == 1
    assert len(cache) == 0


def test_create_workgroup_sends_tags_only_when_present():
    client = FakeAthenaClient()
    create_workgroup_remotely(client, WorkgroupConfig(name="etl"))
    create_workgroup_remotely(client, WorkgroupConfig(name="tagged", tags={"team": "data"}))

    untagged, tagged = client.calls_to("create_work_group")
    assert untagged["Name"] == "etl"
    assert "Tags" not in untagged
    assert untagged["Configuration"]["BytesScannedCutoffPerQuery"] == 10 * 1024**3
    assert tagged["Tags"] == [{"Key": "team", "Value": "data"}]
