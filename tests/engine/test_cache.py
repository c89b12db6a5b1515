import threading
import time

from glslcompose.engine.cache import VariantCache
from glslcompose.errors import StaleVariantError
from pytest import raises


def wait_for_hits(cache, n):
    # Wait until n requests have joined the pending entry
    t0 = time.perf_counter()
    while cache.hits < n:
        assert time.perf_counter() - t0 < 5
        time.sleep(0.001)


def test_cache_basics():
    cache = VariantCache("test")
    calls = []

    def build():
        calls.append(1)
        return "value"

    assert cache.state("k") == "absent"
    assert cache.get("k", build) == "value"
    assert cache.state("k") == "ready"
    assert cache.get("k", build) == "value"
    assert len(calls) == 1
    assert cache.get_stats() == (1, 1, 1)
    assert len(cache) == 1


def test_cache_disabled():
    cache = VariantCache("test")
    calls = []

    def build():
        calls.append(1)
        return len(calls)

    cache.disable()
    assert cache.get("k", build) == 1
    assert cache.get("k", build) == 2
    assert cache.state("k") == "absent"
    cache.enable()
    assert cache.get("k", build) == 3
    assert cache.get("k", build) == 3


def test_cache_failed_is_terminal():
    cache = VariantCache("test")
    calls = []

    def build():
        calls.append(1)
        if len(calls) < 3:
            raise ValueError(f"fail {len(calls)}")
        return "ok"

    with raises(ValueError) as err:
        cache.get("k", build)
    assert str(err.value) == "fail 1"
    assert cache.state("k") == "failed"

    # Not retried automatically
    with raises(ValueError) as err:
        cache.get("k", build)
    assert str(err.value) == "fail 1"
    assert len(calls) == 1

    # An explicit retry
    assert cache.retry("k")
    assert not cache.retry("k")
    with raises(ValueError):
        cache.get("k", build)
    assert len(calls) == 2

    # Discard works too
    assert cache.discard("k")
    assert cache.get("k", build) == "ok"
    assert not cache.retry("k")


def test_cache_concurrent_requests_resolve_once():
    cache = VariantCache("test")
    calls = []
    started = threading.Event()
    release = threading.Event()

    def build():
        calls.append(1)
        started.set()
        release.wait(5)
        return object()

    results = []

    def request():
        results.append(cache.get("k", build))

    threads = [threading.Thread(target=request) for _ in range(8)]
    threads[0].start()
    started.wait(5)
    assert cache.state("k") == "pending"
    for t in threads[1:]:
        t.start()
    wait_for_hits(cache, len(threads) - 1)
    release.set()
    for t in threads:
        t.join()

    assert len(calls) == 1
    assert len(results) == 8
    assert all(r is results[0] for r in results)
    assert cache.state("k") == "ready"


def test_cache_concurrent_failure_is_shared():
    cache = VariantCache("test")
    started = threading.Event()
    release = threading.Event()

    def build():
        started.set()
        release.wait(5)
        raise RuntimeError("boom")

    errors = []

    def request():
        try:
            cache.get("k", build)
        except RuntimeError as err:
            errors.append(err)

    threads = [threading.Thread(target=request) for _ in range(4)]
    threads[0].start()
    started.wait(5)
    for t in threads[1:]:
        t.start()
    wait_for_hits(cache, len(threads) - 1)
    release.set()
    for t in threads:
        t.join()

    assert len(errors) == 4
    assert all(str(err) == "boom" for err in errors)
    assert cache.state("k") == "failed"


def test_cache_unrelated_keys_resolve_in_parallel():
    cache = VariantCache("test")
    a_started = threading.Event()
    b_done = threading.Event()

    def build_a():
        a_started.set()
        # Blocks until b is resolved, which deadlocks if keys are serialized
        assert b_done.wait(5)
        return "a"

    result = {}

    def request_a():
        result["a"] = cache.get("a", build_a)

    t = threading.Thread(target=request_a)
    t.start()
    a_started.wait(5)
    result["b"] = cache.get("b", lambda: "b")
    b_done.set()
    t.join()

    assert result == {"a": "a", "b": "b"}


def test_cache_invalidate():
    cache = VariantCache("test")
    cache.get("k1", lambda: 1, ["t1", "t2"])
    cache.get("k2", lambda: 2, ["t2"])
    cache.get("k3", lambda: 3, ["t3"])
    with raises(ValueError):
        cache.get("k4", lambda: int("x"), ["t1"])

    assert cache.invalidate("t1") == 2
    assert cache.state("k1") == "absent"
    assert cache.state("k4") == "absent"
    assert cache.state("k2") == "ready"

    assert cache.invalidate("t2") == 1
    assert cache.invalidate("nope") == 0
    assert cache.state("k3") == "ready"

    assert cache.get("k1", lambda: 10, ["t1", "t2"]) == 10


def test_cache_reload_while_pending():
    # A reload during a resolution: the result is not stored, and the next request resolves again
    cache = VariantCache("test")
    source = {"text": "old"}
    started = threading.Event()
    release = threading.Event()

    def build():
        text = source["text"]
        started.set()
        release.wait(5)
        return text

    outcome = {}

    def request():
        try:
            outcome["value"] = cache.get("k", build, ["t"])
        except StaleVariantError as err:
            outcome["error"] = err

    t = threading.Thread(target=request)
    t.start()
    started.wait(5)

    source["text"] = "new"
    cache.invalidate("t")
    assert cache.state("k") == "absent"
    release.set()
    t.join()

    assert "value" not in outcome
    assert isinstance(outcome["error"], StaleVariantError)
    assert cache.state("k") == "absent"

    assert cache.get("k", build, ["t"]) == "new"
    assert cache.state("k") == "ready"


def test_cache_waiters_of_stale_resolution():
    cache = VariantCache("test")
    started = threading.Event()
    release = threading.Event()

    def build():
        started.set()
        release.wait(5)
        return "old"

    errors = []

    def request():
        try:
            cache.get("k", build, ["t"])
        except StaleVariantError as err:
            errors.append(err)

    threads = [threading.Thread(target=request) for _ in range(3)]
    threads[0].start()
    started.wait(5)
    for t in threads[1:]:
        t.start()
    wait_for_hits(cache, len(threads) - 1)
    cache.invalidate("t")
    release.set()
    for t in threads:
        t.join()

    assert len(errors) == 3


def test_cache_clear():
    cache = VariantCache("test")
    cache.get("k", lambda: 1)
    cache.clear()
    assert cache.state("k") == "absent"
    assert len(cache) == 0
