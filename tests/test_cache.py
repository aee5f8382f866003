# tests/test_cache.py
"""
Factor cache: single-flight computation, failure handling, clear, accept predicate.

Run: pytest -v
"""

from __future__ import annotations

import threading

import pytest

from fieldfactor.cache import FactorCache
from fieldfactor.context import FactorResult


def _result(n, factors, *, confidence=1.0, budget=100):
    return FactorResult(n=n, factors=tuple(factors), method="trial-division",
                        iterations=1, confidence=confidence, budget=budget)


@pytest.fixture
def cache():
    return FactorCache()


def test_put_get_and_membership(cache):
    assert cache.get(77) is None
    r = _result(77, [7, 11])
    cache.put(77, r)
    assert 77 in cache
    assert cache.get(77) is r
    assert len(cache) == 1


def test_single_flight_under_contention(cache):
    gate = threading.Event()
    calls = []

    def compute():
        calls.append(1)
        gate.wait(5)
        return _result(1001, [7, 11, 13])

    results = []

    def worker():
        results.append(cache.compute_or_fetch(1001, compute))

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for t in threads:
        t.start()
    gate.set()
    for t in threads:
        t.join()

    assert len(calls) == 1
    assert len(results) == 6
    assert all(r is results[0] for r in results)
    assert cache.stats.computations == 1
    assert cache.stats.misses == 1
    assert cache.stats.hits + cache.stats.waits == 5


def test_failed_computation_stores_nothing_and_reaches_waiters(cache):
    started = threading.Event()
    release = threading.Event()

    def boom():
        started.set()
        release.wait(5)
        raise RuntimeError("strategy failed")

    errors = []

    def owner():
        try:
            cache.compute_or_fetch(91, boom)
        except RuntimeError as e:
            errors.append(e)

    def fail_fast():
        raise RuntimeError("strategy failed")

    def waiter():
        try:
            cache.compute_or_fetch(91, fail_fast)
        except RuntimeError as e:
            errors.append(e)

    t1 = threading.Thread(target=owner)
    t1.start()
    started.wait(5)
    t2 = threading.Thread(target=waiter)
    t2.start()
    release.set()
    t1.join()
    t2.join()

    assert 91 not in cache
    # the waiter either shared the failure or started its own failing run
    assert len(errors) == 2
    assert all(str(e) == "strategy failed" for e in errors)

    # the key is free again
    assert cache.compute_or_fetch(91, lambda: _result(91, [7, 13])).factors == (7, 13)


def test_clear_during_computation_keeps_the_finished_result(cache):
    started = threading.Event()
    release = threading.Event()

    def slow():
        started.set()
        release.wait(5)
        return _result(143, [11, 13])

    out = []
    t = threading.Thread(target=lambda: out.append(cache.compute_or_fetch(143, slow)))
    t.start()
    started.wait(5)
    cache.clear()
    release.set()
    t.join()

    assert out[0].factors == (11, 13)
    assert cache.get(143) is out[0]


def test_rejected_entry_is_recomputed(cache):
    weak = _result(10, [10], confidence=0.0, budget=10)
    strong = _result(10, [2, 5], budget=50)
    cache.put(10, weak)

    got = cache.compute_or_fetch(10, lambda: strong, accept=lambda r: r.budget >= 50)
    assert got is strong
    assert cache.get(10) is strong
    assert cache.compute_or_fetch(10, lambda: weak, accept=lambda r: r.budget >= 50) is strong


def test_clear_resets_entries_stats_and_residues(cache):
    cache.compute_or_fetch(257 * 263, lambda: _result(257 * 263, [257, 263]))
    assert cache.residues.known_primes() == [257, 263]
    cache.clear()
    assert len(cache) == 0
    assert cache.stats.as_dict() == {"hits": 0, "misses": 0, "waits": 0, "computations": 0}
    assert cache.residues.known_primes() == []
