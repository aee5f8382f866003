# tests/test_engine.py
"""
Factorization engine: concrete scenarios, labels, budgets, caching, registry toggles.

Run: pytest -v
"""

from __future__ import annotations

import math
import threading

import pytest
from sympy import isprime, nextprime

import fieldfactor as ff
from fieldfactor.cache import FactorCache
from fieldfactor.config import load_settings
from fieldfactor.context import Budget, FactorResult
from fieldfactor.engine import Engine
from fieldfactor.registry import discover
from fieldfactor.runtime import APPLY, FactoringSettings, current
from fieldfactor.strategies import SearchContext, _window_candidates
from fieldfactor.utility import ConsistencyViolation, InvalidInputError, check_product

# ---------- concrete scenarios --------------------------------------------------

EXACT_CASES = [
    (77, (7, 11)),
    (1001, (7, 11, 13)),
    (10001, (73, 137)),
    (48, (2, 2, 2, 2, 3)),
    (1024, (2,) * 10),
    (3 * 3 * 3 * 251, (3, 3, 3, 251)),
]


@pytest.mark.parametrize("n,factors", EXACT_CASES, ids=[f"n={n}" for n, _ in EXACT_CASES])
def test_small_exact_factorizations(engine, n, factors):
    res = engine.factorize(n)
    assert res.factors == factors
    assert res.confidence == 1.0
    assert res.exact
    assert res.method == "trial-division"
    assert res.iterations <= 100


def test_100003_is_proven_prime_within_default_budget(engine):
    res = engine.factorize(100_003)
    assert res.factors == (100_003,)
    assert res.method == "prime"
    assert res.confidence > 0.8
    assert res.iterations <= 100


@pytest.mark.parametrize("n", [2, 3, 97, 65_521], ids=str)
def test_small_primes_are_labelled_prime(engine, n):
    res = engine.factorize(n)
    assert res.factors == (n,)
    assert res.method == "prime"
    assert res.confidence == 1.0


@pytest.mark.parametrize("n", [1, 0, -5], ids=["one", "zero", "negative"])
def test_trivial_inputs(engine, n):
    res = engine.factorize(n)
    assert res.factors == (n,)
    assert res.method == "trivial"
    assert res.iterations == 0
    assert res.confidence == 1.0


def test_every_small_n_factors_exactly_into_primes(engine):
    for n in range(2, 2000):
        res = engine.factorize(n, 1000)
        assert math.prod(res.factors) == n
        assert res.confidence == 1.0
        assert all(isprime(f) for f in res.factors), (n, res.factors)


def test_balanced_semiprime_found_by_field_search(engine):
    p, q = 1_000_003, 1_000_033
    res = engine.factorize(p * q, 1000)
    assert sorted(res.factors) == [p, q]
    assert res.confidence == 1.0
    assert res.method == "field-search"
    assert res.iterations <= 1000


def test_hard_semiprime_terminates_with_labelled_incomplete_result(engine):
    p, q = nextprime(2**25), nextprime(2**26)
    n = p * q
    res = engine.factorize(n, budget=10)
    assert res.factors == (n,)
    assert res.method == "heuristic-incomplete"
    assert res.confidence < 1.0
    assert math.prod(res.factors) == n
    assert res.iterations <= 10


def test_wall_clock_budget_stops_a_large_search(engine):
    p, q = nextprime(2**63), nextprime(2**64)
    res = engine.factorize(p * q, Budget(10**9, 0.2))
    assert math.prod(res.factors) == p * q
    assert res.confidence < 1.0 or sorted(res.factors) == [p, q]
    assert res.elapsed_s < 5.0


def test_probable_prime_accepted_when_budget_runs_out(engine):
    # trial division costs 53 iterations; the remaining 7 cannot finish the proof
    res = engine.factorize(1_000_003, 60)
    assert res.factors == (1_000_003,)
    assert res.method == "probable-prime"
    assert 0.8 <= res.confidence < 1.0


def test_low_confidence_prime_reported_incomplete_under_strict_threshold():
    APPLY({"FACTORING": {"ACCEPT_CONFIDENCE": 0.99}})
    res = Engine().factorize(1_000_003, 60)
    assert res.method == "heuristic-incomplete"
    assert 0.0 < res.confidence < 0.99


def test_residue_lookup_reuses_primes_from_earlier_results(engine):
    p, q = 1_000_003, 1_000_033
    engine.factorize(p * q, 1000)
    res = engine.factorize(p * p)
    assert res.factors == (p, p)
    assert res.method == "residue-lookup"
    assert res.confidence == 1.0


def test_rho_splits_when_field_search_is_disabled():
    APPLY({"STRATEGIES": {"FIELD_SEARCH": False}})
    p, q = nextprime(2**20), nextprime(2**21)
    eng = Engine()
    assert "field-search" not in eng.strategies.funcs
    res = eng.factorize(p * q, Budget(100_000, None))
    assert sorted(res.factors) == [p, q]
    assert any(line.startswith("bounded-rho") for line in res.evidence)
    # without the field search nothing can prove the halves prime
    assert res.method == "probable-prime"


def test_factor_confidence_and_evidence_are_reported(engine):
    res = engine.factorize(1001)
    assert res.factor_confidence == (1.0, 1.0, 1.0)
    assert any("trial-division" in line for line in res.evidence)
    assert res.as_dict() == {"factors": [7, 11, 13], "method": "trial-division",
                             "iterations": res.iterations, "confidence": 1.0}


# ---------- invariants and inputs ----------------------------------------------


def test_check_product_raises_on_mismatch():
    with pytest.raises(ConsistencyViolation):
        check_product(10, [2, 3])
    check_product(10, [2, 5])


@pytest.mark.parametrize("bad", [7.0, "77", None, True], ids=repr)
def test_factorize_rejects_non_integers(engine, bad):
    with pytest.raises(InvalidInputError):
        engine.factorize(bad)


@pytest.mark.parametrize("bad", [-1, "10", 2.5], ids=repr)
def test_bad_budgets_are_rejected(engine, bad):
    with pytest.raises(InvalidInputError):
        engine.factorize(77, bad)


def test_budget_accounting():
    b = Budget(3, None).start()
    assert [b.spend() for _ in range(5)] == [True, True, True, False, False]
    assert b.used == 3
    assert b.exhausted
    assert Budget(10, None).share(0.5) == 5
    assert Budget(0, None).share(0.5) == 0

    fresh = Budget.coerce(b)
    assert fresh is not b and fresh.used == 0 and fresh.max_iterations == 3


def test_budget_defaults_follow_profile_settings():
    assert Budget.from_config().max_iterations == 100
    APPLY({"FACTORING": {"MAX_ITERATIONS": 7, "MAX_TIME_S": 0}})
    b = Budget.coerce(None)
    assert b.max_iterations == 7
    assert b.max_time_s is None


# ---------- caching -------------------------------------------------------------


def test_repeated_calls_return_identical_result(engine):
    a = engine.factorize(10001)
    b = engine.factorize(10001)
    assert a is b
    assert engine.cache.stats.hits == 1
    assert engine.cache.stats.computations == 1


def test_clear_cache_then_recompute_is_still_correct(engine):
    a = engine.factorize(1001)
    engine.clear_cache()
    assert len(engine.cache) == 0
    b = engine.factorize(1001)
    assert a is not b
    assert b.factors == a.factors
    assert b.confidence == 1.0


def test_larger_budget_upgrades_an_inexact_entry(engine):
    n = nextprime(2**25) * nextprime(2**26)
    weak = engine.factorize(n, 10)
    assert engine.factorize(n, 10) is weak
    assert engine.factorize(n, 5) is weak
    stronger = engine.factorize(n, 20)
    assert stronger is not weak
    assert stronger.budget == 20
    assert engine.cache.get(n) is stronger


def test_exact_entry_serves_any_budget(engine):
    first = engine.factorize(77, 10)
    assert engine.factorize(77, 10_000) is first


def test_use_cache_false_bypasses_the_cache(engine):
    a = engine.factorize(77)
    b = engine.factorize(77, use_cache=False)
    assert a is not b
    assert a.factors == b.factors


def test_concurrent_callers_share_one_result(engine):
    n = 1_000_003 * 1_000_033
    results = []
    errors = []

    def worker():
        try:
            results.append(engine.factorize(n, 1000))
        except Exception as e:   # surfaced by the assertion below
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert len(results) == 8
    assert all(r is results[0] for r in results)
    assert engine.cache.stats.computations == 1


def test_clock_cut_result_is_not_reused_under_a_longer_clock(engine):
    n = 1_000_003 * 1_000_033
    rushed = engine.factorize(n, Budget(1000, 1e-9))
    assert not rushed.exact
    assert rushed.expired
    assert rushed.max_time_s == 1e-9
    # the same clock would stop the same way
    assert engine.factorize(n, Budget(1000, 1e-9)) is rushed

    unhurried = engine.factorize(n, Budget(1000, None))
    assert unhurried is not rushed
    assert sorted(unhurried.factors) == [1_000_003, 1_000_033]
    assert unhurried.method == "field-search"
    assert engine.cache.get(n) is unhurried


def test_satisfies_weighs_iterations_and_clock():
    inexact = dict(n=15, factors=(15,), method="heuristic-incomplete", iterations=3, confidence=0.5)
    ran_out = FactorResult(**inexact, budget=10, max_time_s=1.0)
    assert ran_out.satisfies(Budget(10, 5.0))
    assert not ran_out.satisfies(Budget(11, 1.0))

    timed_out = FactorResult(**inexact, budget=10, max_time_s=1.0, expired=True)
    assert timed_out.satisfies(Budget(10, 1.0))
    assert timed_out.satisfies(Budget(5, 0.5))
    assert not timed_out.satisfies(Budget(10, 2.0))
    assert not timed_out.satisfies(Budget(10, None))

    exact = FactorResult(15, (3, 5), "trial-division", 2, 1.0, budget=1, max_time_s=0.1, expired=True)
    assert exact.satisfies(Budget(10**6, None))


def test_engine_rebinds_a_shared_cache_to_its_trial_bound():
    cache = FactorCache(256)
    cache.put(257 * 263, FactorResult(257 * 263, (257, 263), "field-search", 5, 1.0))
    assert cache.residues.known_primes() == [257, 263]

    eng = Engine(cache=cache, settings=FactoringSettings(trial_bound=300))
    assert cache.trial_bound == 300
    assert eng.trial_bound == 300
    # both now fall below the bound, so trial division owns them
    assert cache.residues.known_primes() == []
    assert cache.get(257 * 263).factors == (257, 263)


# ---------- settings and threads ------------------------------------------------


def test_worker_threads_run_under_the_applied_profile():
    APPLY(load_settings("deep"))
    seen = []

    def worker():
        seen.append(ff.factorize(77))
        seen.append(Budget.coerce(None).max_iterations)

    t = threading.Thread(target=worker)
    t.start()
    t.join()
    assert seen[0].budget == 100_000
    assert seen[1] == 100_000


def test_engine_keeps_the_settings_it_was_built_under():
    APPLY({"FACTORING": {"MAX_ITERATIONS": 40}})
    eng = Engine()
    APPLY({"FACTORING": {"MAX_ITERATIONS": 900}})
    results = []
    t = threading.Thread(target=lambda: results.append(eng.factorize(1001)))
    t.start()
    t.join()
    assert results[0].budget == 40
    assert eng.factorize(10001).budget == 40
    assert Engine().settings.max_iterations == 900


def test_window_tries_every_odd_candidate_free_of_trial_primes():
    ctx = SearchContext.build(16)
    n = 1_000_003 * 1_000_033
    got = _window_candidates(1000, 1100, n, ctx)
    expected = [d for d in range(1001, 1100, 2) if all(d % p for p in ctx.primes)]
    assert sorted(got) == expected
    assert len(set(got)) == len(got)


# ---------- registry ------------------------------------------------------------


def test_registry_order_and_toggles():
    idx = discover()
    assert list(idx.funcs) == ["trial-division", "residue-lookup", "field-search", "bounded-rho"]
    assert idx.stages["trial-division"] == "trial"
    assert idx.label_to_token["bounded-rho"] == "BOUNDED_RHO"

    APPLY({"STRATEGIES": {"BOUNDED_RHO": False, "RESIDUE_LOOKUP": False}})
    idx = discover()
    assert list(idx.funcs) == ["trial-division", "field-search"]
    assert idx.disabled == ["residue-lookup", "bounded-rho"]


# ---------- module-level API ---------------------------------------------------


def test_public_api():
    assert ff.get_field_pattern(48) == (False, False, False, False, True, True, False, False)
    assert ff.get_active_field_indices(48) == [4, 5]
    assert len(ff.get_field_constants()) == 8
    assert abs(ff.calculate_resonance(48) - 1.0) <= 1e-15
    assert ff.factorize(77).factors == (7, 11)
    assert ff.locate(100).page == 2
    assert ff.check_primality(100_003).probably_prime
    assert ff.get_field_interference(3, 3).kind == "mixed"

    stats = ff.cache_stats()
    assert stats["entries"] == 1
    assert stats["computations"] == 1
    ff.clear_cache()
    assert ff.cache_stats()["entries"] == 0


def test_debug_trace_goes_to_stderr(engine, capsys):
    current().debug = True
    engine.factorize(1001, use_cache=False)
    err = capsys.readouterr().err
    assert "[factor]" in err
    assert "start" in err and "done" in err
