# -----------------------------------------------------------------------------
#  engine.py
#  Factorization orchestrator and the module-level convenience API
# -----------------------------------------------------------------------------

from __future__ import annotations

import sys
import threading
from collections import deque
from collections.abc import Callable

from colorama import Fore, Style

from fieldfactor.cache import FactorCache
from fieldfactor.context import Budget, FactorResult
from fieldfactor.fields import FIELD_CONSTANTS, FieldSubstrate, Pattern
from fieldfactor.interference import InterferenceResult, field_interference
from fieldfactor.pages import PageLocation, page_of
from fieldfactor.primality import PrimalityVerdict, probable_prime
from fieldfactor.registry import Index, discover
from fieldfactor.resonance import ResonanceCalculator
from fieldfactor.runtime import FactoringSettings, current
from fieldfactor.strategies import SearchContext
from fieldfactor.utility import as_int, check_product, strip_twos

TRACE_INTERVAL_S = 0.5

EXACT, PROBABLE, INCOMPLETE = "exact", "probable-prime", "heuristic-incomplete"


def _make_tracer(enabled: bool) -> Callable:
    last = [0.0]

    def trace(stage: str, budget: Budget, cofactor: int, *, force: bool = False) -> None:
        if not enabled:
            return
        t = budget.elapsed()
        if not force and t - last[0] < TRACE_INTERVAL_S:
            return
        last[0] = t
        print(
            f"{Fore.CYAN}[factor]{Style.RESET_ALL} {stage:<8} t={t:5.2f}s "
            f"left={budget.remaining} remaining≈{int(cofactor).bit_length()} bits",
            file=sys.stderr,
        )

    return trace


class Engine:
    """
    Staged factorization over one substrate and one cache:

      1. strip factors of 2 (free)
      2. trial division below the trial bound
      3. Miller-Rabin pre-filter per cofactor (clock only, no iterations)
      4. search strategies in registry order on a worklist of split pieces
      5. on exhaustion, report the leftover as probable-prime or heuristic-incomplete
    """

    def __init__(self, substrate: FieldSubstrate | None = None,
                 cache: FactorCache | None = None,
                 strategies: Index | None = None,
                 settings: FactoringSettings | None = None):
        # taken once; calls from any thread run under these
        self.settings = settings or current().factoring
        self.substrate = substrate or FieldSubstrate()
        self.calculator = ResonanceCalculator(self.substrate)
        self.trial_bound = self.settings.trial_bound
        if cache is None:
            cache = FactorCache(self.trial_bound)
        else:
            cache.set_trial_bound(self.trial_bound)
        self.cache = cache
        self.strategies = strategies or discover()
        self._trial = self.strategies.for_stage("trial")
        self._search = self.strategies.for_stage("search")

    # --- public ---------------------------------------------------------------

    def factorize(self, n: int, budget: Budget | int | None = None, *,
                  use_cache: bool = True) -> FactorResult:
        n = as_int(n)
        bud = Budget.coerce(budget, self.settings)
        if n <= 1:
            return self._trivial(n, bud)
        if not use_cache:
            return self._compute(n, bud)
        return self.cache.compute_or_fetch(
            n,
            lambda: self._compute(n, bud),
            accept=lambda entry: entry.satisfies(bud),
        )

    def check_primality(self, n: int, rounds: int | None = None) -> PrimalityVerdict:
        return probable_prime(n, rounds or self.settings.mr_rounds, self.substrate)

    def clear_cache(self) -> None:
        self.cache.clear()

    # --- internals ------------------------------------------------------------

    @staticmethod
    def _trivial(n: int, budget: Budget) -> FactorResult:
        factors = (n,)
        check_product(n, factors)
        return FactorResult(
            n=n,
            factors=factors,
            method="trivial",
            iterations=0,
            confidence=1.0,
            factor_confidence=(1.0,),
            evidence=(f"{n} <= 1 has no prime factorization",),
            budget=budget.max_iterations,
            max_time_s=budget.max_time_s,
        )

    def _context(self, trace: Callable) -> SearchContext:
        return SearchContext.build(
            self.trial_bound,
            residues=self.cache.residues,
            search_share=self.settings.search_share,
            rho_batch=self.settings.rho_batch,
            trace=trace,
        )

    def _compute(self, n: int, budget: Budget) -> FactorResult:
        budget.start()
        trace = _make_tracer(current().debug)
        ctx = self._context(trace)
        accept = self.settings.accept_confidence
        bound_sq = self.trial_bound * self.trial_bound

        factors: list[int] = []
        confidence: list[float] = []
        kinds: list[str] = []
        evidence: list[str] = []
        last_split: str | None = None

        def record(f: int, conf: float = 1.0, kind: str = EXACT) -> None:
            factors.append(f)
            confidence.append(conf)
            kinds.append(kind)

        trace("start", budget, n, force=True)

        # 1) powers of two
        k, c = strip_twos(n)
        for _ in range(k):
            record(2)
        if k:
            evidence.append(f"2^{k} stripped from the low bits")

        # 2) trial division
        trial_proven = False
        ctx.trial_complete = bool(self._trial)
        for fn in self._trial:
            if c == 1:
                break
            att = fn(c, budget, ctx)
            for p in att.factors:
                record(p)
            if att.split:
                last_split = att.method
                evidence.append(f"{att.method}: {', '.join(map(str, att.factors))}")
            c = att.cofactor
            trial_proven = att.proven_prime
            ctx.trial_complete = ctx.trial_complete and att.complete
        if not ctx.trial_complete:
            evidence.append(f"trial division stopped by the budget after {budget.used} iterations")

        # 3-5) worklist of unresolved cofactors
        work: deque[tuple[int, bool]] = deque()
        if c > 1:
            work.append((c, trial_proven))

        while work:
            c, proven = work.popleft()
            if c == 1:
                continue
            if proven or (ctx.trial_complete and c < bound_sq):
                record(c)
                continue

            verdict = probable_prime(c, self.settings.mr_rounds, self.substrate)
            ctx.verdict = verdict
            evidence.append(f"{c}: {verdict.evidence[0]}")
            trace("prefilter", budget, c)

            resolved = False
            for fn in self._search:
                if budget.exhausted:
                    break
                if fn.composite_only and verdict.probably_prime:
                    continue
                att = fn(c, budget, ctx)
                if att is None:
                    continue
                if att.split:
                    last_split = att.method
                    evidence.append(f"{att.method}: {c} = {' * '.join(map(str, att.factors))} * {att.cofactor}")
                    if att.prime_factors:
                        for p in att.factors:
                            record(p)
                    else:
                        work.extend((f, False) for f in att.factors)
                    work.append((att.cofactor, att.proven_prime))
                    resolved = True
                    break
                if att.proven_prime:
                    evidence.append(f"{att.method}: no divisor up to isqrt({c}), prime")
                    record(c)
                    resolved = True
                    break

            if resolved:
                continue

            # 5) exhaustion
            if verdict.probably_prime and verdict.confidence >= accept:
                record(c, verdict.confidence, PROBABLE)
            else:
                record(c, verdict.prime_confidence, INCOMPLETE)
            evidence.append(f"{c}: unresolved when the budget ran out ({budget!r})")

        check_product(n, factors)

        if all(kd == EXACT for kd in kinds):
            method = "prime" if factors == [n] else (last_split or "trial-division")
        elif INCOMPLETE in kinds:
            method = INCOMPLETE
        else:
            method = PROBABLE

        # stopped by the clock with iterations to spare
        expired = min(confidence) < 1.0 and budget.remaining > 0 and budget.expired

        trace("done", budget, 1, force=True)
        return FactorResult(
            n=n,
            factors=tuple(factors),
            method=method,
            iterations=budget.used,
            confidence=min(confidence),
            factor_confidence=tuple(confidence),
            evidence=tuple(evidence),
            budget=budget.max_iterations,
            max_time_s=budget.max_time_s,
            expired=expired,
            elapsed_s=budget.elapsed(),
        )


# --- module-level API ---------------------------------------------------------

_default_engine: Engine | None = None
_default_key: tuple | None = None
_default_lock = threading.Lock()


def _profile_key() -> tuple:
    rt = current()
    return rt.factoring, tuple(sorted((rt.get("STRATEGIES") or {}).items()))


def default_engine() -> Engine:
    """Engine behind the module functions; rebuilt, keeping its cache, when the applied profile changes."""
    global _default_engine, _default_key
    key = _profile_key()
    with _default_lock:
        if _default_engine is None or key != _default_key:
            cache = _default_engine.cache if _default_engine is not None else None
            _default_engine = Engine(cache=cache)
            _default_key = key
        return _default_engine


def set_default_engine(engine: Engine | None) -> None:
    """Swap the engine behind the module functions (None rebuilds lazily)."""
    global _default_engine, _default_key
    key = _profile_key() if engine is not None else None
    with _default_lock:
        _default_engine = engine
        _default_key = key


def get_field_pattern(n: int) -> Pattern:
    return default_engine().substrate.pattern(n)


def get_field_constants() -> tuple[float, ...]:
    return FIELD_CONSTANTS.values


def get_active_field_indices(n: int) -> list[int]:
    return default_engine().substrate.active_indices(n)


def calculate_resonance(n: int) -> float:
    return default_engine().calculator.resonance(n)


def factorize(n: int, budget: Budget | int | None = None) -> FactorResult:
    return default_engine().factorize(n, budget)


def clear_cache() -> None:
    default_engine().clear_cache()


def get_field_interference(a: int, b: int) -> InterferenceResult:
    return field_interference(a, b)


def locate(n: int) -> PageLocation:
    return page_of(n)


def check_primality(n: int) -> PrimalityVerdict:
    return default_engine().check_primality(n)


def cache_stats() -> dict[str, object]:
    cache = default_engine().cache
    return {
        "entries": len(cache),
        **cache.stats.as_dict(),
        **cache.residues.snapshot(),
    }
