# -----------------------------------------------------------------------------
#  strategies.py
#  Factor-finding strategies; each one spends the shared Budget per division
# -----------------------------------------------------------------------------

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from math import isqrt, prod

import gmpy2
from gmpy2 import mpz
from sympy import primerange

from fieldfactor.context import Attempt, Budget
from fieldfactor.interference import artifact_count
from fieldfactor.pages import descending_windows
from fieldfactor.primality import PrimalityVerdict
from fieldfactor.registry import strategy
from fieldfactor.residues import ResidueStats, partner_residue
from fieldfactor.runtime import DEFAULTS

TRIAL_BOUND = DEFAULTS.trial_bound
SEARCH_SHARE = DEFAULTS.search_share
RHO_BATCH = DEFAULTS.rho_batch
RHO_INCREMENTS = 8


def _no_trace(stage: str, budget: Budget, cofactor: int) -> None:
    return None


@dataclass
class SearchContext:
    """Per-call state handed to every strategy alongside the cofactor and budget."""
    trial_bound: int = TRIAL_BOUND
    primes: tuple[int, ...] = ()          # odd primes below trial_bound
    primorial: int = 1                    # product of all primes below trial_bound
    residues: ResidueStats | None = None
    verdict: PrimalityVerdict | None = None
    trial_complete: bool = False
    search_share: float = SEARCH_SHARE
    rho_batch: int = RHO_BATCH
    trace: Callable[[str, Budget, int], None] = field(default=_no_trace, repr=False)

    @classmethod
    def build(cls, trial_bound: int = TRIAL_BOUND, **kw) -> SearchContext:
        primes = tuple(primerange(3, trial_bound))
        return cls(
            trial_bound=trial_bound,
            primes=primes,
            primorial=2 * prod(primes),
            **kw,
        )

    @property
    def probably_prime(self) -> bool:
        return self.verdict is not None and self.verdict.probably_prime


# --- trial division -----------------------------------------------------------


@strategy(label="trial-division", order=10, stage="trial")
def trial_division(cofactor: int, budget: Budget, ctx: SearchContext) -> Attempt:
    """Odd primes below the trial bound; one iteration per modulo test."""
    c = cofactor
    found: list[int] = []
    for p in ctx.primes:
        if c == 1:
            break
        if p * p > c:
            return Attempt("trial-division", c, found, proven_prime=True, prime_factors=True)
        while True:
            if not budget.spend():
                return Attempt("trial-division", c, found, complete=False, prime_factors=True)
            if c % p:
                break
            found.append(p)
            c //= p
            if c == 1:
                break
        ctx.trace("trial", budget, c)

    # every prime below the bound tried: what is left has no factor below it
    proven = c > 1 and c < ctx.trial_bound * ctx.trial_bound
    return Attempt("trial-division", c, found, proven_prime=proven, prime_factors=True)


# --- search stage -------------------------------------------------------------


@strategy(label="residue-lookup", order=20)
def residue_lookup(cofactor: int, budget: Budget, ctx: SearchContext) -> Attempt | None:
    """Primes seen in earlier exact results with a compatible residue."""
    if ctx.residues is None:
        return None
    known = ctx.residues.known_primes(cofactor)
    if not known:
        return None

    c = cofactor
    found: list[int] = []
    for p in known:
        if p >= c:
            break
        while True:
            if not budget.spend():
                return Attempt("residue-lookup", c, found, complete=False, prime_factors=True)
            if c % p:
                break
            found.append(p)
            c //= p
    return Attempt("residue-lookup", c, found, prime_factors=True)


def _window_candidates(start: int, stop: int, c: int, ctx: SearchContext) -> list[int]:
    # odd and free of primes below the trial bound; an odd d always has a
    # partner residue mod 256, so the artifact count only orders the window
    first = start | 1
    scored = []
    for d in range(stop if stop & 1 else stop - 1, first - 1, -2):
        if gmpy2.gcd(d, ctx.primorial) != 1:
            continue
        scored.append((artifact_count(d & 0xFF, partner_residue(d, c)), -d))
    scored.sort()
    return [-neg for _, neg in scored]


@strategy(label="field-search", order=30)
def field_search(cofactor: int, budget: Budget, ctx: SearchContext) -> Attempt | None:
    """
    Page-window walk from isqrt(c) down to the trial bound.

    Inside a window every odd candidate coprime to the trial primes is tried;
    the vanish/emerge score against the partner residue only sets the order.
    Composites get a share of the remaining budget so later strategies still
    run; a probable prime gets all of it. Finishing the walk without a
    divisor, after a complete trial division, proves the cofactor prime.
    """
    c = cofactor
    hi = isqrt(c)
    lo = ctx.trial_bound
    if hi < lo:
        return None

    cap = budget.remaining if ctx.probably_prime else budget.share(ctx.search_share)
    spent = 0
    cz = mpz(c)

    for start, stop in descending_windows(hi, lo):
        for d in _window_candidates(start, stop, c, ctx):
            if spent >= cap or not budget.spend():
                return Attempt("field-search", c, complete=False)
            spent += 1
            if cz % d == 0:
                return Attempt("field-search", c // d, [d])
        ctx.trace("search", budget, c)

    return Attempt("field-search", c, proven_prime=ctx.trial_complete)


def _brent(n: mpz, inc: int, budget: Budget, batch: int) -> int | None:
    """One Pollard-Brent run; None when the budget ends it, else gcd (may be n)."""
    y, c = mpz(2), mpz(inc)
    g = r = q = mpz(1)
    x = ys = y
    while g == 1:
        x = y
        for _ in range(r):
            if not budget.spend():
                return None
            y = (y * y + c) % n
        k = 0
        while k < r and g == 1:
            ys = y
            for _ in range(min(batch, r - k)):
                if not budget.spend():
                    return None
                y = (y * y + c) % n
                q = q * abs(x - y) % n
            g = gmpy2.gcd(q, n)
            k += batch
        r *= 2

    if g == n:
        # batch overshot; step back one at a time from the saved point
        while True:
            if not budget.spend():
                return None
            ys = (ys * ys + c) % n
            g = gmpy2.gcd(abs(x - ys), n)
            if g > 1:
                break
    return int(g)


@strategy(label="bounded-rho", order=40, composite_only=True)
def bounded_rho(cofactor: int, budget: Budget, ctx: SearchContext) -> Attempt | None:
    """Pollard-Brent rho, one iteration per step, increments 1, 2, 3, ..."""
    n = mpz(cofactor)
    for inc in range(1, RHO_INCREMENTS + 1):
        g = _brent(n, inc, budget, ctx.rho_batch)
        if g is None:
            return Attempt("bounded-rho", cofactor, complete=False)
        if 1 < g < cofactor:
            return Attempt("bounded-rho", cofactor // g, [g])
        ctx.trace("rho", budget, cofactor)
    return None
