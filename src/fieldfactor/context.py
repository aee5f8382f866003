from __future__ import annotations

import math
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any

from fieldfactor.runtime import DEFAULTS, FactoringSettings, current
from fieldfactor.utility import InvalidInputError, as_int

DEFAULT_MAX_ITERATIONS = DEFAULTS.max_iterations
DEFAULT_MAX_TIME_S = DEFAULTS.max_time_s


class Budget:
    """
    Shared iteration / wall-clock allowance for one factorize() call.

    Every looping strategy calls spend() before each attempted division and
    stops when it returns False; the clock starts at start().
    """

    def __init__(self, max_iterations: int = DEFAULT_MAX_ITERATIONS,
                 max_time_s: float | None = DEFAULT_MAX_TIME_S):
        max_iterations = as_int(max_iterations, "max_iterations")
        if max_iterations < 0:
            raise InvalidInputError(f"max_iterations must be >= 0, got {max_iterations}")
        if max_time_s is not None:
            max_time_s = float(max_time_s)
            if not max_time_s > 0:
                raise InvalidInputError(f"max_time_s must be > 0, got {max_time_s}")
        self.max_iterations = max_iterations
        self.max_time_s = max_time_s
        self.used = 0
        self._t0: float | None = None

    @classmethod
    def from_config(cls, settings: FactoringSettings | None = None) -> Budget:
        s = settings or current().factoring
        return cls(s.max_iterations, s.max_time_s)

    @classmethod
    def coerce(cls, budget: Budget | int | None,
               settings: FactoringSettings | None = None) -> Budget:
        """
        Fresh, unstarted Budget from None (profile defaults), an iteration
        count (profile clock), or a Budget.
        """
        if isinstance(budget, Budget):
            return cls(budget.max_iterations, budget.max_time_s)
        s = settings or current().factoring
        if budget is None:
            return cls.from_config(s)
        return cls(as_int(budget, "budget"), s.max_time_s)

    def start(self) -> Budget:
        self._t0 = perf_counter()
        return self

    def elapsed(self) -> float:
        return 0.0 if self._t0 is None else perf_counter() - self._t0

    @property
    def remaining(self) -> int:
        return max(0, self.max_iterations - self.used)

    @property
    def expired(self) -> bool:
        return self.max_time_s is not None and self.elapsed() >= self.max_time_s

    @property
    def exhausted(self) -> bool:
        return self.remaining == 0 or self.expired

    def spend(self, k: int = 1) -> bool:
        if self.exhausted:
            return False
        self.used += k
        return True

    def share(self, fraction: float) -> int:
        if self.remaining == 0:
            return 0
        return max(1, math.ceil(self.remaining * fraction))

    def __repr__(self) -> str:
        return f"Budget(used={self.used}/{self.max_iterations}, t={self.elapsed():.3f}/{self.max_time_s})"


@dataclass
class Attempt:
    """What a strategy hands back: exact divisors split off plus what is left."""
    method: str
    cofactor: int
    factors: list[int] = field(default_factory=list)
    proven_prime: bool = False   # cofactor proven prime by exhaustive division
    complete: bool = True        # False when the budget cut the strategy short
    prime_factors: bool = False  # every entry of factors is a known prime

    @property
    def split(self) -> bool:
        return bool(self.factors)


@dataclass(frozen=True)
class FactorResult:
    # --- non-default fields FIRST ---
    n: int
    factors: tuple[int, ...]         # discovery order; product == n always
    method: str
    iterations: int
    confidence: float                # 1.0 only if every factor was proven by division

    # --- fields WITH defaults ---
    factor_confidence: tuple[float, ...] = ()
    evidence: tuple[str, ...] = ()
    budget: int = 0                  # iteration ceiling the result was computed under
    max_time_s: float | None = None  # wall-clock ceiling, None if unlimited
    expired: bool = False            # the clock, not the iterations, ended the search
    elapsed_s: float = 0.0

    @property
    def exact(self) -> bool:
        return self.confidence == 1.0

    def satisfies(self, budget: Budget) -> bool:
        """
        Whether a cached result answers a request under ``budget``.

        Exact results always do. An inexact one needs at least as many
        iterations, and if the clock cut it short, a clock no longer than
        the one it ran under.
        """
        if self.exact:
            return True
        if self.budget < budget.max_iterations:
            return False
        if not self.expired:
            return True
        return (budget.max_time_s is not None and self.max_time_s is not None
                and budget.max_time_s <= self.max_time_s)

    def as_dict(self) -> dict[str, Any]:
        return {
            "factors": list(self.factors),
            "method": self.method,
            "iterations": self.iterations,
            "confidence": self.confidence,
        }
