# -----------------------------------------------------------------------------
#  residues.py
#  Residue arithmetic mod 256 and per-residue statistics of discovered factors
# -----------------------------------------------------------------------------

from __future__ import annotations

import threading
from collections import Counter, defaultdict
from functools import cache
from math import gcd
from typing import TYPE_CHECKING

from sympy import mod_inverse

from fieldfactor.fields import PERIOD
from fieldfactor.pages import PAGE_SIZE

if TYPE_CHECKING:
    from fieldfactor.context import FactorResult

MASK = PERIOD - 1


@cache
def _partner_byte(d_byte: int, c_byte: int) -> int | None:
    g = gcd(d_byte, PERIOD)  # gcd(0, 256) == 256
    if c_byte % g:
        return None
    m = PERIOD // g
    if m == 1:
        return 0
    return (c_byte // g) * mod_inverse(d_byte // g, m) % m


def partner_residue(d: int, c: int) -> int | None:
    """
    Residue b with (d * b) % 256 == c % 256, or None if no such byte exists.

    Unique for odd d; for even d the smallest solution is returned.
    """
    return _partner_byte(abs(d) & MASK, abs(c) & MASK)


def residue_compatible(d: int, c: int) -> bool:
    """False only when d cannot divide c, judged by the residues alone."""
    return _partner_byte(abs(d) & MASK, abs(c) & MASK) is not None


class ResidueStats:
    """
    Bucketed counters fed by the cache:

      - keys per residue (n mod 256) and per page (n // 48)
      - primes above the trial bound found in exact results, by residue
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._keys_by_residue: Counter[int] = Counter()
        self._keys_by_page: Counter[int] = Counter()
        self._primes_by_residue: defaultdict[int, set[int]] = defaultdict(set)

    def record(self, result: FactorResult, trial_bound: int) -> None:
        n = result.n
        if n < 0:
            return
        with self._lock:
            self._keys_by_residue[n & MASK] += 1
            self._keys_by_page[n // PAGE_SIZE] += 1
            if result.exact:
                for f in result.factors:
                    if f > trial_bound:
                        self._primes_by_residue[f & MASK].add(f)

    def known_primes(self, cofactor: int | None = None) -> list[int]:
        """Ascending; when a cofactor is given, only primes below it that pass the residue test."""
        with self._lock:
            pool = [p for s in self._primes_by_residue.values() for p in s]
        if cofactor is not None:
            pool = [p for p in pool if p < cofactor and residue_compatible(p, cofactor)]
        return sorted(pool)

    def histogram_by_page(self) -> dict[int, int]:
        with self._lock:
            return dict(sorted(self._keys_by_page.items()))

    def histogram_by_residue(self) -> dict[int, int]:
        with self._lock:
            return dict(sorted(self._keys_by_residue.items()))

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {
                "keys": sum(self._keys_by_residue.values()),
                "residues": len(self._keys_by_residue),
                "pages": len(self._keys_by_page),
                "known_primes": sum(len(s) for s in self._primes_by_residue.values()),
            }

    def clear(self) -> None:
        with self._lock:
            self._keys_by_residue.clear()
            self._keys_by_page.clear()
            self._primes_by_residue.clear()
