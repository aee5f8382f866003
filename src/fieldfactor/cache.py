# -----------------------------------------------------------------------------
#  cache.py
#  Factor cache: latest FactorResult per integer, single-flight computation
# -----------------------------------------------------------------------------

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass

from fieldfactor.context import FactorResult
from fieldfactor.residues import ResidueStats


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    waits: int = 0          # callers that blocked on someone else's computation
    computations: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "waits": self.waits,
            "computations": self.computations,
        }


class FactorCache:
    """
    Maps n -> latest FactorResult.

    compute_or_fetch() runs at most one computation per key at a time; every
    other caller for that key waits on the same Future and gets the same object.
    """

    def __init__(self, trial_bound: int = 256):
        self.trial_bound = trial_bound
        self.residues = ResidueStats()
        self.stats = CacheStats()
        self._lock = threading.Lock()
        self._entries: dict[int, FactorResult] = {}
        self._inflight: dict[int, Future] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, n: int) -> bool:
        with self._lock:
            return n in self._entries

    def get(self, n: int) -> FactorResult | None:
        with self._lock:
            return self._entries.get(n)

    def put(self, n: int, result: FactorResult) -> None:
        with self._lock:
            self._entries[n] = result
        self.residues.record(result, self.trial_bound)

    def set_trial_bound(self, trial_bound: int) -> None:
        """Re-index the residue statistics of every stored entry under a new trial bound."""
        with self._lock:
            if trial_bound == self.trial_bound:
                return
            self.trial_bound = trial_bound
            entries = list(self._entries.values())
        self.residues.clear()
        for result in entries:
            self.residues.record(result, trial_bound)

    def clear(self) -> None:
        # in-flight owners still store into the emptied dict when they finish
        with self._lock:
            self._entries.clear()
            self.stats = CacheStats()
        self.residues.clear()

    def compute_or_fetch(
        self,
        n: int,
        compute: Callable[[], FactorResult],
        accept: Callable[[FactorResult], bool] | None = None,
    ) -> FactorResult:
        ok = accept or (lambda _r: True)

        while True:
            with self._lock:
                entry = self._entries.get(n)
                if entry is not None and ok(entry):
                    self.stats.hits += 1
                    return entry
                fut = self._inflight.get(n)
                owner = fut is None
                if owner:
                    fut = Future()
                    self._inflight[n] = fut
                    self.stats.misses += 1
                    self.stats.computations += 1
                else:
                    self.stats.waits += 1

            if not owner:
                # re-raises the owner's exception, if any
                result = fut.result()
                if ok(result):
                    return result
                continue   # too weak for this caller; go round and compute our own

            try:
                result = compute()
            except BaseException as e:
                with self._lock:
                    self._inflight.pop(n, None)
                fut.set_exception(e)
                raise

            with self._lock:
                self._entries[n] = result
                self._inflight.pop(n, None)
            self.residues.record(result, self.trial_bound)
            fut.set_result(result)
            return result
