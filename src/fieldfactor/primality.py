# -----------------------------------------------------------------------------
#  primality.py
#  Miller-Rabin pre-filter with field-pattern evidence attached
# -----------------------------------------------------------------------------

from __future__ import annotations

import random
from dataclasses import dataclass

from sympy.ntheory.primetest import mr

from fieldfactor.fields import PERIOD, FieldSubstrate, pattern_bits
from fieldfactor.resonance import ResonanceCalculator
from fieldfactor.runtime import current
from fieldfactor.utility import as_int

CONFIDENCE_CAP = 0.999999

_FIRST_PRIMES = (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41)

# (exclusive upper bound, number of leading primes that make MR exact below it)
_DETERMINISTIC_LADDER = (
    (2_047, 1),
    (1_373_653, 2),
    (25_326_001, 3),
    (3_215_031_751, 4),
    (2_152_302_898_747, 5),
    (3_474_749_660_383, 6),
    (341_550_071_728_321, 7),
    (3_825_123_056_546_413_051, 9),
    (318_665_857_834_031_151_167_461, 12),
    (3_317_044_064_679_887_385_961_981, 13),
)


@dataclass(frozen=True)
class PrimalityVerdict:
    n: int
    probably_prime: bool
    confidence: float            # in the verdict, not in primality
    bases: tuple[int, ...] = ()
    deterministic: bool = False
    evidence: tuple[str, ...] = ()

    @property
    def prime_confidence(self) -> float:
        return self.confidence if self.probably_prime else 0.0


def _deterministic_bases(n: int) -> tuple[int, ...] | None:
    for bound, k in _DETERMINISTIC_LADDER:
        if n < bound:
            return _FIRST_PRIMES[:k]
    return None


def _random_bases(n: int, rounds: int) -> tuple[int, ...]:
    rng = random.Random(n)   # seeded by n so repeated checks agree
    return tuple(rng.randrange(2, n - 1) for _ in range(rounds))


def _confidence(k: int) -> float:
    return min(1.0 - 4.0 ** -k, CONFIDENCE_CAP)


def _field_evidence(n: int, substrate: FieldSubstrate) -> list[str]:
    calc = ResonanceCalculator(substrate)
    pat = substrate.pattern(n)
    sig = calc.signature(n)
    stable = pat == substrate.pattern(n + PERIOD)
    return [
        f"pattern {pattern_bits(pat)} ({sig.active_count} active)",
        f"pattern {'stable' if stable else 'unstable'} under shift by {PERIOD}",
        f"identity field {'active' if pat[0] else 'inactive'}",
        f"resonance {sig.primary:.6g} ({sig.classification}{', well' if sig.is_well else ''})",
    ]


def probable_prime(n: int, rounds: int | None = None,
                   substrate: FieldSubstrate | None = None) -> PrimalityVerdict:
    """
    Strong-pseudoprime test.

    Below 3.3e24 the base set is the known deterministic one for the size
    of n; above that, ``rounds`` bases are drawn from a generator seeded
    with n. A witness settles compositeness outright (confidence 1.0).
    """
    n = abs(as_int(n))
    substrate = substrate or FieldSubstrate()

    if n < 2:
        return PrimalityVerdict(n, False, 1.0, evidence=(f"{n} is a unit or zero",))
    if n < 4:
        return PrimalityVerdict(n, True, 1.0, deterministic=True, evidence=(f"{n} is prime",))
    if n % 2 == 0:
        return PrimalityVerdict(n, False, 1.0, bases=(2,), evidence=("even",))

    if rounds is None:
        rounds = current().factoring.mr_rounds
    bases = _deterministic_bases(n)
    deterministic = bases is not None
    if bases is None:
        bases = _random_bases(n, max(1, rounds))

    evidence = _field_evidence(n, substrate)
    for i, a in enumerate(bases):
        if not mr(n, [a]):
            evidence.insert(0, f"base {a} is a witness: composite")
            return PrimalityVerdict(n, False, 1.0, bases=bases[: i + 1], evidence=tuple(evidence))

    kind = "deterministic" if deterministic else "random"
    evidence.insert(0, f"passed {len(bases)} {kind} base(s): {', '.join(map(str, bases))}")
    return PrimalityVerdict(
        n,
        True,
        _confidence(len(bases)),
        bases=bases,
        deterministic=deterministic,
        evidence=tuple(evidence),
    )
