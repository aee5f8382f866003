# -----------------------------------------------------------------------------
#  resonance.py
#  Resonance: product of the field constants at the active pattern positions
# -----------------------------------------------------------------------------

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache

from fieldfactor.fields import FIELD_CONSTANTS, PERIOD, FieldConstants, FieldSubstrate, residue

GOLDEN = (1 + math.sqrt(5)) / 2
RESONANCE_WELLS = (0.5, 1.0, GOLDEN, math.pi, 2 * math.pi)


def resonance_from_pattern(pattern, constants) -> float:
    r = 1.0
    for i, active in enumerate(pattern):
        if active:
            r *= constants[i]
    return r


@lru_cache(maxsize=8)
def _resonance_table(values: tuple[float, ...]) -> tuple[float, ...]:
    # resonance has period 256, so one table per constants tuple covers every n
    out = []
    for byte in range(PERIOD):
        r = 1.0
        for i, c in enumerate(values):
            if (byte >> i) & 1:
                r *= c
        out.append(r)
    return tuple(out)


def classify_resonance(r: float) -> str:
    if r == 0:
        return "void"
    if r < 0.1:
        return "ultra-low"
    if r < 0.5:
        return "very-low"
    if abs(r - 1.0) < 0.001:
        return "unity"
    if r < 1.0:
        return "low"
    if r < 2.0:
        return "moderate"
    if r < 5.0:
        return "high"
    if r < 10.0:
        return "very-high"
    return "ultra-high"


def is_resonance_well(r: float, tolerance: float = 0.01) -> bool:
    return any(abs(r - w) < tolerance for w in RESONANCE_WELLS)


@dataclass(frozen=True)
class ResonanceSignature:
    primary: float
    classification: str
    is_well: bool
    active_count: int


class ResonanceCalculator:
    def __init__(self, substrate: FieldSubstrate | None = None):
        self.substrate = substrate or FieldSubstrate()
        self._table = _resonance_table(self.substrate.constants.values)

    @property
    def constants(self) -> tuple[float, ...]:
        """Read-only copy of the field constants, for callers reproducing the product."""
        return self.substrate.constants.values

    @property
    def field_constants(self) -> FieldConstants:
        return self.substrate.constants

    def resonance(self, n: int) -> float:
        return self._table[residue(n)]

    def evidence(self, n: int) -> list[str]:
        lines = []
        for i in self.substrate.active_indices(n):
            lines.append(f"field {self.substrate.field_name(i)} active: α{i} = {self.constants[i]}")
        lines.append(f"total resonance: {self.resonance(n)}")
        return lines

    def signature(self, n: int) -> ResonanceSignature:
        r = self.resonance(n)
        return ResonanceSignature(
            primary=r,
            classification=classify_resonance(r),
            is_well=is_resonance_well(r),
            active_count=len(self.substrate.active_indices(n)),
        )


def calculate_resonance(n: int, constants: FieldConstants = FIELD_CONSTANTS) -> float:
    return _resonance_table(constants.values)[residue(n)]


def resonance_evidence(n: int) -> list[str]:
    return ResonanceCalculator().evidence(n)
