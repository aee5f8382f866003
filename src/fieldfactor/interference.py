# -----------------------------------------------------------------------------
#  interference.py
#  Vanish/emerge rule: how factor patterns combine into the product pattern
# -----------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from fieldfactor.fields import FIELD_COUNT, PERIOD, Pattern, byte_to_pattern, residue
from fieldfactor.utility import as_int

MASK = PERIOD - 1


@dataclass(frozen=True)
class Artifact:
    index: int
    kind: Literal["vanished", "emerged"]

    def describe(self) -> str:
        if self.kind == "vanished":
            return f"field {self.index} active in both factors but not in the product"
        return f"field {self.index} absent from both factors but active in the product"


@dataclass(frozen=True)
class InterferenceResult:
    a: int
    b: int
    product: int
    product_pattern: Pattern
    vanished: tuple[int, ...]
    emerged: tuple[int, ...]
    coherence: float

    @property
    def artifacts(self) -> tuple[Artifact, ...]:
        return (
            tuple(Artifact(i, "vanished") for i in self.vanished)
            + tuple(Artifact(i, "emerged") for i in self.emerged)
        )

    @property
    def kind(self) -> str:
        if self.vanished and self.emerged:
            return "mixed"
        if self.vanished:
            return "destructive"
        if self.emerged:
            return "constructive"
        return "clean"


def byte_interference(a_byte: int, b_byte: int) -> tuple[int, int]:
    """(vanished_mask, emerged_mask) for two residues; pure function of the bytes."""
    p_byte = (a_byte * b_byte) & MASK
    both = a_byte & b_byte
    neither = ~(a_byte | b_byte) & MASK
    return both & ~p_byte & MASK, neither & p_byte


def artifact_count(a_byte: int, b_byte: int) -> int:
    vanished, emerged = byte_interference(a_byte, b_byte)
    return (vanished | emerged).bit_count()


def field_interference(a: int, b: int) -> InterferenceResult:
    a, b = as_int(a, "a"), as_int(b, "b")
    ra, rb = residue(a), residue(b)
    vanished, emerged = byte_interference(ra, rb)
    p = abs(a * b)
    rp = p & MASK

    total = ra.bit_count() + rb.bit_count()
    coherence = rp.bit_count() / total if total else 1.0

    return InterferenceResult(
        a=a,
        b=b,
        product=p,
        product_pattern=byte_to_pattern(rp),
        vanished=tuple(i for i in range(FIELD_COUNT) if (vanished >> i) & 1),
        emerged=tuple(i for i in range(FIELD_COUNT) if (emerged >> i) & 1),
        coherence=coherence,
    )
