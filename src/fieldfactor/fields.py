# -----------------------------------------------------------------------------
#  fields.py
#  Field substrate: activation patterns (n mod 256) and the 8 field constants
# -----------------------------------------------------------------------------

from __future__ import annotations

import math
from dataclasses import dataclass
from numbers import Integral

from fieldfactor.utility import ConsistencyViolation, InvalidInputError, as_int

FIELD_COUNT = 8
PERIOD = 1 << FIELD_COUNT  # 256

PRODUCT_TOLERANCE = 1e-15
DRIFT_TOLERANCE = 1e-12

Pattern = tuple[bool, ...]


def _tribonacci_constant() -> float:
    # real root of x^3 - x^2 - x - 1
    r = math.sqrt(33.0)
    return (1.0 + (19.0 + 3.0 * r) ** (1.0 / 3.0) + (19.0 - 3.0 * r) ** (1.0 / 3.0)) / 3.0


# Each constant with the expression it is derived from; verify() recomputes these.
_DERIVATIONS = (
    ("I",    "Identity: unity and existence",        lambda: 1.0),
    ("T",    "Tribonacci: recursion and growth",     _tribonacci_constant),
    ("φ",    "Golden ratio: harmony and proportion", lambda: (1.0 + math.sqrt(5.0)) / 2.0),
    ("½",    "Half: duality and reflection",         lambda: 0.5),
    ("1/2π", "Inverse frequency: wavelength space",  lambda: 1.0 / (2.0 * math.pi)),
    ("2π",   "Frequency: cyclic nature",             lambda: 2.0 * math.pi),
    ("θ",    "Phase: interference patterns",         lambda: (4 * 7 * 7129) / 1_000_000),
    ("ζ",    "Zeta: deep structure",                 lambda: 14.134725 / 1000),
)

_CANONICAL_VALUES = (
    1.0,
    1.8392867552141612,
    1.618033988749895,
    0.5,
    0.15915494309189535,
    6.283185307179586,
    0.199612,
    0.014134725,
)


@dataclass(frozen=True)
class FieldConstants:
    """
    Immutable table of the 8 field constants.

    Built once and shared by reference; ``verify()`` runs on construction via
    ``checked()`` and raises ConsistencyViolation instead of returning False.
    """
    values: tuple[float, ...]
    names: tuple[str, ...]
    descriptions: tuple[str, ...]

    @classmethod
    def checked(cls, values=None) -> FieldConstants:
        vals = tuple(float(v) for v in (_CANONICAL_VALUES if values is None else values))
        table = cls(
            values=vals,
            names=tuple(d[0] for d in _DERIVATIONS),
            descriptions=tuple(d[1] for d in _DERIVATIONS),
        )
        table.verify()
        return table

    def verify(self) -> bool:
        if len(self.values) != FIELD_COUNT:
            raise ConsistencyViolation(
                f"expected {FIELD_COUNT} field constants, got {len(self.values)}"
            )
        for i, v in enumerate(self.values):
            if not math.isfinite(v) or v <= 0.0:
                raise ConsistencyViolation(f"field constant α{i} = {v!r} is not a positive real")

        product = self.values[4] * self.values[5]
        if abs(product - 1.0) > PRODUCT_TOLERANCE:
            raise ConsistencyViolation(f"field invariant violated: α4 × α5 = {product!r}, expected 1.0")

        for i, (name, _, derive) in enumerate(_DERIVATIONS):
            expected = derive()
            if abs(self.values[i] - expected) > DRIFT_TOLERANCE:
                raise ConsistencyViolation(
                    f"field constant α{i} ({name}) drifted: {self.values[i]!r} vs {expected!r}"
                )
        return True

    def __getitem__(self, i: int) -> float:
        return self.values[i]

    def __len__(self) -> int:
        return FIELD_COUNT


FIELD_CONSTANTS = FieldConstants.checked()


# --- pure pattern functions -------------------------------------------------

def _check_index(i: object) -> int:
    if isinstance(i, bool) or not isinstance(i, Integral) or not 0 <= int(i) < FIELD_COUNT:
        raise InvalidInputError(f"field index must be an integer in [0, {FIELD_COUNT}), got {i!r}")
    return int(i)


def residue(n: int) -> int:
    """n mod 256 of |n|; the only input the pattern depends on."""
    return abs(as_int(n)) & (PERIOD - 1)


def byte_to_pattern(byte: int) -> Pattern:
    if isinstance(byte, bool) or not isinstance(byte, Integral) or not 0 <= int(byte) < PERIOD:
        raise InvalidInputError(f"byte must be an integer in [0, 255], got {byte!r}")
    b = int(byte)
    return tuple(bool((b >> i) & 1) for i in range(FIELD_COUNT))


def pattern_to_byte(pattern) -> int:
    bits = tuple(pattern)
    if len(bits) != FIELD_COUNT:
        raise InvalidInputError(f"invalid pattern length: {len(bits)}, expected {FIELD_COUNT}")
    byte = 0
    for i, active in enumerate(bits):
        if active:
            byte |= 1 << i
    return byte


def field_pattern(n: int) -> Pattern:
    return byte_to_pattern(residue(n))


def active_indices(n: int) -> list[int]:
    r = residue(n)
    return [i for i in range(FIELD_COUNT) if (r >> i) & 1]


def is_active(n: int, i: int) -> bool:
    idx = _check_index(i)
    return bool((residue(n) >> idx) & 1)


def pattern_bits(pattern) -> str:
    """'00110000' for 48: index 7 first, like a written byte."""
    return format(pattern_to_byte(pattern), "08b")


class FieldSubstrate:
    """Stateless after construction; safe to share between threads."""

    def __init__(self, constants: FieldConstants = FIELD_CONSTANTS):
        self.constants = constants

    def pattern(self, n: int) -> Pattern:
        return field_pattern(n)

    def active_indices(self, n: int) -> list[int]:
        return active_indices(n)

    def is_active(self, n: int, i: int) -> bool:
        return is_active(n, i)

    def to_byte(self, pattern) -> int:
        return pattern_to_byte(pattern)

    def from_byte(self, byte: int) -> Pattern:
        return byte_to_pattern(byte)

    def field_name(self, i: int) -> str:
        return self.constants.names[_check_index(i)]

    def field_description(self, i: int) -> str:
        return self.constants.descriptions[_check_index(i)]
