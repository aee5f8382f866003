# -----------------------------------------------------------------------------
#  Utility functions
# -----------------------------------------------------------------------------

from __future__ import annotations

import os
import re
import shutil
import sys
from math import prod
from numbers import Integral


class UserInputError(Exception):
    pass


class InvalidInputError(UserInputError, ValueError):
    """Malformed field index, byte, pattern or integer argument."""


class ConsistencyViolation(RuntimeError):
    """A field-constant or factor-product invariant does not hold."""


def as_int(n: object, label: str = "n") -> int:
    """
    Accept Python ints (and other exact integrals such as gmpy2.mpz or numpy ints),
    reject bool, floats and everything else.
    """
    if isinstance(n, bool) or not isinstance(n, Integral):
        raise InvalidInputError(f"{label} must be an integer, got {typename(n)}")
    return int(n)


def dec_digits(n: int) -> int:
    """Exact decimal digit count without str(); handles n >= 0."""
    n = abs(n)
    if n == 0:
        return 1
    # floor(log10(n)) ~= floor(bitlen*log10(2))
    bl = n.bit_length()
    est = int((bl * 30103) // 100000)
    p10 = 10 ** est
    if n < p10:
        while n < p10:
            est -= 1
            p10 //= 10
    else:
        p10 *= 10
        while n >= p10:
            est += 1
            p10 *= 10
    return est + 1


def strip_twos(n: int) -> tuple[int, int]:
    """Return (k, odd) with n == 2**k * odd, for n > 0."""
    k = (n & -n).bit_length() - 1
    return k, n >> k


def check_product(n: int, factors) -> None:
    """Hard contract: the factor list multiplies back to n exactly."""
    got = prod(factors)
    if got != n:
        raise ConsistencyViolation(
            f"factor product mismatch for {n}: {list(factors)} multiplies to {got}"
        )


def _token(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", name).upper().strip("_")


def clear_screen(keep_scrollback: bool = False) -> None:
    """
    Clear the terminal screen.
    - On Windows: uses 'cls'
    - On POSIX: ANSI sequences; optionally clear scrollback
    """
    try:
        if os.name == "nt":
            os.system("cls")
        else:
            seq = "\033[H\033[2J" if keep_scrollback else "\033[3J\033[H\033[2J"
            sys.stdout.write(seq)
            sys.stdout.flush()
    except OSError:
        pass


def get_terminal_width(default=80):
    try:
        return shutil.get_terminal_size((default, 24)).columns
    except OSError:
        return default


def typename(v: object) -> str:
    return type(v).__name__


def flatten_dotted(d: dict, prefix: str = "") -> dict[str, object]:
    out: dict[str, object] = {}
    for k, v in d.items():
        key = f"{prefix}.{k}" if prefix else str(k)
        if isinstance(v, dict):
            out.update(flatten_dotted(v, key))
        else:
            out[key] = v
    return out
