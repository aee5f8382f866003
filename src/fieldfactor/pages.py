# -----------------------------------------------------------------------------
#  pages.py
#  Page index: 48-wide integer windows used for search bounds and bucketing
# -----------------------------------------------------------------------------

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass

from fieldfactor.fields import PERIOD, FieldSubstrate
from fieldfactor.resonance import ResonanceCalculator
from fieldfactor.utility import InvalidInputError, as_int

PAGE_SIZE = 48


@dataclass(frozen=True)
class PageLocation:
    page: int
    offset: int
    cycle: int   # which 256-block
    phase: int   # position inside that block, i.e. the residue


def page_of(n: int) -> PageLocation:
    n = as_int(n)
    if n < 0:
        raise InvalidInputError(f"page index is defined for n >= 0, got {n}")
    page, offset = divmod(n, PAGE_SIZE)
    cycle, phase = divmod(n, PERIOD)
    return PageLocation(page=page, offset=offset, cycle=cycle, phase=phase)


def page_bounds(page: int) -> tuple[int, int]:
    page = as_int(page, "page")
    if page < 0:
        raise InvalidInputError(f"page must be non-negative, got {page}")
    start = page * PAGE_SIZE
    return start, start + PAGE_SIZE - 1


def page_numbers(page: int) -> range:
    start, end = page_bounds(page)
    return range(start, end + 1)


def is_page_boundary(n: int) -> bool:
    return as_int(n) % PAGE_SIZE in (0, PAGE_SIZE - 1)


def next_page_boundary(n: int) -> int:
    """Smallest boundary position (offset 0 or 47) that is >= n."""
    n = as_int(n)
    page, offset = divmod(n, PAGE_SIZE)
    if offset in (0, PAGE_SIZE - 1):
        return n
    return page * PAGE_SIZE + PAGE_SIZE - 1


def descending_windows(hi: int, lo: int) -> Iterator[tuple[int, int]]:
    """
    Yield inclusive (start, stop) windows covering [lo, hi] from the top down,
    each one clipped to a single page.
    """
    stop = hi
    while stop >= lo:
        start = max(lo, (stop // PAGE_SIZE) * PAGE_SIZE)
        yield start, stop
        stop = start - 1


@dataclass(frozen=True)
class PageStats:
    page: int
    mean: float
    variance: float
    skew: float
    kurtosis: float   # excess
    min: float
    max: float
    mean_active_fields: float


def page_resonance_stats(page: int, calculator: ResonanceCalculator | None = None) -> PageStats:
    calc = calculator or ResonanceCalculator()
    substrate: FieldSubstrate = calc.substrate
    nums = page_numbers(page)
    values = [calc.resonance(n) for n in nums]
    count = len(values)

    mean = sum(values) / count
    centered = [v - mean for v in values]
    variance = sum(c * c for c in centered) / count
    sd = math.sqrt(variance)
    if sd > 0:
        skew = sum((c / sd) ** 3 for c in centered) / count
        kurt = sum((c / sd) ** 4 for c in centered) / count - 3
    else:
        skew = kurt = 0.0

    active = sum(len(substrate.active_indices(n)) for n in nums) / count

    return PageStats(
        page=page,
        mean=mean,
        variance=variance,
        skew=skew,
        kurtosis=kurt,
        min=min(values),
        max=max(values),
        mean_active_fields=active,
    )
