# tests/test_pages_residues.py
"""
Page index, vanish/emerge interference and residue statistics.

Run: pytest -v
"""

from __future__ import annotations

import pytest

from fieldfactor.context import FactorResult
from fieldfactor.interference import artifact_count, byte_interference, field_interference
from fieldfactor.pages import (
    PAGE_SIZE,
    descending_windows,
    is_page_boundary,
    next_page_boundary,
    page_bounds,
    page_numbers,
    page_of,
    page_resonance_stats,
)
from fieldfactor.residues import ResidueStats, partner_residue, residue_compatible
from fieldfactor.utility import InvalidInputError

# ---------- pages ---------------------------------------------------------------


@pytest.mark.parametrize(
    "n,page,offset",
    [(0, 0, 0), (47, 0, 47), (48, 1, 0), (100, 2, 4), (10**40 + 5, (10**40 + 5) // 48, (10**40 + 5) % 48)],
    ids=["zero", "last-of-first", "first-of-second", "hundred", "huge"],
)
def test_page_of(n, page, offset):
    loc = page_of(n)
    assert (loc.page, loc.offset) == (page, offset)
    assert loc.page * PAGE_SIZE + loc.offset == n
    assert (loc.cycle, loc.phase) == divmod(n, 256)


def test_page_of_rejects_negative():
    with pytest.raises(InvalidInputError):
        page_of(-1)


def test_page_bounds_and_numbers():
    assert page_bounds(2) == (96, 143)
    assert len(page_numbers(7)) == PAGE_SIZE
    assert list(page_numbers(0))[-1] == 47


def test_page_boundaries():
    assert is_page_boundary(0)
    assert is_page_boundary(47)
    assert is_page_boundary(48)
    assert not is_page_boundary(49)
    assert next_page_boundary(49) == 95
    assert next_page_boundary(96) == 96


def test_descending_windows_cover_range_top_down():
    assert list(descending_windows(100, 40)) == [(96, 100), (48, 95), (40, 47)]
    covered = [x for start, stop in descending_windows(1000, 257) for x in range(stop, start - 1, -1)]
    assert covered == list(range(1000, 256, -1))
    assert list(descending_windows(5, 10)) == []


def test_page_resonance_stats():
    st = page_resonance_stats(1)
    assert st.page == 1
    assert st.min <= st.mean <= st.max
    assert st.variance >= 0
    assert 0 <= st.mean_active_fields <= 8


# ---------- interference --------------------------------------------------------


def test_vanish_and_emerge():
    res = field_interference(3, 3)       # 0b11 * 0b11 = 0b1001
    assert res.product == 9
    assert res.vanished == (1,)
    assert res.emerged == (3,)
    assert res.kind == "mixed"
    assert res.coherence == pytest.approx(0.5)
    assert {a.kind for a in res.artifacts} == {"vanished", "emerged"}


def test_constructive_and_clean():
    assert field_interference(2, 4).kind == "constructive"
    assert field_interference(2, 4).emerged == (3,)
    assert field_interference(1, 1).kind == "clean"
    assert field_interference(0, 0).coherence == 1.0


def test_byte_interference_agrees_with_field_interference():
    for a, b in [(7, 11), (13, 200), (255, 255), (48, 3)]:
        vanished, emerged = byte_interference(a, b)
        res = field_interference(a, b)
        assert vanished == sum(1 << i for i in res.vanished)
        assert emerged == sum(1 << i for i in res.emerged)
        assert artifact_count(a, b) == len(res.artifacts)


def test_artifact_describes_itself():
    art = field_interference(3, 3).artifacts[0]
    assert str(art.index) in art.describe()


# ---------- residues ------------------------------------------------------------


def test_partner_residue_for_odd_divisor():
    assert partner_residue(7, 77) == 11
    for d in (3, 5, 101, 257):
        for c in (d * 9, d * 1001, d * 65_537):
            b = partner_residue(d, c)
            assert (d * b) % 256 == c % 256


def test_residue_compatibility_is_sound():
    # any true divisor passes
    for d in range(1, 400):
        for k in (1, 2, 3, 255, 10**6 + 3):
            assert residue_compatible(d, d * k)
    # an even number never divides an odd one
    assert not residue_compatible(2, 3)
    assert not residue_compatible(4, 6 + 256)


def _exact(n, factors):
    return FactorResult(n=n, factors=tuple(factors), method="trial-division", iterations=1, confidence=1.0)


def test_residue_stats_records_exact_primes_above_bound():
    stats = ResidueStats()
    stats.record(_exact(77, [7, 11]), trial_bound=256)
    stats.record(_exact(257 * 263, [257, 263]), trial_bound=256)
    stats.record(
        FactorResult(n=1009 * 1013, factors=(1009 * 1013,), method="heuristic-incomplete",
                     iterations=5, confidence=0.0),
        trial_bound=256,
    )
    assert stats.known_primes() == [257, 263]
    assert stats.known_primes(cofactor=263 * 3) == [257, 263]
    assert stats.known_primes(cofactor=260) == [257]
    snap = stats.snapshot()
    assert snap["keys"] == 3
    assert snap["known_primes"] == 2
    assert sum(stats.histogram_by_page().values()) == 3
    assert stats.histogram_by_residue()[77] == 1

    stats.clear()
    assert stats.snapshot() == {"keys": 0, "residues": 0, "pages": 0, "known_primes": 0}
