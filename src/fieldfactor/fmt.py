# src/fieldfactor/fmt.py
from __future__ import annotations

import re
import textwrap
from collections import Counter
from collections.abc import Iterable

from colorama import Fore, Style

from fieldfactor.runtime import CFG, current
from fieldfactor.utility import dec_digits, get_terminal_width

# Single source of truth for ANSI stripping
ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def abbr_int_fast(n: int, head: int = 10, tail: int = 10, threshold: int = 35, ellipsis: str = "…") -> str:
    """Abbreviate very large ints as first<head>…last<tail> without str(n)."""
    # Keep non-ints and small ints simple
    if not isinstance(n, int):
        return str(n)
    if n == 0:
        return "0"

    sign = "-" if n < 0 else ""
    a = -n if n < 0 else n

    # If not long enough, fall back to normal str()
    d = dec_digits(a)
    if d <= threshold or head + tail >= d:
        return sign + str(a)

    # compute first/last blocks exactly
    k = d - head
    first = a // 10 ** k
    last = a % 10 ** tail
    # zero-pad last block to width 'tail'
    return f"{sign}{first}{ellipsis}{last:0{tail}d}"


def abbr(n: int) -> str:
    """abbr_int_fast with the FORMATTING.* knobs of the active profile."""
    return abbr_int_fast(
        int(n),
        int(CFG("FORMATTING.NUM_ABBR_HEAD", 10)),
        int(CFG("FORMATTING.NUM_ABBR_TAIL", 10)),
        int(CFG("FORMATTING.NUM_ABBR_THRESHOLD", 35)),
        str(CFG("FORMATTING.ELLIPSIS", "…")),
    )


def strip_ansi(s: str | None) -> str:
    """Return s with ANSI escape sequences removed."""
    return "" if s is None else ANSI_RE.sub("", s)


def visible_len(s: str | None) -> int:
    """Printable length (without ANSI)."""
    return len(strip_ansi(s))


def format_pattern(pattern: Iterable[bool]) -> str:
    """Bits index 7 first, active ones highlighted: 0011 0000 for 48."""
    bits = list(pattern)[::-1]
    out = []
    for i, b in enumerate(bits):
        if i == 4:
            out.append(" ")
        out.append(f"{Fore.GREEN}{Style.BRIGHT}1{Style.RESET_ALL}" if b else f"{Style.DIM}0{Style.RESET_ALL}")
    return "".join(out)


def format_factors(factors: Iterable[int], *, grouped: bool = False) -> str:
    """
    Discovery order joined with ×, or, with grouped=True, sorted prime
    powers like 2^3 × 3 × 5^2.
    """
    fs = [int(f) for f in factors]
    if not fs:
        return "1"
    if not grouped:
        return " × ".join(abbr(f) for f in fs)
    parts: list[str] = []
    for p, e in sorted(Counter(fs).items()):
        parts.append(f"{abbr(p)}^{e}" if e > 1 else abbr(p))
    return " × ".join(parts)


def format_confidence(conf: float) -> str:
    if conf >= 1.0:
        return f"{Fore.GREEN}exact{Style.RESET_ALL}"
    color = Fore.YELLOW if conf >= current().factoring.accept_confidence else Fore.RED
    return f"{color}{conf:.6f}{Style.RESET_ALL}"


def format_duration(seconds: float) -> str:
    """ms if <1s; s with millis if <60s; else mm:ss.mmm (and hh:mm:ss.mmm if ≥1h)."""
    MAX_SECONDS = 60
    if seconds < 1:
        ms = round(seconds * 1000)
        return f"{ms} ms"
    if seconds < MAX_SECONDS:
        return f"{seconds:.3f} s"
    m, s = divmod(seconds, MAX_SECONDS)
    if m < MAX_SECONDS:
        return f"{int(m)}:{s:06.3f}"               # mm:ss.mmm
    h, m = divmod(int(m), MAX_SECONDS)
    return f"{h}:{m:02d}:{s:06.3f}"                # hh:mm:ss.mmm


def wrap_description_bullet(prefix: str, desc: str, *, width: int | None = None, indent_cols: int = 5) -> str:
    """
    Wrap description so that continuation lines start at a fixed indent (indent_cols),
    not under the label. ANSI-safe (prefix may contain color codes).
    """
    W = max(20, int(width or get_terminal_width()))
    first_cap = max(5, W - visible_len(prefix))
    cont_cap = max(5, W - int(indent_cols))

    words = (desc or "").split()
    if not words:
        return prefix

    first_parts = []
    cur = 0
    for w in words:
        need = len(w) if cur == 0 else (1 + len(w))
        if cur + need > first_cap:
            break
        first_parts.append(w)
        cur += need

    out = prefix + " ".join(first_parts)
    rest = " ".join(words[len(first_parts):])
    if rest:
        indent = " " * int(indent_cols)
        for ln in textwrap.wrap(rest, width=cont_cap):
            out += "\n" + indent + ln
    return out
