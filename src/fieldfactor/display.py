# src/fieldfactor/display.py
from __future__ import annotations

from colorama import Fore, Style

from fieldfactor.config import list_profiles_with_descriptions, read_current_profile
from fieldfactor.context import FactorResult
from fieldfactor.engine import Engine
from fieldfactor.fields import FIELD_COUNT
from fieldfactor.fmt import (
    abbr,
    format_confidence,
    format_duration,
    format_factors,
    format_pattern,
    wrap_description_bullet,
)
from fieldfactor.pages import page_of
from fieldfactor.registry import Index

_RULE = "-" * 72


def _label(text: str) -> str:
    return f"{Fore.CYAN}{text:<14}{Style.RESET_ALL}"


def print_field_report(n: int, engine: Engine) -> None:
    """Pattern, active fields, resonance and page location of n."""
    sub = engine.substrate
    sig = engine.calculator.signature(n)
    active = sub.active_indices(n)

    print(f"\n{Fore.YELLOW}{Style.BRIGHT}n = {abbr(n)}{Style.RESET_ALL}")
    print(_RULE)
    print(f"{_label('Pattern')}{format_pattern(sub.pattern(n))}  (n mod 256 = {abs(n) % 256})")
    if active:
        names = ", ".join(f"{sub.field_name(i)}[{i}]" for i in active)
        print(f"{_label('Active fields')}{names}")
    else:
        print(f"{_label('Active fields')}{Style.DIM}none{Style.RESET_ALL}")
    well = f", {Fore.MAGENTA}resonance well{Style.RESET_ALL}" if sig.is_well else ""
    print(f"{_label('Resonance')}{sig.primary:.15g} ({sig.classification}{well})")

    if n >= 0:
        loc = page_of(n)
        print(f"{_label('Page')}{loc.page} offset {loc.offset}  (cycle {loc.cycle}, phase {loc.phase})")


def print_factor_result(res: FactorResult, *, show_evidence: bool = True) -> None:
    print(_RULE)
    print(f"{_label('Factors')}{format_factors(res.factors)}")
    if len(res.factors) > 1:
        print(f"{_label('Grouped')}{format_factors(res.factors, grouped=True)}")
    print(f"{_label('Method')}{res.method}")
    print(f"{_label('Confidence')}{format_confidence(res.confidence)}")
    print(f"{_label('Iterations')}{res.iterations} of {res.budget}")
    print(f"{_label('Time')}{format_duration(res.elapsed_s)}")

    if show_evidence and res.evidence:
        print(f"{_label('Evidence')}")
        for line in res.evidence:
            print(wrap_description_bullet("  • ", line, indent_cols=4))


def print_constants(engine: Engine) -> None:
    table = engine.substrate.constants
    print("\nField constants:")
    for i in range(FIELD_COUNT):
        print(f"  α{i}  {table.names[i]:<5} {table.values[i]:<22.17g} {table.descriptions[i]}")
    print(f"\n  α4 × α5 = {table.values[4] * table.values[5]!r}")


def print_strategies(index: Index) -> None:
    print("\nStrategies (run order):")
    for label in index.funcs:
        print(f"  {label:<16} {index.stages[label]:<7} {index.descriptions[label]}")
    for label in index.disabled:
        print(f"  {Style.DIM}{label:<16} disabled by profile{Style.RESET_ALL}")


def print_cache_stats(stats: dict[str, object]) -> None:
    print("\nCache:")
    for key, val in stats.items():
        print(f"  {key:.<20} {val}")


def print_profiles_with_descriptions() -> None:
    try:
        pairs = list_profiles_with_descriptions()
    except Exception:
        pairs = []

    if not pairs:
        print("\nAvailable profiles: (none)")
        return

    current = read_current_profile()
    lines = []
    for name, desc in pairs:
        mark = "🡆" if current and name == current else " "
        lines.append(f"{mark} {name:13} : {desc}")
    print("\nAvailable profiles:\n  " + "\n  ".join(lines))


def show_intro_help() -> None:
    lines = [
        "",
        f"{Fore.GREEN}fieldfactor{Style.RESET_ALL}",
        _RULE,
        "Maps an integer to its 8-bit field pattern (n mod 256) and resonance, then",
        "factors it with a budget-bounded, cached chain of strategies.",
        "",
        f"{Fore.MAGENTA + Style.BRIGHT}Usage in interactive mode:{Style.RESET_ALL}",
        " • Enter an integer or expression, e.g. 1001, 2**61-1, 1_000_003*1_000_033, 0xff, 1e6.",
        "   Spaces, underscores, commas and periods are allowed as thousand separators.",
        " • Enter a profile name to switch profile (see 'profiles').",
        "",
        " • Commands:",
        "   h or help      this screen",
        "   profiles       list profiles",
        "   constants      show the field constants",
        "   strategies     show the active strategies",
        "   stats          cache statistics",
        "   clear          drop all cached results",
        "   q or quit      leave",
    ]
    print("\n".join(lines))
