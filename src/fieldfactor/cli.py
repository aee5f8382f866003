# src/fieldfactor/cli.py

"""
fieldfactor - field-pattern factorization engine

Description:
    Maps an integer to its 8-bit activation pattern and resonance, shows its
    page location, and factors it with a cached, budget-bounded strategy chain.

usage: see fieldfactor -h
"""

from __future__ import annotations

import argparse
import faulthandler
import os
import platform
import sys
import textwrap
import threading
import traceback
from importlib.resources import files as pkg_files

from colorama import Fore, Style
from colorama import init as colorama_init

from fieldfactor import __version__ as _ver
from fieldfactor import config as CONFIG
from fieldfactor.context import Budget
from fieldfactor.display import (
    print_cache_stats,
    print_constants,
    print_factor_result,
    print_field_report,
    print_profiles_with_descriptions,
    print_strategies,
    show_intro_help,
)
from fieldfactor.engine import Engine, cache_stats, set_default_engine
from fieldfactor.expreval import parse_int_or_expr
from fieldfactor.fmt import format_confidence, format_factors
from fieldfactor.runtime import APPLY, FactoringSettings, ensure_runtime_deps
from fieldfactor.runtime import current as _rt_current
from fieldfactor.utility import UserInputError, clear_screen, flatten_dotted, typename
from fieldfactor.workspace import ensure_workspace_seeded, seed_workspace, workspace_dir

COMMANDS = ("init", "where", "profiles", "constants")


def _install_loud_error_handlers(debug: bool) -> None:
    if not debug:
        return
    # Always show full Python tracebacks
    faulthandler.enable()

    def _excepthook(exc_type, exc, tb):
        sys.stderr.write("\n[UNCAUGHT EXCEPTION]\n")
        traceback.print_exception(exc_type, exc, tb, file=sys.stderr)
        sys.stderr.flush()
    sys.excepthook = _excepthook

    def _thread_excepthook(args):
        sys.stderr.write("\n[UNCAUGHT THREAD EXCEPTION]\n")
        traceback.print_exception(args.exc_type, args.exc_value, args.exc_traceback, file=sys.stderr)
        sys.stderr.flush()
    threading.excepthook = _thread_excepthook


def _print_user_error(msg: str) -> None:
    """Uniform, one-line friendly error."""
    prefix = f"{Fore.RED}Error:{Style.RESET_ALL}"
    if not (msg.startswith("Invalid input:") or msg.startswith("Error:")):
        msg = f"{prefix} {msg}"
    print(msg, file=sys.stderr)


def _resolve_inputs(items: list[str]) -> tuple[str | None, int | None]:
    """Return (profile, number) based on the first two positionals.

    Rules:
      - If one item parses as int/expr -> number; else -> profile/command
      - If two items: the first non-numeric one is the profile, the first
        numeric one the number
    """
    if not items:
        return None, None

    if len(items) == 1:
        n = parse_int_or_expr(items[0])
        return (None, n) if n is not None else (items[0], None)

    a, b = items[0], items[1]
    na, nb = parse_int_or_expr(a), parse_int_or_expr(b)

    if na is not None:
        return None, na
    if nb is not None:
        return a, nb
    return a, None


def _select_profile_name(explicit: str | None) -> str:
    """
    Precedence:
      1) explicit profile positional
      2) last used (from workspace)
      3) 'default'
    """
    if explicit:
        return explicit
    last = CONFIG.read_current_profile()
    if last and CONFIG.has_profile(last):
        return last
    return "default"


def _budget_from_args(args, settings: FactoringSettings) -> Budget | None:
    if args.budget is None and args.time is None:
        return None
    iters = args.budget if args.budget is not None else settings.max_iterations
    if args.time is not None:
        secs = args.time or None          # --time 0 switches the clock off
    else:
        secs = settings.max_time_s
    return Budget(iters, secs)


def _debug_dump_profile(selected) -> None:
    print(f"[debug] active profile: {selected.name}", file=sys.stderr)
    if selected.source:
        print(f"[debug] profile file: {selected.source}", file=sys.stderr)
    flat = flatten_dotted(_rt_current().settings)
    print("[debug] runtime settings (flattened):", file=sys.stderr)
    for k in sorted(flat.keys(), key=str.lower):
        v = flat[k]
        print(f"        {k:.<40} {v!r} ({typename(v)})", file=sys.stderr)
    print(file=sys.stderr)


# ---- argparse ----
def _build_parser() -> argparse.ArgumentParser:

    epilog = textwrap.dedent("""\
    commands:
      init
          Create the workspace and copy the packaged profiles if missing.

      init overwrite
          Meant for developers. Requires environment variable FIELDFACTOR_DEV=1.
          Replaces every profile in the workspace with the packaged one.

      where
          Show the workspace and package paths.

      profiles
          List the available profiles.

      constants
          Show the eight field constants.
    """)

    p = argparse.ArgumentParser(
        description="fieldfactor — field-pattern factorization engine",
        usage=(
            "fieldfactor [profile] <integer-or-expression> [--budget N] [--time S] "
            "[--no-cache] [--quiet] [--debug]\n"
            "       fieldfactor init | where | profiles | constants\n"
            "       fieldfactor -h | --help\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=epilog,
    )
    p.add_argument("items", nargs="*", metavar="[profile] integer",
                   help="optional profile name followed by an integer or expression to factor")
    p.add_argument("--budget", type=int, default=None, help="iteration budget (overrides the profile)")
    p.add_argument("--time", type=float, default=None, help="wall-clock budget in seconds, 0 = none")
    p.add_argument("--no-cache", action="store_true", help="compute afresh, bypassing the result cache")
    p.add_argument("--quiet", action="store_true", help="print only the factor line")
    p.add_argument("--debug", action="store_true", help="trace strategy progress and show tracebacks")
    p.add_argument("-V", "--version", action="version", version=f"%(prog)s {_ver}")

    return p


def main(argv=None) -> int:
    """Thin wrapper: catch friendly errors, hide tracebacks unless debug."""
    try:
        return _main_impl(argv)
    except UserInputError as e:
        _print_user_error(str(e))
        return 2
    except KeyboardInterrupt:
        print("Aborted by user.", file=sys.stderr)
        return 130
    except Exception as e:
        debug = ("--debug" in (argv if argv is not None else sys.argv))
        if debug:
            raise
        print(f"Unexpected error: {e.__class__.__name__}: {e}", file=sys.stderr)
        print("Run with --debug for a full traceback.", file=sys.stderr)
        return 1


def _configure_text_streams() -> None:
    if os.environ.get("PYTHONIOENCODING"):
        return
    # Only touch redirected output (pipes/files), leave TTY as-is
    if sys.stdout.isatty():
        return
    enc = (sys.stdout.encoding or "").lower()
    if platform.system() == "Windows" or enc in ("", "ascii", "us-ascii"):
        try:
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")
        except (AttributeError, OSError):
            pass


def _report(n: int, engine: Engine, args, budget: Budget | None) -> None:
    res = engine.factorize(n, budget, use_cache=not args.no_cache)
    if args.quiet:
        print(f"{n} = {format_factors(res.factors)}  [{res.method}, {format_confidence(res.confidence)}]")
        return
    print_field_report(n, engine)
    print_factor_result(res, show_evidence=True)


# ---- main ----
def _main_impl(argv=None) -> int:

    colorama_init(autoreset=True)
    _configure_text_streams()

    parser = _build_parser()
    args = parser.parse_args(argv)
    rt = _rt_current()
    rt.debug = bool(args.debug)

    _install_loud_error_handlers(args.debug)

    if args.budget is not None and args.budget < 0:
        parser.error("--budget must be >= 0")
    if args.time is not None and args.time < 0:
        parser.error("--time must be >= 0")

    if not ensure_runtime_deps(strict=True):
        return 1

    ensure_workspace_seeded()

    # --- parse inputs: command or profile + number ---
    profile, smart_n = _resolve_inputs(args.items)

    _TWO_ARGS = 2
    if profile == "init":
        if len(args.items) == _TWO_ARGS and args.items[1] == "overwrite":
            if os.environ.get("FIELDFACTOR_DEV") != "1":
                print("Refusing to overwrite: set FIELDFACTOR_DEV=1 to enable developer overwrite.")
                return 2
            ws, copied = seed_workspace(overwrite=True)
            print(f"Workspace ready at: {ws} (overwrote existing files)")
        else:
            ws, _seeded, copied = ensure_workspace_seeded()
            print(f"Workspace ready at: {ws}")
        print(f"Copied -> profiles: {copied.get('profiles', 0)}")
        return 0

    if profile == "where":
        print(f"Workspace: {workspace_dir()}")
        print(f"Package:   {pkg_files('fieldfactor')}")
        return 0

    if profile == "profiles":
        print_profiles_with_descriptions()
        return 0

    profile_name = _select_profile_name(None if profile == "constants" else profile)

    if profile and profile != "constants" and not CONFIG.has_profile(profile):
        print(f"Unknown profile: '{profile}'")
        print("Available profiles:", ", ".join(CONFIG.list_all_profiles()))
        return 2

    if not CONFIG.has_profile(profile_name):
        profile_name = "default"
    selected = CONFIG.load_settings(profile_name)
    APPLY(selected)
    if args.debug:
        rt.debug = True
        _debug_dump_profile(selected)

    engine = Engine()
    set_default_engine(engine)

    if profile == "constants":
        print_constants(engine)
        return 0

    budget = _budget_from_args(args, engine.settings)

    # --- one-shot number path ---
    if smart_n is not None:
        _report(smart_n, engine, args, budget)
        return 0

    if len(args.items) > 1:
        raise UserInputError(f"Invalid input: '{args.items[-1]}' is not an integer or expression.")

    # --- REPL ---
    if not rt.debug:
        clear_screen()
    print(f"{Fore.YELLOW}{Style.BRIGHT}fieldfactor v{_ver} — field-pattern factorization{Style.RESET_ALL}")

    current_profile = selected.name
    while True:
        try:
            prompt = f"\nProfile: {current_profile} — Enter an integer, command or profile (h=Help, q=Quit): "
            user_input = input(prompt).strip()

            low = user_input.lower()
            if low in {"", "q", "quit"}:
                break

            if low in {"h", "help"}:
                show_intro_help()
                continue
            if low in {"p", "profiles"}:
                print_profiles_with_descriptions()
                continue
            if low == "constants":
                print_constants(engine)
                continue
            if low == "strategies":
                print_strategies(engine.strategies)
                continue
            if low == "stats":
                print_cache_stats(cache_stats())
                continue
            if low == "clear":
                engine.clear_cache()
                print("Cache cleared.")
                continue

            try:
                n = parse_int_or_expr(user_input)
            except UserInputError as e:
                _print_user_error(str(e))
                continue

            if n is not None:
                try:
                    _report(n, engine, args, budget)
                except UserInputError as e:
                    _print_user_error(str(e))
                continue

            # treat as profile switch
            if CONFIG.has_profile(user_input):
                try:
                    selected = CONFIG.load_settings(user_input)
                except UserInputError as e:
                    _print_user_error(str(e))
                    continue
                APPLY(selected)
                rt.debug = rt.debug or bool(args.debug)
                # new settings and strategy toggles; the cache re-indexes for the trial bound
                engine = Engine(cache=engine.cache)
                set_default_engine(engine)
                budget = _budget_from_args(args, engine.settings)
                CONFIG.write_current_profile(user_input)
                current_profile = selected.name
                print(f"Applied profile: {current_profile}")
                continue

            print(f"{Fore.RED}Invalid input: {Style.RESET_ALL}'{user_input}'. Type H for help.")
        except (EOFError, KeyboardInterrupt):
            print()
            break
        except Exception as e:
            if rt.debug:
                traceback.print_exc()
            else:
                _print_user_error(f"{e.__class__.__name__}: {e}")
            continue

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
