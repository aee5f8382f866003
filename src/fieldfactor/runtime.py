# -----------------------------------------------------------------------------
#  runtime.py
#  Active profile: raw sections for CFG() plus typed [FACTORING] settings
# -----------------------------------------------------------------------------

from __future__ import annotations

import threading
from collections.abc import Mapping
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from importlib.util import find_spec
from typing import Any

from colorama import Fore, Style


@dataclass(frozen=True)
class FactoringSettings:
    """
    The [FACTORING] section as typed values.

    Engines take one of these at construction and read nothing else from the
    profile while factoring, so every call on an engine runs under the same
    settings whichever thread makes it.
    """
    max_iterations: int = 100
    max_time_s: float | None = 2.0      # None: no wall-clock limit
    trial_bound: int = 256
    accept_confidence: float = 0.8
    mr_rounds: int = 10
    search_share: float = 0.5
    rho_batch: int = 32

    @classmethod
    def from_section(cls, section: Mapping[str, Any] | None) -> FactoringSettings:
        s = section or {}
        t = s.get("MAX_TIME_S", DEFAULTS.max_time_s)
        return cls(
            max_iterations=int(s.get("MAX_ITERATIONS", DEFAULTS.max_iterations)),
            max_time_s=float(t) if t else None,     # 0 switches the clock off
            trial_bound=int(s.get("TRIAL_BOUND", DEFAULTS.trial_bound)),
            accept_confidence=float(s.get("ACCEPT_CONFIDENCE", DEFAULTS.accept_confidence)),
            mr_rounds=int(s.get("MR_ROUNDS", DEFAULTS.mr_rounds)),
            search_share=float(s.get("SEARCH_SHARE", DEFAULTS.search_share)),
            rho_batch=int(s.get("RHO_BATCH", DEFAULTS.rho_batch)),
        )


DEFAULTS = FactoringSettings()


@dataclass
class Runtime:
    profile_name: str = "default"
    settings: dict[str, Any] = field(default_factory=dict)
    factoring: FactoringSettings = DEFAULTS
    debug: bool = False  # [factor] trace lines, loud tracebacks

    def apply(self, settings: Any) -> None:
        """Install a config.Settings, or a plain {SECTION: {KEY: value}} dict."""
        data = settings.as_dict() if hasattr(settings, "as_dict") else settings
        self.profile_name = getattr(settings, "name", None) or "default"
        self.settings = dict(data)
        self.factoring = FactoringSettings.from_section(self.settings.get("FACTORING"))
        dbg = self.get("BEHAVIOUR.DEBUG")
        if isinstance(dbg, bool):
            self.debug = dbg

    def get(self, key: str, default: Any = None) -> Any:
        """Dotted lookup, e.g. 'STRATEGIES.BOUNDED_RHO'."""
        cur: Any = self.settings
        for part in key.split("."):
            if not isinstance(cur, dict) or part not in cur:
                return default
            cur = cur[part]
        return cur


# --- Context management ---
#
# Each context (thread, task) has its own Runtime. One that never applied a
# profile starts from a copy of the most recently applied one, so worker
# threads see the profile the main thread loaded.

_current: ContextVar[Runtime | None] = ContextVar("fieldfactor_runtime", default=None)
_last_applied: Runtime | None = None
_applied_lock = threading.Lock()


def current() -> Runtime:
    rt = _current.get()
    if rt is None:
        with _applied_lock:
            src = _last_applied
            rt = Runtime() if src is None else replace(src, settings=dict(src.settings))
        _current.set(rt)
    return rt


def APPLY(settings: Any) -> Runtime:
    global _last_applied
    rt = current()
    rt.apply(settings)
    with _applied_lock:
        _last_applied = rt
    return rt


def CFG(key: str, default: Any = None) -> Any:
    return current().get(key, default)


# ---- Dependency check --------------------------------------------------------

def ensure_runtime_deps(strict: bool = True) -> bool:
    """Print an install hint and return False (when strict) if sympy or gmpy2 is missing."""
    missing = [name for name in ("sympy", "gmpy2") if find_spec(name) is None]
    if not missing:
        return True

    print(
        f"{Fore.RED}{Style.BRIGHT}\nMissing dependencies:{Style.RESET_ALL} {', '.join(missing)}\n"
        f"Install with: {Fore.YELLOW}pip install {' '.join(missing)}{Style.RESET_ALL}"
    )
    return not strict
