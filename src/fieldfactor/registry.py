# src/fieldfactor/registry.py
from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from importlib import import_module
from types import ModuleType

from fieldfactor.runtime import CFG
from fieldfactor.utility import _token

STAGES = ("trial", "search")


@dataclass
class Index:
    funcs: dict[str, Callable]                 # label -> attempt function, in run order
    stages: dict[str, str]                     # label -> stage
    descriptions: dict[str, str]               # label -> short description
    label_to_token: dict[str, str]             # label -> TOKEN used in [STRATEGIES]
    disabled: list[str] = field(default_factory=list)

    def for_stage(self, stage: str) -> list[Callable]:
        return [fn for label, fn in self.funcs.items() if self.stages[label] == stage]


def _is_strategy(obj) -> bool:
    return callable(obj) and getattr(obj, "__is_strategy__", False)


def _collect_from_module(mod: ModuleType) -> list[Callable]:
    out = []
    for _, o in inspect.getmembers(mod):
        if _is_strategy(o):
            out.append(o)
    return out


# ---------- Decorator (only tags the function; no side effects) ----------


def strategy(*, label: str, order: int, stage: str = "search",
             description: str = "", composite_only: bool = False):
    if stage not in STAGES:
        raise ValueError(f"unknown stage {stage!r}; expected one of {STAGES}")

    def deco(fn: Callable):
        fn.__is_strategy__ = True
        fn.label = label
        fn.order = int(order)
        fn.stage = stage
        doc = (fn.__doc__ or "").strip()
        fn.description = description or (doc.splitlines()[0] if doc else "")
        fn.composite_only = composite_only
        return fn
    return deco


def discover(modules: tuple[str, ...] = ("fieldfactor.strategies",)) -> Index:
    """
    Collect tagged strategies, sorted by ``order``. A strategy whose token is
    set to false under [STRATEGIES] in the active profile is left out.
    """
    found: list[Callable] = []
    for name in modules:
        found.extend(_collect_from_module(import_module(name)))
    found.sort(key=lambda fn: (fn.order, fn.label))

    funcs: dict[str, Callable] = {}
    stages: dict[str, str] = {}
    desc: dict[str, str] = {}
    toks: dict[str, str] = {}
    disabled: list[str] = []

    for fn in found:
        label = fn.label
        if label in funcs:          # first definition wins
            continue
        tok = _token(label)
        if not CFG(f"STRATEGIES.{tok}", True):
            disabled.append(label)
            continue
        funcs[label] = fn
        stages[label] = fn.stage
        desc[label] = fn.description
        toks[label] = tok

    return Index(
        funcs=funcs,
        stages=stages,
        descriptions=desc,
        label_to_token=toks,
        disabled=disabled,
    )
