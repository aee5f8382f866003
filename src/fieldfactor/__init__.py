from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

# Version
try:
    __version__ = _pkg_version("fieldfactor")
except PackageNotFoundError:
    __version__ = "0+unknown"

# Public API re-exports
from .config import has_profile, load_settings, read_current_profile
from .context import Budget, FactorResult
from .engine import (
    Engine,
    cache_stats,
    calculate_resonance,
    check_primality,
    clear_cache,
    factorize,
    get_active_field_indices,
    get_field_constants,
    get_field_interference,
    get_field_pattern,
    locate,
)
from .fields import FIELD_CONSTANTS, FieldConstants, FieldSubstrate
from .registry import discover
from .resonance import ResonanceCalculator
from .runtime import APPLY, CFG
from .utility import ConsistencyViolation, InvalidInputError, UserInputError
from .workspace import workspace_dir

__all__ = [
    "APPLY",
    "CFG",
    "FIELD_CONSTANTS",
    "Budget",
    "ConsistencyViolation",
    "Engine",
    "FactorResult",
    "FieldConstants",
    "FieldSubstrate",
    "InvalidInputError",
    "ResonanceCalculator",
    "UserInputError",
    "__version__",
    "cache_stats",
    "calculate_resonance",
    "check_primality",
    "clear_cache",
    "discover",
    "factorize",
    "get_active_field_indices",
    "get_field_constants",
    "get_field_interference",
    "get_field_pattern",
    "has_profile",
    "load_settings",
    "locate",
    "read_current_profile",
    "workspace_dir",
]
