"""
Profiles: TOML files under <workspace>/profiles.

A profile carries an optional [_PROFILE_] table (name, description) and the
sections the runtime reads: [FACTORING], [STRATEGIES], [FORMATTING] and
[BEHAVIOUR]. Only [FACTORING] and [STRATEGIES] are checked on load; the
rest pass through as TOML typed them.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:
    import tomllib as toml
except ModuleNotFoundError:  # Python < 3.11
    import tomli as toml  # type: ignore

from fieldfactor.utility import UserInputError, _token
from fieldfactor.workspace import ensure_workspace_seeded, workspace_dir

META = "_PROFILE_"
POINTER = ".current"   # last profile chosen in the REPL


@dataclass(frozen=True)
class _Field:
    kind: type
    minimum: float
    maximum: float | None = None


_FACTORING_FIELDS: dict[str, _Field] = {
    "MAX_ITERATIONS": _Field(int, 0),
    "MAX_TIME_S": _Field(float, 0.0),          # 0 = no clock
    "TRIAL_BOUND": _Field(int, 3),
    "ACCEPT_CONFIDENCE": _Field(float, 0.0, 1.0),
    "MR_ROUNDS": _Field(int, 1),
    "SEARCH_SHARE": _Field(float, 0.0, 1.0),
    "RHO_BATCH": _Field(int, 1),
}


@dataclass
class Settings:
    """One loaded profile; ``data`` is every section but [_PROFILE_] and feeds runtime.apply()."""
    data: dict[str, Any]
    name: str
    description: str = "(no description)"
    source: Path | None = None

    def as_dict(self) -> dict[str, Any]:
        return self.data


def profiles_dir() -> Path:
    return workspace_dir() / "profiles"


def _profile_path(name: str) -> Path:
    return profiles_dir() / f"{name}.toml"


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        return toml.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise UserInputError(f"reading {path.name}: {e.strerror or e}.") from None
    except toml.TOMLDecodeError as e:
        # message already carries "(at line L, column C)"
        raise UserInputError(f"reading {path.name}: {e}.") from None


def _meta(raw: dict[str, Any], fallback: str) -> tuple[str, str]:
    meta = raw.get(META) or {}
    description = " ".join(str(meta.get("description") or "").split())
    return str(meta.get("name") or fallback), description or "(no description)"


def _check_factoring(section: dict[str, Any], source: str) -> dict[str, Any]:
    out = dict(section)
    for key, spec in _FACTORING_FIELDS.items():
        if key not in out:
            continue
        val = out[key]
        if (isinstance(val, bool) or not isinstance(val, (int, float))
                or (spec.kind is int and val != int(val))):
            kind = "a whole number" if spec.kind is int else "a number"
            raise UserInputError(f"{source}: FACTORING.{key} must be {kind}, got {val!r}.")
        val = spec.kind(val)
        if val < spec.minimum or (spec.maximum is not None and val > spec.maximum):
            allowed = (f">= {spec.minimum}" if spec.maximum is None
                       else f"between {spec.minimum} and {spec.maximum}")
            raise UserInputError(f"{source}: FACTORING.{key} must be {allowed}, got {val!r}.")
        out[key] = val
    return out


def _strategy_toggles(section: dict[str, Any] | None) -> dict[str, bool]:
    # keys may be written as labels ("bounded-rho") or tokens ("BOUNDED_RHO")
    return {_token(str(k)): v for k, v in (section or {}).items() if isinstance(v, bool)}


# --- Public API ------------------------------------------------------------


def list_all_profiles() -> list[str]:
    ensure_workspace_seeded()
    return sorted(p.stem for p in profiles_dir().glob("*.toml"))


def list_profiles_with_descriptions() -> list[tuple[str, str]]:
    """[(name, description)] sorted by name; a file that fails to parse is listed as unreadable."""
    out: list[tuple[str, str]] = []
    for path in profiles_dir().glob("*.toml"):
        try:
            out.append(_meta(_read_toml(path), path.stem))
        except UserInputError:
            out.append((path.stem, "(unreadable)"))
    return sorted(out, key=lambda t: t[0].lower())


def has_profile(name: str) -> bool:
    return _profile_path(name).exists()


def load_settings(name: str | None) -> Settings:
    """Read, check and normalise one profile (default 'default')."""
    name = name or "default"
    ensure_workspace_seeded()
    path = _profile_path(name)
    if not path.exists():
        raise FileNotFoundError(f"Profile '{name}' not found at {path}")

    raw = _read_toml(path)
    resolved, description = _meta(raw, path.stem)
    data = {k: v for k, v in raw.items() if k != META}
    data["FACTORING"] = _check_factoring(data.get("FACTORING") or {}, path.name)
    data["STRATEGIES"] = _strategy_toggles(data.get("STRATEGIES"))
    return Settings(data, resolved, description, path)


def read_current_profile() -> str | None:
    try:
        name = (profiles_dir() / POINTER).read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return name.removesuffix(".toml") or None


def write_current_profile(name: str) -> None:
    pdir = profiles_dir()
    pdir.mkdir(parents=True, exist_ok=True)
    (pdir / POINTER).write_text((name or "").strip().removesuffix(".toml"), encoding="utf-8")
