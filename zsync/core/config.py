"""Typed operator configuration.

Options are merged from, in increasing priority: built-in defaults, an
optional TOML file (``[zsync]`` table), GitHub Actions inputs exposed as
``INPUT_<NAME>`` environment variables, and explicit CLI overrides.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_table

__all__ = [
    "DEFAULT_COMMIT_MESSAGE",
    "ConfigError",
    "SyncOptions",
    "load_options",
]

DEFAULT_COMMIT_MESSAGE = "chore: update ${file_name} for Zenodo release"

_REQUIRED = ("github_token", "zenodo_token", "deposition_id")
_SECRETS = frozenset({"github_token", "zenodo_token"})


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when options cannot be loaded or are incomplete."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class SyncOptions:
    """Operator inputs for one release sync run."""

    github_token: str
    zenodo_token: str
    deposition_id: str
    update_metadata_files: bool = True
    codemeta_json: bool = False
    citation_cff: bool = False
    zenodo_json: bool = False
    committer_name: str = ""
    committer_email: str = ""
    commit_message: str = DEFAULT_COMMIT_MESSAGE
    sandbox: bool = False
    publish: bool = True

    def __repr__(self) -> str:
        parts: list[str] = []
        for f in fields(self):
            value = getattr(self, f.name)
            shown = "***" if f.name in _SECRETS and value else repr(value)
            parts.append(f"{f.name}={shown}")
        return f"SyncOptions({', '.join(parts)})"


def _bool_fields() -> frozenset[str]:
    return frozenset(f.name for f in fields(SyncOptions) if f.type in ("bool", bool))


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(get_table(data, "zsync") or {})


def _from_table(table: Mapping[str, object], path: Path) -> Result[StrDict, ConfigError]:
    known = {f.name for f in fields(SyncOptions)}
    bools = _bool_fields()
    out: StrDict = {}
    for key, value in table.items():
        name = key.replace("-", "_")
        if name not in known:
            return Err(ConfigError(f"Unknown option in [zsync]: {key}", path=path))
        if name in bools:
            if not isinstance(value, bool):
                return Err(ConfigError(f"Option {key} must be a boolean", path=path))
            out[name] = value
        elif isinstance(value, (str, int)) and not isinstance(value, bool):
            out[name] = str(value)
        else:
            return Err(ConfigError(f"Option {key} must be a string", path=path))
    return Ok(out)


def _from_env(env: Mapping[str, str]) -> StrDict:
    # Unset action inputs arrive as empty strings; treat them as absent.
    bools = _bool_fields()
    out: StrDict = {}
    for f in fields(SyncOptions):
        raw = env.get(f"INPUT_{f.name.upper()}")
        if raw is None or raw.strip() == "":
            continue
        if f.name in bools:
            out[f.name] = raw.strip().lower() == "true"
        else:
            out[f.name] = raw.strip()
    return out


def load_options(
    *,
    env: Mapping[str, str],
    config_path: Path | None = None,
    overrides: Mapping[str, object] | None = None,
) -> Result[SyncOptions, ConfigError]:
    """Resolve SyncOptions from all configuration sources.

    Args:
        env: Environment mapping (usually ``os.environ``).
        config_path: Optional TOML file with a ``[zsync]`` table.
        overrides: Values from CLI flags; ``None`` entries are ignored.

    Returns:
        Ok(SyncOptions), or Err(ConfigError) naming the first missing input.
    """
    merged: StrDict = {}

    if config_path is not None:
        table = _parse_toml(config_path)
        if isinstance(table, Err):
            return table
        parsed = _from_table(table.value, config_path)
        if isinstance(parsed, Err):
            return parsed
        merged.update(parsed.value)

    merged.update(_from_env(env))

    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value

    for name in _REQUIRED:
        value = merged.get(name)
        if not isinstance(value, str) or not value:
            return Err(ConfigError(f"The {name} input is required"))

    try:
        return Ok(SyncOptions(**merged))  # type: ignore[arg-type]
    except TypeError as e:
        return Err(ConfigError(f"Invalid options: {e}", path=config_path))
