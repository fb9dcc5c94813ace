from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

from flowpolicy.evaluation.budget import DEFAULT_MAX_STEPS
from flowpolicy.exceptions import ConfigError
from flowpolicy.language.binding import ShadowingMode

DEFAULT_CONFIG_NAME = "flowpolicy.toml"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


def _load_toml(path: Path, *, required: bool) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        if required:
            raise ConfigError(f"config file not found: {path}") from None
        return {}
    except OSError as exc:
        raise ConfigError(f"cannot read config file {path}: {exc}") from exc
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid TOML in {path}: {exc}") from exc
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    """Read ``flowpolicy.toml``; an explicit ``config_path`` must exist."""
    if config_path is not None:
        return _load_toml(config_path, required=True)
    base = root if root is not None else Path.cwd()
    return _load_toml(base / DEFAULT_CONFIG_NAME, required=False)


def _section(data: TomlTable, name: str) -> TomlTable:
    section = data.get(name, {})
    return section if isinstance(section, dict) else {}


def _normalize_name_list(value: TomlValue) -> list[str]:
    items: list[str] = []
    if value is None:
        return items
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set)):
        for item in value:
            if isinstance(item, str):
                items.extend([part.strip() for part in item.split(",") if part.strip()])
    return [item for item in items if item]


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged


@dataclass(frozen=True)
class PolicySettings:
    shadowing: ShadowingMode = ShadowingMode.WARN
    max_steps: int = DEFAULT_MAX_STEPS
    units: tuple[str, ...] = ()


def _shadowing_mode(value: TomlValue) -> ShadowingMode:
    if value is None:
        return ShadowingMode.WARN
    try:
        return ShadowingMode(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(mode.value for mode in ShadowingMode)
        raise ConfigError(f"policy.shadowing must be one of: {allowed}") from None


def _max_steps(value: TomlValue) -> int:
    if value is None:
        return DEFAULT_MAX_STEPS
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError("evaluation.max_steps must be a positive integer")
    return value


def settings_from_sections(policy: TomlTable, evaluation: TomlTable) -> PolicySettings:
    return PolicySettings(
        shadowing=_shadowing_mode(policy.get("shadowing")),
        max_steps=_max_steps(evaluation.get("max_steps")),
        units=tuple(_normalize_name_list(evaluation.get("units"))),
    )


def resolve_settings(
    *,
    root: Path | None = None,
    config_path: Path | None = None,
    overrides: TomlTable | None = None,
) -> PolicySettings:
    """Combine the config file with explicit overrides (``None`` means unset)."""
    data = load_config(root=root, config_path=config_path)
    overrides = overrides or {}
    policy = merge_payload(
        {"shadowing": overrides.get("shadowing")}, _section(data, "policy")
    )
    evaluation = merge_payload(
        {
            "max_steps": overrides.get("max_steps"),
            "units": overrides.get("units") or None,
        },
        _section(data, "evaluation"),
    )
    return settings_from_sections(policy, evaluation)
