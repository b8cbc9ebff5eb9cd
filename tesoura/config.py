"""Runtime configuration loader for the lineup engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml  # type: ignore


@dataclass(frozen=True)
class Config:
    SQUAD_SIZE: int
    HISTORY_WINDOW: int
    BALANCER: str
    TIMEZONE: str
    DATA_DIR: str

    @property
    def ADMIT_CAPACITY(self) -> int:
        return 2 * self.SQUAD_SIZE


DEFAULTS: Dict[str, Any] = {
    "SQUAD_SIZE": 10,
    "HISTORY_WINDOW": 12,
    "BALANCER": "greedy",
    "TIMEZONE": "America/Sao_Paulo",
    "DATA_DIR": "data",
}

BALANCERS = {"greedy", "optimal"}

_CONFIG_CACHE: Config | None = None


def _coerce_int(value: Any, default: int, *, min_value: int = 1) -> int:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return max(min_value, int(value))
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return default
        try:
            num = float(s)
        except ValueError:
            print(f"[warn] config: invalid integer {value!r}; using default {default}")
            return default
        return max(min_value, int(num))
    return default


def _coerce(key: str, value: Any) -> Any:
    default = DEFAULTS[key]
    if isinstance(default, int):
        return _coerce_int(value, default)
    s = "" if value is None else str(value).strip()
    if key == "BALANCER":
        s = s.lower()
        if s not in BALANCERS:
            print(f"[warn] config: unknown BALANCER {value!r}; using {default!r}")
            return default
    return s or default


def _yaml_layer(path: Path) -> Dict[str, Any]:
    """Known keys from the yml file, upper-cased; unknown keys are ignored."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, yaml.YAMLError) as exc:
        print(f"[warn] config: {path} not readable ({exc}); using defaults")
        return {}
    if not isinstance(data, dict):
        return {}
    layer = {str(k).strip().upper(): v for k, v in data.items()}
    return {k: v for k, v in layer.items() if k in DEFAULTS}


def _env_layer() -> Dict[str, Any]:
    return {
        key: os.environ[f"TESOURA_{key}"]
        for key in DEFAULTS
        if f"TESOURA_{key}" in os.environ
    }


def get_config(path: str | Path = "tesoura.yml") -> Config:
    """Load configuration with precedence: ENV > tesoura.yml > defaults."""

    global _CONFIG_CACHE
    if _CONFIG_CACHE is not None:
        return _CONFIG_CACHE

    values: Dict[str, Any] = dict(DEFAULTS)
    # later layers win
    for layer in (_yaml_layer(Path(path)), _env_layer()):
        for key, raw in layer.items():
            values[key] = _coerce(key, raw)

    cfg = Config(
        SQUAD_SIZE=int(values["SQUAD_SIZE"]),
        HISTORY_WINDOW=int(values["HISTORY_WINDOW"]),
        BALANCER=str(values["BALANCER"]),
        TIMEZONE=str(values["TIMEZONE"]),
        DATA_DIR=str(values["DATA_DIR"]),
    )

    _CONFIG_CACHE = cfg
    return cfg


def reset_config_cache() -> None:
    global _CONFIG_CACHE
    _CONFIG_CACHE = None


__all__ = ["Config", "DEFAULTS", "get_config", "reset_config_cache"]
