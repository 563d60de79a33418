# src/flashrelay/config_loader.py

from __future__ import annotations
import copy
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import yaml

from flashrelay.core.errors import ConfigurationError


class ConfigError(ConfigurationError, ValueError):
    pass


PROVIDERS = ("openai", "gemini", "echo")

# Documented defaults; YAML overrides these, environment overrides YAML.
DEFAULTS: Dict[str, Any] = {
    "model": {"provider": "openai"},
    "providers": {
        "openai": {
            "name": "gpt-5.2",
            "timeout": 30.0,
            "input_cost_per_million": 2.50,
            "output_cost_per_million": 10.00,
        },
        "gemini": {
            "name": "gemini-2.5-flash",
            "input_cost_per_million": 0.10,
            "output_cost_per_million": 0.40,
        },
        "echo": {
            "name": "echo-cards",
            "fragment_size": 7,
            "token_delay": 0.0,
            "input_cost_per_million": 0.0,
            "output_cost_per_million": 0.0,
        },
    },
    "secrets": {
        "method": "env",
        "mapping": {
            "openai": {"api_key": "OPENAI_API_KEY"},
            "gemini": {"api_key": "GEMINI_API_KEY"},
        },
    },
    "server": {"host": "127.0.0.1", "port": 3000},
    "logging": {"level": "info"},
}

ENV_OVERRIDES = {
    "AI_PROVIDER": "model.provider",
    "OPENAI_MODEL": "providers.openai.name",
    "OPENAI_INPUT_COST_PER_MILLION": "providers.openai.input_cost_per_million",
    "OPENAI_OUTPUT_COST_PER_MILLION": "providers.openai.output_cost_per_million",
    "GEMINI_MODEL": "providers.gemini.name",
    "GEMINI_INPUT_COST_PER_MILLION": "providers.gemini.input_cost_per_million",
    "GEMINI_OUTPUT_COST_PER_MILLION": "providers.gemini.output_cost_per_million",
    "PORT": "server.port",
    "LOG_LEVEL": "logging.level",
}


def _require(d: Dict[str, Any], dotted: str, typ: type) -> Any:
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            raise ConfigError(f"Missing config key: {dotted}")
        cur = cur[k]
    if typ is str and not isinstance(cur, str):
        raise ConfigError(f"'{dotted}' must be a string")
    if typ is float:
        try:
            cur = float(cur)
        except (TypeError, ValueError):
            raise ConfigError(f"'{dotted}' must be a number, got {cur!r}") from None
    if typ is int:
        try:
            cur = int(cur)
        except (TypeError, ValueError):
            raise ConfigError(f"'{dotted}' must be an integer, got {cur!r}") from None
    return cur


def _set(d: Dict[str, Any], dotted: str, value: Any) -> None:
    keys = dotted.split(".")
    cur = d
    for k in keys[:-1]:
        cur = cur.setdefault(k, {})
    cur[keys[-1]] = value


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    for key, val in override.items():
        if isinstance(val, Mapping) and isinstance(base.get(key), dict):
            _merge(base[key], val)
        else:
            base[key] = val
    return base


def load_config(path: Optional[Path] = None, *, env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Build the effective config: DEFAULTS < YAML file (if given) < environment.
    'env' defaults to os.environ; tests pass a plain dict.
    """
    raw = copy.deepcopy(DEFAULTS)

    if path is not None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        if data is not None and not isinstance(data, dict):
            raise ConfigError(f"Config is not a mapping: {path}")
        _merge(raw, data or {})

    environ = os.environ if env is None else env
    for var, dotted in ENV_OVERRIDES.items():
        val = environ.get(var)
        if val not in (None, ""):
            _set(raw, dotted, val)

    # Normalise enumerations and numbers
    provider = _require(raw, "model.provider", str).strip().lower()
    if provider not in PROVIDERS:
        raise ConfigError(f"Unknown model.provider '{provider}' (expected one of {', '.join(PROVIDERS)}).")
    raw["model"]["provider"] = provider

    for name in PROVIDERS:
        _require(raw, f"providers.{name}.name", str)
        for rate in ("input_cost_per_million", "output_cost_per_million"):
            value = _require(raw, f"providers.{name}.{rate}", float)
            if value < 0:
                raise ConfigError(f"'providers.{name}.{rate}' must not be negative")
            raw["providers"][name][rate] = value

    raw["server"]["port"] = _require(raw, "server.port", int)
    raw["logging"]["level"] = str(_require(raw, "logging.level", str)).lower()
    return raw
