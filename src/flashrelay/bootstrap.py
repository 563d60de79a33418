from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv

from .config_loader import load_config, ConfigError, PROVIDERS
from .providers.registry import ProviderRegistry
from .secrets.sources import SecretsResolver
from .core.usage import ProviderRates


def build_config(
    config_path: Optional[Path] = None,
    *,
    provider: Optional[str] = None,
    model: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Load .env, then YAML + environment, then apply CLI overrides.
    """
    load_dotenv()
    cfg = load_config(config_path)

    if provider:
        name = str(provider).lower()
        if name not in PROVIDERS:
            raise ConfigError(f"Unknown model.provider '{name}' (expected one of {', '.join(PROVIDERS)}).")
        cfg["model"]["provider"] = name
    if model:
        cfg["providers"][cfg["model"]["provider"]]["name"] = model
    return cfg


def build_resolver(cfg: Dict[str, Any]) -> SecretsResolver:
    secrets_cfg = cfg.get("secrets") or {}
    try:
        return SecretsResolver(method=secrets_cfg.get("method", "env"), mapping=secrets_cfg.get("mapping", {}))
    except ValueError as e:
        raise ConfigError(str(e)) from e


def provider_settings(cfg: Dict[str, Any]) -> Dict[str, Any]:
    name = cfg["model"]["provider"]
    return (cfg.get("providers") or {}).get(name) or {}


def rates_for(cfg: Dict[str, Any]) -> ProviderRates:
    settings = provider_settings(cfg)
    return ProviderRates(
        input_per_million=float(settings.get("input_cost_per_million", 0.0)),
        output_per_million=float(settings.get("output_cost_per_million", 0.0)),
    )


def build_provider(cfg: Dict[str, Any], resolver: Optional[SecretsResolver] = None):
    """
    Composition root for one request: pick the adapter named by
    model.provider and build it. Raises ConfigurationError when the
    credential is missing, before any upstream call.
    """
    ProviderRegistry.ensure_imports()  # make sure built-ins register

    provider_name = cfg["model"]["provider"]
    settings = provider_settings(cfg)
    Adapter = ProviderRegistry.get(provider_name)
    return Adapter.create(
        model_name=settings.get("name", ""),
        provider_cfg=settings,
        secrets=resolver or build_resolver(cfg),
    )
