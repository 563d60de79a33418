from __future__ import annotations
from importlib import import_module
from typing import Callable, Dict, List, Type

# Modules whose @ProviderRegistry.register decorators define the built-in adapters
BUILTIN_MODULES = (
    "flashrelay.providers.openai_adapter",
    "flashrelay.providers.gemini_adapter",
    "flashrelay.providers.echo",
)


def _key(name: str) -> str:
    return str(name).strip().lower()


class ProviderRegistry:
    """
    Maps the model.provider config value to an adapter class.
    Adapters expose create(*, model_name, provider_cfg, secrets) and open_stream().
    """
    _adapters: Dict[str, Type] = {}

    @classmethod
    def register(cls, name: str) -> Callable[[Type], Type]:
        key = _key(name)

        def deco(adapter: Type) -> Type:
            existing = cls._adapters.get(key)
            if existing is not None and existing.__qualname__ != adapter.__qualname__:
                raise ValueError(f"Provider '{key}' already registered by {existing.__qualname__}")
            cls._adapters[key] = adapter
            return adapter
        return deco

    @classmethod
    def get(cls, name: str) -> Type:
        try:
            return cls._adapters[_key(name)]
        except KeyError:
            raise KeyError(f"Provider '{name}' not registered (known: {', '.join(cls.names()) or 'none'})") from None

    @classmethod
    def names(cls) -> List[str]:
        return sorted(cls._adapters)

    @classmethod
    def ensure_imports(cls) -> None:
        """Import the built-in adapters; safe to call on every request."""
        for module in BUILTIN_MODULES:
            import_module(module)
