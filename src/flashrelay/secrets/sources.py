# src/flashrelay/secrets/sources.py

from __future__ import annotations
from typing import Protocol, Optional, Dict, Iterable, List, Union
import logging
import os, sys, getpass, subprocess

try:
    import keyring as _keyring
except Exception:
    _keyring = None  # optional backend

logger = logging.getLogger(__name__)

class SecretSource(Protocol):
    def get(self, service: str) -> Optional[str]: ...

class EnvSource:
    """
    'service' is either an exact env var name (OPENAI_API_KEY) or a bare
    service name (gemini -> GEMINI_API_KEY, GEMINI).
    """
    def get(self, service: str) -> Optional[str]:
        for key in (service, f"{service.upper()}_API_KEY", service.upper()):
            val = os.getenv(key)
            if val and val.strip():
                return val.strip()
        return None

class SystemKeyringSource:
    def _service_name(self, service: str) -> str:
        # Keychain items are stored under the bare service, not the env var name
        lower = service.lower()
        return lower[: -len("_api_key")] if lower.endswith("_api_key") else lower

    def get(self, service: str) -> Optional[str]:
        name = self._service_name(service)
        if _keyring is not None:
            try:
                cred = _keyring.get_credential(name, None)  # type: ignore[arg-type]
                if cred and getattr(cred, "password", None):
                    return cred.password.strip()
            except Exception as e:
                logger.debug("keyring credential lookup failed for %s: %s", name, e)
            for account in ("API_KEY", f"{name.upper()}_API_KEY", "default", name, getpass.getuser()):
                try:
                    val = _keyring.get_password(name, account)
                except Exception as e:
                    logger.debug("keyring password lookup failed for %s/%s: %s", name, account, e)
                    continue
                if val:
                    return val.strip()
        if sys.platform == "darwin":
            try:
                p = subprocess.run(
                    ["security", "find-generic-password", "-s", name, "-w"],
                    capture_output=True, text=True, check=False
                )
            except OSError as e:
                logger.debug("macOS security lookup failed for %s: %s", name, e)
                return None
            if p.returncode == 0 and p.stdout.strip():
                return p.stdout.strip()
        return None

_ALLOWED_METHODS = {"env", "keyring"}

def _normalise_methods(method: Union[str, Iterable[str]]) -> List[str]:
    methods = [method] if isinstance(method, str) else list(method)
    norm: List[str] = []
    for m in methods:
        key = str(m).strip().lower()
        if key not in _ALLOWED_METHODS:
            raise ValueError(f"Unknown secrets method '{m}'. Allowed: {sorted(_ALLOWED_METHODS)}")
        if key not in norm:
            norm.append(key)
    return norm

def build_secret_sources(method: Union[str, Iterable[str]]) -> List[SecretSource]:
    sources: List[SecretSource] = []
    for name in _normalise_methods(method):
        sources.append(EnvSource() if name == "env" else SystemKeyringSource())
    return sources

class SecretsResolver:
    """
    Resolve provider credentials using one or more methods in order.
    mapping: per-provider map of names -> service/env-key
      e.g. { "gemini": { "api_key": "GEMINI_API_KEY" } } or { "gemini": { "api_key": "gemini" } }
    """
    def __init__(self, method: Union[str, Iterable[str]], mapping: Dict[str, Dict[str, str]] | None = None):
        self._sources = build_secret_sources(method)
        self._map = mapping or {}

    def secret(self, provider: str, name: str = "api_key") -> Optional[str]:
        service = (self._map.get(provider) or {}).get(name, provider)
        for src in self._sources:
            val = src.get(service)
            if val:
                return val
        return None
