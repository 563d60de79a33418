# tests/unit/test_secrets_sources.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from flashrelay.secrets.sources import (  # type: ignore
    SecretsResolver,
    build_secret_sources,
)


def test_method_string_and_list(monkeypatch):
    # exact env var name via mapping
    monkeypatch.setenv("GEMINI_API_KEY", "g-env")
    r1 = SecretsResolver(method="env", mapping={"gemini": {"api_key": "GEMINI_API_KEY"}})
    assert r1.secret("gemini") == "g-env"

    # service name -> derived env var
    r2 = SecretsResolver(method=["env"], mapping={"gemini": {"api_key": "gemini"}})
    assert r2.secret("gemini") == "g-env"


def test_blank_env_value_is_missing(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "   ")
    monkeypatch.delenv("OPENAI", raising=False)
    r = SecretsResolver(method="env", mapping={"openai": {"api_key": "OPENAI_API_KEY"}})
    assert r.secret("openai") is None


def test_unknown_method_raises():
    with pytest.raises(ValueError):
        build_secret_sources("nope")


def test_keyring_then_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")

    class FakeKeyring:
        def __init__(self):
            self.services = []
        def get_credential(self, service, _):
            self.services.append(service)
            class Cred:
                password = "sk-from-keyring"
            return Cred()
        def get_password(self, *args, **kwargs):
            return None

    import flashrelay.secrets.sources as src
    fake = FakeKeyring()
    monkeypatch.setattr(src, "_keyring", fake, raising=True)
    monkeypatch.setattr(src.sys, "platform", "linux")

    r = SecretsResolver(method=["keyring", "env"], mapping={"openai": {"api_key": "OPENAI_API_KEY"}})
    assert r.secret("openai") == "sk-from-keyring"
    # env var style names map back to the bare keychain service
    assert fake.services == ["openai"]

    # Now make keyring miss -> env wins
    class KR2:
        def get_credential(self, *_): return None
        def get_password(self, *_): return None
    monkeypatch.setattr(src, "_keyring", KR2(), raising=True)

    r2 = SecretsResolver(method=["keyring", "env"], mapping={"openai": {"api_key": "openai"}})
    assert r2.secret("openai") == "sk-from-env"
