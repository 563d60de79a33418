# tests/unit/test_gemini_adapter.py

from __future__ import annotations
import sys
import types
from pathlib import Path
from typing import Any, List, Optional

import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

import flashrelay.providers.gemini_adapter as ga  # type: ignore
from flashrelay.core.errors import ConfigurationError, UpstreamError  # type: ignore
from flashrelay.secrets.sources import SecretsResolver  # type: ignore


class _Meta:
    def __init__(self, prompt: Optional[int], candidates: Optional[int]) -> None:
        self.prompt_token_count = prompt
        self.candidates_token_count = candidates

class _Chunk:
    def __init__(self, text: Optional[str], meta: Optional[_Meta] = None) -> None:
        self.text = text
        self.usage_metadata = meta

class _ServerError(Exception):
    def __init__(self, msg: str, code: int) -> None:
        super().__init__(msg)
        self.code = code

class _FakeModels:
    def __init__(self) -> None:
        self.calls: List[dict] = []
        self.chunks: List[Any] = [
            _Chunk('{"front":"Q1","back":"A1","code":""}\n{"fr'),
            _Chunk('ont":"Q2","back":"A2","code":""}\n', _Meta(30, 5)),
            _Chunk("", _Meta(30, 21)),
        ]

    def generate_content_stream(self, **kwargs):
        self.calls.append(kwargs)
        chunks = self.chunks
        def _iter():
            for c in chunks:
                if isinstance(c, Exception):
                    raise c
                yield c
        return _iter()

class _FakeClient:
    def __init__(self, api_key: str) -> None:
        self.api_key = api_key
        self.models = _FakeModels()


@pytest.fixture
def adapter(monkeypatch):
    monkeypatch.setattr(ga, "genai", types.SimpleNamespace(Client=_FakeClient), raising=True)
    return ga.GeminiAdapter(model="gemini-test", api_key="g-key")


def test_stream_yields_text_and_keeps_latest_usage(adapter):
    fragments, usage = adapter.open_stream("Go channels", ["select"])
    text = "".join(fragments)
    assert text.count("\n") == 2
    assert (usage.input_tokens, usage.output_tokens) == (30, 21)

    call = adapter.client.models.calls[0]
    assert call["model"] == "gemini-test"
    assert call["contents"] == "Generate flashcards for the topic: Go channels"
    assert "select" in call["config"].system_instruction


def test_mid_stream_failure_is_upstream_error(adapter):
    adapter.client.models.chunks = [_Chunk("par"), _ServerError("overloaded", 503)]
    fragments, _ = adapter.open_stream("Go", [])
    assert next(fragments) == "par"
    with pytest.raises(UpstreamError) as ei:
        next(fragments)
    assert ei.value.status == 503
    assert ei.value.transient is True


def test_create_requires_api_key(monkeypatch):
    for var in ("GEMINI_API_KEY", "GEMINI", "gemini"):
        monkeypatch.delenv(var, raising=False)
    resolver = SecretsResolver(method="env", mapping={"gemini": {"api_key": "GEMINI_API_KEY"}})
    with pytest.raises(ConfigurationError):
        ga.GeminiAdapter.create(model_name="m", provider_cfg={}, secrets=resolver)
