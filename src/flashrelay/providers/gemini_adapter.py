# src/flashrelay/providers/gemini_adapter.py
from __future__ import annotations
import logging
from typing import Any, Dict, Iterator, List

from google import genai
from google.genai import types

from flashrelay.providers.registry import ProviderRegistry
from flashrelay.core.errors import ConfigurationError, classify_upstream_exception
from flashrelay.core.ports import OpenedStream
from flashrelay.core.prompts import system_instruction, user_prompt
from flashrelay.core.usage import UsageSummary

logger = logging.getLogger(__name__)


@ProviderRegistry.register("gemini")
class GeminiAdapter:
    """
    generate_content_stream adapter. usage_metadata may ride on any chunk
    (usually the last); counts are cumulative so the latest one is kept.
    """
    name = "gemini"

    def __init__(self, model: str, api_key: str):
        self.model = model
        self.client = genai.Client(api_key=api_key)

    @classmethod
    def create(cls, *, model_name: str, provider_cfg: Dict[str, Any], secrets) -> "GeminiAdapter":
        api_key = secrets.secret("gemini", "api_key")
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY missing")
        return cls(model=model_name, api_key=api_key)

    def open_stream(self, topic: str, context: List[str]) -> OpenedStream:
        logger.info("Calling Gemini API with model: %s", self.model)
        config = types.GenerateContentConfig(system_instruction=system_instruction(context))
        try:
            stream = self.client.models.generate_content_stream(
                model=self.model,
                contents=user_prompt(topic),
                config=config,
            )
        except Exception as e:
            raise classify_upstream_exception(e) from e

        usage = UsageSummary()
        return OpenedStream(self._fragments(stream, usage), usage)

    def _fragments(self, stream, usage: UsageSummary) -> Iterator[str]:
        try:
            for chunk in stream:
                meta = getattr(chunk, "usage_metadata", None)
                if meta is not None:
                    usage.update(meta.prompt_token_count, meta.candidates_token_count)
                text = chunk.text
                if text:
                    yield text
        except Exception as e:
            raise classify_upstream_exception(e) from e
