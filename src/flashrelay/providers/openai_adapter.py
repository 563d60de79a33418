# src/flashrelay/providers/openai_adapter.py
from __future__ import annotations
import logging
from typing import Any, Dict, Iterator, List, Optional

from openai import OpenAI

from flashrelay.providers.registry import ProviderRegistry
from flashrelay.core.errors import ConfigurationError, classify_upstream_exception
from flashrelay.core.ports import OpenedStream
from flashrelay.core.prompts import system_instruction, user_prompt
from flashrelay.core.usage import UsageSummary

logger = logging.getLogger(__name__)


@ProviderRegistry.register("openai")
class OpenAIAdapter:
    """
    Chat Completions streaming adapter.
    - asks for a trailing usage chunk via stream_options.include_usage
    - maps SDK errors to UpstreamError, both on open and mid-stream
    """
    name = "openai"

    def __init__(
        self,
        model: str,
        api_key: str,
        *,
        timeout: Optional[float] = None,
        base_url: Optional[str] = None,
        organization: Optional[str] = None,
    ):
        self.model = model
        client_kwargs: Dict[str, Any] = {"api_key": api_key}
        if base_url:
            client_kwargs["base_url"] = base_url
        if organization:
            client_kwargs["organization"] = organization
        self.client = OpenAI(**client_kwargs)
        self.timeout = timeout

    @classmethod
    def create(cls, *, model_name: str, provider_cfg: Dict[str, Any], secrets) -> "OpenAIAdapter":
        api_key = secrets.secret("openai", "api_key")
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY missing")

        cfg = provider_cfg or {}
        return cls(
            model=model_name,
            api_key=api_key,
            timeout=cfg.get("timeout"),
            base_url=cfg.get("base_url"),
            organization=cfg.get("organization"),
        )

    def _build_args(self, topic: str, context: List[str]) -> Dict[str, Any]:
        args: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_instruction(context)},
                {"role": "user", "content": user_prompt(topic)},
            ],
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if self.timeout is not None:
            args["timeout"] = self.timeout
        return args

    def open_stream(self, topic: str, context: List[str]) -> OpenedStream:
        logger.info("Calling OpenAI API with model: %s", self.model)
        try:
            stream = self.client.chat.completions.create(**self._build_args(topic, context))
        except Exception as e:
            raise classify_upstream_exception(e) from e

        usage = UsageSummary()
        return OpenedStream(self._fragments(stream, usage), usage)

    def _fragments(self, stream, usage: UsageSummary) -> Iterator[str]:
        try:
            for chunk in stream:
                # The usage chunk arrives last, with an empty choices list.
                if getattr(chunk, "usage", None):
                    usage.update(chunk.usage.prompt_tokens, chunk.usage.completion_tokens)
                choices = getattr(chunk, "choices", None) or []
                piece = getattr(choices[0].delta, "content", None) if choices else None
                if piece:
                    yield piece
        except Exception as e:
            raise classify_upstream_exception(e) from e
