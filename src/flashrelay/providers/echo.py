from __future__ import annotations
from typing import Any, Dict, Iterator, List, Optional
import time

from flashrelay.providers.registry import ProviderRegistry
from flashrelay.core.models import FlashcardRecord
from flashrelay.core.ports import OpenedStream
from flashrelay.core.prompts import CARD_COUNT, system_instruction, user_prompt
from flashrelay.core.usage import UsageSummary


def _rough_token_count(text: str) -> int:
    # ≈ 4 chars/token
    if not text:
        return 0
    return max(1, (len(text) + 3) // 4)


def canned_cards(topic: str, count: int = CARD_COUNT) -> List[FlashcardRecord]:
    return [
        FlashcardRecord(
            front=f"{topic}: concept {i}",
            back=f"Placeholder explanation {i} for {topic}. Generated offline by the echo provider.",
            code="" if i % 2 else f"# {topic} example {i}",
        )
        for i in range(1, count + 1)
    ]


@ProviderRegistry.register("echo")
class EchoProvider:
    """
    Offline stub that streams canned flashcards as NDJSON.
    Cards are cut into fixed-size fragments that ignore line boundaries,
    with an optional delay to simulate tokens. Usage is reported on the
    last fragment, like the real providers do.
    """
    name = "echo"

    def __init__(
        self,
        fragment_size: int = 7,
        token_delay: float = 0.0,
        cards: Optional[int] = None,
        model: str = "echo-cards",
    ):
        self.model = model
        self.fragment_size = max(1, int(fragment_size))
        self.token_delay = float(token_delay)
        self.cards = CARD_COUNT if cards is None else int(cards)

    @classmethod
    def create(cls, *, model_name: str, provider_cfg: Dict[str, Any], secrets) -> "EchoProvider":
        cfg = provider_cfg or {}
        return cls(
            model=model_name or "echo-cards",
            fragment_size=cfg.get("fragment_size", 7),
            token_delay=cfg.get("token_delay", 0.0),
            cards=cfg.get("cards"),
        )

    def open_stream(self, topic: str, context: List[str]) -> OpenedStream:
        prompt = system_instruction(context) + user_prompt(topic)
        text = "".join(card.model_dump_json() + "\n" for card in canned_cards(topic, self.cards))
        usage = UsageSummary()

        def gen() -> Iterator[str]:
            size = self.fragment_size
            for start in range(0, len(text), size):
                if start + size >= len(text):
                    usage.update(_rough_token_count(prompt), _rough_token_count(text))
                yield text[start:start + size]
                if self.token_delay > 0:
                    time.sleep(self.token_delay)

        return OpenedStream(gen(), usage)
