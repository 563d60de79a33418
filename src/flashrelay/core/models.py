from __future__ import annotations
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from .errors import ValidationError


class FlashcardRecord(BaseModel):
    """One NDJSON line of the response body."""
    front: str
    back: str
    code: str = ""


class GenerationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Optional: a missing topic is reported as 400 by require_topic()
    topic: Optional[str] = None
    context: Optional[List[str]] = None

    def require_topic(self) -> str:
        topic = (self.topic or "").strip()
        if not topic:
            raise ValidationError("Topic is required")
        return topic

    @property
    def prior_concepts(self) -> List[str]:
        return list(self.context or [])
