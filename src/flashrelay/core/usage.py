"""
Token usage and cost estimation.

Adapters mutate a UsageSummary while the stream runs; the estimate is
computed once, after the stream is exhausted.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

_PER_MILLION = 1_000_000


@dataclass
class UsageSummary:
    input_tokens: int = 0
    output_tokens: int = 0

    def update(self, input_tokens: Optional[int], output_tokens: Optional[int]) -> None:
        # Providers report cumulative counts; the latest report wins.
        self.input_tokens = max(0, int(input_tokens or 0))
        self.output_tokens = max(0, int(output_tokens or 0))

    @property
    def observed(self) -> bool:
        return self.input_tokens > 0 or self.output_tokens > 0


@dataclass(frozen=True)
class ProviderRates:
    """USD per million tokens."""
    input_per_million: float
    output_per_million: float


@dataclass(frozen=True)
class CostEstimate:
    input_cost: float
    output_cost: float

    @property
    def total_cost(self) -> float:
        return self.input_cost + self.output_cost


def estimate_cost(usage: UsageSummary, rates: ProviderRates) -> CostEstimate:
    """Pure function of the final usage and the active provider's rates."""
    return CostEstimate(
        input_cost=usage.input_tokens / _PER_MILLION * rates.input_per_million,
        output_cost=usage.output_tokens / _PER_MILLION * rates.output_per_million,
    )


def log_cost(provider: str, usage: UsageSummary, rates: ProviderRates) -> Optional[CostEstimate]:
    """
    Log the estimate for a finished stream. Returns None (after a warning)
    when the provider never reported usage; the response has already
    succeeded at that point so this never raises.
    """
    if not usage.observed:
        logger.warning("[COST] usage data was not returned/collected for provider '%s'", provider)
        return None

    cost = estimate_cost(usage, rates)
    logger.info("[COST] Provider: %s", provider)
    logger.info("[COST] Usage: %d input tokens, %d output tokens", usage.input_tokens, usage.output_tokens)
    logger.info("[COST] Estimated Cost: $%.6f", cost.total_cost)
    return cost
