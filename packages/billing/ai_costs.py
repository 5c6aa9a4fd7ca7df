"""
AI provider cost table.

Prices are USD per 1M tokens. The cost of a request is computed once when
its usage record is written and never recomputed afterwards.
"""

from decimal import Decimal
from typing import NamedTuple, Optional

from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)

TOKENS_PER_PRICE_UNIT = Decimal(1_000_000)
COST_QUANTUM = Decimal("0.000001")

DEFAULT_ESTIMATE_PROVIDER = "deepseek-chat"
DEFAULT_ESTIMATE_INPUT_TOKENS = 5000
DEFAULT_ESTIMATE_OUTPUT_TOKENS = 500


class AiProviderCost(NamedTuple):
    input_per_million: Decimal
    output_per_million: Decimal

    @property
    def blended(self) -> Decimal:
        return self.input_per_million + self.output_per_million


AI_PROVIDER_COSTS: dict[str, AiProviderCost] = {
    "deepseek-chat": AiProviderCost(Decimal("0.14"), Decimal("0.28")),
    "deepseek-reasoner": AiProviderCost(Decimal("0.55"), Decimal("2.19")),
    "gpt-4o-mini": AiProviderCost(Decimal("0.15"), Decimal("0.60")),
    "gemini-2.0-flash": AiProviderCost(Decimal("0.075"), Decimal("0.30")),
    "gpt-4o": AiProviderCost(Decimal("2.50"), Decimal("10.0")),
    "claude-sonnet-4": AiProviderCost(Decimal("3.0"), Decimal("15.0")),
    "ollama": AiProviderCost(Decimal("0"), Decimal("0")),
}


def calculate_request_cost(
    provider_id: str, input_tokens: int, output_tokens: int
) -> Decimal:
    """Cost in USD of one request, quantized to micro-dollars."""
    pricing = AI_PROVIDER_COSTS.get(provider_id)
    if pricing is None:
        logger.warning(
            f"Unknown AI provider '{provider_id}', recording zero cost",
            extra={"provider_id": provider_id},
        )
        return Decimal("0")

    cost = (
        Decimal(input_tokens) * pricing.input_per_million
        + Decimal(output_tokens) * pricing.output_per_million
    ) / TOKENS_PER_PRICE_UNIT
    return cost.quantize(COST_QUANTUM)


def estimate_request_cost(
    provider_id: str = DEFAULT_ESTIMATE_PROVIDER,
    input_tokens: int = DEFAULT_ESTIMATE_INPUT_TOKENS,
    output_tokens: int = DEFAULT_ESTIMATE_OUTPUT_TOKENS,
) -> Decimal:
    return calculate_request_cost(provider_id, input_tokens, output_tokens)


def cheaper_alternative(provider_id: str) -> Optional[str]:
    """Cheapest provider that is strictly cheaper than the given one."""
    current = AI_PROVIDER_COSTS.get(provider_id)
    if current is None:
        return None
    candidates = [
        (cost.blended, name)
        for name, cost in AI_PROVIDER_COSTS.items()
        if cost.blended < current.blended
    ]
    if not candidates:
        return None
    return min(candidates)[1]
