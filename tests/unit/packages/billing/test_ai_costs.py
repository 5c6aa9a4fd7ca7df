from decimal import Decimal

from packages.billing.ai_costs import (
    calculate_request_cost,
    cheaper_alternative,
    estimate_request_cost,
)


class TestCalculateRequestCost:
    def test_prices_per_million_tokens(self):
        # 1M input at $0.14 + 1M output at $0.28
        assert calculate_request_cost("deepseek-chat", 1_000_000, 1_000_000) == Decimal(
            "0.420000"
        )

    def test_quantized_to_micro_dollars(self):
        cost = calculate_request_cost("claude-sonnet-4", 1234, 567)

        # (1234 * 3 + 567 * 15) / 1e6 = 0.012207
        assert cost == Decimal("0.012207")
        assert cost.as_tuple().exponent == -6

    def test_unknown_provider_is_free(self):
        assert calculate_request_cost("mystery-model", 1000, 1000) == Decimal("0")

    def test_local_model_is_free(self):
        assert calculate_request_cost("ollama", 50_000, 50_000) == Decimal("0")


def test_default_estimate_is_typical_deepseek_request():
    assert estimate_request_cost() == calculate_request_cost("deepseek-chat", 5000, 500)


def test_cheaper_alternative():
    assert cheaper_alternative("claude-sonnet-4") == "ollama"
    assert cheaper_alternative("ollama") is None
    assert cheaper_alternative("unknown") is None
