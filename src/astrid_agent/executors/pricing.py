"""Advisory per-provider token pricing (USD per 1K tokens)."""

from __future__ import annotations

from astrid_agent.executors.models import Usage

# provider -> (input, output)
RATES_PER_1K: dict[str, tuple[float, float]] = {
    "claude": (0.003, 0.015),
    "openai": (0.0025, 0.01),
    "gemini": (0.00125, 0.005),
}


def estimate_cost(provider: str, input_tokens: int, output_tokens: int) -> float:
    """Estimate the USD cost of a token count. Unknown providers cost 0."""
    input_rate, output_rate = RATES_PER_1K.get(provider, (0.0, 0.0))
    return (input_tokens * input_rate + output_tokens * output_rate) / 1000


def make_usage(provider: str, input_tokens: int, output_tokens: int) -> Usage:
    return Usage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cost_usd=estimate_cost(provider, input_tokens, output_tokens),
    )
