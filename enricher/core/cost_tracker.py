"""Token and cost accounting for completion calls.

Every call made during one resume() invocation is priced when it is recorded,
using litellm's per-token price table. The invocation summary reports the
totals; ``by_stage()`` shows where the tokens went.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# USD per 1M tokens (input, output), used when litellm has no price for a model.
_FALLBACK_PRICING: dict[str, tuple[float, float]] = {
    "gemini-2.5-pro": (1.25, 10.00),
    "gemini-2.5-pro-preview-03-25": (1.25, 10.00),
    "gemini-2.0-flash": (0.10, 0.40),
}

_unpriced_models: set[str] = set()


def price_call(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """USD cost of one call. Zero (with a one-time warning) if the model is unpriced."""
    try:
        from litellm import cost_per_token
        prompt_cost, completion_cost = cost_per_token(
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )
        return prompt_cost + completion_cost
    except Exception:
        bare = model.rsplit("/", 1)[-1]
        if bare in _FALLBACK_PRICING:
            input_rate, output_rate = _FALLBACK_PRICING[bare]
            return (prompt_tokens * input_rate + completion_tokens * output_rate) / 1_000_000
        if model not in _unpriced_models:
            _unpriced_models.add(model)
            logger.warning(f"No pricing available for model '{model}', cost will show as $0")
        return 0.0


@dataclass
class CallUsage:
    """One priced completion call."""

    model: str
    prompt_tokens: int
    completion_tokens: int
    stage: str = ""
    cost: float = 0.0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass
class CostTracker:
    """Usage of every completion call in an invocation."""

    calls: list[CallUsage] = field(default_factory=list)

    def record(self, model: str, usage: Any, stage: str = "") -> CallUsage | None:
        """Price and keep the usage of one response.

        Args:
            model: Model actually called, after any fallback.
            usage: ``response.usage`` from litellm. Responses without usage
                are not recorded.
            stage: Stage flag value of the caller.
        """
        if usage is None:
            return None
        prompt_tokens = getattr(usage, "prompt_tokens", 0) or 0
        completion_tokens = getattr(usage, "completion_tokens", 0) or 0
        call = CallUsage(
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            stage=stage,
            cost=price_call(model, prompt_tokens, completion_tokens),
        )
        self.calls.append(call)
        return call

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @property
    def total_prompt_tokens(self) -> int:
        return sum(c.prompt_tokens for c in self.calls)

    @property
    def total_completion_tokens(self) -> int:
        return sum(c.completion_tokens for c in self.calls)

    @property
    def total_tokens(self) -> int:
        return sum(c.total_tokens for c in self.calls)

    @property
    def total_cost(self) -> float:
        return sum(c.cost for c in self.calls)

    def by_stage(self) -> dict[str, dict[str, Any]]:
        """Calls, tokens and cost per stage, in first-call order."""
        stages: dict[str, dict[str, Any]] = {}
        for call in self.calls:
            row = stages.setdefault(
                call.stage or "unknown",
                {"calls": 0, "prompt_tokens": 0, "completion_tokens": 0, "cost": 0.0},
            )
            row["calls"] += 1
            row["prompt_tokens"] += call.prompt_tokens
            row["completion_tokens"] += call.completion_tokens
            row["cost"] += call.cost
        return stages

    def to_dict(self) -> dict:
        """Totals for the invocation summary."""
        return {
            "total_calls": self.call_count,
            "total_tokens": self.total_tokens,
            "total_cost_usd": round(self.total_cost, 6),
            "by_stage": {stage: row["calls"] for stage, row in self.by_stage().items()},
        }
