"""
Usage and Cost Accounting

Every model round reports its token usage and monetary cost to the session's
ledger. The ledger also counts rounds and aborts the session once the step
ceiling is passed.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from codeagent.core.domain.errors import StepBudgetExceededError


@dataclass(frozen=True)
class TokenPrice:
    """Dollar price per million input and output tokens."""

    input_per_million: float
    output_per_million: float

    def cost(self, input_tokens: int, output_tokens: int) -> float:
        return (
            input_tokens * self.input_per_million / 1_000_000
            + output_tokens * self.output_per_million / 1_000_000
        )


FREE = TokenPrice(0.0, 0.0)


def compute_cost(input_tokens: int, output_tokens: int, price: TokenPrice | None) -> float:
    """Cost in dollars of one round, zero when the model is not priced."""
    return (price or FREE).cost(input_tokens, output_tokens)


class UsageLedger:
    """
    Accumulates tokens, cost and rounds for one session.

    Args:
        max_steps: Ceiling on recorded rounds, None for no ceiling
    """

    def __init__(self, max_steps: int | None = None):
        self.max_steps = max_steps
        self.input_tokens = 0
        self.output_tokens = 0
        self.cost = 0.0
        self.step_count = 0
        self.logger = structlog.get_logger().bind(component="usage_ledger")

    def record(self, input_tokens: int, output_tokens: int, cost: float) -> None:
        """
        Record one model round.

        Raises:
            StepBudgetExceededError: If the round pushes the count past max_steps
        """
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        self.cost += cost
        self.step_count += 1

        self.logger.debug(
            "usage_recorded",
            step=self.step_count,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=cost,
        )

        if self.max_steps is not None and self.step_count > self.max_steps:
            self.logger.warning(
                "step_budget_exceeded", steps=self.step_count, max_steps=self.max_steps
            )
            raise StepBudgetExceededError(self.step_count, self.max_steps)

    @property
    def total_cost(self) -> float | None:
        """Accumulated dollars, None when nothing was priced."""
        return self.cost if self.cost > 0 else None
