"""Per-year withdrawal sequencing across the three account types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from .errors import ConfigurationError

REGISTERED = "registered"
TAX_FREE = "tax_free"
NON_REGISTERED = "non_registered"
ACCOUNTS = (REGISTERED, TAX_FREE, NON_REGISTERED)

MANDATORY_MINIMUM = "mandatory_minimum"
STEPS = {MANDATORY_MINIMUM, *ACCOUNTS}

BALANCE_EPSILON = 0.005


@dataclass(frozen=True, slots=True)
class WithdrawalStrategy:
    """Ordered draw-down policy.

    The first step must be ``mandatory_minimum``; the remaining steps name each
    account exactly once. A ``registered`` step draws beyond the minimum.
    """

    steps: tuple[str, ...] = (MANDATORY_MINIMUM, TAX_FREE, NON_REGISTERED, REGISTERED)

    def __post_init__(self) -> None:
        steps = tuple(self.steps)
        object.__setattr__(self, "steps", steps)
        unknown = [step for step in steps if step not in STEPS]
        if unknown:
            raise ConfigurationError(f"withdrawal_strategy.steps: unknown step '{unknown[0]}'")
        if len(steps) != len(set(steps)):
            raise ConfigurationError("withdrawal_strategy.steps: steps must not repeat")
        if not steps or steps[0] != MANDATORY_MINIMUM:
            raise ConfigurationError(f"withdrawal_strategy.steps: '{MANDATORY_MINIMUM}' must come first")
        missing = [name for name in ACCOUNTS if name not in steps]
        if missing:
            raise ConfigurationError(f"withdrawal_strategy.steps: missing account '{missing[0]}'")

    @property
    def account_order(self) -> tuple[str, ...]:
        return self.steps[1:]


DEFAULT_STRATEGY = WithdrawalStrategy()


@dataclass(frozen=True, slots=True)
class WithdrawalPlan:
    withdrawals_by_account: dict[str, float] = field(default_factory=dict)
    mandatory_minimum: float = 0.0
    shortfall: float = 0.0

    @property
    def total(self) -> float:
        return sum(self.withdrawals_by_account.values())

    def amount(self, account: str) -> float:
        return self.withdrawals_by_account.get(account, 0.0)


def sequence_withdrawals(
    funding_gap: float,
    balances: Mapping[str, float],
    mandatory_min: float,
    strategy: WithdrawalStrategy = DEFAULT_STRATEGY,
) -> WithdrawalPlan:
    """Decide how much to draw from each account to cover ``funding_gap``.

    The mandatory minimum is always taken from the registered account, even
    when the gap is already covered; it counts towards the gap. Each account is
    capped at its balance and the unmet remainder is returned as ``shortfall``.
    """
    available = {name: max(0.0, balances.get(name, 0.0)) for name in ACCOUNTS}
    withdrawals = {name: 0.0 for name in ACCOUNTS}

    mandatory = min(max(0.0, mandatory_min), available[REGISTERED])
    withdrawals[REGISTERED] = mandatory
    remaining = max(0.0, funding_gap) - mandatory

    for name in strategy.account_order:
        if remaining <= 0:
            break
        room = available[name] - withdrawals[name]
        if room <= BALANCE_EPSILON:
            continue
        amount = min(room, remaining)
        withdrawals[name] += amount
        remaining -= amount

    shortfall = remaining if remaining > BALANCE_EPSILON else 0.0
    return WithdrawalPlan(withdrawals_by_account=withdrawals, mandatory_minimum=mandatory, shortfall=shortfall)
