"""Average-cost basis tracking for the non-registered account."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class CostBasisTracker:
    total_basis: float = 0.0

    def add_basis(self, amount: float) -> None:
        """Record new money (contributions, reinvested surplus) at full basis."""
        if amount > 0:
            self.total_basis += amount

    def realize(self, amount: float, balance_before: float) -> float:
        """Remove ``amount`` from the account and return the capital gain it realizes."""
        if amount <= 0 or balance_before <= 0:
            return 0.0

        sold = min(amount, balance_before)
        basis_share = min(1.0, self.total_basis / balance_before) * sold
        self.total_basis = max(0.0, self.total_basis - basis_share)
        return max(0.0, sold - basis_share)

    def unrealized_gain(self, balance: float) -> float:
        return max(0.0, balance - self.total_basis)
