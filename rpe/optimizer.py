"""Bisection search for the spending level that meets a terminal-balance target."""

from __future__ import annotations

import copy
from dataclasses import dataclass
import logging
import time

from .engine import CalculationResults, run_projection
from .errors import ConfigurationError, ConvergenceError
from .rates import RateProvider, default_provider
from .schema import Scenario
from .validate import ensure_valid
from .withdrawals import BALANCE_EPSILON, WithdrawalStrategy

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 1_000.0
DEFAULT_MAX_ITERATIONS = 60
DEFAULT_UPPER_BOUND = 1_000.0


@dataclass(slots=True)
class Trial:
    monthly_spending: float
    results: CalculationResults

    @property
    def final_balance(self) -> float:
        return self.results.final_portfolio_value

    @property
    def total_shortfall(self) -> float:
        return self.results.total_shortfall

    @property
    def objective(self) -> float:
        """Terminal position: the final balance, or minus the lifetime shortfall once money runs out."""
        if self.total_shortfall > BALANCE_EPSILON:
            return -self.total_shortfall
        return self.final_balance


@dataclass(slots=True)
class OptimizationResult:
    monthly_spending: float
    final_balance: float
    target_balance: float
    iterations: int
    converged: bool
    results: CalculationResults


def _with_spending(scenario: Scenario, monthly_spending: float) -> Scenario:
    """Copy of ``scenario`` spending ``monthly_spending`` in place of its fixed monthly amount.

    Age overrides move with it: scaled by the same ratio, or shifted by the
    same amount when the baseline is zero.
    """
    trial = copy.deepcopy(scenario)
    baseline = scenario.expenses.fixed_monthly
    trial.expenses.fixed_monthly = monthly_spending
    for override in trial.expenses.age_overrides:
        if baseline > 0:
            override.monthly_amount *= monthly_spending / baseline
        else:
            override.monthly_amount += monthly_spending
    return trial


def _result(trial: Trial, target: float, iterations: int, converged: bool) -> OptimizationResult:
    return OptimizationResult(
        monthly_spending=trial.monthly_spending,
        final_balance=trial.final_balance,
        target_balance=target,
        iterations=iterations,
        converged=converged,
        results=trial.results,
    )


def optimize_spending(
    scenario: Scenario,
    provider: RateProvider | None = None,
    *,
    target_balance: float = 0.0,
    legacy_fraction: float | None = None,
    tolerance: float = DEFAULT_TOLERANCE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    bounds: tuple[float, float] | None = None,
    timeout: float | None = None,
    strategy: WithdrawalStrategy | None = None,
) -> OptimizationResult:
    """Find the fixed monthly spending whose projection ends within ``tolerance`` of the target.

    ``legacy_fraction`` overrides ``target_balance`` with that share of the
    starting portfolio. Every projection counts against ``max_iterations``;
    running out raises ``ConvergenceError`` carrying the last trial. When
    ``timeout`` seconds pass, the best trial so far is returned unconverged.
    """
    if tolerance <= 0:
        raise ConfigurationError("tolerance: must be > 0")
    if max_iterations < 1:
        raise ConfigurationError("max_iterations: must be >= 1")
    if legacy_fraction is not None and not 0.0 <= legacy_fraction <= 1.0:
        raise ConfigurationError("legacy_fraction: must be between 0 and 1")
    if bounds is not None and not 0.0 <= bounds[0] < bounds[1]:
        raise ConfigurationError("bounds: expected 0 <= lower < upper")

    provider = provider or default_provider()
    ensure_valid(scenario, provider)

    target = target_balance
    if legacy_fraction is not None:
        target = legacy_fraction * scenario.assets.starting_total()
    deadline = None if timeout is None else time.monotonic() + timeout

    iterations = 0
    best: Trial | None = None

    def evaluate(monthly_spending: float) -> Trial:
        nonlocal iterations, best
        iterations += 1
        trial = Trial(monthly_spending, run_projection(_with_spending(scenario, monthly_spending), provider, strategy=strategy))
        logger.debug(
            "Trial %d: %.2f/month -> final %.2f, shortfall %.2f",
            iterations,
            monthly_spending,
            trial.final_balance,
            trial.total_shortfall,
        )
        if best is None or abs(trial.objective - target) < abs(best.objective - target):
            best = trial
        return trial

    def converged(trial: Trial) -> bool:
        return abs(trial.final_balance - target) <= tolerance and trial.total_shortfall <= tolerance

    def timed_out() -> bool:
        return deadline is not None and time.monotonic() >= deadline

    def exhausted(trial: Trial) -> ConvergenceError:
        return ConvergenceError(
            f"no spending level within {tolerance:,.0f} of target {target:,.0f} after {iterations} projections",
            last_trial=trial,
        )

    low, high = bounds if bounds is not None else (0.0, max(scenario.expenses.fixed_monthly, DEFAULT_UPPER_BOUND))

    low_trial = evaluate(low)
    if converged(low_trial):
        return _result(low_trial, target, iterations, True)
    if low_trial.objective < target:
        raise ConvergenceError(
            f"target {target:,.0f} is not reachable even at {low:,.2f}/month",
            last_trial=low_trial,
        )

    high_trial = evaluate(high)
    while high_trial.objective >= target and not converged(high_trial):
        if bounds is not None:
            raise ConvergenceError(
                f"upper bound {high:,.2f}/month still ends above target {target:,.0f}",
                last_trial=high_trial,
            )
        if iterations >= max_iterations:
            raise exhausted(high_trial)
        if timed_out():
            logger.warning("Spending search timed out after %d projections", iterations)
            return _result(best, target, iterations, False)
        low = high
        high *= 2.0
        previous = high_trial
        high_trial = evaluate(high)
        if high_trial.objective == previous.objective:
            raise ConfigurationError(
                f"spending does not affect the projection of '{scenario.name}'; nothing to optimize"
            )
    if converged(high_trial):
        return _result(high_trial, target, iterations, True)

    last = high_trial
    while iterations < max_iterations:
        if timed_out():
            logger.warning("Spending search timed out after %d projections", iterations)
            return _result(best, target, iterations, False)
        mid = (low + high) / 2.0
        last = evaluate(mid)
        if converged(last):
            logger.info(
                "Converged on %.2f/month after %d projections (final balance %.2f)",
                mid,
                iterations,
                last.final_balance,
            )
            return _result(last, target, iterations, True)
        if last.objective > target:
            low = mid
        else:
            high = mid

    logger.info("Spending search exhausted %d projections without converging", iterations)
    raise exhausted(last)
