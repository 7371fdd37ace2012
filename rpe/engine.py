"""Core year-by-year deterministic projection engine."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Iterable

from .benefits import benefit_payment
from .cost_basis import CostBasisTracker
from .rates import BENEFIT_KINDS, RateProvider, default_provider
from .rrif import minimum_withdrawal
from .schema import Expenses, OtherIncome, Scenario
from .tax import TaxResult, compute_income_tax, taxable_income
from .validate import ensure_valid
from .withdrawals import (
    ACCOUNTS,
    BALANCE_EPSILON,
    DEFAULT_STRATEGY,
    NON_REGISTERED,
    REGISTERED,
    WithdrawalStrategy,
    sequence_withdrawals,
)

logger = logging.getLogger(__name__)

ACCUMULATION = "accumulation"
RETIREMENT = "retirement"


@dataclass(frozen=True, slots=True)
class YearlyProjection:
    age: int
    year: int
    phase: str
    opening_balances: dict[str, float]
    contributions: dict[str, float]
    withdrawals: dict[str, float]
    mandatory_minimum: float
    growth: dict[str, float]
    closing_balances: dict[str, float]
    benefit_income: dict[str, float]
    benefit_clawback: dict[str, float]
    other_income: float
    capital_gains: float
    expenses: float
    funding_gap: float
    taxable_income: float
    tax: TaxResult
    net_spendable_income: float
    surplus_reinvested: float
    shortfall: float
    expenses_funded: bool
    depleted: bool

    @property
    def opening_total(self) -> float:
        return sum(self.opening_balances.values())

    @property
    def closing_total(self) -> float:
        return sum(self.closing_balances.values())

    @property
    def total_withdrawals(self) -> float:
        return sum(self.withdrawals.values())

    @property
    def total_benefits(self) -> float:
        return sum(self.benefit_income.values())

    @property
    def gross_income(self) -> float:
        return self.total_benefits + self.other_income + self.total_withdrawals


@dataclass(slots=True)
class CalculationResults:
    scenario_name: str
    years: list[YearlyProjection]
    final_portfolio_value: float
    depletion_age: int | None
    total_tax_paid: float
    total_benefit_income: float
    success: bool
    total_shortfall: float
    portfolio_at_retirement: float
    first_year_retirement_income: float
    average_tax_rate_in_retirement: float
    benefit_totals: dict[str, float] = field(default_factory=dict)

    def retirement_years(self) -> list[YearlyProjection]:
        return [year for year in self.years if year.phase == RETIREMENT]

    def year_at(self, age: int) -> YearlyProjection:
        for year in self.years:
            if year.age == age:
                return year
        raise KeyError(age)


def _growth_rate(scenario: Scenario, account_name: str, phase: str) -> float:
    account = scenario.assets.account(account_name)
    if account is not None and account.rate_of_return is not None:
        return account.rate_of_return
    if phase == ACCUMULATION:
        return scenario.assumptions.pre_retirement_return
    return scenario.assumptions.post_retirement_return


def annual_expenses(expenses: Expenses, *, age: int, current_age: int, inflation_rate: float) -> float:
    """Spending for ``age``.

    The latest override at or before ``age`` replaces the whole base amount
    (fixed monthly plus variable annual). Amounts are stated in current-age
    dollars and compound from ``current_age`` when indexed.
    """
    amount = expenses.fixed_monthly * 12.0 + expenses.variable_annual
    for override in sorted(expenses.age_overrides, key=lambda item: item.age):
        if override.age > age:
            break
        amount = override.monthly_amount * 12.0

    if expenses.indexed_to_inflation:
        amount *= (1.0 + inflation_rate) ** max(0, age - current_age)
    return max(0.0, amount)


def other_income_for_age(items: Iterable[OtherIncome], *, age: int, retirement_age: int, inflation_rate: float) -> float:
    total = 0.0
    for item in items:
        start = retirement_age if item.start_age is None else item.start_age
        if age < start or (item.end_age is not None and age > item.end_age):
            continue
        amount = item.annual_amount
        if item.indexed_to_inflation:
            amount *= (1.0 + inflation_rate) ** (age - start)
        total += max(0.0, amount)
    return total


def _summarize(scenario: Scenario, years: list[YearlyProjection]) -> CalculationResults:
    retirement = [year for year in years if year.phase == RETIREMENT]
    depletion_age = next((year.age for year in retirement if year.depleted), None)
    total_shortfall = sum(year.shortfall for year in years)

    benefit_totals = {kind: sum(year.benefit_income.get(kind, 0.0) for year in years) for kind in BENEFIT_KINDS}
    retirement_taxable = sum(year.taxable_income for year in retirement)
    retirement_tax = sum(year.tax.total_tax for year in retirement)

    first = retirement[0] if retirement else None
    return CalculationResults(
        scenario_name=scenario.name,
        years=years,
        final_portfolio_value=years[-1].closing_total if years else 0.0,
        depletion_age=depletion_age,
        total_tax_paid=sum(year.tax.total_tax for year in years),
        total_benefit_income=sum(benefit_totals.values()),
        success=depletion_age is None and total_shortfall <= BALANCE_EPSILON,
        total_shortfall=total_shortfall,
        portfolio_at_retirement=first.opening_total if first else 0.0,
        first_year_retirement_income=first.net_spendable_income if first else 0.0,
        average_tax_rate_in_retirement=retirement_tax / retirement_taxable if retirement_taxable > 0 else 0.0,
        benefit_totals=benefit_totals,
    )


def run_projection(
    scenario: Scenario,
    provider: RateProvider | None = None,
    *,
    strategy: WithdrawalStrategy | None = None,
    start_year: int | None = None,
) -> CalculationResults:
    """Simulate one entry per age from current age through life expectancy.

    The scenario is validated first and never mutated. Running out of money is
    reported through ``shortfall``/``depleted`` on each year, not raised.
    """
    provider = provider or default_provider()
    strategy = strategy or DEFAULT_STRATEGY
    ensure_valid(scenario, provider)

    basic = scenario.basic_inputs
    assumptions = scenario.assumptions
    inflation = assumptions.inflation_rate
    first_year = provider.year if start_year is None else start_year
    federal_brackets, regional_brackets = provider.brackets_for(basic.jurisdiction)
    federal_credits, regional_credits = provider.credits_for(basic.jurisdiction)

    balances = {name: 0.0 for name in ACCOUNTS}
    for name in ACCOUNTS:
        account = scenario.assets.account(name)
        if account is not None:
            balances[name] = float(account.balance)
    non_registered = scenario.assets.non_registered
    basis = CostBasisTracker(
        total_basis=balances[NON_REGISTERED]
        if non_registered is None or non_registered.cost_basis is None
        else non_registered.cost_basis
    )

    elections = {
        kind: (scenario.income_sources.election(kind), provider.benefit(kind))
        for kind in BENEFIT_KINDS
        if scenario.income_sources.election(kind) is not None
    }

    logger.debug(
        "Projecting '%s' ages %d-%d (retire at %d, %s)",
        scenario.name,
        basic.current_age,
        basic.life_expectancy_age,
        basic.retirement_age,
        basic.jurisdiction,
    )

    years: list[YearlyProjection] = []
    prior_net_income = 0.0
    depleted = False

    for age in range(basic.current_age, basic.life_expectancy_age + 1):
        elapsed = age - basic.current_age
        phase = ACCUMULATION if age < basic.retirement_age else RETIREMENT
        index_factor = (1.0 + inflation) ** elapsed if assumptions.index_tax_brackets else 1.0
        opening = dict(balances)

        benefit_income: dict[str, float] = {}
        benefit_clawback: dict[str, float] = {}
        for kind, (election, params) in elections.items():
            payment = benefit_payment(
                params,
                monthly_amount=election.monthly_amount,
                age=age,
                election_age=election.election_age,
                net_income=prior_net_income,
                inflation_rate=inflation,
                index_factor=index_factor,
            )
            benefit_income[kind] = payment.net
            benefit_clawback[kind] = payment.clawback

        other = other_income_for_age(
            scenario.income_sources.other_income,
            age=age,
            retirement_age=basic.retirement_age,
            inflation_rate=inflation,
        )
        guaranteed = sum(benefit_income.values()) + other

        contributions = {name: 0.0 for name in ACCOUNTS}
        withdrawals = {name: 0.0 for name in ACCOUNTS}
        mandatory = 0.0
        gains = 0.0
        expenses = 0.0
        funding_gap = 0.0
        surplus = 0.0
        shortfall = 0.0

        if phase == ACCUMULATION:
            for name in ACCOUNTS:
                account = scenario.assets.account(name)
                if account is not None and account.annual_contribution > 0:
                    contributions[name] = account.annual_contribution
                    balances[name] += account.annual_contribution
            basis.add_basis(contributions[NON_REGISTERED])
        else:
            expenses = annual_expenses(
                scenario.expenses,
                age=age,
                current_age=basic.current_age,
                inflation_rate=inflation,
            )
            funding_gap = expenses - guaranteed
            required = minimum_withdrawal(age, balances[REGISTERED], provider.withdrawal_schedule)
            plan = sequence_withdrawals(funding_gap, balances, required, strategy)
            mandatory = plan.mandatory_minimum
            shortfall = plan.shortfall
            for name in ACCOUNTS:
                amount = plan.amount(name)
                if amount <= 0:
                    continue
                if name == NON_REGISTERED:
                    gains = basis.realize(amount, balances[name])
                withdrawals[name] = amount
                balances[name] = max(0.0, balances[name] - amount)

        taxable = taxable_income(
            deferred_withdrawals=withdrawals[REGISTERED],
            capital_gains=gains,
            benefit_income=sum(benefit_income.values()),
            other_income=other,
        )
        tax = compute_income_tax(
            taxable,
            age=age,
            federal_brackets=federal_brackets,
            regional_brackets=regional_brackets,
            federal_credits=federal_credits,
            regional_credits=regional_credits,
            index_factor=index_factor,
        )
        net_spendable = guaranteed + sum(withdrawals.values()) - tax.total_tax

        if phase == RETIREMENT and not depleted:
            surplus = max(0.0, net_spendable - expenses)
            if surplus > BALANCE_EPSILON:
                balances[NON_REGISTERED] += surplus
                basis.add_basis(surplus)
            else:
                surplus = 0.0

        growth: dict[str, float] = {}
        for name in ACCOUNTS:
            rate = _growth_rate(scenario, name, phase)
            growth[name] = balances[name] * rate
            balances[name] = max(0.0, balances[name] + growth[name])

        if phase == RETIREMENT and not depleted and (shortfall > 0 or sum(balances.values()) <= BALANCE_EPSILON):
            depleted = True
            logger.info("Scenario '%s' depleted at age %d", scenario.name, age)
        if depleted:
            balances = {name: 0.0 for name in ACCOUNTS}

        years.append(
            YearlyProjection(
                age=age,
                year=first_year + elapsed,
                phase=phase,
                opening_balances=opening,
                contributions=contributions,
                withdrawals=withdrawals,
                mandatory_minimum=mandatory,
                growth=growth,
                closing_balances=dict(balances),
                benefit_income=benefit_income,
                benefit_clawback=benefit_clawback,
                other_income=other,
                capital_gains=gains,
                expenses=expenses,
                funding_gap=funding_gap,
                taxable_income=taxable,
                tax=tax,
                net_spendable_income=net_spendable,
                surplus_reinvested=surplus,
                shortfall=shortfall,
                expenses_funded=shortfall <= 0,
                depleted=depleted,
            )
        )
        prior_net_income = taxable

    results = _summarize(scenario, years)
    logger.debug(
        "Projection '%s' finished: final %.2f, depletion age %s, tax %.2f",
        scenario.name,
        results.final_portfolio_value,
        results.depletion_age,
        results.total_tax_paid,
    )
    return results


def compare_scenarios(
    scenarios: Iterable[Scenario],
    provider: RateProvider | None = None,
    *,
    strategy: WithdrawalStrategy | None = None,
) -> dict[str, CalculationResults]:
    """Run several scenarios against the same provider, keyed by scenario name."""
    provider = provider or default_provider()
    return {scenario.name: run_projection(scenario, provider, strategy=strategy) for scenario in scenarios}
