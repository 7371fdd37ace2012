"""Progressive federal and regional income tax computation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .rates import Brackets, TaxCredits, validate_brackets
from .tax_data import CAPITAL_GAINS_INCLUSION_RATE

BracketsLike = Sequence[tuple[float | None, float]]


@dataclass(frozen=True, slots=True)
class TaxResult:
    federal_tax: float
    regional_tax: float
    credits: float
    total_tax: float
    effective_rate: float
    marginal_rate: float

    @classmethod
    def zero(cls) -> "TaxResult":
        return cls(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)


def index_brackets(brackets: BracketsLike, factor: float) -> Brackets:
    if factor == 1.0:
        return tuple(brackets)
    return tuple((None if upper is None else upper * factor, rate) for upper, rate in brackets)


def compute_progressive_tax(income: float, brackets: BracketsLike) -> float:
    if income <= 0:
        return 0.0

    tax = 0.0
    lower = 0.0
    for upper, rate in brackets:
        if income <= lower:
            break
        top = income if upper is None else min(income, upper)
        tax += (top - lower) * rate
        if upper is None:
            break
        lower = upper
    return max(0.0, tax)


def marginal_rate(income: float, brackets: BracketsLike) -> float:
    """Rate of the bracket that contains ``income``; a limit belongs to the bracket below it."""
    if income <= 0:
        return 0.0
    for upper, rate in brackets:
        if upper is None or income <= upper:
            return rate
    return brackets[-1][1]


def compute_tax(
    taxable_income: float,
    federal_brackets: BracketsLike,
    regional_brackets: BracketsLike,
) -> float:
    """Total federal plus regional tax on ``taxable_income`` before credits."""
    federal = validate_brackets(federal_brackets, "federal_brackets")
    regional = validate_brackets(regional_brackets, "regional_brackets")
    return compute_progressive_tax(taxable_income, federal) + compute_progressive_tax(taxable_income, regional)


def credit_base(credits: TaxCredits, *, age: int, net_income: float, index_factor: float = 1.0) -> float:
    """Credit-eligible amount before it is valued at the lowest bracket rate."""
    base = credits.basic_personal_amount * index_factor
    if age >= credits.age_amount_min_age and credits.age_amount > 0:
        threshold = credits.age_amount_threshold * index_factor
        reduction = max(0.0, net_income - threshold) * credits.age_amount_reduction_rate
        base += max(0.0, credits.age_amount * index_factor - reduction)
    return base


def compute_income_tax(
    taxable_income: float,
    *,
    age: int,
    federal_brackets: BracketsLike,
    regional_brackets: BracketsLike,
    federal_credits: TaxCredits,
    regional_credits: TaxCredits,
    index_factor: float = 1.0,
) -> TaxResult:
    """Tax after non-refundable credits, each jurisdiction floored at zero.

    Bracket limits and credit amounts are scaled by ``index_factor``; credits
    are valued at the lowest rate of their own jurisdiction.
    """
    if taxable_income <= 0:
        return TaxResult.zero()

    federal = index_brackets(federal_brackets, index_factor)
    regional = index_brackets(regional_brackets, index_factor)

    federal_gross = compute_progressive_tax(taxable_income, federal)
    regional_gross = compute_progressive_tax(taxable_income, regional)
    federal_credit = credit_base(federal_credits, age=age, net_income=taxable_income, index_factor=index_factor) * federal[0][1]
    regional_credit = credit_base(regional_credits, age=age, net_income=taxable_income, index_factor=index_factor) * regional[0][1]

    federal_tax = max(0.0, federal_gross - federal_credit)
    regional_tax = max(0.0, regional_gross - regional_credit)
    total = federal_tax + regional_tax
    applied_credits = (federal_gross - federal_tax) + (regional_gross - regional_tax)
    return TaxResult(
        federal_tax=federal_tax,
        regional_tax=regional_tax,
        credits=applied_credits,
        total_tax=total,
        effective_rate=total / taxable_income,
        marginal_rate=marginal_rate(taxable_income, federal) + marginal_rate(taxable_income, regional),
    )


def taxable_income(
    *,
    deferred_withdrawals: float = 0.0,
    capital_gains: float = 0.0,
    benefit_income: float = 0.0,
    other_income: float = 0.0,
) -> float:
    """Taxable income for one year.

    Tax-deferred withdrawals, benefits and other income count in full; realized
    non-registered gains count at the inclusion rate. Tax-free withdrawals never
    enter the sum.
    """
    return (
        max(0.0, deferred_withdrawals)
        + max(0.0, capital_gains) * CAPITAL_GAINS_INCLUSION_RATE
        + max(0.0, benefit_income)
        + max(0.0, other_income)
    )
