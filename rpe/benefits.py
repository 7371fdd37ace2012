"""Government benefit amounts: election-age adjustment, indexing and clawback."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ValidationError
from .rates import BenefitParameters


@dataclass(frozen=True, slots=True)
class BenefitPayment:
    gross: float
    clawback: float

    @property
    def net(self) -> float:
        return max(0.0, self.gross - self.clawback)


@dataclass(frozen=True, slots=True)
class ElectionComparison:
    optimal_age: int
    total_benefit: float
    totals_by_age: dict[int, float]


def adjustment_factor(params: BenefitParameters, election_age: float) -> float:
    """Multiplier applied to the reference amount for a given election age."""
    if not params.min_election_age <= election_age <= params.max_election_age:
        raise ValidationError(
            f"{params.kind}.election_age: must be between {params.min_election_age} and {params.max_election_age}"
        )

    table = params.adjustment_table
    for (low_age, low_mult), (high_age, high_mult) in zip(table, table[1:]):
        if election_age == low_age:
            return low_mult
        if low_age < election_age < high_age:
            weight = (election_age - low_age) / (high_age - low_age)
            return low_mult + (high_mult - low_mult) * weight
    return table[-1][1]


def benefit_clawback(
    params: BenefitParameters,
    gross_annual: float,
    net_income: float,
    index_factor: float = 1.0,
) -> float:
    """Recovery tax on a means-tested benefit, never more than the benefit itself."""
    if not params.means_tested or gross_annual <= 0:
        return 0.0
    if params.full_clawback_income is not None and net_income >= params.full_clawback_income * index_factor:
        return gross_annual
    excess = net_income - params.clawback_threshold * index_factor
    if excess <= 0:
        return 0.0
    return min(gross_annual, excess * params.clawback_rate)


def benefit_payment(
    params: BenefitParameters,
    *,
    monthly_amount: float,
    age: int,
    election_age: int,
    net_income: float = 0.0,
    inflation_rate: float = 0.0,
    index_factor: float = 1.0,
) -> BenefitPayment:
    if age < election_age:
        return BenefitPayment(gross=0.0, clawback=0.0)

    years_receiving = age - election_age
    gross = monthly_amount * 12.0 * adjustment_factor(params, election_age) * (1.0 + inflation_rate) ** years_receiving
    gross = max(0.0, gross)
    return BenefitPayment(gross=gross, clawback=benefit_clawback(params, gross, net_income, index_factor))


def compute_benefit(
    params: BenefitParameters,
    *,
    monthly_amount: float,
    age: int,
    election_age: int,
    net_income: float = 0.0,
    inflation_rate: float = 0.0,
    index_factor: float = 1.0,
) -> float:
    """Annual benefit after clawback.

    ``monthly_amount`` is the amount at the reference age. Payments rise with
    ``inflation_rate`` from the election age; ``index_factor`` scales the
    clawback threshold and ceiling. ``net_income`` is the prior year's.
    """
    return benefit_payment(
        params,
        monthly_amount=monthly_amount,
        age=age,
        election_age=election_age,
        net_income=net_income,
        inflation_rate=inflation_rate,
        index_factor=index_factor,
    ).net


def estimate_pension_from_earnings(params: BenefitParameters, average_earnings: float) -> float:
    """Rough monthly entitlement at the reference age, proportional to earnings up to the YMPE."""
    if params.ympe is None or params.ympe <= 0:
        raise ValidationError(f"{params.kind}: earnings estimate needs a YMPE")
    if average_earnings <= 0:
        return 0.0
    if average_earnings >= params.ympe:
        return params.max_monthly
    return params.max_monthly * average_earnings / params.ympe


def optimal_election_age(
    params: BenefitParameters,
    monthly_amount: float,
    life_expectancy_age: int,
) -> ElectionComparison:
    """Compare undiscounted lifetime totals across every whole election age in the table."""
    totals: dict[int, float] = {}
    for election_age in range(params.min_election_age, params.max_election_age + 1):
        years = max(0, life_expectancy_age - election_age)
        totals[election_age] = monthly_amount * adjustment_factor(params, election_age) * 12.0 * years

    best_age = max(totals, key=lambda age: (totals[age], -age))
    return ElectionComparison(optimal_age=best_age, total_benefit=totals[best_age], totals_by_age=totals)
