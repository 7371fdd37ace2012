"""Plain-text and JSON presentation of projection results."""

from __future__ import annotations

from dataclasses import asdict, dataclass
import json
from pathlib import Path
from typing import Any

from .engine import RETIREMENT, CalculationResults
from .rates import OLD_AGE_SECURITY, PENSION_PLAN
from .withdrawals import ACCOUNTS

SUFFICIENT = "sufficient"
CONCERNING = "concerning"
DEPLETED = "depleted"

# Ending below this share of the retirement-day portfolio is flagged.
CONCERNING_FRACTION = 0.30

BENEFIT_LABELS = {
    PENSION_PLAN: "CPP",
    OLD_AGE_SECURITY: "OAS",
}


@dataclass(slots=True)
class FormattedSummary:
    scenario_name: str
    monthly_after_tax_income: float
    success_indicator: str
    retirement_age: int
    years_in_retirement: int
    starting_balance: float
    ending_balance: float
    depletion_age: int | None


@dataclass(slots=True)
class TaxSummary:
    total_tax: float
    federal_tax: float
    regional_tax: float
    credits_applied: float
    average_rate_in_retirement: float
    peak_marginal_rate: float


@dataclass(slots=True)
class Milestone:
    age: int
    label: str


@dataclass(slots=True)
class BalancePoint:
    age: int
    balance: float
    milestone: str | None = None


@dataclass(slots=True)
class IncomePoint:
    """Where one year's money came from, for an income composition chart."""

    age: int
    withdrawals: dict[str, float]
    benefits: dict[str, float]
    other_income: float
    tax: float

    @property
    def total(self) -> float:
        return sum(self.withdrawals.values()) + sum(self.benefits.values()) + self.other_income


def _money(value: float) -> str:
    return f"${value:,.0f}"


def format_summary(results: CalculationResults, retirement_age: int) -> FormattedSummary:
    first = next((year for year in results.years if year.age >= retirement_age), None)
    if first is None:
        raise ValueError("results contain no retirement years")
    last = results.years[-1]

    if results.depletion_age is not None:
        indicator = DEPLETED
    elif results.final_portfolio_value < first.opening_total * CONCERNING_FRACTION:
        indicator = CONCERNING
    else:
        indicator = SUFFICIENT

    return FormattedSummary(
        scenario_name=results.scenario_name,
        monthly_after_tax_income=first.net_spendable_income / 12.0,
        success_indicator=indicator,
        retirement_age=first.age,
        years_in_retirement=last.age - first.age,
        starting_balance=results.years[0].opening_total,
        ending_balance=results.final_portfolio_value,
        depletion_age=results.depletion_age,
    )


def format_tax_summary(results: CalculationResults) -> TaxSummary:
    return TaxSummary(
        total_tax=results.total_tax_paid,
        federal_tax=sum(year.tax.federal_tax for year in results.years),
        regional_tax=sum(year.tax.regional_tax for year in results.years),
        credits_applied=sum(year.tax.credits for year in results.years),
        average_rate_in_retirement=results.average_tax_rate_in_retirement,
        peak_marginal_rate=max((year.tax.marginal_rate for year in results.years), default=0.0),
    )


def balance_milestones(results: CalculationResults) -> list[Milestone]:
    """Ages worth annotating on a balance chart, in age order."""
    milestones: list[Milestone] = []
    previous = None
    mandatory_started = False
    for year in results.years:
        if year.phase == RETIREMENT and (previous is None or previous.phase != RETIREMENT):
            milestones.append(Milestone(year.age, "Retirement"))
        for kind, label in BENEFIT_LABELS.items():
            started = year.benefit_income.get(kind, 0.0) > 0 or year.benefit_clawback.get(kind, 0.0) > 0
            was_paid = previous is not None and (
                previous.benefit_income.get(kind, 0.0) > 0 or previous.benefit_clawback.get(kind, 0.0) > 0
            )
            if started and not was_paid:
                milestones.append(Milestone(year.age, f"{label} starts"))
        if not mandatory_started and year.mandatory_minimum > 0:
            mandatory_started = True
            milestones.append(Milestone(year.age, "RRIF minimum withdrawals begin"))
        if year.age == results.depletion_age:
            milestones.append(Milestone(year.age, "Portfolio depleted"))
        previous = year
    return milestones


def balance_series(results: CalculationResults) -> list[BalancePoint]:
    """Closing balance per age, annotated with that age's milestones."""
    labels: dict[int, list[str]] = {}
    for milestone in balance_milestones(results):
        labels.setdefault(milestone.age, []).append(milestone.label)
    return [
        BalancePoint(
            age=year.age,
            balance=year.closing_total,
            milestone=", ".join(labels[year.age]) if year.age in labels else None,
        )
        for year in results.years
    ]


def income_series(results: CalculationResults) -> list[IncomePoint]:
    return [
        IncomePoint(
            age=year.age,
            withdrawals=dict(year.withdrawals),
            benefits=dict(year.benefit_income),
            other_income=year.other_income,
            tax=year.tax.total_tax,
        )
        for year in results.years
    ]


def results_to_dict(results: CalculationResults) -> dict[str, Any]:
    data = asdict(results)
    for raw, year in zip(data["years"], results.years):
        raw["opening_total"] = year.opening_total
        raw["closing_total"] = year.closing_total
    return data


def write_results(path: str | Path, results: CalculationResults) -> None:
    Path(path).write_text(json.dumps(results_to_dict(results), indent=2), encoding="utf-8")


def summary_lines(results: CalculationResults, retirement_age: int) -> list[str]:
    summary = format_summary(results, retirement_age)
    lines = [
        f"Scenario: {summary.scenario_name}",
        f"Outlook: {summary.success_indicator}",
        f"Monthly after-tax income at {summary.retirement_age}: {_money(summary.monthly_after_tax_income)}",
        f"Years in retirement: {summary.years_in_retirement}",
        f"Starting balance: {_money(summary.starting_balance)}",
        f"Ending balance: {_money(summary.ending_balance)}",
        f"Lifetime tax: {_money(results.total_tax_paid)}",
        f"Lifetime benefits: {_money(results.total_benefit_income)}",
    ]
    if summary.depletion_age is not None:
        lines.append(f"Depleted at age {summary.depletion_age} (shortfall {_money(results.total_shortfall)})")
    return lines


def render_table(results: CalculationResults) -> str:
    headers = ["Age", "Year", "Phase", "Opening", *[name.replace("_", " ").title() for name in ACCOUNTS], "Benefits", "Expenses", "Tax", "Net", "Closing", "Flag"]
    rows = [headers]
    for year in results.years:
        flag = "DEPLETED" if year.depleted else ("SHORT" if year.shortfall > 0 else "")
        rows.append(
            [
                str(year.age),
                str(year.year),
                year.phase,
                _money(year.opening_total),
                *[_money(year.withdrawals[name]) for name in ACCOUNTS],
                _money(year.total_benefits),
                _money(year.expenses),
                _money(year.tax.total_tax),
                _money(year.net_spendable_income),
                _money(year.closing_total),
                flag,
            ]
        )

    widths = [max(len(row[col]) for row in rows) for col in range(len(headers))]
    lines = ["  ".join(cell.rjust(width) for cell, width in zip(row, widths)).rstrip() for row in rows]
    lines.insert(1, "  ".join("-" * width for width in widths))
    return "\n".join(lines)
