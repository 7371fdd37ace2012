"""Semantic validation for scenarios."""

from __future__ import annotations

from dataclasses import dataclass, field

from .errors import ValidationError
from .rates import BENEFIT_KINDS, RateProvider, default_provider
from .schema import ACCOUNT_FIELDS, Scenario
from .tax_data import PROVINCE_NAMES

MAX_AGE = 120
MAX_REASONABLE_RETURN = 0.12
MAX_REASONABLE_INFLATION = 0.06
MAX_REASONABLE_HORIZON_AGE = 110


@dataclass(slots=True)
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _check_non_negative(result: ValidationResult, path: str, value: float) -> None:
    if value < 0:
        result.errors.append(f"{path}: must be >= 0")


def _check_rate(result: ValidationResult, path: str, value: float) -> None:
    if value <= -1.0:
        result.errors.append(f"{path}: must be > -1")
    elif value > 1.0:
        result.errors.append(f"{path}: must be <= 1 (rates are fractions, not percentages)")


def validate_scenario(scenario: Scenario, provider: RateProvider | None = None) -> ValidationResult:
    provider = provider or default_provider()
    result = ValidationResult()
    basic = scenario.basic_inputs

    if not 0 <= basic.current_age <= MAX_AGE:
        result.errors.append(f"basic_inputs.current_age: must be between 0 and {MAX_AGE}")
    if basic.retirement_age < basic.current_age:
        result.errors.append("basic_inputs.retirement_age: must be >= current_age")
    if basic.life_expectancy_age < basic.retirement_age:
        result.errors.append("basic_inputs.life_expectancy_age: must be >= retirement_age")
    if basic.life_expectancy_age > MAX_AGE:
        result.errors.append(f"basic_inputs.life_expectancy_age: must be <= {MAX_AGE}")
    if not provider.supports(basic.jurisdiction):
        expected = ", ".join(provider.jurisdictions)
        label = f"'{basic.jurisdiction}'"
        if basic.jurisdiction in PROVINCE_NAMES:
            label += f" ({PROVINCE_NAMES[basic.jurisdiction]})"
        result.errors.append(f"basic_inputs.jurisdiction: {label} is not supported; expected one of [{expected}]")

    for name in ACCOUNT_FIELDS:
        account = scenario.assets.account(name)
        if account is None:
            continue
        base = f"assets.{name}"
        _check_non_negative(result, f"{base}.balance", account.balance)
        _check_non_negative(result, f"{base}.annual_contribution", account.annual_contribution)
        if account.rate_of_return is not None:
            _check_rate(result, f"{base}.rate_of_return", account.rate_of_return)
        if account.cost_basis is not None:
            if name != "non_registered":
                result.warnings.append(f"{base}.cost_basis: only used for non_registered accounts")
            else:
                _check_non_negative(result, f"{base}.cost_basis", account.cost_basis)

    for kind in BENEFIT_KINDS:
        election = scenario.income_sources.election(kind)
        if election is None:
            continue
        base = f"income_sources.{kind}"
        _check_non_negative(result, f"{base}.monthly_amount", election.monthly_amount)
        params = provider.benefit(kind)
        if not params.min_election_age <= election.election_age <= params.max_election_age:
            result.errors.append(
                f"{base}.election_age: must be between {params.min_election_age} and {params.max_election_age}"
            )
        if election.monthly_amount > params.max_monthly:
            result.warnings.append(
                f"{base}.monthly_amount: {election.monthly_amount:,.2f} exceeds the {provider.year} maximum of {params.max_monthly:,.2f}"
            )

    for idx, item in enumerate(scenario.income_sources.other_income):
        base = f"income_sources.other_income[{idx}]"
        _check_non_negative(result, f"{base}.annual_amount", item.annual_amount)
        if item.start_age is not None and item.end_age is not None and item.end_age < item.start_age:
            result.errors.append(f"{base}.start_age/{base}.end_age: start_age must be <= end_age")

    expenses = scenario.expenses
    _check_non_negative(result, "expenses.fixed_monthly", expenses.fixed_monthly)
    _check_non_negative(result, "expenses.variable_annual", expenses.variable_annual)
    seen_ages: set[int] = set()
    for idx, override in enumerate(expenses.age_overrides):
        base = f"expenses.age_overrides[{idx}]"
        _check_non_negative(result, f"{base}.monthly_amount", override.monthly_amount)
        if override.age < basic.current_age:
            result.errors.append(f"{base}.age: must be >= current_age")
        elif override.age > basic.life_expectancy_age:
            result.warnings.append(f"{base}.age: {override.age} is beyond life_expectancy_age and never applies")
        if override.age in seen_ages:
            result.errors.append(f"{base}.age: duplicate override for age {override.age}")
        seen_ages.add(override.age)

    assumptions = scenario.assumptions
    _check_rate(result, "assumptions.pre_retirement_return", assumptions.pre_retirement_return)
    _check_rate(result, "assumptions.post_retirement_return", assumptions.post_retirement_return)
    _check_rate(result, "assumptions.inflation_rate", assumptions.inflation_rate)

    result.warnings.extend(check_scenario_sanity(scenario))
    return result


def check_scenario_sanity(scenario: Scenario) -> list[str]:
    """Warnings for values that are allowed but probably mistakes."""
    warnings: list[str] = []
    assumptions = scenario.assumptions
    for name in ("pre_retirement_return", "post_retirement_return"):
        value = getattr(assumptions, name)
        if MAX_REASONABLE_RETURN < value <= 1.0:
            warnings.append(f"assumptions.{name}: {value:.1%} is unusually high")
    for name in ACCOUNT_FIELDS:
        account = scenario.assets.account(name)
        if account is not None and account.rate_of_return is not None and MAX_REASONABLE_RETURN < account.rate_of_return <= 1.0:
            warnings.append(f"assets.{name}.rate_of_return: {account.rate_of_return:.1%} is unusually high")
    if MAX_REASONABLE_INFLATION < assumptions.inflation_rate <= 1.0:
        warnings.append(f"assumptions.inflation_rate: {assumptions.inflation_rate:.1%} is unusually high")
    if MAX_REASONABLE_HORIZON_AGE < scenario.basic_inputs.life_expectancy_age <= MAX_AGE:
        warnings.append(
            f"basic_inputs.life_expectancy_age: {scenario.basic_inputs.life_expectancy_age} is beyond {MAX_REASONABLE_HORIZON_AGE}"
        )
    if scenario.assets.starting_total() <= 0:
        warnings.append("assets: no starting balances; spending is funded by income only")
    return warnings


def ensure_valid(scenario: Scenario, provider: RateProvider | None = None) -> ValidationResult:
    """Validate and raise ``ValidationError`` carrying every error message."""
    result = validate_scenario(scenario, provider)
    if not result.is_valid:
        summary = "; ".join(result.errors[:3])
        more = f" (+{len(result.errors) - 3} more)" if len(result.errors) > 3 else ""
        raise ValidationError(f"invalid scenario '{scenario.name}': {summary}{more}", result.errors)
    return result
