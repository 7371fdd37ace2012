"""What-if scenario variants derived from a baseline scenario."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import ClassVar, Union

from .benefits import adjustment_factor
from .errors import ConfigurationError, UnknownVariantError, ValidationError
from .rates import BENEFIT_KINDS, RateProvider, default_provider
from .schema import ACCOUNT_FIELDS, AgeOverride, Scenario


@dataclass(frozen=True, slots=True)
class FrontLoad:
    """Spend more in the early retirement years and less later on.

    Replaces the expense overrides with three phases relative to the baseline
    fixed monthly amount, starting at retirement, ten and twenty years later.
    """

    go_go: float = 1.30
    slow_go: float = 0.85
    no_go: float = 0.75

    name: ClassVar[str] = "front_load"


@dataclass(frozen=True, slots=True)
class DelayBenefits:
    age: int = 70

    name: ClassVar[str] = "delay_benefits"


@dataclass(frozen=True, slots=True)
class RetireEarly:
    years: int = 3

    name: ClassVar[str] = "retire_early"

    def __post_init__(self) -> None:
        if self.years < 1:
            raise ConfigurationError("retire_early.years: must be >= 1")


Variant = Union[FrontLoad, DelayBenefits, RetireEarly]

VARIANT_TYPES: dict[str, type] = {cls.name: cls for cls in (FrontLoad, DelayBenefits, RetireEarly)}


def _front_load(scenario: Scenario, variant: FrontLoad) -> None:
    baseline = scenario.expenses.fixed_monthly
    retirement_age = scenario.basic_inputs.retirement_age
    scenario.expenses.age_overrides = [
        AgeOverride(age=retirement_age, monthly_amount=baseline * variant.go_go),
        AgeOverride(age=retirement_age + 10, monthly_amount=baseline * variant.slow_go),
        AgeOverride(age=retirement_age + 20, monthly_amount=baseline * variant.no_go),
    ]
    scenario.name = "Front-Load the Fun"


def _delay_benefits(scenario: Scenario, variant: DelayBenefits) -> None:
    for kind in BENEFIT_KINDS:
        election = scenario.income_sources.election(kind)
        if election is not None:
            election.election_age = variant.age
    scenario.name = f"Delay Benefits to {variant.age}"


def _early_retirement_age(scenario: Scenario, variant: RetireEarly) -> int:
    new_age = scenario.basic_inputs.retirement_age - variant.years
    if new_age < scenario.basic_inputs.current_age:
        raise ValidationError(
            f"basic_inputs.retirement_age: retiring {variant.years} years earlier would be before current_age"
        )
    return new_age


def _retire_early(scenario: Scenario, variant: RetireEarly) -> None:
    scenario.basic_inputs.retirement_age = _early_retirement_age(scenario, variant)
    scenario.name = f"Retire {variant.years} Years Earlier"


def apply_variant(scenario: Scenario, variant: Variant) -> Scenario:
    """Return a modified copy of ``scenario``; the baseline is left untouched."""
    derived = copy.deepcopy(scenario)
    if isinstance(variant, FrontLoad):
        _front_load(derived, variant)
    elif isinstance(variant, DelayBenefits):
        _delay_benefits(derived, variant)
    elif isinstance(variant, RetireEarly):
        _retire_early(derived, variant)
    else:
        raise UnknownVariantError(type(variant).__name__, baseline=scenario)
    return derived


def variant_from_name(name: str, **params: int | float) -> Variant:
    variant_type = VARIANT_TYPES.get(name)
    if variant_type is None:
        raise UnknownVariantError(name)
    try:
        return variant_type(**params)
    except TypeError as exc:
        raise ConfigurationError(f"{name}: invalid parameters {sorted(params)}") from exc


def apply_named_variant(scenario: Scenario, name: str, **params: int | float) -> Scenario:
    """Build a variant by identifier and apply it.

    An unknown identifier raises ``UnknownVariantError`` whose ``baseline`` is
    the unmodified ``scenario``.
    """
    try:
        variant = variant_from_name(name, **params)
    except UnknownVariantError as exc:
        raise UnknownVariantError(name, baseline=scenario) from exc
    return apply_variant(scenario, variant)


GO_GO_YEARS = 10
DEFAULT_LEGACY_FRACTION = 0.25
# Rough spending cut per unit of legacy fraction: 13% of spending to keep 25%.
LEGACY_SPENDING_CUT = 0.52


@dataclass(frozen=True, slots=True)
class VariantEstimate:
    """Back-of-the-envelope effect of a variant, computed without a projection.

    Amounts are in today's dollars. Fields left as ``None`` do not apply to
    the variant that produced the estimate.
    """

    extra_spending_go_go: float | None = None
    spending_reduction_later: float | None = None
    portfolio_impact_years: float | None = None
    lifetime_income_gain: float | None = None
    required_portfolio_extra: float | None = None
    legacy_target: float | None = None
    spending_adjustment: float | None = None


def _base_annual_spending(scenario: Scenario) -> float:
    return scenario.expenses.fixed_monthly * 12.0 + scenario.expenses.variable_annual


def _years_between(first_age: int, last_age: int) -> int:
    return max(0, last_age - first_age + 1)


def _estimate_front_load(scenario: Scenario, variant: FrontLoad) -> VariantEstimate:
    baseline_annual = scenario.expenses.fixed_monthly * 12.0
    retirement_age = scenario.basic_inputs.retirement_age
    horizon = scenario.basic_inputs.life_expectancy_age

    go_go_years = min(GO_GO_YEARS, _years_between(retirement_age, horizon))
    slow_go_years = min(GO_GO_YEARS, _years_between(retirement_age + GO_GO_YEARS, horizon))
    no_go_years = _years_between(retirement_age + 2 * GO_GO_YEARS, horizon)

    extra = baseline_annual * (variant.go_go - 1.0) * go_go_years
    reduction = baseline_annual * ((1.0 - variant.slow_go) * slow_go_years + (1.0 - variant.no_go) * no_go_years)
    spending = _base_annual_spending(scenario)
    return VariantEstimate(
        extra_spending_go_go=extra,
        spending_reduction_later=reduction,
        portfolio_impact_years=extra / spending if spending > 0 else 0.0,
    )


def _estimate_delay_benefits(scenario: Scenario, variant: DelayBenefits, provider: RateProvider) -> VariantEstimate:
    annual_gain = 0.0
    bridge = 0.0
    for kind in BENEFIT_KINDS:
        election = scenario.income_sources.election(kind)
        if election is None or election.election_age >= variant.age:
            continue
        params = provider.benefit(kind)
        reference_annual = election.monthly_amount * 12.0
        current = reference_annual * adjustment_factor(params, election.election_age)
        delayed = reference_annual * adjustment_factor(params, variant.age)
        annual_gain += delayed - current
        bridge += current * (variant.age - election.election_age)

    years_receiving = _years_between(variant.age, scenario.basic_inputs.life_expectancy_age)
    return VariantEstimate(lifetime_income_gain=annual_gain * years_receiving, required_portfolio_extra=bridge)


def _estimate_retire_early(scenario: Scenario, variant: RetireEarly) -> VariantEstimate:
    _early_retirement_age(scenario, variant)
    spending = _base_annual_spending(scenario)
    contributions = sum(
        account.annual_contribution
        for name in ACCOUNT_FIELDS
        if (account := scenario.assets.account(name)) is not None
    )
    extra = (spending + contributions) * variant.years
    return VariantEstimate(
        required_portfolio_extra=extra,
        portfolio_impact_years=extra / spending if spending > 0 else 0.0,
    )


def estimate_variant_impact(
    scenario: Scenario,
    variant: Variant,
    provider: RateProvider | None = None,
) -> VariantEstimate:
    """Quick estimate of what ``variant`` would change, without running a projection."""
    if isinstance(variant, FrontLoad):
        return _estimate_front_load(scenario, variant)
    if isinstance(variant, DelayBenefits):
        return _estimate_delay_benefits(scenario, variant, provider or default_provider())
    if isinstance(variant, RetireEarly):
        return _estimate_retire_early(scenario, variant)
    raise UnknownVariantError(type(variant).__name__, baseline=scenario)


def estimate_legacy_impact(scenario: Scenario, legacy_fraction: float = DEFAULT_LEGACY_FRACTION) -> VariantEstimate:
    """Balance to preserve for a legacy and the rough monthly spending cut that keeps it."""
    if not 0.0 <= legacy_fraction <= 1.0:
        raise ConfigurationError("legacy_fraction: must be between 0 and 1")
    return VariantEstimate(
        legacy_target=scenario.assets.starting_total() * legacy_fraction,
        spending_adjustment=-scenario.expenses.fixed_monthly * LEGACY_SPENDING_CUT * legacy_fraction,
    )
