"""Read-only rate, bracket and benefit parameter provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import json
import logging
from pathlib import Path
from typing import Any

from .errors import ConfigurationError
from .schema import _expect_dict, _expect_list, _integer, _number, _optional, _require
from .tax_data import (
    AGE_AMOUNT_MIN_AGE,
    BASE_TAX_YEAR,
    CPP_PARAMETERS,
    FEDERAL_AGE_AMOUNT,
    FEDERAL_BASIC_PERSONAL_AMOUNT,
    FEDERAL_BRACKETS,
    OAS_PARAMETERS,
    PROVINCIAL_AGE_AMOUNT,
    PROVINCIAL_BASIC_PERSONAL_AMOUNT,
    PROVINCIAL_BRACKETS,
    RRIF_MINIMUM_AGE,
    RRIF_MINIMUM_FRACTIONS,
)

logger = logging.getLogger(__name__)

PENSION_PLAN = "pension_plan"
OLD_AGE_SECURITY = "old_age_security"
BENEFIT_KINDS = (PENSION_PLAN, OLD_AGE_SECURITY)

Brackets = tuple[tuple[float | None, float], ...]


def validate_brackets(brackets: Any, label: str = "brackets") -> Brackets:
    """Check ordering and rate invariants and return the brackets as a tuple."""
    if not brackets:
        raise ConfigurationError(f"{label}: at least one bracket is required")

    normalized: list[tuple[float | None, float]] = []
    previous_upper = 0.0
    previous_rate = 0.0
    for idx, entry in enumerate(brackets):
        path = f"{label}[{idx}]"
        try:
            upper, rate = entry
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"{path}: expected (upper_limit, rate) pair") from exc
        rate = _number(rate, f"{path}.rate", ConfigurationError)
        if not 0.0 <= rate <= 1.0:
            raise ConfigurationError(f"{path}.rate: must be between 0 and 1")
        if rate < previous_rate:
            raise ConfigurationError(f"{path}.rate: rates must be non-decreasing")
        if upper is None:
            if idx != len(brackets) - 1:
                raise ConfigurationError(f"{path}.upper_limit: only the last bracket may be unbounded")
        else:
            upper = _number(upper, f"{path}.upper_limit", ConfigurationError)
            if upper <= previous_upper:
                raise ConfigurationError(f"{path}.upper_limit: limits must be strictly increasing")
            previous_upper = upper
        previous_rate = rate
        normalized.append((upper, rate))

    if normalized[-1][0] is not None:
        raise ConfigurationError(f"{label}: last bracket must be unbounded")
    return tuple(normalized)


@dataclass(frozen=True, slots=True)
class TaxCredits:
    """Non-refundable credit amounts for one jurisdiction."""

    basic_personal_amount: float = 0.0
    age_amount: float = 0.0
    age_amount_threshold: float = 0.0
    age_amount_reduction_rate: float = 0.0
    age_amount_min_age: int = AGE_AMOUNT_MIN_AGE

    def __post_init__(self) -> None:
        for name in ("basic_personal_amount", "age_amount", "age_amount_threshold"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"credits.{name}: must be >= 0")
        if not 0.0 <= self.age_amount_reduction_rate <= 1.0:
            raise ConfigurationError("credits.age_amount_reduction_rate: must be between 0 and 1")

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "TaxCredits":
        kwargs = {
            name: _number(_optional(data, name, 0.0), f"{path}.{name}", ConfigurationError)
            for name in ("basic_personal_amount", "age_amount", "age_amount_threshold", "age_amount_reduction_rate")
        }
        kwargs["age_amount_min_age"] = _integer(
            _optional(data, "age_amount_min_age", AGE_AMOUNT_MIN_AGE), f"{path}.age_amount_min_age", ConfigurationError
        )
        return cls(**kwargs)


@dataclass(frozen=True, slots=True)
class BenefitParameters:
    kind: str
    reference_age: int
    max_monthly: float
    adjustment_table: tuple[tuple[int, float], ...]
    clawback_threshold: float | None = None
    clawback_rate: float = 0.0
    full_clawback_income: float | None = None
    average_monthly: float | None = None
    ympe: float | None = None

    def __post_init__(self) -> None:
        path = f"benefits.{self.kind}"
        if not self.adjustment_table:
            raise ConfigurationError(f"{path}.adjustment_table: at least one entry is required")
        ages = [age for age, _ in self.adjustment_table]
        if ages != sorted(set(ages)):
            raise ConfigurationError(f"{path}.adjustment_table: ages must be strictly increasing")
        if any(multiplier < 0 for _, multiplier in self.adjustment_table):
            raise ConfigurationError(f"{path}.adjustment_table: multipliers must be >= 0")
        if self.max_monthly < 0:
            raise ConfigurationError(f"{path}.max_monthly: must be >= 0")
        if not 0.0 <= self.clawback_rate <= 1.0:
            raise ConfigurationError(f"{path}.clawback_rate: must be between 0 and 1")
        if self.clawback_threshold is not None and self.clawback_threshold < 0:
            raise ConfigurationError(f"{path}.clawback_threshold: must be >= 0")
        if self.full_clawback_income is not None:
            if self.clawback_threshold is None or self.full_clawback_income <= self.clawback_threshold:
                raise ConfigurationError(f"{path}.full_clawback_income: must exceed clawback_threshold")

    @property
    def min_election_age(self) -> int:
        return self.adjustment_table[0][0]

    @property
    def max_election_age(self) -> int:
        return self.adjustment_table[-1][0]

    @property
    def means_tested(self) -> bool:
        return self.clawback_threshold is not None and self.clawback_rate > 0

    @classmethod
    def from_dict(cls, kind: str, data: dict[str, Any], path: str) -> "BenefitParameters":
        raw_table = _expect_dict(_require(data, "adjustment_table", path, ConfigurationError), f"{path}.adjustment_table", ConfigurationError)
        try:
            table = sorted((int(age), float(multiplier)) for age, multiplier in raw_table.items())
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"{path}.adjustment_table: ages and multipliers must be numeric") from exc

        def _maybe(key: str) -> float | None:
            value = _optional(data, key)
            return None if value is None else _number(value, f"{path}.{key}", ConfigurationError)

        return cls(
            kind=kind,
            reference_age=_integer(_optional(data, "reference_age", 65), f"{path}.reference_age", ConfigurationError),
            max_monthly=_number(_require(data, "max_monthly", path, ConfigurationError), f"{path}.max_monthly", ConfigurationError),
            adjustment_table=tuple(table),
            clawback_threshold=_maybe("clawback_threshold"),
            clawback_rate=_number(_optional(data, "clawback_rate", 0.0), f"{path}.clawback_rate", ConfigurationError),
            full_clawback_income=_maybe("full_clawback_income"),
            average_monthly=_maybe("average_monthly"),
            ympe=_maybe("ympe"),
        )


@dataclass(frozen=True, slots=True)
class MandatoryWithdrawalSchedule:
    """Age to minimum-withdrawal-fraction table for the tax-deferred account."""

    minimum_age: int
    fractions: tuple[tuple[int, float], ...]

    def __post_init__(self) -> None:
        if not self.fractions:
            raise ConfigurationError("mandatory_withdrawals.fractions: at least one entry is required")
        ages = [age for age, _ in self.fractions]
        if ages != sorted(set(ages)):
            raise ConfigurationError("mandatory_withdrawals.fractions: ages must be strictly increasing")
        if ages[0] < self.minimum_age:
            raise ConfigurationError("mandatory_withdrawals.fractions: ages must be >= minimum_age")
        if any(not 0.0 <= fraction <= 1.0 for _, fraction in self.fractions):
            raise ConfigurationError("mandatory_withdrawals.fractions: fractions must be between 0 and 1")

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "mandatory_withdrawals") -> "MandatoryWithdrawalSchedule":
        raw = _expect_dict(_require(data, "fractions", path, ConfigurationError), f"{path}.fractions", ConfigurationError)
        try:
            fractions = sorted((int(age), float(fraction)) for age, fraction in raw.items())
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"{path}.fractions: ages and fractions must be numeric") from exc
        return cls(
            minimum_age=_integer(_require(data, "minimum_age", path, ConfigurationError), f"{path}.minimum_age", ConfigurationError),
            fractions=tuple(fractions),
        )


@dataclass(frozen=True, slots=True)
class RegionalRates:
    brackets: Brackets
    credits: TaxCredits = field(default_factory=TaxCredits)


@dataclass(frozen=True, slots=True)
class RateProvider:
    """Brackets, credits, benefit parameters and withdrawal schedule for one tax year.

    Instances are immutable and safe to share between concurrent projections.
    """

    year: int
    federal_brackets: Brackets
    federal_credits: TaxCredits
    regional: tuple[tuple[str, RegionalRates], ...]
    benefits: tuple[BenefitParameters, ...]
    withdrawal_schedule: MandatoryWithdrawalSchedule

    def __post_init__(self) -> None:
        object.__setattr__(self, "federal_brackets", validate_brackets(self.federal_brackets, "federal.brackets"))
        for code, rates in self.regional:
            validate_brackets(rates.brackets, f"regional.{code}.brackets")
        kinds = [params.kind for params in self.benefits]
        if len(kinds) != len(set(kinds)):
            raise ConfigurationError("benefits: duplicate benefit kind")

    @property
    def jurisdictions(self) -> list[str]:
        return [code for code, _ in self.regional]

    def supports(self, jurisdiction: str) -> bool:
        return jurisdiction.upper() in self.jurisdictions

    def _regional(self, jurisdiction: str) -> RegionalRates:
        code = jurisdiction.upper()
        for candidate, rates in self.regional:
            if candidate == code:
                return rates
        raise ConfigurationError(f"jurisdiction '{jurisdiction}' is not supported for {self.year}")

    def brackets_for(self, jurisdiction: str) -> tuple[Brackets, Brackets]:
        """Return (federal, regional) brackets for a jurisdiction."""
        return self.federal_brackets, self._regional(jurisdiction).brackets

    def credits_for(self, jurisdiction: str) -> tuple[TaxCredits, TaxCredits]:
        return self.federal_credits, self._regional(jurisdiction).credits

    def benefit(self, kind: str) -> BenefitParameters:
        for params in self.benefits:
            if params.kind == kind:
                return params
        raise ConfigurationError(f"benefits.{kind}: no parameters for {self.year}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RateProvider":
        federal = _expect_dict(_require(data, "federal", "rates", ConfigurationError), "rates.federal", ConfigurationError)
        regional_raw = _expect_dict(_require(data, "regional", "rates", ConfigurationError), "rates.regional", ConfigurationError)
        benefits_raw = _expect_dict(_optional(data, "benefits", {}), "rates.benefits", ConfigurationError)

        regional: list[tuple[str, RegionalRates]] = []
        for code, entry in regional_raw.items():
            path = f"rates.regional.{code}"
            entry = _expect_dict(entry, path, ConfigurationError)
            regional.append(
                (
                    code.upper(),
                    RegionalRates(
                        brackets=_parse_brackets(_require(entry, "brackets", path, ConfigurationError), f"{path}.brackets"),
                        credits=TaxCredits.from_dict(
                            _expect_dict(_optional(entry, "credits", {}), f"{path}.credits", ConfigurationError),
                            f"{path}.credits",
                        ),
                    ),
                )
            )

        benefits = []
        for kind, entry in benefits_raw.items():
            if kind not in BENEFIT_KINDS:
                raise ConfigurationError(f"rates.benefits.{kind}: unknown benefit kind")
            benefits.append(
                BenefitParameters.from_dict(kind, _expect_dict(entry, f"rates.benefits.{kind}", ConfigurationError), f"rates.benefits.{kind}")
            )

        return cls(
            year=_integer(_require(data, "year", "rates", ConfigurationError), "rates.year", ConfigurationError),
            federal_brackets=_parse_brackets(_require(federal, "brackets", "rates.federal", ConfigurationError), "rates.federal.brackets"),
            federal_credits=TaxCredits.from_dict(
                _expect_dict(_optional(federal, "credits", {}), "rates.federal.credits", ConfigurationError),
                "rates.federal.credits",
            ),
            regional=tuple(regional),
            benefits=tuple(benefits),
            withdrawal_schedule=MandatoryWithdrawalSchedule.from_dict(
                _expect_dict(_require(data, "mandatory_withdrawals", "rates", ConfigurationError), "rates.mandatory_withdrawals", ConfigurationError),
                "rates.mandatory_withdrawals",
            ),
        )


def _parse_brackets(raw: Any, path: str) -> Brackets:
    entries = _expect_list(raw, path, ConfigurationError)
    pairs = []
    for idx, entry in enumerate(entries):
        pair = _expect_list(entry, f"{path}[{idx}]", ConfigurationError)
        if len(pair) != 2:
            raise ConfigurationError(f"{path}[{idx}]: expected [upper_limit, rate]")
        pairs.append((pair[0], pair[1]))
    return validate_brackets(pairs, path)


def _benefit_from_table(kind: str, data: dict[str, Any]) -> BenefitParameters:
    return BenefitParameters(
        kind=kind,
        reference_age=data["reference_age"],
        max_monthly=data["max_monthly"],
        adjustment_table=tuple(sorted(data["adjustment_table"].items())),
        clawback_threshold=data["clawback_threshold"],
        clawback_rate=data["clawback_rate"],
        full_clawback_income=data["full_clawback_income"],
        average_monthly=data["average_monthly"],
        ympe=data["ympe"],
    )


def _credits_from_table(basic: float, age_amount: tuple[float, float, float] | None) -> TaxCredits:
    if age_amount is None:
        return TaxCredits(basic_personal_amount=basic)
    amount, threshold, reduction = age_amount
    return TaxCredits(
        basic_personal_amount=basic,
        age_amount=amount,
        age_amount_threshold=threshold,
        age_amount_reduction_rate=reduction,
    )


@lru_cache(maxsize=None)
def default_provider(year: int = BASE_TAX_YEAR) -> RateProvider:
    """Build the provider from the bundled reference data."""
    if year not in FEDERAL_BRACKETS:
        raise ConfigurationError(f"no bundled rates for {year}; available: {sorted(FEDERAL_BRACKETS)}")

    provincial_basic = PROVINCIAL_BASIC_PERSONAL_AMOUNT.get(year, {})
    provincial_age = PROVINCIAL_AGE_AMOUNT.get(year, {})
    regional = tuple(
        (
            code,
            RegionalRates(
                brackets=validate_brackets(brackets, f"regional.{code}.brackets"),
                credits=_credits_from_table(provincial_basic.get(code, 0.0), provincial_age.get(code)),
            ),
        )
        for code, brackets in sorted(PROVINCIAL_BRACKETS[year].items())
    )
    provider = RateProvider(
        year=year,
        federal_brackets=tuple(FEDERAL_BRACKETS[year]),
        federal_credits=_credits_from_table(FEDERAL_BASIC_PERSONAL_AMOUNT[year], FEDERAL_AGE_AMOUNT.get(year)),
        regional=regional,
        benefits=(
            _benefit_from_table(PENSION_PLAN, CPP_PARAMETERS[year]),
            _benefit_from_table(OLD_AGE_SECURITY, OAS_PARAMETERS[year]),
        ),
        withdrawal_schedule=MandatoryWithdrawalSchedule(
            minimum_age=RRIF_MINIMUM_AGE,
            fractions=tuple(sorted(RRIF_MINIMUM_FRACTIONS.items())),
        ),
    )
    logger.debug("Built default rate provider for %s with %d jurisdictions", year, len(regional))
    return provider


def load_rates(path: str | Path) -> RateProvider:
    """Load a rates JSON file into a validated provider."""
    source = Path(path)
    try:
        raw = json.loads(source.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"rates: invalid JSON ({exc.msg} at line {exc.lineno})") from exc
    provider = RateProvider.from_dict(_expect_dict(raw, "rates", ConfigurationError))
    logger.info("Loaded rates for %s from %s", provider.year, source)
    return provider
