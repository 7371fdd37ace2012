"""Scenario schema dataclasses and JSON loading."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import json
from pathlib import Path
from typing import Any

from .errors import SchemaError


def _expect_dict(value: Any, path: str, error: type[Exception] = SchemaError) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise error(f"{path}: expected object")
    return value


def _expect_list(value: Any, path: str, error: type[Exception] = SchemaError) -> list[Any]:
    if not isinstance(value, list):
        raise error(f"{path}: expected array")
    return value


def _require(data: dict[str, Any], key: str, path: str, error: type[Exception] = SchemaError) -> Any:
    if key not in data:
        raise error(f"{path}.{key}: missing required field")
    return data[key]


def _optional(data: dict[str, Any], key: str, default: Any = None) -> Any:
    value = data.get(key, default)
    return default if value is None else value


def _number(value: Any, path: str, error: type[Exception] = SchemaError) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise error(f"{path}: expected number")
    return float(value)


def _integer(value: Any, path: str, error: type[Exception] = SchemaError) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
        raise error(f"{path}: expected whole number")
    return int(value)


@dataclass(slots=True)
class BasicInputs:
    current_age: int
    retirement_age: int
    life_expectancy_age: int
    jurisdiction: str

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "basic_inputs") -> "BasicInputs":
        return cls(
            current_age=_integer(_require(data, "current_age", path), f"{path}.current_age"),
            retirement_age=_integer(_require(data, "retirement_age", path), f"{path}.retirement_age"),
            life_expectancy_age=_integer(_require(data, "life_expectancy_age", path), f"{path}.life_expectancy_age"),
            jurisdiction=str(_require(data, "jurisdiction", path)).upper(),
        )


@dataclass(slots=True)
class AccountDetails:
    balance: float
    annual_contribution: float = 0.0
    rate_of_return: float | None = None
    cost_basis: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "AccountDetails":
        rate = _optional(data, "rate_of_return")
        cost_basis = _optional(data, "cost_basis")
        return cls(
            balance=_number(_require(data, "balance", path), f"{path}.balance"),
            annual_contribution=_number(_optional(data, "annual_contribution", 0.0), f"{path}.annual_contribution"),
            rate_of_return=_number(rate, f"{path}.rate_of_return") if rate is not None else None,
            cost_basis=_number(cost_basis, f"{path}.cost_basis") if cost_basis is not None else None,
        )


ACCOUNT_FIELDS = ("registered", "tax_free", "non_registered")


@dataclass(slots=True)
class Assets:
    registered: AccountDetails | None = None
    tax_free: AccountDetails | None = None
    non_registered: AccountDetails | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "assets") -> "Assets":
        accounts: dict[str, AccountDetails | None] = {}
        for name in ACCOUNT_FIELDS:
            raw = _optional(data, name)
            accounts[name] = None if raw is None else AccountDetails.from_dict(_expect_dict(raw, f"{path}.{name}"), f"{path}.{name}")
        return cls(**accounts)

    def account(self, name: str) -> AccountDetails | None:
        return getattr(self, name)

    def starting_total(self) -> float:
        return sum(max(0.0, account.balance) for name in ACCOUNT_FIELDS if (account := self.account(name)) is not None)


@dataclass(slots=True)
class BenefitElection:
    election_age: int
    monthly_amount: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "BenefitElection":
        return cls(
            election_age=_integer(_require(data, "election_age", path), f"{path}.election_age"),
            monthly_amount=_number(_require(data, "monthly_amount", path), f"{path}.monthly_amount"),
        )


@dataclass(slots=True)
class OtherIncome:
    description: str
    annual_amount: float
    start_age: int | None = None
    end_age: int | None = None
    indexed_to_inflation: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "OtherIncome":
        start_age = _optional(data, "start_age")
        end_age = _optional(data, "end_age")
        return cls(
            description=str(_optional(data, "description", "Other income")),
            annual_amount=_number(_require(data, "annual_amount", path), f"{path}.annual_amount"),
            start_age=_integer(start_age, f"{path}.start_age") if start_age is not None else None,
            end_age=_integer(end_age, f"{path}.end_age") if end_age is not None else None,
            indexed_to_inflation=bool(_optional(data, "indexed_to_inflation", True)),
        )


BENEFIT_FIELDS = ("pension_plan", "old_age_security")


@dataclass(slots=True)
class IncomeSources:
    pension_plan: BenefitElection | None = None
    old_age_security: BenefitElection | None = None
    other_income: list[OtherIncome] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "income_sources") -> "IncomeSources":
        elections: dict[str, BenefitElection | None] = {}
        for name in BENEFIT_FIELDS:
            raw = _optional(data, name)
            elections[name] = None if raw is None else BenefitElection.from_dict(_expect_dict(raw, f"{path}.{name}"), f"{path}.{name}")
        other_income = [
            OtherIncome.from_dict(_expect_dict(item, f"{path}.other_income[{idx}]"), f"{path}.other_income[{idx}]")
            for idx, item in enumerate(_expect_list(_optional(data, "other_income", []), f"{path}.other_income"))
        ]
        return cls(other_income=other_income, **elections)

    def election(self, kind: str) -> BenefitElection | None:
        return getattr(self, kind)


@dataclass(slots=True)
class AgeOverride:
    age: int
    monthly_amount: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "AgeOverride":
        return cls(
            age=_integer(_require(data, "age", path), f"{path}.age"),
            monthly_amount=_number(_require(data, "monthly_amount", path), f"{path}.monthly_amount"),
        )


@dataclass(slots=True)
class Expenses:
    fixed_monthly: float
    variable_annual: float = 0.0
    indexed_to_inflation: bool = True
    age_overrides: list[AgeOverride] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "expenses") -> "Expenses":
        return cls(
            fixed_monthly=_number(_require(data, "fixed_monthly", path), f"{path}.fixed_monthly"),
            variable_annual=_number(_optional(data, "variable_annual", 0.0), f"{path}.variable_annual"),
            indexed_to_inflation=bool(_optional(data, "indexed_to_inflation", True)),
            age_overrides=[
                AgeOverride.from_dict(_expect_dict(item, f"{path}.age_overrides[{idx}]"), f"{path}.age_overrides[{idx}]")
                for idx, item in enumerate(_expect_list(_optional(data, "age_overrides", []), f"{path}.age_overrides"))
            ],
        )


@dataclass(slots=True)
class Assumptions:
    pre_retirement_return: float
    post_retirement_return: float
    inflation_rate: float
    index_tax_brackets: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "assumptions") -> "Assumptions":
        return cls(
            pre_retirement_return=_number(_require(data, "pre_retirement_return", path), f"{path}.pre_retirement_return"),
            post_retirement_return=_number(_require(data, "post_retirement_return", path), f"{path}.post_retirement_return"),
            inflation_rate=_number(_require(data, "inflation_rate", path), f"{path}.inflation_rate"),
            index_tax_brackets=bool(_optional(data, "index_tax_brackets", True)),
        )


@dataclass(slots=True)
class Scenario:
    basic_inputs: BasicInputs
    assets: Assets
    income_sources: IncomeSources
    expenses: Expenses
    assumptions: Assumptions
    name: str = "Baseline"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Scenario":
        return cls(
            name=str(_optional(data, "name", "Baseline")),
            basic_inputs=BasicInputs.from_dict(_expect_dict(_require(data, "basic_inputs", "scenario"), "basic_inputs")),
            assets=Assets.from_dict(_expect_dict(_optional(data, "assets", {}), "assets")),
            income_sources=IncomeSources.from_dict(_expect_dict(_optional(data, "income_sources", {}), "income_sources")),
            expenses=Expenses.from_dict(_expect_dict(_require(data, "expenses", "scenario"), "expenses")),
            assumptions=Assumptions.from_dict(_expect_dict(_require(data, "assumptions", "scenario"), "assumptions")),
        )


def scenario_to_dict(scenario: Scenario) -> dict[str, Any]:
    """Serialize a scenario back to the JSON shape accepted by ``Scenario.from_dict``."""
    data = asdict(scenario)
    data["assets"] = {name: value for name, value in data["assets"].items() if value is not None}
    data["income_sources"] = {
        name: value for name, value in data["income_sources"].items() if value is not None and value != []
    }
    return data


def load_scenario(path: str | Path) -> Scenario:
    """Load scenario JSON into strongly-typed dataclasses."""
    source = Path(path)
    try:
        raw = json.loads(source.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SchemaError(f"scenario: invalid JSON ({exc.msg} at line {exc.lineno})") from exc
    if not isinstance(raw, dict):
        raise SchemaError("scenario: root must be a JSON object")
    return Scenario.from_dict(raw)
