import pytest

from rpe.errors import ValidationError
from rpe.schema import Scenario, load_scenario
from rpe.validate import check_scenario_sanity, ensure_valid, validate_scenario
from tests.helpers import SAMPLE_SCENARIO, clone_scenario


def _validate(sample_scenario_dict, mutator):
    data = clone_scenario(sample_scenario_dict)
    mutator(data)
    return validate_scenario(Scenario.from_dict(data))


def test_sample_scenario_validates():
    result = validate_scenario(load_scenario(SAMPLE_SCENARIO))
    assert result.errors == []
    assert result.warnings == []
    assert result.is_valid


@pytest.mark.parametrize(
    ("mutator", "expected_error"),
    [
        (lambda d: d["basic_inputs"].update({"current_age": 130}), "basic_inputs.current_age: must be between 0 and 120"),
        (lambda d: d["basic_inputs"].update({"retirement_age": 55}), "basic_inputs.retirement_age: must be >= current_age"),
        (
            lambda d: d["basic_inputs"].update({"life_expectancy_age": 60}),
            "basic_inputs.life_expectancy_age: must be >= retirement_age",
        ),
        (lambda d: d["basic_inputs"].update({"life_expectancy_age": 125}), "basic_inputs.life_expectancy_age: must be <= 120"),
        (
            lambda d: d["basic_inputs"].update({"jurisdiction": "YT"}),
            "basic_inputs.jurisdiction: 'YT' (Yukon) is not supported; expected one of [AB, BC, MB, NB, NS, ON, QC, SK]",
        ),
        (
            lambda d: d["basic_inputs"].update({"jurisdiction": "ZZ"}),
            "basic_inputs.jurisdiction: 'ZZ' is not supported; expected one of [AB, BC, MB, NB, NS, ON, QC, SK]",
        ),
        (lambda d: d["assets"]["tax_free"].update({"balance": -1}), "assets.tax_free.balance: must be >= 0"),
        (
            lambda d: d["income_sources"]["pension_plan"].update({"election_age": 72}),
            "income_sources.pension_plan.election_age: must be between 60 and 70",
        ),
        (
            lambda d: d["income_sources"]["old_age_security"].update({"election_age": 62}),
            "income_sources.old_age_security.election_age: must be between 65 and 70",
        ),
        (
            lambda d: d["income_sources"]["other_income"][0].update({"start_age": 70, "end_age": 65}),
            "income_sources.other_income[0].start_age/income_sources.other_income[0].end_age: start_age must be <= end_age",
        ),
        (lambda d: d["expenses"].update({"fixed_monthly": -10}), "expenses.fixed_monthly: must be >= 0"),
        (
            lambda d: d["expenses"].update({"age_overrides": [{"age": 50, "monthly_amount": 100}]}),
            "expenses.age_overrides[0].age: must be >= current_age",
        ),
        (
            lambda d: d["expenses"].update(
                {"age_overrides": [{"age": 70, "monthly_amount": 100}, {"age": 70, "monthly_amount": 200}]}
            ),
            "expenses.age_overrides[1].age: duplicate override for age 70",
        ),
        (lambda d: d["assumptions"].update({"inflation_rate": -1.5}), "assumptions.inflation_rate: must be > -1"),
        (
            lambda d: d["assumptions"].update({"pre_retirement_return": 6}),
            "assumptions.pre_retirement_return: must be <= 1 (rates are fractions, not percentages)",
        ),
        (
            lambda d: d["assets"]["registered"].update({"rate_of_return": 5}),
            "assets.registered.rate_of_return: must be <= 1 (rates are fractions, not percentages)",
        ),
    ],
)
def test_validation_errors(sample_scenario_dict, mutator, expected_error):
    result = _validate(sample_scenario_dict, mutator)
    assert expected_error in result.errors
    assert not result.is_valid


@pytest.mark.parametrize(
    ("mutator", "expected_warning"),
    [
        (lambda d: d["assets"]["tax_free"].update({"cost_basis": 100}), "assets.tax_free.cost_basis: only used for non_registered accounts"),
        (
            lambda d: d["income_sources"]["pension_plan"].update({"monthly_amount": 2_000}),
            "income_sources.pension_plan.monthly_amount: 2,000.00 exceeds the 2025 maximum of 1,433.00",
        ),
        (
            lambda d: d["expenses"].update({"age_overrides": [{"age": 95, "monthly_amount": 100}]}),
            "expenses.age_overrides[0].age: 95 is beyond life_expectancy_age and never applies",
        ),
    ],
)
def test_validation_warnings(sample_scenario_dict, mutator, expected_warning):
    result = _validate(sample_scenario_dict, mutator)
    assert expected_warning in result.warnings
    assert result.is_valid


def test_sanity_warnings(sample_scenario_dict):
    data = clone_scenario(sample_scenario_dict)
    data["assumptions"].update({"pre_retirement_return": 0.15, "inflation_rate": 0.08})
    data["basic_inputs"]["life_expectancy_age"] = 115

    warnings = check_scenario_sanity(Scenario.from_dict(data))
    assert any(w.startswith("assumptions.pre_retirement_return") and "unusually high" in w for w in warnings)
    assert any(w.startswith("assumptions.inflation_rate") and "unusually high" in w for w in warnings)
    assert "basic_inputs.life_expectancy_age: 115 is beyond 110" in warnings


def test_sanity_warns_without_balances(sample_scenario_dict):
    data = clone_scenario(sample_scenario_dict)
    data["assets"] = {}

    warnings = check_scenario_sanity(Scenario.from_dict(data))
    assert "assets: no starting balances; spending is funded by income only" in warnings


def test_ensure_valid_carries_every_error(sample_scenario_dict):
    data = clone_scenario(sample_scenario_dict)
    data["basic_inputs"]["retirement_age"] = 55
    data["expenses"]["fixed_monthly"] = -1

    with pytest.raises(ValidationError, match="invalid scenario 'Baseline'") as exc_info:
        ensure_valid(Scenario.from_dict(data))
    assert exc_info.value.errors == [
        "basic_inputs.retirement_age: must be >= current_age",
        "expenses.fixed_monthly: must be >= 0",
    ]
