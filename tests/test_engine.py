import copy

import pytest

from rpe.engine import (
    ACCUMULATION,
    RETIREMENT,
    annual_expenses,
    compare_scenarios,
    other_income_for_age,
    run_projection,
)
from rpe.errors import ValidationError
from rpe.schema import AgeOverride, Expenses, OtherIncome, Scenario
from rpe.withdrawals import NON_REGISTERED, REGISTERED, TAX_FREE, WithdrawalStrategy
from tests.helpers import clone_scenario, concrete_scenario, concrete_scenario_dict


def _scenario(mutator=None) -> Scenario:
    data = concrete_scenario_dict()
    if mutator is not None:
        mutator(data)
    return Scenario.from_dict(data)


@pytest.mark.parametrize(("current", "retire", "horizon"), [(58, 62, 90), (40, 65, 95), (70, 70, 70), (30, 31, 32)])
def test_sequence_length_covers_every_age(current, retire, horizon):
    def mutator(data):
        data["basic_inputs"].update({"current_age": current, "retirement_age": retire, "life_expectancy_age": horizon})
        data["income_sources"]["pension_plan"]["election_age"] = 65 if horizon >= 65 else 60

    results = run_projection(_scenario(mutator))
    assert len(results.years) == horizon - current + 1
    assert [year.age for year in results.years] == list(range(current, horizon + 1))


def test_concrete_scenario():
    results = run_projection(concrete_scenario())

    assert len(results.years) == 33
    assert results.year_at(62).benefit_income["pension_plan"] == 0.0
    assert results.year_at(65).benefit_income["pension_plan"] > 0.0
    assert results.years[-1].closing_total >= 0.0
    assert results.depletion_age is None or results.depletion_age <= 90


def test_accumulation_years_have_no_withdrawals(sample_scenario_dict):
    results = run_projection(Scenario.from_dict(sample_scenario_dict))

    accumulation = [year for year in results.years if year.age < 62]
    assert [year.phase for year in accumulation] == [ACCUMULATION] * 4
    for year in accumulation:
        assert year.total_withdrawals == 0.0
        assert year.mandatory_minimum == 0.0
        assert year.closing_total >= year.opening_total
        assert year.contributions[REGISTERED] == 10_000
    assert results.year_at(62).phase == RETIREMENT


def test_benefit_elected_before_retirement_is_paid():
    def mutator(data):
        data["basic_inputs"].update({"current_age": 60, "retirement_age": 66})
        data["income_sources"]["pension_plan"]["election_age"] = 60

    year = run_projection(_scenario(mutator)).year_at(60)
    assert year.phase == ACCUMULATION
    assert year.benefit_income["pension_plan"] == pytest.approx(758 * 12 * 0.64)
    assert year.total_withdrawals == 0.0
    assert year.taxable_income == pytest.approx(758 * 12 * 0.64)


def test_mandatory_minimum_reduces_registered_balance():
    def mutator(data):
        data["basic_inputs"].update({"current_age": 70, "retirement_age": 70, "life_expectancy_age": 75})
        data["assets"]["registered"]["rate_of_return"] = 0.05
        data["income_sources"]["other_income"] = [{"description": "Pension", "annual_amount": 100_000}]
        data["expenses"]["fixed_monthly"] = 1_000

    year = run_projection(_scenario(mutator)).year_at(72)
    opening = year.opening_balances[REGISTERED]

    assert year.mandatory_minimum == pytest.approx(opening * 0.0540)
    assert year.withdrawals[REGISTERED] == pytest.approx(year.mandatory_minimum)
    assert year.closing_balances[REGISTERED] == pytest.approx((opening - year.mandatory_minimum) * 1.05)
    assert year.closing_balances[REGISTERED] < opening * 1.05


def test_surplus_is_reinvested_into_non_registered():
    def mutator(data):
        data["income_sources"]["other_income"] = [{"description": "Pension", "annual_amount": 60_000}]

    year = run_projection(_scenario(mutator)).year_at(62)
    assert year.funding_gap < 0
    assert year.surplus_reinvested == pytest.approx(year.net_spendable_income - year.expenses)
    assert year.closing_balances[NON_REGISTERED] > 0.0


def test_depletion_pins_balances_and_records_shortfall():
    def mutator(data):
        data["expenses"]["fixed_monthly"] = 6_000

    results = run_projection(_scenario(mutator))

    assert results.depletion_age is not None
    assert 62 <= results.depletion_age <= 90
    assert len(results.years) == 33
    assert not results.success
    after = [year for year in results.years if year.age > results.depletion_age]
    assert after
    for year in after:
        assert year.depleted
        assert year.closing_total == 0.0
        assert year.surplus_reinvested == 0.0
        assert year.shortfall == pytest.approx(max(0.0, year.funding_gap))
        assert not year.expenses_funded
    assert results.final_portfolio_value == 0.0
    assert results.total_shortfall > 0.0


def test_clawback_uses_prior_year_income():
    def mutator(data):
        data["basic_inputs"].update({"current_age": 65, "retirement_age": 65, "life_expectancy_age": 70})
        data["assets"] = {}
        data["income_sources"] = {
            "old_age_security": {"election_age": 65, "monthly_amount": 727.67},
            "other_income": [{"description": "Pension", "annual_amount": 200_000, "indexed_to_inflation": False}],
        }
        data["expenses"]["fixed_monthly"] = 1_000

    results = run_projection(_scenario(mutator))
    first, second = results.year_at(65), results.year_at(66)

    assert first.benefit_clawback["old_age_security"] == 0.0
    assert first.benefit_income["old_age_security"] == pytest.approx(727.67 * 12)
    assert second.benefit_income["old_age_security"] == 0.0
    assert second.benefit_clawback["old_age_security"] == pytest.approx(727.67 * 12 * 1.02)


def test_scenario_is_not_mutated():
    scenario = concrete_scenario()
    before = copy.deepcopy(scenario)
    run_projection(scenario)
    assert scenario == before


def test_invalid_scenario_raises_before_simulation():
    def mutator(data):
        data["basic_inputs"]["retirement_age"] = 50

    with pytest.raises(ValidationError, match="retirement_age") as exc_info:
        run_projection(_scenario(mutator))
    assert "basic_inputs.retirement_age: must be >= current_age" in exc_info.value.errors


def test_start_year_labels_years():
    results = run_projection(concrete_scenario(), start_year=2030)
    assert results.years[0].year == 2030
    assert results.years[-1].year == 2062


def test_strategy_changes_withdrawal_order(sample_scenario_dict):
    scenario = Scenario.from_dict(sample_scenario_dict)
    default_year = run_projection(scenario).year_at(62)
    custom_year = run_projection(
        scenario,
        strategy=WithdrawalStrategy(steps=("mandatory_minimum", "non_registered", "tax_free", "registered")),
    ).year_at(62)

    assert default_year.withdrawals[TAX_FREE] > 0.0
    assert default_year.withdrawals[NON_REGISTERED] == 0.0
    assert custom_year.withdrawals[NON_REGISTERED] > 0.0
    assert custom_year.withdrawals[TAX_FREE] == 0.0
    assert custom_year.capital_gains > 0.0


def test_summary_fields_are_consistent(sample_scenario_dict):
    results = run_projection(Scenario.from_dict(sample_scenario_dict))

    assert results.total_tax_paid == pytest.approx(sum(year.tax.total_tax for year in results.years))
    assert results.total_benefit_income == pytest.approx(sum(results.benefit_totals.values()))
    assert results.portfolio_at_retirement == pytest.approx(results.year_at(62).opening_total)
    assert results.final_portfolio_value == pytest.approx(results.years[-1].closing_total)


def test_compare_scenarios_keys_by_name(sample_scenario_dict):
    other = clone_scenario(sample_scenario_dict)
    other["name"] = "Frugal"
    other["expenses"]["fixed_monthly"] = 2_000

    results = compare_scenarios([Scenario.from_dict(sample_scenario_dict), Scenario.from_dict(other)])
    assert set(results) == {"Baseline", "Frugal"}
    assert results["Frugal"].final_portfolio_value > results["Baseline"].final_portfolio_value


def test_annual_expenses_apply_overrides_and_indexing():
    expenses = Expenses(
        fixed_monthly=2_000,
        variable_annual=1_200,
        indexed_to_inflation=True,
        age_overrides=[AgeOverride(age=80, monthly_amount=1_500), AgeOverride(age=70, monthly_amount=3_000)],
    )

    assert annual_expenses(expenses, age=69, current_age=60, inflation_rate=0.02) == pytest.approx(25_200 * 1.02**9)
    assert annual_expenses(expenses, age=70, current_age=60, inflation_rate=0.02) == pytest.approx(36_000 * 1.02**10)
    assert annual_expenses(expenses, age=85, current_age=60, inflation_rate=0.02) == pytest.approx(18_000 * 1.02**25)

    expenses.indexed_to_inflation = False
    assert annual_expenses(expenses, age=75, current_age=60, inflation_rate=0.02) == pytest.approx(36_000)


def test_override_replaces_variable_spending_too():
    def mutator(data):
        data["expenses"].update(
            {
                "variable_annual": 12_000,
                "indexed_to_inflation": False,
                "age_overrides": [{"age": 62, "monthly_amount": 3_000}],
            }
        )

    results = run_projection(_scenario(mutator))
    assert results.year_at(62).expenses == pytest.approx(36_000)
    assert results.year_at(75).expenses == pytest.approx(36_000)


def test_other_income_window_and_indexing():
    items = [
        OtherIncome(description="Pension", annual_amount=10_000),
        OtherIncome(description="Rental", annual_amount=5_000, start_age=60, end_age=70, indexed_to_inflation=False),
    ]

    assert other_income_for_age(items, age=61, retirement_age=65, inflation_rate=0.02) == pytest.approx(5_000)
    assert other_income_for_age(items, age=67, retirement_age=65, inflation_rate=0.02) == pytest.approx(10_000 * 1.02**2 + 5_000)
    assert other_income_for_age(items, age=71, retirement_age=65, inflation_rate=0.02) == pytest.approx(10_000 * 1.02**6)
