import pytest

from rpe.errors import ConfigurationError
from rpe.rates import TaxCredits, validate_brackets
from rpe.tax import (
    compute_income_tax,
    compute_progressive_tax,
    compute_tax,
    index_brackets,
    marginal_rate,
    taxable_income,
)
from rpe.tax_data import FEDERAL_BRACKETS, PROVINCIAL_BRACKETS

FEDERAL = FEDERAL_BRACKETS[2025]
ONTARIO = PROVINCIAL_BRACKETS[2025]["ON"]


def test_progressive_tax_sums_reached_brackets():
    expected = 57_375 * 0.145 + (100_000 - 57_375) * 0.205
    assert compute_progressive_tax(100_000, FEDERAL) == pytest.approx(expected)


def test_compute_tax_combines_both_jurisdictions():
    federal = 57_375 * 0.145 + (100_000 - 57_375) * 0.205
    ontario = 52_886 * 0.0505 + (100_000 - 52_886) * 0.0915
    assert compute_tax(100_000, FEDERAL, ONTARIO) == pytest.approx(federal + ontario)


@pytest.mark.parametrize("income", [0, -1, -50_000])
def test_non_positive_income_has_no_tax(income):
    assert compute_tax(income, FEDERAL, ONTARIO) == 0.0


@pytest.mark.parametrize("brackets", [FEDERAL, ONTARIO, PROVINCIAL_BRACKETS[2025]["BC"]])
def test_tax_at_bracket_boundary_matches_truncated_brackets(brackets):
    for idx, (upper, _) in enumerate(brackets):
        if upper is None:
            continue
        truncated = brackets[: idx + 1]
        assert compute_progressive_tax(upper, brackets) == pytest.approx(compute_progressive_tax(upper, truncated))


def test_tax_is_monotonic_in_income():
    previous = 0.0
    for income in range(0, 400_001, 10_000):
        current = compute_tax(income, FEDERAL, ONTARIO)
        assert current >= previous
        previous = current


def test_marginal_rate_boundary_belongs_to_lower_bracket():
    assert marginal_rate(57_375, FEDERAL) == 0.145
    assert marginal_rate(57_376, FEDERAL) == 0.205
    assert marginal_rate(1_000_000, FEDERAL) == 0.33
    assert marginal_rate(0, FEDERAL) == 0.0


@pytest.mark.parametrize(
    ("brackets", "message"),
    [
        ([], "at least one bracket"),
        ([(50_000, 0.1), (40_000, 0.2), (None, 0.3)], "strictly increasing"),
        ([(50_000, 0.1), (100_000, 0.2)], "last bracket must be unbounded"),
        ([(50_000, 0.3), (None, 0.2)], "non-decreasing"),
        ([(50_000, 0.1), (None, 1.5)], "between 0 and 1"),
        ([(None, 0.1), (50_000, 0.2)], "only the last bracket may be unbounded"),
    ],
)
def test_malformed_brackets_raise_configuration_error(brackets, message):
    with pytest.raises(ConfigurationError, match=message):
        compute_tax(60_000, brackets, ONTARIO)
    with pytest.raises(ConfigurationError):
        validate_brackets(brackets)


def test_index_brackets_scales_limits_only():
    indexed = index_brackets(FEDERAL, 1.1)
    assert indexed[0] == (pytest.approx(57_375 * 1.1), 0.145)
    assert indexed[-1] == (None, 0.33)


def test_income_tax_below_basic_personal_amount_is_zero():
    result = compute_income_tax(
        15_000,
        age=60,
        federal_brackets=FEDERAL,
        regional_brackets=ONTARIO,
        federal_credits=TaxCredits(basic_personal_amount=16_129),
        regional_credits=TaxCredits(basic_personal_amount=12_747),
    )
    assert result.federal_tax == 0.0
    assert result.regional_tax == pytest.approx(15_000 * 0.0505 - 12_747 * 0.0505)
    assert result.total_tax == pytest.approx(result.federal_tax + result.regional_tax)


def test_age_amount_reduces_tax_from_65():
    credits = TaxCredits(
        basic_personal_amount=16_129,
        age_amount=9_028,
        age_amount_threshold=45_522,
        age_amount_reduction_rate=0.15,
    )
    kwargs = dict(
        federal_brackets=FEDERAL,
        regional_brackets=ONTARIO,
        federal_credits=credits,
        regional_credits=TaxCredits(basic_personal_amount=12_747),
    )
    younger = compute_income_tax(40_000, age=64, **kwargs)
    older = compute_income_tax(40_000, age=65, **kwargs)
    assert older.federal_tax == pytest.approx(younger.federal_tax - 9_028 * 0.145)


def test_age_amount_is_income_tested():
    credits = TaxCredits(
        basic_personal_amount=0,
        age_amount=9_028,
        age_amount_threshold=45_522,
        age_amount_reduction_rate=0.15,
    )
    kwargs = dict(
        age=70,
        federal_brackets=FEDERAL,
        regional_brackets=ONTARIO,
        federal_credits=credits,
        regional_credits=TaxCredits(),
    )
    partial = compute_income_tax(60_000, **kwargs)
    none_left = compute_income_tax(120_000, **kwargs)

    reduced_amount = 9_028 - (60_000 - 45_522) * 0.15
    assert partial.credits == pytest.approx(reduced_amount * 0.145)
    assert none_left.credits == 0.0


def test_income_tax_reports_rates():
    result = compute_income_tax(
        100_000,
        age=70,
        federal_brackets=FEDERAL,
        regional_brackets=ONTARIO,
        federal_credits=TaxCredits(basic_personal_amount=16_129),
        regional_credits=TaxCredits(basic_personal_amount=12_747),
    )
    assert result.effective_rate == pytest.approx(result.total_tax / 100_000)
    assert result.marginal_rate == pytest.approx(0.205 + 0.0915)


def test_indexed_brackets_lower_tax_on_same_income():
    kwargs = dict(
        age=70,
        federal_brackets=FEDERAL,
        regional_brackets=ONTARIO,
        federal_credits=TaxCredits(basic_personal_amount=16_129),
        regional_credits=TaxCredits(basic_personal_amount=12_747),
    )
    base = compute_income_tax(80_000, **kwargs)
    indexed = compute_income_tax(80_000, index_factor=1.2, **kwargs)
    assert indexed.total_tax < base.total_tax


def test_taxable_income_applies_inclusion_rate_to_gains():
    total = taxable_income(deferred_withdrawals=10_000, capital_gains=4_000, benefit_income=5_000, other_income=1_000)
    assert total == pytest.approx(18_000)
