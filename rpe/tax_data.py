"""Bracket, credit, benefit and RRIF reference data for RPE."""

from __future__ import annotations

from typing import Final

BASE_TAX_YEAR: Final[int] = 2025
CAPITAL_GAINS_INCLUSION_RATE: Final[float] = 0.50

# Brackets are (upper_bound, marginal_rate). Upper bound None means infinity.
FEDERAL_BRACKETS: Final[dict[int, list[tuple[float | None, float]]]] = {
    2025: [
        (57_375.0, 0.145),
        (114_750.0, 0.205),
        (177_882.0, 0.26),
        (253_414.0, 0.29),
        (None, 0.33),
    ],
}

PROVINCIAL_BRACKETS: Final[dict[int, dict[str, list[tuple[float | None, float]]]]] = {
    2025: {
        "AB": [
            (60_000.0, 0.08),
            (151_234.0, 0.10),
            (181_481.0, 0.12),
            (241_974.0, 0.13),
            (362_961.0, 0.14),
            (None, 0.15),
        ],
        "BC": [
            (49_279.0, 0.0506),
            (98_560.0, 0.077),
            (113_158.0, 0.105),
            (137_407.0, 0.1229),
            (186_306.0, 0.147),
            (259_829.0, 0.168),
            (None, 0.205),
        ],
        "MB": [
            (47_000.0, 0.108),
            (100_000.0, 0.1275),
            (None, 0.174),
        ],
        "NB": [
            (51_306.0, 0.094),
            (102_614.0, 0.14),
            (190_060.0, 0.16),
            (None, 0.195),
        ],
        "NS": [
            (30_507.0, 0.0879),
            (61_015.0, 0.1495),
            (95_883.0, 0.1667),
            (154_650.0, 0.175),
            (None, 0.21),
        ],
        "ON": [
            (52_886.0, 0.0505),
            (105_775.0, 0.0915),
            (150_000.0, 0.1116),
            (220_000.0, 0.1216),
            (None, 0.1316),
        ],
        "QC": [
            (53_255.0, 0.14),
            (106_495.0, 0.19),
            (129_590.0, 0.24),
            (None, 0.2575),
        ],
        "SK": [
            (53_463.0, 0.105),
            (152_750.0, 0.125),
            (None, 0.145),
        ],
    },
}

PROVINCE_NAMES: Final[dict[str, str]] = {
    "AB": "Alberta",
    "BC": "British Columbia",
    "MB": "Manitoba",
    "NB": "New Brunswick",
    "NL": "Newfoundland and Labrador",
    "NT": "Northwest Territories",
    "NS": "Nova Scotia",
    "NU": "Nunavut",
    "ON": "Ontario",
    "PE": "Prince Edward Island",
    "QC": "Quebec",
    "SK": "Saskatchewan",
    "YT": "Yukon",
}

FEDERAL_BASIC_PERSONAL_AMOUNT: Final[dict[int, float]] = {2025: 16_129.0}

# Age amount: (max_credit, income_threshold, reduction_rate).
FEDERAL_AGE_AMOUNT: Final[dict[int, tuple[float, float, float]]] = {
    2025: (9_028.0, 45_522.0, 0.15),
}

PROVINCIAL_BASIC_PERSONAL_AMOUNT: Final[dict[int, dict[str, float]]] = {
    2025: {
        "AB": 22_323.0,
        "BC": 12_932.0,
        "MB": 15_780.0,
        "NB": 13_396.0,
        "NS": 11_744.0,
        "ON": 12_747.0,
        "QC": 18_571.0,
        "SK": 18_991.0,
    },
}

PROVINCIAL_AGE_AMOUNT: Final[dict[int, dict[str, tuple[float, float, float]]]] = {
    2025: {
        "AB": (6_221.0, 46_308.0, 0.15),
        "BC": (5_799.0, 43_169.0, 0.15),
        "ON": (6_223.0, 46_330.0, 0.15),
    },
}

AGE_AMOUNT_MIN_AGE: Final[int] = 65


def _monthly_adjustment_table(
    first_age: int,
    last_age: int,
    reference_age: int,
    early_rate: float,
    late_rate: float,
) -> dict[int, float]:
    table: dict[int, float] = {}
    for age in range(first_age, last_age + 1):
        months = (age - reference_age) * 12
        rate = early_rate if months < 0 else late_rate
        table[age] = round(1.0 + months * rate, 4)
    return table


# CPP: 0.6% reduction per month before 65, 0.7% enhancement per month after.
CPP_PARAMETERS: Final[dict[int, dict]] = {
    2025: {
        "reference_age": 65,
        "max_monthly": 1_433.0,
        "average_monthly": 899.67,
        "ympe": 71_300.0,
        "adjustment_table": _monthly_adjustment_table(60, 70, 65, 0.006, 0.007),
        "clawback_threshold": None,
        "clawback_rate": 0.0,
        "full_clawback_income": None,
    },
}

# OAS: deferral only, 0.6% per month after 65, recovery tax above the threshold.
OAS_PARAMETERS: Final[dict[int, dict]] = {
    2025: {
        "reference_age": 65,
        "max_monthly": 727.67,
        "average_monthly": 727.67,
        "ympe": None,
        "adjustment_table": _monthly_adjustment_table(65, 70, 65, 0.0, 0.006),
        "clawback_threshold": 93_454.0,
        "clawback_rate": 0.15,
        "full_clawback_income": 151_668.0,
    },
}

RRIF_MINIMUM_AGE: Final[int] = 55

# Prescribed factors from 71; below 71 the factor is 1 / (90 - age).
RRIF_MINIMUM_FRACTIONS: Final[dict[int, float]] = {
    **{age: round(1.0 / (90 - age), 4) for age in range(RRIF_MINIMUM_AGE, 71)},
    71: 0.0528,
    72: 0.0540,
    73: 0.0553,
    74: 0.0567,
    75: 0.0582,
    76: 0.0598,
    77: 0.0617,
    78: 0.0636,
    79: 0.0658,
    80: 0.0682,
    81: 0.0708,
    82: 0.0738,
    83: 0.0771,
    84: 0.0808,
    85: 0.0851,
    86: 0.0899,
    87: 0.0955,
    88: 0.1021,
    89: 0.1099,
    90: 0.1192,
    91: 0.1306,
    92: 0.1449,
    93: 0.1634,
    94: 0.1879,
    95: 0.2000,
}
