import copy
import json
from pathlib import Path

from rpe.schema import Scenario

SAMPLE_SCENARIO = Path(__file__).resolve().parent.parent / "sample_scenario.json"


def write_scenario(tmp_path: Path, data: dict, filename: str = "scenario.json") -> Path:
    path = tmp_path / filename
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def clone_scenario(data: dict) -> dict:
    return copy.deepcopy(data)


def concrete_scenario_dict() -> dict:
    """58/62/90, 500k registered at 6%, 2,500/month, one benefit at 65."""
    return {
        "name": "Concrete",
        "basic_inputs": {
            "current_age": 58,
            "retirement_age": 62,
            "life_expectancy_age": 90,
            "jurisdiction": "ON",
        },
        "assets": {
            "registered": {"balance": 500_000, "annual_contribution": 0, "rate_of_return": 0.06},
        },
        "income_sources": {
            "pension_plan": {"election_age": 65, "monthly_amount": 758},
        },
        "expenses": {
            "fixed_monthly": 2_500,
            "variable_annual": 0,
            "indexed_to_inflation": True,
            "age_overrides": [],
        },
        "assumptions": {
            "pre_retirement_return": 0.06,
            "post_retirement_return": 0.06,
            "inflation_rate": 0.02,
        },
    }


def concrete_scenario() -> Scenario:
    return Scenario.from_dict(concrete_scenario_dict())
