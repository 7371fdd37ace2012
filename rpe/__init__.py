"""Deterministic retirement projection engine."""

from .engine import CalculationResults, YearlyProjection, compare_scenarios, run_projection
from .errors import ConfigurationError, ConvergenceError, RPEError, SchemaError, UnknownVariantError, ValidationError
from .optimizer import OptimizationResult, optimize_spending
from .rates import RateProvider, default_provider, load_rates
from .schema import Scenario, load_scenario
from .variants import DelayBenefits, FrontLoad, RetireEarly, apply_named_variant, apply_variant

__all__ = [
    "CalculationResults",
    "ConfigurationError",
    "ConvergenceError",
    "DelayBenefits",
    "FrontLoad",
    "OptimizationResult",
    "RPEError",
    "RateProvider",
    "RetireEarly",
    "Scenario",
    "SchemaError",
    "UnknownVariantError",
    "ValidationError",
    "YearlyProjection",
    "apply_named_variant",
    "apply_variant",
    "compare_scenarios",
    "default_provider",
    "load_rates",
    "load_scenario",
    "optimize_spending",
    "run_projection",
]
