"""CLI entry point for RPE."""

from __future__ import annotations

import argparse
from dataclasses import fields
import logging
from pathlib import Path
import sys

from .engine import run_projection
from .errors import ConfigurationError, ConvergenceError, SchemaError, ValidationError
from .optimizer import DEFAULT_TOLERANCE, optimize_spending
from .rates import default_provider, load_rates
from .report import render_table, summary_lines, write_results
from .schema import load_scenario
from .validate import validate_scenario
from .variants import (
    DEFAULT_LEGACY_FRACTION,
    VARIANT_TYPES,
    VariantEstimate,
    apply_variant,
    estimate_legacy_impact,
    estimate_variant_impact,
    variant_from_name,
)

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rpe", description="Retirement projection engine")
    parser.add_argument("scenario", help="Path to scenario JSON file")
    parser.add_argument("-o", "--output", help="Write full results as JSON to this path")
    parser.add_argument("--rates", help="Rates JSON file (default: bundled reference data)")
    parser.add_argument("--validate", action="store_true", help="Validate the scenario only")
    parser.add_argument("--summary", action="store_true", help="Print a text summary to stdout")
    parser.add_argument("--table", action="store_true", help="Print the year-by-year table to stdout")
    parser.add_argument("--variant", choices=sorted(VARIANT_TYPES), help="Apply a what-if variant before projecting")
    parser.add_argument("--years", type=int, help="Years earlier for the retire_early variant")
    parser.add_argument(
        "--estimate",
        action="store_true",
        help="Print a quick estimate of the variant (or of a legacy target) before projecting",
    )
    parser.add_argument("--optimize", action="store_true", help="Search for the spending level that meets the target")
    parser.add_argument("--target", type=float, default=0.0, help="Target final balance for --optimize (default: 0)")
    parser.add_argument("--legacy-fraction", type=float, help="Target a fraction of the starting portfolio instead")
    parser.add_argument("--tolerance", type=float, default=DEFAULT_TOLERANCE, help="Allowed distance from the target")
    parser.add_argument("--timeout", type=float, help="Stop the search after this many seconds")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _print_validation(errors: list[str], warnings: list[str]) -> None:
    for warning in warnings:
        print(f"WARNING: {warning}")
    for error in errors:
        print(f"ERROR: {error}", file=sys.stderr)


def _print_estimate(label: str, estimate: VariantEstimate) -> None:
    print(f"Estimate for {label}:")
    for item in fields(estimate):
        value = getattr(estimate, item.name)
        if value is not None:
            print(f"  {item.name.replace('_', ' ')}: {value:,.2f}")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        provider = load_rates(args.rates) if args.rates else default_provider()
        scenario = load_scenario(args.scenario)
    except (SchemaError, ConfigurationError, OSError) as exc:
        print(f"Failed to load input: {exc}", file=sys.stderr)
        return 2

    try:
        if args.variant:
            params = {"years": args.years} if args.variant == "retire_early" and args.years is not None else {}
            variant = variant_from_name(args.variant, **params)
            if args.estimate:
                _print_estimate(variant.name, estimate_variant_impact(scenario, variant, provider))
            scenario = apply_variant(scenario, variant)
        elif args.estimate:
            fraction = DEFAULT_LEGACY_FRACTION if args.legacy_fraction is None else args.legacy_fraction
            _print_estimate("legacy", estimate_legacy_impact(scenario, fraction))
        validation = validate_scenario(scenario, provider)
    except ValidationError as exc:
        _print_validation(exc.errors, [])
        return 1
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    _print_validation(validation.errors, validation.warnings)
    if not validation.is_valid:
        return 1
    if args.validate:
        print("Scenario is valid.")
        return 0

    try:
        if args.optimize:
            outcome = optimize_spending(
                scenario,
                provider,
                target_balance=args.target,
                legacy_fraction=args.legacy_fraction,
                tolerance=args.tolerance,
                timeout=args.timeout,
            )
            results = outcome.results
            status = "converged" if outcome.converged else "timed out (best trial)"
            print(f"Optimal spending: ${outcome.monthly_spending:,.2f}/month ({status}, {outcome.iterations} projections)")
            print(f"Final balance: ${outcome.final_balance:,.0f} (target ${outcome.target_balance:,.0f})")
        else:
            results = run_projection(scenario, provider)
    except ConvergenceError as exc:
        print(f"Optimization failed: {exc}", file=sys.stderr)
        return 3
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    if args.summary or not (args.table or args.output):
        for line in summary_lines(results, scenario.basic_inputs.retirement_age):
            print(line)
    if args.table:
        print(render_table(results))
    if args.output:
        write_results(args.output, results)
        print(f"Wrote results to {Path(args.output)}")
    logger.debug("Done with %s", args.scenario)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
