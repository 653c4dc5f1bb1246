"""Command line interface for the staffing simulator."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Sequence

from .analysis import SENSITIVITY_PARAMETERS, compare_named, find_optimal, run_sensitivity
from .config import load_config
from .errors import StaffsimError
from .io import OccurrenceKind, StaffingScenario, TaskProfile, load_profiles, write_profiles
from .simulation import build_scenarios, simulate, simulate_grid
from .statistics import ScenarioGroup
from .survey import VARIABILITY_PROFILES, aggregate_responses, generate_responses, load_responses

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Simulate shift workload completion for nurse and aide staffing ratios.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Simulate every ratio pair from the configuration.")
    _add_run_options(run_parser)

    sensitivity_parser = subparsers.add_parser(
        "sensitivity", help="Vary one ratio around a baseline scenario."
    )
    _add_run_options(sensitivity_parser)
    sensitivity_parser.add_argument(
        "--parameter",
        required=True,
        choices=SENSITIVITY_PARAMETERS,
        help="Ratio to vary.",
    )
    sensitivity_parser.add_argument(
        "--values",
        required=True,
        nargs="+",
        type=int,
        help="Ratio values to substitute, in order.",
    )
    sensitivity_parser.add_argument(
        "--baseline",
        nargs=2,
        type=int,
        metavar=("PRIMARY", "SECONDARY"),
        help="Baseline ratios; defaults to the middle of each configured ratio list.",
    )

    what_if_parser = subparsers.add_parser("what-if", help="Compare a current and a proposed ratio pair.")
    _add_run_options(what_if_parser)
    what_if_parser.add_argument("--current", required=True, nargs=2, type=int, metavar=("PRIMARY", "SECONDARY"))
    what_if_parser.add_argument("--proposed", required=True, nargs=2, type=int, metavar=("PRIMARY", "SECONDARY"))

    optimal_parser = subparsers.add_parser(
        "optimal", help="Rank configured scenarios that meet completion and budget constraints."
    )
    _add_run_options(optimal_parser)
    optimal_parser.add_argument("--min-completion-rate", type=float, dest="min_completion_rate")
    optimal_parser.add_argument("--max-budget", type=float, dest="max_budget")
    optimal_parser.add_argument(
        "--all",
        action="store_true",
        dest="include_infeasible",
        help="Also list scenarios that miss the constraints.",
    )

    aggregate_parser = subparsers.add_parser(
        "aggregate", help="Turn a survey response CSV into a task profile CSV."
    )
    aggregate_parser.add_argument("--survey", type=Path, required=True, help="Survey response CSV.")
    aggregate_parser.add_argument("--output", type=Path, required=True, help="Task profile CSV to write.")
    aggregate_parser.add_argument(
        "--once-per-shift",
        action="append",
        default=[],
        metavar="TASK",
        help="Task name that happens once per shift. May be supplied multiple times.",
    )

    synthesize_parser = subparsers.add_parser(
        "synthesize", help="Write a synthetic survey response CSV."
    )
    synthesize_parser.add_argument("--output", type=Path, required=True)
    synthesize_parser.add_argument("--primary-count", type=int, default=100, dest="primary_count")
    synthesize_parser.add_argument("--secondary-count", type=int, default=80, dest="secondary_count")
    synthesize_parser.add_argument("--variability", choices=list(VARIABILITY_PROFILES), default="moderate")
    synthesize_parser.add_argument("--random-seed", type=int, dest="random_seed")

    return parser


def _add_run_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=Path, required=True, help="Path to the YAML or JSON configuration.")
    parser.add_argument("--iterations", type=int, help="Monte Carlo iterations per scenario.")
    parser.add_argument("--random-seed", type=int, dest="random_seed", help="Seed for reproducible runs.")
    parser.add_argument(
        "--confidence-level",
        type=float,
        dest="confidence_level",
        help="Confidence level for the completion interval (0.90, 0.95 or 0.99).",
    )
    parser.add_argument("--workers", type=int, help="Processes used to simulate the scenario grid.")
    parser.add_argument("--output", type=Path, help="Optional path to store the results as JSON.")


def run_cli(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    try:
        if args.command == "aggregate":
            return _aggregate(args)
        if args.command == "synthesize":
            return _synthesize(args)

        config = _resolve_config(args)
        profiles = _load_task_profiles(config)
        if args.command == "run":
            payload = _run(config, profiles)
        elif args.command == "sensitivity":
            payload = _sensitivity(args, config, profiles)
        elif args.command == "what-if":
            payload = _what_if(args, config, profiles)
        else:
            payload = _optimal(args, config, profiles)
    except StaffsimError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.output:
        args.output.write_text(json.dumps(payload, indent=2))
        print(f"Results saved to {args.output.resolve()}")
    return 0


def _resolve_config(args: argparse.Namespace) -> Dict[str, Any]:
    config = load_config(args.config)
    logger.info("Loaded configuration from %s", args.config)
    for key in ("iterations", "random_seed", "confidence_level", "workers"):
        value = getattr(args, key, None)
        if value is not None:
            config[key] = value
    return config


def _load_task_profiles(config: Dict[str, Any]) -> List[TaskProfile]:
    if config.get("profiles"):
        return load_profiles(config["profiles"])
    occurrence = {name: OccurrenceKind.ONCE_PER_SHIFT for name in config["once_per_shift"]}
    return aggregate_responses(load_responses(config["survey"]), occurrence)


def _simulation_options(config: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "iterations": int(config["iterations"]),
        "confidence_level": float(config["confidence_level"]),
        "random_seed": config.get("random_seed"),
        "rates": config["rates"] if config.get("patient_volume") is not None else None,
        "overhead_multiplier": float(config["overhead_multiplier"]),
        "min_sample_size": config.get("min_sample_size"),
        "time_budget": config.get("time_budget"),
        "interval": config["interval"],
    }


def _simulate_configured(config: Dict[str, Any], profiles: Sequence[TaskProfile]) -> ScenarioGroup:
    scenarios = build_scenarios(
        config["primary_ratios"],
        config["secondary_ratios"],
        config["shift_hours"],
        config.get("patient_volume"),
    )
    return simulate_grid(scenarios, profiles, workers=int(config["workers"]), **_simulation_options(config))


def _run(config: Dict[str, Any], profiles: Sequence[TaskProfile]) -> Dict[str, Any]:
    group = _simulate_configured(config, profiles)
    _print_results(group)
    return {"results": group.to_list()}


def _sensitivity(
    args: argparse.Namespace, config: Dict[str, Any], profiles: Sequence[TaskProfile]
) -> Dict[str, Any]:
    if args.baseline:
        primary, secondary = args.baseline
    else:
        primary = _middle(config["primary_ratios"])
        secondary = _middle(config["secondary_ratios"])
    scenario = StaffingScenario(primary, secondary, config["shift_hours"], config.get("patient_volume"))
    options = _simulation_options(config)
    baseline = simulate(scenario, profiles, **options)
    points = run_sensitivity(
        baseline,
        args.parameter,
        args.values,
        profiles,
        random_seed=options["random_seed"],
        rates=options["rates"],
        overhead_multiplier=options["overhead_multiplier"],
        time_budget=options["time_budget"],
        interval=options["interval"],
    )

    print(f"Sensitivity of {args.parameter} around {baseline.label}")
    print(f"Baseline completion: {baseline.completion_rate:.1f}%")
    for point in points:
        change = "n/a" if point.rate_change_percent is None else f"{point.rate_change_percent:+.1f}%"
        print(f"  {point.parameter_value:>4}: {point.completion_rate:6.1f}%  change {change}")
    return {
        "baseline": baseline.to_dict(),
        "points": [point.to_dict() for point in points],
    }


def _what_if(args: argparse.Namespace, config: Dict[str, Any], profiles: Sequence[TaskProfile]) -> Dict[str, Any]:
    shift_hours = config["shift_hours"]
    volume = config.get("patient_volume")
    current = StaffingScenario(args.current[0], args.current[1], shift_hours, volume)
    proposed = StaffingScenario(args.proposed[0], args.proposed[1], shift_hours, volume)
    scenarios = [current] if current == proposed else [current, proposed]
    group = simulate_grid(scenarios, profiles, **_simulation_options(config))
    deltas = compare_named(group, current.label, proposed.label)

    print(f"What-if: {current.label} -> {proposed.label}")
    for delta in deltas:
        percent = "n/a" if delta.change_percent is None else f"{delta.change_percent:+.1f}%"
        print(
            f"  {delta.metric:<20} {delta.current_value:>10.2f} -> {delta.proposed_value:>10.2f}"
            f"  ({delta.change_value:+.2f}, {percent})"
        )
    return {
        "current": current.label,
        "proposed": proposed.label,
        "deltas": [delta.to_dict() for delta in deltas],
    }


def _optimal(args: argparse.Namespace, config: Dict[str, Any], profiles: Sequence[TaskProfile]) -> Dict[str, Any]:
    constraints = config["constraints"]
    min_rate = args.min_completion_rate if args.min_completion_rate is not None else constraints["min_completion_rate"]
    budget = args.max_budget if args.max_budget is not None else constraints["max_budget"]
    group = _simulate_configured(config, profiles)
    ranked = find_optimal(group, float(min_rate), float(budget), include_infeasible=args.include_infeasible)

    if not any(item.meets_requirements for item in ranked):
        print(f"No feasible staffing ratio found for completion >= {min_rate}% within {budget}.")
    for position, item in enumerate(ranked, start=1):
        marker = "ok" if item.meets_requirements else "--"
        print(
            f"{position:>3}. [{marker}] {item.result.label}: {item.result.completion_rate:.1f}% "
            f"cost {item.result.total_cost:,.2f} efficiency {item.efficiency_score}"
        )
    return {
        "min_completion_rate": min_rate,
        "max_budget": budget,
        "recommendations": [item.to_dict() for item in ranked],
    }


def _aggregate(args: argparse.Namespace) -> int:
    occurrence = {name: OccurrenceKind.ONCE_PER_SHIFT for name in args.once_per_shift}
    profiles = aggregate_responses(load_responses(args.survey), occurrence)
    write_profiles(args.output, profiles)
    print(f"Wrote {len(profiles)} task profiles to {args.output.resolve()}")
    return 0


def _synthesize(args: argparse.Namespace) -> int:
    frame = generate_responses(
        args.primary_count,
        args.secondary_count,
        variability=args.variability,
        random_seed=args.random_seed,
    )
    args.output.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(args.output, index=False)
    print(f"Wrote {len(frame)} synthetic survey answers to {args.output.resolve()}")
    return 0


def _print_results(group: ScenarioGroup) -> None:
    print("Simulation complete")
    print("------------------")
    print(f"Iterations per scenario: {group.iterations}")
    print(f"Confidence level: {group.confidence_level:.0%}")
    for result in group:
        interval = f"[{result.confidence_lower:5.1f}, {result.confidence_upper:5.1f}]"
        line = (
            f"{result.label:<24} completion {result.completion_rate:5.1f}% {interval} "
            f"risk {result.risk_score:5.1f}"
        )
        if result.has_costs:
            line += f" cost {result.total_cost:,.2f}"
        if result.partial:
            line += f" (partial: {result.iterations_completed} iterations)"
        print(line)


def _middle(values: Sequence[int]) -> int:
    return values[len(values) // 2]


__all__ = ["run_cli", "build_parser"]
