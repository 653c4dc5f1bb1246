"""Core Monte Carlo workload simulation for staffing scenarios."""
from __future__ import annotations

import dataclasses
import logging
import random
import time
from concurrent.futures import ProcessPoolExecutor
from itertools import product
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .cost import DEFAULT_OVERHEAD_MULTIPLIER, PairLike, as_role_pair, estimate_cost, headcount
from .errors import InsufficientData, InvalidParameter
from .io import OccurrenceKind, Role, StaffingScenario, TaskProfile, index_profiles
from .statistics import INTERVAL_METHODS, ScenarioGroup, SimulationResult, build_result, z_value

logger = logging.getLogger(__name__)

DEFAULT_ITERATIONS = 1000
DEFAULT_CONFIDENCE_LEVEL = 0.95


def sample_task_time(profile: TaskProfile, rng: random.Random) -> float:
    """Draw one duration for a task, perturbed around the midpoint and clamped to the observed range."""
    raw = profile.midpoint + (rng.random() - 0.5) * 2 * profile.std_dev
    return min(profile.max_time, max(profile.min_time, raw))


def accumulate_workload(
    scenario: StaffingScenario,
    profiles: Sequence[TaskProfile],
    rng: random.Random,
) -> Tuple[float, float]:
    """Total minutes of work for one provider of each role during one simulated shift."""
    totals: Dict[Role, float] = {Role.PRIMARY: 0.0, Role.SECONDARY: 0.0}
    for profile in profiles:
        if profile.occurrence is OccurrenceKind.ONCE_PER_SHIFT:
            totals[profile.role] += sample_task_time(profile, rng)
            continue
        for _ in range(scenario.ratio_for(profile.role)):
            if rng.random() < profile.frequency:
                totals[profile.role] += sample_task_time(profile, rng)
    return totals[Role.PRIMARY], totals[Role.SECONDARY]


class MonteCarloSimulator:
    """Run Monte Carlo shift simulations for a fixed set of task profiles."""

    def __init__(
        self,
        profiles: Sequence[TaskProfile],
        iterations: int = DEFAULT_ITERATIONS,
        confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
        random_seed: Optional[int] = None,
        *,
        rng: Optional[random.Random] = None,
        min_sample_size: Optional[int] = None,
        time_budget: Optional[float] = None,
        interval: str = "normal",
    ) -> None:
        if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations < 1:
            raise InvalidParameter(f"Iterations must be a positive integer, got {iterations!r}.")
        z_value(confidence_level)
        if interval not in INTERVAL_METHODS:
            raise InvalidParameter(f"Unknown interval method {interval!r}.")
        if time_budget is not None and time_budget < 0:
            raise InvalidParameter("time_budget must not be negative.")
        if not profiles:
            raise InsufficientData("At least one task profile is required for simulation.")

        self.profiles = tuple(profiles)
        index_profiles(self.profiles)
        if min_sample_size is not None:
            _check_sample_sizes(self.profiles, min_sample_size)

        self.iterations = iterations
        self.confidence_level = confidence_level
        self.time_budget = time_budget
        self.interval = interval
        self._rng = rng if rng is not None else random.Random(random_seed)

    def run(
        self,
        scenario: StaffingScenario,
        rates: Optional[PairLike] = None,
        overhead_multiplier: float = DEFAULT_OVERHEAD_MULTIPLIER,
    ) -> SimulationResult:
        logger.debug("Simulating %s over %d iterations", scenario.label, self.iterations)
        result = build_result(
            scenario,
            self._outcomes(scenario),
            iterations=self.iterations,
            confidence_level=self.confidence_level,
            interval=self.interval,
        )
        if rates is not None:
            result = annotate_costs(result, rates, overhead_multiplier)
        return result

    def _outcomes(self, scenario: StaffingScenario) -> Iterator[int]:
        limit = scenario.shift_minutes
        deadline = None if self.time_budget is None else time.monotonic() + self.time_budget
        for completed in range(1, self.iterations + 1):
            primary, secondary = accumulate_workload(scenario, self.profiles, self._rng)
            yield 100 if primary <= limit and secondary <= limit else 0
            if deadline is not None and completed < self.iterations and time.monotonic() >= deadline:
                logger.warning(
                    "Time budget exhausted for %s after %d of %d iterations; result is partial",
                    scenario.label,
                    completed,
                    self.iterations,
                )
                return


def annotate_costs(
    result: SimulationResult,
    rates: PairLike,
    overhead_multiplier: float = DEFAULT_OVERHEAD_MULTIPLIER,
) -> SimulationResult:
    """Attach headcount and labour cost for the scenario's patient volume."""
    scenario = result.scenario
    if scenario.patient_volume is None:
        raise InvalidParameter(f"Scenario {scenario.label} needs a patient_volume to estimate cost.")
    primary_count = headcount(scenario.patient_volume, scenario.primary_ratio)
    secondary_count = headcount(scenario.patient_volume, scenario.secondary_ratio)
    breakdown = estimate_cost(
        (primary_count, secondary_count),
        scenario.shift_hours,
        as_role_pair(rates, "rates"),
        overhead_multiplier,
    )
    return dataclasses.replace(
        result,
        primary_headcount=primary_count,
        secondary_headcount=secondary_count,
        primary_role_cost=breakdown.primary_cost,
        secondary_role_cost=breakdown.secondary_cost,
        total_cost=breakdown.total_with_overhead,
    )


def simulate(
    scenario: StaffingScenario,
    profiles: Sequence[TaskProfile],
    iterations: int = DEFAULT_ITERATIONS,
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
    *,
    random_seed: Optional[int] = None,
    rng: Optional[random.Random] = None,
    rates: Optional[PairLike] = None,
    overhead_multiplier: float = DEFAULT_OVERHEAD_MULTIPLIER,
    min_sample_size: Optional[int] = None,
    time_budget: Optional[float] = None,
    interval: str = "normal",
) -> SimulationResult:
    """Simulate one scenario and return its completion, confidence, risk and cost metrics."""
    simulator = MonteCarloSimulator(
        profiles,
        iterations=iterations,
        confidence_level=confidence_level,
        random_seed=random_seed,
        rng=rng,
        min_sample_size=min_sample_size,
        time_budget=time_budget,
        interval=interval,
    )
    return simulator.run(scenario, rates=rates, overhead_multiplier=overhead_multiplier)


def build_scenarios(
    primary_ratios: Sequence[int],
    secondary_ratios: Sequence[int],
    shift_hours: float,
    patient_volume: Optional[int] = None,
) -> List[StaffingScenario]:
    """Cartesian product of the ratio lists, primary ratio varying slowest."""
    if not primary_ratios or not secondary_ratios:
        raise InvalidParameter("Both ratio lists must contain at least one value.")
    scenarios: List[StaffingScenario] = []
    for primary, secondary in product(primary_ratios, secondary_ratios):
        scenario = StaffingScenario(primary, secondary, shift_hours, patient_volume)
        if scenario not in scenarios:
            scenarios.append(scenario)
    return scenarios


def simulate_grid(
    scenarios: Sequence[StaffingScenario],
    profiles: Sequence[TaskProfile],
    iterations: int = DEFAULT_ITERATIONS,
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
    *,
    random_seed: Optional[int] = None,
    rates: Optional[PairLike] = None,
    overhead_multiplier: float = DEFAULT_OVERHEAD_MULTIPLIER,
    min_sample_size: Optional[int] = None,
    time_budget: Optional[float] = None,
    interval: str = "normal",
    workers: int = 1,
) -> ScenarioGroup:
    """Simulate every scenario with its own random source and collect a :class:`ScenarioGroup`.

    Per-scenario seeds are drawn up front from ``random_seed``, so the output
    does not depend on ``workers``.
    """
    if not scenarios:
        raise InvalidParameter("At least one scenario is required.")
    if workers < 1:
        raise InvalidParameter(f"workers must be positive, got {workers!r}.")

    # Validate everything once before fanning out.
    MonteCarloSimulator(
        profiles,
        iterations=iterations,
        confidence_level=confidence_level,
        min_sample_size=min_sample_size,
        time_budget=time_budget,
        interval=interval,
    )
    rates_pair = as_role_pair(rates, "rates") if rates is not None else None

    seeder = random.Random(random_seed)
    options: Mapping[str, object] = {
        "iterations": iterations,
        "confidence_level": confidence_level,
        "rates": rates_pair,
        "overhead_multiplier": overhead_multiplier,
        "time_budget": time_budget,
        "interval": interval,
    }
    jobs = [(scenario, tuple(profiles), seeder.getrandbits(64), options) for scenario in scenarios]

    logger.info(
        "Simulating %d scenarios x %d iterations with %d worker(s)", len(jobs), iterations, workers
    )
    if workers > 1 and len(jobs) > 1:
        with ProcessPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(_simulate_job, jobs))
    else:
        results = [_simulate_job(job) for job in jobs]

    partial = sum(1 for result in results if result.partial)
    if partial:
        logger.warning("%d of %d scenarios returned partial results", partial, len(results))
    return ScenarioGroup(results)


def _simulate_job(
    job: Tuple[StaffingScenario, Tuple[TaskProfile, ...], int, Mapping[str, object]]
) -> SimulationResult:
    scenario, profiles, seed, options = job
    return simulate(scenario, profiles, random_seed=seed, **options)  # type: ignore[arg-type]


def _check_sample_sizes(profiles: Sequence[TaskProfile], min_sample_size: int) -> None:
    if min_sample_size < 1:
        raise InvalidParameter(f"min_sample_size must be positive, got {min_sample_size!r}.")
    thin = [
        f"{profile.name} ({'unknown' if profile.sample_size is None else profile.sample_size})"
        for profile in profiles
        if profile.sample_size is None or profile.sample_size < min_sample_size
    ]
    if thin:
        raise InsufficientData(
            f"Need at least {min_sample_size} survey responses per task; too few for: {', '.join(thin)}"
        )


__all__ = [
    "DEFAULT_ITERATIONS",
    "DEFAULT_CONFIDENCE_LEVEL",
    "MonteCarloSimulator",
    "sample_task_time",
    "accumulate_workload",
    "annotate_costs",
    "simulate",
    "build_scenarios",
    "simulate_grid",
]
