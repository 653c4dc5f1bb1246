"""Sensitivity, what-if and optimal-staffing analyses over simulated scenarios."""
from __future__ import annotations

import dataclasses
import logging
import math
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from .cost import DEFAULT_OVERHEAD_MULTIPLIER, PairLike
from .errors import InvalidParameter
from .io import StaffingScenario, TaskProfile
from .simulation import simulate
from .statistics import ScenarioGroup, SimulationResult

logger = logging.getLogger(__name__)

SENSITIVITY_PARAMETERS = ("primary_ratio", "secondary_ratio")

_RATE_METRICS = (
    "completion_rate",
    "failure_probability",
    "risk_score",
    "confidence_lower",
    "confidence_upper",
)
_COST_METRICS = ("total_cost", "primary_headcount", "secondary_headcount")


@dataclass(frozen=True)
class SensitivityPoint:
    parameter: str
    parameter_value: int
    completion_rate: float
    rate_change_percent: Optional[float]
    result: SimulationResult

    def to_dict(self) -> Dict[str, object]:
        return {
            "parameter": self.parameter,
            "parameter_value": self.parameter_value,
            "completion_rate": self.completion_rate,
            "rate_change_percent": self.rate_change_percent,
            "partial": self.result.partial,
        }


@dataclass(frozen=True)
class MetricDelta:
    """Change of one metric between a current and a proposed scenario.

    ``change_percent`` is ``None`` when the current value is zero and the
    metric moved, since the relative change is undefined there.
    """

    metric: str
    current_value: float
    proposed_value: float
    change_value: float
    change_percent: Optional[float]

    def to_dict(self) -> Dict[str, object]:
        return {
            "metric": self.metric,
            "current_value": self.current_value,
            "proposed_value": self.proposed_value,
            "change_value": self.change_value,
            "change_percent": self.change_percent,
        }


@dataclass(frozen=True)
class RankedScenario:
    result: SimulationResult
    efficiency_score: int
    meets_requirements: bool

    def to_dict(self) -> Dict[str, object]:
        payload = self.result.to_dict()
        payload["efficiency_score"] = self.efficiency_score
        payload["meets_requirements"] = self.meets_requirements
        return payload


def run_sensitivity(
    baseline: SimulationResult,
    parameter: str,
    values: Sequence[int],
    profiles: Sequence[TaskProfile],
    *,
    random_seed: Optional[int] = None,
    rates: Optional[PairLike] = None,
    overhead_multiplier: float = DEFAULT_OVERHEAD_MULTIPLIER,
    time_budget: Optional[float] = None,
    interval: str = "normal",
) -> List[SensitivityPoint]:
    """Re-simulate the baseline with one ratio swapped for each of ``values``.

    The other ratio and the shift length stay at the baseline's values and
    each variant reuses the baseline's iteration count and confidence level.
    """
    if parameter not in SENSITIVITY_PARAMETERS:
        raise InvalidParameter(
            f"Unknown sensitivity parameter {parameter!r}; use one of {', '.join(SENSITIVITY_PARAMETERS)}."
        )
    if not values:
        raise InvalidParameter("At least one parameter value is required.")

    base_rate = baseline.completion_rate
    seeder = random.Random(random_seed)
    points: List[SensitivityPoint] = []
    for value in values:
        variant = dataclasses.replace(baseline.scenario, **{parameter: value})
        result = simulate(
            variant,
            profiles,
            baseline.iterations,
            baseline.confidence_level,
            random_seed=seeder.getrandbits(64),
            rates=rates,
            overhead_multiplier=overhead_multiplier,
            time_budget=time_budget,
            interval=interval,
        )
        change = None
        if base_rate != 0:
            change = (result.completion_rate - base_rate) / base_rate * 100
        points.append(
            SensitivityPoint(
                parameter=parameter,
                parameter_value=value,
                completion_rate=result.completion_rate,
                rate_change_percent=change,
                result=result,
            )
        )
    if base_rate == 0:
        logger.info("Baseline %s never completes; rate changes are undefined", baseline.label)
    return points


def compare_what_if(current: SimulationResult, proposed: SimulationResult) -> List[MetricDelta]:
    metrics = list(_RATE_METRICS)
    if current.has_costs and proposed.has_costs:
        metrics.extend(_COST_METRICS)
    return [
        _delta(metric, float(getattr(current, metric)), float(getattr(proposed, metric)))
        for metric in metrics
    ]


def compare_named(
    group: ScenarioGroup,
    current: Union[str, StaffingScenario],
    proposed: Union[str, StaffingScenario],
) -> List[MetricDelta]:
    """Compare two scenarios looked up by name; a missing name raises ``NotFound``."""
    return compare_what_if(group.get(current), group.get(proposed))


def _delta(metric: str, current: float, proposed: float) -> MetricDelta:
    change = proposed - current
    if current != 0:
        percent: Optional[float] = change / current * 100
    elif change == 0:
        percent = 0.0
    else:
        percent = None
    return MetricDelta(
        metric=metric,
        current_value=current,
        proposed_value=proposed,
        change_value=change,
        change_percent=percent,
    )


def efficiency_score(result: SimulationResult) -> int:
    """Completion rate per 1,000 currency units of shift cost, rounded half up."""
    if not result.total_cost:
        raise InvalidParameter(f"Scenario {result.label} has no cost estimate.")
    return math.floor(result.completion_rate * 1000 / result.total_cost + 0.5)


def find_optimal(
    group: ScenarioGroup,
    min_completion_rate: float,
    max_budget: float,
    *,
    include_infeasible: bool = False,
) -> List[RankedScenario]:
    """Rank scenarios meeting both constraints by efficiency, best first.

    An empty list means no scenario is feasible. With ``include_infeasible``
    every scenario is returned and ``meets_requirements`` tells them apart.
    """
    if not 0 <= min_completion_rate <= 100:
        raise InvalidParameter(f"min_completion_rate must be within [0, 100], got {min_completion_rate!r}.")
    if max_budget <= 0:
        raise InvalidParameter(f"max_budget must be positive, got {max_budget!r}.")

    ranked: List[RankedScenario] = []
    for result in group:
        if not result.has_costs:
            raise InvalidParameter(
                f"Scenario {result.label} has no cost estimate; simulate it with hourly rates."
            )
        meets = result.completion_rate >= min_completion_rate and result.total_cost <= max_budget
        if meets or include_infeasible:
            ranked.append(RankedScenario(result, efficiency_score(result), meets))

    ranked.sort(
        key=lambda item: (-item.efficiency_score, -item.result.completion_rate, item.result.total_cost)
    )
    logger.info(
        "%d of %d scenarios meet completion >= %g%% within budget %g",
        sum(1 for item in ranked if item.meets_requirements),
        len(group),
        min_completion_rate,
        max_budget,
    )
    return ranked


__all__ = [
    "SENSITIVITY_PARAMETERS",
    "SensitivityPoint",
    "MetricDelta",
    "RankedScenario",
    "run_sensitivity",
    "compare_what_if",
    "compare_named",
    "efficiency_score",
    "find_optimal",
]
