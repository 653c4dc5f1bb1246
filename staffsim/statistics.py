"""Reduction of Monte Carlo outcomes into completion, confidence and risk metrics."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .errors import InvalidParameter, NotFound
from .io import StaffingScenario

Z_VALUES: Dict[float, float] = {
    0.90: 1.65,
    0.95: 1.96,
    0.99: 2.58,
}

INTERVAL_METHODS = ("normal", "wilson")

RISK_THRESHOLD = 80.0


@dataclass(frozen=True)
class OutcomeSummary:
    count: int
    mean: float
    std_dev: float


@dataclass(frozen=True)
class SimulationResult:
    """Outcome of simulating one staffing scenario.

    Rates are percentages in ``[0, 100]``. ``partial`` is set when the
    iteration loop was cut short by a time budget, in which case the
    statistics only cover ``iterations_completed`` shifts. Cost fields are
    ``None`` unless the cost model was applied.
    """

    scenario: StaffingScenario
    iterations: int
    iterations_completed: int
    confidence_level: float
    completion_rate: float
    confidence_lower: float
    confidence_upper: float
    std_dev: float
    risk_score: float
    failure_probability: float
    partial: bool = False
    primary_headcount: Optional[int] = None
    secondary_headcount: Optional[int] = None
    primary_role_cost: Optional[float] = None
    secondary_role_cost: Optional[float] = None
    total_cost: Optional[float] = None

    @property
    def label(self) -> str:
        return self.scenario.label

    @property
    def has_costs(self) -> bool:
        return self.total_cost is not None

    def to_dict(self) -> Dict[str, object]:
        return {
            "scenario": self.scenario.to_dict(),
            "iterations": self.iterations,
            "iterations_completed": self.iterations_completed,
            "partial": self.partial,
            "confidence_level": self.confidence_level,
            "completion_rate": self.completion_rate,
            "confidence_lower": self.confidence_lower,
            "confidence_upper": self.confidence_upper,
            "std_dev": self.std_dev,
            "risk_score": self.risk_score,
            "failure_probability": self.failure_probability,
            "primary_headcount": self.primary_headcount,
            "secondary_headcount": self.secondary_headcount,
            "primary_role_cost": self.primary_role_cost,
            "secondary_role_cost": self.secondary_role_cost,
            "total_cost": self.total_cost,
        }


def z_value(confidence_level: float) -> float:
    """Return the two-sided z critical value for a supported confidence level."""
    for level, z in Z_VALUES.items():
        if math.isclose(confidence_level, level, abs_tol=1e-9):
            return z
    supported = ", ".join(f"{level:g}" for level in Z_VALUES)
    raise InvalidParameter(
        f"Unsupported confidence level {confidence_level!r}; supported levels are {supported}."
    )


def summarize_outcomes(outcomes: Iterable[float]) -> OutcomeSummary:
    """Fold a sequence of per-iteration outcomes into count, mean and population deviation."""
    count = 0
    total = 0.0
    total_sq = 0.0
    for outcome in outcomes:
        count += 1
        total += outcome
        total_sq += outcome * outcome
    if count == 0:
        raise InvalidParameter("At least one outcome is required.")
    mean = total / count
    variance = max(total_sq / count - mean * mean, 0.0)
    return OutcomeSummary(count=count, mean=mean, std_dev=math.sqrt(variance))


def confidence_interval(
    completion_rate: float,
    std_dev: float,
    count: int,
    confidence_level: float = 0.95,
    method: str = "normal",
) -> Tuple[float, float]:
    """Bounds of the completion rate, clamped to ``[0, 100]``.

    ``normal`` is the normal approximation ``rate +/- z * sd / sqrt(n)``.
    ``wilson`` uses the Wilson score interval on the underlying proportion,
    which behaves better near 0% and 100%.
    """
    if count < 1:
        raise InvalidParameter("Confidence interval requires at least one outcome.")
    z = z_value(confidence_level)

    if method == "normal":
        margin = z * std_dev / math.sqrt(count)
        lower, upper = completion_rate - margin, completion_rate + margin
    elif method == "wilson":
        lower, upper = _wilson_interval(completion_rate / 100.0, count, z)
    else:
        raise InvalidParameter(f"Unknown interval method {method!r}; use one of {', '.join(INTERVAL_METHODS)}.")

    return max(0.0, lower), min(100.0, upper)


def _wilson_interval(proportion: float, count: int, z: float) -> Tuple[float, float]:
    z_sq = z * z
    denominator = 1 + z_sq / count
    centre = (proportion + z_sq / (2 * count)) / denominator
    half_width = z * math.sqrt(proportion * (1 - proportion) / count + z_sq / (4 * count * count)) / denominator
    lower = min(centre - half_width, proportion)
    upper = max(centre + half_width, proportion)
    return lower * 100.0, upper * 100.0


def risk_score(completion_rate: float) -> float:
    """Shortfall penalty: linear below 80% completion, halved above it."""
    shortfall = 100.0 - completion_rate
    if completion_rate < RISK_THRESHOLD:
        return shortfall
    return shortfall * 0.5


def build_result(
    scenario: StaffingScenario,
    outcomes: Iterable[float],
    *,
    iterations: int,
    confidence_level: float = 0.95,
    interval: str = "normal",
) -> SimulationResult:
    """Aggregate per-iteration outcomes (0 or 100) into a :class:`SimulationResult`."""
    summary = summarize_outcomes(outcomes)
    lower, upper = confidence_interval(
        summary.mean, summary.std_dev, summary.count, confidence_level, interval
    )
    return SimulationResult(
        scenario=scenario,
        iterations=iterations,
        iterations_completed=summary.count,
        confidence_level=confidence_level,
        completion_rate=summary.mean,
        confidence_lower=lower,
        confidence_upper=upper,
        std_dev=summary.std_dev,
        risk_score=risk_score(summary.mean),
        failure_probability=100.0 - summary.mean,
        partial=summary.count < iterations,
    )


class ScenarioGroup:
    """Ordered results that share an iteration count and confidence level."""

    def __init__(self, results: Iterable[SimulationResult] = ()) -> None:
        self._results: List[SimulationResult] = []
        for result in results:
            self.add(result)

    def add(self, result: SimulationResult) -> None:
        if self._results:
            first = self._results[0]
            if result.iterations != first.iterations:
                raise InvalidParameter(
                    f"Scenario group mixes iteration counts ({first.iterations} and {result.iterations})."
                )
            if not math.isclose(result.confidence_level, first.confidence_level):
                raise InvalidParameter(
                    "Scenario group mixes confidence levels "
                    f"({first.confidence_level:g} and {result.confidence_level:g})."
                )
        self._results.append(result)

    @property
    def iterations(self) -> Optional[int]:
        return self._results[0].iterations if self._results else None

    @property
    def confidence_level(self) -> Optional[float]:
        return self._results[0].confidence_level if self._results else None

    @property
    def labels(self) -> List[str]:
        return [result.label for result in self._results]

    def get(self, key: Union[str, StaffingScenario]) -> SimulationResult:
        """Look a result up by scenario label or by scenario."""
        for result in self._results:
            if isinstance(key, StaffingScenario):
                if result.scenario == key:
                    return result
            elif result.label == key:
                return result
        name = key.label if isinstance(key, StaffingScenario) else key
        raise NotFound(f"Scenario '{name}' is not part of this scenario group.")

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, (str, StaffingScenario)):
            return False
        try:
            self.get(key)
        except NotFound:
            return False
        return True

    def __iter__(self) -> Iterator[SimulationResult]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def __getitem__(self, index: int) -> SimulationResult:
        return self._results[index]

    def to_list(self) -> List[Dict[str, object]]:
        return [result.to_dict() for result in self._results]


__all__ = [
    "Z_VALUES",
    "INTERVAL_METHODS",
    "OutcomeSummary",
    "SimulationResult",
    "ScenarioGroup",
    "z_value",
    "summarize_outcomes",
    "confidence_interval",
    "risk_score",
    "build_result",
]
