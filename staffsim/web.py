"""FastAPI application exposing the staffing simulator over HTTP."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, validator

from .analysis import compare_named, find_optimal, run_sensitivity
from .cost import RolePair, estimate_cost
from .errors import NotFound, StaffsimError
from .io import OccurrenceKind, StaffingScenario, TaskProfile, parse_occurrence, parse_role
from .simulation import build_scenarios, simulate, simulate_grid
from .statistics import ScenarioGroup
from .survey import aggregate_responses


class TaskProfilePayload(BaseModel):
    """Aggregate statistics for one task as supplied by the caller's data pipeline."""

    name: str = Field(..., min_length=1)
    role: str
    occurrence: str = OccurrenceKind.PER_ASSIGNED_PATIENT.value
    min_time: float = Field(..., gt=0.0)
    max_time: float = Field(..., gt=0.0)
    std_dev: Optional[float] = Field(None, ge=0.0)
    frequency: float = Field(1.0, gt=0.0, le=1.0)
    sample_size: Optional[int] = Field(None, ge=0)

    @validator("role")
    def _check_role(cls, value: str) -> str:
        return parse_role(value).value

    @validator("occurrence")
    def _check_occurrence(cls, value: str) -> str:
        return parse_occurrence(value).value

    @validator("max_time")
    def _check_range(cls, max_time: float, values: Dict[str, Any]) -> float:
        min_time = values.get("min_time")
        if min_time is not None and min_time >= max_time:
            raise ValueError("min_time must be below max_time")
        return max_time

    def to_profile(self) -> TaskProfile:
        return TaskProfile(
            name=self.name,
            role=parse_role(self.role),
            occurrence=parse_occurrence(self.occurrence),
            min_time=self.min_time,
            max_time=self.max_time,
            std_dev=self.std_dev,
            frequency=self.frequency,
            sample_size=self.sample_size,
        )


class RatesPayload(BaseModel):
    primary: float = Field(45.0, gt=0.0)
    secondary: float = Field(22.0, gt=0.0)

    def to_pair(self) -> RolePair:
        return RolePair(primary=self.primary, secondary=self.secondary)


class RatioPayload(BaseModel):
    primary_ratio: int = Field(..., ge=1)
    secondary_ratio: int = Field(..., ge=1)


class SimulationRequest(BaseModel):
    """Request body accepted by the ``/simulate`` endpoint."""

    profiles: List[TaskProfilePayload] = Field(..., min_length=1)
    primary_ratios: List[int] = Field(default_factory=lambda: [3, 4, 5], min_length=1)
    secondary_ratios: List[int] = Field(default_factory=lambda: [10, 12, 14], min_length=1)
    shift_hours: float = Field(8.0, gt=0.0)
    patient_volume: Optional[int] = Field(30, ge=1)
    iterations: int = Field(1000, ge=1)
    confidence_level: float = Field(0.95, gt=0.0, lt=1.0)
    interval: str = "normal"
    random_seed: Optional[int] = None
    rates: Optional[RatesPayload] = Field(default_factory=RatesPayload)
    overhead_multiplier: float = Field(1.3, gt=0.0)
    min_sample_size: Optional[int] = Field(None, ge=1)

    def task_profiles(self) -> List[TaskProfile]:
        return [payload.to_profile() for payload in self.profiles]

    def options(self) -> Dict[str, Any]:
        rates = self.rates.to_pair() if self.rates is not None and self.patient_volume is not None else None
        return {
            "iterations": self.iterations,
            "confidence_level": self.confidence_level,
            "interval": self.interval,
            "random_seed": self.random_seed,
            "rates": rates,
            "overhead_multiplier": self.overhead_multiplier,
            "min_sample_size": self.min_sample_size,
        }

    def scenario(self, ratios: RatioPayload) -> StaffingScenario:
        return StaffingScenario(ratios.primary_ratio, ratios.secondary_ratio, self.shift_hours, self.patient_volume)

    def run_grid(self) -> ScenarioGroup:
        scenarios = build_scenarios(
            self.primary_ratios, self.secondary_ratios, self.shift_hours, self.patient_volume
        )
        return simulate_grid(scenarios, self.task_profiles(), **self.options())


class CostRequest(BaseModel):
    primary_headcount: int = Field(..., ge=1)
    secondary_headcount: int = Field(..., ge=1)
    shift_hours: float = Field(8.0, gt=0.0)
    rates: RatesPayload = Field(default_factory=RatesPayload)
    overhead_multiplier: float = Field(1.3, gt=0.0)


class SensitivityRequest(SimulationRequest):
    baseline: RatioPayload
    parameter: str
    parameter_values: List[int] = Field(..., min_length=1)


class WhatIfRequest(SimulationRequest):
    current: RatioPayload
    proposed: RatioPayload


class OptimalRequest(SimulationRequest):
    min_completion_rate: float = Field(90.0, ge=0.0, le=100.0)
    max_budget: float = Field(10000.0, gt=0.0)
    include_infeasible: bool = False


class SurveyAnswerPayload(BaseModel):
    response_id: str = Field(..., min_length=1)
    survey_type: str
    task_name: str = Field(..., min_length=1)
    min_time: float = Field(..., gt=0.0)
    max_time: float = Field(..., gt=0.0)
    frequency: float = Field(..., gt=0.0, le=1.0)


class AggregateRequest(BaseModel):
    responses: List[SurveyAnswerPayload] = Field(..., min_length=1)
    once_per_shift: List[str] = Field(default_factory=list)

    @validator("once_per_shift", pre=True)
    def _clean_names(cls, value: Sequence[str] | str) -> List[str]:
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(",")]
            return [part for part in parts if part]
        return [item.strip() for item in value if item]


app = FastAPI(title="Staffing Ratio Simulator")


@app.post("/simulate")
def simulate_scenarios(payload: SimulationRequest) -> Dict[str, Any]:
    """Simulate every ratio pair and return the scenario group as JSON."""

    try:
        group = payload.run_grid()
    except StaffsimError as exc:
        raise _http_error(exc) from exc
    return {
        "iterations": group.iterations,
        "confidence_level": group.confidence_level,
        "results": group.to_list(),
    }


@app.post("/cost")
def cost(payload: CostRequest) -> Dict[str, float]:
    try:
        breakdown = estimate_cost(
            (payload.primary_headcount, payload.secondary_headcount),
            payload.shift_hours,
            payload.rates.to_pair(),
            payload.overhead_multiplier,
        )
    except StaffsimError as exc:  # pragma: no cover - payload bounds already enforced
        raise _http_error(exc) from exc
    return breakdown.to_dict()


@app.post("/sensitivity")
def sensitivity(payload: SensitivityRequest) -> Dict[str, Any]:
    options = payload.options()
    try:
        profiles = payload.task_profiles()
        baseline = simulate(payload.scenario(payload.baseline), profiles, **options)
        points = run_sensitivity(
            baseline,
            payload.parameter,
            payload.parameter_values,
            profiles,
            random_seed=payload.random_seed,
            rates=options["rates"],
            overhead_multiplier=payload.overhead_multiplier,
            interval=payload.interval,
        )
    except StaffsimError as exc:
        raise _http_error(exc) from exc
    return {
        "baseline": baseline.to_dict(),
        "points": [point.to_dict() for point in points],
    }


@app.post("/what-if")
def what_if(payload: WhatIfRequest) -> Dict[str, Any]:
    """Compare two scenarios of the requested grid; a pair outside the grid is a 404."""

    try:
        current = payload.scenario(payload.current)
        proposed = payload.scenario(payload.proposed)
        group = payload.run_grid()
        deltas = compare_named(group, current, proposed)
    except StaffsimError as exc:
        raise _http_error(exc) from exc
    return {
        "current": current.label,
        "proposed": proposed.label,
        "deltas": [delta.to_dict() for delta in deltas],
    }


@app.post("/optimal")
def optimal(payload: OptimalRequest) -> Dict[str, Any]:
    try:
        group = payload.run_grid()
        ranked = find_optimal(
            group,
            payload.min_completion_rate,
            payload.max_budget,
            include_infeasible=payload.include_infeasible,
        )
    except StaffsimError as exc:
        raise _http_error(exc) from exc
    return {
        "feasible": any(item.meets_requirements for item in ranked),
        "recommendations": [item.to_dict() for item in ranked],
    }


@app.post("/profiles/aggregate")
def aggregate(payload: AggregateRequest) -> Dict[str, Any]:
    frame = pd.DataFrame([answer.dict() for answer in payload.responses])
    occurrence = {name: OccurrenceKind.ONCE_PER_SHIFT for name in payload.once_per_shift}
    try:
        profiles = aggregate_responses(frame, occurrence)
    except StaffsimError as exc:
        raise _http_error(exc) from exc
    return {
        "profiles": [
            {
                "name": profile.name,
                "role": profile.role.value,
                "occurrence": profile.occurrence.value,
                "min_time": profile.min_time,
                "max_time": profile.max_time,
                "std_dev": profile.std_dev,
                "frequency": profile.frequency,
                "sample_size": profile.sample_size,
            }
            for profile in profiles
        ]
    }


def _http_error(exc: StaffsimError) -> HTTPException:
    status = 404 if isinstance(exc, NotFound) else 400
    return HTTPException(status_code=status, detail=str(exc))


__all__ = ["app"]
