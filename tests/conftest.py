"""Shared fixtures for the staffing simulator tests."""
import math
from typing import Optional

import pytest

from staffsim.io import OccurrenceKind, Role, StaffingScenario, TaskProfile
from staffsim.statistics import SimulationResult, risk_score


@pytest.fixture
def vitals_profile() -> TaskProfile:
    return TaskProfile(
        name="VitalSigns",
        min_time=5,
        max_time=10,
        std_dev=1,
        frequency=0.9,
        role=Role.SECONDARY,
        occurrence=OccurrenceKind.PER_ASSIGNED_PATIENT,
        sample_size=12,
    )


@pytest.fixture
def overloaded_profiles() -> list:
    # Each role's workload alone exceeds an 8 hour shift.
    return [
        TaskProfile("Admissions", 500, 600, Role.PRIMARY, OccurrenceKind.ONCE_PER_SHIFT, sample_size=5),
        TaskProfile("Hygiene", 60, 90, Role.SECONDARY, frequency=1.0, sample_size=5),
    ]


@pytest.fixture
def coin_flip_profile() -> TaskProfile:
    # Centred on 480 minutes, so an 8 hour shift completes about half the time.
    return TaskProfile("Long Case", 400, 560, Role.SECONDARY, OccurrenceKind.ONCE_PER_SHIFT, std_dev=40)


@pytest.fixture
def ward_profiles() -> list:
    return [
        TaskProfile("Handoff/Report", 10, 20, Role.PRIMARY, OccurrenceKind.ONCE_PER_SHIFT, sample_size=6),
        TaskProfile("Medication Administration", 12, 30, Role.PRIMARY, frequency=0.95, sample_size=6),
        TaskProfile("Assessment & Documentation", 18, 35, Role.PRIMARY, frequency=0.9, sample_size=6),
        TaskProfile("Wound Care", 15, 40, Role.PRIMARY, frequency=0.2, sample_size=6),
        TaskProfile("Vital Signs", 4, 10, Role.SECONDARY, frequency=0.9, sample_size=6),
        TaskProfile("Patient Hygiene", 15, 30, Role.SECONDARY, frequency=0.5, sample_size=6),
        TaskProfile("Toileting Assistance", 5, 14, Role.SECONDARY, frequency=0.65, sample_size=6),
    ]


@pytest.fixture
def make_result():
    def factory(
        primary_ratio: int,
        secondary_ratio: int,
        completion_rate: float,
        total_cost: Optional[float] = None,
        iterations: int = 1000,
    ) -> SimulationResult:
        return SimulationResult(
            scenario=StaffingScenario(primary_ratio, secondary_ratio, 8, 30),
            iterations=iterations,
            iterations_completed=iterations,
            confidence_level=0.95,
            completion_rate=completion_rate,
            confidence_lower=max(0.0, completion_rate - 2),
            confidence_upper=min(100.0, completion_rate + 2),
            std_dev=0.0,
            risk_score=risk_score(completion_rate),
            failure_probability=100 - completion_rate,
            primary_headcount=None if total_cost is None else math.ceil(30 / primary_ratio),
            secondary_headcount=None if total_cost is None else math.ceil(30 / secondary_ratio),
            total_cost=total_cost,
        )

    return factory
