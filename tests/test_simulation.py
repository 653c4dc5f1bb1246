"""Tests for the task time sampler, workload accumulator and Monte Carlo loop."""
import random

import pytest

from staffsim.errors import InsufficientData, InvalidParameter
from staffsim.io import OccurrenceKind, Role, StaffingScenario, TaskProfile
from staffsim.simulation import (
    MonteCarloSimulator,
    accumulate_workload,
    build_scenarios,
    sample_task_time,
    simulate,
    simulate_grid,
)


def test_sampled_durations_stay_within_observed_range():
    profile = TaskProfile("Wound Care", 10, 40, Role.PRIMARY, std_dev=60)
    for seed in range(25):
        rng = random.Random(seed)
        for _ in range(200):
            value = sample_task_time(profile, rng)
            assert profile.min_time <= value <= profile.max_time


def test_zero_deviation_samples_the_midpoint():
    profile = TaskProfile("Chart Review", 8, 16, Role.PRIMARY, std_dev=0)
    assert sample_task_time(profile, random.Random(3)) == 12


def test_once_per_shift_task_ignores_ratio():
    profile = TaskProfile("Handoff/Report", 10, 20, Role.PRIMARY, OccurrenceKind.ONCE_PER_SHIFT, std_dev=0)
    rng = random.Random(1)
    for ratio in (1, 4, 9):
        primary, secondary = accumulate_workload(StaffingScenario(ratio, 10, 8), [profile], rng)
        assert primary == 15
        assert secondary == 0


def test_per_patient_task_scales_with_role_ratio():
    profiles = [
        TaskProfile("Medication Administration", 10, 20, Role.PRIMARY, std_dev=0, frequency=1.0),
        TaskProfile("Vital Signs", 4, 8, Role.SECONDARY, std_dev=0, frequency=1.0),
    ]
    primary, secondary = accumulate_workload(StaffingScenario(3, 11, 8), profiles, random.Random(0))
    assert primary == 3 * 15
    assert secondary == 11 * 6


def test_vital_signs_scenario_completes_nearly_always(vitals_profile):
    scenario = StaffingScenario(primary_ratio=4, secondary_ratio=10, shift_hours=8)
    result = simulate(scenario, [vitals_profile], iterations=1000, confidence_level=0.95, random_seed=11)

    assert result.completion_rate > 99
    assert result.confidence_upper - result.confidence_lower < 5
    assert result.iterations_completed == 1000
    assert not result.partial


def test_overloaded_scenario_never_completes(overloaded_profiles):
    scenario = StaffingScenario(4, 10, 8)
    result = simulate(scenario, overloaded_profiles, iterations=300, random_seed=5)

    assert result.completion_rate == 0
    assert result.risk_score == 100
    assert result.failure_probability == 100
    assert result.confidence_lower == result.confidence_upper == 0


def test_completion_rate_never_drops_with_longer_shifts(ward_profiles):
    rates = [
        simulate(StaffingScenario(5, 12, hours), ward_profiles, iterations=400, random_seed=42).completion_rate
        for hours in (2, 3, 4, 5, 6, 8, 10, 12)
    ]
    assert rates == sorted(rates)


def test_interval_brackets_rate_and_narrows_with_iterations(coin_flip_profile):
    scenario = StaffingScenario(4, 10, 8)
    small = simulate(scenario, [coin_flip_profile], iterations=100, random_seed=7)
    large = simulate(scenario, [coin_flip_profile], iterations=10000, random_seed=7)

    for result in (small, large):
        assert result.confidence_lower <= result.completion_rate <= result.confidence_upper
    assert 30 < large.completion_rate < 70
    assert (large.confidence_upper - large.confidence_lower) <= (
        small.confidence_upper - small.confidence_lower
    )


def test_same_seed_reproduces_result(ward_profiles):
    scenario = StaffingScenario(5, 14, 8)
    first = simulate(scenario, ward_profiles, iterations=250, random_seed=99)
    second = simulate(scenario, ward_profiles, iterations=250, rng=random.Random(99))
    assert first == second


def test_invalid_iterations_and_confidence_are_rejected(vitals_profile):
    scenario = StaffingScenario(4, 10, 8)
    with pytest.raises(InvalidParameter):
        simulate(scenario, [vitals_profile], iterations=0)
    with pytest.raises(InvalidParameter):
        simulate(scenario, [vitals_profile], confidence_level=0.8)
    with pytest.raises(InvalidParameter):
        simulate(scenario, [vitals_profile], interval="bootstrap")


def test_empty_or_thin_profiles_refuse_to_simulate(vitals_profile):
    scenario = StaffingScenario(4, 10, 8)
    thin = TaskProfile("Feeding", 8, 20, Role.SECONDARY, frequency=0.5, sample_size=2)

    with pytest.raises(InsufficientData):
        simulate(scenario, [])
    with pytest.raises(InsufficientData, match="Feeding"):
        simulate(scenario, [vitals_profile, thin], iterations=10, min_sample_size=3)

    result = simulate(scenario, [vitals_profile], iterations=10, min_sample_size=3)
    assert result.iterations_completed == 10


def test_time_budget_returns_flagged_partial_result(ward_profiles):
    result = simulate(StaffingScenario(4, 12, 8), ward_profiles, iterations=500, time_budget=0.0, random_seed=1)
    assert result.partial
    assert result.iterations == 500
    assert result.iterations_completed == 1


def test_cost_annotation_uses_patient_volume(ward_profiles):
    scenario = StaffingScenario(4, 12, 8, patient_volume=30)
    result = simulate(scenario, ward_profiles, iterations=50, random_seed=3, rates={"primary": 45, "secondary": 22})

    assert result.primary_headcount == 8
    assert result.secondary_headcount == 3
    assert result.primary_role_cost == pytest.approx(2880)
    assert result.secondary_role_cost == pytest.approx(528)
    assert result.total_cost == pytest.approx(3408 * 1.3)

    with pytest.raises(InvalidParameter):
        simulate(StaffingScenario(4, 12, 8), ward_profiles, iterations=10, rates=(45, 22))


def test_simulator_can_be_reused_across_scenarios(ward_profiles):
    simulator = MonteCarloSimulator(ward_profiles, iterations=200, random_seed=8)
    light = simulator.run(StaffingScenario(2, 6, 8))
    heavy = simulator.run(StaffingScenario(9, 20, 8))
    assert light.completion_rate >= heavy.completion_rate


def test_build_scenarios_orders_primary_slowest():
    scenarios = build_scenarios([3, 4], [10, 12], 8, 30)
    assert [(s.primary_ratio, s.secondary_ratio) for s in scenarios] == [(3, 10), (3, 12), (4, 10), (4, 12)]
    assert all(s.patient_volume == 30 for s in scenarios)

    with pytest.raises(InvalidParameter):
        build_scenarios([], [10], 8)


def test_grid_results_do_not_depend_on_worker_count(ward_profiles):
    scenarios = build_scenarios([3, 5], [10, 14], 8, 30)
    serial = simulate_grid(scenarios, ward_profiles, iterations=150, random_seed=21, rates=(45, 22))
    parallel = simulate_grid(scenarios, ward_profiles, iterations=150, random_seed=21, rates=(45, 22), workers=2)

    assert serial.labels == parallel.labels
    assert [r.completion_rate for r in serial] == [r.completion_rate for r in parallel]
    assert all(result.has_costs for result in serial)
