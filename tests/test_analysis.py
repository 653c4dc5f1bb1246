"""Tests for sensitivity analysis, what-if comparison and optimal staffing search."""
import pytest

from staffsim.analysis import compare_named, compare_what_if, efficiency_score, find_optimal, run_sensitivity
from staffsim.errors import InvalidParameter, NotFound
from staffsim.io import StaffingScenario
from staffsim.simulation import simulate
from staffsim.statistics import ScenarioGroup


def test_sensitivity_varies_one_ratio_only(ward_profiles):
    baseline = simulate(StaffingScenario(4, 12, 8, 30), ward_profiles, iterations=300, random_seed=4)
    points = run_sensitivity(baseline, "secondary_ratio", [8, 12, 20], ward_profiles, random_seed=4)

    assert [point.parameter_value for point in points] == [8, 12, 20]
    for point in points:
        assert point.parameter == "secondary_ratio"
        assert point.result.scenario.primary_ratio == 4
        assert point.result.scenario.secondary_ratio == point.parameter_value
        assert point.result.scenario.shift_hours == 8
        assert point.result.iterations == baseline.iterations
        expected = (point.completion_rate - baseline.completion_rate) / baseline.completion_rate * 100
        assert point.rate_change_percent == pytest.approx(expected)
    assert points[0].completion_rate >= points[-1].completion_rate


def test_sensitivity_change_is_undefined_for_zero_baseline(overloaded_profiles):
    baseline = simulate(StaffingScenario(4, 10, 8), overloaded_profiles, iterations=100, random_seed=2)
    points = run_sensitivity(baseline, "primary_ratio", [2, 3], overloaded_profiles)

    assert baseline.completion_rate == 0
    assert all(point.rate_change_percent is None for point in points)


def test_sensitivity_rejects_unknown_parameter(make_result, ward_profiles):
    baseline = make_result(4, 12, 90.0)
    with pytest.raises(InvalidParameter):
        run_sensitivity(baseline, "shift_hours", [6, 8], ward_profiles)
    with pytest.raises(InvalidParameter):
        run_sensitivity(baseline, "primary_ratio", [], ward_profiles)


def test_comparing_a_scenario_with_itself_is_a_no_op(make_result):
    result = make_result(4, 12, 100.0, total_cost=4430.4)
    deltas = compare_what_if(result, result)

    assert {delta.metric for delta in deltas} >= {"completion_rate", "risk_score", "total_cost"}
    for delta in deltas:
        assert delta.change_value == 0
        assert delta.change_percent == 0


def test_what_if_reports_absolute_and_relative_change(make_result):
    current = make_result(4, 12, 80.0, total_cost=4000.0)
    proposed = make_result(3, 10, 90.0, total_cost=5000.0)
    deltas = {delta.metric: delta for delta in compare_what_if(current, proposed)}

    assert deltas["completion_rate"].change_value == 10
    assert deltas["completion_rate"].change_percent == pytest.approx(12.5)
    assert deltas["total_cost"].change_percent == pytest.approx(25.0)
    assert deltas["primary_headcount"].proposed_value == 10
    assert deltas["risk_score"].current_value == 10
    assert deltas["risk_score"].proposed_value == 5


def test_what_if_flags_undefined_percent_change(make_result):
    deltas = {
        delta.metric: delta
        for delta in compare_what_if(make_result(4, 12, 100.0), make_result(6, 16, 70.0))
    }
    assert deltas["risk_score"].current_value == 0
    assert deltas["risk_score"].change_value == 30
    assert deltas["risk_score"].change_percent is None
    assert "total_cost" not in deltas


def test_named_comparison_surfaces_missing_scenarios(make_result):
    group = ScenarioGroup([make_result(4, 12, 88.0), make_result(3, 10, 96.0)])
    deltas = compare_named(group, "1:4 / 1:12 @ 8h", "1:3 / 1:10 @ 8h")
    assert deltas[0].change_value == pytest.approx(8.0)

    with pytest.raises(NotFound):
        compare_named(group, "1:4 / 1:12 @ 8h", "1:2 / 1:8 @ 8h")


@pytest.fixture
def priced_group(make_result):
    return ScenarioGroup(
        [
            make_result(4, 12, 95.0, total_cost=4000.0),
            make_result(5, 14, 92.0, total_cost=3000.0),
            make_result(6, 16, 85.0, total_cost=2000.0),
            make_result(2, 8, 99.0, total_cost=12000.0),
        ]
    )


def test_optimal_search_filters_and_ranks_by_efficiency(priced_group):
    ranked = find_optimal(priced_group, min_completion_rate=90, max_budget=10000)

    assert [item.result.label for item in ranked] == ["1:5 / 1:14 @ 8h", "1:4 / 1:12 @ 8h"]
    assert [item.efficiency_score for item in ranked] == [31, 24]
    assert all(item.meets_requirements for item in ranked)


def test_optimal_search_is_idempotent(priced_group):
    first = find_optimal(priced_group, 90, 10000)
    second = find_optimal(priced_group, 90, 10000)
    assert first == second


def test_optimal_search_can_list_infeasible_scenarios(priced_group):
    ranked = find_optimal(priced_group, 90, 10000, include_infeasible=True)
    assert [item.efficiency_score for item in ranked] == [43, 31, 24, 8]
    assert [item.meets_requirements for item in ranked] == [False, True, True, False]


def test_optimal_search_returns_empty_when_nothing_is_feasible(priced_group):
    assert find_optimal(priced_group, min_completion_rate=99.5, max_budget=10000) == []


def test_optimal_search_requires_costs_and_valid_constraints(make_result, priced_group):
    with pytest.raises(InvalidParameter):
        find_optimal(ScenarioGroup([make_result(4, 12, 95.0)]), 90, 10000)
    with pytest.raises(InvalidParameter):
        find_optimal(priced_group, 120, 10000)
    with pytest.raises(InvalidParameter):
        find_optimal(priced_group, 90, 0)


def test_efficiency_score_rounds_halves_up(make_result):
    assert efficiency_score(make_result(6, 16, 85.0, total_cost=2000.0)) == 43
    assert efficiency_score(make_result(4, 12, 96.5, total_cost=1000.0)) == 97
    assert efficiency_score(make_result(4, 12, 95.0, total_cost=4000.0)) == 24
