"""Tests for the labour cost model."""
import pytest

from staffsim.cost import RolePair, estimate_cost, headcount
from staffsim.errors import InvalidParameter


def test_headcount_rounds_up():
    assert headcount(30, 4) == 8
    assert headcount(30, 10) == 3
    assert headcount(30, 30) == 1
    with pytest.raises(InvalidParameter):
        headcount(0, 4)


def test_estimate_cost_applies_overhead():
    breakdown = estimate_cost((8, 3), 8, RolePair(45, 22))
    assert breakdown.primary_cost == 2880
    assert breakdown.secondary_cost == 528
    assert breakdown.total_cost == 3408
    assert breakdown.total_with_overhead == pytest.approx(4430.4)


def test_estimate_cost_accepts_role_mappings():
    breakdown = estimate_cost({"rn": 2, "cna": 1}, 12, {"primary": 50, "secondary": 20}, overhead_multiplier=1.0)
    assert breakdown.to_dict() == {
        "primary_cost": 1200,
        "secondary_cost": 240,
        "total_cost": 1440,
        "total_with_overhead": 1440,
    }


@pytest.mark.parametrize(
    "headcounts, shift_hours, rates, overhead",
    [
        ((0, 3), 8, (45, 22), 1.3),
        ((8, 3), 8, (45, -1), 1.3),
        ((8, 3), 0, (45, 22), 1.3),
        ((8, 3), 8, (45, 22), 0),
    ],
)
def test_non_positive_inputs_are_rejected(headcounts, shift_hours, rates, overhead):
    with pytest.raises(InvalidParameter):
        estimate_cost(headcounts, shift_hours, rates, overhead)


def test_missing_role_in_mapping_is_rejected():
    with pytest.raises(InvalidParameter, match="secondary"):
        estimate_cost({"primary": 2}, 8, (45, 22))
