"""Labour cost model for staffing scenarios."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Tuple, Union

from .errors import InvalidParameter
from .io import Role, parse_role

DEFAULT_OVERHEAD_MULTIPLIER = 1.3


@dataclass(frozen=True)
class RolePair:
    """A value per staffing role: headcounts or hourly rates."""

    primary: float
    secondary: float

    def __getitem__(self, role: Role | str) -> float:
        return self.primary if parse_role(role) is Role.PRIMARY else self.secondary

    def to_dict(self) -> Dict[str, float]:
        return {"primary": self.primary, "secondary": self.secondary}


PairLike = Union[RolePair, Tuple[float, float], Mapping[str, float]]


@dataclass(frozen=True)
class CostBreakdown:
    primary_cost: float
    secondary_cost: float
    total_cost: float
    total_with_overhead: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "primary_cost": self.primary_cost,
            "secondary_cost": self.secondary_cost,
            "total_cost": self.total_cost,
            "total_with_overhead": self.total_with_overhead,
        }


def as_role_pair(value: PairLike, label: str = "value") -> RolePair:
    if isinstance(value, RolePair):
        return value
    if isinstance(value, Mapping):
        lookup = {parse_role(key): amount for key, amount in value.items()}
        missing = [role.value for role in Role if role not in lookup]
        if missing:
            raise InvalidParameter(f"{label} is missing roles: {', '.join(missing)}")
        return RolePair(primary=lookup[Role.PRIMARY], secondary=lookup[Role.SECONDARY])
    try:
        primary, secondary = value
    except (TypeError, ValueError) as exc:
        raise InvalidParameter(f"{label} must provide a primary and a secondary value.") from exc
    return RolePair(primary=primary, secondary=secondary)


def headcount(patient_volume: int, ratio: int) -> int:
    """Providers needed to cover ``patient_volume`` patients at ``ratio`` patients each."""
    if patient_volume < 1:
        raise InvalidParameter(f"patient_volume must be positive, got {patient_volume!r}.")
    if ratio < 1:
        raise InvalidParameter(f"ratio must be positive, got {ratio!r}.")
    return math.ceil(patient_volume / ratio)


def estimate_cost(
    headcounts: PairLike,
    shift_hours: float,
    rates: PairLike,
    overhead_multiplier: float = DEFAULT_OVERHEAD_MULTIPLIER,
) -> CostBreakdown:
    """Cost of one shift: ``headcount * shift_hours * hourly_rate`` per role plus overhead."""
    counts = as_role_pair(headcounts, "headcounts")
    hourly = as_role_pair(rates, "rates")

    for role in Role:
        if counts[role] <= 0:
            raise InvalidParameter(f"{role.value} headcount must be positive, got {counts[role]!r}.")
        if hourly[role] <= 0:
            raise InvalidParameter(f"{role.value} hourly rate must be positive, got {hourly[role]!r}.")
    if shift_hours <= 0:
        raise InvalidParameter(f"shift_hours must be positive, got {shift_hours!r}.")
    if overhead_multiplier <= 0:
        raise InvalidParameter(f"overhead_multiplier must be positive, got {overhead_multiplier!r}.")

    primary_cost = counts.primary * shift_hours * hourly.primary
    secondary_cost = counts.secondary * shift_hours * hourly.secondary
    total = primary_cost + secondary_cost
    return CostBreakdown(
        primary_cost=primary_cost,
        secondary_cost=secondary_cost,
        total_cost=total,
        total_with_overhead=total * overhead_multiplier,
    )


__all__ = [
    "DEFAULT_OVERHEAD_MULTIPLIER",
    "RolePair",
    "CostBreakdown",
    "as_role_pair",
    "headcount",
    "estimate_cost",
]
