"""Survey response aggregation and synthetic survey generation.

Survey answers arrive in long format, one row per respondent and task::

    response_id, survey_type, task_name, min_time, max_time, frequency[, occurrence]

``aggregate_responses`` reduces them to the :class:`~staffsim.io.TaskProfile`
statistics the simulator consumes. ``generate_responses`` fabricates a
plausible answer set from :data:`REFERENCE_TASKS` for demos and tests.
"""
from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

import pandas as pd

from .errors import InvalidParameter, InvalidTaskProfile
from .io import DataError, OccurrenceKind, Role, TaskProfile, index_profiles, parse_occurrence, parse_role

logger = logging.getLogger(__name__)

RESPONSE_COLUMNS = ["response_id", "survey_type", "task_name", "min_time", "max_time", "frequency", "occurrence"]

VARIABILITY_PROFILES: Dict[str, float] = {
    "consistent": 0.1,
    "moderate": 0.25,
    "high": 0.4,
}


@dataclass(frozen=True)
class ReferenceTask:
    name: str
    role: Role
    min_range: Tuple[float, float]
    max_range: Tuple[float, float]
    frequency: float
    occurrence: OccurrenceKind = OccurrenceKind.PER_ASSIGNED_PATIENT


_ONCE = OccurrenceKind.ONCE_PER_SHIFT

REFERENCE_TASKS: Tuple[ReferenceTask, ...] = (
    ReferenceTask("Medication Administration", Role.PRIMARY, (10, 15), (25, 35), 0.95),
    ReferenceTask("Assessment & Documentation", Role.PRIMARY, (15, 20), (30, 40), 0.90),
    ReferenceTask("Handoff/Report", Role.PRIMARY, (8, 12), (15, 25), 1.0, _ONCE),
    ReferenceTask("Chart Review", Role.PRIMARY, (8, 12), (12, 18), 0.85, _ONCE),
    ReferenceTask("I/O's", Role.PRIMARY, (3, 6), (8, 12), 0.30),
    ReferenceTask("Wound Care", Role.PRIMARY, (10, 20), (30, 50), 0.20),
    ReferenceTask("IV Management", Role.PRIMARY, (8, 15), (20, 30), 0.35),
    ReferenceTask("Pain Management", Role.PRIMARY, (3, 8), (15, 25), 0.40),
    ReferenceTask("Blood Administration", Role.PRIMARY, (25, 35), (50, 70), 0.05),
    ReferenceTask("Turns", Role.PRIMARY, (3, 6), (10, 18), 0.50),
    ReferenceTask("Patient Education", Role.PRIMARY, (8, 12), (20, 35), 0.30),
    ReferenceTask("Medication Counseling", Role.PRIMARY, (8, 12), (20, 30), 0.25),
    ReferenceTask("Family Communication", Role.PRIMARY, (8, 12), (20, 30), 0.35),
    ReferenceTask("Tooth Brushing", Role.PRIMARY, (3, 6), (10, 18), 0.20),
    ReferenceTask("Ambulation", Role.PRIMARY, (8, 12), (15, 25), 0.40),
    ReferenceTask("Out Of Bed For Meals", Role.PRIMARY, (8, 12), (15, 25), 0.45),
    ReferenceTask("Code Blue", Role.PRIMARY, (25, 35), (50, 70), 0.005),
    ReferenceTask("Rapid Response", Role.PRIMARY, (12, 18), (30, 50), 0.01),
    ReferenceTask("M.D. Rounds", Role.PRIMARY, (12, 18), (25, 35), 0.45),
    ReferenceTask("Vital Signs", Role.SECONDARY, (3, 6), (8, 12), 0.90),
    ReferenceTask("I&O Monitoring", Role.SECONDARY, (3, 6), (8, 12), 0.60),
    ReferenceTask("Safety Rounds", Role.SECONDARY, (3, 6), (8, 12), 0.70),
    ReferenceTask("Patient Hygiene", Role.SECONDARY, (12, 18), (25, 35), 0.50),
    ReferenceTask("Toileting Assistance", Role.SECONDARY, (3, 8), (10, 18), 0.65),
    ReferenceTask("Feeding Assistance", Role.SECONDARY, (8, 12), (20, 30), 0.55),
    ReferenceTask("Patient Mobility", Role.SECONDARY, (8, 12), (15, 25), 0.50),
    ReferenceTask("Room Turnover", Role.SECONDARY, (3, 8), (10, 18), 0.20),
)

_MIN_FREQUENCY = 0.001

_SURVEY_TYPES = {Role.PRIMARY: "rn", Role.SECONDARY: "cna"}


def load_responses(path_like: Path | str) -> pd.DataFrame:
    path = Path(path_like)
    if not path.exists():
        raise DataError(f"Survey response file not found: {path}")
    try:
        return pd.read_csv(path)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise DataError(f"Survey response file could not be parsed: {path}") from exc


def aggregate_responses(
    frame: pd.DataFrame,
    occurrence: Optional[Mapping[str, OccurrenceKind | str]] = None,
    *,
    role_column: str = "survey_type",
) -> List[TaskProfile]:
    """Reduce survey answers to one :class:`TaskProfile` per task and role.

    Observed bounds are the mean reported minimum and maximum, the deviation
    is that of the reported maxima around the midpoint of those means, and
    ``sample_size`` counts distinct responses. Tasks are listed in order of
    first appearance.
    """
    required = {role_column, "task_name", "min_time", "max_time", "frequency"}
    missing = sorted(column for column in required if column not in frame.columns)
    if missing:
        raise DataError(f"Survey responses are missing columns: {', '.join(missing)}")

    data = frame.copy()
    for column in ("min_time", "max_time", "frequency"):
        data[column] = pd.to_numeric(data[column], errors="coerce")
    before = len(data)
    data = data.dropna(subset=["task_name", "min_time", "max_time", "frequency"])
    if len(data) < before:
        logger.warning("Dropped %d survey rows with missing or non-numeric answers", before - len(data))

    out_of_range = data[(data["frequency"] <= 0) | (data["frequency"] > 1)]
    if not out_of_range.empty:
        names = ", ".join(sorted(set(out_of_range["task_name"].astype(str))))
        raise InvalidTaskProfile(f"Frequencies must be probabilities in (0, 1]; check: {names}")

    overrides = {name: parse_occurrence(kind) for name, kind in (occurrence or {}).items()}
    profiles: List[TaskProfile] = []
    for (task_name, survey_type), rows in data.groupby(["task_name", role_column], sort=False):
        avg_min = rows["min_time"].mean()
        avg_max = rows["max_time"].mean()
        midpoint = (avg_min + avg_max) / 2
        spread = math.sqrt(((rows["max_time"] - midpoint) ** 2).mean())
        if "response_id" in rows.columns:
            sample_size = int(rows["response_id"].nunique())
        else:
            sample_size = int(len(rows))

        kind = overrides.get(task_name)
        if kind is None and "occurrence" in rows.columns:
            declared = rows["occurrence"].dropna()
            if not declared.empty:
                kind = parse_occurrence(declared.iloc[0])

        profiles.append(
            TaskProfile(
                name=str(task_name),
                role=parse_role(survey_type),
                occurrence=kind or OccurrenceKind.PER_ASSIGNED_PATIENT,
                min_time=round(float(avg_min), 1),
                max_time=round(float(avg_max), 1),
                std_dev=round(spread, 1),
                frequency=max(_MIN_FREQUENCY, round(float(rows["frequency"].mean()), 3)),
                sample_size=sample_size,
            )
        )

    index_profiles(profiles)
    logger.info("Aggregated %d survey rows into %d task profiles", len(data), len(profiles))
    return profiles


def generate_responses(
    primary_count: int = 100,
    secondary_count: int = 80,
    variability: str = "moderate",
    random_seed: Optional[int] = None,
    tasks: Tuple[ReferenceTask, ...] = REFERENCE_TASKS,
) -> pd.DataFrame:
    """Fabricate survey answers around the reference task catalogue."""
    if variability not in VARIABILITY_PROFILES:
        raise InvalidParameter(
            f"Unknown variability profile {variability!r}; use one of {', '.join(VARIABILITY_PROFILES)}."
        )
    if primary_count < 0 or secondary_count < 0:
        raise InvalidParameter("Respondent counts must not be negative.")

    spread = VARIABILITY_PROFILES[variability]
    rng = random.Random(random_seed)
    rows: List[Dict[str, object]] = []
    for role, count in ((Role.PRIMARY, primary_count), (Role.SECONDARY, secondary_count)):
        survey_type = _SURVEY_TYPES[role]
        role_tasks = [task for task in tasks if task.role is role]
        for index in range(count):
            response_id = f"synthetic-{survey_type}-{index}"
            for task in role_tasks:
                rows.append(
                    {
                        "response_id": response_id,
                        "survey_type": survey_type,
                        "task_name": task.name,
                        "min_time": round(_jitter_in_range(rng, *task.min_range, spread)),
                        "max_time": round(_jitter_in_range(rng, *task.max_range, spread)),
                        "frequency": round(_jitter_frequency(rng, task.frequency, role), 3),
                        "occurrence": task.occurrence.value,
                    }
                )
    return pd.DataFrame(rows, columns=RESPONSE_COLUMNS)


def _jitter_in_range(rng: random.Random, low: float, high: float, spread: float) -> float:
    centre = (low + high) / 2
    variance = (high - low) / 2 * spread
    return max(low, min(high, centre + (rng.random() - 0.5) * 2 * variance))


def _jitter_frequency(rng: random.Random, base: float, role: Role) -> float:
    # Rare events get relative jitter so they stay rare.
    offset = rng.random() - 0.5
    if base < 0.01:
        change = base * offset * 0.1
    elif role is Role.PRIMARY and base < 0.05:
        change = base * offset * 0.2
    elif role is Role.PRIMARY and base < 0.30:
        change = offset * 0.1
    elif role is Role.SECONDARY and base < 0.10:
        change = base * offset * 0.4
    else:
        change = offset * 0.2
    return max(_MIN_FREQUENCY, min(1.0, base + change))


__all__ = [
    "RESPONSE_COLUMNS",
    "VARIABILITY_PROFILES",
    "ReferenceTask",
    "REFERENCE_TASKS",
    "load_responses",
    "aggregate_responses",
    "generate_responses",
]
