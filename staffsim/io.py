"""Data model and task profile loading for the staffing simulator."""
from __future__ import annotations

import csv
import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import InvalidParameter, InvalidTaskProfile, StaffsimError


class Role(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class OccurrenceKind(str, Enum):
    ONCE_PER_SHIFT = "once_per_shift"
    PER_ASSIGNED_PATIENT = "per_assigned_patient"


_ROLE_ALIASES = {
    "primary": Role.PRIMARY,
    "rn": Role.PRIMARY,
    "nurse": Role.PRIMARY,
    "secondary": Role.SECONDARY,
    "cna": Role.SECONDARY,
    "aide": Role.SECONDARY,
}

_OCCURRENCE_ALIASES = {
    "once_per_shift": OccurrenceKind.ONCE_PER_SHIFT,
    "once": OccurrenceKind.ONCE_PER_SHIFT,
    "shift": OccurrenceKind.ONCE_PER_SHIFT,
    "per_assigned_patient": OccurrenceKind.PER_ASSIGNED_PATIENT,
    "per_patient": OccurrenceKind.PER_ASSIGNED_PATIENT,
    "patient": OccurrenceKind.PER_ASSIGNED_PATIENT,
}

PROFILE_COLUMNS = (
    "name",
    "role",
    "occurrence",
    "min_time",
    "max_time",
    "std_dev",
    "frequency",
    "sample_size",
)


def parse_role(value: Role | str) -> Role:
    if isinstance(value, Role):
        return value
    try:
        return _ROLE_ALIASES[str(value).strip().lower()]
    except KeyError:
        raise InvalidTaskProfile(f"Unknown role: {value!r}") from None


def parse_occurrence(value: OccurrenceKind | str) -> OccurrenceKind:
    if isinstance(value, OccurrenceKind):
        return value
    key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return _OCCURRENCE_ALIASES[key]
    except KeyError:
        raise InvalidTaskProfile(f"Unknown occurrence kind: {value!r}") from None


@dataclass(frozen=True)
class TaskProfile:
    """Aggregate duration and frequency statistics for one care task.

    Durations are in minutes. ``frequency`` is the probability that a
    per-patient task occurs for one assigned patient during a shift; it is
    ignored for once-per-shift tasks. When ``std_dev`` is omitted it is
    derived as a quarter of the observed range.
    """

    name: str
    min_time: float
    max_time: float
    role: Role
    occurrence: OccurrenceKind = OccurrenceKind.PER_ASSIGNED_PATIENT
    std_dev: Optional[float] = None
    frequency: float = 1.0
    sample_size: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.name or not str(self.name).strip():
            raise InvalidTaskProfile("Task name must not be empty.")
        object.__setattr__(self, "role", parse_role(self.role))
        object.__setattr__(self, "occurrence", parse_occurrence(self.occurrence))

        for label in ("min_time", "max_time", "frequency", "std_dev"):
            value = getattr(self, label)
            if value is None and label == "std_dev":
                continue
            if not _is_finite_number(value):
                raise InvalidTaskProfile(f"Task '{self.name}': {label} must be a finite number, got {value!r}.")
        if self.min_time <= 0 or self.max_time <= 0:
            raise InvalidTaskProfile(f"Task '{self.name}': observed times must be positive.")
        if self.min_time >= self.max_time:
            raise InvalidTaskProfile(
                f"Task '{self.name}': min_time ({self.min_time}) must be below max_time ({self.max_time})."
            )
        if not 0.0 < self.frequency <= 1.0:
            raise InvalidTaskProfile(
                f"Task '{self.name}': frequency must be a probability in (0, 1], got {self.frequency}."
            )

        if self.std_dev is None:
            object.__setattr__(self, "std_dev", (self.max_time - self.min_time) / 4)
        elif self.std_dev < 0:
            raise InvalidTaskProfile(f"Task '{self.name}': std_dev must be non-negative.")

        if self.sample_size is not None and self.sample_size < 0:
            raise InvalidTaskProfile(f"Task '{self.name}': sample_size must be non-negative.")

    @property
    def midpoint(self) -> float:
        return (self.min_time + self.max_time) / 2


@dataclass(frozen=True)
class StaffingScenario:
    """One candidate staffing configuration.

    Two scenarios with the same ratios and shift length compare equal;
    ``patient_volume`` only feeds the cost model.
    """

    primary_ratio: int
    secondary_ratio: int
    shift_hours: float
    patient_volume: Optional[int] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        for label in ("primary_ratio", "secondary_ratio"):
            value = getattr(self, label)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise InvalidParameter(f"{label} must be a positive integer, got {value!r}.")
        if not _is_finite_number(self.shift_hours) or self.shift_hours <= 0:
            raise InvalidParameter(f"shift_hours must be a positive number, got {self.shift_hours!r}.")
        volume = self.patient_volume
        if volume is not None and (isinstance(volume, bool) or not isinstance(volume, int) or volume < 1):
            raise InvalidParameter(f"patient_volume must be positive, got {self.patient_volume!r}.")

    @property
    def shift_minutes(self) -> float:
        return self.shift_hours * 60

    @property
    def label(self) -> str:
        return f"1:{self.primary_ratio} / 1:{self.secondary_ratio} @ {self.shift_hours:g}h"

    def ratio_for(self, role: Role) -> int:
        return self.primary_ratio if role is Role.PRIMARY else self.secondary_ratio

    def to_dict(self) -> Dict[str, object]:
        return {
            "primary_ratio": self.primary_ratio,
            "secondary_ratio": self.secondary_ratio,
            "shift_hours": self.shift_hours,
            "patient_volume": self.patient_volume,
            "label": self.label,
        }


class DataError(StaffsimError):
    """Raised when input files cannot be processed."""


def load_profiles(path_like: Path | str) -> List[TaskProfile]:
    path = Path(path_like)
    if not path.exists():
        raise DataError(f"Task profile file not found: {path}")

    profiles: List[TaskProfile] = []
    with path.open(newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        required = {"name", "role", "min_time", "max_time"}
        missing = sorted(column for column in required if column not in (reader.fieldnames or []))
        if missing:
            raise DataError(f"Task profile file is missing columns: {', '.join(missing)}")

        for line_number, row in enumerate(reader, start=2):
            try:
                profiles.append(
                    TaskProfile(
                        name=row["name"].strip(),
                        role=parse_role(row["role"]),
                        occurrence=parse_occurrence(
                            (row.get("occurrence") or "").strip() or OccurrenceKind.PER_ASSIGNED_PATIENT
                        ),
                        min_time=float(row["min_time"]),
                        max_time=float(row["max_time"]),
                        std_dev=_optional_float(row.get("std_dev")),
                        frequency=_optional_float(row.get("frequency"), default=1.0),
                        sample_size=_optional_int(row.get("sample_size")),
                    )
                )
            except InvalidTaskProfile:
                raise
            except ValueError as exc:
                raise DataError(f"{path}:{line_number}: {exc}") from exc

    index_profiles(profiles)
    return profiles


def write_profiles(path_like: Path | str, profiles: Sequence[TaskProfile]) -> Path:
    path = Path(path_like)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=list(PROFILE_COLUMNS))
        writer.writeheader()
        for profile in profiles:
            writer.writerow(
                {
                    "name": profile.name,
                    "role": profile.role.value,
                    "occurrence": profile.occurrence.value,
                    "min_time": profile.min_time,
                    "max_time": profile.max_time,
                    "std_dev": profile.std_dev,
                    "frequency": profile.frequency,
                    "sample_size": "" if profile.sample_size is None else profile.sample_size,
                }
            )
    return path


def index_profiles(profiles: Iterable[TaskProfile]) -> Dict[str, TaskProfile]:
    mapping: Dict[str, TaskProfile] = {}
    for profile in profiles:
        if profile.name in mapping:
            raise InvalidTaskProfile(f"Duplicate task name detected: {profile.name}")
        mapping[profile.name] = profile
    return mapping


def _is_finite_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _optional_float(raw: Optional[str], default: Optional[float] = None) -> Optional[float]:
    if raw is None or not str(raw).strip():
        return default
    return float(raw)


def _optional_int(raw: Optional[str]) -> Optional[int]:
    if raw is None or not str(raw).strip():
        return None
    return int(float(raw))


__all__ = [
    "Role",
    "OccurrenceKind",
    "TaskProfile",
    "StaffingScenario",
    "DataError",
    "PROFILE_COLUMNS",
    "parse_role",
    "parse_occurrence",
    "load_profiles",
    "write_profiles",
    "index_profiles",
]
