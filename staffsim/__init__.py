"""Monte Carlo staffing simulation for two-role care teams."""
from .analysis import compare_named, compare_what_if, find_optimal, run_sensitivity
from .cost import CostBreakdown, RolePair, estimate_cost, headcount
from .errors import InsufficientData, InvalidParameter, InvalidTaskProfile, NotFound, StaffsimError
from .io import OccurrenceKind, Role, StaffingScenario, TaskProfile
from .simulation import MonteCarloSimulator, build_scenarios, simulate, simulate_grid
from .statistics import ScenarioGroup, SimulationResult

__version__ = "0.1.0"

__all__ = [
    "CostBreakdown",
    "InsufficientData",
    "InvalidParameter",
    "InvalidTaskProfile",
    "MonteCarloSimulator",
    "NotFound",
    "OccurrenceKind",
    "Role",
    "RolePair",
    "ScenarioGroup",
    "SimulationResult",
    "StaffingScenario",
    "StaffsimError",
    "TaskProfile",
    "build_scenarios",
    "compare_named",
    "compare_what_if",
    "estimate_cost",
    "find_optimal",
    "headcount",
    "run_sensitivity",
    "simulate",
    "simulate_grid",
]
