"""Playback planning and concurrent motor dispatch."""

from .planner import (
    AxisTarget,
    SkippedAxis,
    PlanError,
    PlanWarning,
    PlaybackPlan,
    PlaybackPlanner,
    compute_requested_steps,
    plan_point,
    plan_pattern,
    plan_physical_home,
)
from .dispatch import (
    AxisMove,
    AxisFailure,
    DispatchReport,
    PlanDispatcher,
    dispatch_plan,
    home_all,
)

__all__ = [
    # Planning
    "AxisTarget",
    "SkippedAxis",
    "PlanError",
    "PlanWarning",
    "PlaybackPlan",
    "PlaybackPlanner",
    "compute_requested_steps",
    "plan_point",
    "plan_pattern",
    "plan_physical_home",
    # Dispatch
    "AxisMove",
    "AxisFailure",
    "DispatchReport",
    "PlanDispatcher",
    "dispatch_plan",
    "home_all",
]
