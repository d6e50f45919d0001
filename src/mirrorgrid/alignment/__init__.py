"""Closed-loop alignment of tiles onto a shared spot."""

from .diagnostics import DiagnosticsLogger
from .strategy import (
    ShapeMetrics,
    ImprovementStrategy,
    ImprovementEvaluator,
    AxisOutcome,
    AxisSearchResult,
    AxisHillClimb,
    reduce_step,
)
from .controller import (
    AlignmentPhase,
    TileAlignmentStatus,
    PauseAction,
    PauseState,
    TileOutcome,
    TileRunState,
    AlignmentRunSummary,
    AlignmentState,
    AlignmentController,
)

__all__ = [
    # Diagnostics
    "DiagnosticsLogger",
    # Search strategy
    "ShapeMetrics",
    "ImprovementStrategy",
    "ImprovementEvaluator",
    "AxisOutcome",
    "AxisSearchResult",
    "AxisHillClimb",
    "reduce_step",
    # Controller
    "AlignmentPhase",
    "TileAlignmentStatus",
    "PauseAction",
    "PauseState",
    "TileOutcome",
    "TileRunState",
    "AlignmentRunSummary",
    "AlignmentState",
    "AlignmentController",
]
