"""Reachable-area bounds for a tile, in centered space."""

from __future__ import annotations

from typing import Optional

from ..constants import (
    MOTOR_MAX_POSITION_STEPS,
    MOTOR_MIN_POSITION_STEPS,
    clamp_normalized,
    is_usable_per_step,
)
from ..types import TileKey
from .blueprint import GridBlueprint
from .types import AxisBounds, StepToDisplacement, TileBounds


def compute_axis_bounds(
    center: Optional[float],
    center_steps: Optional[int],
    per_step: Optional[float],
) -> Optional[AxisBounds]:
    """Span swept by one axis between the motor limits, clamped to [-1, 1]."""
    if center is None or center_steps is None or not is_usable_per_step(per_step):
        return None
    a = clamp_normalized(center + (MOTOR_MIN_POSITION_STEPS - center_steps) * per_step)
    b = clamp_normalized(center + (MOTOR_MAX_POSITION_STEPS - center_steps) * per_step)
    return AxisBounds(min(a, b), max(a, b))


def compute_tile_bounds(
    center_x: float,
    center_y: float,
    step_to_displacement: StepToDisplacement,
    steps_x: int = 0,
    steps_y: int = 0,
) -> Optional[TileBounds]:
    """Motor reach of a tile around a center reached at (steps_x, steps_y)."""
    bounds_x = compute_axis_bounds(center_x, steps_x, step_to_displacement.x)
    bounds_y = compute_axis_bounds(center_y, steps_y, step_to_displacement.y)
    if bounds_x is None or bounds_y is None:
        return None
    return TileBounds(bounds_x, bounds_y)


def compute_live_tile_bounds(
    home_x: float,
    home_y: float,
    step_to_displacement: StepToDisplacement,
) -> Optional[TileBounds]:
    """Motor reach around the measured home, which sits at step 0."""
    return compute_tile_bounds(home_x, home_y, step_to_displacement, 0, 0)


def compute_footprint_bounds(blueprint: GridBlueprint, tile: TileKey) -> TileBounds:
    """The tile's own cell of the blueprint grid."""
    avg_dim = (blueprint.source_width + blueprint.source_height) / 2.0
    iso_x = avg_dim / blueprint.source_width
    iso_y = avg_dim / blueprint.source_height

    spacing = blueprint.spacing
    footprint = blueprint.adjusted_tile_footprint
    min_x = blueprint.grid_origin.x + tile.col * spacing.x * iso_x
    min_y = blueprint.grid_origin.y + tile.row * spacing.y * iso_y
    return TileBounds(
        AxisBounds(min_x, min_x + footprint.width * iso_x),
        AxisBounds(min_y, min_y + footprint.height * iso_y),
    )


def merge_bounds_union(current: Optional[TileBounds], candidate: TileBounds) -> TileBounds:
    if current is None:
        return candidate
    return TileBounds(
        AxisBounds(min(current.x.min, candidate.x.min), max(current.x.max, candidate.x.max)),
        AxisBounds(min(current.y.min, candidate.y.min), max(current.y.max, candidate.y.max)),
    )


def merge_bounds_intersection(current: Optional[TileBounds], candidate: TileBounds) -> Optional[TileBounds]:
    """Overlap of two bounds, or None when they are disjoint."""
    if current is None:
        return candidate
    min_x = max(current.x.min, candidate.x.min)
    max_x = min(current.x.max, candidate.x.max)
    min_y = max(current.y.min, candidate.y.min)
    max_y = min(current.y.max, candidate.y.max)
    if min_x > max_x or min_y > max_y:
        return None
    return TileBounds(AxisBounds(min_x, max_x), AxisBounds(min_y, max_y))
