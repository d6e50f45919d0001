"""Home and staging ("aside") pose targets for tiles."""

from __future__ import annotations

from enum import Enum
from typing import Tuple

from ..constants import MOTOR_MAX_POSITION_STEPS, MOTOR_MIN_POSITION_STEPS, clamp_steps
from ..geometry.rotation import validate_rotation
from ..types import GridSize, TileKey


class StagingPosition(str, Enum):
    """Where tiles park their spots while another tile is being measured."""
    NEAREST_CORNER = "nearest-corner"
    CORNER = "corner"
    BOTTOM = "bottom"
    LEFT = "left"


class Pose(str, Enum):
    HOME = "home"
    ASIDE = "aside"


def _unrotated(rotation: int) -> bool:
    return validate_rotation(rotation) in (0, 90)


def compute_distributed_axis_target(column: int, total_cols: int) -> int:
    """Spread columns evenly across the motor range."""
    cols = max(1, total_cols)
    if cols == 1:
        return clamp_steps((MOTOR_MAX_POSITION_STEPS + MOTOR_MIN_POSITION_STEPS) / 2)
    span = MOTOR_MAX_POSITION_STEPS - MOTOR_MIN_POSITION_STEPS
    return clamp_steps(round(MOTOR_MIN_POSITION_STEPS + column / (cols - 1) * span))


def compute_nearest_corner_target(tile: TileKey, grid_size: GridSize, rotation: int) -> Tuple[int, int]:
    """Park toward the corner nearest the tile's quadrant of the grid."""
    is_top = tile.row < (grid_size.rows - 1) / 2
    is_left = tile.col < (grid_size.cols - 1) / 2

    if _unrotated(rotation):
        left_x, right_x = MOTOR_MAX_POSITION_STEPS, MOTOR_MIN_POSITION_STEPS
        top_y, bottom_y = MOTOR_MAX_POSITION_STEPS, MOTOR_MIN_POSITION_STEPS
    else:
        left_x, right_x = MOTOR_MIN_POSITION_STEPS, MOTOR_MAX_POSITION_STEPS
        top_y, bottom_y = MOTOR_MIN_POSITION_STEPS, MOTOR_MAX_POSITION_STEPS

    return (left_x if is_left else right_x, top_y if is_top else bottom_y)


def compute_pose_targets(
    tile: TileKey,
    pose: Pose,
    grid_size: GridSize,
    rotation: int = 0,
    staging: StagingPosition = StagingPosition.NEAREST_CORNER,
) -> Tuple[int, int]:
    """Motor (x, y) step targets for ``tile`` in ``pose``."""
    if Pose(pose) is Pose.HOME:
        return (0, 0)

    staging = StagingPosition(staging)
    if _unrotated(rotation):
        aside_x, aside_y = MOTOR_MAX_POSITION_STEPS, MOTOR_MIN_POSITION_STEPS
    else:
        aside_x, aside_y = MOTOR_MIN_POSITION_STEPS, MOTOR_MAX_POSITION_STEPS

    if staging is StagingPosition.NEAREST_CORNER:
        return compute_nearest_corner_target(tile, grid_size, rotation)
    if staging is StagingPosition.CORNER:
        return (aside_x, aside_y)
    if staging is StagingPosition.BOTTOM:
        return (compute_distributed_axis_target(tile.col, grid_size.cols), aside_y)
    return (aside_x, compute_distributed_axis_target(tile.col, grid_size.cols))
