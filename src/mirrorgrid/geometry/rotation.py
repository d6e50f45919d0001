"""Physical array rotation and pattern-space helpers.

The mirror array can be mounted rotated by a multiple of 90 degrees
(clockwise) relative to the camera. Patterns are authored unrotated in a
fit-width space and rotated into camera-centered space before planning.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from ..constants import ARRAY_ROTATIONS, DEFAULT_PATTERN_ASPECT
from ..types import Axis
from .types import Centered, Pattern

_INVERSE_ROTATION = {0: 0, 90: 270, 180: 180, 270: 90}


def validate_rotation(rotation: int) -> int:
    if rotation not in ARRAY_ROTATIONS:
        raise ValueError(f"Array rotation must be one of {ARRAY_ROTATIONS}, got {rotation!r}")
    return int(rotation)


def rotate_vector(x: float, y: float, rotation: int) -> Tuple[float, float]:
    """Rotate a vector clockwise by ``rotation`` degrees (y axis points down)."""
    rotation = validate_rotation(rotation)
    if rotation == 90:
        return (y, -x)
    if rotation == 180:
        return (-x, -y)
    if rotation == 270:
        return (-y, x)
    return (x, y)


def inverse_rotate_vector(x: float, y: float, rotation: int) -> Tuple[float, float]:
    return rotate_vector(x, y, _INVERSE_ROTATION[validate_rotation(rotation)])


@dataclass(frozen=True)
class AxisMapping:
    """Which logical axis each physical motor axis drives, and whether it is inverted."""

    logical_x: Axis
    logical_y: Axis
    flip_x: bool
    flip_y: bool


_AXIS_MAPPINGS = {
    0: AxisMapping("x", "y", True, False),
    90: AxisMapping("y", "x", True, True),
    180: AxisMapping("x", "y", False, True),
    270: AxisMapping("y", "x", False, False),
}


def axis_mapping(rotation: int) -> AxisMapping:
    return _AXIS_MAPPINGS[validate_rotation(rotation)]


def step_test_jog_direction(axis: Axis, rotation: int) -> int:
    """Sign of the step-test jog so the spot moves toward the frame interior."""
    mapping = axis_mapping(rotation)
    if axis == "x":
        if mapping.logical_y == "x":
            return -1 if mapping.flip_y else 1
        return -1 if mapping.flip_x else 1
    if mapping.logical_x == "y":
        return -1 if mapping.flip_x else 1
    return -1 if mapping.flip_y else 1


def rotate_grid_position(row: int, col: int, rows: int, cols: int, rotation: int) -> Tuple[int, int]:
    """Map a logical (row, col) to the (row, col) it occupies as seen by the camera."""
    rotation = validate_rotation(rotation)
    if rotation == 90:
        return (col, rows - 1 - row)
    if rotation == 180:
        return (rows - 1 - row, cols - 1 - col)
    if rotation == 270:
        return (cols - 1 - col, row)
    return (row, col)


def pattern_to_centered(
    point: Pattern,
    rotation: int = 0,
    aspect: float = DEFAULT_PATTERN_ASPECT,
) -> Centered:
    """Rotate a pattern point into camera space, then stretch y by the aspect ratio."""
    x, y = rotate_vector(point.x, point.y, rotation)
    return Centered(x, y * aspect)


def centered_to_pattern(
    point: Centered,
    rotation: int = 0,
    aspect: float = DEFAULT_PATTERN_ASPECT,
) -> Pattern:
    y = point.y / aspect if aspect else point.y
    x, y = inverse_rotate_vector(point.x, y, rotation)
    return Pattern(x, y)
