"""Mechanical and measurement constants for the mirror array."""

from __future__ import annotations

import math
from typing import Optional

# Motor travel, in steps relative to the homed position
MOTOR_MIN_POSITION_STEPS = -1200
MOTOR_MAX_POSITION_STEPS = 1200
STEPS_PER_DEGREE = 190

# Below this magnitude a per-step displacement is treated as zero
STEP_EPSILON = 1e-9

# Robust statistics
NORMALIZED_MAD_FACTOR = 1.4826
DEFAULT_OUTLIER_MAD_THRESHOLD = 3.0

# Blob measurement validation
DETECTION_BLOB_MIN_SAMPLES = 5
DETECTION_BLOB_MAX_MEDIAN_DEVIATION_PT = 0.005
DETECTION_BLOB_IGNORE_SAMPLE_ABOVE_DEVIATION_PT = 0.1
DETECTION_CAPTURE_DELAY_S = 0.1

# Grid layout
GRID_GAP_MIN_NORMALIZED = 0.0
GRID_GAP_MAX_NORMALIZED = 0.5
DEFAULT_TILE_SPACING = 0.15
DEFAULT_PATTERN_ASPECT = 16.0 / 9.0
DEFAULT_SOURCE_WIDTH = 1920
DEFAULT_SOURCE_HEIGHT = 1080

ARRAY_ROTATIONS = (0, 90, 180, 270)


def clamp_steps(value: float) -> int:
    """Clamp a step count into the motor's mechanical range."""
    return int(min(MOTOR_MAX_POSITION_STEPS, max(MOTOR_MIN_POSITION_STEPS, value)))


def round_steps(value: float) -> int:
    """Round to the nearest whole step, halves rounding up.

    Non-finite values round to 0.
    """
    if not math.isfinite(value):
        return 0
    return int(math.floor(value + 0.5))


def clamp_normalized(value: float) -> float:
    return min(1.0, max(-1.0, value))


def is_usable_per_step(per_step: Optional[float]) -> bool:
    return per_step is not None and math.isfinite(per_step) and abs(per_step) > STEP_EPSILON
