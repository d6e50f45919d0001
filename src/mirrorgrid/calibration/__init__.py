"""Tile calibration: robust measurement, per-tile models, grid blueprint and profiles."""

# Robust statistics and measurement aggregation
from .robust import (
    OutlierDirection,
    OutlierDetectionResult,
    compute_median,
    compute_mad,
    compute_normalized_mad,
    detect_outliers,
    robust_max,
)
from .sampler import (
    OutlierStrategy,
    BlobSample,
    MeasurementStats,
    HomeMeasurement,
    MeasurementSampler,
)

# Per-tile calibration
from .types import (
    AxisValues,
    StepToDisplacement,
    StepScale,
    AlignmentSteps,
    HomeOffset,
    AdjustedHome,
    AxisBounds,
    TileBounds,
)
from .tile_model import (
    TileStatus,
    AxisStepTestResult,
    TileCalibrationResult,
    TileCalibrationModel,
    get_axis_step_delta,
    compute_axis_step_test,
    compute_step_scale,
    compute_alignment_steps,
)
from .bounds import (
    compute_axis_bounds,
    compute_tile_bounds,
    compute_live_tile_bounds,
    compute_footprint_bounds,
    merge_bounds_union,
    merge_bounds_intersection,
)

# Grid layout and profiles
from .blueprint import (
    Vec2,
    Footprint,
    GridBlueprint,
    GridBlueprintResult,
    OutlierAnalysis,
    clamp_grid_gap,
    compute_grid_blueprint,
)
from .profile import CalibrationProfile, PROFILE_SCHEMA_VERSION
from .summary import build_calibration_profile

# Calibration run
from .staging import StagingPosition, Pose, compute_pose_targets
from .expected_position import (
    TileMeasurement,
    GridEstimate,
    compute_expected_position,
    expected_tolerance,
)
from .runner import CalibrationPhase, CalibrationRunner

__all__ = [
    # Robust statistics
    "OutlierDirection",
    "OutlierDetectionResult",
    "compute_median",
    "compute_mad",
    "compute_normalized_mad",
    "detect_outliers",
    "robust_max",
    # Measurement
    "OutlierStrategy",
    "BlobSample",
    "MeasurementStats",
    "HomeMeasurement",
    "MeasurementSampler",
    # Per-tile calibration
    "AxisValues",
    "StepToDisplacement",
    "StepScale",
    "AlignmentSteps",
    "HomeOffset",
    "AdjustedHome",
    "AxisBounds",
    "TileBounds",
    "TileStatus",
    "AxisStepTestResult",
    "TileCalibrationResult",
    "TileCalibrationModel",
    "get_axis_step_delta",
    "compute_axis_step_test",
    "compute_step_scale",
    "compute_alignment_steps",
    "compute_axis_bounds",
    "compute_tile_bounds",
    "compute_live_tile_bounds",
    "compute_footprint_bounds",
    "merge_bounds_union",
    "merge_bounds_intersection",
    # Grid layout and profiles
    "Vec2",
    "Footprint",
    "GridBlueprint",
    "GridBlueprintResult",
    "OutlierAnalysis",
    "clamp_grid_gap",
    "compute_grid_blueprint",
    "CalibrationProfile",
    "PROFILE_SCHEMA_VERSION",
    "build_calibration_profile",
    # Calibration run
    "StagingPosition",
    "Pose",
    "compute_pose_targets",
    "TileMeasurement",
    "GridEstimate",
    "compute_expected_position",
    "expected_tolerance",
    "CalibrationPhase",
    "CalibrationRunner",
]
