"""Tests for per-tile calibration math, bounds, staging and expected positions."""

import pytest

from mirrorgrid.calibration.bounds import (
    compute_axis_bounds,
    compute_live_tile_bounds,
    merge_bounds_intersection,
    merge_bounds_union,
)
from mirrorgrid.calibration.expected_position import (
    TileMeasurement,
    compute_expected_position,
    expected_tolerance,
)
from mirrorgrid.calibration.sampler import HomeMeasurement
from mirrorgrid.calibration.staging import Pose, StagingPosition, compute_pose_targets
from mirrorgrid.calibration.tile_model import (
    TileCalibrationModel,
    TileStatus,
    compute_alignment_steps,
    compute_axis_step_test,
    compute_step_scale,
    get_axis_step_delta,
)
from mirrorgrid.calibration.types import AxisBounds, StepToDisplacement, TileBounds
from mirrorgrid.constants import MOTOR_MAX_POSITION_STEPS, MOTOR_MIN_POSITION_STEPS
from mirrorgrid.geometry.types import Centered
from mirrorgrid.types import GridSize, TileKey


class TestStepTest:
    def test_per_step_from_displacement(self):
        home = HomeMeasurement(x=0.5, y=0.5, size=0.10)
        jogged = HomeMeasurement(x=0.7, y=0.5, size=0.12)
        result = compute_axis_step_test(home, jogged, "x", 1000)
        assert result.displacement == pytest.approx(0.2)
        assert result.per_step == pytest.approx(0.0002)
        assert result.size_delta == pytest.approx(0.02)

    def test_zero_delta_has_no_per_step(self):
        home = HomeMeasurement(x=0.5, y=0.5, size=0.1)
        assert compute_axis_step_test(home, home, "y", 0).per_step is None

    def test_step_delta_sign_and_disable(self):
        assert get_axis_step_delta("x", 1200, 0) == -1200
        assert get_axis_step_delta("y", 1200, 0) == 1200
        assert get_axis_step_delta("x", 5000, 0) == MOTOR_MIN_POSITION_STEPS
        assert get_axis_step_delta("x", 0, 0) is None

    def test_step_scale(self):
        assert compute_step_scale(0.0002) == pytest.approx(5000)
        assert compute_step_scale(0.0) is None
        assert compute_step_scale(None) is None


class TestCalibrationInversion:
    def test_alignment_steps_cancel_home_offset(self):
        model = TileCalibrationModel.from_measurements(
            TileKey(0, 0),
            home=HomeMeasurement(x=0.5, y=0.5, size=0.1),
            step_x=HomeMeasurement(x=0.7, y=0.5, size=0.1),
            delta_steps_x=1000,
        )
        result = model.derive(expected_home=(0.48, 0.5))
        assert result.status is TileStatus.COMPLETED
        assert result.home_offset.dx == pytest.approx(0.02)
        assert result.step_to_displacement.x == pytest.approx(0.0002)
        assert result.alignment_steps.x == -100
        assert result.adjusted_home.steps_x == -100

    def test_alignment_steps_clamped(self):
        assert compute_alignment_steps(0.5, 0.0002) == MOTOR_MIN_POSITION_STEPS
        assert compute_alignment_steps(-0.5, 0.0002) == MOTOR_MAX_POSITION_STEPS

    def test_unusable_axis_has_no_alignment_steps(self):
        assert compute_alignment_steps(0.02, None) is None
        assert compute_alignment_steps(0.02, 1e-12) is None

    def test_missing_y_axis_is_uncalibrated(self):
        model = TileCalibrationModel.from_measurements(
            TileKey(1, 1),
            home=HomeMeasurement(x=0.1, y=0.1, size=0.1),
            step_x=HomeMeasurement(x=0.3, y=0.1, size=0.1),
            delta_steps_x=1000,
        )
        result = model.derive()
        assert result.is_axis_calibrated("x")
        assert result.uncalibrated_axes == ("y",)
        assert result.alignment_steps.y is None
        assert result.motor_reach_bounds is None

    def test_no_home_is_failed(self):
        result = TileCalibrationModel(TileKey(0, 1), error="detection failed").derive()
        assert result.status is TileStatus.FAILED
        assert result.error == "detection failed"
        assert result.uncalibrated_axes == ("x", "y")

    def test_result_dict_round_trip(self):
        model = TileCalibrationModel.from_measurements(
            TileKey(0, 0),
            home=HomeMeasurement(x=0.0, y=0.0, size=0.1),
            step_x=HomeMeasurement(x=0.2, y=0.0, size=0.1),
            step_y=HomeMeasurement(x=0.0, y=-0.2, size=0.1),
            delta_steps_x=1000,
            delta_steps_y=1000,
        )
        result = model.derive(expected_home=(0.01, 0.0))
        restored = type(result).from_dict(result.to_dict())
        assert restored == result


class TestBounds:
    def test_axis_bounds_follow_motor_limits(self):
        bounds = compute_axis_bounds(0.0, 0, 0.0002)
        assert bounds.min == pytest.approx(MOTOR_MIN_POSITION_STEPS * 0.0002)
        assert bounds.max == pytest.approx(MOTOR_MAX_POSITION_STEPS * 0.0002)

    def test_negative_per_step_still_ordered(self):
        bounds = compute_axis_bounds(0.0, 0, -0.0002)
        assert bounds.min < bounds.max

    def test_bounds_clamped_to_frame(self):
        bounds = compute_axis_bounds(0.9, 0, 0.001)
        assert bounds.max == 1.0

    def test_live_bounds_need_both_axes(self):
        assert compute_live_tile_bounds(0.0, 0.0, StepToDisplacement(x=0.0002, y=None)) is None
        bounds = compute_live_tile_bounds(0.0, 0.0, StepToDisplacement(x=0.0002, y=0.0002))
        assert bounds.contains(0.1, -0.1)
        assert not bounds.contains(0.5, 0.0)

    def test_merge(self):
        a = TileBounds(AxisBounds(0.0, 0.5), AxisBounds(0.0, 0.5))
        b = TileBounds(AxisBounds(0.25, 1.0), AxisBounds(-0.5, 0.25))
        union = merge_bounds_union(a, b)
        assert (union.x.min, union.x.max, union.y.min, union.y.max) == (0.0, 1.0, -0.5, 0.5)
        overlap = merge_bounds_intersection(a, b)
        assert (overlap.x.min, overlap.x.max, overlap.y.min, overlap.y.max) == (0.25, 0.5, 0.0, 0.25)
        far = TileBounds(AxisBounds(2.0, 3.0), AxisBounds(2.0, 3.0))
        assert merge_bounds_intersection(a, far) is None
        assert merge_bounds_union(None, a) is a


class TestStaging:
    def test_home_pose_is_zero(self):
        assert compute_pose_targets(TileKey(1, 1), Pose.HOME, GridSize(2, 2)) == (0, 0)

    def test_nearest_corner_by_quadrant(self):
        grid = GridSize(2, 2)
        assert compute_pose_targets(TileKey(0, 0), Pose.ASIDE, grid) == (1200, 1200)
        assert compute_pose_targets(TileKey(0, 1), Pose.ASIDE, grid) == (-1200, 1200)
        assert compute_pose_targets(TileKey(1, 0), Pose.ASIDE, grid) == (1200, -1200)
        assert compute_pose_targets(TileKey(1, 1), Pose.ASIDE, grid) == (-1200, -1200)

    def test_rotated_arrays_mirror_corners(self):
        grid = GridSize(2, 2)
        assert compute_pose_targets(TileKey(0, 0), Pose.ASIDE, grid, rotation=180) == (-1200, -1200)

    def test_corner_and_distributed_staging(self):
        grid = GridSize(1, 3)
        assert compute_pose_targets(TileKey(0, 1), "aside", grid, 0, StagingPosition.CORNER) == (1200, -1200)
        bottom = [compute_pose_targets(TileKey(0, c), Pose.ASIDE, grid, 0, "bottom") for c in range(3)]
        assert bottom == [(-1200, -1200), (0, -1200), (1200, -1200)]
        left = compute_pose_targets(TileKey(0, 2), Pose.ASIDE, grid, 0, StagingPosition.LEFT)
        assert left == (1200, 1200)

    def test_unknown_staging_rejected(self):
        with pytest.raises(ValueError):
            compute_pose_targets(TileKey(0, 0), Pose.ASIDE, GridSize(2, 2), 0, "ceiling")


class TestExpectedPosition:
    def test_first_tile_at_roi_left_edge(self):
        roi = {"x": 0.3, "y": 0.3, "width": 0.4, "height": 0.4}
        expected = compute_expected_position(TileKey(0, 0), [], GridSize(2, 2), roi=roi)
        assert expected.as_tuple() == pytest.approx((0.3, 0.5))

    def test_extrapolates_from_measured_tiles(self):
        completed = [
            TileMeasurement(TileKey(0, 0), Centered(-0.3, -0.1)),
            TileMeasurement(TileKey(0, 1), Centered(0.0, -0.1)),
        ]
        expected = compute_expected_position(TileKey(1, 1), completed, GridSize(2, 2))
        assert expected.as_tuple() == pytest.approx((0.5, 0.6))

    def test_single_tile_uses_default_spacing(self):
        completed = [TileMeasurement(TileKey(0, 0), Centered(-0.3, -0.1))]
        expected = compute_expected_position(TileKey(0, 1), completed, GridSize(2, 2))
        assert expected.as_tuple() == pytest.approx((0.5, 0.45))

    def test_tolerance_selection(self):
        assert expected_tolerance(True, 0.25, 0.15) == 0.25
        assert expected_tolerance(False, 0.25, 0.15) == 0.15
