"""Tests for the grid blueprint and calibration profile persistence."""

import json

import pytest
import yaml

from mirrorgrid.calibration.blueprint import clamp_grid_gap, compute_grid_blueprint
from mirrorgrid.calibration.profile import CalibrationProfile
from mirrorgrid.calibration.sampler import HomeMeasurement, MeasurementStats
from mirrorgrid.calibration.summary import build_calibration_profile
from mirrorgrid.calibration.tile_model import TileStatus
from mirrorgrid.config import CalibrationRunnerConfig
from mirrorgrid.errors import ProfileValidationError
from mirrorgrid.geometry.types import CameraInfo
from mirrorgrid.types import GridSize, TileKey

from conftest import regular_grid_profile, tile_model


def grid_homes(grid_size, pitch=0.3, size=0.25, offset=(0.0, 0.0)):
    measured = []
    for tile in grid_size.tiles():
        x = (tile.col - (grid_size.cols - 1) / 2.0) * pitch + offset[0]
        y = (tile.row - (grid_size.rows - 1) / 2.0) * pitch + offset[1]
        measured.append((tile, HomeMeasurement(x=x, y=y, size=size)))
    return measured


class TestGridBlueprint:
    def test_spacing_is_footprint_plus_gap(self):
        result = compute_grid_blueprint(
            grid_homes(GridSize(2, 3)), GridSize(2, 3), grid_gap_normalized=0.02, camera=CameraInfo(1000, 1000)
        )
        blueprint = result.blueprint
        spacing = blueprint.spacing
        assert spacing.x == pytest.approx(blueprint.adjusted_tile_footprint.width + blueprint.tile_gap.x)
        assert spacing.y == pytest.approx(blueprint.adjusted_tile_footprint.height + blueprint.tile_gap.y)
        assert spacing.x == pytest.approx(0.3)
        assert blueprint.tile_gap.x == pytest.approx(0.04)

    def test_grid_is_recentered_on_frame(self):
        result = compute_grid_blueprint(
            grid_homes(GridSize(2, 2), offset=(0.1, -0.05)), GridSize(2, 2), camera=CameraInfo(1000, 1000)
        )
        blueprint = result.blueprint
        assert blueprint.camera_origin_offset.x == pytest.approx(0.1)
        assert blueprint.camera_origin_offset.y == pytest.approx(-0.05)
        assert blueprint.grid_origin.x == pytest.approx(-0.3)
        center = blueprint.ideal_center(TileKey(1, 1))
        assert (center.x, center.y) == pytest.approx((0.15, 0.15))

    def test_deterministic(self):
        measured = grid_homes(GridSize(3, 3))
        a = compute_grid_blueprint(measured, GridSize(3, 3), camera=CameraInfo(1920, 1080))
        b = compute_grid_blueprint(measured, GridSize(3, 3), camera=CameraInfo(1920, 1080))
        assert a.blueprint == b.blueprint

    def test_gap_clamped(self):
        assert clamp_grid_gap(-1.0) == 0.0
        assert clamp_grid_gap(0.9) == 0.5
        assert clamp_grid_gap(0.1) == 0.1

    def test_size_outlier_excluded_from_tile_size(self):
        measured = [(tile, HomeMeasurement(m.x, m.y, size=s)) for (tile, m), s in zip(
            grid_homes(GridSize(1, 5)), [0.20, 0.21, 0.20, 0.22, 0.90]
        )]
        result = compute_grid_blueprint(measured, GridSize(1, 5), robust_tile_size=True)
        assert result.outlier_analysis.outlier_tiles == [TileKey(0, 4)]
        assert result.outlier_analysis.computed_tile_size == pytest.approx(0.22)

    def test_nothing_measured(self):
        assert compute_grid_blueprint([], GridSize(2, 2)).blueprint is None

    def test_ideal_grid_position_normalized(self):
        blueprint = compute_grid_blueprint(grid_homes(GridSize(3, 3)), GridSize(3, 3)).blueprint
        corner = blueprint.ideal_grid_position(TileKey(0, 2))
        assert (corner.x, corner.y) == (1.0, -1.0)
        center = blueprint.ideal_grid_position(TileKey(1, 1))
        assert (center.x, center.y) == (0.0, 0.0)


class TestBuildProfile:
    def test_regular_grid_has_no_home_offset(self, grid_2x2):
        profile = regular_grid_profile(grid_2x2)
        assert len(profile.completed_tiles) == 4
        for result in profile.tiles.values():
            assert result.home_offset.dx == pytest.approx(0.0, abs=1e-12)
            assert result.alignment_steps.x == 0
            assert result.combined_bounds is not None
            assert result.footprint_bounds is not None
        assert profile.metrics["completed_tiles"] == 4
        assert profile.metrics["median_step_to_displacement"]["x"] == pytest.approx(2e-4)

    def test_failed_tile_kept_in_profile(self, grid_2x2):
        models = {tile: tile_model(tile, (0.3 * tile.col, 0.3 * tile.row)) for tile in grid_2x2.tiles()}
        models[TileKey(1, 1)].home = None
        models[TileKey(1, 1)].error = "no blob"
        profile = build_calibration_profile(models, grid_2x2, camera=CameraInfo(1000, 1000))
        failed = profile.get(TileKey(1, 1))
        assert failed.status is TileStatus.FAILED
        assert failed.error == "no blob"
        assert profile.metrics["failed_tiles"] == 1

    def test_settings_recorded(self, grid_2x2):
        config = CalibrationRunnerConfig(delta_steps=800, array_rotation=180)
        models = {TileKey(0, 0): tile_model(TileKey(0, 0), (0.0, 0.0))}
        profile = build_calibration_profile(models, grid_2x2, config=config)
        assert profile.array_rotation == 180
        assert profile.settings["delta_steps"] == 800

    def test_profile_is_immutable(self, grid_2x2):
        profile = regular_grid_profile(grid_2x2)
        with pytest.raises(TypeError):
            profile.tiles[TileKey(0, 0)] = None
        with pytest.raises(AttributeError):
            profile.name = "renamed"


class TestProfilePersistence:
    @pytest.mark.parametrize("suffix", [".json", ".yaml"])
    def test_save_load_round_trip(self, tmp_path, grid_2x2, suffix):
        profile = regular_grid_profile(grid_2x2)
        path = tmp_path / f"profile{suffix}"
        profile.save(path)
        loaded = CalibrationProfile.load(path)
        assert loaded.id == profile.id
        assert loaded.grid_size == profile.grid_size
        assert loaded.grid_blueprint == profile.grid_blueprint
        assert loaded.tiles[TileKey(0, 1)] == profile.tiles[TileKey(0, 1)]
        assert loaded.to_dict() == profile.to_dict()

    def test_tile_outside_grid_rejected(self, grid_2x2):
        document = regular_grid_profile(grid_2x2).to_dict()
        document["grid_size"] = {"rows": 1, "cols": 1}
        with pytest.raises(ProfileValidationError):
            CalibrationProfile.from_dict(document)

    def test_bad_rotation_rejected(self, grid_2x2):
        document = regular_grid_profile(grid_2x2).to_dict()
        document["array_rotation"] = 45
        with pytest.raises(ProfileValidationError):
            CalibrationProfile.from_dict(document)

    def test_completed_tile_without_home_rejected(self, grid_2x2):
        document = regular_grid_profile(grid_2x2).to_dict()
        document["tiles"]["0-0"]["home_measurement"] = None
        with pytest.raises(ProfileValidationError):
            CalibrationProfile.from_dict(document)

    def test_unknown_field_rejected(self, grid_2x2):
        document = regular_grid_profile(grid_2x2).to_dict()
        document["legacy"] = True
        with pytest.raises(ProfileValidationError):
            CalibrationProfile.from_dict(document)

    def test_non_mapping_document_rejected(self, tmp_path):
        path = tmp_path / "profile.json"
        path.write_text(json.dumps([1, 2, 3]))
        with pytest.raises(ProfileValidationError):
            CalibrationProfile.load(path)

    def test_measurement_thresholds_keep_their_types(self, tmp_path, grid_2x2):
        model = tile_model(TileKey(0, 0), (-0.15, -0.15), size=0.3)
        model.home = HomeMeasurement(
            x=-0.15,
            y=-0.15,
            size=0.3,
            stats=MeasurementStats(
                sample_count=5,
                retained_count=4,
                passed=True,
                thresholds={"min_samples": 3, "max_median_deviation_pt": 0.5},
            ),
        )
        profile = regular_grid_profile(grid_2x2, overrides={TileKey(0, 0): model})
        path = tmp_path / "profile.json"
        profile.save(path)
        stats = CalibrationProfile.load(path).tiles[TileKey(0, 0)].home_measurement.stats
        assert stats.thresholds == {"min_samples": 3, "max_median_deviation_pt": 0.5}
        assert type(stats.thresholds["min_samples"]) is int
        assert type(stats.thresholds["max_median_deviation_pt"]) is float

    def test_invalid_file_rejected(self, tmp_path, grid_2x2):
        document = regular_grid_profile(grid_2x2).to_dict()
        document["array_rotation"] = 45
        path = tmp_path / "profile.yaml"
        path.write_text(yaml.safe_dump(document))
        with pytest.raises(ProfileValidationError, match="profile.yaml"):
            CalibrationProfile.load(path)

    def test_validation_error_is_value_error(self):
        assert issubclass(ProfileValidationError, ValueError)
