"""Assemble per-tile calibration models into a calibration profile."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Mapping, Optional

from ..config import CalibrationRunnerConfig
from ..geometry.types import CameraInfo
from ..types import GridSize, TileKey
from ..utils.log import get_logger
from .blueprint import GridBlueprint, compute_grid_blueprint
from .bounds import compute_footprint_bounds
from .profile import CalibrationProfile
from .robust import compute_median
from .tile_model import TileCalibrationModel, TileCalibrationResult

logger = get_logger(__name__)


def _profile_metrics(
    results: Mapping[TileKey, TileCalibrationResult],
    blueprint: Optional[GridBlueprint],
    outlier_tiles: Any,
) -> Dict[str, Any]:
    completed = [r for r in results.values() if r.is_completed]
    per_step_x = [r.step_to_displacement.x for r in completed if r.is_axis_calibrated("x")]
    per_step_y = [r.step_to_displacement.y for r in completed if r.is_axis_calibrated("y")]
    offsets = [abs(r.home_offset.dx) + abs(r.home_offset.dy) for r in completed if r.home_offset]
    return {
        "total_tiles": len(results),
        "completed_tiles": len(completed),
        "failed_tiles": len(results) - len(completed),
        "median_step_to_displacement": {
            "x": compute_median(per_step_x) if per_step_x else None,
            "y": compute_median(per_step_y) if per_step_y else None,
        },
        "median_home_offset_l1": compute_median(offsets) if offsets else None,
        "tile_footprint": blueprint.adjusted_tile_footprint.to_dict() if blueprint else None,
        "size_outlier_tiles": [str(t) for t in outlier_tiles],
    }


def build_calibration_profile(
    models: Mapping[TileKey, TileCalibrationModel],
    grid_size: GridSize,
    camera: Optional[CameraInfo] = None,
    config: Optional[CalibrationRunnerConfig] = None,
    name: str = "Calibration",
) -> CalibrationProfile:
    """Build the grid blueprint and every tile result from raw tile models.

    Home measurements are recentered onto the blueprint so each tile's home
    offset is measured against its ideal grid center.
    """
    config = config or CalibrationRunnerConfig()
    measured = [(tile, models[tile].home) for tile in sorted(models) if models[tile].has_home]

    blueprint_result = compute_grid_blueprint(
        measured,  # type: ignore[arg-type]
        grid_size,
        grid_gap_normalized=config.grid_gap_normalized,
        camera=camera,
        robust_tile_size=config.robust_tile_size,
        mad_threshold=config.robust_tile_size_mad_threshold,
    )
    blueprint = blueprint_result.blueprint

    results: Dict[TileKey, TileCalibrationResult] = {}
    for tile in sorted(models):
        model = models[tile]
        if blueprint is None or model.home is None:
            results[tile] = model.derive()
            continue

        offset = blueprint.camera_origin_offset
        recentered = model.home.translated(-offset.x, -offset.y)
        center = blueprint.ideal_center(tile)
        results[tile] = model.derive(
            expected_home=(center.x, center.y),
            footprint_bounds=compute_footprint_bounds(blueprint, tile),
            home=recentered,
        )

    analysis = blueprint_result.outlier_analysis
    if analysis.outlier_count:
        logger.warning(
            f"Tile size outliers excluded: {', '.join(str(t) for t in analysis.outlier_tiles)}"
        )

    profile = CalibrationProfile(
        grid_size=grid_size,
        tiles=results,
        grid_blueprint=blueprint,
        camera=camera,
        array_rotation=config.array_rotation,
        name=name,
        metrics=_profile_metrics(results, blueprint, analysis.outlier_tiles),
        settings=asdict(config),
    )
    logger.info(
        f"Built calibration profile '{name}': "
        f"{profile.metrics['completed_tiles']}/{len(results)} tiles completed"
    )
    return profile
