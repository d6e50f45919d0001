"""Where a tile's spot should appear before it has been measured.

Used to gate detections during a calibration run: the first tile is looked for
at the left edge of the region of interest, later tiles are extrapolated from
the grid formed by the tiles measured so far. Positions are in viewport space.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

import numpy as np

from ..constants import DEFAULT_TILE_SPACING
from ..geometry.rotation import rotate_grid_position
from ..geometry.transform import centered_to_view
from ..geometry.types import Centered, Viewport
from ..types import GridSize, TileKey


@dataclass(frozen=True)
class TileMeasurement:
    tile: TileKey
    position: Centered


@dataclass(frozen=True)
class GridEstimate:
    origin_x: float
    origin_y: float
    spacing_x: float
    spacing_y: float


def _roi_value(roi: Mapping[str, float], key: str, default: float) -> float:
    return float(roi.get(key, default))


def compute_first_tile_expected(roi: Mapping[str, float]) -> Viewport:
    """Left edge of the ROI, vertically centered."""
    y = _roi_value(roi, "y", 0.0) + _roi_value(roi, "height", 1.0) / 2.0
    return Viewport(_roi_value(roi, "x", 0.0), y)


def estimate_grid(
    measurements: Sequence[TileMeasurement],
    grid_size: GridSize,
    rotation: int = 0,
) -> GridEstimate:
    """Estimate grid origin and spacing from measured tiles (camera-view rows/cols)."""
    points = []
    for m in measurements:
        cam_row, cam_col = rotate_grid_position(m.tile.row, m.tile.col, grid_size.rows, grid_size.cols, rotation)
        points.append((cam_row, cam_col, centered_to_view(m.position.x), centered_to_view(m.position.y)))

    if len(points) == 1:
        row, col, x, y = points[0]
        return GridEstimate(
            origin_x=x - col * DEFAULT_TILE_SPACING,
            origin_y=y - row * DEFAULT_TILE_SPACING,
            spacing_x=DEFAULT_TILE_SPACING,
            spacing_y=DEFAULT_TILE_SPACING,
        )

    gaps_x = []
    gaps_y = []
    for i, (row_a, col_a, x_a, y_a) in enumerate(points):
        for row_b, col_b, x_b, y_b in points[i + 1:]:
            if row_a == row_b and abs(col_a - col_b) == 1:
                gaps_x.append(abs(x_a - x_b))
            if col_a == col_b and abs(row_a - row_b) == 1:
                gaps_y.append(abs(y_a - y_b))

    spacing_x = float(np.mean(gaps_x)) if gaps_x else DEFAULT_TILE_SPACING
    spacing_y = float(np.mean(gaps_y)) if gaps_y else DEFAULT_TILE_SPACING
    origin_x = float(np.mean([x - col * spacing_x for _, col, x, _ in points]))
    origin_y = float(np.mean([y - row * spacing_y for row, _, _, y in points]))
    return GridEstimate(origin_x, origin_y, spacing_x, spacing_y)


def compute_expected_from_grid(
    tile: TileKey,
    estimate: GridEstimate,
    grid_size: GridSize,
    rotation: int = 0,
) -> Viewport:
    cam_row, cam_col = rotate_grid_position(tile.row, tile.col, grid_size.rows, grid_size.cols, rotation)
    return Viewport(
        estimate.origin_x + cam_col * estimate.spacing_x,
        estimate.origin_y + cam_row * estimate.spacing_y,
    )


def compute_expected_position(
    tile: TileKey,
    completed: Sequence[TileMeasurement],
    grid_size: GridSize,
    rotation: int = 0,
    roi: Optional[Mapping[str, float]] = None,
) -> Viewport:
    """Expected viewport position of ``tile``'s spot at home."""
    if not completed:
        return compute_first_tile_expected(roi or {})
    estimate = estimate_grid(completed, grid_size, rotation)
    return compute_expected_from_grid(tile, estimate, grid_size, rotation)


def expected_tolerance(is_first_tile: bool, first_tile_tolerance: float, tile_tolerance: float) -> float:
    return first_tile_tolerance if is_first_tile else tile_tolerance