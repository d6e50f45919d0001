"""Array-level grid geometry derived from per-tile home measurements."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..constants import (
    DEFAULT_OUTLIER_MAD_THRESHOLD,
    GRID_GAP_MAX_NORMALIZED,
    GRID_GAP_MIN_NORMALIZED,
)
from ..geometry.types import CameraInfo
from ..types import GridSize, TileKey
from .robust import OutlierDirection, compute_median, detect_outliers, robust_max
from .sampler import HomeMeasurement


@dataclass(frozen=True)
class Vec2:
    x: float
    y: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class Footprint:
    width: float
    height: float

    def to_dict(self) -> Dict[str, float]:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class GridBlueprint:
    """Re-centered grid layout in centered space.

    ``spacing = adjusted_tile_footprint + tile_gap`` on each axis.
    """

    adjusted_tile_footprint: Footprint
    tile_gap: Vec2
    grid_origin: Vec2
    camera_origin_offset: Vec2
    grid_size: GridSize
    source_width: float
    source_height: float

    @property
    def spacing(self) -> Vec2:
        return Vec2(
            self.adjusted_tile_footprint.width + self.tile_gap.x,
            self.adjusted_tile_footprint.height + self.tile_gap.y,
        )

    @property
    def half_tile(self) -> Vec2:
        return Vec2(self.adjusted_tile_footprint.width / 2.0, self.adjusted_tile_footprint.height / 2.0)

    @property
    def total_size(self) -> Footprint:
        spacing = self.spacing
        return Footprint(
            self.grid_size.cols * spacing.x - self.tile_gap.x,
            self.grid_size.rows * spacing.y - self.tile_gap.y,
        )

    @property
    def camera(self) -> CameraInfo:
        return CameraInfo(self.source_width, self.source_height)

    def ideal_center(self, tile: TileKey) -> Vec2:
        """Where ``tile``'s spot sits on a perfect grid."""
        spacing = self.spacing
        half = self.half_tile
        return Vec2(
            self.grid_origin.x + tile.col * spacing.x + half.x,
            self.grid_origin.y + tile.row * spacing.y + half.y,
        )

    def ideal_grid_position(self, tile: TileKey) -> Vec2:
        """Tile position normalized across the grid to [-1, 1]."""
        def normalize(index: int, count: int) -> float:
            return 0.0 if count <= 1 else index / (count - 1) * 2.0 - 1.0

        return Vec2(normalize(tile.col, self.grid_size.cols), normalize(tile.row, self.grid_size.rows))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "adjusted_tile_footprint": self.adjusted_tile_footprint.to_dict(),
            "tile_gap": self.tile_gap.to_dict(),
            "grid_origin": self.grid_origin.to_dict(),
            "camera_origin_offset": self.camera_origin_offset.to_dict(),
            "grid_size": {"rows": self.grid_size.rows, "cols": self.grid_size.cols},
            "source_width": self.source_width,
            "source_height": self.source_height,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GridBlueprint":
        return cls(
            adjusted_tile_footprint=Footprint(**data["adjusted_tile_footprint"]),
            tile_gap=Vec2(**data["tile_gap"]),
            grid_origin=Vec2(**data["grid_origin"]),
            camera_origin_offset=Vec2(**data["camera_origin_offset"]),
            grid_size=GridSize(**data["grid_size"]),
            source_width=float(data["source_width"]),
            source_height=float(data["source_height"]),
        )


@dataclass
class OutlierAnalysis:
    """How the tile size was chosen from the measured blob sizes."""

    enabled: bool = False
    outlier_tiles: List[TileKey] = field(default_factory=list)
    median: float = 0.0
    mad: float = 0.0
    n_mad: float = 0.0
    upper_threshold: float = 0.0
    computed_tile_size: float = 0.0

    @property
    def outlier_count(self) -> int:
        return len(self.outlier_tiles)


@dataclass(frozen=True)
class GridBlueprintResult:
    blueprint: Optional[GridBlueprint]
    outlier_analysis: OutlierAnalysis


def clamp_grid_gap(value: float) -> float:
    return max(GRID_GAP_MIN_NORMALIZED, min(GRID_GAP_MAX_NORMALIZED, float(value)))


def _axis_pitch(deltas: Sequence[float]) -> float:
    return compute_median(deltas) if deltas else 0.0


def _tile_size(
    measured: Sequence[Tuple[TileKey, HomeMeasurement]],
    robust: bool,
    mad_threshold: float,
) -> Tuple[float, OutlierAnalysis]:
    sizes = [m.size or 0.0 for _, m in measured]
    if robust and len(measured) > 1:
        detection = detect_outliers(sizes, mad_threshold, OutlierDirection.HIGH)
        tile_size = robust_max(sizes, mad_threshold, OutlierDirection.HIGH)
        analysis = OutlierAnalysis(
            enabled=True,
            outlier_tiles=[measured[i][0] for i in detection.outlier_indices],
            median=detection.median,
            mad=detection.mad,
            n_mad=detection.n_mad,
            upper_threshold=detection.upper_threshold,
            computed_tile_size=tile_size,
        )
        return tile_size, analysis

    tile_size = max(sizes)
    return tile_size, OutlierAnalysis(
        enabled=False, median=tile_size, upper_threshold=tile_size, computed_tile_size=tile_size
    )


def compute_grid_blueprint(
    measured: Sequence[Tuple[TileKey, HomeMeasurement]],
    grid_size: GridSize,
    grid_gap_normalized: float = 0.0,
    camera: Optional[CameraInfo] = None,
    robust_tile_size: bool = True,
    mad_threshold: float = DEFAULT_OUTLIER_MAD_THRESHOLD,
) -> GridBlueprintResult:
    """Compose measured tile homes into a grid blueprint.

    Args:
        measured: (tile, home measurement) pairs in centered space, completed tiles only
        grid_size: Array dimensions
        grid_gap_normalized: Configured gap between tile footprints, clamped to [0, 0.5]
        camera: Source frame; isotropic pitch factors are derived from it
        robust_tile_size: Use the MAD-filtered max blob size instead of the plain max
        mad_threshold: Outlier threshold for robust tile sizing

    Returns:
        Blueprint (None when nothing was measured) and the tile-size outlier analysis
    """
    if not measured:
        return GridBlueprintResult(blueprint=None, outlier_analysis=OutlierAnalysis(enabled=robust_tile_size))

    camera = camera or CameraInfo(1920, 1080)
    width, height = camera.safe_width, camera.safe_height

    tile_size, analysis = _tile_size(measured, robust_tile_size, mad_threshold)
    tile_width = tile_height = tile_size

    avg_dim = camera.avg_dim
    iso_factor_x = width / avg_dim
    iso_factor_y = height / avg_dim

    by_tile: Dict[TileKey, HomeMeasurement] = {tile: m for tile, m in measured}
    deltas_x: List[float] = []
    deltas_y: List[float] = []
    for tile, measurement in measured:
        right = by_tile.get(TileKey(tile.row, tile.col + 1))
        if right is not None:
            deltas_x.append(abs((right.x - measurement.x) * iso_factor_x))
        down = by_tile.get(TileKey(tile.row + 1, tile.col))
        if down is not None:
            deltas_y.append(abs((down.y - measurement.y) * iso_factor_y))

    gap = clamp_grid_gap(grid_gap_normalized) * 2.0

    pitch_x = _axis_pitch(deltas_x)
    pitch_y = _axis_pitch(deltas_y)
    if pitch_y <= 0 < pitch_x:
        pitch_y = pitch_x
    if pitch_x > 0 and pitch_y > 0:
        iso_pitch = (pitch_x + pitch_y) / 2.0
    else:
        iso_pitch = max(pitch_x, pitch_y, 0.0)

    if iso_pitch > 0:
        iso_tile = iso_pitch - gap
        tile_width = iso_tile / iso_factor_x
        tile_height = iso_tile / iso_factor_y

    spacing_x = tile_width + gap
    spacing_y = tile_height + gap
    half_x = tile_width / 2.0
    half_y = tile_height / 2.0
    total_width = grid_size.cols * spacing_x - gap
    total_height = grid_size.rows * spacing_y - gap

    origin_x = compute_median([m.x - (t.col * spacing_x + half_x) for t, m in measured])
    origin_y = compute_median([m.y - (t.row * spacing_y + half_y) for t, m in measured])

    camera_origin_offset = Vec2(origin_x + total_width / 2.0, origin_y + total_height / 2.0)

    blueprint = GridBlueprint(
        adjusted_tile_footprint=Footprint(tile_width, tile_height),
        tile_gap=Vec2(gap, gap),
        grid_origin=Vec2(origin_x - camera_origin_offset.x, origin_y - camera_origin_offset.y),
        camera_origin_offset=camera_origin_offset,
        grid_size=grid_size,
        source_width=width,
        source_height=height,
    )
    return GridBlueprintResult(blueprint=blueprint, outlier_analysis=analysis)
