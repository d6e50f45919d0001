"""Pydantic schemas for persisted calibration profiles."""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..constants import ARRAY_ROTATIONS
from ..types import TileKey


class AxisPairSchema(BaseModel):
    x: Optional[float] = None
    y: Optional[float] = None


class StepPairSchema(BaseModel):
    x: Optional[int] = None
    y: Optional[int] = None


class AxisBoundsSchema(BaseModel):
    min: float
    max: float

    @model_validator(mode="after")
    def check_order(self):
        if self.min > self.max:
            raise ValueError(f"Bounds min {self.min} exceeds max {self.max}")
        return self


class TileBoundsSchema(BaseModel):
    x: AxisBoundsSchema
    y: AxisBoundsSchema


class MeasurementStatsSchema(BaseModel):
    sample_count: int = Field(..., ge=0)
    retained_count: int = Field(..., ge=0)
    passed: bool
    n_mad: Dict[str, float] = Field(default_factory=dict)
    thresholds: Dict[str, Optional[Union[int, float]]] = Field(default_factory=dict)
    median_deviation: float = 0.0
    rejected_indices: List[int] = Field(default_factory=list)


class HomeMeasurementSchema(BaseModel):
    x: float = Field(..., description="Spot x in centered space")
    y: float = Field(..., description="Spot y in centered space")
    size: float = Field(..., ge=0, description="Spot diameter in centered units")
    response: Optional[float] = None
    area: Optional[float] = Field(None, ge=0)
    eccentricity: Optional[float] = Field(None, ge=0)
    captured_at: Optional[float] = None
    stats: Optional[MeasurementStatsSchema] = None


class OffsetSchema(BaseModel):
    dx: float
    dy: float


class AdjustedHomeSchema(BaseModel):
    x: float
    y: float
    steps_x: Optional[int] = None
    steps_y: Optional[int] = None


class TileResultSchema(BaseModel):
    tile: str
    status: Literal["pending", "completed", "failed"]
    home_measurement: Optional[HomeMeasurementSchema] = None
    adjusted_home: Optional[AdjustedHomeSchema] = None
    home_offset: Optional[OffsetSchema] = None
    step_to_displacement: AxisPairSchema = Field(default_factory=AxisPairSchema)
    size_delta_at_step_test: Optional[float] = None
    step_scale: AxisPairSchema = Field(default_factory=AxisPairSchema)
    alignment_steps: StepPairSchema = Field(default_factory=StepPairSchema)
    motor_reach_bounds: Optional[TileBoundsSchema] = None
    footprint_bounds: Optional[TileBoundsSchema] = None
    combined_bounds: Optional[TileBoundsSchema] = None
    error: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @field_validator("tile")
    @classmethod
    def validate_tile_key(cls, v):
        TileKey.parse(v)
        return v

    @model_validator(mode="after")
    def completed_requires_home(self):
        if self.status == "completed" and self.home_measurement is None:
            raise ValueError(f"Completed tile {self.tile} has no home measurement")
        return self


class FootprintSchema(BaseModel):
    width: float
    height: float


class VecSchema(BaseModel):
    x: float
    y: float


class GridSizeSchema(BaseModel):
    rows: int = Field(..., ge=1, le=64)
    cols: int = Field(..., ge=1, le=64)


class GridBlueprintSchema(BaseModel):
    adjusted_tile_footprint: FootprintSchema
    tile_gap: VecSchema
    grid_origin: VecSchema
    camera_origin_offset: VecSchema
    grid_size: GridSizeSchema
    source_width: float = Field(..., gt=0)
    source_height: float = Field(..., gt=0)


class CameraSchema(BaseModel):
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)


class CalibrationProfileSchema(BaseModel):
    """Complete persisted calibration profile."""

    model_config = ConfigDict(extra="forbid")

    schema_version: int = Field(1, ge=1)
    id: str = Field(..., min_length=1, description="Profile identifier")
    name: str = Field(..., min_length=1, description="Human readable profile name")
    created_at: float = Field(..., description="Creation time (unix seconds)")
    grid_size: GridSizeSchema
    array_rotation: int = 0
    camera: Optional[CameraSchema] = None
    tiles: Dict[str, TileResultSchema] = Field(default_factory=dict)
    grid_blueprint: Optional[GridBlueprintSchema] = None
    metrics: Dict[str, Any] = Field(default_factory=dict)
    settings: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("array_rotation")
    @classmethod
    def validate_rotation(cls, v):
        if v not in ARRAY_ROTATIONS:
            raise ValueError(f"Array rotation must be one of {ARRAY_ROTATIONS}")
        return v

    @model_validator(mode="after")
    def tiles_match_keys_and_grid(self):
        for key, tile in self.tiles.items():
            if key != tile.tile:
                raise ValueError(f"Tile entry {key!r} describes tile {tile.tile!r}")
            parsed = TileKey.parse(key)
            if parsed.row >= self.grid_size.rows or parsed.col >= self.grid_size.cols:
                raise ValueError(f"Tile {key} lies outside the {self.grid_size.rows}x{self.grid_size.cols} grid")
        return self
