"""Data schemas and validation models for persisted calibration data."""

from .profile import (
    CalibrationProfileSchema,
    TileResultSchema,
    GridBlueprintSchema,
    HomeMeasurementSchema,
    TileBoundsSchema,
)

__all__ = [
    "CalibrationProfileSchema",
    "TileResultSchema",
    "GridBlueprintSchema",
    "HomeMeasurementSchema",
    "TileBoundsSchema",
]
