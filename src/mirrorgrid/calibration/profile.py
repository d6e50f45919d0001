"""Calibration profile: the exported result of a calibration run."""

from __future__ import annotations

import time
import uuid
from types import MappingProxyType
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError

from ..errors import ProfileValidationError
from ..geometry.types import CameraInfo
from ..schemas.profile import CalibrationProfileSchema
from ..types import GridSize, TileKey
from ..utils.io import load_model_document, save_data
from ..utils.log import get_logger
from .blueprint import GridBlueprint
from .tile_model import TileCalibrationResult

logger = get_logger(__name__)

PROFILE_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class CalibrationProfile:
    """Immutable snapshot of every tile's calibration plus the grid blueprint."""

    grid_size: GridSize
    tiles: Mapping[TileKey, TileCalibrationResult] = field(default_factory=dict)
    grid_blueprint: Optional[GridBlueprint] = None
    camera: Optional[CameraInfo] = None
    array_rotation: int = 0
    name: str = "Calibration"
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)
    metrics: Mapping[str, Any] = field(default_factory=dict)
    settings: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tiles", MappingProxyType(dict(self.tiles)))

    def get(self, tile: TileKey) -> Optional[TileCalibrationResult]:
        return self.tiles.get(tile)

    @property
    def completed_tiles(self) -> Dict[TileKey, TileCalibrationResult]:
        return {key: result for key, result in self.tiles.items() if result.is_completed}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": PROFILE_SCHEMA_VERSION,
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at,
            "grid_size": {"rows": self.grid_size.rows, "cols": self.grid_size.cols},
            "array_rotation": self.array_rotation,
            "camera": {"width": self.camera.width, "height": self.camera.height} if self.camera else None,
            "tiles": {str(key): self.tiles[key].to_dict() for key in sorted(self.tiles)},
            "grid_blueprint": self.grid_blueprint.to_dict() if self.grid_blueprint else None,
            "metrics": dict(self.metrics),
            "settings": dict(self.settings),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CalibrationProfile":
        """Validate and rebuild a profile document.

        Raises:
            ProfileValidationError: the document does not match the profile schema
        """
        try:
            schema = CalibrationProfileSchema.model_validate(data)
        except ValidationError as exc:
            raise ProfileValidationError(f"Invalid calibration profile: {exc}") from exc
        return cls._from_schema(schema)

    @classmethod
    def _from_schema(cls, schema: CalibrationProfileSchema) -> "CalibrationProfile":
        doc = schema.model_dump()
        tiles = {
            TileKey.parse(key): TileCalibrationResult.from_dict(entry)
            for key, entry in doc["tiles"].items()
        }
        camera = doc.get("camera")
        blueprint = doc.get("grid_blueprint")
        return cls(
            grid_size=GridSize(**doc["grid_size"]),
            tiles=tiles,
            grid_blueprint=GridBlueprint.from_dict(blueprint) if blueprint else None,
            camera=CameraInfo(camera["width"], camera["height"]) if camera else None,
            array_rotation=doc["array_rotation"],
            name=doc["name"],
            id=doc["id"],
            created_at=doc["created_at"],
            metrics=doc["metrics"],
            settings=doc["settings"],
        )

    def save(self, path: Union[str, Path]) -> None:
        """Save the profile as JSON or YAML (chosen by suffix)."""
        save_data(self.to_dict(), path)
        logger.info(f"Saved calibration profile '{self.name}' ({len(self.tiles)} tiles) to {path}")

    @classmethod
    def load(cls, path: Union[str, Path]) -> "CalibrationProfile":
        """Load and validate a profile saved with ``save()``.

        Raises:
            ProfileValidationError: the file does not hold a valid profile document
        """
        try:
            schema = load_model_document(path, CalibrationProfileSchema)
        except ValidationError as exc:
            raise ProfileValidationError(f"Invalid calibration profile {path}: {exc}") from exc
        return cls._from_schema(schema)
