"""Value types shared by calibration, planning and alignment."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..types import Axis


@dataclass(frozen=True)
class AxisValues:
    """Per-axis optional values (a missing axis is None)."""

    x: Optional[float] = None
    y: Optional[float] = None

    def get(self, axis: Axis) -> Optional[float]:
        return self.x if axis == "x" else self.y

    @property
    def any_present(self) -> bool:
        return self.x is not None or self.y is not None

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "AxisValues":
        if not data:
            return cls()
        return cls(x=data.get("x"), y=data.get("y"))


# Normalized centered-space displacement per motor step
StepToDisplacement = AxisValues
# Motor steps per unit of normalized displacement
StepScale = AxisValues


@dataclass(frozen=True)
class AlignmentSteps:
    x: Optional[int] = None
    y: Optional[int] = None

    def get(self, axis: Axis) -> Optional[int]:
        return self.x if axis == "x" else self.y

    def to_dict(self) -> Dict[str, Optional[int]]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "AlignmentSteps":
        if not data:
            return cls()
        return cls(x=data.get("x"), y=data.get("y"))


@dataclass(frozen=True)
class HomeOffset:
    """Optical misalignment of a tile's home from its ideal grid position."""

    dx: float = 0.0
    dy: float = 0.0

    def get(self, axis: Axis) -> float:
        return self.dx if axis == "x" else self.dy

    def to_dict(self) -> Dict[str, float]:
        return {"dx": self.dx, "dy": self.dy}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HomeOffset":
        return cls(dx=float(data["dx"]), dy=float(data["dy"]))


@dataclass(frozen=True)
class AdjustedHome:
    """Ideal tile center in centered space, with the steps that reach it."""

    x: float
    y: float
    steps_x: Optional[int] = None
    steps_y: Optional[int] = None

    def get(self, axis: Axis) -> float:
        return self.x if axis == "x" else self.y

    def steps(self, axis: Axis) -> Optional[int]:
        return self.steps_x if axis == "x" else self.steps_y

    def to_dict(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y, "steps_x": self.steps_x, "steps_y": self.steps_y}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AdjustedHome":
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            steps_x=data.get("steps_x"),
            steps_y=data.get("steps_y"),
        )


@dataclass(frozen=True)
class AxisBounds:
    min: float
    max: float

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    @property
    def span(self) -> float:
        return self.max - self.min


@dataclass(frozen=True)
class TileBounds:
    x: AxisBounds
    y: AxisBounds

    def get(self, axis: Axis) -> AxisBounds:
        return self.x if axis == "x" else self.y

    def contains(self, x: float, y: float) -> bool:
        return self.x.contains(x) and self.y.contains(y)

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {
            "x": {"min": self.x.min, "max": self.x.max},
            "y": {"min": self.y.min, "max": self.y.max},
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["TileBounds"]:
        if not data:
            return None
        return cls(
            x=AxisBounds(float(data["x"]["min"]), float(data["x"]["max"])),
            y=AxisBounds(float(data["y"]["min"]), float(data["y"]["max"])),
        )
