"""Coordinate value types, one per coordinate space.

Each space gets its own frozen dataclass so that a viewport point can never be
silently added to an isotropic one. Arithmetic is only defined between points
of the same space; crossing spaces requires a ``CoordinateTransformer``.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from typing import ClassVar, Tuple, TypeVar

PointT = TypeVar("PointT", bound="SpacePoint")


@dataclass(frozen=True)
class SpacePoint:
    """2-D point tagged with the coordinate space it lives in."""

    x: float
    y: float

    space: ClassVar[str] = "abstract"

    def __post_init__(self) -> None:
        for name in ("x", "y"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise TypeError(f"{type(self).__name__}.{name} must be a number, got {type(value).__name__}")

    def _check_same_space(self, other: object) -> None:
        if type(other) is not type(self):
            raise TypeError(
                f"Cannot combine {type(self).__name__} with {type(other).__name__}; convert explicitly first"
            )

    def __add__(self: PointT, other: PointT) -> PointT:
        self._check_same_space(other)
        return type(self)(self.x + other.x, self.y + other.y)

    def __sub__(self: PointT, other: PointT) -> PointT:
        self._check_same_space(other)
        return type(self)(self.x - other.x, self.y - other.y)

    def scaled(self: PointT, factor: float) -> PointT:
        return type(self)(self.x * factor, self.y * factor)

    def distance_to(self: PointT, other: PointT) -> float:
        self._check_same_space(other)
        return math.hypot(self.x - other.x, self.y - other.y)

    def as_tuple(self) -> Tuple[float, float]:
        return (float(self.x), float(self.y))


@dataclass(frozen=True)
class CameraPixels(SpacePoint):
    """Raw pixel position, 0..width and 0..height."""

    space: ClassVar[str] = "camera"


@dataclass(frozen=True)
class Isotropic(SpacePoint):
    """[0, 1] square with the shorter image side padded (letterboxed)."""

    space: ClassVar[str] = "isotropic"


@dataclass(frozen=True)
class Viewport(SpacePoint):
    """[0, 1] per axis over the full frame, no aspect correction."""

    space: ClassVar[str] = "viewport"


@dataclass(frozen=True)
class Centered(SpacePoint):
    """[-1, 1] per axis with the origin at the frame center."""

    space: ClassVar[str] = "centered"


@dataclass(frozen=True)
class Pattern(SpacePoint):
    """Unrotated, fit-width pattern space as authored by a user."""

    space: ClassVar[str] = "pattern"


SPACES = {
    cls.space: cls for cls in (CameraPixels, Isotropic, Viewport, Centered, Pattern)
}


@dataclass(frozen=True)
class CameraInfo:
    """Source frame dimensions in pixels.

    Non-positive or non-finite dimensions collapse to a 1x1 frame so downstream
    math sees an aspect ratio of 1 instead of dividing by zero.
    """

    width: float
    height: float

    @property
    def is_valid(self) -> bool:
        return _positive(self.width) and _positive(self.height)

    @property
    def safe_width(self) -> float:
        return float(self.width) if self.is_valid else 1.0

    @property
    def safe_height(self) -> float:
        return float(self.height) if self.is_valid else 1.0

    @property
    def aspect(self) -> float:
        return self.safe_width / self.safe_height

    @property
    def max_dim(self) -> float:
        return max(self.safe_width, self.safe_height)

    @property
    def avg_dim(self) -> float:
        return (self.safe_width + self.safe_height) / 2.0

    def dim(self, axis: str) -> float:
        if axis == "x":
            return self.safe_width
        if axis == "y":
            return self.safe_height
        raise ValueError(f"Unknown axis: {axis!r}")


def _positive(value: float) -> bool:
    return isinstance(value, numbers.Real) and math.isfinite(value) and value > 0
