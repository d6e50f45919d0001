"""Conversions between camera, isotropic, viewport, centered and pattern spaces."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Type, TypeVar, Union

from ..constants import DEFAULT_PATTERN_ASPECT
from .rotation import centered_to_pattern, pattern_to_centered, validate_rotation
from .types import SPACES, CameraInfo, CameraPixels, Centered, Isotropic, Pattern, SpacePoint, Viewport

PointT = TypeVar("PointT", bound=SpacePoint)
SpaceSpec = Union[str, Type[SpacePoint]]

# Deltas in pattern space are not defined: rotation mixes axes.
_DELTA_SPACES = ("camera", "isotropic", "viewport", "centered")


def _space_name(space: SpaceSpec) -> str:
    if isinstance(space, str):
        name = space
    elif isinstance(space, type) and issubclass(space, SpacePoint):
        name = space.space
    else:
        raise TypeError(f"Unknown coordinate space: {space!r}")
    if name not in SPACES:
        raise ValueError(f"Unknown coordinate space: {space!r}")
    return name


def centered_to_view(value: float) -> float:
    return (value + 1.0) / 2.0


def view_to_centered(value: float) -> float:
    return value * 2.0 - 1.0


@dataclass(frozen=True)
class CoordinateTransformer:
    """Stateless converter bound to one camera frame.

    Every conversion routes through viewport space. Isotropic space pads the
    shorter frame side so content keeps its aspect ratio inside a unit square.
    """

    camera: CameraInfo
    array_rotation: int = 0
    pattern_aspect: float = DEFAULT_PATTERN_ASPECT

    def __post_init__(self) -> None:
        validate_rotation(self.array_rotation)

    def _iso_offset(self, axis: str) -> float:
        return (self.camera.max_dim - self.camera.dim(axis)) / 2.0

    # -- point conversions -------------------------------------------------

    def to_viewport(self, point: SpacePoint) -> Viewport:
        if isinstance(point, Viewport):
            return point
        if isinstance(point, CameraPixels):
            return Viewport(point.x / self.camera.safe_width, point.y / self.camera.safe_height)
        if isinstance(point, Isotropic):
            max_dim = self.camera.max_dim
            return Viewport(
                (point.x * max_dim - self._iso_offset("x")) / self.camera.safe_width,
                (point.y * max_dim - self._iso_offset("y")) / self.camera.safe_height,
            )
        if isinstance(point, Centered):
            return Viewport(centered_to_view(point.x), centered_to_view(point.y))
        if isinstance(point, Pattern):
            return self.to_viewport(pattern_to_centered(point, self.array_rotation, self.pattern_aspect))
        raise TypeError(f"Expected a coordinate point, got {type(point).__name__}")

    def _from_viewport(self, point: Viewport, target: str) -> SpacePoint:
        if target == "viewport":
            return point
        if target == "camera":
            return CameraPixels(point.x * self.camera.safe_width, point.y * self.camera.safe_height)
        if target == "isotropic":
            max_dim = self.camera.max_dim
            return Isotropic(
                (point.x * self.camera.safe_width + self._iso_offset("x")) / max_dim,
                (point.y * self.camera.safe_height + self._iso_offset("y")) / max_dim,
            )
        if target == "centered":
            return Centered(view_to_centered(point.x), view_to_centered(point.y))
        centered = Centered(view_to_centered(point.x), view_to_centered(point.y))
        return centered_to_pattern(centered, self.array_rotation, self.pattern_aspect)

    def convert(self, point: SpacePoint, target: SpaceSpec) -> SpacePoint:
        """Convert ``point`` into the ``target`` space (name or point class)."""
        name = _space_name(target)
        if point.__class__.space == name:
            return point
        return self._from_viewport(self.to_viewport(point), name)

    def to_camera(self, point: SpacePoint) -> CameraPixels:
        return self.convert(point, CameraPixels)  # type: ignore[return-value]

    def to_isotropic(self, point: SpacePoint) -> Isotropic:
        return self.convert(point, Isotropic)  # type: ignore[return-value]

    def to_centered(self, point: SpacePoint) -> Centered:
        return self.convert(point, Centered)  # type: ignore[return-value]

    def to_pattern(self, point: SpacePoint) -> Pattern:
        return self.convert(point, Pattern)  # type: ignore[return-value]

    # -- delta conversions -------------------------------------------------

    def delta(self, value: float, axis: str, source: SpaceSpec, target: SpaceSpec) -> float:
        """Convert a size or distance along ``axis`` between spaces.

        Isotropic deltas scale by ``max(width, height)``; viewport deltas by the
        axis' own dimension. The two are not interchangeable.
        """
        source_name = _space_name(source)
        target_name = _space_name(target)
        for name in (source_name, target_name):
            if name not in _DELTA_SPACES:
                raise ValueError(f"Deltas are not defined in {name} space")
        if source_name == target_name:
            return value

        dim = self.camera.dim(axis)
        max_dim = self.camera.max_dim

        if source_name == "camera":
            view = value / dim
        elif source_name == "isotropic":
            view = value * max_dim / dim
        elif source_name == "centered":
            view = value / 2.0
        else:
            view = value

        if target_name == "camera":
            return view * dim
        if target_name == "isotropic":
            return view * dim / max_dim
        if target_name == "centered":
            return view * 2.0
        return view
