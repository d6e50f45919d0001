"""Per-tile calibration: home offset, step response, alignment steps and bounds."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..constants import clamp_steps, is_usable_per_step, round_steps
from ..geometry.rotation import step_test_jog_direction
from ..types import Axis, AXES, TileKey
from .bounds import compute_live_tile_bounds, merge_bounds_union
from .sampler import HomeMeasurement
from .types import (
    AdjustedHome,
    AlignmentSteps,
    HomeOffset,
    StepScale,
    StepToDisplacement,
    TileBounds,
)


class TileStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class AxisStepTestResult:
    """Spot displacement observed after jogging one axis."""

    displacement: float
    per_step: Optional[float]
    size_delta: Optional[float]
    delta_steps: int = 0


def get_axis_step_delta(axis: Axis, delta_steps: int, rotation: int = 0) -> Optional[int]:
    """Signed jog for the step test, or None when the test is disabled."""
    if delta_steps <= 0:
        return None
    return clamp_steps(delta_steps * step_test_jog_direction(axis, rotation))


def compute_axis_step_test(
    home: HomeMeasurement,
    step: HomeMeasurement,
    axis: Axis,
    delta_steps: int,
) -> AxisStepTestResult:
    displacement = (step.x - home.x) if axis == "x" else (step.y - home.y)
    per_step: Optional[float] = None
    if delta_steps != 0:
        per_step = displacement / delta_steps
        if not math.isfinite(per_step):
            per_step = None
    size_delta = step.size - home.size
    return AxisStepTestResult(
        displacement=displacement,
        per_step=per_step,
        size_delta=size_delta if math.isfinite(size_delta) else None,
        delta_steps=delta_steps,
    )


def compute_average_size_delta(*results: Optional[AxisStepTestResult]) -> Optional[float]:
    deltas = [r.size_delta for r in results if r is not None and r.size_delta is not None]
    if not deltas:
        return None
    return sum(deltas) / len(deltas)


def compute_step_scale(per_step: Optional[float]) -> Optional[float]:
    """Steps per unit displacement, or None for an unusable axis."""
    if not is_usable_per_step(per_step):
        return None
    return 1.0 / per_step  # type: ignore[operator]


def compute_alignment_steps(offset: float, per_step: Optional[float]) -> Optional[int]:
    """Steps that cancel a home offset, clamped into motor range."""
    if not is_usable_per_step(per_step):
        return None
    return clamp_steps(round_steps(-offset / per_step))  # type: ignore[operator]


@dataclass(frozen=True)
class TileCalibrationResult:
    """Finished calibration of one tile, in recentered centered space."""

    tile: TileKey
    status: TileStatus
    home_measurement: Optional[HomeMeasurement] = None
    adjusted_home: Optional[AdjustedHome] = None
    home_offset: Optional[HomeOffset] = None
    step_to_displacement: StepToDisplacement = field(default_factory=StepToDisplacement)
    size_delta_at_step_test: Optional[float] = None
    step_scale: StepScale = field(default_factory=StepScale)
    alignment_steps: AlignmentSteps = field(default_factory=AlignmentSteps)
    motor_reach_bounds: Optional[TileBounds] = None
    footprint_bounds: Optional[TileBounds] = None
    combined_bounds: Optional[TileBounds] = None
    error: Optional[str] = None
    warnings: Tuple[str, ...] = ()

    @property
    def is_completed(self) -> bool:
        return self.status is TileStatus.COMPLETED

    def is_axis_calibrated(self, axis: Axis) -> bool:
        return self.is_completed and is_usable_per_step(self.step_to_displacement.get(axis))

    @property
    def uncalibrated_axes(self) -> Tuple[Axis, ...]:
        return tuple(axis for axis in AXES if not self.is_axis_calibrated(axis))

    def to_dict(self) -> Dict[str, Any]:
        def bounds(value: Optional[TileBounds]) -> Optional[Dict[str, Any]]:
            return value.to_dict() if value is not None else None

        return {
            "tile": str(self.tile),
            "status": self.status.value,
            "home_measurement": self.home_measurement.to_dict() if self.home_measurement else None,
            "adjusted_home": self.adjusted_home.to_dict() if self.adjusted_home else None,
            "home_offset": self.home_offset.to_dict() if self.home_offset else None,
            "step_to_displacement": self.step_to_displacement.to_dict(),
            "size_delta_at_step_test": self.size_delta_at_step_test,
            "step_scale": self.step_scale.to_dict(),
            "alignment_steps": self.alignment_steps.to_dict(),
            "motor_reach_bounds": bounds(self.motor_reach_bounds),
            "footprint_bounds": bounds(self.footprint_bounds),
            "combined_bounds": bounds(self.combined_bounds),
            "error": self.error,
            "warnings": list(self.warnings),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TileCalibrationResult":
        home = data.get("home_measurement")
        adjusted = data.get("adjusted_home")
        offset = data.get("home_offset")
        return cls(
            tile=TileKey.parse(data["tile"]),
            status=TileStatus(data["status"]),
            home_measurement=HomeMeasurement.from_dict(home) if home else None,
            adjusted_home=AdjustedHome.from_dict(adjusted) if adjusted else None,
            home_offset=HomeOffset.from_dict(offset) if offset else None,
            step_to_displacement=StepToDisplacement.from_dict(data.get("step_to_displacement")),
            size_delta_at_step_test=data.get("size_delta_at_step_test"),
            step_scale=StepScale.from_dict(data.get("step_scale")),
            alignment_steps=AlignmentSteps.from_dict(data.get("alignment_steps")),
            motor_reach_bounds=TileBounds.from_dict(data.get("motor_reach_bounds")),
            footprint_bounds=TileBounds.from_dict(data.get("footprint_bounds")),
            combined_bounds=TileBounds.from_dict(data.get("combined_bounds")),
            error=data.get("error"),
            warnings=tuple(data.get("warnings") or ()),
        )


@dataclass
class TileCalibrationModel:
    """Raw calibration inputs for one tile, collected during a run.

    ``derive`` turns them into a ``TileCalibrationResult`` once the expected
    home is known (usually the tile's ideal center from the grid blueprint).
    """

    tile: TileKey
    home: Optional[HomeMeasurement] = None
    step_x: Optional[AxisStepTestResult] = None
    step_y: Optional[AxisStepTestResult] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def from_measurements(
        cls,
        tile: TileKey,
        home: Optional[HomeMeasurement],
        step_x: Optional[HomeMeasurement] = None,
        step_y: Optional[HomeMeasurement] = None,
        delta_steps_x: int = 0,
        delta_steps_y: int = 0,
    ) -> "TileCalibrationModel":
        """Build a model from home and step-test measurements.

        ``delta_steps_*`` are the signed jogs that produced ``step_*``.
        """
        if home is None:
            return cls(tile=tile, error="No home measurement")
        return cls(
            tile=tile,
            home=home,
            step_x=compute_axis_step_test(home, step_x, "x", delta_steps_x) if step_x else None,
            step_y=compute_axis_step_test(home, step_y, "y", delta_steps_y) if step_y else None,
        )

    @property
    def step_to_displacement(self) -> StepToDisplacement:
        return StepToDisplacement(
            x=self.step_x.per_step if self.step_x else None,
            y=self.step_y.per_step if self.step_y else None,
        )

    @property
    def has_home(self) -> bool:
        return self.home is not None

    def derive(
        self,
        expected_home: Optional[Tuple[float, float]] = None,
        footprint_bounds: Optional[TileBounds] = None,
        home: Optional[HomeMeasurement] = None,
    ) -> TileCalibrationResult:
        """Compute the tile's calibration result.

        Args:
            expected_home: Reference position in the same space as the home
                measurement; defaults to the measured home (zero offset)
            footprint_bounds: The tile's blueprint cell, merged into combined bounds
            home: Replacement home measurement (e.g. recentered onto the blueprint)
        """
        home = home or self.home
        if home is None:
            return TileCalibrationResult(
                tile=self.tile,
                status=TileStatus.FAILED,
                error=self.error or "No home measurement",
                footprint_bounds=footprint_bounds,
                combined_bounds=footprint_bounds,
                warnings=tuple(self.warnings),
            )

        expected_x, expected_y = expected_home if expected_home is not None else (home.x, home.y)
        offset = HomeOffset(dx=home.x - expected_x, dy=home.y - expected_y)
        std = self.step_to_displacement

        alignment = AlignmentSteps(
            x=compute_alignment_steps(offset.dx, std.x),
            y=compute_alignment_steps(offset.dy, std.y),
        )
        motor_reach = compute_live_tile_bounds(home.x, home.y, std)
        combined = motor_reach
        if footprint_bounds is not None:
            combined = merge_bounds_union(motor_reach, footprint_bounds)

        return TileCalibrationResult(
            tile=self.tile,
            status=TileStatus.COMPLETED,
            home_measurement=home,
            adjusted_home=AdjustedHome(expected_x, expected_y, steps_x=alignment.x, steps_y=alignment.y),
            home_offset=offset,
            step_to_displacement=std,
            size_delta_at_step_test=compute_average_size_delta(self.step_x, self.step_y),
            step_scale=StepScale(x=compute_step_scale(std.x), y=compute_step_scale(std.y)),
            alignment_steps=alignment,
            motor_reach_bounds=motor_reach,
            footprint_bounds=footprint_bounds,
            combined_bounds=combined,
            warnings=tuple(self.warnings),
        )
