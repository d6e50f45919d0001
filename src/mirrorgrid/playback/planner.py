"""Map target points through tile calibration into motor step commands."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

from ..calibration.profile import CalibrationProfile
from ..calibration.tile_model import TileCalibrationResult
from ..constants import DEFAULT_PATTERN_ASPECT, clamp_steps, round_steps
from ..errors import FailureKind, SkipReason
from ..geometry.rotation import pattern_to_centered
from ..geometry.types import Centered, Pattern, SpacePoint
from ..types import AXES, Axis, MirrorAssignment, MotorRef, TileAssignment, TileKey
from ..utils.log import get_logger

PointLike = Union[SpacePoint, Tuple[float, float]]


@dataclass(frozen=True)
class AxisTarget:
    """One motor's commanded position."""

    tile: TileKey
    axis: Axis
    motor: MotorRef
    target_steps: int
    requested_steps: int
    clamped: bool
    target_point: Optional[Centered] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tile": str(self.tile),
            "axis": self.axis,
            "motor": {"mac": self.motor.mac, "motor_index": self.motor.motor_index},
            "target_steps": self.target_steps,
            "requested_steps": self.requested_steps,
            "clamped": self.clamped,
            "target_point": list(self.target_point.as_tuple()) if self.target_point else None,
        }


@dataclass(frozen=True)
class SkippedAxis:
    tile: TileKey
    axis: Axis
    reason: SkipReason

    def to_dict(self) -> Dict[str, str]:
        return {"tile": str(self.tile), "axis": self.axis, "reason": self.reason.value}


@dataclass(frozen=True)
class PlanWarning:
    """An axis that was planned but adjusted, e.g. clamped to the motor range."""

    tile: TileKey
    axis: Axis
    kind: FailureKind
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"tile": str(self.tile), "axis": self.axis, "kind": self.kind.value, "message": self.message}


@dataclass(frozen=True)
class PlanError:
    code: str
    message: str
    tile: Optional[TileKey] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "tile": str(self.tile) if self.tile else None}


@dataclass(frozen=True)
class PlaybackPlan:
    """Immutable set of per-axis motor targets.

    ``assignments`` pairs pattern point indices with the tile chosen for
    them; it is empty for point and explicit-target plans.
    """

    axes: Tuple[AxisTarget, ...] = ()
    skipped: Tuple[SkippedAxis, ...] = ()
    errors: Tuple[PlanError, ...] = ()
    warnings: Tuple[PlanWarning, ...] = ()
    assignments: Tuple[Tuple[int, TileKey], ...] = ()

    @property
    def clamped_count(self) -> int:
        return sum(1 for t in self.axes if t.clamped)

    @property
    def ok(self) -> bool:
        return not self.errors

    def for_motor(self, motor: MotorRef) -> Optional[AxisTarget]:
        for target in self.axes:
            if target.motor == motor:
                return target
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "axes": [t.to_dict() for t in self.axes],
            "skipped": [s.to_dict() for s in self.skipped],
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "assignments": [{"point": i, "tile": str(t)} for i, t in self.assignments],
        }


def _as_centered(point: PointLike, space: str, rotation: int, aspect: float) -> Centered:
    if isinstance(point, Centered):
        return point
    if isinstance(point, Pattern):
        return pattern_to_centered(point, rotation, aspect)
    if isinstance(point, SpacePoint):
        raise TypeError(f"Targets must be centered or pattern points, got {type(point).__name__}")
    if isinstance(point, (tuple, list)) and len(point) == 2:
        if space == "pattern":
            return pattern_to_centered(Pattern(point[0], point[1]), rotation, aspect)
        if space == "centered":
            return Centered(point[0], point[1])
        raise ValueError(f"Unknown target space: {space!r}")
    raise TypeError(f"Expected a point or (x, y) pair, got {type(point).__name__}")


def _is_axis_ready(result: Optional[TileCalibrationResult], axis: Axis) -> bool:
    return (
        result is not None
        and result.is_axis_calibrated(axis)
        and result.adjusted_home is not None
    )


def compute_requested_steps(result: TileCalibrationResult, axis: Axis, target: float) -> int:
    """Steps that put ``result``'s spot on ``target`` along ``axis``.

    Motor position 0 is the measured home and ``adjusted_home`` is the ideal
    home reached at ``alignment_steps``, so the home offset is counted once.
    """
    per_step = result.step_to_displacement.get(axis)
    base_steps = result.alignment_steps.get(axis) or 0
    displacement = target - result.adjusted_home.get(axis)  # type: ignore[union-attr]
    return round_steps(base_steps + displacement / per_step)  # type: ignore[operator]


class _PlanBuilder:
    """Collects targets and skips in resolution order, one command per motor."""

    def __init__(self) -> None:
        self.axes: List[AxisTarget] = []
        self.skipped: List[SkippedAxis] = []
        self.errors: List[PlanError] = []
        self.warnings: List[PlanWarning] = []
        self._motors: Set[MotorRef] = set()

    def add(self, target: AxisTarget) -> None:
        if target.motor in self._motors:
            self.skipped.append(SkippedAxis(target.tile, target.axis, SkipReason.DUPLICATE_MOTOR))
            return
        self._motors.add(target.motor)
        self.axes.append(target)
        if target.clamped:
            self.warnings.append(PlanWarning(
                target.tile,
                target.axis,
                FailureKind.CLAMPED,
                f"{target.requested_steps} steps clamped to {target.target_steps}",
            ))

    def skip(self, tile: TileKey, axis: Axis, reason: SkipReason) -> None:
        self.skipped.append(SkippedAxis(tile, axis, reason))

    def build(self, assignments: Sequence[Tuple[int, TileKey]] = ()) -> PlaybackPlan:
        return PlaybackPlan(
            axes=tuple(self.axes),
            skipped=tuple(self.skipped),
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
            assignments=tuple(assignments),
        )


@dataclass
class _Candidate:
    tile: TileKey
    ideal_x: float
    ideal_y: float


class PlaybackPlanner:
    """Plan motor steps for points, explicit per-tile targets or whole patterns.

    Planning is pure: the profile and assignment are read, never modified,
    and every call returns a new ``PlaybackPlan``. Expected problems
    (unassigned or uncalibrated axes, unreachable targets) become skips and
    plan errors rather than exceptions.
    """

    def __init__(
        self,
        profile: Optional[CalibrationProfile],
        assignment: MirrorAssignment,
        pattern_aspect: float = DEFAULT_PATTERN_ASPECT,
    ):
        self.profile = profile
        self.assignment = assignment
        self.pattern_aspect = pattern_aspect
        self.logger = get_logger(__name__)

    @property
    def rotation(self) -> int:
        return self.profile.array_rotation if self.profile else 0

    def _result(self, tile: TileKey) -> Optional[TileCalibrationResult]:
        return self.profile.get(tile) if self.profile else None

    def _tiles(self) -> List[TileKey]:
        tiles = set(self.assignment)
        if self.profile is not None:
            tiles.update(self.profile.tiles)
            tiles = {t for t in tiles if t in self.profile.grid_size}
        return sorted(tiles)

    def _plan_tile(self, builder: _PlanBuilder, tile: TileKey, point: Centered) -> None:
        tile_assignment = self.assignment.get(tile) or TileAssignment()
        result = self._result(tile)
        for axis in AXES:
            motor = tile_assignment.motor_for(axis)
            if motor is None:
                builder.skip(tile, axis, SkipReason.UNASSIGNED)
                continue
            if not _is_axis_ready(result, axis):
                builder.skip(tile, axis, SkipReason.UNCALIBRATED)
                continue

            target = point.x if axis == "x" else point.y
            requested = compute_requested_steps(result, axis, target)  # type: ignore[arg-type]
            steps = clamp_steps(requested)
            if steps != requested:
                self.logger.debug(f"Tile {tile} axis {axis}: {requested} steps clamped to {steps}")
            builder.add(AxisTarget(
                tile=tile,
                axis=axis,
                motor=motor,
                target_steps=steps,
                requested_steps=requested,
                clamped=steps != requested,
                target_point=point,
            ))

    def plan_targets(self, targets: Mapping[TileKey, PointLike], space: str = "centered") -> PlaybackPlan:
        """Plan an explicit target per tile."""
        builder = _PlanBuilder()
        for tile in sorted(targets):
            point = _as_centered(targets[tile], space, self.rotation, self.pattern_aspect)
            self._plan_tile(builder, tile, point)
        return builder.build()

    def plan_point(self, point: PointLike, space: str = "centered") -> PlaybackPlan:
        """Aim every known tile at the same point."""
        centered = _as_centered(point, space, self.rotation, self.pattern_aspect)
        return self.plan_targets({tile: centered for tile in self._tiles()})

    def plan_physical_home(self, tiles: Optional[Iterable[TileKey]] = None) -> PlaybackPlan:
        """Send every assigned axis to step 0, ignoring calibration."""
        return plan_physical_home(self.assignment, tiles)

    def _candidates(self) -> List[_Candidate]:
        blueprint = self.profile.grid_blueprint  # type: ignore[union-attr]
        candidates = []
        for tile in sorted(self.profile.tiles):  # type: ignore[union-attr]
            tile_assignment = self.assignment.get(tile)
            result = self.profile.get(tile)  # type: ignore[union-attr]
            if tile_assignment is None or not tile_assignment.is_complete:
                continue
            if not all(_is_axis_ready(result, axis) for axis in AXES):
                continue
            ideal = blueprint.ideal_grid_position(tile)
            candidates.append(_Candidate(tile, ideal.x, ideal.y))
        return candidates

    def _reaches(self, tile: TileKey, point: Centered) -> bool:
        bounds = self.profile.get(tile).combined_bounds  # type: ignore[union-attr]
        return bounds is None or bounds.contains(point.x, point.y)

    def plan_pattern(self, points: Sequence[PointLike], space: str = "pattern") -> PlaybackPlan:
        """Assign pattern points to calibrated tiles and plan each tile's target.

        Points with the fewest reachable tiles are placed first; each takes the
        free tile whose ideal grid position is nearest.
        """
        if self.profile is None:
            return PlaybackPlan(errors=(PlanError("missing_profile", "No calibration profile selected"),))
        if self.profile.grid_blueprint is None:
            return PlaybackPlan(errors=(PlanError(
                "missing_blueprint", "Calibration profile has no grid blueprint; run calibration again",
            ),))

        centered = [_as_centered(p, space, self.rotation, self.pattern_aspect) for p in points]
        errors: List[PlanError] = []

        total = self.profile.grid_size.count
        if len(centered) > total:
            errors.append(PlanError(
                "pattern_exceeds_tiles",
                f"Pattern has {len(centered)} points but the array has {total} tiles",
            ))

        candidates = self._candidates()
        if len(centered) > len(candidates):
            errors.append(PlanError(
                "insufficient_calibrated_tiles",
                f"Pattern needs {len(centered)} calibrated tiles but only {len(candidates)} are available",
            ))

        options = [
            (index, point, [c for c in candidates if self._reaches(c.tile, point)])
            for index, point in enumerate(centered)
        ]
        options.sort(key=lambda item: len(item[2]))

        taken: Set[TileKey] = set()
        chosen: Dict[int, TileKey] = {}
        for index, point, reachable in options:
            free = [c for c in reachable if c.tile not in taken]
            if not free:
                errors.append(PlanError(
                    "target_out_of_bounds",
                    f"No free calibrated tile can reach pattern point {index} "
                    f"({point.x:.3f}, {point.y:.3f})",
                ))
                continue
            best = min(free, key=lambda c: (point.x - c.ideal_x) ** 2 + (point.y - c.ideal_y) ** 2)
            taken.add(best.tile)
            chosen[index] = best.tile

        builder = _PlanBuilder()
        builder.errors.extend(errors)
        for index in sorted(chosen, key=lambda i: chosen[i]):
            self._plan_tile(builder, chosen[index], centered[index])

        assignments = sorted(chosen.items())
        self.logger.debug(
            f"Pattern of {len(centered)} points: {len(assignments)} assigned, {len(errors)} errors"
        )
        return builder.build(assignments)


def plan_physical_home(
    assignment: MirrorAssignment,
    tiles: Optional[Iterable[TileKey]] = None,
) -> PlaybackPlan:
    """Plan every assigned axis back to step 0."""
    builder = _PlanBuilder()
    for tile in sorted(assignment if tiles is None else tiles):
        tile_assignment = assignment.get(tile) or TileAssignment()
        for axis in AXES:
            motor = tile_assignment.motor_for(axis)
            if motor is None:
                builder.skip(tile, axis, SkipReason.UNASSIGNED)
                continue
            builder.add(AxisTarget(tile, axis, motor, target_steps=0, requested_steps=0, clamped=False))
    return builder.build()


def plan_point(
    profile: Optional[CalibrationProfile],
    assignment: MirrorAssignment,
    point: PointLike,
    space: str = "centered",
) -> PlaybackPlan:
    return PlaybackPlanner(profile, assignment).plan_point(point, space)


def plan_pattern(
    profile: Optional[CalibrationProfile],
    assignment: MirrorAssignment,
    points: Sequence[PointLike],
    space: str = "pattern",
    pattern_aspect: float = DEFAULT_PATTERN_ASPECT,
) -> PlaybackPlan:
    return PlaybackPlanner(profile, assignment, pattern_aspect).plan_pattern(points, space)
