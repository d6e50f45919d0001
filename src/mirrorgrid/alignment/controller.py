"""Closed-loop alignment of every tile onto one shared spot.

The controller is an explicit state machine driven by ``run()`` and by the
pause resolutions ``retry()``, ``skip()`` and ``abort()``. It is the only
writer of its run state; ``state`` hands out snapshots.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar, Union

from ..calibration.profile import CalibrationProfile
from ..calibration.sampler import MeasurementSampler
from ..calibration.staging import Pose, StagingPosition, compute_pose_targets
from ..config import MeasurementConfig, MirrorGridConfig
from ..errors import (
    FailureKind,
    InvalidTransitionError,
    MeasurementError,
    MeasurementInvalidError,
    MotorCommandError,
)
from ..geometry.types import Centered
from ..hardware.interfaces import MeasurementProvider, MotorDispatcher
from ..playback.dispatch import AxisMove, PlanDispatcher
from ..playback.planner import PlaybackPlanner
from ..types import AXES, Axis, MirrorAssignment, TileAssignment, TileKey
from ..utils.log import get_logger
from .diagnostics import DiagnosticsLogger
from .strategy import AxisHillClimb, AxisOutcome, ImprovementEvaluator, ShapeMetrics

T = TypeVar("T")


class AlignmentPhase(str, Enum):
    IDLE = "idle"
    POSITIONING = "positioning"
    MEASURING_BASELINE = "measuring-baseline"
    CONVERGING = "converging"
    PAUSED = "paused"
    COMPLETE = "complete"
    ABORTED = "aborted"


_TRANSITIONS: Dict[AlignmentPhase, frozenset] = {
    AlignmentPhase.IDLE: frozenset({AlignmentPhase.POSITIONING, AlignmentPhase.ABORTED}),
    AlignmentPhase.POSITIONING: frozenset({
        AlignmentPhase.MEASURING_BASELINE,
        AlignmentPhase.PAUSED,
        AlignmentPhase.COMPLETE,
        AlignmentPhase.ABORTED,
    }),
    AlignmentPhase.MEASURING_BASELINE: frozenset({
        # back to positioning when the reference tile is skipped
        AlignmentPhase.POSITIONING,
        AlignmentPhase.CONVERGING,
        AlignmentPhase.PAUSED,
        AlignmentPhase.ABORTED,
    }),
    AlignmentPhase.CONVERGING: frozenset({
        AlignmentPhase.PAUSED,
        AlignmentPhase.COMPLETE,
        AlignmentPhase.ABORTED,
    }),
    AlignmentPhase.PAUSED: frozenset({
        AlignmentPhase.POSITIONING,
        AlignmentPhase.MEASURING_BASELINE,
        AlignmentPhase.CONVERGING,
        AlignmentPhase.ABORTED,
    }),
    AlignmentPhase.COMPLETE: frozenset({AlignmentPhase.POSITIONING}),
    AlignmentPhase.ABORTED: frozenset(),
}


class TileAlignmentStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    CONVERGED = "converged"
    PARTIAL = "partial"
    SKIPPED = "skipped"
    ERROR = "error"


FINISHED_STATUSES = frozenset({
    TileAlignmentStatus.CONVERGED,
    TileAlignmentStatus.PARTIAL,
    TileAlignmentStatus.SKIPPED,
    TileAlignmentStatus.ERROR,
})


class PauseAction(str, Enum):
    RETRY = "retry"
    SKIP = "skip"
    ABORT = "abort"


@dataclass(frozen=True)
class PauseState:
    """Why the run is paused and which phase it resumes into."""

    phase: AlignmentPhase
    kind: FailureKind
    message: str
    tile: Optional[TileKey] = None
    axis: Optional[Axis] = None
    paused_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class TileOutcome:
    tile: TileKey
    status: TileAlignmentStatus
    correction_x: int
    correction_y: int
    steps_x: int
    steps_y: int
    iterations_x: int
    iterations_y: int
    axis_outcome_x: Optional[str]
    axis_outcome_y: Optional[str]
    final_eccentricity: Optional[float]
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["tile"] = str(self.tile)
        data["status"] = self.status.value
        return data


@dataclass
class TileRunState:
    """Mutable per-tile progress, owned by the controller."""

    tile: TileKey
    assignment: TileAssignment
    status: TileAlignmentStatus = TileAlignmentStatus.PENDING
    initial_steps: Dict[str, int] = field(default_factory=lambda: {"x": 0, "y": 0})
    corrected_steps: Dict[str, int] = field(default_factory=lambda: {"x": 0, "y": 0})
    iterations: Dict[str, int] = field(default_factory=lambda: {"x": 0, "y": 0})
    axis_outcomes: Dict[str, Optional[str]] = field(default_factory=lambda: {"x": None, "y": None})
    metrics: Optional[ShapeMetrics] = None
    error: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.status in FINISHED_STATUSES

    @property
    def correction(self) -> Dict[str, int]:
        return {axis: self.corrected_steps[axis] - self.initial_steps[axis] for axis in AXES}

    def snapshot(self) -> "TileRunState":
        return replace(
            self,
            initial_steps=dict(self.initial_steps),
            corrected_steps=dict(self.corrected_steps),
            iterations=dict(self.iterations),
            axis_outcomes=dict(self.axis_outcomes),
        )

    def to_outcome(self) -> TileOutcome:
        correction = self.correction
        return TileOutcome(
            tile=self.tile,
            status=self.status,
            correction_x=correction["x"],
            correction_y=correction["y"],
            steps_x=self.corrected_steps["x"],
            steps_y=self.corrected_steps["y"],
            iterations_x=self.iterations["x"],
            iterations_y=self.iterations["y"],
            axis_outcome_x=self.axis_outcomes["x"],
            axis_outcome_y=self.axis_outcomes["y"],
            final_eccentricity=self.metrics.eccentricity if self.metrics else None,
            error=self.error,
        )


@dataclass(frozen=True)
class AlignmentRunSummary:
    """Immutable record of one alignment run."""

    started_at: float
    finished_at: float
    outcome: str
    initial_metrics: Optional[ShapeMetrics]
    final_metrics: Optional[ShapeMetrics]
    area_reduction_percent: Optional[float]
    tile_outcomes: Tuple[TileOutcome, ...]
    converged_count: int
    partial_count: int
    error_count: int
    skipped_count: int
    settings: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "settings", MappingProxyType(dict(self.settings)))

    def outcome_for(self, tile: TileKey) -> Optional[TileOutcome]:
        for outcome in self.tile_outcomes:
            if outcome.tile == tile:
                return outcome
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "outcome": self.outcome,
            "initial_metrics": self.initial_metrics.to_dict() if self.initial_metrics else None,
            "final_metrics": self.final_metrics.to_dict() if self.final_metrics else None,
            "area_reduction_percent": self.area_reduction_percent,
            "tile_outcomes": [o.to_dict() for o in self.tile_outcomes],
            "converged_count": self.converged_count,
            "partial_count": self.partial_count,
            "error_count": self.error_count,
            "skipped_count": self.skipped_count,
            "settings": dict(self.settings),
        }


@dataclass(frozen=True)
class AlignmentState:
    phase: AlignmentPhase
    tile_states: Mapping[TileKey, TileRunState]
    baseline_metrics: Optional[ShapeMetrics]
    current_metrics: Optional[ShapeMetrics]
    pause_state: Optional[PauseState]
    last_run: Optional[AlignmentRunSummary]
    active_tile: Optional[TileKey] = None
    active_axis: Optional[Axis] = None


class _SkipTile(Exception):
    pass


class _AbortRun(Exception):
    pass


class AlignmentController:
    """Converge every tile's spot onto the reference tile's spot.

    Flow: stage all tiles aside, bring the first tile home as the
    reference and measure the baseline shape, then bring each remaining tile
    home and hill-climb its axes until the combined spot stops shrinking.
    Finally deploy every corrected position and measure the result.

    A failed move or measurement pauses the run; resolve it with ``retry()``,
    ``skip()`` (drop the current tile) or ``abort()``. ``request_abort()``
    is honoured at the next checkpoint.
    """

    def __init__(
        self,
        dispatcher: MotorDispatcher,
        provider: MeasurementProvider,
        profile: CalibrationProfile,
        assignment: MirrorAssignment,
        config: Optional[MirrorGridConfig] = None,
        sampler: Optional[MeasurementSampler] = None,
        diagnostics: Optional[DiagnosticsLogger] = None,
    ):
        self.config = config or MirrorGridConfig()
        self.settings = self.config.alignment
        self.profile = profile
        self.assignment = assignment
        self.provider = provider
        self.moves = PlanDispatcher(dispatcher, axis_timeout_s=self.settings.move_timeout_s)
        self.sampler = sampler or MeasurementSampler(self._shape_measurement_config())
        self.planner = PlaybackPlanner(profile, assignment)
        self.staging = StagingPosition(self.config.calibration.staging_position)

        if diagnostics is None and self.config.enable_diagnostics:
            diagnostics = DiagnosticsLogger(
                self.config.diagnostics_path,
                extras={"strategy": self.settings.improvement_strategy},
            )
        self.diag = diagnostics

        self._phase = AlignmentPhase.IDLE
        self._tiles: Dict[TileKey, TileRunState] = {}
        self._baseline: Optional[ShapeMetrics] = None
        self._current: Optional[ShapeMetrics] = None
        self._pause: Optional[PauseState] = None
        self._last_run: Optional[AlignmentRunSummary] = None
        self._started_at = 0.0
        self._abort_requested = False
        self._resolution: Optional[asyncio.Future] = None
        self._paused_event = asyncio.Event()
        self._active_tile: Optional[TileKey] = None
        self._active_axis: Optional[Axis] = None

        self.logger = get_logger(__name__)

    def _shape_measurement_config(self) -> MeasurementConfig:
        # Shape measurements gate on shape metrics only, not on position spread
        return replace(
            self.config.measurement,
            samples_per_measurement=self.settings.samples_per_measurement,
            min_samples=1,
            max_median_deviation_pt=None,
            ignore_sample_above_deviation_pt=None,
            timeout_s=self.settings.measurement_timeout_s,
        )

    # -- state -------------------------------------------------------------

    @property
    def phase(self) -> AlignmentPhase:
        return self._phase

    @property
    def pause_state(self) -> Optional[PauseState]:
        return self._pause

    @property
    def last_run(self) -> Optional[AlignmentRunSummary]:
        return self._last_run

    @property
    def state(self) -> AlignmentState:
        return AlignmentState(
            phase=self._phase,
            tile_states=MappingProxyType({k: v.snapshot() for k, v in self._tiles.items()}),
            baseline_metrics=self._baseline,
            current_metrics=self._current,
            pause_state=self._pause,
            last_run=self._last_run,
            active_tile=self._active_tile,
            active_axis=self._active_axis,
        )

    def _transition(self, target: AlignmentPhase) -> None:
        if target not in _TRANSITIONS[self._phase]:
            raise InvalidTransitionError(self._phase.value, target.value)
        self.logger.debug(f"Alignment phase {self._phase.value} -> {target.value}")
        self._phase = target

    # -- commands ----------------------------------------------------------

    def request_abort(self) -> None:
        """Abort at the next checkpoint (immediately when paused)."""
        self._abort_requested = True
        if self._resolution is not None and not self._resolution.done():
            self._resolution.set_result(PauseAction.ABORT)

    def retry(self) -> None:
        self._resolve(PauseAction.RETRY)

    def skip(self) -> None:
        self._resolve(PauseAction.SKIP)

    def abort(self) -> None:
        if self._phase is AlignmentPhase.PAUSED:
            self._resolve(PauseAction.ABORT)
        elif self._phase is AlignmentPhase.IDLE:
            self._transition(AlignmentPhase.ABORTED)
        elif self._phase in (AlignmentPhase.COMPLETE, AlignmentPhase.ABORTED):
            raise InvalidTransitionError(self._phase.value, AlignmentPhase.ABORTED.value, "no run in progress")
        else:
            self.request_abort()

    def _resolve(self, action: PauseAction) -> None:
        if self._phase is not AlignmentPhase.PAUSED or self._resolution is None or self._resolution.done():
            raise InvalidTransitionError(self._phase.value, action.value, "the run is not paused")
        if action is PauseAction.SKIP and (self._pause is None or self._pause.tile is None):
            raise InvalidTransitionError(self._phase.value, action.value, "no tile to skip")
        self._resolution.set_result(action)

    async def wait_for_pause(self, timeout: Optional[float] = None) -> PauseState:
        """Wait until the run pauses and return the pause details."""
        await asyncio.wait_for(self._paused_event.wait(), timeout)
        return self._pause  # type: ignore[return-value]

    def close(self) -> None:
        if self.diag is not None:
            self.diag.close()

    # -- guarded operations --------------------------------------------------

    def _checkpoint(self) -> None:
        if self._abort_requested:
            raise _AbortRun()

    async def _pause_on(
        self,
        exc: Union[MeasurementError, MotorCommandError],
        tile: Optional[TileKey],
        axis: Optional[Axis],
        what: str,
    ) -> PauseAction:
        resume_phase = self._phase
        self._pause = PauseState(
            phase=resume_phase, kind=FailureKind(exc.kind), message=f"{what}: {exc}", tile=tile, axis=axis
        )
        self.logger.warning(f"Alignment paused during {resume_phase.value}: {self._pause.message}")
        self._transition(AlignmentPhase.PAUSED)

        self._resolution = asyncio.get_running_loop().create_future()
        self._paused_event.set()
        try:
            action = await self._resolution
        finally:
            self._paused_event.clear()
            self._resolution = None

        self.logger.info(f"Pause resolved with {action.value}")
        if action is not PauseAction.ABORT:
            self._transition(resume_phase)
            self._pause = None
        return action

    async def _guarded(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        what: str,
        tile: Optional[TileKey] = None,
        axis: Optional[Axis] = None,
    ) -> T:
        """Run ``operation``, pausing on failure until the pause is resolved."""
        while True:
            self._checkpoint()
            try:
                return await operation()
            except (MeasurementError, MotorCommandError) as exc:
                action = await self._pause_on(exc, tile, axis, what)
            if action is PauseAction.SKIP:
                raise _SkipTile(f"Skipped after failed {what}")
            if action is PauseAction.ABORT:
                raise _AbortRun()

    async def _move(self, tile: TileKey, steps: Mapping[str, int]) -> None:
        tile_assignment = self._tiles[tile].assignment
        moves = []
        for axis, position in steps.items():
            motor = tile_assignment.motor_for(axis)  # type: ignore[arg-type]
            if motor is not None:
                moves.append(AxisMove(motor, int(position), tile, axis))  # type: ignore[arg-type]
        report = await self.moves.move_axes(moves)
        report.raise_for_failures()
        await self._settle()

    async def _settle(self) -> None:
        if self.settings.settling_delay_s > 0:
            await asyncio.sleep(self.settings.settling_delay_s)

    async def _measure_shape(self) -> ShapeMetrics:
        measurement = await self.sampler.collect(self.provider, timeout_s=self.settings.measurement_timeout_s)
        if measurement.area is None or measurement.eccentricity is None:
            raise MeasurementInvalidError("Measurement carries no shape metrics")
        if not measurement.passed:
            raise MeasurementInvalidError("Shape measurement failed validation")
        metrics = ShapeMetrics(area=measurement.area, eccentricity=measurement.eccentricity)
        self._current = metrics
        return metrics

    async def _stage_all(self) -> None:
        rotation = self.profile.array_rotation
        moves: List[AxisMove] = []
        for tile, state in self._tiles.items():
            x, y = compute_pose_targets(tile, Pose.ASIDE, self.profile.grid_size, rotation, self.staging)
            for axis, position in (("x", x), ("y", y)):
                motor = state.assignment.motor_for(axis)  # type: ignore[arg-type]
                if motor is not None:
                    moves.append(AxisMove(motor, position, tile, axis))  # type: ignore[arg-type]
        report = await self.moves.move_axes(moves)
        report.raise_for_failures()
        await self._settle()

    async def _return_aside(self, tile: TileKey) -> None:
        x, y = compute_pose_targets(
            tile, Pose.ASIDE, self.profile.grid_size, self.profile.array_rotation, self.staging
        )
        try:
            await self._move(tile, {"x": x, "y": y})
        except MotorCommandError as exc:
            self.logger.warning(f"Tile {tile} could not return aside: {exc}")

    # -- run -----------------------------------------------------------------

    def _build_tiles(self) -> Dict[TileKey, TileRunState]:
        targets = {}
        for tile, result in self.profile.tiles.items():
            if result.adjusted_home is not None and tile in self.assignment:
                targets[tile] = Centered(result.adjusted_home.x, result.adjusted_home.y)
        plan = self.planner.plan_targets(targets)
        planned = {(t.tile, t.axis): t.target_steps for t in plan.axes}

        tiles: Dict[TileKey, TileRunState] = {}
        for tile in sorted(self.assignment):
            tile_assignment = self.assignment[tile]
            if tile not in self.profile.grid_size or (tile_assignment.x is None and tile_assignment.y is None):
                continue
            initial = {axis: planned.get((tile, axis), 0) for axis in AXES}
            state = TileRunState(tile, tile_assignment, initial_steps=dict(initial), corrected_steps=dict(initial))
            result = self.profile.get(tile)
            if result is None or not result.is_completed:
                state.status = TileAlignmentStatus.ERROR
                state.error = "Tile is not calibrated"
            tiles[tile] = state
        return tiles

    def _finish_tile(self, tile: TileKey, status: TileAlignmentStatus, error: Optional[str] = None) -> None:
        state = self._tiles[tile]
        state.status = status
        state.error = error
        self.logger.info(f"Tile {tile}: {status.value}" + (f" ({error})" if error else ""))

    def _log_metrics(self, phase: str, metrics: Optional[ShapeMetrics], tile: Optional[TileKey] = None) -> None:
        if self.diag is not None and metrics is not None:
            self.diag.log_measurement(
                phase=phase,
                tile=str(tile) if tile else None,
                area=metrics.area,
                eccentricity=metrics.eccentricity,
            )

    async def run(self) -> AlignmentRunSummary:
        """Run a full alignment pass and return its summary (also kept as ``last_run``)."""
        if self._phase not in (AlignmentPhase.IDLE, AlignmentPhase.COMPLETE):
            raise InvalidTransitionError(self._phase.value, AlignmentPhase.POSITIONING.value, "a run is in progress")

        self._abort_requested = False
        self._tiles = self._build_tiles()
        self._baseline = None
        self._current = None
        self._pause = None
        self._started_at = time.time()
        self._transition(AlignmentPhase.POSITIONING)
        self.logger.info(f"Alignment started for {len(self._tiles)} tiles")

        try:
            final = await self._run_phases()
        except _AbortRun:
            self._transition(AlignmentPhase.ABORTED)
            self._pause = None
            for state in self._tiles.values():
                if state.status is TileAlignmentStatus.IN_PROGRESS:
                    state.status = TileAlignmentStatus.PENDING
            self._last_run = self._summarize("aborted", None)
            self.logger.warning(
                f"Alignment aborted; {len(self._last_run.tile_outcomes)} finished tiles kept"
            )
            return self._last_run
        finally:
            self._active_tile = None
            self._active_axis = None

        self._transition(AlignmentPhase.COMPLETE)
        self._last_run = self._summarize("complete", final)
        self.logger.info(
            f"Alignment complete: {self._last_run.converged_count} converged, "
            f"{self._last_run.partial_count} partial, {self._last_run.skipped_count} skipped, "
            f"{self._last_run.error_count} errors"
        )
        return self._last_run

    async def _run_phases(self) -> Optional[ShapeMetrics]:
        order = [tile for tile, state in self._tiles.items() if not state.is_finished]
        if not order:
            return None

        await self._guarded(self._stage_all, what="staging tiles aside")

        reference_index = None
        for index, tile in enumerate(order):
            try:
                await self._measure_reference(tile)
            except _SkipTile as exc:
                self._finish_tile(tile, TileAlignmentStatus.SKIPPED, str(exc))
                await self._return_aside(tile)
                if self._phase is AlignmentPhase.MEASURING_BASELINE:
                    self._transition(AlignmentPhase.POSITIONING)
                continue
            reference_index = index
            break

        if reference_index is None:
            self.logger.error("No reference tile could be measured")
            return None

        self._transition(AlignmentPhase.CONVERGING)
        for tile in order[reference_index + 1:]:
            self._checkpoint()
            await self._converge_tile(tile)

        return await self._deploy_and_measure()

    async def _measure_reference(self, tile: TileKey) -> None:
        state = self._tiles[tile]
        state.status = TileAlignmentStatus.IN_PROGRESS
        self._active_tile = tile

        await self._guarded(lambda: self._move(tile, state.initial_steps), what="moving reference tile home", tile=tile)
        self._transition(AlignmentPhase.MEASURING_BASELINE)
        baseline = await self._guarded(self._measure_shape, what="baseline measurement", tile=tile)

        self._baseline = baseline
        state.metrics = baseline
        state.axis_outcomes = {axis: AxisOutcome.CONVERGED.value for axis in AXES}
        self._log_metrics("baseline", baseline, tile)
        self._finish_tile(tile, TileAlignmentStatus.CONVERGED)

    def _axis_climb(self, tile: TileKey, axis: Axis, evaluator: ImprovementEvaluator) -> AxisHillClimb:
        async def move(steps: int) -> None:
            await self._guarded(lambda: self._move(tile, {axis: steps}), what=f"moving axis {axis}", tile=tile, axis=axis)

        async def measure() -> ShapeMetrics:
            return await self._guarded(self._measure_shape, what="shape measurement", tile=tile, axis=axis)

        return AxisHillClimb.from_config(
            self.settings,
            move=move,
            measure=measure,
            evaluator=evaluator,
            checkpoint=self._checkpoint,
            diag=self.diag,
            label=str(tile),
            axis=axis,
        )

    async def _converge_tile(self, tile: TileKey) -> None:
        state = self._tiles[tile]
        state.status = TileAlignmentStatus.IN_PROGRESS
        self._active_tile = tile
        evaluator = ImprovementEvaluator.from_config(self.settings, self._baseline)
        converged = False

        try:
            await self._guarded(lambda: self._move(tile, state.initial_steps), what="moving tile home", tile=tile)
            for axis in AXES:
                if state.assignment.motor_for(axis) is None:
                    continue
                self._active_axis = axis
                result = await self._axis_climb(tile, axis, evaluator).run(state.corrected_steps[axis])
                state.corrected_steps[axis] = result.final_steps
                state.iterations[axis] = result.iterations
                state.axis_outcomes[axis] = result.outcome.value
                state.metrics = result.best
                if self.diag is not None:
                    self.diag.log_axis_result(
                        tile=str(tile),
                        axis=axis,
                        steps=result.final_steps,
                        outcome=result.outcome.value,
                        iterations=result.iterations,
                    )
                converged = converged or result.outcome is AxisOutcome.CONVERGED
        except _SkipTile as exc:
            self._finish_tile(tile, TileAlignmentStatus.SKIPPED, str(exc))
        else:
            self._finish_tile(tile, TileAlignmentStatus.CONVERGED if converged else TileAlignmentStatus.PARTIAL)
        finally:
            self._active_axis = None

        if self.settings.isolate_tiles:
            await self._return_aside(tile)

    async def _deploy_and_measure(self) -> Optional[ShapeMetrics]:
        if self.settings.isolate_tiles:
            deployable = [
                state for state in self._tiles.values()
                if state.status in (TileAlignmentStatus.CONVERGED, TileAlignmentStatus.PARTIAL)
            ]

            async def deploy() -> None:
                moves = []
                for state in deployable:
                    for axis in AXES:
                        motor = state.assignment.motor_for(axis)
                        if motor is not None:
                            moves.append(AxisMove(motor, state.corrected_steps[axis], state.tile, axis))
                report = await self.moves.move_axes(moves)
                report.raise_for_failures()
                await self._settle()

            await self._guarded(deploy, what="deploying corrected steps")

        self._active_tile = None
        final = await self._guarded(self._measure_shape, what="final measurement")
        self._log_metrics("final", final)
        return final

    def _summarize(self, outcome: str, final: Optional[ShapeMetrics]) -> AlignmentRunSummary:
        finished = [state for state in self._tiles.values() if state.is_finished]

        def count(status: TileAlignmentStatus) -> int:
            return sum(1 for state in finished if state.status is status)

        reduction = None
        if self._baseline is not None and final is not None and self._baseline.area > 0:
            reduction = (self._baseline.area - final.area) / self._baseline.area * 100.0

        return AlignmentRunSummary(
            started_at=self._started_at,
            finished_at=time.time(),
            outcome=outcome,
            initial_metrics=self._baseline,
            final_metrics=final,
            area_reduction_percent=reduction,
            tile_outcomes=tuple(state.to_outcome() for state in finished),
            converged_count=count(TileAlignmentStatus.CONVERGED),
            partial_count=count(TileAlignmentStatus.PARTIAL),
            error_count=count(TileAlignmentStatus.ERROR),
            skipped_count=count(TileAlignmentStatus.SKIPPED),
            settings=asdict(self.settings),
        )
