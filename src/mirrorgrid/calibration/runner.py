"""Async calibration run: home, stage, measure and step-test every tile.

The runner owns the physical sequence only. Measurement aggregation lives in
``MeasurementSampler`` and every derived quantity in ``TileCalibrationModel``
and ``build_calibration_profile``.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from enum import Enum
from typing import Dict, List, Optional

from ..config import MirrorGridConfig
from ..errors import MeasurementError, MeasurementInvalidError, MirrorGridError, MotorCommandError
from ..geometry.transform import CoordinateTransformer
from ..geometry.types import CameraInfo, Centered, Viewport
from ..hardware.interfaces import MeasurementProvider, MotorDispatcher
from ..playback.dispatch import AxisMove, PlanDispatcher
from ..types import GridSize, MirrorAssignment, TileKey
from ..utils.log import get_logger
from .expected_position import TileMeasurement, compute_expected_position, expected_tolerance
from .profile import CalibrationProfile
from .sampler import HomeMeasurement, MeasurementSampler
from .staging import Pose, StagingPosition, compute_pose_targets
from .summary import build_calibration_profile
from .tile_model import TileCalibrationModel, compute_axis_step_test, get_axis_step_delta


class CalibrationPhase(str, Enum):
    IDLE = "idle"
    HOMING = "homing"
    STAGING = "staging"
    MEASURING = "measuring"
    COMPLETED = "completed"
    ABORTED = "aborted"
    ERROR = "error"


class CalibrationRunner:
    """Run a full calibration pass over the array.

    Sequence:
    1. Home every assigned motor.
    2. Stage all calibratable tiles aside so only one spot is visible.
    3. Per tile: move home, measure, jog x and measure, jog y and measure,
       then return the tile aside.
    4. Build the grid blueprint and the calibration profile.

    Samples from the measurement provider are in viewport space; stored
    measurements are converted to centered space. A tile that fails keeps
    whatever it measured and the run moves on.
    """

    def __init__(
        self,
        dispatcher: MotorDispatcher,
        provider: MeasurementProvider,
        assignment: MirrorAssignment,
        grid_size: GridSize,
        camera: CameraInfo,
        config: Optional[MirrorGridConfig] = None,
        sampler: Optional[MeasurementSampler] = None,
    ):
        self.config = config or MirrorGridConfig()
        self.run_config = self.config.calibration
        self.provider = provider
        self.assignment = assignment
        self.grid_size = grid_size
        self.camera = camera
        self.sampler = sampler or MeasurementSampler(self.config.measurement)
        self.moves = PlanDispatcher(dispatcher, axis_timeout_s=self.run_config.move_timeout_s)
        self.transformer = CoordinateTransformer(camera, array_rotation=self.run_config.array_rotation)
        self.staging = StagingPosition(self.run_config.staging_position)

        self.phase = CalibrationPhase.IDLE
        self.models: Dict[TileKey, TileCalibrationModel] = {}
        self.profile: Optional[CalibrationProfile] = None
        self._abort_requested = False

        self.logger = get_logger(__name__)

    def request_abort(self) -> None:
        """Stop after the tile currently being measured."""
        self._abort_requested = True

    def calibratable_tiles(self) -> List[TileKey]:
        return [
            tile for tile in sorted(self.assignment)
            if tile in self.grid_size and self.assignment[tile].is_complete
        ]

    # -- motion ------------------------------------------------------------

    async def _move_tile(self, tile: TileKey, x_steps: Optional[int], y_steps: Optional[int]) -> None:
        tile_assignment = self.assignment[tile]
        moves = []
        if x_steps is not None:
            moves.append(AxisMove(tile_assignment.x, x_steps, tile, "x"))  # type: ignore[arg-type]
        if y_steps is not None:
            moves.append(AxisMove(tile_assignment.y, y_steps, tile, "y"))  # type: ignore[arg-type]
        report = await self.moves.move_axes(moves)
        report.raise_for_failures()

    async def _move_to_pose(self, tile: TileKey, pose: Pose) -> None:
        x, y = compute_pose_targets(
            tile, pose, self.grid_size, self.run_config.array_rotation, self.staging
        )
        await self._move_tile(tile, x, y)

    async def _stage_all(self, tiles: List[TileKey]) -> None:
        moves = []
        for tile in tiles:
            x, y = compute_pose_targets(
                tile, Pose.ASIDE, self.grid_size, self.run_config.array_rotation, self.staging
            )
            moves.append(AxisMove(self.assignment[tile].x, x, tile, "x"))  # type: ignore[arg-type]
            moves.append(AxisMove(self.assignment[tile].y, y, tile, "y"))  # type: ignore[arg-type]
        report = await self.moves.move_axes(moves)
        for tile in report.failed_tiles():
            self.logger.warning(f"Tile {tile} could not be staged aside")

    # -- measurement -------------------------------------------------------

    def _to_centered(self, measurement: HomeMeasurement) -> HomeMeasurement:
        point = self.transformer.to_centered(Viewport(measurement.x, measurement.y))
        size = self.transformer.delta(measurement.size, "x", "viewport", "centered")
        return replace(measurement, x=point.x, y=point.y, size=size)

    async def _measure(self, expected: Optional[Viewport] = None, tolerance: Optional[float] = None) -> HomeMeasurement:
        """Measure the visible spot, retrying failed or invalid sample sets."""
        attempts = max(1, self.run_config.max_detection_retries)
        last_error: Optional[MeasurementError] = None

        for attempt in range(1, attempts + 1):
            try:
                measurement = await self.sampler.collect(
                    self.provider,
                    expected=expected.as_tuple() if expected is not None else None,
                    tolerance=tolerance,
                )
            except MeasurementError as exc:
                last_error = exc
            else:
                if measurement.passed:
                    return self._to_centered(measurement)
                last_error = MeasurementInvalidError(
                    f"Sample spread {measurement.stats.median_deviation:.4f} failed validation"  # type: ignore[union-attr]
                )

            self.logger.debug(f"Detection attempt {attempt}/{attempts} failed: {last_error}")
            if attempt < attempts:
                await asyncio.sleep(self.run_config.retry_delay_s)

        raise last_error  # type: ignore[misc]

    # -- per tile ----------------------------------------------------------

    async def _calibrate_tile(
        self,
        tile: TileKey,
        model: TileCalibrationModel,
        completed: List[TileMeasurement],
    ) -> None:
        rotation = self.run_config.array_rotation
        await self._move_to_pose(tile, Pose.HOME)

        expected = compute_expected_position(tile, completed, self.grid_size, rotation, self.run_config.roi)
        tolerance = expected_tolerance(
            not completed, self.run_config.first_tile_tolerance, self.run_config.tile_tolerance
        )
        home = await self._measure(expected, tolerance)
        model.home = home
        completed.append(TileMeasurement(tile, Centered(home.x, home.y)))

        delta_x = get_axis_step_delta("x", self.run_config.delta_steps, rotation)
        if delta_x is not None:
            await self._move_tile(tile, delta_x, None)
            model.step_x = compute_axis_step_test(home, await self._measure(), "x", delta_x)

        delta_y = get_axis_step_delta("y", self.run_config.delta_steps, rotation)
        if delta_y is not None:
            await self._move_tile(tile, 0, delta_y)
            model.step_y = compute_axis_step_test(home, await self._measure(), "y", delta_y)

    async def _run_tile(self, tile: TileKey, completed: List[TileMeasurement]) -> TileCalibrationModel:
        model = TileCalibrationModel(tile=tile)
        try:
            await self._calibrate_tile(tile, model, completed)
        except MirrorGridError as exc:
            if model.home is None:
                model.error = str(exc)
                self.logger.error(f"Tile {tile} failed: {exc}")
            else:
                model.warnings.append(f"Step test incomplete: {exc}")
                self.logger.warning(f"Tile {tile} step test incomplete: {exc}")

        try:
            await self._move_to_pose(tile, Pose.ASIDE)
        except MotorCommandError as exc:
            model.warnings.append(f"Could not return aside: {exc}")
            self.logger.warning(f"Tile {tile} could not return aside: {exc}")
        return model

    # -- run ---------------------------------------------------------------

    async def run(self, name: str = "Calibration") -> CalibrationProfile:
        """Calibrate every tile with both axes assigned and return the profile."""
        self._abort_requested = False
        self.models = {}
        tiles = self.calibratable_tiles()
        if not tiles:
            self.logger.error("No tile has both axes assigned; nothing to calibrate")
            self.phase = CalibrationPhase.ERROR
            self.profile = self._build_profile(name)
            return self.profile

        self.logger.info(f"Calibrating {len(tiles)} tiles on a {self.grid_size.rows}x{self.grid_size.cols} grid")

        self.phase = CalibrationPhase.HOMING
        report = await self.moves.home_all(self.assignment)
        for failure in report.failures:
            self.logger.warning(f"Homing {failure.motor} failed: {failure.message}")

        self.phase = CalibrationPhase.STAGING
        await self._stage_all(tiles)

        self.phase = CalibrationPhase.MEASURING
        completed: List[TileMeasurement] = []
        for index, tile in enumerate(tiles):
            if self._abort_requested:
                self.logger.warning(f"Calibration aborted after {index}/{len(tiles)} tiles")
                self.phase = CalibrationPhase.ABORTED
                break
            self.logger.info(f"Calibrating tile {tile} ({index + 1}/{len(tiles)})")
            self.models[tile] = await self._run_tile(tile, completed)

        self.profile = self._build_profile(name)
        if self.phase is not CalibrationPhase.ABORTED:
            self.phase = CalibrationPhase.COMPLETED
        return self.profile

    def _build_profile(self, name: str) -> CalibrationProfile:
        return build_calibration_profile(
            self.models,
            self.grid_size,
            camera=self.camera,
            config=self.run_config,
            name=name,
        )
