"""Shared fixtures: a simulated mirror array and calibration profile builders."""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np
import pytest

from mirrorgrid.calibration.profile import CalibrationProfile
from mirrorgrid.calibration.sampler import HomeMeasurement
from mirrorgrid.calibration.summary import build_calibration_profile
from mirrorgrid.calibration.tile_model import AxisStepTestResult, TileCalibrationModel
from mirrorgrid.config import MirrorGridConfig
from mirrorgrid.constants import MOTOR_MAX_POSITION_STEPS
from mirrorgrid.geometry.types import CameraInfo
from mirrorgrid.hardware.interfaces import MotorAck, MotorCommand
from mirrorgrid.types import GridSize, MotorRef, TileAssignment, TileKey


def motor_pair(tile: TileKey) -> TileAssignment:
    """One controller node per tile, motor 0 on x and motor 1 on y."""
    mac = f"aa:bb:cc:00:{tile.row:02x}:{tile.col:02x}"
    return TileAssignment(x=MotorRef(mac, 0), y=MotorRef(mac, 1))


def full_assignment(grid_size: GridSize) -> Dict[TileKey, TileAssignment]:
    return {tile: motor_pair(tile) for tile in grid_size.tiles()}


@dataclass
class SimTile:
    """A tile's spot in viewport space: home position plus a linear step response."""

    home: Tuple[float, float]
    per_step: Tuple[float, float] = (1e-4, 1e-4)


@dataclass
class _FailureRule:
    motor: MotorRef
    position: Optional[int]
    remaining: Optional[int]
    kind: Optional[str]


@dataclass
class SimulatedArray:
    """Motor dispatcher and measurement provider over a simulated array.

    A tile parked with both axes at a travel limit reflects outside the
    camera view, so only tiles at working positions are measured. When more
    than one spot is visible the sample describes the combined spot: mean
    position, plus area and eccentricity from the spots' principal spread.
    """

    tiles: Dict[TileKey, SimTile]
    assignment: Mapping[TileKey, TileAssignment]
    spot_size: float = 0.02
    positions: Dict[MotorRef, int] = field(default_factory=dict)
    commands: List[MotorCommand] = field(default_factory=list)
    homed: List[MotorRef] = field(default_factory=list)
    reads: int = 0
    # Covers the camera: no spot is reported while set
    blocked: bool = False
    _rules: List[_FailureRule] = field(default_factory=list)

    def fail_moves(
        self,
        motor: MotorRef,
        position: Optional[int] = None,
        times: Optional[int] = None,
        kind: Optional[str] = None,
    ) -> None:
        """Reject moves of ``motor`` (to ``position`` only, when given)."""
        self._rules.append(_FailureRule(motor, position, times, kind))

    def _match_failure(self, command: MotorCommand) -> Optional[_FailureRule]:
        for rule in self._rules:
            if rule.motor != command.motor:
                continue
            if rule.position is not None and rule.position != command.position_steps:
                continue
            if rule.remaining is not None:
                if rule.remaining <= 0:
                    continue
                rule.remaining -= 1
            return rule
        return None

    async def move_motor(self, command: MotorCommand) -> MotorAck:
        self.commands.append(command)
        rule = self._match_failure(command)
        if rule is not None:
            return MotorAck(command.motor, ok=False, error="simulated motor fault", kind=rule.kind)
        self.positions[command.motor] = command.position_steps
        return MotorAck(command.motor, position_steps=command.position_steps)

    async def home_motor(self, motor: MotorRef) -> MotorAck:
        self.homed.append(motor)
        self.positions[motor] = 0
        return MotorAck(motor, position_steps=0)

    def steps_of(self, tile: TileKey) -> Tuple[int, int]:
        assignment = self.assignment[tile]
        return (self.positions.get(assignment.x, 0), self.positions.get(assignment.y, 0))

    def spot(self, tile: TileKey) -> Optional[Tuple[float, float]]:
        steps_x, steps_y = self.steps_of(tile)
        if abs(steps_x) >= MOTOR_MAX_POSITION_STEPS and abs(steps_y) >= MOTOR_MAX_POSITION_STEPS:
            return None
        sim = self.tiles[tile]
        return (sim.home[0] + steps_x * sim.per_step[0], sim.home[1] + steps_y * sim.per_step[1])

    def visible_spots(self) -> List[Tuple[float, float]]:
        spots = [self.spot(tile) for tile in sorted(self.tiles)]
        return [s for s in spots if s is not None]

    def read_sample(self) -> Optional[Dict[str, float]]:
        self.reads += 1
        spots = self.visible_spots()
        if self.blocked or not spots:
            return None
        points = np.array(spots, dtype=float)
        center = points.mean(axis=0)
        if len(points) > 1:
            spread = np.sqrt(np.clip(np.linalg.eigvalsh(np.cov(points.T, bias=True)), 0.0, None))
        else:
            spread = np.zeros(2)
        minor = self.spot_size + 2.0 * float(spread[0])
        major = self.spot_size + 2.0 * float(spread[1])
        return {
            "x": float(center[0]),
            "y": float(center[1]),
            "size": self.spot_size,
            "area": major * minor,
            "eccentricity": major / minor,
        }


@pytest.fixture()
def grid_2x2() -> GridSize:
    return GridSize(2, 2)


@pytest.fixture()
def square_camera() -> CameraInfo:
    return CameraInfo(1000, 1000)


@pytest.fixture()
def fast_config() -> MirrorGridConfig:
    """Default configuration with every physical delay removed."""
    config = MirrorGridConfig()
    config.measurement.capture_delay_s = 0.0
    config.calibration.retry_delay_s = 0.0
    config.calibration.roi = {"x": 0.3, "y": 0.3, "width": 0.4, "height": 0.4}
    config.alignment.settling_delay_s = 0.0
    return config


@pytest.fixture()
def calibration_array(grid_2x2) -> SimulatedArray:
    """2x2 array whose homes sit on a regular 0.15 viewport grid."""
    assignment = full_assignment(grid_2x2)
    tiles = {
        tile: SimTile(home=(0.35 + tile.col * 0.15, 0.45 + tile.row * 0.15))
        for tile in grid_2x2.tiles()
    }
    return SimulatedArray(tiles=tiles, assignment=assignment, spot_size=0.05)


@pytest.fixture()
def alignment_array(grid_2x2) -> SimulatedArray:
    """2x2 array whose spots land near (0.5, 0.5), off by whole hundreds of steps."""
    assignment = full_assignment(grid_2x2)
    homes = {
        TileKey(0, 0): (0.5, 0.5),
        TileKey(0, 1): (0.52, 0.51),
        TileKey(1, 0): (0.49, 0.53),
        TileKey(1, 1): (0.51, 0.49),
    }
    tiles = {tile: SimTile(home=home) for tile, home in homes.items()}
    return SimulatedArray(tiles=tiles, assignment=assignment)


def tile_model(
    tile: TileKey,
    home: Tuple[float, float],
    per_step: Tuple[Optional[float], Optional[float]] = (2e-4, 2e-4),
    size: float = 0.1,
) -> TileCalibrationModel:
    """Calibration inputs for a tile measured at ``home`` (centered space)."""

    def step(value: Optional[float]) -> Optional[AxisStepTestResult]:
        if value is None:
            return None
        return AxisStepTestResult(displacement=value * 1000, per_step=value, size_delta=0.0, delta_steps=1000)

    return TileCalibrationModel(
        tile=tile,
        home=HomeMeasurement(x=home[0], y=home[1], size=size),
        step_x=step(per_step[0]),
        step_y=step(per_step[1]),
    )


def regular_grid_profile(
    grid_size: GridSize,
    pitch: float = 0.3,
    per_step: Tuple[Optional[float], Optional[float]] = (2e-4, 2e-4),
    overrides: Optional[Mapping[TileKey, TileCalibrationModel]] = None,
) -> CalibrationProfile:
    """Profile of tiles measured exactly on a grid centered on the frame."""
    models = {}
    for tile in grid_size.tiles():
        x = (tile.col - (grid_size.cols - 1) / 2.0) * pitch
        y = (tile.row - (grid_size.rows - 1) / 2.0) * pitch
        models[tile] = tile_model(tile, (x, y), per_step, size=pitch)
    models.update(overrides or {})
    return build_calibration_profile(models, grid_size, camera=CameraInfo(1000, 1000))


def offset_free_profile(
    homes: Mapping[TileKey, Tuple[float, float]],
    grid_size: GridSize,
    per_step: Tuple[Optional[float], Optional[float]] = (2e-4, 2e-4),
) -> CalibrationProfile:
    """Profile whose tiles are already at their ideal homes (zero alignment steps)."""
    results = {tile: tile_model(tile, home, per_step).derive() for tile, home in homes.items()}
    return CalibrationProfile(grid_size=grid_size, tiles=results, camera=CameraInfo(1000, 1000))
