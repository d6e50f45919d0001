"""Tests for concurrent motor dispatch and failure aggregation."""

import asyncio

import pytest

from mirrorgrid.errors import FailureKind, MotorCommandError
from mirrorgrid.geometry.types import Centered
from mirrorgrid.hardware.interfaces import MotorAck, MotorDispatcher, MeasurementProvider
from mirrorgrid.playback.dispatch import AxisMove, PlanDispatcher, dispatch_plan, home_all
from mirrorgrid.playback.planner import plan_point
from mirrorgrid.types import MotorRef, TileAssignment, TileKey

from conftest import SimulatedArray, SimTile, full_assignment, regular_grid_profile


@pytest.fixture()
def array(grid_2x2):
    assignment = full_assignment(grid_2x2)
    tiles = {tile: SimTile(home=(0.5, 0.5)) for tile in grid_2x2.tiles()}
    return SimulatedArray(tiles=tiles, assignment=assignment)


class SlowDispatcher:
    """Never acknowledges moves of one motor."""

    def __init__(self, stuck: MotorRef):
        self.stuck = stuck
        self.moved = []

    async def move_motor(self, command):
        if command.motor == self.stuck:
            await asyncio.sleep(10)
        self.moved.append(command.motor)
        return MotorAck(command.motor, position_steps=command.position_steps)

    async def home_motor(self, motor):
        raise RuntimeError("bus offline")


class TestProtocols:
    def test_simulated_array_satisfies_interfaces(self, array):
        assert isinstance(array, MotorDispatcher)
        assert isinstance(array, MeasurementProvider)


class TestDispatchPlan:
    def test_all_axes_sent(self, array, grid_2x2):
        plan = plan_point(regular_grid_profile(grid_2x2), array.assignment, Centered(0.0, 0.0))
        report = asyncio.run(dispatch_plan(array, plan))
        assert report.ok
        assert len(report.succeeded) == 8
        assert array.steps_of(TileKey(0, 0)) == (750, 750)
        assert array.steps_of(TileKey(1, 1)) == (-750, -750)

    def test_partial_failure_does_not_stop_other_axes(self, array, grid_2x2):
        bad = array.assignment[TileKey(0, 1)].y
        array.fail_moves(bad)
        plan = plan_point(regular_grid_profile(grid_2x2), array.assignment, Centered(0.0, 0.0))
        report = asyncio.run(dispatch_plan(array, plan))
        assert not report.ok
        assert len(report.succeeded) == 7
        assert [(f.tile, f.axis, f.kind) for f in report.failures] == [
            (TileKey(0, 1), "y", FailureKind.MOVE_FAILED)
        ]
        assert report.failed_tiles() == (TileKey(0, 1),)

    def test_ack_kind_preserved(self, array):
        motor = array.assignment[TileKey(0, 0)].x
        array.fail_moves(motor, kind="completion-timeout")
        report = asyncio.run(PlanDispatcher(array).move_axes([AxisMove(motor, 10, TileKey(0, 0), "x")]))
        assert report.failures[0].kind is FailureKind.COMPLETION_TIMEOUT

    def test_unacknowledged_axis_times_out(self):
        stuck = MotorRef("aa:01", 0)
        other = MotorRef("aa:01", 1)
        dispatcher = SlowDispatcher(stuck)
        moves = [AxisMove(stuck, 100, TileKey(0, 0), "x"), AxisMove(other, 100, TileKey(0, 0), "y")]
        report = asyncio.run(PlanDispatcher(dispatcher, axis_timeout_s=0.05).move_axes(moves))
        assert [f.kind for f in report.failures] == [FailureKind.ACK_TIMEOUT]
        assert dispatcher.moved == [other]

    def test_raise_for_failures(self, array):
        motor = array.assignment[TileKey(1, 0)].x
        array.fail_moves(motor, times=1)
        dispatcher = PlanDispatcher(array)
        report = asyncio.run(dispatcher.move_axes([AxisMove(motor, 5, TileKey(1, 0), "x")]))
        with pytest.raises(MotorCommandError) as excinfo:
            report.raise_for_failures()
        assert excinfo.value.kind is FailureKind.MOVE_FAILED
        assert "tile 1-0 axis x" in str(excinfo.value)

        retried = asyncio.run(dispatcher.move_axes([AxisMove(motor, 5, TileKey(1, 0), "x")]))
        retried.raise_for_failures()
        assert array.positions[motor] == 5

    def test_empty_batch(self, array):
        report = asyncio.run(PlanDispatcher(array).move_axes([]))
        assert report.ok and report.succeeded == ()


class TestHomeAll:
    def test_each_motor_homed_once(self, array):
        shared = array.assignment[TileKey(0, 0)].x
        assignment = dict(array.assignment)
        assignment[TileKey(0, 1)] = TileAssignment(x=shared, y=assignment[TileKey(0, 1)].y)
        report = asyncio.run(home_all(array, assignment))
        assert report.ok
        assert len(array.homed) == 7
        assert len(set(array.homed)) == 7

    def test_errors_reported_per_motor(self):
        dispatcher = SlowDispatcher(MotorRef("aa:01", 0))
        assignment = {TileKey(0, 0): TileAssignment(x=MotorRef("aa:01", 0), y=MotorRef("aa:01", 1))}
        report = asyncio.run(home_all(dispatcher, assignment))
        assert len(report.failures) == 2
        assert all(f.kind is FailureKind.MOVE_FAILED for f in report.failures)
        assert "bus offline" in report.failures[0].message
