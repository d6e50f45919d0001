"""Concurrent motor dispatch with per-axis failure reporting."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple

from ..errors import FailureKind, MotorCommandError
from ..hardware.interfaces import MotorAck, MotorCommand, MotorDispatcher
from ..types import AXES, Axis, MirrorAssignment, MotorRef, TileKey
from ..utils.log import get_logger
from .planner import PlaybackPlan

DEFAULT_AXIS_TIMEOUT_S = 5.0


@dataclass(frozen=True)
class AxisMove:
    """One absolute motor move, optionally tagged with the tile axis it drives."""

    motor: MotorRef
    position_steps: int
    tile: Optional[TileKey] = None
    axis: Optional[Axis] = None


@dataclass(frozen=True)
class AxisFailure:
    tile: Optional[TileKey]
    axis: Optional[Axis]
    motor: MotorRef
    kind: FailureKind
    message: str


@dataclass(frozen=True)
class DispatchReport:
    """Outcome of a batch: moves that were acknowledged and per-axis failures."""

    succeeded: Tuple[AxisMove, ...] = ()
    failures: Tuple[AxisFailure, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failures

    def failed_tiles(self) -> Tuple[TileKey, ...]:
        return tuple(sorted({f.tile for f in self.failures if f.tile is not None}))

    def raise_for_failures(self) -> None:
        """Raise ``MotorCommandError`` (with the first failure's kind) if any axis failed."""
        if not self.failures:
            return
        first = self.failures[0]
        where = f"tile {first.tile} axis {first.axis}" if first.tile is not None else f"motor {first.motor}"
        raise MotorCommandError(
            f"{len(self.failures)} axes failed; {where}: {first.message}", kind=first.kind
        )


def _check_ack(ack: MotorAck, motor: MotorRef) -> MotorAck:
    if ack is not None and not ack.ok:
        kind = FailureKind(ack.kind) if ack.kind else FailureKind.MOVE_FAILED
        raise MotorCommandError(ack.error or f"Motor {motor} rejected the command", kind=kind)
    return ack


def _classify(exc: BaseException) -> Tuple[FailureKind, str]:
    if isinstance(exc, asyncio.TimeoutError):
        return FailureKind.ACK_TIMEOUT, "No acknowledgement before timeout"
    if isinstance(exc, MotorCommandError):
        return exc.kind, str(exc)
    return FailureKind.MOVE_FAILED, f"{type(exc).__name__}: {exc}"


class PlanDispatcher:
    """Send batches of motor moves concurrently.

    Every axis runs under its own ``asyncio.wait_for`` bound; one motor
    failing or timing out never stops the others. Failures come back in the
    ``DispatchReport`` instead of being raised.
    """

    def __init__(self, dispatcher: MotorDispatcher, axis_timeout_s: float = DEFAULT_AXIS_TIMEOUT_S):
        self.dispatcher = dispatcher
        self.axis_timeout_s = axis_timeout_s
        self.logger = get_logger(__name__)

    async def _bounded(self, call: Callable[[], Awaitable[MotorAck]], motor: MotorRef) -> MotorAck:
        ack = await asyncio.wait_for(call(), timeout=self.axis_timeout_s)
        return _check_ack(ack, motor)

    async def _run_batch(
        self,
        moves: Sequence[AxisMove],
        make_call: Callable[[AxisMove], Callable[[], Awaitable[MotorAck]]],
        label: str,
    ) -> DispatchReport:
        if not moves:
            return DispatchReport()

        outcomes = await asyncio.gather(
            *(self._bounded(make_call(move), move.motor) for move in moves),
            return_exceptions=True,
        )

        succeeded: List[AxisMove] = []
        failures: List[AxisFailure] = []
        for move, outcome in zip(moves, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                kind, message = _classify(outcome)
                failures.append(AxisFailure(move.tile, move.axis, move.motor, kind, message))
            else:
                succeeded.append(move)

        if failures:
            self.logger.warning(
                f"{label}: {len(failures)}/{len(moves)} axes failed "
                f"({', '.join(sorted({f.kind.value for f in failures}))})"
            )
        else:
            self.logger.debug(f"{label}: {len(moves)} axes acknowledged")
        return DispatchReport(succeeded=tuple(succeeded), failures=tuple(failures))

    async def move_axes(self, moves: Iterable[AxisMove]) -> DispatchReport:
        """Move every motor in ``moves`` concurrently."""
        moves = list(moves)

        def make_call(move: AxisMove) -> Callable[[], Awaitable[MotorAck]]:
            command = MotorCommand(motor=move.motor, position_steps=move.position_steps)
            return lambda: self.dispatcher.move_motor(command)

        return await self._run_batch(moves, make_call, "Move batch")

    async def dispatch_plan(self, plan: PlaybackPlan) -> DispatchReport:
        """Send every planned axis target; skipped axes are not touched."""
        moves = [
            AxisMove(motor=t.motor, position_steps=t.target_steps, tile=t.tile, axis=t.axis)
            for t in plan.axes
        ]
        return await self.move_axes(moves)

    async def home_all(self, assignment: MirrorAssignment) -> DispatchReport:
        """Home every distinct motor referenced by ``assignment``."""
        moves: List[AxisMove] = []
        seen = set()
        for tile in sorted(assignment):
            for axis in AXES:
                motor = assignment[tile].motor_for(axis)
                if motor is None or motor in seen:
                    continue
                seen.add(motor)
                moves.append(AxisMove(motor=motor, position_steps=0, tile=tile, axis=axis))

        def make_call(move: AxisMove) -> Callable[[], Awaitable[MotorAck]]:
            return lambda: self.dispatcher.home_motor(move.motor)

        return await self._run_batch(moves, make_call, "Home batch")


async def dispatch_plan(
    dispatcher: MotorDispatcher,
    plan: PlaybackPlan,
    axis_timeout_s: float = DEFAULT_AXIS_TIMEOUT_S,
) -> DispatchReport:
    return await PlanDispatcher(dispatcher, axis_timeout_s).dispatch_plan(plan)


async def home_all(
    dispatcher: MotorDispatcher,
    assignment: MirrorAssignment,
    axis_timeout_s: float = DEFAULT_AXIS_TIMEOUT_S,
) -> DispatchReport:
    return await PlanDispatcher(dispatcher, axis_timeout_s).home_all(assignment)
