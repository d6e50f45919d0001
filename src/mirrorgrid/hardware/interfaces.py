from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Union, runtime_checkable

from ..types import MotorRef


@dataclass(frozen=True)
class MotorCommand:
    """Absolute move of one motor, in steps from its homed position."""

    motor: MotorRef
    position_steps: int


@dataclass(frozen=True)
class MotorAck:
    """Outcome reported by the command layer for one motor command."""

    motor: MotorRef
    ok: bool = True
    position_steps: Optional[int] = None
    error: Optional[str] = None
    # One of the FailureKind values when ok is False
    kind: Optional[str] = None


@runtime_checkable
class MotorDispatcher(Protocol):
    """Motor command transport.

    Implementations own the wire protocol, acknowledgement tracking and
    retries. A command either resolves to a ``MotorAck`` or raises
    ``MotorCommandError``; callers bound every call with a timeout.
    """

    async def move_motor(self, command: MotorCommand) -> MotorAck:
        """Move a motor to an absolute step position."""

    async def home_motor(self, motor: MotorRef) -> MotorAck:
        """Drive a motor to its mechanical home and zero its position."""


@runtime_checkable
class MeasurementProvider(Protocol):
    """Source of blob detections for the tile currently in view.

    ``read_sample`` returns the latest detection, or None when no blob is
    visible. Samples carry ``x``, ``y`` and ``size``, optionally ``area``,
    ``eccentricity`` and ``response``.
    """

    def read_sample(self) -> Optional[Union[Mapping[str, Any], Any]]:
        """Return the most recent blob sample, or None."""
