"""Exception hierarchy and structured failure vocabulary."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class SkipReason(str, Enum):
    """Why a tile axis was left out of a plan."""
    UNASSIGNED = "unassigned"
    UNCALIBRATED = "uncalibrated"
    DUPLICATE_MOTOR = "duplicate-motor"


class FailureKind(str, Enum):
    """Failure and warning categories surfaced by batch operations."""
    CLAMPED = "clamped"
    MEASUREMENT_INVALID = "measurement-invalid"
    MEASUREMENT_TIMEOUT = "measurement-timeout"
    MOVE_FAILED = "move-failed"
    ACK_TIMEOUT = "ack-timeout"
    COMPLETION_TIMEOUT = "completion-timeout"


class MirrorGridError(Exception):
    """Base class for all mirrorgrid errors."""


class MeasurementError(MirrorGridError):
    kind = FailureKind.MEASUREMENT_INVALID


class MeasurementTimeoutError(MeasurementError):
    """Not enough samples arrived before the deadline."""
    kind = FailureKind.MEASUREMENT_TIMEOUT


class MeasurementInvalidError(MeasurementError):
    """A sample set failed its validation thresholds."""


class MotorCommandError(MirrorGridError):
    """A motor command failed in the external command layer."""

    def __init__(self, message: str, kind: FailureKind = FailureKind.MOVE_FAILED):
        super().__init__(message)
        self.kind = kind


class InvalidTransitionError(MirrorGridError):
    """The alignment state machine was driven through an illegal edge."""

    def __init__(self, current: str, target: str, detail: Optional[str] = None):
        message = f"Illegal alignment transition {current} -> {target}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.current = current
        self.target = target


class ProfileValidationError(MirrorGridError, ValueError):
    """A persisted calibration profile document is malformed."""
