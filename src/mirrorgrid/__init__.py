"""
mirrorgrid: calibration and playback geometry for steerable mirror arrays.

This package measures each mirror tile's home position and step response,
builds a grid blueprint and calibration profile, plans motor steps for
target points and patterns, and runs closed-loop alignment of the array.
"""

__version__ = "0.1.0"
__author__ = "mirrorgrid developers"

from . import utils
from . import geometry
from . import hardware
from . import schemas
from . import calibration
from . import playback
from . import alignment

from .config import MirrorGridConfig
from .errors import (
    MirrorGridError,
    MeasurementError,
    MeasurementTimeoutError,
    MeasurementInvalidError,
    MotorCommandError,
    InvalidTransitionError,
    ProfileValidationError,
    SkipReason,
    FailureKind,
)
from .types import TileKey, GridSize, MotorRef, TileAssignment

__all__ = [
    "utils",
    "geometry",
    "hardware",
    "schemas",
    "calibration",
    "playback",
    "alignment",
    "MirrorGridConfig",
    "MirrorGridError",
    "MeasurementError",
    "MeasurementTimeoutError",
    "MeasurementInvalidError",
    "MotorCommandError",
    "InvalidTransitionError",
    "ProfileValidationError",
    "SkipReason",
    "FailureKind",
    "TileKey",
    "GridSize",
    "MotorRef",
    "TileAssignment",
]
