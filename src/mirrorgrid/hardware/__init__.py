"""Interfaces to the external motor and measurement layers."""

from .interfaces import MotorCommand, MotorAck, MotorDispatcher, MeasurementProvider

__all__ = [
    "MotorCommand",
    "MotorAck",
    "MotorDispatcher",
    "MeasurementProvider",
]
