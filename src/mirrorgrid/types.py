"""Shared dataclasses for addressing tiles and motors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, Literal, Mapping, Optional, Tuple


Axis = Literal["x", "y"]
AXES: Tuple[Axis, Axis] = ("x", "y")


def _require_index(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    return value


@dataclass(frozen=True, order=True)
class TileKey:
    """Grid address of one mirror tile."""

    row: int
    col: int

    def __post_init__(self) -> None:
        _require_index("row", self.row)
        _require_index("col", self.col)

    def __str__(self) -> str:
        return f"{self.row}-{self.col}"

    @classmethod
    def parse(cls, text: str) -> "TileKey":
        """Parse the canonical ``"row-col"`` form."""
        parts = str(text).strip().split("-")
        if len(parts) != 2 or not all(p.isdigit() for p in parts):
            raise ValueError(f"Invalid tile key: {text!r}")
        return cls(int(parts[0]), int(parts[1]))

    @property
    def label(self) -> str:
        return f"R{self.row}C{self.col}"


@dataclass(frozen=True)
class GridSize:
    rows: int
    cols: int

    def __post_init__(self) -> None:
        _require_index("rows", self.rows)
        _require_index("cols", self.cols)

    def __contains__(self, tile: object) -> bool:
        return isinstance(tile, TileKey) and tile.row < self.rows and tile.col < self.cols

    def tiles(self) -> Iterator[TileKey]:
        """Iterate tiles in row-major order."""
        for row in range(self.rows):
            for col in range(self.cols):
                yield TileKey(row, col)

    @property
    def count(self) -> int:
        return self.rows * self.cols


@dataclass(frozen=True)
class MotorRef:
    """One physical motor: the controller node MAC and the motor index on it."""

    mac: str
    motor_index: int

    def __post_init__(self) -> None:
        if not isinstance(self.mac, str) or not self.mac:
            raise ValueError("Motor mac must be a non-empty string")
        _require_index("motor_index", self.motor_index)

    @property
    def key(self) -> str:
        return f"{self.mac}:{self.motor_index}"

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class TileAssignment:
    """Motors bound to a tile's two axes."""

    x: Optional[MotorRef] = None
    y: Optional[MotorRef] = None

    def motor_for(self, axis: Axis) -> Optional[MotorRef]:
        return self.x if axis == "x" else self.y

    @property
    def is_complete(self) -> bool:
        return self.x is not None and self.y is not None


MirrorAssignment = Mapping[TileKey, TileAssignment]


def unique_macs(assignment: MirrorAssignment) -> Tuple[str, ...]:
    """Controller MACs referenced by an assignment, in first-seen order."""
    seen: Dict[str, None] = {}
    for tile in sorted(assignment):
        for motor in (assignment[tile].x, assignment[tile].y):
            if motor is not None:
                seen.setdefault(motor.mac, None)
    return tuple(seen)
