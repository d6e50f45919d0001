"""CSV diagnostics for alignment runs: one row per measurement and per finished axis."""

from __future__ import annotations

import csv
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO, Union

from ..utils.log import get_logger

logger = get_logger(__name__)

FIELDNAMES = [
    "ts", "phase", "tile", "axis", "steps", "area", "eccentricity", "score", "accepted",
    "outcome", "iterations", "error",
]


def _as_float(value: Optional[float]) -> Optional[float]:
    return None if value is None else float(value)


def _read_header(path: Path) -> List[str]:
    with open(path, newline="") as fh:
        return next(csv.reader(fh), [])


def _rotated_path(path: Path) -> Path:
    stamp = time.strftime("%Y%m%d-%H%M%S")
    candidate = path.with_name(f"{path.stem}-{stamp}{path.suffix}")
    index = 1
    while candidate.exists():
        candidate = path.with_name(f"{path.stem}-{stamp}-{index}{path.suffix}")
        index += 1
    return candidate


@dataclass
class DiagnosticsLogger:
    """CSV trace of an alignment run.

    ``log_measurement()`` appends one row per shape measurement (baseline,
    axis start, every hill-climb probe, final) and ``log_axis_result()`` one
    row per finished axis search. ``extras`` adds constant columns to every
    row, e.g. the improvement strategy of the run. Rows go to an existing
    file without a second header; a file whose header does not match the
    columns is moved aside first.
    """

    csv_path: Optional[Union[str, Path]] = None
    extras: Dict[str, Any] = field(default_factory=dict)
    _writer: Optional[csv.DictWriter] = field(default=None, init=False, repr=False)
    _fh: Optional[TextIO] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.csv_path is None:
            return
        path = Path(self.csv_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        fieldnames = FIELDNAMES + sorted(self.extras)
        new_file = not path.exists() or path.stat().st_size == 0
        if not new_file and _read_header(path) != fieldnames:
            rotated = _rotated_path(path)
            path.rename(rotated)
            logger.warning(f"Diagnostics columns changed; moved {path} to {rotated}")
            new_file = True
        self._fh = open(path, "a", newline="")
        self._writer = csv.DictWriter(self._fh, fieldnames=fieldnames, extrasaction="ignore")
        if new_file:
            self._writer.writeheader()

    def _write(self, row: Dict[str, Any]) -> None:
        if self._writer is None:
            return
        self._writer.writerow({"ts": f"{time.time():.6f}", **self.extras, **row})
        self._fh.flush()  # type: ignore[union-attr]

    def log_measurement(
        self,
        *,
        phase: str,
        tile: Optional[str] = None,
        area: Optional[float] = None,
        eccentricity: Optional[float] = None,
        **kwargs: Any,
    ) -> None:
        self._write({
            "phase": phase,
            "tile": tile,
            "area": _as_float(area),
            "eccentricity": _as_float(eccentricity),
            **kwargs,
        })

    def log_axis_result(self, *, tile: str, axis: str, steps: int, outcome: str, iterations: int) -> None:
        self._write({
            "phase": "axis-end",
            "tile": tile,
            "axis": axis,
            "steps": steps,
            "outcome": outcome,
            "iterations": iterations,
        })

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
            self._writer = None
