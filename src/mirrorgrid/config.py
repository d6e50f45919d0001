from __future__ import annotations

import json
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional, Union
from pathlib import Path

from .constants import (
    DETECTION_BLOB_IGNORE_SAMPLE_ABOVE_DEVIATION_PT,
    DETECTION_BLOB_MAX_MEDIAN_DEVIATION_PT,
    DETECTION_BLOB_MIN_SAMPLES,
    DETECTION_CAPTURE_DELAY_S,
    DEFAULT_OUTLIER_MAD_THRESHOLD,
    DEFAULT_PATTERN_ASPECT,
)
from .utils.io import load_data, save_data


@dataclass
class MeasurementConfig:
    """Configuration for multi-sample blob measurements."""

    samples_per_measurement: int = 5
    outlier_strategy: str = "mad-filter"  # "mad-filter" or "none"
    outlier_threshold: float = DEFAULT_OUTLIER_MAD_THRESHOLD
    min_samples: int = DETECTION_BLOB_MIN_SAMPLES
    # None disables the spread check (shape-only measurements)
    max_median_deviation_pt: Optional[float] = DETECTION_BLOB_MAX_MEDIAN_DEVIATION_PT
    ignore_sample_above_deviation_pt: Optional[float] = DETECTION_BLOB_IGNORE_SAMPLE_ABOVE_DEVIATION_PT
    capture_delay_s: float = DETECTION_CAPTURE_DELAY_S
    timeout_s: float = 1.5


@dataclass
class CalibrationRunnerConfig:
    """Configuration for the per-tile home and step-test run."""

    delta_steps: int = 1200
    grid_gap_normalized: float = 0.0
    first_tile_tolerance: float = 0.25
    tile_tolerance: float = 0.15
    max_detection_retries: int = 5
    retry_delay_s: float = 0.15
    move_timeout_s: float = 5.0
    array_rotation: int = 0
    staging_position: str = "nearest-corner"  # nearest-corner, corner, bottom, left
    robust_tile_size: bool = True
    robust_tile_size_mad_threshold: float = DEFAULT_OUTLIER_MAD_THRESHOLD
    # Region of interest (viewport units) where the first tile is expected
    roi: Dict[str, float] = field(default_factory=lambda: {
        'x': 0.0,
        'y': 0.0,
        'width': 1.0,
        'height': 1.0,
    })


@dataclass
class AlignmentConfig:
    """Configuration for the closed-loop alignment search."""

    step_size: int = 100
    step_reduction_percent: float = 30.0
    min_step_size: int = 10
    max_iterations_per_axis: int = 50
    improvement_strategy: str = "any"  # "any" or "weighted"
    area_threshold_percent: float = 1.0
    eccentricity_threshold_percent: float = 2.0
    weighted_area: float = 0.6
    weighted_eccentricity: float = 0.4
    weighted_score_threshold_percent: float = 1.0
    eccentricity_target: float = 1.05
    failures_before_reduction: int = 2
    samples_per_measurement: int = 3
    settling_delay_s: float = 0.2
    isolate_tiles: bool = True
    move_timeout_s: float = 5.0
    measurement_timeout_s: float = 3.0


@dataclass
class PlaybackConfig:
    """Configuration for plan dispatch."""

    axis_timeout_s: float = 5.0
    pattern_aspect: float = DEFAULT_PATTERN_ASPECT


@dataclass
class MirrorGridConfig:
    """Complete mirror array configuration."""

    measurement: MeasurementConfig = field(default_factory=MeasurementConfig)
    calibration: CalibrationRunnerConfig = field(default_factory=CalibrationRunnerConfig)
    alignment: AlignmentConfig = field(default_factory=AlignmentConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)

    # Global settings
    grid_rows: int = 2
    grid_cols: int = 2
    enable_diagnostics: bool = False
    diagnostics_path: Optional[str] = None

    _SECTIONS = {
        'measurement': MeasurementConfig,
        'calibration': CalibrationRunnerConfig,
        'alignment': AlignmentConfig,
        'playback': PlaybackConfig,
    }
    _GLOBALS = ('grid_rows', 'grid_cols', 'enable_diagnostics', 'diagnostics_path')

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MirrorGridConfig":
        config = cls()
        for name, section_cls in cls._SECTIONS.items():
            if name in data and data[name] is not None:
                setattr(config, name, section_cls(**data[name]))
        for key in cls._GLOBALS:
            if key in data:
                setattr(config, key, data[key])
        return config

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to a JSON or YAML file (chosen by suffix)."""
        path = Path(path)
        if path.suffix.lower() in ('.yaml', '.yml'):
            save_data(self.to_dict(), path)
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "MirrorGridConfig":
        """Load configuration from a JSON or YAML file."""
        return cls.from_dict(load_data(path) or {})

    @classmethod
    def create_bench_config(cls) -> "MirrorGridConfig":
        """Create configuration for a small bench array under steady lighting."""
        config = cls()

        # Fewer samples, tighter spread
        config.measurement.samples_per_measurement = 5
        config.measurement.max_median_deviation_pt = 0.003

        # Faster alignment with a coarser floor
        config.alignment.step_size = 80
        config.alignment.min_step_size = 20
        config.alignment.settling_delay_s = 0.1

        return config

    @classmethod
    def create_development_config(cls) -> "MirrorGridConfig":
        """Create configuration for development against simulated hardware."""
        config = cls()

        # Enable all diagnostics
        config.enable_diagnostics = True
        config.diagnostics_path = "./alignment_diagnostics.csv"

        # No physical settling with simulated motors
        config.measurement.capture_delay_s = 0.0
        config.calibration.retry_delay_s = 0.0
        config.alignment.settling_delay_s = 0.0

        return config
