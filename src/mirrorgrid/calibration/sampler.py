"""Robust aggregation of noisy multi-sample blob measurements."""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from ..config import MeasurementConfig
from ..errors import MeasurementTimeoutError
from ..hardware.interfaces import MeasurementProvider
from ..utils.log import get_logger
from .robust import compute_median, compute_normalized_mad

POSITION_FIELDS = ("x", "y", "size")
SHAPE_FIELDS = ("area", "eccentricity")


class OutlierStrategy(Enum):
    MAD_FILTER = "mad-filter"
    NONE = "none"


@dataclass(frozen=True)
class BlobSample:
    """One raw detection of a tile's reflected spot."""

    x: float
    y: float
    size: float
    response: Optional[float] = None
    area: Optional[float] = None
    eccentricity: Optional[float] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BlobSample":
        try:
            return cls(
                x=float(data["x"]),
                y=float(data["y"]),
                size=float(data["size"]),
                response=_optional_float(data.get("response")),
                area=_optional_float(data.get("area")),
                eccentricity=_optional_float(data.get("eccentricity")),
            )
        except KeyError as exc:
            raise ValueError(f"Blob sample missing field {exc.args[0]!r}") from exc


SampleLike = Union[BlobSample, Mapping[str, Any]]


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _as_sample(sample: SampleLike) -> BlobSample:
    if isinstance(sample, BlobSample):
        return sample
    if isinstance(sample, Mapping):
        return BlobSample.from_mapping(sample)
    raise TypeError(f"Expected a blob sample, got {type(sample).__name__}")


@dataclass
class MeasurementStats:
    sample_count: int
    retained_count: int
    passed: bool
    n_mad: Dict[str, float] = field(default_factory=dict)
    thresholds: Dict[str, Optional[Union[int, float]]] = field(default_factory=dict)
    median_deviation: float = 0.0
    rejected_indices: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MeasurementStats":
        return cls(**dict(data))


@dataclass
class HomeMeasurement:
    """Aggregated blob measurement: medians of the retained samples."""

    x: float
    y: float
    size: float
    response: Optional[float] = None
    area: Optional[float] = None
    eccentricity: Optional[float] = None
    captured_at: Optional[float] = None
    stats: Optional[MeasurementStats] = None

    @property
    def passed(self) -> bool:
        return self.stats is None or self.stats.passed

    def translated(self, dx: float, dy: float) -> "HomeMeasurement":
        return replace(self, x=self.x + dx, y=self.y + dy)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HomeMeasurement":
        payload = dict(data)
        stats = payload.pop("stats", None)
        return cls(**payload, stats=MeasurementStats.from_dict(stats) if stats else None)


class MeasurementSampler:
    """Median/nMAD aggregation with explicit validation.

    Invalid sample sets are still aggregated and returned with
    ``stats.passed = False`` so callers decide what to do with them.
    """

    def __init__(self, config: Optional[MeasurementConfig] = None):
        self.config = config or MeasurementConfig()
        self.strategy = OutlierStrategy(self.config.outlier_strategy)
        self.logger = get_logger(__name__)

    def _filtered_fields(self, samples: Sequence[BlobSample]) -> Tuple[str, ...]:
        extra = tuple(f for f in SHAPE_FIELDS if all(getattr(s, f) is not None for s in samples))
        return POSITION_FIELDS + extra

    def _reject(self, samples: Sequence[BlobSample], fields: Sequence[str]) -> List[int]:
        if self.strategy is OutlierStrategy.NONE or len(samples) < 2:
            return []

        rejected = set()
        for name in fields:
            values = np.array([getattr(s, name) for s in samples], dtype=float)
            median = float(np.median(values))
            bound = self.config.outlier_threshold * compute_normalized_mad(values)
            # A zero spread means every sample off the median is an outlier
            deviations = np.abs(values - median)
            rejected.update(int(i) for i in np.flatnonzero(deviations > bound))
        return sorted(rejected)

    def aggregate(self, samples: Sequence[SampleLike]) -> Optional[HomeMeasurement]:
        """Aggregate raw samples into a single measurement, or None when empty."""
        parsed = [_as_sample(s) for s in samples]
        if not parsed:
            return None

        fields = self._filtered_fields(parsed)
        rejected = self._reject(parsed, fields)
        rejected_set = set(rejected)
        retained = [s for i, s in enumerate(parsed) if i not in rejected_set]
        if not retained:
            retained, rejected = parsed, []

        def median_of(name: str) -> Optional[float]:
            values = [getattr(s, name) for s in retained if getattr(s, name) is not None]
            return compute_median(values) if values else None

        n_mad = {
            name: compute_normalized_mad([getattr(s, name) for s in retained])
            for name in POSITION_FIELDS
        }
        median_deviation = max(n_mad.values())
        max_deviation = self.config.max_median_deviation_pt

        passed = len(retained) >= self.config.min_samples and (
            max_deviation is None or median_deviation <= max_deviation
        )

        stats = MeasurementStats(
            sample_count=len(parsed),
            retained_count=len(retained),
            passed=passed,
            n_mad=n_mad,
            thresholds={
                "min_samples": self.config.min_samples,
                "max_median_deviation_pt": max_deviation,
            },
            median_deviation=median_deviation,
            rejected_indices=rejected,
        )
        if rejected:
            self.logger.debug(f"Rejected {len(rejected)}/{len(parsed)} samples as outliers")

        return HomeMeasurement(
            x=median_of("x"),
            y=median_of("y"),
            size=median_of("size"),
            response=median_of("response"),
            area=median_of("area"),
            eccentricity=median_of("eccentricity"),
            captured_at=time.time(),
            stats=stats,
        )

    async def collect(
        self,
        provider: MeasurementProvider,
        *,
        sample_count: Optional[int] = None,
        expected: Optional[Tuple[float, float]] = None,
        tolerance: Optional[float] = None,
        timeout_s: Optional[float] = None,
    ) -> HomeMeasurement:
        """Poll ``provider`` until enough samples arrive, then aggregate them.

        Samples farther than ``tolerance`` from ``expected`` are ignored, as are
        samples that jump away from the running median by more than
        ``ignore_sample_above_deviation_pt``.

        Raises:
            MeasurementTimeoutError: fewer than ``sample_count`` usable samples
                arrived within ``timeout_s``.
        """
        target = sample_count or self.config.samples_per_measurement
        timeout_s = self.config.timeout_s if timeout_s is None else timeout_s
        jump_limit = self.config.ignore_sample_above_deviation_pt

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_s
        collected: List[BlobSample] = []
        ignored = 0

        while len(collected) < target:
            if loop.time() > deadline:
                raise MeasurementTimeoutError(
                    f"Collected {len(collected)}/{target} samples within {timeout_s:.2f}s ({ignored} ignored)"
                )
            raw = provider.read_sample()
            if raw is None:
                await asyncio.sleep(self.config.capture_delay_s)
                continue

            sample = _as_sample(raw)
            if expected is not None and tolerance is not None:
                if math.hypot(sample.x - expected[0], sample.y - expected[1]) > tolerance:
                    ignored += 1
                    await asyncio.sleep(self.config.capture_delay_s)
                    continue

            if jump_limit is not None and collected:
                mx = compute_median([s.x for s in collected])
                my = compute_median([s.y for s in collected])
                if math.hypot(sample.x - mx, sample.y - my) > jump_limit:
                    ignored += 1
                    await asyncio.sleep(self.config.capture_delay_s)
                    continue

            collected.append(sample)
            if len(collected) < target:
                await asyncio.sleep(self.config.capture_delay_s)

        if ignored:
            self.logger.debug(f"Ignored {ignored} samples while collecting {target}")
        return self.aggregate(collected)  # type: ignore[return-value]
