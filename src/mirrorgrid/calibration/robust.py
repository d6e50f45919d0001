"""Median/MAD based robust statistics."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence

import numpy as np
from scipy.stats import median_abs_deviation

from ..constants import DEFAULT_OUTLIER_MAD_THRESHOLD, NORMALIZED_MAD_FACTOR


class OutlierDirection(Enum):
    """Which tail(s) of the distribution count as outliers."""
    BOTH = "both"
    HIGH = "high"
    LOW = "low"


@dataclass
class OutlierDetectionResult:
    inliers: List[float] = field(default_factory=list)
    outliers: List[float] = field(default_factory=list)
    outlier_indices: List[int] = field(default_factory=list)
    median: float = 0.0
    mad: float = 0.0
    n_mad: float = 0.0
    upper_threshold: float = float("inf")
    lower_threshold: float = float("-inf")


def compute_median(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.median(np.asarray(values, dtype=float)))


def compute_mad(values: Sequence[float]) -> float:
    """Median absolute deviation around the median."""
    if len(values) == 0:
        return 0.0
    return float(median_abs_deviation(np.asarray(values, dtype=float), scale=1.0))


def compute_normalized_mad(values: Sequence[float]) -> float:
    """MAD scaled to estimate a normal standard deviation."""
    return compute_mad(values) * NORMALIZED_MAD_FACTOR


def detect_outliers(
    values: Sequence[float],
    mad_threshold: float = DEFAULT_OUTLIER_MAD_THRESHOLD,
    direction: OutlierDirection = OutlierDirection.BOTH,
) -> OutlierDetectionResult:
    """Split ``values`` into inliers and outliers around the median.

    A zero MAD means no spread can be estimated, so every value is kept.
    """
    result = OutlierDetectionResult()
    if len(values) == 0:
        return result

    data = np.asarray(values, dtype=float)
    if data.size == 1:
        result.inliers = [float(data[0])]
        result.median = float(data[0])
        return result

    median = float(np.median(data))
    mad = compute_mad(data)
    result.median = median
    result.mad = mad
    result.n_mad = mad * NORMALIZED_MAD_FACTOR

    if mad == 0:
        result.inliers = data.tolist()
        return result

    deviation = mad_threshold * result.n_mad
    result.upper_threshold = median + deviation
    result.lower_threshold = median - deviation

    check_high = direction in (OutlierDirection.BOTH, OutlierDirection.HIGH)
    check_low = direction in (OutlierDirection.BOTH, OutlierDirection.LOW)
    for index, value in enumerate(data.tolist()):
        is_outlier = (check_high and value > result.upper_threshold) or (
            check_low and value < result.lower_threshold
        )
        if is_outlier:
            result.outliers.append(value)
            result.outlier_indices.append(index)
        else:
            result.inliers.append(value)
    return result


def robust_max(
    values: Sequence[float],
    mad_threshold: float = DEFAULT_OUTLIER_MAD_THRESHOLD,
    direction: OutlierDirection = OutlierDirection.HIGH,
) -> float:
    """Largest value after discarding outliers."""
    if len(values) == 0:
        return 0.0
    inliers = detect_outliers(values, mad_threshold, direction).inliers
    return float(max(inliers)) if inliers else float(max(values))

