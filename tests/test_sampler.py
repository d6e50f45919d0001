"""Tests for robust statistics and multi-sample blob measurement."""

import asyncio

import pytest

from mirrorgrid.calibration.robust import (
    OutlierDirection,
    compute_mad,
    compute_median,
    compute_normalized_mad,
    detect_outliers,
    robust_max,
)
from mirrorgrid.calibration.sampler import BlobSample, HomeMeasurement, MeasurementSampler
from mirrorgrid.config import MeasurementConfig
from mirrorgrid.errors import MeasurementTimeoutError


def blob(x, y=0.5, size=0.05, **extra):
    return {"x": x, "y": y, "size": size, **extra}


class ListProvider:
    """Replays a fixed list of samples, then reports nothing."""

    def __init__(self, samples):
        self.samples = list(samples)

    def read_sample(self):
        return self.samples.pop(0) if self.samples else None


def no_delay(**overrides):
    return MeasurementConfig(capture_delay_s=0.0, **overrides)


class TestRobustStatistics:
    def test_median_and_mad(self):
        values = [1.0, 2.0, 3.0, 4.0, 100.0]
        assert compute_median(values) == 3.0
        assert compute_mad(values) == 1.0
        assert compute_normalized_mad(values) == pytest.approx(1.4826)

    def test_empty_inputs(self):
        assert compute_median([]) == 0.0
        assert compute_mad([]) == 0.0
        assert robust_max([]) == 0.0

    def test_detect_high_outliers(self):
        result = detect_outliers([1.0, 1.1, 0.9, 1.0, 5.0], 3.0, OutlierDirection.HIGH)
        assert result.outliers == [5.0]
        assert result.outlier_indices == [4]
        assert robust_max([1.0, 1.1, 0.9, 1.0, 5.0]) == 1.1

    def test_low_direction_keeps_high_values(self):
        result = detect_outliers([1.0, 1.1, 0.9, 1.0, 5.0], 3.0, OutlierDirection.LOW)
        assert result.outliers == []

    def test_zero_spread_keeps_everything(self):
        result = detect_outliers([2.0, 2.0, 2.0, 9.0])
        assert result.mad == 0.0
        assert result.outliers == []


class TestAggregate:
    def test_outlier_filtered_from_median(self):
        sampler = MeasurementSampler(no_delay(outlier_threshold=3.0, min_samples=3))
        samples = [blob(1.0) for _ in range(6)] + [blob(100.0)]
        measurement = sampler.aggregate(samples)
        assert measurement.x == 1.0
        assert measurement.stats.rejected_indices == [6]
        assert measurement.stats.retained_count == 6

    def test_no_filter_strategy_keeps_outliers(self):
        sampler = MeasurementSampler(no_delay(outlier_strategy="none", max_median_deviation_pt=None))
        measurement = sampler.aggregate([blob(1.0)] * 4 + [blob(100.0)])
        assert measurement.stats.rejected_indices == []
        assert measurement.stats.retained_count == 5

    def test_invalid_set_returned_not_raised(self):
        sampler = MeasurementSampler(no_delay(max_median_deviation_pt=0.001, min_samples=3))
        samples = [blob(x) for x in (0.40, 0.45, 0.50, 0.55, 0.60)]
        measurement = sampler.aggregate(samples)
        assert measurement is not None
        assert not measurement.passed
        assert measurement.stats.median_deviation > 0.001

    def test_too_few_samples_fail_validation(self):
        sampler = MeasurementSampler(no_delay(min_samples=5))
        measurement = sampler.aggregate([blob(0.5)] * 3)
        assert not measurement.passed

    def test_empty_input(self):
        assert MeasurementSampler(no_delay()).aggregate([]) is None

    def test_shape_fields_aggregated_when_present(self):
        sampler = MeasurementSampler(no_delay(min_samples=1))
        measurement = sampler.aggregate([
            blob(0.5, area=0.01, eccentricity=1.2),
            blob(0.5, area=0.03, eccentricity=1.4),
            blob(0.5, area=0.02, eccentricity=1.3),
        ])
        assert measurement.area == pytest.approx(0.02)
        assert measurement.eccentricity == pytest.approx(1.3)

    def test_accepts_blob_samples(self):
        sampler = MeasurementSampler(no_delay(min_samples=1))
        measurement = sampler.aggregate([BlobSample(0.2, 0.3, 0.01)])
        assert (measurement.x, measurement.y, measurement.size) == (0.2, 0.3, 0.01)

    def test_malformed_sample_rejected(self):
        sampler = MeasurementSampler(no_delay())
        with pytest.raises(ValueError):
            sampler.aggregate([{"x": 0.5, "y": 0.5}])
        with pytest.raises(TypeError):
            sampler.aggregate([(0.5, 0.5, 0.1)])

    def test_measurement_dict_round_trip(self):
        sampler = MeasurementSampler(no_delay(min_samples=1))
        measurement = sampler.aggregate([blob(0.25)])
        restored = HomeMeasurement.from_dict(measurement.to_dict())
        assert restored == measurement


class TestCollect:
    def test_collects_requested_sample_count(self):
        provider = ListProvider([blob(0.5)] * 10)
        sampler = MeasurementSampler(no_delay())
        measurement = asyncio.run(sampler.collect(provider, sample_count=5))
        assert measurement.stats.sample_count == 5
        assert len(provider.samples) == 5

    def test_ignores_samples_outside_tolerance(self):
        provider = ListProvider([blob(0.9), blob(0.5), blob(0.9), blob(0.5), blob(0.5)])
        sampler = MeasurementSampler(no_delay(min_samples=3))
        measurement = asyncio.run(
            sampler.collect(provider, sample_count=3, expected=(0.5, 0.5), tolerance=0.1)
        )
        assert measurement.x == 0.5
        assert provider.samples == []

    def test_ignores_jumps_from_running_median(self):
        provider = ListProvider([blob(0.5), blob(0.8), blob(0.5), blob(0.5)])
        sampler = MeasurementSampler(no_delay(min_samples=3, ignore_sample_above_deviation_pt=0.1))
        measurement = asyncio.run(sampler.collect(provider, sample_count=3))
        assert measurement.x == 0.5
        assert measurement.stats.sample_count == 3

    def test_times_out_without_samples(self):
        sampler = MeasurementSampler(no_delay())
        with pytest.raises(MeasurementTimeoutError):
            asyncio.run(sampler.collect(ListProvider([]), sample_count=3, timeout_s=0.05))
