"""Per-axis hill-climb search and the rules that decide whether a probe improved the spot."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from ..config import AlignmentConfig
from ..constants import clamp_steps
from ..utils.log import get_logger
from .diagnostics import DiagnosticsLogger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ShapeMetrics:
    """Area and eccentricity of the combined reflected spot."""

    area: float
    eccentricity: float

    def to_dict(self) -> Dict[str, float]:
        return {"area": self.area, "eccentricity": self.eccentricity}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShapeMetrics":
        return cls(area=float(data["area"]), eccentricity=float(data["eccentricity"]))


class ImprovementStrategy(str, Enum):
    ANY = "any"
    WEIGHTED = "weighted"


class AxisOutcome(str, Enum):
    CONVERGED = "converged"
    STEP_EXHAUSTED = "step-exhausted"
    MAX_ITERATIONS = "max-iterations"


@dataclass
class ImprovementEvaluator:
    """Decides whether a trial measurement beats the best one so far.

    ``any``: area or eccentricity drops by its threshold percentage.
    ``weighted``: a baseline-normalized weighted score drops by
    ``weighted_score_threshold_percent``.
    """

    strategy: ImprovementStrategy = ImprovementStrategy.ANY
    area_threshold_percent: float = 1.0
    eccentricity_threshold_percent: float = 2.0
    weighted_area: float = 0.6
    weighted_eccentricity: float = 0.4
    weighted_score_threshold_percent: float = 1.0
    baseline: Optional[ShapeMetrics] = None

    @classmethod
    def from_config(cls, config: AlignmentConfig, baseline: Optional[ShapeMetrics] = None) -> "ImprovementEvaluator":
        return cls(
            strategy=ImprovementStrategy(config.improvement_strategy),
            area_threshold_percent=config.area_threshold_percent,
            eccentricity_threshold_percent=config.eccentricity_threshold_percent,
            weighted_area=config.weighted_area,
            weighted_eccentricity=config.weighted_eccentricity,
            weighted_score_threshold_percent=config.weighted_score_threshold_percent,
            baseline=baseline,
        )

    def score(self, metrics: ShapeMetrics) -> float:
        """Weighted score, normalized by the baseline when one is known."""
        area_ref = self.baseline.area if self.baseline and self.baseline.area > 0 else 1.0
        ecc_ref = self.baseline.eccentricity if self.baseline and self.baseline.eccentricity > 0 else 1.0
        return (
            self.weighted_area * metrics.area / area_ref
            + self.weighted_eccentricity * metrics.eccentricity / ecc_ref
        )

    def improved(self, trial: ShapeMetrics, best: ShapeMetrics) -> bool:
        if self.strategy is ImprovementStrategy.WEIGHTED:
            return self.score(trial) < self.score(best) * (1 - self.weighted_score_threshold_percent / 100)

        area_improved = trial.area < best.area * (1 - self.area_threshold_percent / 100)
        ecc_improved = trial.eccentricity < best.eccentricity * (1 - self.eccentricity_threshold_percent / 100)
        return area_improved or ecc_improved


def reduce_step(step: int, reduction_percent: float, min_step: int) -> Optional[int]:
    """Next smaller step size, or None once the step can no longer shrink."""
    reduced = max(min_step, int(math.floor(step * (1 - reduction_percent / 100))))
    if reduced >= step:
        return None
    return reduced


@dataclass(frozen=True)
class AxisSearchResult:
    start_steps: int
    final_steps: int
    iterations: int
    outcome: AxisOutcome
    best: ShapeMetrics

    @property
    def correction(self) -> int:
        return self.final_steps - self.start_steps


MoveFn = Callable[[int], Awaitable[None]]
MeasureFn = Callable[[], Awaitable[ShapeMetrics]]


@dataclass
class AxisHillClimb:
    """Hill-climbing search on one motor axis to shrink the combined spot.

    Probes ``current ± step``; an improving probe is kept, otherwise the
    axis moves back and the direction flips. After
    ``failures_before_reduction`` misses in a row the step shrinks by
    ``step_reduction_percent`` (never below ``min_step_size``). The search
    stops when eccentricity reaches ``eccentricity_target``, when the step
    can no longer shrink, or after ``max_iterations`` probes.
    """

    move: MoveFn
    measure: MeasureFn
    evaluator: ImprovementEvaluator
    step_size: int = 100
    step_reduction_percent: float = 30.0
    min_step_size: int = 10
    max_iterations: int = 50
    failures_before_reduction: int = 2
    eccentricity_target: float = 1.05
    checkpoint: Optional[Callable[[], None]] = None

    diag: DiagnosticsLogger | None = None
    label: str = ""
    axis: Optional[str] = None

    @classmethod
    def from_config(
        cls,
        config: AlignmentConfig,
        move: MoveFn,
        measure: MeasureFn,
        evaluator: ImprovementEvaluator,
        **kwargs: Any,
    ) -> "AxisHillClimb":
        return cls(
            move=move,
            measure=measure,
            evaluator=evaluator,
            step_size=config.step_size,
            step_reduction_percent=config.step_reduction_percent,
            min_step_size=config.min_step_size,
            max_iterations=config.max_iterations_per_axis,
            failures_before_reduction=config.failures_before_reduction,
            eccentricity_target=config.eccentricity_target,
            **kwargs,
        )

    def _log(self, phase: str, steps: int, metrics: ShapeMetrics, accepted: Optional[bool] = None) -> None:
        if self.diag is not None:
            self.diag.log_measurement(
                phase=phase,
                tile=self.label,
                axis=self.axis,
                area=metrics.area,
                eccentricity=metrics.eccentricity,
                steps=steps,
                score=self.evaluator.score(metrics),
                accepted=accepted,
            )

    async def run(self, start_steps: int, initial: Optional[ShapeMetrics] = None) -> AxisSearchResult:
        best = initial if initial is not None else await self.measure()
        self._log("axis-start", start_steps, best)

        current = int(start_steps)
        step = int(self.step_size)
        direction = 1
        failures = 0
        iteration = 0

        if best.eccentricity <= self.eccentricity_target:
            return AxisSearchResult(current, current, 0, AxisOutcome.CONVERGED, best)

        outcome = AxisOutcome.MAX_ITERATIONS
        while iteration < self.max_iterations:
            if self.checkpoint is not None:
                self.checkpoint()
            iteration += 1

            trial = current + direction * step
            if clamp_steps(trial) == trial:
                await self.move(trial)
                metrics = await self.measure()
                accepted = self.evaluator.improved(metrics, best)
                self._log("walk", trial, metrics, accepted)

                if accepted:
                    best = metrics
                    current = trial
                    failures = 0
                    if metrics.eccentricity <= self.eccentricity_target:
                        outcome = AxisOutcome.CONVERGED
                        break
                    continue

                # undo the probe
                await self.move(current)

            direction = -direction
            failures += 1
            if failures >= self.failures_before_reduction:
                reduced = reduce_step(step, self.step_reduction_percent, self.min_step_size)
                if reduced is None:
                    outcome = AxisOutcome.STEP_EXHAUSTED
                    break
                step = reduced
                failures = 0

        logger.debug(
            f"{self.label}: {outcome.value} after {iteration} probes, "
            f"correction {current - start_steps:+d} steps"
        )
        return AxisSearchResult(int(start_steps), current, iteration, outcome, best)
