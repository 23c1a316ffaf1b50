"""
Feedback calibration for the triage queue service.

Observed outcomes (actual wait, satisfaction, resource utilization) are folded
into per-tier exponential moving averages that tune future scoring:
- average service minutes per tier feed the wait estimate
- persistently low satisfaction in a tier raises that tier's base weight
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Tuple

from triage_service.core.config import CalibrationConfig, Config
from triage_service.core.exceptions import ValidationError
from triage_service.models.assessment import FeedbackRecord, RiskLevel
from triage_service.scoring.priority import PriorityScorer

logger = logging.getLogger(__name__)


class FeedbackSink(Protocol):
    """Anything that archives accepted feedback."""

    def archive(self, record: FeedbackRecord, risk_level: RiskLevel) -> None:
        ...


@dataclass
class TierStats:
    """Rolling statistics for one risk tier."""
    samples: int = 0
    service_minutes: Optional[float] = None
    satisfaction: Optional[float] = None
    resource_utilization: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "samples": self.samples,
            "service_minutes": _round(self.service_minutes),
            "satisfaction": _round(self.satisfaction),
            "resource_utilization": _round(self.resource_utilization)
        }


def _round(value: Optional[float]) -> Optional[float]:
    return round(value, 3) if value is not None else None


def _ema(previous: Optional[float], sample: float, alpha: float) -> float:
    if previous is None:
        return sample
    return (1 - alpha) * previous + alpha * sample


class FeedbackCalibrator:
    """
    Calibrates scorer parameters from post-hoc feedback.

    Updates are serialized by the calibrator's own lock, independent of the
    queue lock, and only ever change the scorer's parameters; existing queue
    entries pick them up on the next recompute.
    """

    def __init__(
        self,
        scorer: PriorityScorer,
        config: Optional[CalibrationConfig] = None,
        sink: Optional[FeedbackSink] = None
    ):
        """
        Args:
            scorer: Scorer whose parameters are calibrated
            config: Calibration settings, or use defaults from config
            sink: Optional archive for accepted feedback
        """
        self.scorer = scorer
        self.config = config or Config.get_calibration_config()
        if not 0.0 < self.config.ema_alpha <= 1.0:
            raise ValueError("ema_alpha must be in (0, 1]")
        self.sink = sink
        self._lock = threading.Lock()
        self._patients: "OrderedDict[str, Tuple[RiskLevel, int]]" = OrderedDict()
        self._stats: Dict[RiskLevel, TierStats] = {level: TierStats() for level in RiskLevel}

        logger.info(f"FeedbackCalibrator initialized (alpha={self.config.ema_alpha})")

    def register(self, patient_id: str, risk_level: RiskLevel, position: int) -> None:
        """Remember a patient's tier and submission position for later feedback."""
        with self._lock:
            self._patients[patient_id] = (RiskLevel(risk_level), max(1, int(position)))
            self._patients.move_to_end(patient_id)
            while len(self._patients) > self.config.max_tracked_patients:
                self._patients.popitem(last=False)

    def is_known(self, patient_id: str) -> bool:
        return patient_id in self._patients

    def record(self, feedback: FeedbackRecord) -> TierStats:
        """
        Fold one feedback record into the tier averages.

        Each assessed patient counts once: accepted feedback consumes the
        registration, so a repeat for the same patient is rejected.

        Raises:
            ValidationError: unknown or already consumed patient, scores
                outside [0, 1], or a wait beyond max_wait_minutes
        """
        self._validate(feedback)

        with self._lock:
            known = self._patients.pop(feedback.patient_id, None)
            if known is None:
                logger.warning(f"Feedback for unknown or already reported patient {feedback.patient_id}")
                raise ValidationError(
                    f"Unknown or already reported patient_id: {feedback.patient_id}", field="patient_id"
                )
            risk_level, position = known
            alpha = self.config.ema_alpha
            stats = self._stats[risk_level]

            implied_service = feedback.actual_wait_time / position
            stats.samples += 1
            stats.service_minutes = _ema(stats.service_minutes, implied_service, alpha)
            stats.satisfaction = _ema(stats.satisfaction, feedback.satisfaction_score, alpha)
            stats.resource_utilization = _ema(
                stats.resource_utilization, feedback.resource_utilization, alpha
            )

            params = self.scorer.parameters
            service_minutes = dict(params.average_service_minutes)
            service_minutes[risk_level] = stats.service_minutes

            weights = dict(params.tier_weights)
            weights[risk_level] = self._adjusted_weight(weights.get(risk_level, 1.0), stats)

            self.scorer.update_parameters(
                params.with_calibration(tier_weights=weights, average_service_minutes=service_minutes)
            )

            logger.info(
                f"Feedback for {feedback.patient_id} ({risk_level.value}): "
                f"service={stats.service_minutes:.1f}min satisfaction={stats.satisfaction:.2f} "
                f"weight={weights[risk_level]:.2f}"
            )
            result = TierStats(**vars(stats))

        if self.sink is not None:
            try:
                self.sink.archive(feedback, risk_level)
            except Exception as e:
                logger.error(f"Failed to archive feedback for {feedback.patient_id}: {e}", exc_info=True)

        return result

    def _adjusted_weight(self, current: float, stats: TierStats) -> float:
        """Nudge a tier weight up on low satisfaction, back toward 1.0 otherwise."""
        if stats.samples < self.config.min_samples or stats.satisfaction is None:
            return current

        step = self.config.weight_adjustment_step
        if stats.satisfaction < self.config.satisfaction_threshold:
            return min(self.config.max_tier_weight, current + step)
        if current > 1.0:
            return max(1.0, current - step)
        return current

    def _validate(self, feedback: FeedbackRecord) -> None:
        if not feedback.patient_id:
            raise ValidationError("patient_id is required", field="patient_id")
        if not 0.0 <= feedback.satisfaction_score <= 1.0:
            raise ValidationError("satisfaction_score must be within [0, 1]", field="satisfaction_score")
        if not 0.0 <= feedback.resource_utilization <= 1.0:
            raise ValidationError(
                "resource_utilization must be within [0, 1]", field="resource_utilization"
            )
        if not 0.0 <= feedback.actual_wait_time <= self.config.max_wait_minutes:
            raise ValidationError(
                f"actual_wait_time must be within [0, {self.config.max_wait_minutes:g}] minutes",
                field="actual_wait_time"
            )

    def get_tier_stats(self, risk_level: RiskLevel) -> TierStats:
        with self._lock:
            return TierStats(**vars(self._stats[RiskLevel(risk_level)]))

    def snapshot(self) -> dict:
        """Current calibration state for monitoring."""
        with self._lock:
            tiers = {level.value: stats.to_dict() for level, stats in self._stats.items()}
            tracked = len(self._patients)
        return {
            "tiers": tiers,
            "tracked_patients": tracked,
            "parameters": self.scorer.parameters.to_dict()
        }
