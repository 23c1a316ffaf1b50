"""
Priority scoring for the triage queue service.
Converts a classification plus patient context into a priority score and
an estimated wait time.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Dict, Optional, Union

from triage_service.core.config import Config, ScoringConfig
from triage_service.models.assessment import RiskLevel
from triage_service.models.vitals import VitalsRecord

logger = logging.getLogger(__name__)

# Upper bound for a per-patient service time, in minutes
MAX_SERVICE_MINUTES = 24 * 60.0


@dataclass(frozen=True)
class ScoringParameters:
    """
    Immutable snapshot of the scorer's tunables.

    The calibrator publishes a new snapshot instead of editing this one, so a
    scoring pass always sees a consistent set of values.
    """
    base_scores: Dict[RiskLevel, float]
    tier_weights: Dict[RiskLevel, float]
    average_service_minutes: Dict[RiskLevel, float]
    elderly_age_threshold: float = 65
    elderly_boost: float = 10.0
    time_decay_enabled: bool = True
    time_decay_interval_minutes: float = 10.0
    time_decay_increment: float = 2.0

    @classmethod
    def from_config(cls, config: ScoringConfig) -> "ScoringParameters":
        """Build parameters from a ScoringConfig."""
        if config.time_decay_interval_minutes <= 0:
            raise ValueError("time_decay_interval_minutes must be positive")
        return cls(
            base_scores={level: float(config.base_scores[level.value]) for level in RiskLevel},
            tier_weights={level: 1.0 for level in RiskLevel},
            average_service_minutes={
                level: float(config.average_service_minutes[level.value]) for level in RiskLevel
            },
            elderly_age_threshold=config.elderly_age_threshold,
            elderly_boost=config.elderly_boost,
            time_decay_enabled=config.time_decay_enabled,
            time_decay_interval_minutes=config.time_decay_interval_minutes,
            time_decay_increment=config.time_decay_increment
        )

    def with_calibration(
        self,
        tier_weights: Optional[Dict[RiskLevel, float]] = None,
        average_service_minutes: Optional[Dict[RiskLevel, float]] = None
    ) -> "ScoringParameters":
        """
        Return a copy with calibrated weights and/or service times.

        Service times are clamped to [0, MAX_SERVICE_MINUTES].
        """
        return replace(
            self,
            tier_weights=dict(tier_weights) if tier_weights is not None else self.tier_weights,
            average_service_minutes=(
                {level: clamp_service_minutes(v) for level, v in average_service_minutes.items()}
                if average_service_minutes is not None
                else self.average_service_minutes
            )
        )

    def to_dict(self) -> dict:
        return {
            "base_scores": {k.value: v for k, v in self.base_scores.items()},
            "tier_weights": {k.value: round(v, 4) for k, v in self.tier_weights.items()},
            "average_service_minutes": {
                k.value: round(v, 2) for k, v in self.average_service_minutes.items()
            },
            "elderly_age_threshold": self.elderly_age_threshold,
            "elderly_boost": self.elderly_boost,
            "time_decay_enabled": self.time_decay_enabled,
            "time_decay_interval_minutes": self.time_decay_interval_minutes,
            "time_decay_increment": self.time_decay_increment
        }


@dataclass(frozen=True)
class ScoreResult:
    """Priority score with its breakdown."""
    priority_score: float
    estimated_wait_time: int
    service_minutes: float
    base_score: float = 0.0
    confidence_adjusted: float = 0.0
    elderly_boost: float = 0.0
    time_decay: float = 0.0
    breakdown: Dict[str, float] = field(default_factory=dict)


class PriorityScorer:
    """
    Priority scorer.

    1. Base score per risk tier (times the calibrated tier weight)
    2. Confidence adjustment: base * (0.5 + 0.5 * confidence)
    3. Elderly boost: added once when age >= threshold
    4. Time-decay: increment per full interval waited, always derived from
       the total wait so repeated recomputes do not compound
    5. Estimated wait: position * average service minutes for the tier
    """

    def __init__(self, parameters: Optional[ScoringParameters] = None):
        """
        Args:
            parameters: Scoring parameters, or build them from config
        """
        self._parameters = parameters or ScoringParameters.from_config(Config.get_scoring_config())
        logger.info(f"PriorityScorer initialized with parameters: {self._parameters.to_dict()}")

    @property
    def parameters(self) -> ScoringParameters:
        return self._parameters

    def update_parameters(self, parameters: ScoringParameters) -> None:
        """Publish a new parameter snapshot. Affects future scoring only."""
        self._parameters = parameters
        logger.debug(f"Scoring parameters updated: {parameters.to_dict()}")

    def score(
        self,
        risk_level: RiskLevel,
        confidence_score: float,
        patient_attributes: VitalsRecord,
        wait_so_far: Union[timedelta, float] = 0.0,
        position: int = 1,
        parameters: Optional[ScoringParameters] = None
    ) -> ScoreResult:
        """
        Compute priority score and estimated wait.

        Args:
            risk_level: Classified risk tier
            confidence_score: Classifier confidence 0-1
            patient_attributes: Normalized vitals (age is used)
            wait_so_far: Time already spent waiting (timedelta or minutes)
            position: Queue position used for the wait estimate
            parameters: Snapshot to use instead of the current one

        Returns:
            ScoreResult with finite, non-negative values
        """
        params = parameters or self._parameters
        risk_level = RiskLevel(risk_level)
        confidence = min(1.0, max(0.0, float(confidence_score)))

        base = params.base_scores[risk_level] * params.tier_weights.get(risk_level, 1.0)
        adjusted = base * (0.5 + 0.5 * confidence)

        elderly = params.elderly_boost if patient_attributes.age >= params.elderly_age_threshold else 0.0

        decay = 0.0
        if params.time_decay_enabled:
            intervals = math.floor(_minutes(wait_so_far) / params.time_decay_interval_minutes)
            decay = intervals * params.time_decay_increment

        priority = max(0.0, round(adjusted + elderly + decay, 2))

        service_minutes = params.average_service_minutes[risk_level]
        wait = self.estimate_wait(position, service_minutes)

        logger.debug(
            f"Score {risk_level.value}: base={base:.2f} adj={adjusted:.2f} "
            f"elderly={elderly:.1f} decay={decay:.1f} -> {priority:.2f}, wait={wait}min"
        )

        return ScoreResult(
            priority_score=priority,
            estimated_wait_time=wait,
            service_minutes=service_minutes,
            base_score=base,
            confidence_adjusted=adjusted,
            elderly_boost=elderly,
            time_decay=decay,
            breakdown={
                "base": round(base, 2),
                "confidence_adjusted": round(adjusted, 2),
                "elderly_boost": elderly,
                "time_decay": decay
            }
        )

    @staticmethod
    def estimate_wait(position: int, service_minutes: float) -> int:
        """Estimated wait in whole minutes for a queue position."""
        return int(round(max(position, 0) * clamp_service_minutes(service_minutes)))


def clamp_service_minutes(minutes: float) -> float:
    """Clamp a service time to [0, MAX_SERVICE_MINUTES]. NaN becomes 0."""
    minutes = float(minutes)
    if math.isnan(minutes):
        return 0.0
    return min(MAX_SERVICE_MINUTES, max(0.0, minutes))


def _minutes(wait: Union[timedelta, float]) -> float:
    if isinstance(wait, timedelta):
        minutes = wait.total_seconds() / 60
    else:
        minutes = float(wait)
    if not math.isfinite(minutes):
        return 0.0
    return max(0.0, minutes)
