"""
Risk classification for the triage queue service.

The queue and scorer depend only on RiskClassifier.classify(); any
implementation (rule based, statistical or learned) can be swapped in.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Dict, List, Tuple

from triage_service.core.exceptions import ClassificationError
from triage_service.models.assessment import Classification, RiskLevel
from triage_service.models.vitals import VitalsRecord

logger = logging.getLogger(__name__)


class RiskClassifier(ABC):
    """Capability boundary: VitalsRecord -> (risk_level, confidence_score)."""

    model_version: str = "unknown"

    @abstractmethod
    def classify(self, vitals: VitalsRecord) -> Classification:
        """
        Classify a normalized vitals record.

        Must be deterministic for a fixed model version.

        Raises:
            ClassificationError: the model is unavailable or cannot score the input
        """
        pass


def validate_classification(result: object) -> Classification:
    """
    Check a classifier result before it reaches the scorer.

    Accepts a Classification or a (risk_level, confidence) pair.

    Raises:
        ClassificationError: unknown tier or confidence outside [0, 1]
    """
    if isinstance(result, Classification):
        return result

    try:
        risk_level, confidence = result  # type: ignore[misc]
        confidence = float(confidence)
    except (TypeError, ValueError) as e:
        raise ClassificationError(f"Classifier returned an invalid result: {result!r}") from e

    try:
        risk_level = RiskLevel(risk_level)
    except ValueError as e:
        raise ClassificationError(f"Classifier returned unknown risk level: {risk_level!r}") from e

    if not math.isfinite(confidence) or not 0.0 <= confidence <= 1.0:
        raise ClassificationError(f"Classifier returned confidence out of range: {confidence!r}")

    return Classification(risk_level=risk_level, confidence_score=confidence)


# (upper bound inclusive, points); the last band catches everything above
Bands = List[Tuple[float, int]]

RESPIRATORY_RATE_BANDS: Bands = [(8, 3), (11, 1), (20, 0), (24, 2), (math.inf, 3)]
OXYGEN_SATURATION_BANDS: Bands = [(91, 3), (93, 2), (95, 1), (math.inf, 0)]
SYSTOLIC_BANDS: Bands = [(90, 3), (100, 2), (110, 1), (219, 0), (math.inf, 3)]
HEART_RATE_BANDS: Bands = [(40, 3), (50, 1), (90, 0), (110, 1), (130, 2), (math.inf, 3)]
TEMPERATURE_BANDS: Bands = [(35.0, 3), (36.0, 1), (38.0, 0), (39.0, 1), (math.inf, 2)]


def _band_points(value: float, bands: Bands) -> int:
    for upper, points in bands:
        if value <= upper:
            return points
    return bands[-1][1]


class RuleBasedRiskClassifier(RiskClassifier):
    """
    Early-warning style classifier.

    Each vital is scored against banded thresholds and the points are summed:
    0-4 low, 5-6 medium, 7+ high. A single vital scoring 3 lifts a low total
    to medium. Confidence grows with the distance of the total from the
    nearest tier boundary.
    """

    model_version = "rules-1.0"

    def __init__(
        self,
        medium_threshold: int = 5,
        high_threshold: int = 7,
        hypotension_map: float = 65.0
    ):
        self.medium_threshold = medium_threshold
        self.high_threshold = high_threshold
        self.hypotension_map = hypotension_map

    def score_components(self, vitals: VitalsRecord) -> Dict[str, int]:
        """Return the points contributed by each vital."""
        components = {
            "respiratory_rate": _band_points(vitals.respiratory_rate, RESPIRATORY_RATE_BANDS),
            "oxygen_saturation": _band_points(vitals.oxygen_saturation, OXYGEN_SATURATION_BANDS),
            "systolic_blood_pressure": _band_points(vitals.systolic_blood_pressure, SYSTOLIC_BANDS),
            "heart_rate": _band_points(vitals.heart_rate, HEART_RATE_BANDS),
            "body_temperature": _band_points(vitals.body_temperature, TEMPERATURE_BANDS),
            "mean_arterial_pressure": 2 if vitals.mean_arterial_pressure < self.hypotension_map else 0
        }
        return components

    def classify(self, vitals: VitalsRecord) -> Classification:
        components = self.score_components(vitals)
        total = sum(components.values())
        red_flag = any(points >= 3 for points in components.values())

        if total >= self.high_threshold:
            risk_level = RiskLevel.HIGH
        elif total >= self.medium_threshold or red_flag:
            risk_level = RiskLevel.MEDIUM
        else:
            risk_level = RiskLevel.LOW

        if risk_level == RiskLevel.MEDIUM and total < self.medium_threshold:
            # Lifted by a single extreme vital
            confidence = 0.7
        else:
            boundaries = (self.medium_threshold - 0.5, self.high_threshold - 0.5)
            distance = min(abs(total - b) for b in boundaries)
            confidence = min(0.99, 0.55 + 0.1 * distance)

        logger.debug(f"Rule score {total} {components} -> {risk_level.value} ({confidence:.2f})")

        return Classification(
            risk_level=risk_level,
            confidence_score=round(confidence, 3),
            model_version=self.model_version
        )
