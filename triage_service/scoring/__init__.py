"""
Scoring package: normalization, classification, prioritization, calibration.
"""

from .normalizer import VitalsNormalizer, normalize
from .classifier import RiskClassifier, RuleBasedRiskClassifier, validate_classification
from .priority import PriorityScorer, ScoringParameters, ScoreResult
from .calibration import FeedbackCalibrator, TierStats

__all__ = [
    "VitalsNormalizer",
    "normalize",
    "RiskClassifier",
    "RuleBasedRiskClassifier",
    "validate_classification",
    "PriorityScorer",
    "ScoringParameters",
    "ScoreResult",
    "FeedbackCalibrator",
    "TierStats"
]
