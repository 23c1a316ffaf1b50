"""
Shared fixtures for the triage queue service tests.
"""

from datetime import datetime, timedelta
from typing import Any, Dict

import pytest

from triage_service.core.config import CalibrationConfig, ScoringConfig
from triage_service.core.triage_service import TriageService
from triage_service.models.assessment import AssessmentResult, RiskLevel
from triage_service.scoring.classifier import RiskClassifier
from triage_service.scoring.normalizer import VitalsNormalizer
from triage_service.scoring.priority import PriorityScorer, ScoringParameters


NORMAL_VITALS: Dict[str, Any] = {
    "Heart_Rate": 75,
    "Respiratory_Rate": 16,
    "Body_Temperature": 37.0,
    "Oxygen_Saturation": 98,
    "Systolic_Blood_Pressure": 120,
    "Diastolic_Blood_Pressure": 80,
    "Age": 40,
    "Gender": 0,
    "Weight_kg": 70,
    "Height_m": 1.75,
    "Derived_HRV": 45.0
}

CRITICAL_VITALS: Dict[str, Any] = {
    **NORMAL_VITALS,
    "Heart_Rate": 135,
    "Respiratory_Rate": 30,
    "Body_Temperature": 39.5,
    "Oxygen_Saturation": 88,
    "Systolic_Blood_Pressure": 85,
    "Diastolic_Blood_Pressure": 55
}


class FakeClock:
    """Controllable clock."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += timedelta(minutes=minutes)


class StubClassifier(RiskClassifier):
    """Returns whatever result is queued up; raises if given an exception."""

    model_version = "stub-1"

    def __init__(self, result=(RiskLevel.LOW, 0.9)):
        self.result = result
        self.calls = 0

    def classify(self, vitals):
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture
def vitals_factory():
    """Build a raw submission from normal vitals plus overrides."""
    def _make(**overrides) -> Dict[str, Any]:
        raw = dict(NORMAL_VITALS)
        raw.update(overrides)
        return raw
    return _make


@pytest.fixture
def critical_vitals() -> Dict[str, Any]:
    return dict(CRITICAL_VITALS)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scoring_parameters() -> ScoringParameters:
    return ScoringParameters.from_config(ScoringConfig())


@pytest.fixture
def scorer(scoring_parameters) -> PriorityScorer:
    return PriorityScorer(scoring_parameters)


@pytest.fixture
def calibration_config() -> CalibrationConfig:
    return CalibrationConfig()


@pytest.fixture
def normalizer() -> VitalsNormalizer:
    return VitalsNormalizer(temperature_unit="C")


@pytest.fixture
def stub_classifier() -> StubClassifier:
    return StubClassifier()


@pytest.fixture
def make_assessment(normalizer, scorer, clock):
    """Build an AssessmentResult directly, bypassing classification."""
    def _make(
        patient_id: str,
        risk_level: RiskLevel = RiskLevel.LOW,
        confidence: float = 0.9,
        age: float = 40,
        timestamp: datetime = None
    ) -> AssessmentResult:
        vitals = normalizer.normalize({**NORMAL_VITALS, "Age": age})
        result = scorer.score(risk_level, confidence, vitals)
        return AssessmentResult(
            patient_id=patient_id,
            risk_level=risk_level,
            confidence_score=confidence,
            priority_score=result.priority_score,
            estimated_wait_time=result.estimated_wait_time,
            timestamp=timestamp or clock(),
            vitals=vitals
        )
    return _make


@pytest.fixture
def service(scorer, normalizer, clock) -> TriageService:
    """Service with the rule-based classifier and a fixed clock."""
    return TriageService(
        scorer=scorer,
        normalizer=normalizer,
        clock=clock,
        high_risk_alerts=True
    )


@pytest.fixture
def stub_service(scorer, normalizer, clock, stub_classifier) -> TriageService:
    """Service whose classification is controlled by the test."""
    return TriageService(
        classifier=stub_classifier,
        scorer=scorer,
        normalizer=normalizer,
        clock=clock,
        high_risk_alerts=True
    )
