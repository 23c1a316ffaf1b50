"""
Assessment, queue and feedback models for the triage queue service.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from triage_service.models.events import utc_now
from triage_service.models.vitals import VitalsRecord


class RiskLevel(str, Enum):
    """Risk tier assigned by the classifier."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def recommendations(self) -> List[str]:
        """Patient guidance shown alongside an assessment."""
        return _RECOMMENDATIONS[self]


_RECOMMENDATIONS = {
    RiskLevel.HIGH: [
        "Seek immediate medical attention",
        "Do not delay - see a healthcare provider now",
        "Monitor vital signs closely",
        "Follow up with your primary care physician"
    ],
    RiskLevel.MEDIUM: [
        "Schedule an appointment with your doctor",
        "Monitor your symptoms",
        "Consider lifestyle modifications",
        "Follow up within 1-2 weeks"
    ],
    RiskLevel.LOW: [
        "Continue regular health maintenance",
        "Schedule routine check-ups",
        "Maintain healthy lifestyle habits",
        "Monitor any changes in symptoms"
    ]
}


class Classification(BaseModel):
    """Output of a risk classifier."""
    model_config = ConfigDict(frozen=True)

    risk_level: RiskLevel
    confidence_score: float = Field(..., ge=0, le=1)
    model_version: str = "unknown"


class AssessmentResult(BaseModel):
    """
    Outcome of one submission.

    Immutable: a priority recompute produces a copy with a new priority_score
    and estimated_wait_time; classification, timestamp and vitals are kept.
    """
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    patient_id: str
    risk_level: RiskLevel
    confidence_score: float = Field(..., ge=0, le=1)
    priority_score: float = Field(..., ge=0, description="Higher = more urgent")
    estimated_wait_time: int = Field(..., ge=0, description="Minutes")
    timestamp: datetime
    vitals: VitalsRecord

    def to_response(self) -> Dict[str, Any]:
        """Return the assessment payload sent to clients."""
        return {
            "patient_id": self.patient_id,
            "risk_level": self.risk_level.value,
            "confidence_score": self.confidence_score,
            "priority_score": self.priority_score,
            "estimated_wait_time": self.estimated_wait_time,
            "timestamp": self.timestamp.isoformat(),
            "recommendations": self.risk_level.recommendations,
            "details": self.vitals.to_details()
        }


class QueueEntry(BaseModel):
    """A waiting patient. Owned by the TriageQueue."""

    patient_id: str
    assessment: AssessmentResult
    queue_position: int = Field(..., ge=1)
    service_minutes: float = Field(..., ge=0, description="Per-patient service time used for the wait estimate")
    sequence: int = Field(0, ge=0, description="Insertion order, last tie-break")

    @property
    def risk_level(self) -> RiskLevel:
        return self.assessment.risk_level

    @property
    def priority_score(self) -> float:
        return self.assessment.priority_score

    @property
    def estimated_wait_time(self) -> int:
        return self.assessment.estimated_wait_time

    @property
    def timestamp(self) -> datetime:
        return self.assessment.timestamp

    def to_summary(self) -> Dict[str, Any]:
        """Return a summary dict for queue displays."""
        return {
            "patient_id": self.patient_id,
            "risk_level": self.assessment.risk_level.value,
            "confidence_score": self.assessment.confidence_score,
            "priority_score": self.assessment.priority_score,
            "queue_position": self.queue_position,
            "estimated_wait_time": self.assessment.estimated_wait_time,
            "timestamp": self.assessment.timestamp.isoformat()
        }


class FeedbackRecord(BaseModel):
    """Observed outcome for a patient who has been seen."""
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    patient_id: str = Field(..., min_length=1)
    actual_wait_time: float = Field(..., ge=0, description="Minutes")
    satisfaction_score: float = Field(..., ge=0, le=1)
    resource_utilization: float = Field(0.5, ge=0, le=1)
    recorded_at: datetime = Field(default_factory=utc_now)
