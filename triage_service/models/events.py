"""
Event models published by the triage queue service.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class EventType(str, Enum):
    """Types of events in the system."""
    # Queue mutations
    PATIENT_QUEUED = "patient_queued"
    PATIENT_CALLED = "patient_called"
    QUEUE_CLEARED = "queue_cleared"
    PRIORITIES_UPDATED = "priorities_updated"

    # Calibration
    FEEDBACK_RECORDED = "feedback_recorded"

    # Alerts
    HIGH_RISK_ALERT = "high_risk_alert"


class QueueEvent(BaseModel):
    """Event emitted after a queue mutation or feedback."""
    id: str = Field(..., description="Unique event ID")
    event_type: EventType
    timestamp: datetime = Field(default_factory=utc_now)
    patient_id: Optional[str] = None
    queue_size: int = Field(0, ge=0)
    payload: Dict[str, Any] = Field(default_factory=dict)

    # Optional metadata
    priority: int = Field(5, ge=1, le=10, description="Event priority 1-10 (10=highest)")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "patient_id": self.patient_id,
            "queue_size": self.queue_size,
            "payload": self.payload,
            "priority": self.priority
        }
