"""
Models package for the triage queue service.
"""

from .vitals import (
    Gender,
    VitalsInput,
    VitalsRecord
)

from .assessment import (
    RiskLevel,
    Classification,
    AssessmentResult,
    QueueEntry,
    FeedbackRecord
)

from .events import (
    EventType,
    QueueEvent
)

__all__ = [
    # Vitals
    "Gender",
    "VitalsInput",
    "VitalsRecord",

    # Assessment
    "RiskLevel",
    "Classification",
    "AssessmentResult",
    "QueueEntry",
    "FeedbackRecord",

    # Events
    "EventType",
    "QueueEvent"
]
