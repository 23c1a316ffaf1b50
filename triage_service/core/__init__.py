"""
Core package for the triage queue service.

TriageQueue and TriageService live in their own modules
(core.triage_queue, core.triage_service) since they depend on scoring.
"""

from .config import Config, ScoringConfig, CalibrationConfig
from .event_bus import EventBus, create_event_id
from .exceptions import (
    TriageError,
    ValidationError,
    DuplicatePatientError,
    EmptyQueueError,
    ClassificationError
)

__all__ = [
    "Config",
    "ScoringConfig",
    "CalibrationConfig",
    "EventBus",
    "create_event_id",
    "TriageError",
    "ValidationError",
    "DuplicatePatientError",
    "EmptyQueueError",
    "ClassificationError"
]
