"""
Error taxonomy for the triage queue service.
"""

from typing import Optional


class TriageError(Exception):
    """Base class for all triage service errors."""
    retryable: bool = False


class ValidationError(TriageError):
    """Bad input. Nothing was changed; the caller must correct and resubmit."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field
        self.message = message

    def to_dict(self) -> dict:
        return {"error": "validation_error", "field": self.field, "message": self.message}


class DuplicatePatientError(TriageError):
    """The patient is already waiting in the queue."""

    def __init__(self, patient_id: str):
        super().__init__(f"Patient {patient_id} is already in the queue")
        self.patient_id = patient_id


class EmptyQueueError(TriageError):
    """The queue has no waiting patients."""

    def __init__(self, message: str = "The queue is empty"):
        super().__init__(message)


class ClassificationError(TriageError):
    """The risk classifier failed or returned an invalid result.

    Raised before any queue mutation, so the submission can be retried.
    """
    retryable = True
