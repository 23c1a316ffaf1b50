"""
Triage service for the triage queue service.
Wires normalizer, classifier, scorer, queue and calibrator into the
operations exposed over HTTP.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from triage_service.core.config import Config
from triage_service.core.event_bus import EventBus, create_event_id
from triage_service.core.exceptions import (
    ClassificationError,
    DuplicatePatientError,
    ValidationError,
)
from triage_service.core.triage_queue import TriageQueue
from triage_service.models.assessment import (
    AssessmentResult,
    Classification,
    FeedbackRecord,
    QueueEntry,
    RiskLevel,
)
from triage_service.models.events import EventType, QueueEvent, utc_now
from triage_service.models.vitals import VitalsRecord
from triage_service.scoring.calibration import FeedbackCalibrator, FeedbackSink
from triage_service.scoring.classifier import (
    RiskClassifier,
    RuleBasedRiskClassifier,
    validate_classification,
)
from triage_service.scoring.normalizer import VitalsNormalizer
from triage_service.scoring.priority import PriorityScorer

logger = logging.getLogger(__name__)


def generate_patient_id() -> str:
    """Generate a patient ID for anonymous submissions."""
    return f"P-{uuid.uuid4().hex[:12]}"


class TriageService:
    """
    Operation surface of the triage queue.

    A submission is validated and classified before anything is touched, so
    a failed submission leaves the queue and the calibrator unchanged.
    """

    def __init__(
        self,
        classifier: Optional[RiskClassifier] = None,
        scorer: Optional[PriorityScorer] = None,
        normalizer: Optional[VitalsNormalizer] = None,
        event_bus: Optional[EventBus] = None,
        feedback_sink: Optional[FeedbackSink] = None,
        clock: Callable[[], datetime] = utc_now,
        high_risk_alerts: Optional[bool] = None
    ):
        self.classifier = classifier or RuleBasedRiskClassifier()
        self.scorer = scorer or PriorityScorer()
        self.normalizer = normalizer or VitalsNormalizer()
        self.event_bus = event_bus or EventBus()
        self.queue = TriageQueue(self.scorer, clock=clock)
        self.calibrator = FeedbackCalibrator(self.scorer, sink=feedback_sink)
        self.feedback_sink = feedback_sink
        self.high_risk_alerts = (
            Config.HIGH_RISK_ALERTS_ENABLED if high_risk_alerts is None else high_risk_alerts
        )
        self._clock = clock

        logger.info(f"TriageService initialized (classifier={self.classifier.model_version})")

    # ========================
    # Intake
    # ========================

    async def submit_assessment(self, raw_vitals: Mapping[str, Any]) -> AssessmentResult:
        """
        Assess a patient and add them to the queue.

        Raises:
            ValidationError: bad or missing vitals, or a bad patient_id
            ClassificationError: the classifier failed; safe to retry
            DuplicatePatientError: the patient is already waiting
        """
        if not isinstance(raw_vitals, Mapping):
            raise ValidationError("Vitals must be an object")

        patient_id = self._resolve_patient_id(raw_vitals.get("patient_id"))
        if patient_id in self.queue:
            raise DuplicatePatientError(patient_id)

        vitals = self.normalizer.normalize(raw_vitals)
        classification = self._classify(vitals)

        result = self.scorer.score(
            classification.risk_level,
            classification.confidence_score,
            vitals,
            wait_so_far=0.0
        )
        assessment = AssessmentResult(
            patient_id=patient_id,
            risk_level=classification.risk_level,
            confidence_score=classification.confidence_score,
            priority_score=result.priority_score,
            estimated_wait_time=result.estimated_wait_time,
            timestamp=self._clock(),
            vitals=vitals
        )

        entry = await self.queue.insert(patient_id, assessment)
        self.calibrator.register(patient_id, entry.risk_level, entry.queue_position)

        await self._emit(
            EventType.PATIENT_QUEUED,
            patient_id=patient_id,
            payload=entry.to_summary()
        )
        if entry.risk_level == RiskLevel.HIGH and self.high_risk_alerts:
            logger.warning(
                f"High-risk patient {patient_id} queued at position {entry.queue_position}"
            )
            await self._emit(
                EventType.HIGH_RISK_ALERT,
                patient_id=patient_id,
                payload=entry.to_summary(),
                priority=10
            )

        return entry.assessment

    def _resolve_patient_id(self, value: Any) -> str:
        if value is None:
            return generate_patient_id()
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise ValidationError("patient_id must be a string", field="patient_id")
        patient_id = str(value).strip()
        if not patient_id:
            raise ValidationError("patient_id must not be empty", field="patient_id")
        return patient_id

    def _classify(self, vitals: VitalsRecord) -> Classification:
        try:
            result = self.classifier.classify(vitals)
        except ClassificationError:
            raise
        except Exception as e:
            logger.error(f"Classifier {self.classifier.model_version} failed: {e}", exc_info=True)
            raise ClassificationError(f"Risk classifier unavailable: {e}") from e

        classification = validate_classification(result)
        if classification.model_version == "unknown":
            classification = classification.model_copy(
                update={"model_version": self.classifier.model_version}
            )
        return classification

    # ========================
    # Queue operations
    # ========================

    def get_queue(self) -> List[QueueEntry]:
        """Current queue, position ascending."""
        return self.queue.list()

    async def get_next_patient(self) -> QueueEntry:
        """
        Call the next patient (removes them from the queue).

        Raises:
            EmptyQueueError: nobody is waiting
        """
        entry = await self.queue.pop_next()
        await self._emit(
            EventType.PATIENT_CALLED,
            patient_id=entry.patient_id,
            payload=entry.to_summary(),
            priority=7
        )
        return entry

    def peek_next_patient(self) -> QueueEntry:
        """Next patient without removing them. Raises EmptyQueueError."""
        return self.queue.peek_next()

    async def clear_queue(self) -> int:
        """Remove everyone from the queue. Returns the number removed."""
        removed = await self.queue.clear()
        await self._emit(EventType.QUEUE_CLEARED, payload={"removed": removed})
        return removed

    async def update_priorities(self) -> List[QueueEntry]:
        """Re-score the whole queue against current waits and calibration."""
        entries = await self.queue.recompute_all()
        await self._emit(
            EventType.PRIORITIES_UPDATED,
            payload={"queue": [entry.to_summary() for entry in entries]}
        )
        return entries

    # ========================
    # Feedback
    # ========================

    async def submit_feedback(
        self,
        patient_id: str,
        actual_wait_time: float,
        satisfaction_score: float,
        resource_utilization: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Record the observed outcome for a previously assessed patient.

        Raises:
            ValidationError: unknown patient or values out of range
        """
        if resource_utilization is None:
            resource_utilization = self.calibrator.config.default_resource_utilization

        try:
            record = FeedbackRecord(
                patient_id=patient_id,
                actual_wait_time=actual_wait_time,
                satisfaction_score=satisfaction_score,
                resource_utilization=resource_utilization,
                recorded_at=self._clock()
            )
        except PydanticValidationError as e:
            error = e.errors()[0]
            field = str(error["loc"][0]) if error.get("loc") else None
            raise ValidationError(f"{field}: {error['msg']}", field=field) from e

        # Archive writes are blocking I/O
        stats = await asyncio.to_thread(self.calibrator.record, record)

        await self._emit(
            EventType.FEEDBACK_RECORDED,
            patient_id=record.patient_id,
            payload={"tier_stats": stats.to_dict()}
        )
        return {
            "status": "recorded",
            "patient_id": record.patient_id,
            "tier_stats": stats.to_dict(),
            "parameters": self.scorer.parameters.to_dict()
        }

    # ========================
    # Monitoring
    # ========================

    def get_stats(self) -> Dict[str, Any]:
        """Queue statistics plus the calibration snapshot."""
        return {
            "queue": self.queue.get_queue_stats(),
            "calibration": self.calibrator.snapshot(),
            "classifier": self.classifier.model_version,
            "high_risk_alerts": self.high_risk_alerts
        }

    async def _emit(
        self,
        event_type: EventType,
        patient_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
        priority: int = 5
    ) -> None:
        event = QueueEvent(
            id=create_event_id(),
            event_type=event_type,
            timestamp=self._clock(),
            patient_id=patient_id,
            queue_size=len(self.queue),
            payload=payload or {},
            priority=priority
        )
        await self.event_bus.publish(event)


# Singleton instance
_triage_service: Optional[TriageService] = None


def get_triage_service() -> TriageService:
    """Get the singleton triage service instance."""
    global _triage_service
    if _triage_service is None:
        sink = None
        if Config.FEEDBACK_ARCHIVE_URL:
            from triage_service.db.feedback_archive import FeedbackArchive
            sink = FeedbackArchive(Config.FEEDBACK_ARCHIVE_URL)
        _triage_service = TriageService(feedback_sink=sink)
    return _triage_service


def reset_triage_service() -> None:
    """Drop the singleton so the next call builds a fresh service."""
    global _triage_service
    _triage_service = None
