"""
Triage queue for the triage queue service.
Ordered collection of waiting patients, ranked by priority score.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple, Any

from triage_service.core.exceptions import DuplicatePatientError, EmptyQueueError, ValidationError
from triage_service.models.assessment import AssessmentResult, QueueEntry, RiskLevel
from triage_service.models.events import utc_now
from triage_service.scoring.priority import PriorityScorer

logger = logging.getLogger(__name__)

# Published state: entries in position order plus an index by patient id
_State = Tuple[Tuple[QueueEntry, ...], Dict[str, QueueEntry]]


def _rank_key(entry: QueueEntry) -> Tuple[float, datetime, int]:
    """Higher score first, then earlier submission, then insertion order."""
    return (-entry.assessment.priority_score, entry.assessment.timestamp, entry.sequence)


class TriageQueue:
    """
    Priority queue of waiting patients.

    Mutations (insert, pop_next, recompute_all, clear) run under an
    asyncio.Lock and publish a new immutable state in a single assignment.
    Reads never take the lock; they always see a fully renumbered state.

    Invariants after every mutation:
    - positions are exactly 1..N
    - patient ids are unique
    - order is priority desc, submission time asc
    """

    def __init__(
        self,
        scorer: PriorityScorer,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Args:
            scorer: Scorer used for recomputes and wait estimates
            clock: Source of the current time
        """
        self.scorer = scorer
        self._clock = clock
        self._state: _State = ((), {})
        self._lock = asyncio.Lock()
        self._sequence = 0
        self._last_recomputed: Optional[datetime] = None

        logger.info("TriageQueue initialized")

    # ========================
    # Mutations
    # ========================

    async def insert(self, patient_id: str, assessment: AssessmentResult) -> QueueEntry:
        """
        Add a patient to the queue.

        Returns:
            The stored entry, with its position and wait estimate

        Raises:
            DuplicatePatientError: the patient is already waiting
            ValidationError: patient_id is empty or does not match the assessment
        """
        if not patient_id:
            raise ValidationError("patient_id is required", field="patient_id")
        if assessment.patient_id != patient_id:
            raise ValidationError(
                f"Assessment belongs to {assessment.patient_id}, not {patient_id}",
                field="patient_id"
            )

        async with self._lock:
            entries, index = self._state
            if patient_id in index:
                logger.warning(f"Rejected duplicate patient: {patient_id}")
                raise DuplicatePatientError(patient_id)

            self._sequence += 1
            service_minutes = self.scorer.parameters.average_service_minutes[assessment.risk_level]
            entry = QueueEntry(
                patient_id=patient_id,
                assessment=assessment,
                queue_position=len(entries) + 1,
                service_minutes=service_minutes,
                sequence=self._sequence
            )

            ranked = sorted(entries + (entry,), key=_rank_key)
            self._publish(self._renumber(ranked))
            stored = self._state[1][patient_id]

            logger.info(
                f"Queued patient {patient_id} ({assessment.risk_level.value}, "
                f"score {assessment.priority_score:.2f}) at position {stored.queue_position}"
            )
            return stored.model_copy()

    async def pop_next(self) -> QueueEntry:
        """
        Remove and return the position-1 entry, renumbering the rest.

        Raises:
            EmptyQueueError: nobody is waiting
        """
        async with self._lock:
            entries, _ = self._state
            if not entries:
                raise EmptyQueueError()

            head, rest = entries[0], list(entries[1:])
            self._publish(self._renumber(rest))

            logger.info(f"Called patient {head.patient_id}; {len(rest)} remaining")
            return head.model_copy()

    async def recompute_all(self) -> List[QueueEntry]:
        """
        Re-score every entry against its current wait and re-rank.

        With no elapsed decay interval and no calibration change in between,
        calling this twice yields identical scores and ordering.
        """
        async with self._lock:
            entries, _ = self._state
            now = self._clock()
            params = self.scorer.parameters

            rescored = []
            for entry in entries:
                result = self.scorer.score(
                    entry.assessment.risk_level,
                    entry.assessment.confidence_score,
                    entry.assessment.vitals,
                    wait_so_far=now - entry.assessment.timestamp,
                    position=entry.queue_position,
                    parameters=params
                )
                assessment = entry.assessment.model_copy(
                    update={"priority_score": result.priority_score}
                )
                rescored.append(entry.model_copy(
                    update={"assessment": assessment, "service_minutes": result.service_minutes}
                ))

            self._publish(self._renumber(sorted(rescored, key=_rank_key)))
            self._last_recomputed = now

            logger.info(f"Recomputed priorities for {len(rescored)} patients")
            return self.list()

    async def clear(self) -> int:
        """Remove every entry. Returns the number removed."""
        async with self._lock:
            removed = len(self._state[0])
            self._publish(())
            logger.info(f"Queue cleared ({removed} patients removed)")
            return removed

    # ========================
    # Reads
    # ========================

    def peek_next(self) -> QueueEntry:
        """
        Return the position-1 entry without removing it.

        Raises:
            EmptyQueueError: nobody is waiting
        """
        entries, _ = self._state
        if not entries:
            raise EmptyQueueError()
        return entries[0].model_copy()

    def list(self) -> List[QueueEntry]:
        """Snapshot of the queue, position ascending."""
        entries, _ = self._state
        return [entry.model_copy() for entry in entries]

    def get(self, patient_id: str) -> Optional[QueueEntry]:
        """Get a waiting patient by ID."""
        entry = self._state[1].get(patient_id)
        return entry.model_copy() if entry else None

    def __len__(self) -> int:
        return len(self._state[0])

    def __contains__(self, patient_id: object) -> bool:
        return patient_id in self._state[1]

    @property
    def last_recomputed(self) -> Optional[datetime]:
        return self._last_recomputed

    def get_queue_stats(self) -> Dict[str, Any]:
        """Summary figures for the queue dashboard."""
        entries, _ = self._state
        by_risk = {level.value: 0 for level in RiskLevel}
        for entry in entries:
            by_risk[entry.assessment.risk_level.value] += 1

        total = len(entries)
        return {
            "total": total,
            "by_risk": by_risk,
            "high_risk": by_risk[RiskLevel.HIGH.value],
            "average_wait_minutes": (
                round(sum(e.assessment.estimated_wait_time for e in entries) / total)
                if total else 0
            ),
            "average_confidence": (
                round(sum(e.assessment.confidence_score for e in entries) / total, 3)
                if total else 0.0
            ),
            "last_recomputed": self._last_recomputed.isoformat() if self._last_recomputed else None
        }

    # ========================
    # Internals
    # ========================

    def _renumber(self, ranked: List[QueueEntry]) -> Tuple[QueueEntry, ...]:
        """Assign positions 1..N, refreshing the wait estimate of any entry that moved."""
        renumbered = []
        for position, entry in enumerate(ranked, start=1):
            wait = self.scorer.estimate_wait(position, entry.service_minutes)
            if entry.queue_position != position or entry.assessment.estimated_wait_time != wait:
                assessment = entry.assessment.model_copy(update={"estimated_wait_time": wait})
                entry = entry.model_copy(update={"queue_position": position, "assessment": assessment})
            renumbered.append(entry)
        return tuple(renumbered)

    def _publish(self, entries: Tuple[QueueEntry, ...]) -> None:
        self._state = (entries, {entry.patient_id: entry for entry in entries})
