"""
Feedback archive: durable record of accepted feedback.
"""

import logging
from typing import Any, Dict, List

from sqlalchemy import Column, DateTime, Float, Integer, String

from triage_service.db.connection import Base, init_db, session_scope
from triage_service.models.assessment import FeedbackRecord, RiskLevel

logger = logging.getLogger(__name__)


class FeedbackArchiveRow(Base):
    """One accepted feedback record."""
    __tablename__ = "feedback_archive"

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(String(64), nullable=False, index=True)
    risk_level = Column(String(16), nullable=False)
    actual_wait_time = Column(Float, nullable=False)
    satisfaction_score = Column(Float, nullable=False)
    resource_utilization = Column(Float, nullable=False)
    recorded_at = Column(DateTime, nullable=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patient_id": self.patient_id,
            "risk_level": self.risk_level,
            "actual_wait_time": self.actual_wait_time,
            "satisfaction_score": self.satisfaction_score,
            "resource_utilization": self.resource_utilization,
            "recorded_at": self.recorded_at.isoformat()
        }


class FeedbackArchive:
    """Stores feedback rows via SQLAlchemy. Used as the calibrator's sink."""

    def __init__(self, database_url: str):
        self._session_factory = init_db(database_url)

    def archive(self, record: FeedbackRecord, risk_level: RiskLevel) -> None:
        with session_scope(self._session_factory) as db:
            db.add(FeedbackArchiveRow(
                patient_id=record.patient_id,
                risk_level=RiskLevel(risk_level).value,
                actual_wait_time=record.actual_wait_time,
                satisfaction_score=record.satisfaction_score,
                resource_utilization=record.resource_utilization,
                recorded_at=record.recorded_at
            ))
        logger.debug(f"Archived feedback for {record.patient_id}")

    def recent(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent feedback first."""
        with session_scope(self._session_factory) as db:
            rows = (
                db.query(FeedbackArchiveRow)
                .order_by(FeedbackArchiveRow.recorded_at.desc(), FeedbackArchiveRow.id.desc())
                .limit(limit)
                .all()
            )
            return [row.to_dict() for row in rows]
