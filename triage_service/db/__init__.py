"""
Database package for the triage queue service.
"""

from .connection import Base, create_db_engine, init_db, session_scope
from .feedback_archive import FeedbackArchive, FeedbackArchiveRow

__all__ = [
    "Base",
    "create_db_engine",
    "init_db",
    "session_scope",
    "FeedbackArchive",
    "FeedbackArchiveRow"
]
