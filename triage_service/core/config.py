"""
Configuration for the triage queue service.
Values are read from the environment (and a local .env file when present).
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass
class ScoringConfig:
    """Tunable rules for the priority scorer."""
    base_scores: Dict[str, float] = field(default_factory=lambda: {
        "high": 100.0,
        "medium": 50.0,
        "low": 10.0
    })
    elderly_age_threshold: int = 65
    elderly_boost: float = 10.0
    time_decay_enabled: bool = True
    time_decay_interval_minutes: float = 10.0
    time_decay_increment: float = 2.0
    average_service_minutes: Dict[str, float] = field(default_factory=lambda: {
        "high": 5.0,
        "medium": 10.0,
        "low": 15.0
    })


@dataclass
class CalibrationConfig:
    """Feedback calibration settings."""
    ema_alpha: float = 0.2
    min_samples: int = 3
    satisfaction_threshold: float = 0.5
    weight_adjustment_step: float = 0.05
    max_tier_weight: float = 1.5
    default_resource_utilization: float = 0.5
    max_tracked_patients: int = 10000
    max_wait_minutes: float = 24 * 60


class Config:
    """Service configuration loaded from environment variables."""

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8002"))
    DEBUG: bool = _env_bool("DEBUG", "false")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    CORS_ORIGINS: List[str] = [
        o.strip() for o in os.getenv(
            "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
        ).split(",") if o.strip()
    ]

    # Intake
    TEMPERATURE_UNIT: str = os.getenv("TEMPERATURE_UNIT", "C").upper()
    HIGH_RISK_ALERTS_ENABLED: bool = _env_bool("HIGH_RISK_ALERTS_ENABLED", "true")

    # Feedback archive (disabled when unset)
    FEEDBACK_ARCHIVE_URL: str = os.getenv("FEEDBACK_ARCHIVE_URL", "")

    @staticmethod
    def get_scoring_config() -> ScoringConfig:
        """Build the scorer configuration from the environment."""
        return ScoringConfig(
            base_scores={
                "high": float(os.getenv("BASE_SCORE_HIGH", "100")),
                "medium": float(os.getenv("BASE_SCORE_MEDIUM", "50")),
                "low": float(os.getenv("BASE_SCORE_LOW", "10"))
            },
            elderly_age_threshold=int(os.getenv("ELDERLY_AGE_THRESHOLD", "65")),
            elderly_boost=float(os.getenv("ELDERLY_BOOST", "10")),
            time_decay_enabled=_env_bool("TIME_DECAY_ENABLED", "true"),
            time_decay_interval_minutes=float(os.getenv("TIME_DECAY_INTERVAL_MINUTES", "10")),
            time_decay_increment=float(os.getenv("TIME_DECAY_INCREMENT", "2")),
            average_service_minutes={
                "high": float(os.getenv("SERVICE_MINUTES_HIGH", "5")),
                "medium": float(os.getenv("SERVICE_MINUTES_MEDIUM", "10")),
                "low": float(os.getenv("SERVICE_MINUTES_LOW", "15"))
            }
        )

    @staticmethod
    def get_calibration_config() -> CalibrationConfig:
        """Build the calibrator configuration from the environment."""
        return CalibrationConfig(
            ema_alpha=float(os.getenv("CALIBRATION_EMA_ALPHA", "0.2")),
            min_samples=int(os.getenv("CALIBRATION_MIN_SAMPLES", "3")),
            satisfaction_threshold=float(os.getenv("SATISFACTION_THRESHOLD", "0.5")),
            weight_adjustment_step=float(os.getenv("WEIGHT_ADJUSTMENT_STEP", "0.05")),
            max_tier_weight=float(os.getenv("MAX_TIER_WEIGHT", "1.5")),
            default_resource_utilization=float(os.getenv("DEFAULT_RESOURCE_UTILIZATION", "0.5")),
            max_wait_minutes=float(os.getenv("MAX_FEEDBACK_WAIT_MINUTES", "1440"))
        )
