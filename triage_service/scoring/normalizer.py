"""
Vitals normalization for the triage queue service.
Validates raw intake data and computes derived clinical metrics.
"""

import logging
from typing import Any, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from triage_service.core.config import Config
from triage_service.core.exceptions import ValidationError
from triage_service.models.vitals import VitalsInput, VitalsRecord

logger = logging.getLogger(__name__)


class VitalsNormalizer:
    """
    Turns raw submissions into immutable VitalsRecords.

    Derived metrics:
    - BMI = weight_kg / height_m^2
    - pulse pressure = systolic - diastolic
    - mean arterial pressure = diastolic + pulse pressure / 3

    Derived values sent by the client are ignored and recomputed.
    """

    def __init__(self, temperature_unit: Optional[str] = None):
        """
        Args:
            temperature_unit: "C" or "F"; defaults to config
        """
        unit = (temperature_unit or Config.TEMPERATURE_UNIT).upper()
        if unit not in ("C", "F"):
            raise ValueError(f"Unsupported temperature unit: {unit}")
        self.temperature_unit = unit

    def normalize(self, raw: Mapping[str, Any]) -> VitalsRecord:
        """
        Validate raw vitals and build a VitalsRecord.

        Raises:
            ValidationError: a field is missing, non-numeric or out of bounds,
                or diastolic pressure exceeds systolic
        """
        if not isinstance(raw, Mapping):
            raise ValidationError("Vitals must be an object", field=None)

        try:
            vitals = VitalsInput.model_validate(
                dict(raw), context={"temperature_unit": self.temperature_unit}
            )
        except PydanticValidationError as e:
            error = e.errors()[0]
            key = str(error["loc"][0]) if error.get("loc") else None
            field = VitalsInput.field_for_key(key) if key else None
            message = f"{field}: {error['msg']}" if field else error["msg"]
            logger.warning(f"Rejected vitals: {message}")
            raise ValidationError(message, field=field) from e

        pulse_pressure = vitals.systolic_blood_pressure - vitals.diastolic_blood_pressure
        if pulse_pressure < 0:
            logger.warning("Rejected vitals: diastolic above systolic")
            raise ValidationError(
                "diastolic_blood_pressure: must not exceed systolic_blood_pressure",
                field="diastolic_blood_pressure"
            )

        bmi = vitals.weight_kg / (vitals.height_m ** 2)
        mean_arterial_pressure = vitals.diastolic_blood_pressure + pulse_pressure / 3

        return VitalsRecord(
            **vitals.model_dump(),
            bmi=round(bmi, 1),
            pulse_pressure=round(pulse_pressure, 1),
            mean_arterial_pressure=round(mean_arterial_pressure, 1)
        )


def normalize(raw: Mapping[str, Any]) -> VitalsRecord:
    """Normalize with the configured temperature unit."""
    return VitalsNormalizer().normalize(raw)
