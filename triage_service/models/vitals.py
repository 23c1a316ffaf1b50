"""
Vital sign models for the triage queue service.
"""

from enum import Enum
from typing import Any, Dict

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class Gender(int, Enum):
    """Gender as encoded by the intake form."""
    MALE = 0
    FEMALE = 1


def _alias(name: str, wire: str) -> AliasChoices:
    return AliasChoices(name, wire)


def _reject_bool(value: Any) -> Any:
    # bool is an int subclass and would pass as 1.0 or 0.0
    if isinstance(value, bool):
        raise ValueError("Input should be a number, not a boolean")
    return value


class VitalsInput(BaseModel):
    """
    Raw vital signs as submitted by a client.

    Accepts snake_case keys or the intake form keys (Heart_Rate, Weight_kg, ...).
    Bounds are the physiologically plausible ranges accepted at intake.
    """
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    heart_rate: float = Field(
        ..., ge=20, le=300, description="BPM",
        validation_alias=_alias("heart_rate", "Heart_Rate"))
    respiratory_rate: float = Field(
        ..., ge=4, le=80, description="Breaths/min",
        validation_alias=_alias("respiratory_rate", "Respiratory_Rate"))
    body_temperature: float = Field(
        ..., ge=25, le=45, description="Celsius",
        validation_alias=_alias("body_temperature", "Body_Temperature"))
    oxygen_saturation: float = Field(
        ..., ge=0, le=100, description="SpO2 %",
        validation_alias=_alias("oxygen_saturation", "Oxygen_Saturation"))
    systolic_blood_pressure: float = Field(
        ..., ge=40, le=300, description="mmHg",
        validation_alias=_alias("systolic_blood_pressure", "Systolic_Blood_Pressure"))
    diastolic_blood_pressure: float = Field(
        ..., ge=20, le=200, description="mmHg",
        validation_alias=_alias("diastolic_blood_pressure", "Diastolic_Blood_Pressure"))
    age: float = Field(
        ..., ge=0, le=130, description="Years",
        validation_alias=_alias("age", "Age"))
    gender: Gender = Field(
        Gender.MALE,
        validation_alias=_alias("gender", "Gender"))
    weight_kg: float = Field(
        ..., ge=1, le=500, description="Kilograms",
        validation_alias=AliasChoices("weight_kg", "weight", "Weight_kg"))
    height_m: float = Field(
        ..., ge=0.3, le=2.75, description="Metres",
        validation_alias=AliasChoices("height_m", "height", "Height_m"))
    derived_hrv: float = Field(
        45.0, ge=0, le=500, description="Heart rate variability, ms",
        validation_alias=_alias("derived_hrv", "Derived_HRV"))

    @field_validator("*", mode="before")
    @classmethod
    def reject_booleans(cls, value: Any) -> Any:
        return _reject_bool(value)

    @field_validator("body_temperature", mode="before")
    @classmethod
    def convert_temperature(cls, value: Any, info: ValidationInfo) -> Any:
        """Convert Fahrenheit readings to Celsius when the intake unit is F."""
        _reject_bool(value)
        unit = (info.context or {}).get("temperature_unit", "C")
        if unit != "F":
            return value
        try:
            return (float(value) - 32.0) * 5.0 / 9.0
        except (TypeError, ValueError):
            return value

    @classmethod
    def field_for_key(cls, key: str) -> str:
        """Map a snake_case or wire key back to its canonical field name."""
        for name, info in cls.model_fields.items():
            alias = info.validation_alias
            if key == name or (isinstance(alias, AliasChoices) and key in alias.choices):
                return name
        return key


class VitalsRecord(BaseModel):
    """Immutable snapshot of one submission, including derived clinical metrics."""
    model_config = ConfigDict(frozen=True)

    heart_rate: float
    respiratory_rate: float
    body_temperature: float
    oxygen_saturation: float
    systolic_blood_pressure: float
    diastolic_blood_pressure: float
    age: float
    gender: Gender = Gender.MALE
    weight_kg: float
    height_m: float
    derived_hrv: float = 45.0

    # Derived
    bmi: float
    pulse_pressure: float
    mean_arterial_pressure: float

    @property
    def blood_pressure(self) -> str:
        """Return formatted blood pressure string."""
        return f"{self.systolic_blood_pressure:.0f}/{self.diastolic_blood_pressure:.0f}"

    def to_details(self) -> Dict[str, float]:
        """Return the details block shown with an assessment result."""
        return {
            "heart_rate": self.heart_rate,
            "respiratory_rate": self.respiratory_rate,
            "body_temperature": self.body_temperature,
            "oxygen_saturation": self.oxygen_saturation,
            "systolic_blood_pressure": self.systolic_blood_pressure,
            "diastolic_blood_pressure": self.diastolic_blood_pressure,
            "age": self.age,
            "gender": int(self.gender),
            "weight": self.weight_kg,
            "height": self.height_m,
            "derived_hrv": self.derived_hrv,
            "derived_pulse_pressure": self.pulse_pressure,
            "derived_bmi": self.bmi,
            "derived_map": self.mean_arterial_pressure
        }
