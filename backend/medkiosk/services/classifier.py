"""
Rule-based classification of kiosk sensor readings.

The classifier is a pure function over one reading; the ingestion pipeline
accepts any callable with the same signature, so a trained model can replace
the rules without touching the session core.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from medkiosk.models.kiosk_session import DiagnosisLabel


@dataclass(frozen=True)
class Reading:
    """One sensor sample as uploaded by a kiosk"""
    bpm: Any
    spo2: Any
    temperature: Any
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def numeric(self, name: str) -> Optional[float]:
        """Return the named vital as a finite float, or None when it is not numeric"""
        return _as_number(getattr(self, name))


Classifier = Callable[[Reading], DiagnosisLabel]


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def classify_reading(reading: Reading) -> DiagnosisLabel:
    """
    Predict a label from a single reading.

    Disease A: fever with low SpO2 and elevated heart rate
    (temperature >= 37.8, spo2 < 95, bpm > 90).
    Disease B: low temperature with normal SpO2 and slow heart rate
    (temperature <= 36.0, spo2 >= 96, bpm < 70).
    Zero or non-numeric vitals are never classified.
    """
    bpm = reading.numeric("bpm")
    spo2 = reading.numeric("spo2")
    temperature = reading.numeric("temperature")

    if bpm is None or spo2 is None or temperature is None:
        return DiagnosisLabel.UNDETERMINED
    if bpm == 0 or spo2 == 0 or temperature == 0:
        return DiagnosisLabel.UNDETERMINED

    if temperature >= 37.8 and spo2 < 95 and bpm > 90:
        return DiagnosisLabel.DISEASE_A
    if temperature <= 36.0 and spo2 >= 96 and bpm < 70:
        return DiagnosisLabel.DISEASE_B

    return DiagnosisLabel.UNDETERMINED
