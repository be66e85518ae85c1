"""
Runtime configuration for the office scheduler.

Values are read once from the environment (a local ``.env`` is honoured).
Services take explicit arguments and only fall back to these constants.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

load_dotenv()

# Office identity
DEFAULT_OFFICE_ID = os.getenv("OFFICE_DEFAULT_ID", "B-1")
VIRTUAL_OFFICE_ID = os.getenv("OFFICE_VIRTUAL_ID", "A-v")

# Practice calendar
PRACTICE_TIMEZONE = os.getenv("PRACTICE_TIMEZONE", "America/New_York")
BUSINESS_START_HOUR = int(os.getenv("BUSINESS_START_HOUR", "9"))
BUSINESS_END_HOUR = int(os.getenv("BUSINESS_END_HOUR", "17"))
SLOT_MINUTES = int(os.getenv("SLOT_MINUTES", "60"))

# Alerting
CAPACITY_ALERT_THRESHOLD = float(os.getenv("CAPACITY_ALERT_THRESHOLD", "0.9"))
HIGH_UTILIZATION_THRESHOLD = float(os.getenv("HIGH_UTILIZATION_THRESHOLD", "0.8"))

# Snapshot cache (seconds)
CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "60"))
MIN_CACHE_TTL_SECONDS = 30
MAX_CACHE_TTL_SECONDS = 300


class SummaryConfig(BaseModel):
    """Knobs for the daily utilization / alert aggregation."""

    business_start_hour: int = Field(default=BUSINESS_START_HOUR, ge=0, le=23)
    business_end_hour: int = Field(default=BUSINESS_END_HOUR, ge=1, le=24)
    slot_minutes: int = Field(default=SLOT_MINUTES, ge=5, le=480)
    capacity_alert_threshold: float = Field(default=CAPACITY_ALERT_THRESHOLD, gt=0)
    high_utilization_threshold: float = Field(default=HIGH_UTILIZATION_THRESHOLD, gt=0)
    timezone: str = Field(default=PRACTICE_TIMEZONE, description="IANA zone of the practice")

    @model_validator(mode='after')
    def validate_hours(self):
        if self.business_end_hour <= self.business_start_hour:
            raise ValueError("Business end hour must be after start hour")
        if self.window_minutes < self.slot_minutes:
            raise ValueError("Business window is shorter than a single slot")
        return self

    @property
    def window_minutes(self) -> int:
        return (self.business_end_hour - self.business_start_hour) * 60

    @property
    def total_slots(self) -> int:
        """Number of whole fixed-length slots inside business hours."""
        return self.window_minutes // self.slot_minutes
