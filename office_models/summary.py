"""
Output models of the Daily Assignment / Summary Service.
"""

from datetime import date as date_type
from enum import Enum
from typing import Dict, List

from pydantic import Field, ConfigDict

from .base import CamelModel, OfficeId
from .scheduling import AppointmentRecord, SchedulingConflict


class AlertSeverity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AlertType(str, Enum):
    CAPACITY = "capacity"
    SCHEDULING = "scheduling"
    ACCESSIBILITY = "accessibility"
    ASSIGNMENT = "assignment"


class Alert(CamelModel):
    type: AlertType
    message: str
    severity: AlertSeverity


class OfficeUtilization(CamelModel):
    total_slots: int = Field(ge=1)
    booked_slots: int = Field(default=0, ge=0)
    special_notes: List[str] = Field(default_factory=list)

    @property
    def utilization(self) -> float:
        return self.booked_slots / self.total_slots


class DailyScheduleSummary(CamelModel):
    date: date_type
    appointments: List[AppointmentRecord] = Field(default_factory=list)
    conflicts: List[SchedulingConflict] = Field(default_factory=list)
    alerts: List[Alert] = Field(default_factory=list)
    office_utilization: Dict[OfficeId, OfficeUtilization] = Field(default_factory=dict)

    def alerts_by_severity(self, severity: AlertSeverity) -> List[Alert]:
        return [a for a in self.alerts if a.severity == severity]

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "date": "2025-01-15",
            "appointments": [],
            "conflicts": [],
            "alerts": [
                {"type": "capacity", "message": "Office B-1 is near capacity (>90% booked)", "severity": "medium"}
            ],
            "officeUtilization": {
                "B-1": {"totalSlots": 8, "bookedSlots": 8, "specialNotes": ["Critical capacity warning"]}
            }
        }
    })
