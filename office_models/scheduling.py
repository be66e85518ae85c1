"""
Demand and decision models: scheduling requests, appointment records,
conflicts and assignment results.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator, model_validator, ConfigDict

from .base import CamelModel, OfficeId, ensure_aware


class SessionType(str, Enum):
    """Category of appointment; drives suitability and relocation priority."""
    IN_PERSON = "in-person"
    TELEHEALTH = "telehealth"
    GROUP = "group"
    FAMILY = "family"

    @classmethod
    def from_service_name(cls, service_name: str) -> "SessionType":
        """Map an upstream service name ("Telehealth Intake", "Group DBT") to a session type."""
        name = (service_name or "").lower()
        if any(token in name for token in ("telehealth", "virtual", "remote", "video")):
            return cls.TELEHEALTH
        if "group" in name:
            return cls.GROUP
        if "family" in name:
            return cls.FAMILY
        return cls.IN_PERSON


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"

    @classmethod
    def from_raw(cls, value: Optional[str]) -> "AppointmentStatus":
        status = (value or "").lower()
        if "cancel" in status:
            return cls.CANCELLED
        if "complete" in status or status == "done":
            return cls.COMPLETED
        if "reschedule" in status:
            return cls.RESCHEDULED
        return cls.SCHEDULED


class AppointmentSource(str, Enum):
    INTAKEQ = "intakeq"
    MANUAL = "manual"


class ResolutionType(str, Enum):
    RELOCATE = "relocate"
    CANNOT_RELOCATE = "cannot-relocate"


class Requirements(CamelModel):
    accessibility: bool = Field(default=False)
    special_features: List[str] = Field(default_factory=list)
    room_preference: Optional[OfficeId] = Field(default=None)

    @field_validator('room_preference', mode='before')
    @classmethod
    def blank_office_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class SchedulingRequest(CamelModel):
    """
    A request to place one appointment. Also used to describe existing
    bookings inside the office -> bookings map.
    """
    client_id: str = Field(min_length=1)
    clinician_id: str = Field(min_length=1)
    date_time: datetime = Field(description="Start instant")
    duration: int = Field(gt=0, description="Minutes")
    session_type: SessionType = Field(default=SessionType.IN_PERSON)
    client_age: Optional[int] = Field(default=None, ge=0)
    requirements: Requirements = Field(default_factory=Requirements)

    @field_validator('client_id', 'clinician_id')
    @classmethod
    def strip_ids(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("identifier cannot be blank")
        return v

    @field_validator('date_time')
    @classmethod
    def attach_timezone(cls, v):
        return ensure_aware(v)

    @property
    def start(self) -> datetime:
        return self.date_time

    @property
    def end(self) -> datetime:
        """Exclusive end of the booking."""
        return self.date_time + timedelta(minutes=self.duration)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "clientId": "cl_1042",
            "clinicianId": "clin_07",
            "dateTime": "2025-01-15T10:00:00-05:00",
            "duration": 50,
            "sessionType": "in-person",
            "requirements": {"accessibility": True, "specialFeatures": []}
        }
    })


class ConflictResolution(CamelModel):
    type: ResolutionType
    reason: str
    new_office_id: Optional[OfficeId] = Field(default=None)


class SchedulingConflict(CamelModel):
    office_id: OfficeId
    existing_booking: Optional[SchedulingRequest] = Field(default=None)
    resolution: ConflictResolution
    appointment_ids: List[str] = Field(
        default_factory=list,
        description="Appointment records involved (daily summary only)"
    )

    @property
    def is_resolvable(self) -> bool:
        return self.resolution.type == ResolutionType.RELOCATE


class SchedulingResult(CamelModel):
    success: bool
    office_id: Optional[OfficeId] = Field(default=None)
    conflicts: List[SchedulingConflict] = Field(default_factory=list)
    error: Optional[str] = Field(default=None)
    notes: str = Field(default="", description="Human-readable rationale")
    evaluation_log: List[str] = Field(default_factory=list)

    @classmethod
    def failure(cls, error: str, evaluation_log: Optional[List[str]] = None) -> "SchedulingResult":
        return cls(success=False, error=error, evaluation_log=list(evaluation_log or []))


class AppointmentRecord(CamelModel):
    """
    An appointment as supplied by the appointment source.
    ``office_id`` is absent until an office has been assigned.
    """
    appointment_id: str = Field(min_length=1)
    client_id: str = Field(min_length=1)
    client_name: str = Field(default="")
    clinician_id: str = Field(min_length=1)
    clinician_name: str = Field(default="")
    office_id: Optional[OfficeId] = Field(default=None)
    suggested_office_id: Optional[OfficeId] = Field(default=None)
    session_type: SessionType = Field(default=SessionType.IN_PERSON)
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus = Field(default=AppointmentStatus.SCHEDULED)
    source: AppointmentSource = Field(default=AppointmentSource.INTAKEQ)
    requirements: Requirements = Field(default_factory=Requirements)
    client_age: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None)

    @field_validator('office_id', 'suggested_office_id', mode='before')
    @classmethod
    def blank_office_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('session_type', mode='before')
    @classmethod
    def parse_service_name(cls, v):
        # Upstream records carry the service name ("Group DBT") rather than a session type
        if isinstance(v, str):
            try:
                return SessionType(v.strip().lower())
            except ValueError:
                return SessionType.from_service_name(v)
        return v

    @field_validator('status', mode='before')
    @classmethod
    def parse_status(cls, v):
        if isinstance(v, str):
            return AppointmentStatus.from_raw(v)
        return v

    @field_validator('start_time', 'end_time')
    @classmethod
    def attach_timezone(cls, v):
        return ensure_aware(v)

    @model_validator(mode='after')
    def validate_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("Appointment end time must be after start time")
        return self

    @property
    def duration_minutes(self) -> int:
        return max(1, int((self.end_time - self.start_time).total_seconds() // 60))

    @property
    def is_active(self) -> bool:
        return self.status != AppointmentStatus.CANCELLED

    def to_request(self) -> SchedulingRequest:
        """The scheduling request this appointment represents."""
        return SchedulingRequest(
            client_id=self.client_id,
            clinician_id=self.clinician_id,
            date_time=self.start_time,
            duration=self.duration_minutes,
            session_type=self.session_type,
            client_age=self.client_age,
            requirements=self.requirements,
        )
