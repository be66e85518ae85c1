from datetime import date, datetime, timedelta, timezone

import pytest

from office_models import (
    AppointmentRecord,
    Office,
    Requirements,
    SchedulingRequest,
    SessionType,
)

DAY = date(2025, 1, 15)
UTC = timezone.utc


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(DAY.year, DAY.month, DAY.day, hour, minute, tzinfo=UTC)


@pytest.fixture
def make_request():
    def _make(
        client_id="cl_1",
        clinician_id="clin_1",
        hour=10,
        minute=0,
        duration=60,
        session_type=SessionType.IN_PERSON,
        **requirements
    ) -> SchedulingRequest:
        return SchedulingRequest(
            client_id=client_id,
            clinician_id=clinician_id,
            date_time=at(hour, minute),
            duration=duration,
            session_type=session_type,
            requirements=Requirements(**requirements),
        )
    return _make


@pytest.fixture
def make_appointment():
    def _make(
        appointment_id,
        hour,
        duration=60,
        office_id=None,
        session_type=SessionType.IN_PERSON,
        client_id=None,
        clinician_id="clin_1",
        **extra
    ) -> AppointmentRecord:
        start = at(hour)
        return AppointmentRecord(
            appointment_id=appointment_id,
            client_id=client_id or f"cl_{appointment_id}",
            clinician_id=clinician_id,
            office_id=office_id,
            session_type=session_type,
            start_time=start,
            end_time=start + timedelta(minutes=duration),
            **extra
        )
    return _make


@pytest.fixture
def roster():
    """Three in-service offices (only C-1 accessible) and one out of service."""
    return [
        Office(office_id="B-1", is_accessible=False, special_features=["sand-tray"]),
        Office(office_id="B-2", is_accessible=False, special_features=["group"]),
        Office(office_id="C-1", is_accessible=True),
        Office(office_id="A-a", in_service=False, is_accessible=True),
    ]
