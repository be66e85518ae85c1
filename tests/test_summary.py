import pytest

from office_models import (
    AlertSeverity,
    AlertType,
    AppointmentStatus,
    ClientPreference,
    ClinicianProfile,
    Office,
    ResolutionType,
    SessionType,
)
from office_scheduler.config import SummaryConfig
from office_scheduler.errors import DataStoreError
from office_scheduler.summary import DailySummaryService

from conftest import DAY


def ten_slot_config():
    return SummaryConfig(business_start_hour=8, business_end_hour=18, slot_minutes=60)


def service(summary_config=None, store=None, source=None):
    return DailySummaryService(store, source, summary_config=summary_config or ten_slot_config())


def capacity_alerts(summary):
    return [a for a in summary.alerts if a.type == AlertType.CAPACITY]


def test_summary_config_counts_slots():
    assert SummaryConfig(business_start_hour=9, business_end_hour=17, slot_minutes=60).total_slots == 8
    assert ten_slot_config().total_slots == 10
    with pytest.raises(ValueError):
        SummaryConfig(business_start_hour=17, business_end_hour=9)


def test_empty_day_degrades_gracefully():
    summary = service().build_summary(DAY, [], [Office(office_id="B-1")])

    assert summary.date == DAY
    assert summary.appointments == []
    assert summary.conflicts == []
    assert summary.alerts == []
    assert summary.office_utilization["B-1"].booked_slots == 0


@pytest.mark.parametrize("booked, alerted", [(8, False), (10, True)])
def test_capacity_alert_above_ninety_percent(make_appointment, booked, alerted):
    appointments = [make_appointment(f"a{i}", hour=8 + i, office_id="C-1") for i in range(booked)]

    summary = service().build_summary(DAY, appointments, [Office(office_id="C-1")])

    usage = summary.office_utilization["C-1"]
    assert (usage.total_slots, usage.booked_slots) == (10, booked)
    alerts = capacity_alerts(summary)
    assert bool(alerts) is alerted
    if alerted:
        assert alerts[0].severity == AlertSeverity.MEDIUM
        assert "Critical capacity warning" in usage.special_notes
    else:
        assert "High utilization" not in usage.special_notes  # exactly 80% is not above


def test_booked_slots_never_exceed_total(make_appointment):
    appointments = [make_appointment(f"a{i}", hour=9, duration=30, office_id="B-1") for i in range(12)]
    summary = service().build_summary(DAY, appointments, [Office(office_id="B-1")])

    usage = summary.office_utilization["B-1"]
    assert usage.booked_slots == usage.total_slots == 10
    assert usage.special_notes[0].startswith("Overbooked: 12")


def test_unassigned_appointments_are_assigned_without_collisions(make_appointment):
    offices = [Office(office_id="B-1"), Office(office_id="B-2")]
    appointments = [
        make_appointment("first", hour=10),
        make_appointment("second", hour=10),
        make_appointment("later", hour=11),
    ]

    summary = service().build_summary(DAY, appointments, offices)

    by_id = {a.appointment_id: a for a in summary.appointments}
    assert by_id["first"].office_id == "B-1"
    assert by_id["second"].office_id == "B-2"
    assert by_id["later"].office_id == "B-1"
    assert by_id["first"].suggested_office_id == "B-1"
    assert summary.conflicts == []


def test_double_booking_is_resolved_by_priority(make_appointment):
    offices = [Office(office_id="C-1"), Office(office_id="C-2")]
    appointments = [
        make_appointment("tele", hour=10, office_id="C-1", session_type=SessionType.TELEHEALTH,
                         clinician_id="clin_a"),
        make_appointment("visit", hour=10, office_id="c1", session_type=SessionType.IN_PERSON,
                         clinician_id="clin_b"),
    ]

    summary = service().build_summary(DAY, appointments, offices)

    [conflict] = summary.conflicts
    assert conflict.office_id == "C-1"
    assert conflict.appointment_ids == ["tele", "visit"]
    assert conflict.resolution.type == ResolutionType.RELOCATE
    assert conflict.resolution.new_office_id == "C-2"
    assert not [a for a in summary.alerts if a.type == AlertType.SCHEDULING]
    placed = {a.appointment_id: a.office_id for a in summary.appointments}
    assert placed == {"tele": "C-2", "visit": "C-1"}
    assert summary.office_utilization["C-2"].booked_slots == 1


def test_unresolved_conflicts_raise_high_alerts_monotonically(make_appointment):
    offices = [Office(office_id="C-1")]

    def high_alerts(pairs):
        appointments = []
        for i in range(pairs):
            appointments.append(make_appointment(f"p{i}a", hour=9 + 2 * i, office_id="C-1", clinician_id=f"clin_{i}a"))
            appointments.append(make_appointment(f"p{i}b", hour=9 + 2 * i, office_id="C-1", clinician_id=f"clin_{i}b"))
        summary = service().build_summary(DAY, appointments, offices)
        return len(summary.alerts_by_severity(AlertSeverity.HIGH))

    counts = [high_alerts(n) for n in range(4)]
    assert counts == sorted(counts)
    assert counts[0] == 0 and counts[3] == 3


def test_unmet_accessibility_is_a_high_alert(make_appointment):
    offices = [Office(office_id="B-1", is_accessible=False), Office(office_id="C-1", is_accessible=True)]
    preferences = [ClientPreference(client_id="cl_a", mobility_needs=["wheelchair"])]
    appointments = [
        make_appointment("a", hour=10, office_id="B-1", client_id="cl_a"),
        make_appointment("b", hour=10, client_id="cl_a"),
    ]

    summary = service().build_summary(DAY, appointments, offices, preferences=preferences)

    by_id = {a.appointment_id: a for a in summary.appointments}
    assert by_id["b"].office_id == "C-1"
    [alert] = [a for a in summary.alerts if a.type == AlertType.ACCESSIBILITY]
    assert alert.severity == AlertSeverity.HIGH
    assert "Appointment a" in alert.message


def test_cancelled_and_telehealth_appointments_do_not_use_offices(make_appointment):
    offices = [Office(office_id="B-1")]
    appointments = [
        make_appointment("gone", hour=10, office_id="B-1", status=AppointmentStatus.CANCELLED),
        make_appointment("video1", hour=10, session_type=SessionType.TELEHEALTH),
        make_appointment("video2", hour=10, session_type=SessionType.TELEHEALTH),
    ]

    summary = service().build_summary(DAY, appointments, offices)

    assert [a.appointment_id for a in summary.appointments] == ["video1", "video2"]
    assert {a.office_id for a in summary.appointments} == {"A-v"}
    assert summary.conflicts == []
    assert summary.office_utilization["B-1"].booked_slots == 0


def test_failed_assignment_becomes_alert(make_appointment):
    offices = [Office(office_id="B-1", in_service=False)]
    summary = service().build_summary(DAY, [make_appointment("x", hour=10)], offices)

    [alert] = summary.alerts
    assert alert.type == AlertType.ASSIGNMENT
    assert alert.severity == AlertSeverity.HIGH
    assert summary.appointments[0].office_id is None


class FakeStore:
    def __init__(self, offices, clinicians=(), fail=False):
        self.offices = list(offices)
        self.clinicians = list(clinicians)
        self.fail = fail

    async def get_offices(self):
        if self.fail:
            raise DataStoreError("store unreachable")
        return self.offices

    async def get_assignment_rules(self):
        return []

    async def get_clinicians(self):
        return self.clinicians

    async def get_client_preferences(self):
        return []


class FakeSource:
    def __init__(self, appointments):
        self.appointments = appointments
        self.requested = []

    async def get_appointments_for_day(self, day):
        self.requested.append(day)
        return self.appointments


@pytest.mark.asyncio
async def test_generate_daily_summary_fetches_and_aggregates(make_appointment):
    store = FakeStore(
        [Office(office_id="B-1"), Office(office_id="B-2")],
        clinicians=[ClinicianProfile(clinician_id="clin_1", preferred_offices=["B-2"])],
    )
    source = FakeSource([make_appointment("a", hour=10)])

    summary = await service(store=store, source=source).generate_daily_summary(DAY)

    assert source.requested == [DAY]
    assert summary.appointments[0].office_id == "B-2"
    assert summary.office_utilization["B-2"].booked_slots == 1


@pytest.mark.asyncio
async def test_store_failures_propagate(make_appointment):
    store = FakeStore([Office(office_id="B-1")], fail=True)
    with pytest.raises(DataStoreError):
        await service(store=store, source=FakeSource([])).generate_daily_summary(DAY)


def assert_no_overlaps_per_office(summary):
    by_office = {}
    for appt in summary.appointments:
        if appt.office_id and appt.office_id != "A-v":
            by_office.setdefault(appt.office_id, []).append(appt)
    for office_id, booked in by_office.items():
        for i, first in enumerate(booked):
            for second in booked[i + 1:]:
                overlap = first.start_time < second.end_time and second.start_time < first.end_time
                assert not overlap, (office_id, first.appointment_id, second.appointment_id)


def test_relocation_decided_during_assignment_is_applied(make_appointment):
    offices = [Office(office_id="C-1"), Office(office_id="C-2")]
    preferences = [ClientPreference(client_id="cl_visit", assigned_office="C-1")]
    appointments = [
        make_appointment("tele", hour=10, office_id="C-1", session_type=SessionType.TELEHEALTH,
                         clinician_id="clin_a"),
        make_appointment("visit", hour=10, client_id="cl_visit", clinician_id="clin_b"),
        make_appointment("third", hour=10, clinician_id="clin_c"),
    ]

    summary = service().build_summary(DAY, appointments, offices, preferences=preferences)

    placed = {a.appointment_id: a.office_id for a in summary.appointments}
    assert placed == {"tele": "C-2", "visit": "C-1", "third": None}
    assert_no_overlaps_per_office(summary)

    [relocation] = summary.conflicts
    assert relocation.resolution.type == ResolutionType.RELOCATE
    assert relocation.resolution.new_office_id == "C-2"
    assert relocation.appointment_ids == ["tele", "visit"]

    assert {o: u.booked_slots for o, u in summary.office_utilization.items()} == {"C-1": 1, "C-2": 1}
    [failure] = [a for a in summary.alerts if a.type == AlertType.ASSIGNMENT]
    assert "third" in failure.message


def test_relocated_booking_moves_again_instead_of_overlapping(make_appointment):
    offices = [Office(office_id="B-1"), Office(office_id="B-2"), Office(office_id="B-3")]
    preferences = [ClientPreference(client_id="cl_visit", assigned_office="B-1")]
    appointments = [
        make_appointment("tele", hour=10, office_id="B-1", session_type=SessionType.TELEHEALTH,
                         clinician_id="clin_a"),
        make_appointment("visit", hour=10, client_id="cl_visit", clinician_id="clin_b"),
        make_appointment("next", hour=10, clinician_id="clin_c"),
    ]

    summary = service().build_summary(DAY, appointments, offices, preferences=preferences)

    placed = {a.appointment_id: a.office_id for a in summary.appointments}
    assert placed == {"tele": "B-3", "visit": "B-1", "next": "B-2"}
    assert [c.resolution.new_office_id for c in summary.conflicts] == ["B-2", "B-3"]
    assert_no_overlaps_per_office(summary)


def test_clinician_double_booking_is_a_high_alert(make_appointment):
    offices = [Office(office_id="B-1"), Office(office_id="B-2")]
    appointments = [
        make_appointment("a", hour=10, clinician_id="clin_1", clinician_name="Dr. Rivera"),
        make_appointment("b", hour=10, duration=90, clinician_id="clin_1"),
        make_appointment("c", hour=11, clinician_id="clin_2"),
        make_appointment("d", hour=12, clinician_id="clin_1"),
    ]

    summary = service().build_summary(DAY, appointments, offices)

    alerts = [a for a in summary.alerts if "double booked" in a.message]
    assert len(alerts) == 1
    assert alerts[0].type == AlertType.SCHEDULING
    assert alerts[0].severity == AlertSeverity.HIGH
    assert "Dr. Rivera" in alerts[0].message
    assert "a and b" in alerts[0].message


def test_high_capacity_offices_are_counted(make_appointment):
    offices = [Office(office_id="B-1"), Office(office_id="B-2"), Office(office_id="B-3")]
    appointments = [
        make_appointment(f"{office}-{h}", hour=8 + h, office_id=office, clinician_id=f"clin_{office}")
        for office, booked in (("B-1", 9), ("B-2", 10), ("B-3", 5))
        for h in range(booked)
    ]

    summary = service().build_summary(DAY, appointments, offices)

    messages = [a.message for a in capacity_alerts(summary)]
    assert "2 offices are at high capacity (B-1, B-2)" in messages
    assert "Office B-2 is near capacity (>90% booked)" in messages
    assert not any("Office B-1" in m for m in messages)
