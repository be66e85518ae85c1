"""
Daily Assignment / Summary Service.

Turns one day's appointments into a ``DailyScheduleSummary``:
1. Assign an office to every appointment that does not have one yet,
   applying the relocations each assignment decides on.
2. Detect same-office overlaps and resolve each pair by session priority;
   relocations are applied, the rest are reported.
3. Flag clinicians booked into overlapping appointments.
4. Aggregate per-office utilization against the business-hours slot grid.
5. Derive alerts (capacity, unresolved conflicts, double bookings,
   accessibility, failed assignments).
"""

import asyncio
import logging
from datetime import date as date_type
from typing import Dict, List, Optional, Set, Tuple

from office_models import (
    Alert,
    AlertSeverity,
    AlertType,
    AppointmentRecord,
    AssignmentRule,
    ClientPreference,
    ClinicianProfile,
    DailyScheduleSummary,
    Office,
    OfficeUtilization,
    SchedulingConflict,
)
from . import config
from .conflicts import ConflictResolutionService, bookings_overlap, intervals_overlap
from .engine import OfficeAssignmentService
from .office_id import require_canonical
from .rules import needs_accessibility
from .state import DayLedger, LedgerEntry
from .store import AppointmentSource, DataStore

logger = logging.getLogger(__name__)


class DailySummaryService:
    """
    Orchestrates assignment and aggregation across one practice day.
    """

    def __init__(
        self,
        store: DataStore,
        source: AppointmentSource,
        summary_config: Optional[config.SummaryConfig] = None,
        default_office_id: Optional[str] = None,
        virtual_office_id: Optional[str] = None
    ):
        self.store = store
        self.source = source
        self.config = summary_config or config.SummaryConfig()
        self.default_office_id = default_office_id
        self.virtual_office_id = require_canonical(
            virtual_office_id or config.VIRTUAL_OFFICE_ID, "virtual_office_id"
        )

    async def generate_daily_summary(self, day: date_type) -> DailyScheduleSummary:
        """
        Fetch the day's appointments and the roster snapshot, then aggregate.
        Collaborator failures propagate to the caller.
        """
        logger.info(f"Generating daily summary for {day.isoformat()}")
        appointments, offices, rules, clinicians, preferences = await asyncio.gather(
            self.source.get_appointments_for_day(day),
            self.store.get_offices(),
            self.store.get_assignment_rules(),
            self.store.get_clinicians(),
            self.store.get_client_preferences(),
        )
        return self.build_summary(day, appointments, offices, rules, clinicians, preferences)

    def build_summary(
        self,
        day: date_type,
        appointments: List[AppointmentRecord],
        offices: List[Office],
        rules: Optional[List[AssignmentRule]] = None,
        clinicians: Optional[List[ClinicianProfile]] = None,
        preferences: Optional[List[ClientPreference]] = None
    ) -> DailyScheduleSummary:
        """Pure aggregation over an already-fetched snapshot."""
        active = sorted(
            (a for a in appointments if a.is_active),
            key=lambda a: (a.start_time, a.appointment_id)
        )
        preference_map = {p.client_id: p for p in (preferences or [])}

        ledger = DayLedger()
        relocations = self._assign_appointments(active, offices, rules, clinicians, preferences, ledger)
        conflicts = relocations + self._detect_conflicts(offices, ledger)

        placed = ledger.placed_appointments()
        resolved = [placed.get(a.appointment_id, a) for a in active]

        utilization = self._calculate_utilization(offices, ledger)
        alerts = (
            self._capacity_alerts(utilization)
            + self._conflict_alerts(conflicts)
            + self._double_booking_alerts(resolved)
            + self._accessibility_alerts(resolved, offices, preference_map)
            + self._assignment_alerts(ledger)
        )

        summary = DailyScheduleSummary(
            date=day,
            appointments=resolved,
            conflicts=conflicts,
            alerts=alerts,
            office_utilization=utilization
        )

        stats = ledger.get_statistics()
        logger.info(
            f"Summary for {day.isoformat()}: {stats['total_bookings']} bookings, "
            f"{len(summary.conflicts)} conflicts, {len(summary.alerts)} alerts"
        )
        return summary

    # --- Assignment ---

    def _assign_appointments(
        self,
        appointments: List[AppointmentRecord],
        offices: List[Office],
        rules: Optional[List[AssignmentRule]],
        clinicians: Optional[List[ClinicianProfile]],
        preferences: Optional[List[ClientPreference]],
        ledger: DayLedger
    ) -> List[SchedulingConflict]:
        """
        Pre-assigned appointments seed the ledger first; the rest are assigned
        in start order, each seeing every booking placed before it. An
        appointment whose office still holds an unmovable overlapping booking
        yields and is recorded as a failure. Returns the relocations applied.
        """
        for appt in appointments:
            if appt.office_id:
                ledger.add_booking(appt.office_id, appt)

        relocations = []
        for appt in appointments:
            if appt.office_id:
                continue

            service = OfficeAssignmentService(
                offices,
                rules,
                clinicians,
                preferences,
                ledger.as_booking_map(),
                default_office_id=self.default_office_id,
                virtual_office_id=self.virtual_office_id
            )
            result = service.find_optimal_office(appt.to_request())

            if not result.success:
                logger.warning(f"Could not assign appointment {appt.appointment_id}: {result.error}")
                ledger.record_failure(appt, result.error or "unknown error")
                continue

            blocking = [c for c in result.conflicts if not c.is_resolvable]
            if blocking:
                error = f"{result.office_id} is taken: {blocking[0].resolution.reason}"
                logger.warning(f"Could not assign appointment {appt.appointment_id}: {error}")
                ledger.record_failure(appt, error)
                continue

            entry = ledger.add_booking(result.office_id, appt.model_copy(update={
                "office_id": result.office_id,
                "suggested_office_id": result.office_id,
            }))
            for conflict in result.conflicts:
                moved = self._relocate(ledger, conflict)
                if moved is not None:
                    relocations.append(conflict.model_copy(update={
                        "appointment_ids": [
                            moved.appointment.appointment_id,
                            entry.appointment.appointment_id,
                        ]
                    }))

        return relocations

    @staticmethod
    def _relocate(ledger: DayLedger, conflict: SchedulingConflict) -> Optional[LedgerEntry]:
        moved = ledger.move_booking(
            conflict.existing_booking, conflict.office_id, conflict.resolution.new_office_id
        )
        if moved is None:
            logger.warning(f"Relocation from {conflict.office_id} skipped: booking not in ledger")
        else:
            logger.info(
                f"Relocated appointment {moved.appointment.appointment_id} "
                f"from {conflict.office_id} to {conflict.resolution.new_office_id}"
            )
        return moved

    # --- Conflicts ---

    def _detect_conflicts(self, offices: List[Office], ledger: DayLedger) -> List[SchedulingConflict]:
        """
        Every overlapping same-office pair; the earlier appointment is the
        existing booking. A ``relocate`` outcome is applied to the ledger
        before the scan continues, so reported relocations have happened and
        later pairs see the moved booking.
        """
        conflicts = []
        reported: Set[Tuple[str, str]] = set()

        pair = self._next_overlap(ledger, reported)
        while pair is not None:
            office_id, existing, incoming = pair
            resolver = ConflictResolutionService(offices, ledger.as_booking_map())
            resolution = resolver.resolve(existing.booking, incoming.booking, current_office_id=office_id)
            ids = [existing.appointment.appointment_id, incoming.appointment.appointment_id]
            conflict = SchedulingConflict(
                office_id=office_id,
                existing_booking=existing.booking,
                resolution=resolution,
                appointment_ids=ids
            )
            conflicts.append(conflict)
            reported.add((ids[0], ids[1]))

            if conflict.is_resolvable:
                self._relocate(ledger, conflict)
            pair = self._next_overlap(ledger, reported)

        return conflicts

    def _next_overlap(
        self,
        ledger: DayLedger,
        reported: Set[Tuple[str, str]]
    ) -> Optional[Tuple[str, LedgerEntry, LedgerEntry]]:
        for office_id in sorted(ledger.entries):
            if office_id == self.virtual_office_id:
                continue
            entries = sorted(
                ledger.entries_for(office_id),
                key=lambda e: (e.appointment.start_time, e.appointment.appointment_id)
            )
            for i, first in enumerate(entries):
                for second in entries[i + 1:]:
                    key = (first.appointment.appointment_id, second.appointment.appointment_id)
                    if key in reported or not bookings_overlap(first.booking, second.booking):
                        continue
                    return office_id, first, second
        return None

    # --- Utilization ---

    def _calculate_utilization(self, offices: List[Office], ledger: DayLedger) -> Dict[str, OfficeUtilization]:
        total_slots = self.config.total_slots
        utilization = {}

        for office in offices:
            count = ledger.booked_count(office.office_id)
            booked = min(count, total_slots)
            notes = self._office_notes(office, booked / total_slots)
            if count > total_slots:
                notes.insert(0, f"Overbooked: {count} appointments for {total_slots} slots")

            utilization[office.office_id] = OfficeUtilization(
                total_slots=total_slots,
                booked_slots=booked,
                special_notes=notes
            )

        return utilization

    def _office_notes(self, office: Office, ratio: float) -> List[str]:
        notes = []
        if ratio > self.config.capacity_alert_threshold:
            notes.append("Critical capacity warning")
        elif ratio > self.config.high_utilization_threshold:
            notes.append("High utilization")
        if not office.in_service:
            notes.append("Out of service")
        if office.is_flex_space:
            notes.append("Flex space - coordinate with team")
        return notes

    # --- Alerts ---

    def _capacity_alerts(self, utilization: Dict[str, OfficeUtilization]) -> List[Alert]:
        threshold = self.config.capacity_alert_threshold
        alerts = [
            Alert(
                type=AlertType.CAPACITY,
                message=f"Office {office_id} is near capacity (>{threshold:.0%} booked)",
                severity=AlertSeverity.MEDIUM
            )
            for office_id, usage in utilization.items()
            if usage.utilization > threshold
        ]

        busy = [o for o, usage in utilization.items() if usage.utilization > self.config.high_utilization_threshold]
        if busy:
            alerts.append(Alert(
                type=AlertType.CAPACITY,
                message=f"{len(busy)} offices are at high capacity ({', '.join(busy)})",
                severity=AlertSeverity.MEDIUM
            ))
        return alerts

    def _conflict_alerts(self, conflicts: List[SchedulingConflict]) -> List[Alert]:
        alerts = []
        for conflict in conflicts:
            if conflict.is_resolvable:
                continue
            ids = " and ".join(conflict.appointment_ids) or "bookings"
            alerts.append(Alert(
                type=AlertType.SCHEDULING,
                message=f"Unresolved conflict in office {conflict.office_id} between {ids}: {conflict.resolution.reason}",
                severity=AlertSeverity.HIGH
            ))
        return alerts

    def _double_booking_alerts(self, appointments: List[AppointmentRecord]) -> List[Alert]:
        """One alert per pair of overlapping appointments sharing a clinician."""
        by_clinician: Dict[str, List[AppointmentRecord]] = {}
        for appt in appointments:
            by_clinician.setdefault(appt.clinician_id, []).append(appt)

        alerts = []
        for clinician_id in sorted(by_clinician):
            booked = by_clinician[clinician_id]
            for i, first in enumerate(booked):
                for second in booked[i + 1:]:
                    if not intervals_overlap(first.start_time, first.end_time, second.start_time, second.end_time):
                        continue
                    name = first.clinician_name or clinician_id
                    alerts.append(Alert(
                        type=AlertType.SCHEDULING,
                        message=(
                            f"Clinician {name} is double booked: appointments "
                            f"{first.appointment_id} and {second.appointment_id} overlap"
                        ),
                        severity=AlertSeverity.HIGH
                    ))
        return alerts

    def _accessibility_alerts(
        self,
        appointments: List[AppointmentRecord],
        offices: List[Office],
        preferences: Dict[str, ClientPreference]
    ) -> List[Alert]:
        office_map = {o.office_id: o for o in offices}
        alerts = []

        for appt in appointments:
            if not appt.office_id or appt.office_id == self.virtual_office_id:
                continue
            if not needs_accessibility(appt.to_request(), preferences.get(appt.client_id)):
                continue
            office = office_map.get(appt.office_id)
            if office is not None and office.is_accessible:
                continue
            alerts.append(Alert(
                type=AlertType.ACCESSIBILITY,
                message=(
                    f"Appointment {appt.appointment_id} requires an accessible office "
                    f"but is in {appt.office_id}"
                ),
                severity=AlertSeverity.HIGH
            ))

        return alerts

    def _assignment_alerts(self, ledger: DayLedger) -> List[Alert]:
        return [
            Alert(
                type=AlertType.ASSIGNMENT,
                message=f"Appointment {appointment_id} could not be assigned: {error}",
                severity=AlertSeverity.HIGH
            )
            for appointment_id, error in ledger.failures.items()
        ]
