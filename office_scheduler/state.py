"""
Per-day booking ledger.

This module acts as the 'Memory' of a daily run. It tracks:
1. Bookings per office (canonical ids), as seen by the conflict checks,
   including relocations applied during the run.
2. Which appointment each booking came from.
3. Assignment failures, for the summary alerts.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from office_models import AppointmentRecord, SchedulingRequest
from .office_id import standardize_office_id


@dataclass
class LedgerEntry:
    appointment: AppointmentRecord
    booking: SchedulingRequest


class DayLedger:
    """
    Maintains the bookings placed during one daily aggregation.
    """

    def __init__(self):
        self.entries: Dict[str, List[LedgerEntry]] = defaultdict(list)
        self.failures: Dict[str, str] = {}

    def add_booking(self, office_id: str, appointment: AppointmentRecord) -> LedgerEntry:
        """Commit an appointment to an office."""
        entry = LedgerEntry(appointment=appointment, booking=appointment.to_request())
        self.entries[standardize_office_id(office_id)].append(entry)
        return entry

    def move_booking(self, booking: SchedulingRequest, from_office: str, to_office: str) -> Optional[LedgerEntry]:
        """
        Relocate the entry holding ``booking`` to another office, updating the
        appointment's ``office_id``. Returns the moved entry, or None when
        ``from_office`` does not hold that booking.
        """
        source = self.entries_for(from_office)
        entry = next((e for e in source if e.booking is booking), None)
        if entry is None:
            entry = next((e for e in source if e.booking == booking), None)
        if entry is None:
            return None

        source.remove(entry)
        target = standardize_office_id(to_office)
        moved = LedgerEntry(
            appointment=entry.appointment.model_copy(update={"office_id": target}),
            booking=entry.booking
        )
        self.entries[target].append(moved)
        return moved

    def record_failure(self, appointment: AppointmentRecord, error: str) -> None:
        self.failures[appointment.appointment_id] = error

    # --- Query Methods ---

    def placed_appointments(self) -> Dict[str, AppointmentRecord]:
        """Appointment id -> appointment as currently placed."""
        return {
            e.appointment.appointment_id: e.appointment
            for entries in self.entries.values()
            for e in entries
        }

    def entries_for(self, office_id: str) -> List[LedgerEntry]:
        return self.entries.get(standardize_office_id(office_id), [])

    def booked_count(self, office_id: str) -> int:
        return len(self.entries_for(office_id))

    def as_booking_map(self) -> Dict[str, List[SchedulingRequest]]:
        """Snapshot in the office -> bookings shape the services consume."""
        return {office_id: [e.booking for e in entries] for office_id, entries in self.entries.items()}

    # --- Reporting Methods ---

    def get_statistics(self) -> Dict[str, Any]:
        total = sum(len(v) for v in self.entries.values())
        if not total:
            return {
                "total_bookings": 0,
                "offices_used": 0,
                "failed_count": len(self.failures),
            }

        busiest = max(self.entries.items(), key=lambda x: len(x[1]))
        return {
            "total_bookings": total,
            "offices_used": len(self.entries),
            "busiest_office": (busiest[0], len(busiest[1])),
            "failed_count": len(self.failures),
            "bookings_per_office": {k: len(v) for k, v in sorted(self.entries.items())},
        }
