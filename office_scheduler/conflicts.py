"""
Conflict Resolution Service.

This module answers two questions for a single office:
1. Does a requested booking collide with anything already booked there?
2. If so, which booking yields: the incoming one, or the existing one
   (relocated to another office)?

The service holds no mutable state. Bookings are passed in as an
office -> bookings map for the evaluation window.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

from office_models import (
    ConflictResolution,
    Office,
    ResolutionType,
    SchedulingConflict,
    SchedulingRequest,
    SessionType,
)
from .office_id import standardize_office_id

logger = logging.getLogger(__name__)

# Relocation priority per session type (highest number wins)
SESSION_PRIORITIES: Dict[SessionType, int] = {
    SessionType.IN_PERSON: 100,
    SessionType.GROUP: 75,
    SessionType.FAMILY: 75,
    SessionType.TELEHEALTH: 25,
}
UNKNOWN_SESSION_PRIORITY = 50


def session_priority(session_type) -> int:
    """Priority of a session type; anything unrecognised gets the middle value."""
    try:
        return SESSION_PRIORITIES[SessionType(session_type)]
    except ValueError:
        return UNKNOWN_SESSION_PRIORITY


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open overlap: touching intervals (end_a == start_b) do not overlap."""
    return start_a < end_b and end_a > start_b


def bookings_overlap(a: SchedulingRequest, b: SchedulingRequest) -> bool:
    return intervals_overlap(a.start, a.end, b.start, b.end)


def normalize_booking_map(
    bookings: Optional[Mapping[str, Iterable[SchedulingRequest]]]
) -> Dict[str, List[SchedulingRequest]]:
    """Re-key a bookings map by canonical office id, merging aliases ("b1" / "B-1")."""
    normalized: Dict[str, List[SchedulingRequest]] = {}
    for raw_id, office_bookings in (bookings or {}).items():
        normalized.setdefault(standardize_office_id(raw_id), []).extend(office_bookings)
    return normalized


class ConflictResolutionService:
    """
    Detects time-interval overlaps inside one office and decides who yields.
    """

    def __init__(
        self,
        offices: List[Office],
        existing_bookings: Optional[Mapping[str, Iterable[SchedulingRequest]]] = None
    ):
        self.offices = list(offices)
        self.existing_bookings = normalize_booking_map(existing_bookings)

    def bookings_for(self, office_id: str) -> List[SchedulingRequest]:
        return self.existing_bookings.get(standardize_office_id(office_id), [])

    def check_conflicts(self, office_id: str, request: SchedulingRequest) -> List[SchedulingConflict]:
        """
        One conflict per existing booking in ``office_id`` that overlaps ``request``,
        each carrying its resolution.
        """
        office_id = standardize_office_id(office_id)
        conflicts = []

        for booking in self.bookings_for(office_id):
            if not bookings_overlap(request, booking):
                continue
            resolution = self.resolve(booking, request, current_office_id=office_id)
            logger.debug(
                f"Overlap in {office_id}: existing {booking.session_type.value} "
                f"{booking.start:%H:%M} vs incoming {request.session_type.value} "
                f"{request.start:%H:%M} -> {resolution.type.value}"
            )
            conflicts.append(SchedulingConflict(
                office_id=office_id,
                existing_booking=booking,
                resolution=resolution
            ))

        return conflicts

    def resolve(
        self,
        existing: SchedulingRequest,
        incoming: SchedulingRequest,
        current_office_id: Optional[str] = None
    ) -> ConflictResolution:
        """
        The existing booking only moves for a strictly higher priority incoming one,
        and only if somewhere else can take it.
        """
        existing_priority = session_priority(existing.session_type)
        incoming_priority = session_priority(incoming.session_type)

        if incoming_priority <= existing_priority:
            return ConflictResolution(
                type=ResolutionType.CANNOT_RELOCATE,
                reason=(
                    f"Existing {existing.session_type.value} session has priority over "
                    f"new {incoming.session_type.value} session"
                )
            )

        alternative = self.find_alternative_office(existing, exclude=current_office_id)
        if alternative is not None:
            return ConflictResolution(
                type=ResolutionType.RELOCATE,
                reason=(
                    f"{incoming.session_type.value} takes priority, relocating existing "
                    f"{existing.session_type.value} to {alternative.office_id}"
                ),
                new_office_id=alternative.office_id
            )

        return ConflictResolution(
            type=ResolutionType.CANNOT_RELOCATE,
            reason="No alternative offices available for relocation"
        )

    def find_alternative_office(
        self,
        booking: SchedulingRequest,
        exclude: Optional[str] = None
    ) -> Optional[Office]:
        """
        First office in roster order that is in service, satisfies the booking's
        accessibility requirement and has nothing overlapping it.
        """
        excluded = standardize_office_id(exclude) if exclude else None

        for office in self.offices:
            if not office.in_service:
                continue
            if office.office_id == excluded:
                continue
            if booking.requirements.accessibility and not office.is_accessible:
                continue
            if any(bookings_overlap(booking, other) for other in self.bookings_for(office.office_id)):
                continue
            return office

        return None
