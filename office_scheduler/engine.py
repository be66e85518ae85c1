"""
The Office Assignment Engine.

Picks the single best office for an incoming scheduling request.
Evaluation is a fixed chain of strategies, first success wins:
1. Sticky assignment - the client's previously assigned office.
2. Clinician preference - the clinician's preferred offices, then offices
   naming them as primary or alternative clinician.
3. Accessibility - an accessible office for clients with mobility needs.
4. Telehealth - the reserved virtual office.
5. Default - the first remaining office in roster order.

Assignment rules are an overlay on top of that chain: hard rules remove
offices from candidacy, soft rules push them down the ordering. Every
candidate is checked against existing bookings through the Conflict
Resolution Service before it is accepted; a blocked candidate is skipped,
except for the sticky office, which is returned with its conflicts.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from office_models import (
    AssignmentRule,
    ClientPreference,
    ClinicianProfile,
    Office,
    SchedulingConflict,
    SchedulingRequest,
    SchedulingResult,
    SessionType,
)
from . import config
from .conflicts import ConflictResolutionService
from .office_id import require_canonical, standardize_office_id
from .rules import RuleEvaluator, needs_accessibility
from .scoring import CandidateRanker

logger = logging.getLogger(__name__)

NO_OFFICES_ERROR = "no offices available"
RULES_EXHAUSTED_ERROR = "no offices available after rule filtering"

REASON_STICKY = "client has preferred office"
REASON_CLINICIAN = "clinician preferred office"
REASON_ACCESSIBLE = "accessible office for client with mobility needs"
REASON_TELEHEALTH = "telehealth session"
REASON_DEFAULT = "default assignment"


def describe_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        location = ".".join(str(p) for p in err.get("loc", ())) or "request"
        parts.append(f"{location}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


class OfficeAssignmentService:
    """
    Main assignment engine.
    Ingests a snapshot of the roster, rules, clinicians, client preferences and
    existing bookings; outputs one ``SchedulingResult`` per request.
    """

    def __init__(
        self,
        offices: List[Office],
        rules: Optional[List[AssignmentRule]] = None,
        clinicians: Optional[List[ClinicianProfile]] = None,
        client_preferences: Optional[List[ClientPreference]] = None,
        existing_bookings: Optional[Mapping[str, Iterable[SchedulingRequest]]] = None,
        default_office_id: Optional[str] = None,
        virtual_office_id: Optional[str] = None
    ):
        self.offices = list(offices)
        self.rules = list(rules or [])
        self.clinicians = list(clinicians or [])
        self.preferences: Dict[str, ClientPreference] = {
            p.client_id: p for p in (client_preferences or [])
        }
        self.default_office_id = require_canonical(
            default_office_id or config.DEFAULT_OFFICE_ID, "default_office_id"
        )
        self.virtual_office_id = require_canonical(
            virtual_office_id or config.VIRTUAL_OFFICE_ID, "virtual_office_id"
        )

        # Initialize Helpers
        self.conflict_resolver = ConflictResolutionService(self.offices, existing_bookings)
        self.rule_evaluator = RuleEvaluator(self.rules, self.offices)

    @classmethod
    async def from_store(
        cls,
        store,
        existing_bookings: Optional[Mapping[str, Iterable[SchedulingRequest]]] = None,
        **kwargs
    ) -> "OfficeAssignmentService":
        """
        Build a service from a ``DataStore``. The four reads are independent,
        so they are issued together and joined before evaluation.
        """
        offices, rules, clinicians, preferences = await asyncio.gather(
            store.get_offices(),
            store.get_assignment_rules(),
            store.get_clinicians(),
            store.get_client_preferences(),
        )
        return cls(offices, rules, clinicians, preferences, existing_bookings, **kwargs)

    def find_optimal_office(self, request: Union[SchedulingRequest, Mapping]) -> SchedulingResult:
        """
        Select the best office for ``request``.
        Never raises for bad input or an empty roster; both come back as
        ``success=False`` results.
        """
        if not isinstance(request, SchedulingRequest):
            try:
                request = SchedulingRequest.model_validate(request)
            except ValidationError as e:
                message = f"Invalid scheduling request: {describe_validation_error(e)}"
                logger.info(message)
                return SchedulingResult.failure(message)

        log: List[str] = [
            f"Assigning office for client {request.client_id} with clinician {request.clinician_id} "
            f"({request.session_type.value}, {request.start.isoformat()}, {request.duration} min)"
        ]

        in_service = [o for o in self.offices if o.in_service]
        log.append(f"{len(in_service)} of {len(self.offices)} offices in service")
        if not in_service:
            logger.warning(f"No in-service offices for client {request.client_id}")
            return SchedulingResult.failure(NO_OFFICES_ERROR, log)

        preference = self.preferences.get(request.client_id)

        # 1. Rule overlay
        matches = self.rule_evaluator.evaluate(request, preference)
        for match in matches:
            log.extend(match.log)
        ranker = CandidateRanker(matches)
        log.extend(ranker.log)

        candidates = ranker.filter(in_service)
        if not candidates:
            logger.warning(f"Hard rules removed every office for client {request.client_id}")
            return SchedulingResult.failure(RULES_EXHAUSTED_ERROR, log)
        ranked = ranker.rank(candidates)
        featured = self._filter_features(ranked, request, log)

        # 2. Strategy chain
        result = (
            self._try_sticky(request, preference, candidates, log)
            or self._try_clinician_preference(request, featured, ranker, log)
            or self._try_accessible(request, preference, featured, log)
            or self._try_telehealth(request, log)
            or self._assign_default(request, featured, log)
        )

        logger.info(
            f"Assigned {result.office_id} to client {request.client_id} ({result.notes})"
        )
        return result

    # --- Strategies ---

    def _try_sticky(
        self,
        request: SchedulingRequest,
        preference: Optional[ClientPreference],
        candidates: List[Office],
        log: List[str]
    ) -> Optional[SchedulingResult]:
        sticky_id = None
        if preference and preference.assigned_office:
            sticky_id = preference.assigned_office
        elif request.requirements.room_preference:
            sticky_id = request.requirements.room_preference

        if not sticky_id:
            log.append("Sticky assignment: client has no prior office")
            return None

        office = self._find(sticky_id, candidates)
        if office is None:
            roster_office = self._find(sticky_id, self.offices)
            if roster_office is None or not roster_office.in_service:
                reason = "not in service"
            else:
                reason = "removed by a hard rule"
            log.append(f"Sticky assignment: {sticky_id} unavailable ({reason})")
            return None

        # The sticky office is kept even when it holds a booking that cannot move
        return self._assign_with_conflicts(office, request, REASON_STICKY, "Sticky assignment", log)

    def _try_clinician_preference(
        self,
        request: SchedulingRequest,
        pool: List[Office],
        ranker: CandidateRanker,
        log: List[str]
    ) -> Optional[SchedulingResult]:
        preferred = self._clinician_offices(request.clinician_id)
        if not preferred:
            log.append(f"Clinician preference: none recorded for {request.clinician_id}")
            return None

        for office_id in sorted(preferred, key=ranker.penalty):
            office = self._find(office_id, pool)
            if office is None:
                log.append(f"Clinician preference: {office_id} not an available candidate")
                continue
            result = self._accept(office, request, REASON_CLINICIAN, "Clinician preference", log)
            if result:
                return result
        return None

    def _clinician_offices(self, clinician_id: str) -> List[str]:
        """
        Offices tied to a clinician, best first: the profile's preferred
        offices, then offices naming them as primary, then as an alternative.
        """
        clinician = next((c for c in self.clinicians if c.matches(clinician_id)), None)
        known_ids = {clinician_id}
        ordered: List[str] = []
        if clinician is not None:
            known_ids.add(clinician.clinician_id)
            if clinician.external_practitioner_id:
                known_ids.add(clinician.external_practitioner_id)
            ordered.extend(clinician.preferred_offices)

        ordered.extend(o.office_id for o in self.offices if o.primary_clinician in known_ids)
        ordered.extend(
            o.office_id for o in self.offices
            if known_ids.intersection(o.alternative_clinicians)
        )
        return list(dict.fromkeys(ordered))

    def _try_accessible(
        self,
        request: SchedulingRequest,
        preference: Optional[ClientPreference],
        pool: List[Office],
        log: List[str]
    ) -> Optional[SchedulingResult]:
        if not needs_accessibility(request, preference):
            log.append("Accessibility: not required")
            return None

        accessible = [o for o in pool if o.is_accessible]
        if not accessible:
            log.append("Accessibility: required but no accessible office is a candidate")
            logger.warning(f"No accessible office for client {request.client_id}")
            return None

        for office in accessible:
            result = self._accept(office, request, REASON_ACCESSIBLE, "Accessibility", log)
            if result:
                return result
        return None

    def _try_telehealth(self, request: SchedulingRequest, log: List[str]) -> Optional[SchedulingResult]:
        if request.session_type != SessionType.TELEHEALTH:
            log.append("Telehealth: not a telehealth session")
            return None

        log.append(f"Telehealth: using virtual office {self.virtual_office_id}")
        return SchedulingResult(
            success=True,
            office_id=self.virtual_office_id,
            notes=REASON_TELEHEALTH,
            evaluation_log=log
        )

    def _assign_default(
        self,
        request: SchedulingRequest,
        pool: List[Office],
        log: List[str]
    ) -> SchedulingResult:
        for office in pool:
            result = self._accept(office, request, REASON_DEFAULT, "Default", log)
            if result:
                return result

        log.append("Default: every candidate blocked")
        return self._assign_with_conflicts(pool[0], request, REASON_DEFAULT, "Default", log)

    # --- Helpers ---

    def _accept(
        self,
        office: Office,
        request: SchedulingRequest,
        reason: str,
        step: str,
        log: List[str]
    ) -> Optional[SchedulingResult]:
        """Succeeds unless the office holds a booking that cannot be moved."""
        conflicts = self.conflict_resolver.check_conflicts(office.office_id, request)
        blocking = [c for c in conflicts if not c.is_resolvable]
        if blocking:
            log.append(f"{step}: {office.office_id} blocked ({blocking[0].resolution.reason})")
            return None
        return self._build_result(office, reason, step, conflicts, log)

    def _assign_with_conflicts(
        self,
        office: Office,
        request: SchedulingRequest,
        reason: str,
        step: str,
        log: List[str]
    ) -> SchedulingResult:
        """Returns ``office`` whatever it holds; unresolved conflicts travel with the result."""
        conflicts = self.conflict_resolver.check_conflicts(office.office_id, request)
        if any(not c.is_resolvable for c in conflicts):
            log.append(f"{step}: {office.office_id} kept with unresolved conflicts")
            logger.warning(f"Unresolved conflicts assigning client {request.client_id} to {office.office_id}")
            reason = f"{reason} (unresolved conflicts)"
        return self._build_result(office, reason, step, conflicts, log)

    def _build_result(
        self,
        office: Office,
        reason: str,
        step: str,
        conflicts: List[SchedulingConflict],
        log: List[str]
    ) -> SchedulingResult:
        log.append(f"{step}: selected {office.office_id}")
        notes = reason
        moves = [c for c in conflicts if c.is_resolvable]
        if moves:
            notes = f"{reason}; relocating {', '.join(self._describe_relocation(c) for c in moves)}"
            log.append(f"{step}: {len(moves)} existing booking(s) to relocate")

        return SchedulingResult(
            success=True,
            office_id=office.office_id,
            conflicts=conflicts,
            notes=notes,
            evaluation_log=log
        )

    @staticmethod
    def _describe_relocation(conflict: SchedulingConflict) -> str:
        booking = conflict.existing_booking
        who = booking.client_id if booking else "booking"
        return f"{who} to {conflict.resolution.new_office_id}"

    def _filter_features(self, offices: List[Office], request: SchedulingRequest, log: List[str]) -> List[Office]:
        """Narrow to offices carrying every requested feature, if any do."""
        wanted = request.requirements.special_features
        if not wanted:
            return offices

        matching = [o for o in offices if all(f in o.special_features for f in wanted)]
        if not matching:
            log.append(f"Special features {', '.join(wanted)}: no candidate has them all, ignoring")
            return offices
        log.append(f"Special features {', '.join(wanted)}: {len(matching)} candidate(s)")
        return matching

    @staticmethod
    def _find(office_id: str, offices: List[Office]) -> Optional[Office]:
        office_id = standardize_office_id(office_id)
        return next((o for o in offices if o.office_id == office_id), None)
