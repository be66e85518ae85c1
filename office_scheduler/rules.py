"""
Assignment rule matching.

This module answers the binary question: "Does rule R apply to request X?"
What a matching rule then does to candidate offices is decided in
``scoring.CandidateRanker``.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from office_models import (
    AssignmentRule,
    Office,
    ClientPreference,
    OverrideLevel,
    RuleType,
    SchedulingRequest,
)

logger = logging.getLogger(__name__)

ALWAYS_CONDITIONS = {"*", "always", "true"}
DEFAULT_ROOM_CONSISTENCY_THRESHOLD = 4

_AGE_CLAUSE = re.compile(r"^\s*(?:age\s*)?(<=|>=|==|=|<|>)\s*(\d+)\s*$", re.IGNORECASE)


@dataclass
class RuleMatch:
    """Outcome of evaluating one rule against one request."""
    rule: AssignmentRule
    matched: bool
    reason: str
    log: List[str] = field(default_factory=list)
    office_ids: Optional[List[str]] = None

    @property
    def override_level(self) -> OverrideLevel:
        return self.rule.override_level

    @property
    def targets(self) -> List[str]:
        """Offices the rule acts on; defaults to the offices the rule lists."""
        return self.rule.office_ids if self.office_ids is None else self.office_ids


def needs_accessibility(request: SchedulingRequest, preference: Optional[ClientPreference]) -> bool:
    """Request flag or any recorded mobility need."""
    if request.requirements.accessibility:
        return True
    return bool(preference and preference.has_mobility_needs)


def parse_id_list(condition: Optional[str]) -> List[str]:
    """``clinicianId=a,b`` / ``a, b`` / ``'a','b'`` -> ["a", "b"]."""
    if not condition:
        return []
    _, _, values = condition.rpartition("=")
    values = values.replace('"', "").replace("'", "")
    return [v.strip() for v in values.split(",") if v.strip()]


def age_matches(condition: str, age: int) -> bool:
    """Every ``&&``-joined clause (``>12&&<=17``) must hold."""
    clauses = [c for c in condition.split("&&") if c.strip()]
    if not clauses:
        return False

    for clause in clauses:
        match = _AGE_CLAUSE.match(clause)
        if not match:
            raise ValueError(f"Unparseable age clause: {clause!r}")
        op, bound = match.group(1), int(match.group(2))
        if op == "<=" and not age <= bound:
            return False
        if op == ">=" and not age >= bound:
            return False
        if op == "<" and not age < bound:
            return False
        if op == ">" and not age > bound:
            return False
        if op in ("==", "=") and not age == bound:
            return False
    return True


class RuleEvaluator:
    """
    Evaluates active assignment rules, in ascending priority, for one request.
    """

    def __init__(self, rules: List[AssignmentRule], offices: Optional[List[Office]] = None):
        self.offices = list(offices or [])
        self.rules = sorted((r for r in rules if r.active), key=lambda r: r.priority)
        self._handlers: Dict[str, Callable[[AssignmentRule, SchedulingRequest, Optional[ClientPreference]], Optional[str]]] = {
            RuleType.ACCESSIBILITY.value: self._match_accessibility,
            RuleType.AGE_GROUP.value: self._match_age_group,
            RuleType.SESSION_TYPE.value: self._match_session_type,
            RuleType.ROOM_TYPE.value: self._match_session_type,
            RuleType.CLINICIAN.value: self._match_clinician,
            RuleType.FIXED.value: self._match_clinician,
            RuleType.CLINICIAN_PRIMARY.value: self._match_primary_clinician,
            RuleType.CLINICIAN_ALTERNATIVE.value: self._match_clinician,
            RuleType.CLIENT.value: self._match_client,
            RuleType.SPECIAL_FEATURES.value: self._match_special_features,
            RuleType.ROOM_CONSISTENCY.value: self._match_room_consistency,
        }

    def evaluate(
        self,
        request: SchedulingRequest,
        preference: Optional[ClientPreference] = None
    ) -> List[RuleMatch]:
        """One ``RuleMatch`` per active rule, in evaluation order."""
        return [self.evaluate_rule(rule, request, preference) for rule in self.rules]

    def evaluate_rule(
        self,
        rule: AssignmentRule,
        request: SchedulingRequest,
        preference: Optional[ClientPreference] = None
    ) -> RuleMatch:
        header = f"Rule '{rule.label}' ({rule.rule_type}, {rule.override_level.value}, priority {rule.priority})"

        handler = self._handlers.get(rule.rule_type)
        if handler is None:
            logger.warning(f"Unknown rule type '{rule.rule_type}' on rule '{rule.label}'")
            return RuleMatch(rule, False, "unknown rule type", [f"{header}: unknown rule type, skipped"])

        condition = (rule.condition or "").strip()
        # Primary-clinician rules look at the offices, never at the condition
        if condition.lower() in ALWAYS_CONDITIONS and rule.rule_type != RuleType.CLINICIAN_PRIMARY.value:
            return RuleMatch(rule, True, "unconditional", [f"{header}: matches unconditionally"])

        try:
            reason = handler(rule, request, preference)
        except ValueError as e:
            logger.warning(f"Rule '{rule.label}' has an invalid condition: {e}")
            return RuleMatch(rule, False, "invalid condition", [f"{header}: invalid condition ({e})"])

        if reason is None:
            return RuleMatch(rule, False, "no match", [f"{header}: no match"])
        targets = None
        if rule.rule_type == RuleType.CLINICIAN_PRIMARY.value:
            targets = self._reserved_offices(rule, request)
        return RuleMatch(rule, True, reason, [f"{header}: matches ({reason})"], targets)

    # --- Per-type matchers: return a reason string when the rule applies ---

    def _match_accessibility(self, rule, request, preference) -> Optional[str]:
        if needs_accessibility(request, preference):
            return "client needs an accessible office"
        return None

    def _match_age_group(self, rule, request, preference) -> Optional[str]:
        if request.client_age is None or not rule.condition:
            return None
        if age_matches(rule.condition, request.client_age):
            return f"client age {request.client_age} within {rule.condition.strip()}"
        return None

    def _match_session_type(self, rule, request, preference) -> Optional[str]:
        listed = {v.lower() for v in parse_id_list(rule.condition)}
        if request.session_type.value in listed:
            return f"{request.session_type.value} session"
        return None

    def _match_clinician(self, rule, request, preference) -> Optional[str]:
        if request.clinician_id in parse_id_list(rule.condition):
            return f"clinician {request.clinician_id}"
        return None

    def _match_primary_clinician(self, rule, request, preference) -> Optional[str]:
        reserved = self._reserved_offices(rule, request)
        if reserved:
            return f"{', '.join(reserved)} reserved for other clinicians"
        return None

    def _reserved_offices(self, rule, request) -> List[str]:
        """
        Offices held by another primary clinician, where the requesting
        clinician is not listed as an alternative. Limited to the rule's
        offices when it lists any.
        """
        listed = set(rule.office_ids)
        return [
            o.office_id for o in self.offices
            if o.primary_clinician
            and o.primary_clinician != request.clinician_id
            and request.clinician_id not in o.alternative_clinicians
            and (not listed or o.office_id in listed)
        ]

    def _match_client(self, rule, request, preference) -> Optional[str]:
        if request.client_id in parse_id_list(rule.condition):
            return f"client {request.client_id}"
        return None

    def _match_special_features(self, rule, request, preference) -> Optional[str]:
        wanted = request.requirements.special_features
        if not wanted:
            return None
        listed = parse_id_list(rule.condition)
        if not listed:
            return "special features requested"
        hits = [f for f in wanted if f in listed]
        if hits:
            return f"requested {', '.join(hits)}"
        return None

    def _match_room_consistency(self, rule, request, preference) -> Optional[str]:
        if preference is None:
            return None
        threshold = int(rule.condition) if rule.condition else DEFAULT_ROOM_CONSISTENCY_THRESHOLD
        if preference.room_consistency >= threshold:
            return f"room consistency {preference.room_consistency} >= {threshold}"
        return None
