"""
Candidate ranking for office assignment.

Matched assignment rules act on the offices they list:
- hard: the offices are removed from candidacy for this request.
- soft: each matching rule adds one down-rank penalty to its offices.
- none: recorded in the evaluation log only.

Ordering is by penalty, with the input order as a stable tie-break, so an
office is never promoted above one it was behind unless the other was
penalised.
"""

from collections import defaultdict
from typing import Dict, List, Set

from office_models import Office, OverrideLevel
from .rules import RuleMatch


class CandidateRanker:
    """
    Applies matched rules to a candidate pool.
    """

    def __init__(self, matches: List[RuleMatch]):
        self.vetoed: Set[str] = set()
        self.penalties: Dict[str, int] = defaultdict(int)
        self.log: List[str] = []

        for match in matches:
            if not match.matched:
                continue
            office_ids = list(match.targets)
            label = match.rule.label

            if match.override_level == OverrideLevel.HARD:
                self.vetoed.update(office_ids)
                self.log.append(f"Hard rule '{label}' removes {', '.join(office_ids) or 'no offices'}")
            elif match.override_level == OverrideLevel.SOFT:
                for office_id in office_ids:
                    self.penalties[office_id] += 1
                self.log.append(f"Soft rule '{label}' down-ranks {', '.join(office_ids) or 'no offices'}")
            else:
                self.log.append(f"Rule '{label}' matched (advisory only)")

    def is_vetoed(self, office_id: str) -> bool:
        return office_id in self.vetoed

    def penalty(self, office_id: str) -> int:
        return self.penalties.get(office_id, 0)

    def filter(self, offices: List[Office]) -> List[Office]:
        """Drop hard-vetoed offices, keeping input order."""
        return [o for o in offices if not self.is_vetoed(o.office_id)]

    def rank(self, offices: List[Office]) -> List[Office]:
        """Hard-vetoed offices removed, the rest ordered by penalty (stable)."""
        return sorted(self.filter(offices), key=lambda o: self.penalty(o.office_id))
