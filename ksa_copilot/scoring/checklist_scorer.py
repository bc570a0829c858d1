"""
Checklist Scorer
================

Aggregates a checklist into a 0-100 compliance score using weighted
partial credit:

    total  = sum(criticality)
    earned = sum(criticality * credit(status))
    score  = round_half_up(100 * earned / total), 0 if total == 0

Pure and deterministic. Rounding is half-up (62.5 -> 63).
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from .models import ChecklistItem, ChecklistStatus
from .scoring_config import DEFAULT_POLICY, ScoringPolicy

logger = logging.getLogger(__name__)


class ChecklistScorer:
    """Weighted partial-credit scorer."""

    def __init__(self, policy: Optional[ScoringPolicy] = None):
        self.policy = policy or DEFAULT_POLICY

    def credit(self, status: ChecklistStatus) -> Decimal:
        """Credit fraction for a status. Every status has an explicit branch."""
        if status is ChecklistStatus.PASS:
            value = self.policy.pass_credit
        elif status is ChecklistStatus.WARN:
            value = self.policy.warn_credit
        elif status is ChecklistStatus.FAIL:
            value = self.policy.fail_credit
        elif status is ChecklistStatus.UNKNOWN:
            value = self.policy.unknown_credit
        else:
            raise ValueError(f"Unhandled checklist status: {status!r}")
        return Decimal(str(value))

    def score(self, checklist: Iterable[ChecklistItem]) -> int:
        """
        Score a checklist.

        Args:
            checklist: Checklist items (status + criticality)

        Returns:
            Integer score in [0, 100]; 0 for an empty checklist
        """
        total = Decimal(0)
        earned = Decimal(0)

        for item in checklist:
            weight = Decimal(item.criticality)
            total += weight
            earned += weight * self.credit(item.status)

        if total == 0:
            return 0

        raw = Decimal(100) * earned / total
        score = int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))
        return max(0, min(100, score))


def score_checklist(checklist: Iterable[ChecklistItem], policy: Optional[ScoringPolicy] = None) -> int:
    """Score a checklist with the given (or default) policy."""
    return ChecklistScorer(policy).score(checklist)
