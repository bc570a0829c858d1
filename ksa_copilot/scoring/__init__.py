"""
Checklist scoring.

Usage:
    from ksa_copilot.scoring import score_checklist, ChecklistItem, ChecklistStatus

    score = score_checklist(items)
"""

from .checklist_scorer import ChecklistScorer, score_checklist
from .models import ChecklistItem, ChecklistStatus
from .scoring_config import DEFAULT_POLICY, ScoringPolicy

__all__ = [
    "ChecklistScorer",
    "score_checklist",
    "ChecklistItem",
    "ChecklistStatus",
    "ScoringPolicy",
    "DEFAULT_POLICY",
]
