"""
Checklist Models
================

A checklist item is one compliance finding with a status, a criticality
weight (1-5) and the regulation citations backing it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..rag.models import CitationRef

MIN_CRITICALITY = 1
MAX_CRITICALITY = 5


class ChecklistStatus(str, Enum):
    """Outcome of a single checklist rule."""
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ChecklistItem:
    """A single compliance finding."""
    key: str
    title: str
    description: str
    status: ChecklistStatus
    criticality: int
    recommendation: Optional[str] = None
    citations: List[CitationRef] = field(default_factory=list)

    def __post_init__(self):
        if isinstance(self.status, str) and not isinstance(self.status, ChecklistStatus):
            object.__setattr__(self, "status", ChecklistStatus(self.status))
        if isinstance(self.criticality, bool) or not isinstance(self.criticality, int):
            raise TypeError(f"criticality must be an int, got {self.criticality!r}")
        if not MIN_CRITICALITY <= self.criticality <= MAX_CRITICALITY:
            raise ValueError(
                f"criticality must be between {MIN_CRITICALITY} and {MAX_CRITICALITY}, got {self.criticality}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "criticality": self.criticality,
            "recommendation": self.recommendation,
            "citations": [c.to_dict() for c in self.citations],
        }
