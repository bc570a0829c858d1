"""
Pack Result Models
==================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..scoring.models import ChecklistItem


class PackStatus(str, Enum):
    """Terminal status of one pack run."""
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class PackResult:
    """Outcome of running one pack against one document."""
    status: PackStatus
    pack_version: str
    score: int = 0
    checklist: List[ChecklistItem] = field(default_factory=list)
    summary: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not 0 <= self.score <= 100:
            raise ValueError(f"score must be between 0 and 100, got {self.score}")

    @classmethod
    def failed(cls, pack_version: str, error: str) -> "PackResult":
        return cls(status=PackStatus.FAILED, pack_version=pack_version, score=0, errors=[error])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "score": self.score,
            "pack_version": self.pack_version,
            "summary": self.summary,
            "errors": list(self.errors),
            "checklist": [item.to_dict() for item in self.checklist],
        }
