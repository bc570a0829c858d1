"""
Scoring policy for checklist aggregation.

Credit earned per status, as a fraction of the item's criticality.
Product policy rather than regulation text: packs may tune it.

DEFAULT:
- pass:    full credit
- warn:    half credit
- fail:    nothing
- unknown: nothing (unresolved findings are not free passes)
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ScoringPolicy:
    """Credit table, each value in [0, 1]."""
    pass_credit: float = 1.0
    warn_credit: float = 0.5
    fail_credit: float = 0.0
    unknown_credit: float = 0.0

    def __post_init__(self):
        for name in ("pass_credit", "warn_credit", "fail_credit", "unknown_credit"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {value}")


DEFAULT_POLICY = ScoringPolicy()
