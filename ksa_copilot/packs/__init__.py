"""
Compliance Packs
================

Rule modules that turn company inputs and document text into a scored,
citation-backed checklist.

Packs:
- nitaqat: Saudization workforce quotas
- zatca_phase2: e-invoicing Phase 2 readiness
"""

from .base import PolicyPack
from .engine import PackEngine, PackInputError
from .models import PackResult, PackStatus
from .registry import PACKS, UnknownPackError, available_pack_ids, get_pack, is_valid_pack_id

__all__ = [
    "PolicyPack",
    "PackEngine",
    "PackInputError",
    "PackResult",
    "PackStatus",
    "PACKS",
    "UnknownPackError",
    "available_pack_ids",
    "get_pack",
    "is_valid_pack_id",
]
