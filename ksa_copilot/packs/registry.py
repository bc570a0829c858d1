"""
Pack Registry
=============

Central registry of available compliance packs.
"""

from typing import Dict, List

from .base import PolicyPack
from .nitaqat import NitaqatPack
from .zatca_phase2 import ZatcaPhase2Pack


class UnknownPackError(KeyError):
    """Requested pack id is not registered."""

    def __init__(self, pack_id: str):
        self.pack_id = pack_id
        super().__init__(f"Unknown pack: {pack_id}")


PACKS: Dict[str, PolicyPack] = {
    pack.id: pack
    for pack in (NitaqatPack(), ZatcaPhase2Pack())
}


def get_pack(pack_id: str) -> PolicyPack:
    try:
        return PACKS[pack_id]
    except KeyError:
        raise UnknownPackError(pack_id)


def available_pack_ids() -> List[str]:
    return list(PACKS.keys())


def is_valid_pack_id(pack_id: str) -> bool:
    return pack_id in PACKS
