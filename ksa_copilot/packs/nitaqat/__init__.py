from .calc import (
    AVAILABLE_SECTORS,
    BandDetails,
    NitaqatBand,
    band_from,
    calculate_band_details,
    get_sector_name,
    target_pct,
)
from .pack import NitaqatInputs, NitaqatPack, Sector

__all__ = [
    "AVAILABLE_SECTORS",
    "BandDetails",
    "NitaqatBand",
    "band_from",
    "calculate_band_details",
    "get_sector_name",
    "target_pct",
    "NitaqatInputs",
    "NitaqatPack",
    "Sector",
]
