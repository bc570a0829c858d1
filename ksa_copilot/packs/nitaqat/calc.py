"""
Nitaqat Calculator
==================

Saudization quota and band classification.

Bands, lowest to highest: red < yellow < green < platinum.
The green minimum of the company's size band is its target percentage.
Unknown sectors fall back to "other".
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .thresholds import SECTORS

FALLBACK_SECTOR = "other"
AVAILABLE_SECTORS = tuple(SECTORS.keys())


class NitaqatBand(str, Enum):
    """Color band classification."""
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"
    PLATINUM = "platinum"


@dataclass(frozen=True)
class BandRange:
    min: float
    max: float

    def to_dict(self) -> Dict[str, float]:
        return {"min": self.min, "max": self.max}


@dataclass(frozen=True)
class SizeBand:
    """Thresholds for one headcount range of a sector."""
    min_headcount: int
    max_headcount: Optional[int]
    yellow_min: float
    green_min: float
    platinum_min: float

    def contains(self, headcount: int) -> bool:
        if headcount < self.min_headcount:
            return False
        return self.max_headcount is None or headcount <= self.max_headcount

    @property
    def target_min(self) -> float:
        return self.green_min

    @property
    def red(self) -> BandRange:
        return BandRange(0, self.yellow_min)

    @property
    def yellow(self) -> BandRange:
        return BandRange(self.yellow_min, self.green_min)

    @property
    def green(self) -> BandRange:
        return BandRange(self.green_min, self.platinum_min)

    @property
    def platinum(self) -> BandRange:
        return BandRange(self.platinum_min, 100)


@dataclass(frozen=True)
class BandDetails:
    """Full band picture for one company."""
    band: NitaqatBand
    current_pct: float
    target_pct: float
    gap: float
    next_band: Optional[NitaqatBand]
    next_band_threshold: Optional[float]
    sector: str
    sector_name: str
    headcount: int
    red_range: BandRange
    yellow_range: BandRange
    green_range: BandRange
    platinum_range: BandRange


def normalize_sector(sector: str) -> str:
    return sector if sector in SECTORS else FALLBACK_SECTOR


def get_sector_name(sector: str) -> str:
    data = SECTORS.get(sector)
    return data["name"] if data else "Unknown Sector"


def _size_bands(sector: str) -> List[SizeBand]:
    return [SizeBand(*row) for row in SECTORS[sector]["bands"]]


def get_size_band(sector: str, headcount: int) -> SizeBand:
    """
    Size band containing the headcount (sector normalized).

    Raises:
        ValueError: Non-positive headcount or no matching band
    """
    if headcount <= 0:
        raise ValueError("Headcount must be greater than 0")
    for band in _size_bands(normalize_sector(sector)):
        if band.contains(headcount):
            return band
    raise ValueError(f"No size band found for headcount: {headcount}")


def target_pct(sector: str, headcount: int) -> float:
    """Minimum target Saudi percentage (green band minimum)."""
    return get_size_band(sector, headcount).target_min


def band_from(current_pct: float, sector: str, headcount: int) -> NitaqatBand:
    """
    Band for a company.

    Raises:
        ValueError: Percentage outside [0, 100] or non-positive headcount
    """
    if current_pct < 0 or current_pct > 100:
        raise ValueError("Current percentage must be between 0 and 100")

    band = get_size_band(sector, headcount)
    if current_pct >= band.platinum_min:
        return NitaqatBand.PLATINUM
    if current_pct >= band.green_min:
        return NitaqatBand.GREEN
    if current_pct >= band.yellow_min:
        return NitaqatBand.YELLOW
    return NitaqatBand.RED


def _next_band(band: NitaqatBand, size_band: SizeBand) -> Tuple[Optional[NitaqatBand], Optional[float]]:
    if band is NitaqatBand.RED:
        return NitaqatBand.YELLOW, size_band.yellow_min
    if band is NitaqatBand.YELLOW:
        return NitaqatBand.GREEN, size_band.green_min
    if band is NitaqatBand.GREEN:
        return NitaqatBand.PLATINUM, size_band.platinum_min
    return None, None


def calculate_band_details(sector: str, headcount: int, current_pct: float) -> BandDetails:
    """Band, target, gap to target and next band for a company."""
    normalized = normalize_sector(sector)
    size_band = get_size_band(normalized, headcount)
    band = band_from(current_pct, normalized, headcount)
    target = size_band.target_min
    next_band, next_threshold = _next_band(band, size_band)

    return BandDetails(
        band=band,
        current_pct=current_pct,
        target_pct=target,
        gap=target - current_pct,
        next_band=next_band,
        next_band_threshold=next_threshold,
        sector=normalized,
        sector_name=get_sector_name(normalized),
        headcount=headcount,
        red_range=size_band.red,
        yellow_range=size_band.yellow,
        green_range=size_band.green,
        platinum_range=size_band.platinum,
    )
