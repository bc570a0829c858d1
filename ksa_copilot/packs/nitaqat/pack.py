"""
Nitaqat (Saudization) Pack
==========================

Workforce localization compliance: quota threshold, band classification,
monitoring, training, hiring and documentation checks.
"""

import logging
import math
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from ...scoring.models import ChecklistItem, ChecklistStatus
from ..base import PolicyPack
from ..models import PackResult, PackStatus
from .calc import BandDetails, NitaqatBand, calculate_band_details
from .thresholds import THRESHOLDS_VERSION

logger = logging.getLogger(__name__)


class Sector(str, Enum):
    RETAIL = "retail"
    CONSTRUCTION = "construction"
    INFORMATION_TECHNOLOGY = "information_technology"
    MANUFACTURING = "manufacturing"
    HOSPITALITY = "hospitality"
    OTHER = "other"


class NitaqatInputs(BaseModel):
    """Company workforce inputs."""
    sector: Sector = Sector.OTHER
    headcount: int = Field(..., ge=1, description="Total number of employees")
    current_saudi_pct: Optional[float] = Field(
        None, ge=0, le=100, alias="currentSaudiPct", description="Saudi employees / total x 100"
    )

    class Config:
        populate_by_name = True


BAND_RECOMMENDATIONS = {
    NitaqatBand.RED: (
        "RED BAND: Immediate action required. You may face penalties, work visa restrictions, "
        "and cannot access government services."
    ),
    NitaqatBand.YELLOW: "YELLOW BAND: Improve hiring to avoid restrictions on new foreign worker visas.",
    NitaqatBand.GREEN: "GREEN BAND: Compliant. You can apply for work visas and access government services.",
    NitaqatBand.PLATINUM: "PLATINUM BAND: Excellent! You qualify for priority government services and incentives.",
}


class NitaqatPack(PolicyPack):
    id = "nitaqat"
    title = "Nitaqat (Saudization)"
    version = THRESHOLDS_VERSION
    description = "Saudi workforce localization requirements and compliance"
    inputs_model = NitaqatInputs

    def analyze(self, doc_text: str, inputs: NitaqatInputs) -> PackResult:
        if inputs.current_saudi_pct is None:
            return self._missing_percentage_result()

        details = calculate_band_details(inputs.sector.value, inputs.headcount, inputs.current_saudi_pct)
        checklist = self._build_checklist(details)

        gap_text = (
            f"Need {details.gap:.1f}% more to reach target."
            if details.gap > 0
            else "Meeting minimum requirements."
        )
        return PackResult(
            status=PackStatus.COMPLETED,
            pack_version=self.version,
            checklist=checklist,
            summary=(
                f"Nitaqat Analysis: {details.band.value.upper()} band with "
                f"{details.current_pct:.1f}% Saudization. {gap_text}"
            ),
        )

    def _missing_percentage_result(self) -> PackResult:
        return PackResult(
            status=PackStatus.PARTIAL,
            pack_version=self.version,
            checklist=[
                ChecklistItem(
                    key="current_percentage_missing",
                    title="Current Saudization Percentage Required",
                    description=(
                        "Please provide your current Saudi employee percentage to complete the analysis."
                    ),
                    status=ChecklistStatus.UNKNOWN,
                    criticality=5,
                    recommendation="Calculate: (Number of Saudi employees / Total employees) x 100",
                ),
            ],
            summary="Cannot complete analysis without current Saudi employee percentage.",
        )

    def _build_checklist(self, d: BandDetails) -> List[ChecklistItem]:
        checklist = []

        # 1. Quota threshold
        quota_met = d.current_pct >= d.target_pct
        employees_short = math.ceil((d.target_pct - d.current_pct) * d.headcount / 100)
        checklist.append(ChecklistItem(
            key="quota_threshold",
            title="Minimum Saudization Quota",
            description=(
                f"Your company ({d.sector_name}, {d.headcount} employees) has a current Saudization rate "
                f"of {d.current_pct:.1f}%. The minimum green band target is {d.target_pct:g}%."
            ),
            status=ChecklistStatus.PASS if quota_met else ChecklistStatus.FAIL,
            criticality=5,
            recommendation=(
                "You are meeting the minimum quota. Maintain or improve this ratio."
                if quota_met
                else f"You need to increase Saudi hiring by approximately {employees_short} employees "
                     f"to reach the green band minimum."
            ),
        ))

        # 2. Band classification
        if d.band in (NitaqatBand.PLATINUM, NitaqatBand.GREEN):
            band_status = ChecklistStatus.PASS
        elif d.band is NitaqatBand.YELLOW:
            band_status = ChecklistStatus.WARN
        else:
            band_status = ChecklistStatus.FAIL

        if d.next_band is not None:
            next_text = f" To reach {d.next_band.value.upper()}, you need {d.next_band_threshold:g}% Saudization."
        else:
            next_text = " You are in the highest band with incentive benefits."

        checklist.append(ChecklistItem(
            key="nitaqat_band",
            title="Nitaqat Band Classification",
            description=(
                f"Your company is currently in the {d.band.value.upper()} band ({d.current_pct:.1f}%).{next_text}"
            ),
            status=band_status,
            criticality=5,
            recommendation=BAND_RECOMMENDATIONS[d.band],
        ))

        # 3. Monthly monitoring
        checklist.append(ChecklistItem(
            key="monthly_monitoring",
            title="Monthly HRSD Reporting",
            description=(
                "Nitaqat status is calculated monthly based on data from the Ministry of Human Resources "
                "and Social Development (HRSD) systems."
            ),
            status=ChecklistStatus.UNKNOWN,
            criticality=3,
            recommendation=(
                "Ensure all Saudi employees are registered in GOSI and Mudad systems. "
                "Monitor your Nitaqat status monthly via Qiwa portal."
            ),
        ))

        # 4. Training
        training_needed = d.band is not NitaqatBand.PLATINUM
        checklist.append(ChecklistItem(
            key="training_plan",
            title="Saudi Employee Training Program",
            description=(
                "Implementing training programs for Saudi employees can help improve retention and "
                "count favorably in Nitaqat calculations."
                if training_needed
                else "Continue investing in Saudi employee development to maintain platinum status."
            ),
            status=ChecklistStatus.WARN if training_needed else ChecklistStatus.PASS,
            criticality=2,
            recommendation=(
                "Develop a structured training and career development program for Saudi nationals. "
                "Consider partnerships with HRDF (Human Resources Development Fund) for subsidized training."
                if training_needed
                else "Maintain your training programs and consider expanding mentorship initiatives."
            ),
        ))

        # 5. Hiring plan, below green only
        if d.band in (NitaqatBand.RED, NitaqatBand.YELLOW):
            hires = math.ceil(abs(d.gap) * d.headcount / 100)
            checklist.append(ChecklistItem(
                key="hiring_plan",
                title="Saudi Hiring Action Plan",
                description=(
                    f"You are {abs(d.gap):.1f}% below the green band minimum. Immediate hiring plan required."
                ),
                status=ChecklistStatus.FAIL,
                criticality=5,
                recommendation=(
                    f"Create a 90-day action plan to hire approximately {hires} Saudi nationals. "
                    f"Utilize Jadarat, HRDF programs, and recruitment agencies specializing in Saudi talent."
                ),
            ))

        # 6. Documentation
        checklist.append(ChecklistItem(
            key="documentation",
            title="Compliance Documentation",
            description=(
                "Maintain records of all Saudi employee contracts, GOSI registrations, "
                "and Nitaqat status reports."
            ),
            status=ChecklistStatus.UNKNOWN,
            criticality=2,
            recommendation=(
                "Keep monthly Nitaqat status exports from Qiwa portal. "
                "Document all hiring efforts and training programs for audits."
            ),
        ))

        return checklist
