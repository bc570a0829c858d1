"""
ZATCA e-Invoicing Phase 2 Pack
==============================

Readiness checks for Phase 2 (integration) e-invoicing. Capabilities are
detected from keywords in the supplied ERP/process documentation; explicit
inputs override detection.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from ...scoring.models import ChecklistItem, ChecklistStatus
from ...scoring.scoring_config import ScoringPolicy
from ..base import PolicyPack
from ..models import PackResult, PackStatus

logger = logging.getLogger(__name__)

PACK_VERSION = "v2025.10"

KEYWORDS: Dict[str, Sequence[str]] = {
    "uuid": ("uuid", "unique identifier", "invoice id", "transaction id"),
    "qr": ("qr code", "qr-code", "quick response", "qr generation"),
    "cryptographic_stamp": (
        "cryptographic", "digital signature", "stamp", "certificate", "private key", "signing",
    ),
    "clearance_api": ("clearance", "reporting", "api integration", "zatca api", "fatoora", "clearance api"),
    "ubl": ("ubl", "universal business language", "ubl 2.1", "xml format"),
    "archiving": ("archive", "archiving", "storage", "retention", "data retention"),
}

# Unresolved items get a quarter credit in the readiness score
ZATCA_SCORING_POLICY = ScoringPolicy(pass_credit=1.0, warn_credit=0.5, fail_credit=0.0, unknown_credit=0.25)


class InvoiceFormat(str, Enum):
    XML = "XML"
    UBL = "UBL"
    CSV = "CSV"
    PDF = "PDF"
    OTHER = "Other"


class ZatcaPhase2Inputs(BaseModel):
    """ERP and invoicing profile."""
    erp: str = Field(..., min_length=1, description="ERP / invoicing system name")
    format: InvoiceFormat = InvoiceFormat.OTHER
    api_capable: bool = Field(False, alias="apiCapable")
    export_invoices: bool = Field(False, alias="exportInvoices")
    b2b_pct: Optional[float] = Field(None, ge=0, le=100, alias="b2bPct")
    peppol: bool = False

    class Config:
        populate_by_name = True


def detect_keywords(text: str, keywords: Sequence[str]) -> bool:
    """True if any keyword occurs in the text (case-insensitive)."""
    lower_text = text.lower()
    return any(keyword.lower() in lower_text for keyword in keywords)


def infer_status(detected: bool, input_hint: Optional[bool] = None) -> ChecklistStatus:
    """Explicit input wins over detection; nothing detected is unknown."""
    if input_hint is True:
        return ChecklistStatus.PASS
    if input_hint is False:
        return ChecklistStatus.FAIL
    if detected:
        return ChecklistStatus.PASS
    return ChecklistStatus.UNKNOWN


class ZatcaPhase2Pack(PolicyPack):
    id = "zatca_phase2"
    title = "ZATCA e-Invoicing (Phase 2)"
    version = PACK_VERSION
    description = "Electronic invoicing Phase 2 readiness and compliance requirements"
    inputs_model = ZatcaPhase2Inputs
    scoring_policy = ZATCA_SCORING_POLICY

    def analyze(self, doc_text: str, inputs: ZatcaPhase2Inputs) -> PackResult:
        text = doc_text or ""
        detected = {name: detect_keywords(text, words) for name, words in KEYWORDS.items()}
        return PackResult(
            status=PackStatus.COMPLETED,
            pack_version=self.version,
            checklist=self._build_checklist(inputs, detected),
        )

    def summarize(self, result: PackResult, inputs: ZatcaPhase2Inputs) -> Optional[str]:
        open_items = sum(
            1 for item in result.checklist
            if item.status in (ChecklistStatus.FAIL, ChecklistStatus.UNKNOWN)
        )
        return (
            f"ZATCA Phase 2 Readiness: {result.score}/100. "
            f"{inputs.erp} requires {open_items} items to be addressed."
        )

    def _build_checklist(self, inputs: ZatcaPhase2Inputs, detected: Dict[str, bool]) -> List[ChecklistItem]:
        erp = inputs.erp
        fmt = inputs.format.value
        format_is_xml_or_ubl = inputs.format in (InvoiceFormat.XML, InvoiceFormat.UBL)
        checklist = []

        has_uuid = detected["uuid"]
        checklist.append(ChecklistItem(
            key="uuid",
            title="Invoice UUID Generation",
            description=(
                "UUID generation capability detected in documentation."
                if has_uuid else "No explicit mention of UUID generation found."
            ),
            status=infer_status(has_uuid),
            criticality=5,
            recommendation=(
                "Ensure UUIDs are RFC 4122 compliant (version 4 recommended)."
                if has_uuid else f"{erp} must generate a unique UUID for every invoice. Implement UUID v4 library."
            ),
        ))

        has_qr = detected["qr"]
        checklist.append(ChecklistItem(
            key="qr",
            title="QR Code Generation",
            description=(
                "QR code generation capability detected."
                if has_qr else "QR code generation not clearly documented."
            ),
            status=infer_status(has_qr),
            criticality=5,
            recommendation=(
                "Verify QR includes all 9 required ZATCA tags."
                if has_qr else
                f"{erp} must generate TLV-encoded QR codes with seller, VAT, timestamp, total, VAT amount, "
                f"hash, signature, public key, and certificate."
            ),
        ))

        has_crypto = detected["cryptographic_stamp"]
        checklist.append(ChecklistItem(
            key="cryptographic_stamp",
            title="Cryptographic Stamp/Digital Signature",
            description=(
                "Cryptographic signing capability detected."
                if has_crypto else "No mention of digital signatures or cryptographic stamps."
            ),
            status=infer_status(has_crypto),
            criticality=5,
            recommendation=(
                "Ensure you have obtained a certificate from an accredited provider and store private keys "
                "securely (HSM recommended)."
                if has_crypto else
                f"{erp} must implement X.509 certificate-based signing. Apply for a certificate and integrate "
                f"signing into invoice generation."
            ),
        ))

        has_api = detected["clearance_api"]
        checklist.append(ChecklistItem(
            key="clearance_reporting_api",
            title="ZATCA API Integration (Clearance/Reporting)",
            description=(
                f"API integration capability: {'documented' if has_api else 'confirmed via inputs'}."
                if inputs.api_capable else "No API integration capability mentioned."
            ),
            status=infer_status(has_api, inputs.api_capable),
            criticality=5,
            recommendation=(
                "Test clearance (B2B) and reporting (B2C) endpoints in ZATCA sandbox before production."
                if inputs.api_capable else
                f"{erp} must integrate with ZATCA's Fatoora API. Budget for API development or middleware "
                f"(e.g., middleware connector for {erp})."
            ),
        ))

        has_ubl = detected["ubl"]
        if format_is_xml_or_ubl:
            ubl_status = ChecklistStatus.PASS if has_ubl else ChecklistStatus.WARN
            ubl_recommendation = (
                "UBL 2.1 format confirmed. Validate against ZATCA schema before go-live."
                if has_ubl else
                f"{erp} supports XML but ensure it outputs valid UBL 2.1. Test with ZATCA validation tool."
            )
        else:
            ubl_status = ChecklistStatus.FAIL
            ubl_recommendation = (
                f"{erp} currently uses {fmt}, which is not ZATCA-compliant. You must convert to UBL 2.1 XML. "
                f"Consider middleware or ERP upgrade."
            )
        checklist.append(ChecklistItem(
            key="ubl_format",
            title="XML/UBL 2.1 Invoice Format",
            description=(
                f"Current format: {fmt}. "
                f"{'Compliant format selected.' if format_is_xml_or_ubl else 'Non-compliant format.'}"
            ),
            status=ubl_status,
            criticality=5,
            recommendation=ubl_recommendation,
        ))

        has_archiving = detected["archiving"]
        checklist.append(ChecklistItem(
            key="archiving",
            title="6-Year Invoice Archiving",
            description=(
                "Archiving capability detected."
                if has_archiving else "No clear archiving strategy documented."
            ),
            status=infer_status(has_archiving),
            criticality=3,
            recommendation=(
                "Ensure archives include XML invoice, ZATCA response, QR code, and digital signature "
                "for minimum 6 years."
                if has_archiving else
                f"Implement archiving solution (cloud or on-premise) to store invoices + ZATCA responses "
                f"for 6 years. {erp} may have built-in archiving, verify."
            ),
        ))

        needs_integration = not format_is_xml_or_ubl or not inputs.api_capable
        checklist.append(ChecklistItem(
            key="erp_integration",
            title=f"{erp} Integration Readiness",
            description=(
                f"{erp} requires integration work to meet ZATCA Phase 2."
                if needs_integration else f"{erp} appears configured for ZATCA Phase 2."
            ),
            status=ChecklistStatus.WARN if needs_integration else ChecklistStatus.PASS,
            criticality=4,
            recommendation=(
                f"{erp} needs updates:\n1. Enable XML/UBL output\n2. Add UUID + QR generation\n"
                f"3. Integrate ZATCA API\n4. Configure cryptographic signing\n"
                f"Estimate 2-4 months for full integration. Consider {erp} consultants or middleware."
                if needs_integration else
                f"{erp} is ready. Complete sandbox testing, train users, and schedule production rollout."
            ),
        ))

        if inputs.b2b_pct is not None and inputs.b2b_pct > 50:
            checklist.append(ChecklistItem(
                key="peppol",
                title="PEPPOL Network Access (Optional)",
                description=(
                    "PEPPOL network access requested for cross-border B2B invoicing."
                    if inputs.peppol else
                    f"With {inputs.b2b_pct:.0f}% B2B transactions, consider PEPPOL for international "
                    f"trading partners."
                ),
                status=ChecklistStatus.UNKNOWN,
                criticality=2,
                recommendation=(
                    "PEPPOL (Pan-European Public Procurement OnLine) enables standardized e-invoicing with "
                    "international partners.\nSteps:\n1. Register with PEPPOL Access Point provider\n"
                    f"2. Obtain PEPPOL ID\n3. Configure {erp} to send via PEPPOL network\n"
                    "Not mandatory for ZATCA Phase 2, but valuable for B2B export/import businesses."
                ),
            ))

        return checklist
