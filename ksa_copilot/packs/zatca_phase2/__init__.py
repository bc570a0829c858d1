from .pack import (
    KEYWORDS,
    ZATCA_SCORING_POLICY,
    InvoiceFormat,
    ZatcaPhase2Inputs,
    ZatcaPhase2Pack,
    detect_keywords,
    infer_status,
)

__all__ = [
    "KEYWORDS",
    "ZATCA_SCORING_POLICY",
    "InvoiceFormat",
    "ZatcaPhase2Inputs",
    "ZatcaPhase2Pack",
    "detect_keywords",
    "infer_status",
]
