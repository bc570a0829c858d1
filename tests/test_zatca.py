"""
Tests for the ZATCA Phase 2 pack.
"""

import pytest
from pydantic import ValidationError

from ksa_copilot.packs.models import PackStatus
from ksa_copilot.packs.zatca_phase2 import (
    ZATCA_SCORING_POLICY,
    InvoiceFormat,
    ZatcaPhase2Inputs,
    ZatcaPhase2Pack,
    detect_keywords,
    infer_status,
)
from ksa_copilot.scoring import ChecklistStatus, score_checklist

READY_DOC = (
    "Our ERP generates a UUID per invoice and prints a QR code. Invoices carry a digital signature, "
    "are sent through the clearance API, are output as UBL 2.1 and kept in a 6-year archive."
)


class TestKeywordDetection:

    def test_detect_case_insensitive(self):
        assert detect_keywords("Supports QR Code printing", ["qr code"])
        assert not detect_keywords("Supports barcodes", ["qr code"])

    def test_infer_status(self):
        assert infer_status(True) is ChecklistStatus.PASS
        assert infer_status(False) is ChecklistStatus.UNKNOWN
        assert infer_status(False, True) is ChecklistStatus.PASS
        assert infer_status(True, False) is ChecklistStatus.FAIL


class TestZatcaPhase2Inputs:

    def test_aliases(self):
        inputs = ZatcaPhase2Inputs.model_validate({"erp": "SAP", "format": "XML", "apiCapable": True, "b2bPct": 70})

        assert inputs.api_capable is True
        assert inputs.format is InvoiceFormat.XML
        assert inputs.b2b_pct == 70

    @pytest.mark.parametrize("payload", [
        {},
        {"erp": ""},
        {"erp": "SAP", "format": "DOCX"},
        {"erp": "SAP", "b2bPct": 150},
    ])
    def test_invalid(self, payload):
        with pytest.raises(ValidationError):
            ZatcaPhase2Inputs.model_validate(payload)


class TestZatcaPhase2Pack:
    """Checklist generation and scoring."""

    def setup_method(self):
        """Set up test fixtures."""
        self.pack = ZatcaPhase2Pack()

    def statuses(self, result):
        return {item.key: item.status for item in result.checklist}

    def test_ready_system(self):
        inputs = ZatcaPhase2Inputs(erp="SAP", format=InvoiceFormat.XML, api_capable=True)
        result = self.pack.analyze(READY_DOC, inputs)

        assert result.status is PackStatus.COMPLETED
        assert set(self.statuses(result).values()) == {ChecklistStatus.PASS}
        assert [i.key for i in result.checklist] == [
            "uuid", "qr", "cryptographic_stamp", "clearance_reporting_api",
            "ubl_format", "archiving", "erp_integration",
        ]
        assert self.pack.score(result) == 100

    def test_unprepared_system(self):
        inputs = ZatcaPhase2Inputs(erp="Legacy ERP", format=InvoiceFormat.PDF)
        result = self.pack.analyze("", inputs)

        assert self.statuses(result) == {
            "uuid": ChecklistStatus.UNKNOWN,
            "qr": ChecklistStatus.UNKNOWN,
            "cryptographic_stamp": ChecklistStatus.UNKNOWN,
            "clearance_reporting_api": ChecklistStatus.FAIL,
            "ubl_format": ChecklistStatus.FAIL,
            "archiving": ChecklistStatus.UNKNOWN,
            "erp_integration": ChecklistStatus.WARN,
        }
        # unknown items earn a quarter credit in this pack
        assert self.pack.score(result) == 20
        assert score_checklist(result.checklist) == 6
        assert "PDF, which is not ZATCA-compliant" in result.checklist[4].recommendation

    def test_xml_without_ubl_mention_warns(self):
        inputs = ZatcaPhase2Inputs(erp="Odoo", format=InvoiceFormat.XML, api_capable=True)
        result = self.pack.analyze("We export invoices.", inputs)

        assert self.statuses(result)["ubl_format"] is ChecklistStatus.WARN
        assert self.statuses(result)["erp_integration"] is ChecklistStatus.PASS

    def test_peppol_only_for_mostly_b2b(self):
        mostly_b2b = self.pack.analyze("", ZatcaPhase2Inputs(erp="SAP", b2b_pct=60))
        half_b2b = self.pack.analyze("", ZatcaPhase2Inputs(erp="SAP", b2b_pct=50))

        assert self.statuses(mostly_b2b)["peppol"] is ChecklistStatus.UNKNOWN
        assert "peppol" not in self.statuses(half_b2b)

    def test_summary_counts_open_items(self):
        inputs = ZatcaPhase2Inputs(erp="SAP", format=InvoiceFormat.PDF)
        result = self.pack.analyze("", inputs)
        result.score = self.pack.score(result)

        assert self.pack.summarize(result, inputs) == (
            "ZATCA Phase 2 Readiness: 20/100. SAP requires 6 items to be addressed."
        )

    def test_scoring_policy(self):
        assert self.pack.scoring_policy is ZATCA_SCORING_POLICY
        assert ZATCA_SCORING_POLICY.unknown_credit == 0.25
