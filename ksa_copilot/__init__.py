"""
KSA Compliance Copilot
======================

Regulation knowledge base, citation-backed policy packs and
weighted checklist scoring for Saudi compliance analysis.
"""

__version__ = "0.1.0"
