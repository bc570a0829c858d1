"""
KSA Copilot API
===============

FastAPI application exposing policy packs and the regulation knowledge base.
"""
