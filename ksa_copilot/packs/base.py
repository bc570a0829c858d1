"""
Policy Pack Base
================

A pack is a self-contained compliance rule module. It validates its inputs,
evaluates rules into a checklist and describes the result. Citation lookup
and scoring are applied by the PackEngine.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel

from ..scoring import ChecklistScorer
from ..scoring.scoring_config import DEFAULT_POLICY, ScoringPolicy
from .models import PackResult


class PolicyPack(ABC):
    """Base class for compliance packs."""

    id: str = ""
    title: str = ""
    version: str = ""
    description: str = ""
    inputs_model: Type[BaseModel] = BaseModel
    scoring_policy: ScoringPolicy = DEFAULT_POLICY

    @abstractmethod
    def analyze(self, doc_text: str, inputs: BaseModel) -> PackResult:
        """
        Evaluate pack rules.

        Returns a PackResult with checklist (no citations, no score yet).
        Raising is reserved for rule defects; the engine reports it as failed.
        """

    def summarize(self, result: PackResult, inputs: BaseModel) -> Optional[str]:
        """One-line summary, computed after scoring."""
        return result.summary

    def score(self, result: PackResult) -> int:
        return ChecklistScorer(self.scoring_policy).score(result.checklist)

    def metadata(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "version": self.version,
            "description": self.description,
            "inputs_schema": self.inputs_model.model_json_schema(),
        }
