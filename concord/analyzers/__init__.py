"""The five dimension analyzers."""

from concord.analyzers.base import ArbitrationContext, DimensionAnalyzer
from concord.analyzers.factual import FactualAnalyzer
from concord.analyzers.pairwise import PairwiseAnalyzer
from concord.analyzers.procedure import ProcedureAnalyzer
from concord.analyzers.safety import SafetyAnalyzer
from concord.analyzers.semantic import SemanticAnalyzer


def default_analyzers() -> list[DimensionAnalyzer]:
    """One analyzer per dimension, in canonical dimension order."""
    return [
        PairwiseAnalyzer(),
        SemanticAnalyzer(),
        FactualAnalyzer(),
        ProcedureAnalyzer(),
        SafetyAnalyzer(),
    ]


__all__ = [
    "ArbitrationContext",
    "DimensionAnalyzer",
    "FactualAnalyzer",
    "PairwiseAnalyzer",
    "ProcedureAnalyzer",
    "SafetyAnalyzer",
    "SemanticAnalyzer",
    "default_analyzers",
]
