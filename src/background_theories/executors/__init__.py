"""Axiom executors: the contract and the concrete axioms."""

from .base import AxiomExecutor, Complexity, ExecutionResult, FactKind
from .rexist_linking import EventualitySource, RexistLinkingExecutor
from .set_union import SetUnionExecutor

__all__ = [
    "AxiomExecutor",
    "Complexity",
    "ExecutionResult",
    "FactKind",
    "EventualitySource",
    "RexistLinkingExecutor",
    "SetUnionExecutor",
]
