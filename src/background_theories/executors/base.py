"""
background_theories/executors/base.py - Axiom Executor Contract

Each axiom of the background theories is compiled by hand into an executor:
an imperative procedure that reads and writes the reasoning context.

    is_applicable(context)  cheap precondition, False means "skip"
    execute(context)        the only place side effects happen; returns the
                            delta (new entities, new predicates, trace)

The FOL formula is kept as documentation for traceability. It is never
parsed or executed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Union

from ..context import ReasoningContext, TraceEntry
from ..entities import Entity, EntityKind
from ..predicates import Predicate, PredicateKind

FactKind = Union[EntityKind, PredicateKind]


class Complexity(str, Enum):
    """Informational complexity rating of an axiom."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    UNKNOWN = "unknown"

    @property
    def priority(self) -> int:
        """Listing priority, lower first."""
        return {
            Complexity.SIMPLE: 1,
            Complexity.MODERATE: 2,
            Complexity.COMPLEX: 3,
            Complexity.UNKNOWN: 5,
        }[self]


@dataclass
class ExecutionResult:
    """Delta produced by one execution of an axiom."""

    entities: list[Entity] = field(default_factory=list)
    predicates: list[Predicate] = field(default_factory=list)
    trace: list[TraceEntry] = field(default_factory=list)

    @property
    def progressed(self) -> bool:
        return bool(self.entities or self.predicates)

    def __len__(self) -> int:
        return len(self.entities) + len(self.predicates)


class AxiomExecutor(ABC):
    """Base class for axiom executors.

    Executors hold no per-episode state; everything they derive lives in
    the context passed to ``execute``.
    """

    def __init__(
        self,
        axiom_id: str,
        description: str,
        reads: Iterable[FactKind] = (),
        writes: Iterable[FactKind] = (),
        fol_formula: str = "",
        complexity: Complexity = Complexity.UNKNOWN,
    ):
        self.axiom_id = axiom_id
        self.description = description
        self.reads: frozenset[FactKind] = frozenset(reads)
        self.writes: frozenset[FactKind] = frozenset(writes)
        self.fol_formula = fol_formula
        self.complexity = complexity

    @property
    def kinds(self) -> frozenset[FactKind]:
        """Every kind this axiom reads or writes."""
        return self.reads | self.writes

    def is_applicable(self, context: ReasoningContext) -> bool:
        """Default: at least one fact of a kind the axiom reads exists."""
        for kind in self.reads:
            if isinstance(kind, EntityKind) and context.has_entities(kind):
                return True
            if isinstance(kind, PredicateKind) and context.has_predicates(kind):
                return True
        return False

    @abstractmethod
    def execute(self, context: ReasoningContext) -> ExecutionResult:
        """Apply the axiom to the context and return what was derived."""

    def conflicts_with(self, other: AxiomExecutor) -> bool:
        """True if the two axioms touch a common kind of fact."""
        return bool(self.kinds & other.kinds)

    def _step(
        self,
        context: ReasoningContext,
        result: ExecutionResult,
        step: str,
        **data: Any,
    ) -> TraceEntry:
        entry = context.trace(step, axiom_id=self.axiom_id, **data)
        result.trace.append(entry)
        return entry

    def describe(self) -> dict[str, Any]:
        return {
            "axiom_id": self.axiom_id,
            "description": self.description,
            "complexity": self.complexity.value,
            "reads": sorted(k.value for k in self.reads),
            "writes": sorted(k.value for k in self.writes),
            "fol_formula": self.fol_formula,
        }

    def __str__(self) -> str:
        return f"Axiom {self.axiom_id}: {self.description}"
