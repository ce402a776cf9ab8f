"""
background_theories/executors/rexist_linking.py - Axiom 5.1

    (forall (x) (iff (p x) (exists (e) (and (p' e x) (Rexist e)))))

p is true of x iff there is an eventuality e of p being true of x and e
really exists. Operationally: every well-formed eventuality in the context
gets exactly one realized Rexist predicate, and is itself realized.

Deriving eventualities from arbitrary unprimed predicates is left to
pluggable ``eventuality_sources``: callables that look at the context and
propose eventualities to add before linking.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Sequence

from ..context import ReasoningContext
from ..entities import EntityKind, EventualityEntity
from ..predicates import PredicateKind, RexistPredicate
from .base import AxiomExecutor, Complexity, ExecutionResult

logger = logging.getLogger(__name__)

EventualitySource = Callable[[ReasoningContext], Iterable[EventualityEntity]]


class RexistLinkingExecutor(AxiomExecutor):
    """Link eventualities to real existence."""

    AXIOM_ID = "5.1"

    def __init__(self, eventuality_sources: Sequence[EventualitySource] = ()):
        super().__init__(
            self.AXIOM_ID,
            "p is true of x if and only if there is an eventuality e that is the "
            "eventuality of p being true of x and e really exists",
            reads=[EntityKind.EVENTUALITY, PredicateKind.REXIST],
            writes=[EntityKind.EVENTUALITY, PredicateKind.REXIST],
            fol_formula="(forall (x) (iff (p x) (exists (e)(and (p' e x)(Rexist e)))))",
            complexity=Complexity.MODERATE,
        )
        self.eventuality_sources = list(eventuality_sources)

    def is_applicable(self, context: ReasoningContext) -> bool:
        return bool(self.eventuality_sources) or context.has_entities(
            EntityKind.EVENTUALITY
        )

    def execute(self, context: ReasoningContext) -> ExecutionResult:
        result = ExecutionResult()
        self._step(context, result, "axiom_5_1_start")

        self._add_implied_eventualities(context, result)

        for eventuality in context.entities_of(EntityKind.EVENTUALITY):
            problems = eventuality.validate()
            if problems:
                self._step(
                    context,
                    result,
                    "eventuality_skipped",
                    eventuality_id=eventuality.id,
                    reason="; ".join(problems),
                )
                continue

            if context.predicates_referencing(eventuality.id, PredicateKind.REXIST):
                continue

            rexist = RexistPredicate(
                eventuality, predicate_id=context.new_id(PredicateKind.REXIST.value)
            )
            rexist.make_really_exist()
            context.add_predicate(rexist)
            result.predicates.append(rexist)
            self._step(
                context,
                result,
                "rexist_predicate_created",
                eventuality_id=eventuality.id,
                predicate_id=rexist.id,
                predicate_name=eventuality.predicate_name,
            )

        self._step(context, result, "axiom_5_1_complete", results_count=len(result))
        logger.debug("Axiom 5.1 linked %d eventualities", len(result.predicates))
        return result

    def _add_implied_eventualities(
        self, context: ReasoningContext, result: ExecutionResult
    ) -> None:
        for source in self.eventuality_sources:
            for eventuality in source(context):
                if context.get_entity(eventuality.id) is not None:
                    continue
                context.add_entity(eventuality)
                result.entities.append(eventuality)
                self._step(
                    context,
                    result,
                    "eventuality_inferred",
                    eventuality_id=eventuality.id,
                    predicate_name=eventuality.predicate_name,
                )
