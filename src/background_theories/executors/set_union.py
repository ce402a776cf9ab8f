"""
background_theories/executors/set_union.py - Axiom 6.13 (set union)

    (forall (s s1 s2) (iff (union s s1 s2)
        (forall (x) (iff (member x s) (or (member x s1) (member x s2))))))

For every unordered pair of sets, make sure their union exists as a set
entity and that every element of the union has a realized member
predicate. Then re-check every set that records union provenance and report
drift in the trace. Drift is reported, never repaired.

Sets are extensional: if some set already has exactly the union's elements,
it is reused instead of creating a copy, and the pair is noted in its
``matched_unions`` so the drift check still covers it. Without reuse, unions
of unions would keep producing new, equal sets every round.

Pairwise enumeration is quadratic in the number of sets, which is fine for
the tens of entities an episode holds.
"""

from __future__ import annotations

import logging

from ..context import ReasoningContext
from ..entities import EntityKind, SetEntity, element_key
from ..predicates import MemberPredicate, PredicateKind
from .base import AxiomExecutor, Complexity, ExecutionResult

logger = logging.getLogger(__name__)


class SetUnionExecutor(AxiomExecutor):
    """Derive set unions and their membership facts."""

    AXIOM_ID = "6.13"

    def __init__(self) -> None:
        super().__init__(
            self.AXIOM_ID,
            "s is the union of s1 and s2 if and only if for all x, x is a member "
            "of s iff x is a member of s1 or x is a member of s2",
            reads=[EntityKind.SET, PredicateKind.MEMBER],
            writes=[EntityKind.SET, PredicateKind.MEMBER],
            fol_formula=(
                "(forall (s s1 s2) (iff (union s s1 s2) (forall (x) "
                "(iff (member x s) (or (member x s1) (member x s2))))))"
            ),
            complexity=Complexity.MODERATE,
        )

    def is_applicable(self, context: ReasoningContext) -> bool:
        return context.count_entities(EntityKind.SET) >= 2

    def execute(self, context: ReasoningContext) -> ExecutionResult:
        result = ExecutionResult()
        self._step(context, result, "axiom_6_13_start")

        sets: list[SetEntity] = context.entities_of(EntityKind.SET)
        if len(sets) < 2:
            self._step(context, result, "insufficient_sets", sets_count=len(sets))
            return result

        by_operands: dict[frozenset, SetEntity] = {}
        by_elements: dict[frozenset, SetEntity] = {}
        for s in sets:
            for pair in s.recorded_unions():
                by_operands.setdefault(frozenset(pair), s)
            by_elements.setdefault(s.element_keys(), s)

        for i, first in enumerate(sets):
            for second in sets[i + 1:]:
                union = self._union_for(
                    context, result, first, second, by_operands, by_elements
                )
                self._add_member_predicates(context, result, union)

        self._check_recorded_unions(context, result)

        self._step(context, result, "axiom_6_13_complete", results_count=len(result))
        return result

    def _union_for(
        self,
        context: ReasoningContext,
        result: ExecutionResult,
        first: SetEntity,
        second: SetEntity,
        by_operands: dict[frozenset, SetEntity],
        by_elements: dict[frozenset, SetEntity],
    ) -> SetEntity:
        pair = frozenset((first.id, second.id))

        existing = by_operands.get(pair)
        if existing is not None:
            self._step(
                context,
                result,
                "union_already_exists",
                set1_id=first.id,
                set2_id=second.id,
                union_id=existing.id,
            )
            return existing

        keys = first.element_keys() | second.element_keys()
        existing = by_elements.get(keys)
        if existing is not None:
            existing.record_union(first.id, second.id)
            by_operands[pair] = existing
            self._step(
                context,
                result,
                "union_matches_existing_set",
                set1_id=first.id,
                set2_id=second.id,
                union_id=existing.id,
            )
            return existing

        union = first.union(second, entity_id=context.new_id(EntityKind.SET.value))
        union.union_of = (first.id, second.id)
        union.operation = "union"
        context.add_entity(union)
        result.entities.append(union)
        by_operands[pair] = union
        by_elements[keys] = union

        self._step(
            context,
            result,
            "union_created",
            set1_id=first.id,
            set1_cardinality=first.cardinality(),
            set2_id=second.id,
            set2_cardinality=second.cardinality(),
            union_id=union.id,
            union_cardinality=union.cardinality(),
        )
        return union

    def _add_member_predicates(
        self, context: ReasoningContext, result: ExecutionResult, union: SetEntity
    ) -> None:
        for element in union.elements:
            if context.predicate_exists(PredicateKind.MEMBER, element, union):
                continue
            member = MemberPredicate(
                element, union, predicate_id=context.new_id(PredicateKind.MEMBER.value)
            )
            member.realize()
            context.add_predicate(member)
            result.predicates.append(member)
            self._step(
                context,
                result,
                "member_predicate_created",
                element=element_key(element)[1],
                set_id=union.id,
                predicate_id=member.id,
            )

    def _check_recorded_unions(
        self, context: ReasoningContext, result: ExecutionResult
    ) -> None:
        checks = [
            (union, pair)
            for union in context.entities_of(EntityKind.SET)
            for pair in union.recorded_unions()
        ]
        for union, pair in checks:
            first = context.get_entity(pair[0])
            second = context.get_entity(pair[1])
            if not isinstance(first, SetEntity) or not isinstance(second, SetEntity):
                self._step(
                    context,
                    result,
                    "union_validation_failed",
                    union_id=union.id,
                    reason="component sets not found",
                )
                continue

            expected = first.union(second)
            if not union.same_elements(expected):
                logger.warning(
                    "Union %s drifted from %s | %s: expected %d elements, found %d",
                    union.id,
                    first.id,
                    second.id,
                    expected.cardinality(),
                    union.cardinality(),
                )
                self._step(
                    context,
                    result,
                    "union_inconsistency_detected",
                    union_id=union.id,
                    expected_cardinality=expected.cardinality(),
                    actual_cardinality=union.cardinality(),
                )
            else:
                self._step(
                    context,
                    result,
                    "union_validated",
                    union_id=union.id,
                    component_sets=list(pair),
                )
