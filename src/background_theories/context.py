"""
background_theories/context.py - Reasoning Context

Working memory for a single reasoning episode. The context owns every
entity and predicate of the episode, keeps them indexed for the lookups the
axioms need, and accumulates an append-only trace.

Indexes:
- entities and predicates by id
- entities by kind, predicates by kind
- predicates by signature (kind + canonical arguments)
- predicates by referenced entity id

The context does no I/O; persistence consumes it, never the other way round.

Example:
    ctx = ReasoningContext()
    ctx.add_entity(EventualityEntity("push", ["John", "box"], entity_id="e1"))
    ctx.has_entities(EntityKind.EVENTUALITY)     # True
    ctx.predicate_exists(PredicateKind.REXIST, ctx.get_entity("e1"))  # False
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator

from .entities import Entity, EntityKind
from .errors import DuplicateFactError, ValidationError
from .predicates import MemberPredicate, Predicate, PredicateKind, argument_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TraceEntry:
    """One reasoning step."""

    event: str
    data: dict[str, Any] = field(default_factory=dict)
    axiom_id: str | None = None
    sequence: int = 0

    def describe(self) -> str:
        details = ", ".join(f"{k}={v}" for k, v in self.data.items())
        prefix = f"[{self.axiom_id}] " if self.axiom_id else ""
        return f"{prefix}{self.event}: {details}" if details else f"{prefix}{self.event}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "event": self.event,
            "axiom_id": self.axiom_id,
            "data": dict(self.data),
        }


class ReasoningContext:
    """Indexed fact pool plus trace for one reasoning episode."""

    def __init__(
        self,
        entities: Iterable[Entity] = (),
        predicates: Iterable[Predicate] = (),
    ):
        self._lock = threading.RLock()
        self._entities: dict[str, Entity] = {}
        self._predicates: dict[str, Predicate] = {}
        self._entities_by_kind: dict[EntityKind, dict[str, Entity]] = defaultdict(dict)
        self._predicates_by_kind: dict[PredicateKind, dict[str, Predicate]] = defaultdict(dict)
        self._by_signature: dict[tuple, str] = {}
        self._by_reference: dict[str, dict[str, Predicate]] = defaultdict(dict)
        self._trace: list[TraceEntry] = []
        self._id_counters: dict[str, int] = defaultdict(int)

        for entity in entities:
            self.add_entity(entity)
        for predicate in predicates:
            self.add_predicate(predicate)

    # -------------------------------------------------------------------------
    # Entities
    # -------------------------------------------------------------------------

    def add_entity(self, entity: Entity) -> None:
        with self._lock:
            if entity.id in self._entities or entity.id in self._predicates:
                raise DuplicateFactError(entity.id, "entity")
            self._entities[entity.id] = entity
            self._entities_by_kind[entity.kind][entity.id] = entity
            self.trace("entity_added", entity_id=entity.id, entity_type=entity.kind.value)

    def get_entity(self, entity_id: str) -> Entity | None:
        return self._entities.get(entity_id)

    def entities_of(self, kind: EntityKind) -> list[Entity]:
        """Entities of one kind, in insertion order."""
        return list(self._entities_by_kind.get(kind, {}).values())

    def has_entities(self, kind: EntityKind) -> bool:
        return bool(self._entities_by_kind.get(kind))

    def count_entities(self, kind: EntityKind) -> int:
        return len(self._entities_by_kind.get(kind, {}))

    def all_entities(self) -> list[Entity]:
        return list(self._entities.values())

    def real_entities(self) -> list[Entity]:
        return [e for e in self._entities.values() if e.really_exists]

    # -------------------------------------------------------------------------
    # Predicates
    # -------------------------------------------------------------------------

    def add_predicate(self, predicate: Predicate) -> None:
        with self._lock:
            if predicate.id in self._predicates or predicate.id in self._entities:
                raise DuplicateFactError(predicate.id, "predicate")
            for entity_id in predicate.referenced_entity_ids():
                if entity_id not in self._entities:
                    raise ValidationError(
                        f"Predicate {predicate.id} references unknown entity {entity_id}"
                    )
            self._predicates[predicate.id] = predicate
            self._predicates_by_kind[predicate.kind][predicate.id] = predicate
            self._by_signature.setdefault(predicate.signature(), predicate.id)
            for entity_id in predicate.referenced_entity_ids():
                self._by_reference[entity_id][predicate.id] = predicate
            self.trace(
                "predicate_added",
                predicate_id=predicate.id,
                predicate_name=predicate.kind.value,
            )

    def get_predicate(self, predicate_id: str) -> Predicate | None:
        return self._predicates.get(predicate_id)

    def predicates_of(self, kind: PredicateKind) -> list[Predicate]:
        """Predicates of one kind, in insertion order."""
        return list(self._predicates_by_kind.get(kind, {}).values())

    def has_predicates(self, kind: PredicateKind) -> bool:
        return bool(self._predicates_by_kind.get(kind))

    def all_predicates(self) -> list[Predicate]:
        return list(self._predicates.values())

    def find_predicate(self, signature: tuple) -> Predicate | None:
        """Look up the first predicate registered with this signature."""
        predicate_id = self._by_signature.get(signature)
        return self._predicates.get(predicate_id) if predicate_id else None

    def predicate_exists(self, kind: PredicateKind, *arguments: Any) -> bool:
        signature = (kind, *(argument_key(a) for a in arguments))
        return signature in self._by_signature

    def predicates_referencing(
        self, entity_id: str, kind: PredicateKind | None = None
    ) -> list[Predicate]:
        found = self._by_reference.get(entity_id, {}).values()
        if kind is None:
            return list(found)
        return [p for p in found if p.kind is kind]

    def remove_membership(self, predicate_id: str) -> MemberPredicate:
        """Explicitly remove a membership fact.

        The element is taken out of the set, the predicate is withdrawn and
        dropped from the context. This is the only way a single fact leaves
        the context before ``reset()``.
        """
        with self._lock:
            predicate = self._predicates.get(predicate_id)
            if not isinstance(predicate, MemberPredicate):
                raise ValidationError(f"No member predicate with id {predicate_id}")
            predicate.remove_member()
            del self._predicates[predicate_id]
            del self._predicates_by_kind[predicate.kind][predicate_id]
            signature = predicate.signature()
            if self._by_signature.get(signature) == predicate_id:
                survivor = next(
                    (
                        p
                        for p in self._predicates_by_kind[predicate.kind].values()
                        if p.signature() == signature
                    ),
                    None,
                )
                if survivor is None:
                    del self._by_signature[signature]
                else:
                    self._by_signature[signature] = survivor.id
            for entity_id in predicate.referenced_entity_ids():
                self._by_reference[entity_id].pop(predicate_id, None)
            self.trace(
                "membership_removed",
                predicate_id=predicate_id,
                set_id=predicate.set.id,
            )
            return predicate

    # -------------------------------------------------------------------------
    # Ids, trace, lifecycle
    # -------------------------------------------------------------------------

    def new_id(self, prefix: str) -> str:
        """Next free ``<prefix>-<n>`` id; deterministic within an episode."""
        with self._lock:
            while True:
                self._id_counters[prefix] += 1
                candidate = f"{prefix}-{self._id_counters[prefix]}"
                if candidate not in self._entities and candidate not in self._predicates:
                    return candidate

    def trace(self, event: str, axiom_id: str | None = None, **data: Any) -> TraceEntry:
        with self._lock:
            entry = TraceEntry(event, data, axiom_id, len(self._trace) + 1)
            self._trace.append(entry)
            return entry

    def trace_entries(self, last: int | None = None) -> list[TraceEntry]:
        if last is None:
            return list(self._trace)
        return self._trace[-last:] if last > 0 else []

    def reset(self) -> None:
        """Drop every fact and the trace; start a fresh episode."""
        with self._lock:
            self._entities.clear()
            self._predicates.clear()
            self._entities_by_kind.clear()
            self._predicates_by_kind.clear()
            self._by_signature.clear()
            self._by_reference.clear()
            self._trace.clear()
            self._id_counters.clear()
        logger.debug("Reasoning context reset")

    def entity_ids(self) -> list[str]:
        return list(self._entities)

    def state(self) -> dict[str, Any]:
        """Counts summary of the current fact pool."""
        return {
            "entities_count": len(self._entities),
            "real_entities_count": len(self.real_entities()),
            "predicates_count": len(self._predicates),
            "real_predicates_count": sum(
                1 for p in self._predicates.values() if p.really_exists
            ),
            "entities_by_type": {
                kind.value: len(items)
                for kind, items in self._entities_by_kind.items()
                if items
            },
            "predicates_by_name": {
                kind.value: len(items)
                for kind, items in self._predicates_by_kind.items()
                if items
            },
            "trace_length": len(self._trace),
        }

    def __len__(self) -> int:
        return len(self._entities) + len(self._predicates)

    def __iter__(self) -> Iterator[Entity | Predicate]:
        yield from self._entities.values()
        yield from self._predicates.values()
