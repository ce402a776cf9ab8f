"""
background_theories/entities.py - Entity Model

Entities are the domain objects the axioms reason about:

- EventualityEntity: a reified event or state, e.g. push'(e, John, box).
  The eventuality itself is addressable; whether it *really exists* in the
  modelled world is a separate, explicit fact.
- SetEntity: a mathematical set of arbitrary values, optionally carrying
  provenance that records which two sets it is the union of.

Fields that an invariant depends on (predicate_name, arguments, elements,
union provenance) are typed attributes. The open ``attributes`` dict is for
extensible metadata only.
"""

from __future__ import annotations

import json
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, ClassVar, Hashable, Iterable

from .errors import ValidationError


class EntityKind(str, Enum):
    """Closed set of entity kinds."""

    EVENTUALITY = "eventuality"
    SET = "set"


def element_key(value: Any) -> Hashable:
    """Canonical identity of a set element.

    Keeps ``1``, ``1.0``, ``True`` and ``"1"`` apart, treats entity
    references by id and gives unhashable values (lists, dicts) a stable
    JSON form.
    """
    if isinstance(value, Entity):
        return ("entity", value.id)
    try:
        hash(value)
    except TypeError:
        return ("json", json.dumps(value, sort_keys=True, default=str))
    return (type(value).__name__, value)


def _generate_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _render(value: Any) -> str:
    if isinstance(value, Entity):
        return value.id
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


class Entity(ABC):
    """Base class for all entities.

    ``really_exists`` starts False and only changes through ``realize()``
    and ``unrealize()``.
    """

    kind: ClassVar[EntityKind]

    def __init__(
        self,
        entity_id: str | None = None,
        attributes: dict[str, Any] | None = None,
        really_exists: bool = False,
    ):
        self._id = entity_id or _generate_id(self.kind.value)
        self.attributes: dict[str, Any] = dict(attributes or {})
        self._really_exists = bool(really_exists)

    @property
    def id(self) -> str:
        return self._id

    @property
    def really_exists(self) -> bool:
        return self._really_exists

    def realize(self) -> None:
        """Assert that the entity really exists."""
        self._really_exists = True

    def unrealize(self) -> None:
        """Withdraw the really-exists assertion."""
        self._really_exists = False

    @abstractmethod
    def validate(self) -> list[str]:
        """Return a list of structural problems (empty if valid)."""

    def is_valid(self) -> bool:
        return not self.validate()

    @abstractmethod
    def describe(self) -> str:
        """Human-readable description."""

    @abstractmethod
    def _fields(self) -> dict[str, Any]:
        """Typed, kind-specific fields for serialization."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind.value,
            **self._fields(),
            "really_exists": self.really_exists,
            "attributes": dict(self.attributes),
        }

    def content_key(self) -> str:
        """Identity of the entity's content, ignoring its id."""
        data = self.to_dict()
        data.pop("id")
        return json.dumps(data, sort_keys=True, default=str)

    def _reality_suffix(self) -> str:
        return " (REAL)" if self.really_exists else " (potential)"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id!r})"


class EventualityEntity(Entity):
    """A reified eventuality: ``predicate_name`` applied to ``arguments``.

    Arguments use the 1-indexed FOL convention in ``arg()``/``set_arg()``.
    """

    kind = EntityKind.EVENTUALITY

    def __init__(
        self,
        predicate_name: str,
        arguments: Iterable[Any] | None = None,
        complete: bool = False,
        entity_id: str | None = None,
        attributes: dict[str, Any] | None = None,
        really_exists: bool = False,
    ):
        super().__init__(entity_id, attributes, really_exists)
        self.predicate_name = predicate_name
        self.arguments = [] if arguments is None else arguments
        self.complete = complete
        problems = self.validate()
        if problems:
            raise ValidationError(f"Invalid eventuality {self.id}: {'; '.join(problems)}")
        self.arguments = list(self.arguments)

    def validate(self) -> list[str]:
        problems = []
        if not isinstance(self.predicate_name, str) or not self.predicate_name:
            problems.append("predicate_name must be a non-empty string")
        if not isinstance(self.arguments, (list, tuple)):
            problems.append("arguments must be a list")
        return problems

    @property
    def arity(self) -> int:
        return len(self.arguments)

    def arg(self, n: int) -> Any:
        """Get the nth argument (1-indexed), or None."""
        if n < 1 or n > len(self.arguments):
            return None
        return self.arguments[n - 1]

    def set_arg(self, n: int, value: Any) -> None:
        """Set the nth argument (1-indexed), padding with None if needed."""
        if n < 1:
            raise ValidationError(f"Argument index must be >= 1, got {n}")
        while len(self.arguments) < n:
            self.arguments.append(None)
        self.arguments[n - 1] = value

    def describe(self) -> str:
        args = ", ".join(_render(a) for a in self.arguments)
        return f"eventuality({self.predicate_name}({args})){self._reality_suffix()}"

    def _fields(self) -> dict[str, Any]:
        return {
            "predicate_name": self.predicate_name,
            "arguments": [
                {"entity": a.id} if isinstance(a, Entity) else a for a in self.arguments
            ],
            "complete": self.complete,
        }


class SetEntity(Entity):
    """A set of arbitrary values.

    Elements are kept in insertion order without duplicates. ``union`` and
    ``intersection`` return new entities and never touch their operands.
    """

    kind = EntityKind.SET

    def __init__(
        self,
        elements: Iterable[Any] = (),
        union_of: tuple[str, str] | list[str] | None = None,
        operation: str | None = None,
        entity_id: str | None = None,
        attributes: dict[str, Any] | None = None,
        really_exists: bool = False,
        matched_unions: Iterable[tuple[str, str] | list[str]] = (),
    ):
        super().__init__(entity_id, attributes, really_exists)
        if elements is None or isinstance(elements, (str, bytes, dict)):
            raise ValidationError(f"Invalid set {self.id}: elements must be a collection")
        self._elements: list[Any] = []
        self._keys: set[Hashable] = set()
        for element in elements:
            self._append(element)
        self.union_of: tuple[str, str] | None = (
            self._pair(union_of) if union_of is not None else None
        )
        self.operation = operation
        # Other pairs whose union turned out to have exactly these elements.
        self.matched_unions: list[tuple[str, str]] = [
            self._pair(pair) for pair in matched_unions
        ]

    def _pair(self, pair: Iterable[str]) -> tuple[str, str]:
        pair = tuple(pair)
        if len(pair) != 2:
            raise ValidationError(
                f"Invalid set {self.id}: union provenance needs exactly two set ids"
            )
        return pair

    def _append(self, element: Any) -> bool:
        key = element_key(element)
        if key in self._keys:
            return False
        self._keys.add(key)
        self._elements.append(element)
        return True

    def validate(self) -> list[str]:
        if len(self._keys) != len(self._elements):
            return ["elements contain duplicates"]
        return []

    @property
    def elements(self) -> tuple[Any, ...]:
        return tuple(self._elements)

    def element_keys(self) -> frozenset:
        return frozenset(self._keys)

    def add_element(self, element: Any) -> bool:
        """Add an element; returns False if it was already present."""
        return self._append(element)

    def remove_element(self, element: Any) -> bool:
        """Remove an element; returns False if it was not present."""
        key = element_key(element)
        if key not in self._keys:
            return False
        self._keys.discard(key)
        self._elements = [e for e in self._elements if element_key(e) != key]
        return True

    def contains(self, element: Any) -> bool:
        return element_key(element) in self._keys

    def cardinality(self) -> int:
        return len(self._elements)

    def is_empty(self) -> bool:
        return not self._elements

    def union(self, other: SetEntity, entity_id: str | None = None) -> SetEntity:
        return SetEntity([*self._elements, *other._elements], entity_id=entity_id)

    def intersection(self, other: SetEntity, entity_id: str | None = None) -> SetEntity:
        return SetEntity(
            [e for e in self._elements if other.contains(e)], entity_id=entity_id
        )

    def is_subset_of(self, other: SetEntity) -> bool:
        return self._keys <= other._keys

    def same_elements(self, other: SetEntity) -> bool:
        return self._keys == other._keys

    def recorded_unions(self) -> list[tuple[str, str]]:
        """Every operand pair this set is known to be the union of."""
        pairs = [self.union_of] if self.union_of else []
        return pairs + self.matched_unions

    def record_union(self, first_id: str, second_id: str) -> None:
        """Note that the union of two other sets has exactly these elements."""
        self.matched_unions.append((first_id, second_id))

    def describe(self) -> str:
        count = self.cardinality()
        shown = ", ".join(_render(e) for e in self._elements[:3])
        if count > 3:
            shown += "..."
        return f"set({{{shown}}}, |{count}|){self._reality_suffix()}"

    def _fields(self) -> dict[str, Any]:
        return {
            "elements": [
                {"entity": e.id} if isinstance(e, Entity) else e for e in self._elements
            ],
            "union_of": list(self.union_of) if self.union_of else None,
            "matched_unions": [list(pair) for pair in self.matched_unions],
            "operation": self.operation,
        }
