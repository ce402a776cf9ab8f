"""
background_theories/predicates.py - Predicate Model

Predicates are typed relations over entities and raw values:

- RexistPredicate:  (Rexist e)    e really exists
- MemberPredicate:  (member x s)  x is a member of set s

Each predicate carries its own really-exists flag (is it asserted?) and a
defeasible "etc" policy: everything else being normal, the predicate is
taken to hold unless the policy reports a contradicting fact.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Hashable

from .entities import Entity, SetEntity, element_key
from .errors import ValidationError

if TYPE_CHECKING:
    from .context import ReasoningContext


class PredicateKind(str, Enum):
    """Closed set of predicate kinds."""

    REXIST = "Rexist"
    MEMBER = "member"


EtcPolicy = Callable[["Predicate", "ReasoningContext"], bool]


def assume_normal(predicate: Predicate, context: ReasoningContext) -> bool:
    """Default etc policy: no known exception."""
    return True


def never_assume(predicate: Predicate, context: ReasoningContext) -> bool:
    """Strict policy: nothing holds by default."""
    return False


def argument_key(value: Any) -> Hashable:
    """Canonical identity of a predicate argument."""
    return element_key(value)


class Predicate(ABC):
    """Base class for all predicates.

    Arity is fixed by the subclass and checked against the argument list
    at construction.
    """

    kind: ClassVar[PredicateKind]
    ARITY: ClassVar[int]

    def __init__(
        self,
        arguments: list[Any],
        predicate_id: str | None = None,
        really_exists: bool = False,
        etc_policy: EtcPolicy | None = None,
        metadata: dict[str, Any] | None = None,
    ):
        if len(arguments) != self.ARITY:
            raise ValidationError(
                f"{self.kind.value} expects {self.ARITY} argument(s), got {len(arguments)}"
            )
        self._id = predicate_id or f"{self.kind.value}-{uuid.uuid4().hex[:12]}"
        self._arguments = tuple(arguments)
        self._really_exists = bool(really_exists)
        self._etc_policy = etc_policy or assume_normal
        self.metadata: dict[str, Any] = dict(metadata or {})

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    def arguments(self) -> tuple[Any, ...]:
        return self._arguments

    @property
    def arity(self) -> int:
        return len(self._arguments)

    def argument(self, index: int) -> Any:
        """Get the argument at ``index`` (0-based), or None."""
        if 0 <= index < len(self._arguments):
            return self._arguments[index]
        return None

    @property
    def really_exists(self) -> bool:
        return self._really_exists

    def realize(self) -> None:
        self._really_exists = True

    def unrealize(self) -> None:
        self._really_exists = False

    def etc(self, context: ReasoningContext) -> bool:
        """Defeasible default: True unless the policy finds an exception."""
        return self._etc_policy(self, context)

    @abstractmethod
    def evaluate(self, context: ReasoningContext) -> bool:
        """Truth of the relation in the current context."""

    def holds(self, context: ReasoningContext) -> bool:
        """Asserted, true in the context, and not defeated."""
        return self.really_exists and self.evaluate(context) and self.etc(context)

    def signature(self) -> tuple:
        """Hashable identity of (kind, arguments), used to detect duplicates."""
        return (self.kind, *(argument_key(a) for a in self._arguments))

    def referenced_entity_ids(self) -> list[str]:
        return [a.id for a in self._arguments if isinstance(a, Entity)]

    def to_fol(self) -> str:
        refs = " ".join(
            a.id if isinstance(a, Entity) else str(a) for a in self._arguments
        )
        return f"({self.kind.value} {refs})"

    def describe(self) -> str:
        args = ", ".join(
            f"arg{i}:{a.kind.value}({a.id})" if isinstance(a, Entity) else f"arg{i}:{a}"
            for i, a in enumerate(self._arguments)
        )
        asserted = " [ASSERTED]" if self.really_exists else " [potential]"
        return f"{self.kind.value}({args}){asserted}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.kind.value,
            "arguments": [
                {"entity": a.id} if isinstance(a, Entity) else a for a in self._arguments
            ],
            "arity": self.arity,
            "really_exists": self.really_exists,
            "metadata": dict(self.metadata),
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id!r})"


class RexistPredicate(Predicate):
    """(Rexist e): entity e really exists, not just potentially."""

    kind = PredicateKind.REXIST
    ARITY = 1

    def __init__(self, entity: Entity, **kwargs: Any):
        if not isinstance(entity, Entity):
            raise ValidationError("Rexist argument must be an entity")
        super().__init__([entity], **kwargs)

    @property
    def entity(self) -> Entity:
        return self._arguments[0]

    def evaluate(self, context: ReasoningContext) -> bool:
        return self.entity.really_exists

    def make_really_exist(self) -> None:
        """Realize both the entity and this predicate."""
        self.entity.realize()
        self.realize()

    def make_not_really_exist(self) -> None:
        self.entity.unrealize()
        self.unrealize()


class MemberPredicate(Predicate):
    """(member x s): x is a member of set s."""

    kind = PredicateKind.MEMBER
    ARITY = 2

    def __init__(self, element: Any, set_entity: SetEntity, **kwargs: Any):
        if not isinstance(set_entity, SetEntity):
            raise ValidationError("member second argument must be a set entity")
        super().__init__([element, set_entity], **kwargs)

    @property
    def element(self) -> Any:
        return self._arguments[0]

    @property
    def set(self) -> SetEntity:
        return self._arguments[1]

    def evaluate(self, context: ReasoningContext) -> bool:
        return self.set.contains(self.element)

    def make_member(self) -> None:
        """Add the element to the set and assert the predicate."""
        self.set.add_element(self.element)
        self.realize()

    def remove_member(self) -> None:
        """Remove the element from the set and withdraw the predicate."""
        self.set.remove_element(self.element)
        self.unrealize()

    def describe(self) -> str:
        element = self.element
        shown = element.id if isinstance(element, Entity) else repr(element)
        asserted = " [ASSERTED]" if self.really_exists else " [potential]"
        return f"member({shown}, {self.set.describe()}){asserted}"
