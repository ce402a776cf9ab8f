"""
background_theories/registry.py - Axiom Registry

The active rule set is an explicit object built once at startup from the
``AXIOM_EXECUTORS`` table (axiom id -> factory) and handed to the engine.
Iteration order is registration order; the engine relies on it for
deterministic runs.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Iterator, Mapping

from .errors import RegistryError
from .executors import AxiomExecutor, RexistLinkingExecutor, SetUnionExecutor

logger = logging.getLogger(__name__)

ExecutorFactory = Callable[[], AxiomExecutor]

AXIOM_EXECUTORS: Mapping[str, ExecutorFactory] = {
    RexistLinkingExecutor.AXIOM_ID: RexistLinkingExecutor,
    SetUnionExecutor.AXIOM_ID: SetUnionExecutor,
}


class AxiomRegistry:
    """Ordered mapping from axiom id to executor instance."""

    def __init__(self) -> None:
        self._executors: dict[str, AxiomExecutor] = {}

    def register(self, axiom_id: str, executor: AxiomExecutor) -> None:
        if axiom_id in self._executors:
            raise RegistryError(f"Axiom already registered: {axiom_id}")
        if executor.axiom_id != axiom_id:
            raise RegistryError(
                f"Executor declares id {executor.axiom_id!r}, registered as {axiom_id!r}"
            )
        self._executors[axiom_id] = executor
        logger.debug("Registered axiom %s: %s", axiom_id, executor.description)

    def get(self, axiom_id: str) -> AxiomExecutor:
        try:
            return self._executors[axiom_id]
        except KeyError:
            raise RegistryError(f"Axiom executor not found: {axiom_id}") from None

    def ids(self) -> list[str]:
        return list(self._executors)

    def executors(self) -> list[AxiomExecutor]:
        return list(self._executors.values())

    def __iter__(self) -> Iterator[AxiomExecutor]:
        return iter(list(self._executors.values()))

    def __len__(self) -> int:
        return len(self._executors)

    def __contains__(self, axiom_id: object) -> bool:
        return axiom_id in self._executors

    def __repr__(self) -> str:
        return f"AxiomRegistry({self.ids()!r})"


def build_registry(
    axiom_ids: Iterable[str] | None = None,
    table: Mapping[str, ExecutorFactory] = AXIOM_EXECUTORS,
) -> AxiomRegistry:
    """Instantiate the configured axioms, in the given order.

    Args:
        axiom_ids: Ids to register; defaults to every entry of ``table``.
        table: Id -> factory table.

    Raises:
        RegistryError: If an id is not in the table.
    """
    registry = AxiomRegistry()
    for axiom_id in (list(table) if axiom_ids is None else axiom_ids):
        factory = table.get(axiom_id)
        if factory is None:
            raise RegistryError(f"No executor configured for axiom {axiom_id}")
        registry.register(axiom_id, factory())
    return registry
