"""
background_theories - Forward-Chaining Axiom Engine

Derives implied facts from a small working memory of typed objects by
repeatedly applying a fixed set of registered axioms until a sweep adds
nothing new or a round/time bound is hit.

This package implements:
- Entities (eventualities, sets) and predicates (Rexist, member)
- A reasoning context that indexes facts and records a trace
- Axiom executors: Rexist-linking (5.1) and set union (6.13)
- An explicit axiom registry and the forward-chaining engine
- An append-only audit trail (in memory or SQLite)

Example:
    from background_theories import (
        EventualityEntity, ReasoningContext, ReasoningEngine, build_registry,
    )

    context = ReasoningContext()
    context.add_entity(EventualityEntity("push", ["John", "box"], entity_id="e1"))

    engine = ReasoningEngine(build_registry())
    result = engine.run(context)
    print(result.termination, context.get_entity("e1").really_exists)
"""

from .audit import AuditRecord, AuditStore, InMemoryAuditStore, SqliteAuditStore
from .config import EngineSettings, get_settings, load_settings
from .context import ReasoningContext, TraceEntry
from .engine import EngineResult, ReasoningEngine, TerminationReason
from .entities import Entity, EntityKind, EventualityEntity, SetEntity
from .errors import (
    AuditStoreError,
    BackgroundTheoryError,
    ConfigError,
    DuplicateFactError,
    ExecutionError,
    RegistryError,
    ValidationError,
)
from .executors import (
    AxiomExecutor,
    Complexity,
    ExecutionResult,
    RexistLinkingExecutor,
    SetUnionExecutor,
)
from .predicates import MemberPredicate, Predicate, PredicateKind, RexistPredicate
from .registry import AXIOM_EXECUTORS, AxiomRegistry, build_registry
from .state import check_integrity, export_state, import_state, load_seed

__version__ = "0.1.0"

__all__ = [
    # Entities
    "Entity",
    "EntityKind",
    "EventualityEntity",
    "SetEntity",
    # Predicates
    "Predicate",
    "PredicateKind",
    "RexistPredicate",
    "MemberPredicate",
    # Context
    "ReasoningContext",
    "TraceEntry",
    # Axioms
    "AxiomExecutor",
    "Complexity",
    "ExecutionResult",
    "RexistLinkingExecutor",
    "SetUnionExecutor",
    "AxiomRegistry",
    "AXIOM_EXECUTORS",
    "build_registry",
    # Engine
    "ReasoningEngine",
    "EngineResult",
    "TerminationReason",
    # Audit
    "AuditRecord",
    "AuditStore",
    "InMemoryAuditStore",
    "SqliteAuditStore",
    # Configuration
    "EngineSettings",
    "get_settings",
    "load_settings",
    # State
    "export_state",
    "import_state",
    "load_seed",
    "check_integrity",
    # Errors
    "BackgroundTheoryError",
    "ValidationError",
    "DuplicateFactError",
    "RegistryError",
    "ExecutionError",
    "AuditStoreError",
    "ConfigError",
]
