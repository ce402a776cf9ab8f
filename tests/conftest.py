"""
Pytest fixtures for background theories tests.

Provides seeded reasoning contexts, deterministic settings and an
in-memory audit store.
"""

import os

import pytest

from background_theories import (
    EngineSettings,
    EventualityEntity,
    InMemoryAuditStore,
    ReasoningContext,
    SetEntity,
)

# =============================================================================
# SETTINGS
# =============================================================================


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep BT_* variables from the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("BT_"):
            monkeypatch.delenv(key)


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(
        max_execution_depth=10,
        execution_timeout=30,
        enable_parallel_execution=False,
        log_axiom_executions=True,
    )


@pytest.fixture
def audit_store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


# =============================================================================
# CONTEXTS
# =============================================================================


@pytest.fixture
def context() -> ReasoningContext:
    return ReasoningContext()


@pytest.fixture
def push_context() -> ReasoningContext:
    """One eventuality: push'(e1, John, box)."""
    ctx = ReasoningContext()
    ctx.add_entity(EventualityEntity("push", ["John", "box"], entity_id="e1"))
    return ctx


@pytest.fixture
def sets_context() -> ReasoningContext:
    """A = {1, 2, 3}, B = {3, 4}."""
    ctx = ReasoningContext()
    ctx.add_entity(SetEntity([1, 2, 3], entity_id="A"))
    ctx.add_entity(SetEntity([3, 4], entity_id="B"))
    return ctx
