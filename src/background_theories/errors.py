"""
background_theories/errors.py - Exception taxonomy

Only structural problems are raised at the caller. Everything that can go
wrong while an axiom runs is isolated by the engine and ends up in the audit
log instead.
"""

from __future__ import annotations


class BackgroundTheoryError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(BackgroundTheoryError):
    """An entity or predicate violates a structural invariant."""


class DuplicateFactError(ValidationError):
    """A fact with the same id is already registered in the context."""

    def __init__(self, fact_id: str, what: str = "fact"):
        self.fact_id = fact_id
        super().__init__(f"Duplicate {what} id: {fact_id}")


class RegistryError(BackgroundTheoryError):
    """Unknown axiom id, or a conflicting registration."""


class ExecutionError(BackgroundTheoryError):
    """Raised when an axiom's execute() fails.

    The engine never lets this escape a reasoning run; it is raised only by
    ``ReasoningEngine.run_axiom`` when a single axiom is executed on demand.
    """

    def __init__(self, axiom_id: str, message: str):
        self.axiom_id = axiom_id
        super().__init__(f"Axiom {axiom_id} failed: {message}")


class AuditStoreError(BackgroundTheoryError):
    """Raised when an audit persistence operation fails."""


class ConfigError(BackgroundTheoryError):
    """Raised when configuration cannot be loaded or is invalid."""
