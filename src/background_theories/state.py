"""State import/export, seed loading and integrity checks.

Exported state is plain JSON-compatible data::

    {
      "entities":   [{"id": "e1", "type": "eventuality", "predicate_name": "push",
                      "arguments": ["John", "box"], ...}, ...],
      "predicates": [{"id": "Rexist-1", "name": "Rexist",
                      "arguments": [{"entity": "e1"}], ...}, ...],
      "statistics": {...},
      "exported_at": "2026-01-01T00:00:00+00:00"
    }

Entity references inside arguments and set elements are written as
``{"entity": <id>}`` and resolved against already-imported entities, so
entities must appear after anything they reference (export order
guarantees it).

Seed files use the same ``entities`` / ``predicates`` layout, in YAML or
JSON.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, assert_never

import yaml

from .config import EngineSettings
from .context import ReasoningContext
from .entities import Entity, EntityKind, EventualityEntity, SetEntity
from .errors import BackgroundTheoryError, ValidationError
from .predicates import MemberPredicate, Predicate, PredicateKind, RexistPredicate

logger = logging.getLogger(__name__)


@dataclass
class ImportReport:
    """What an import added, and what it had to skip."""

    context: ReasoningContext
    entities_imported: int = 0
    predicates_imported: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "entities_imported": self.entities_imported,
            "predicates_imported": self.predicates_imported,
            "errors": list(self.errors),
        }


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def export_state(
    context: ReasoningContext, settings: EngineSettings | None = None
) -> dict[str, Any]:
    data: dict[str, Any] = {
        "entities": [e.to_dict() for e in context.all_entities()],
        "predicates": [p.to_dict() for p in context.all_predicates()],
        "statistics": context.state(),
        "exported_at": datetime.now(UTC).isoformat(),
    }
    if settings is not None:
        data["configuration"] = settings.model_dump()
    return data


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def _resolve(value: Any, context: ReasoningContext) -> Any:
    if isinstance(value, dict) and set(value) == {"entity"}:
        entity = context.get_entity(value["entity"])
        if entity is None:
            raise ValidationError(f"Reference to unknown entity {value['entity']}")
        return entity
    return value


def _kind(enum: type, value: Any, what: str) -> Any:
    try:
        return enum(value)
    except ValueError:
        raise ValidationError(f"Unknown {what}: {value!r}") from None


def entity_from_dict(data: dict[str, Any], context: ReasoningContext) -> Entity:
    """Build an entity from its exported form, resolving entity references."""
    kind = _kind(EntityKind, data.get("type"), "entity type")
    common = {
        "entity_id": data.get("id"),
        "attributes": data.get("attributes"),
        "really_exists": bool(data.get("really_exists", False)),
    }
    match kind:
        case EntityKind.EVENTUALITY:
            arguments = data.get("arguments", [])
            if not isinstance(arguments, list):
                raise ValidationError("Eventuality arguments must be a list")
            return EventualityEntity(
                data.get("predicate_name"),
                [_resolve(a, context) for a in arguments],
                complete=bool(data.get("complete", False)),
                **common,
            )
        case EntityKind.SET:
            elements = data.get("elements", [])
            if not isinstance(elements, list):
                raise ValidationError("Set elements must be a list")
            return SetEntity(
                [_resolve(e, context) for e in elements],
                union_of=data.get("union_of"),
                operation=data.get("operation"),
                matched_unions=data.get("matched_unions") or (),
                **common,
            )
        case _:
            assert_never(kind)


def predicate_from_dict(data: dict[str, Any], context: ReasoningContext) -> Predicate:
    """Build a predicate from its exported form, resolving entity references."""
    kind = _kind(PredicateKind, data.get("name"), "predicate name")
    arguments = [_resolve(a, context) for a in data.get("arguments", [])]
    common = {
        "predicate_id": data.get("id"),
        "really_exists": bool(data.get("really_exists", False)),
        "metadata": data.get("metadata"),
    }
    match kind:
        case PredicateKind.REXIST:
            if len(arguments) != 1:
                raise ValidationError(f"Rexist expects 1 argument, got {len(arguments)}")
            return RexistPredicate(arguments[0], **common)
        case PredicateKind.MEMBER:
            if len(arguments) != 2 or not isinstance(arguments[1], SetEntity):
                raise ValidationError("member expects (element, set entity)")
            return MemberPredicate(arguments[0], arguments[1], **common)
        case _:
            assert_never(kind)


def import_state(
    data: dict[str, Any], context: ReasoningContext | None = None
) -> ImportReport:
    """Add exported entities and predicates to a context.

    Items that fail to build or to be added are skipped and reported in
    ``errors``; the rest are imported.
    """
    context = context if context is not None else ReasoningContext()
    report = ImportReport(context)

    for item in data.get("entities") or []:
        try:
            context.add_entity(entity_from_dict(item, context))
        except BackgroundTheoryError as e:
            report.errors.append(f"Entity import error: {e}")
            continue
        report.entities_imported += 1

    for item in data.get("predicates") or []:
        try:
            context.add_predicate(predicate_from_dict(item, context))
        except BackgroundTheoryError as e:
            report.errors.append(f"Predicate import error: {e}")
            continue
        report.predicates_imported += 1

    return report


def load_seed(path: str | Path, strict: bool = True) -> ReasoningContext:
    """Read a YAML or JSON seed file into a fresh context.

    Raises:
        ValidationError: If the file is not a mapping, or (when ``strict``)
            if any entry fails to import.
    """
    path = Path(path)
    with open(path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValidationError(f"Invalid seed file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValidationError(f"Seed file {path} must contain a mapping")

    report = import_state(data)
    if report.errors:
        if strict:
            raise ValidationError("; ".join(report.errors))
        for error in report.errors:
            logger.warning("Skipped seed entry in %s: %s", path, error)
    logger.info(
        "Loaded seed %s: %d entities, %d predicates",
        path,
        report.entities_imported,
        report.predicates_imported,
    )
    return report.context


# ---------------------------------------------------------------------------
# Integrity
# ---------------------------------------------------------------------------


def _referenced(values: Any) -> list[Entity]:
    return [v for v in values if isinstance(v, Entity)]


def check_integrity(context: ReasoningContext) -> dict[str, Any]:
    """Look for orphaned references and duplicated entities.

    Nothing is repaired; issues are only reported.
    """
    issues: list[str] = []

    for predicate in context.all_predicates():
        for entity in _referenced(predicate.arguments):
            if context.get_entity(entity.id) is not entity:
                issues.append(
                    f"Orphaned predicate {predicate.id} references missing entity {entity.id}"
                )

    for entity in context.all_entities():
        match entity:
            case EventualityEntity():
                nested = _referenced(entity.arguments)
            case SetEntity():
                nested = _referenced(entity.elements)
                operands = [op for pair in entity.recorded_unions() for op in pair]
                for operand in dict.fromkeys(operands):
                    if context.get_entity(operand) is None:
                        issues.append(f"Set {entity.id} is the union of missing set {operand}")
            case _:
                nested = []
        for ref in nested:
            if context.get_entity(ref.id) is not ref:
                issues.append(f"Entity {entity.id} references missing entity {ref.id}")

    seen: dict[str, str] = {}
    duplicates = 0
    for entity in context.all_entities():
        key = entity.content_key()
        if key in seen:
            duplicates += 1
            logger.debug("Entity %s duplicates %s", entity.id, seen[key])
        else:
            seen[key] = entity.id
    if duplicates:
        issues.append(f"Found {duplicates} duplicate entities")

    return {
        "is_valid": not issues,
        "issues": issues,
        "checked_entities": len(context.all_entities()),
        "checked_predicates": len(context.all_predicates()),
    }
