"""Axiom execution audit trail.

Every axiom execution produces one AuditRecord: what it saw, what it
created, how long it took, the reasoning steps it traced, and whether it
failed. The audit trail is append-only and purely observational; nothing in
it feeds back into reasoning.

Two stores share the AuditStore interface:
- InMemoryAuditStore: ephemeral (tests, single runs)
- SqliteAuditStore: the ``axiom_executions`` table, indexed by axiom id
  and creation time
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Iterable

from .errors import AuditStoreError

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class AuditRecord:
    """One axiom execution."""

    axiom_id: str
    round: int
    sequence: int
    input_entity_ids: tuple[str, ...] = ()
    output_entity_ids: tuple[str, ...] = ()
    output_predicate_ids: tuple[str, ...] = ()
    predicates_created: int = 0
    entities_created: int = 0
    execution_time_ms: float = 0.0
    reasoning_trace: tuple[str, ...] = ()
    success: bool = True
    error_message: str | None = None
    created_at: str = field(default_factory=_now)

    def to_dict(self, include_timing: bool = True) -> dict[str, Any]:
        data = asdict(self)
        for key in ("input_entity_ids", "output_entity_ids", "output_predicate_ids", "reasoning_trace"):
            data[key] = list(data[key])
        if not include_timing:
            data.pop("execution_time_ms")
            data.pop("created_at")
        return data

    def canonical_json(self) -> str:
        """Timing-free JSON; identical inputs give identical bytes."""
        return json.dumps(self.to_dict(include_timing=False), sort_keys=True, default=str)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditRecord:
        return cls(
            axiom_id=data["axiom_id"],
            round=data.get("round", 0),
            sequence=data.get("sequence", 0),
            input_entity_ids=tuple(data.get("input_entity_ids", ())),
            output_entity_ids=tuple(data.get("output_entity_ids", ())),
            output_predicate_ids=tuple(data.get("output_predicate_ids", ())),
            predicates_created=data.get("predicates_created", 0),
            entities_created=data.get("entities_created", 0),
            execution_time_ms=data.get("execution_time_ms", 0.0),
            reasoning_trace=tuple(data.get("reasoning_trace", ())),
            success=bool(data.get("success", True)),
            error_message=data.get("error_message"),
            created_at=data.get("created_at") or _now(),
        )


def _summarize(records: Iterable[AuditRecord]) -> dict[str, Any]:
    records = list(records)
    since = (datetime.now(UTC) - timedelta(days=1)).isoformat()
    by_axiom: dict[str, int] = {}
    for r in records:
        by_axiom[r.axiom_id] = by_axiom.get(r.axiom_id, 0) + 1
    times = [r.execution_time_ms for r in records]
    return {
        "total": len(records),
        "succeeded": sum(1 for r in records if r.success),
        "failed": sum(1 for r in records if not r.success),
        "last_24h": sum(1 for r in records if r.created_at >= since),
        "by_axiom": by_axiom,
        "entities_created": sum(r.entities_created for r in records),
        "predicates_created": sum(r.predicates_created for r in records),
        "avg_execution_time_ms": (sum(times) / len(times)) if times else 0.0,
    }


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------


class AuditStore(ABC):
    """Append-only persistence for audit records."""

    @abstractmethod
    def append(self, record: AuditRecord) -> None:
        """Persist a single record."""
        ...

    def append_many(self, records: Iterable[AuditRecord]) -> None:
        """Persist a batch of records, in order."""
        for record in records:
            self.append(record)

    @abstractmethod
    def history(
        self, axiom_id: str | None = None, limit: int | None = None
    ) -> list[AuditRecord]:
        """Records, newest first, optionally for one axiom."""
        ...

    @abstractmethod
    def count(self) -> int:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...

    def statistics(self) -> dict[str, Any]:
        return _summarize(self.history())


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class InMemoryAuditStore(AuditStore):
    """Ephemeral in-memory audit store."""

    def __init__(self) -> None:
        self._records: list[AuditRecord] = []
        self._lock = threading.Lock()

    def append(self, record: AuditRecord) -> None:
        with self._lock:
            self._records.append(record)

    def history(
        self, axiom_id: str | None = None, limit: int | None = None
    ) -> list[AuditRecord]:
        records = [
            r for r in reversed(self._records) if axiom_id is None or r.axiom_id == axiom_id
        ]
        return records[:limit] if limit is not None else records

    def count(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


# ---------------------------------------------------------------------------
# SQLite implementation
# ---------------------------------------------------------------------------

_SCHEMA = """
CREATE TABLE IF NOT EXISTS axiom_executions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    axiom_id TEXT NOT NULL,
    round INTEGER NOT NULL DEFAULT 0,
    sequence INTEGER NOT NULL DEFAULT 0,
    input_entities TEXT,
    output_entities TEXT,
    output_predicates TEXT,
    predicates_created INTEGER NOT NULL DEFAULT 0,
    entities_created INTEGER NOT NULL DEFAULT 0,
    execution_time_ms REAL,
    reasoning_trace TEXT,
    success INTEGER NOT NULL DEFAULT 1,
    error_message TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_axiom_created ON axiom_executions(axiom_id, created_at);
CREATE INDEX IF NOT EXISTS idx_success_created ON axiom_executions(success, created_at);
CREATE INDEX IF NOT EXISTS idx_execution_time ON axiom_executions(execution_time_ms);
CREATE INDEX IF NOT EXISTS idx_output_counts ON axiom_executions(predicates_created, entities_created);
CREATE INDEX IF NOT EXISTS idx_recent_executions ON axiom_executions(created_at);
"""

_COLUMNS = (
    "axiom_id, round, sequence, input_entities, output_entities, output_predicates, "
    "predicates_created, entities_created, execution_time_ms, reasoning_trace, "
    "success, error_message, created_at"
)


class SqliteAuditStore(AuditStore):
    """Audit store backed by an SQLite ``axiom_executions`` table."""

    def __init__(self, path: str | Path = ":memory:") -> None:
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False)
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        except sqlite3.Error as e:
            raise AuditStoreError(f"Cannot open audit database {self.path}: {e}") from e

    @staticmethod
    def _to_row(record: AuditRecord) -> tuple:
        return (
            record.axiom_id,
            record.round,
            record.sequence,
            json.dumps(list(record.input_entity_ids)),
            json.dumps(list(record.output_entity_ids)),
            json.dumps(list(record.output_predicate_ids)),
            record.predicates_created,
            record.entities_created,
            record.execution_time_ms,
            json.dumps(list(record.reasoning_trace)),
            1 if record.success else 0,
            record.error_message,
            record.created_at,
        )

    @staticmethod
    def _from_row(row: tuple) -> AuditRecord:
        return AuditRecord(
            axiom_id=row[0],
            round=row[1],
            sequence=row[2],
            input_entity_ids=tuple(json.loads(row[3] or "[]")),
            output_entity_ids=tuple(json.loads(row[4] or "[]")),
            output_predicate_ids=tuple(json.loads(row[5] or "[]")),
            predicates_created=row[6],
            entities_created=row[7],
            execution_time_ms=row[8] or 0.0,
            reasoning_trace=tuple(json.loads(row[9] or "[]")),
            success=bool(row[10]),
            error_message=row[11],
            created_at=row[12],
        )

    def append(self, record: AuditRecord) -> None:
        self.append_many([record])

    def append_many(self, records: Iterable[AuditRecord]) -> None:
        rows = [self._to_row(r) for r in records]
        if not rows:
            return
        try:
            with self._lock:
                self._conn.executemany(
                    f"INSERT INTO axiom_executions ({_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    rows,
                )
                self._conn.commit()
        except sqlite3.Error as e:
            raise AuditStoreError(f"Failed to write audit records: {e}") from e
        logger.debug("Wrote %d audit records to %s", len(rows), self.path)

    def history(
        self, axiom_id: str | None = None, limit: int | None = None
    ) -> list[AuditRecord]:
        query = f"SELECT {_COLUMNS} FROM axiom_executions"
        params: list[Any] = []
        if axiom_id is not None:
            query += " WHERE axiom_id = ?"
            params.append(axiom_id)
        query += " ORDER BY created_at DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        try:
            with self._lock:
                rows = self._conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise AuditStoreError(f"Failed to read audit records: {e}") from e
        return [self._from_row(row) for row in rows]

    def count(self) -> int:
        try:
            with self._lock:
                row = self._conn.execute("SELECT COUNT(*) FROM axiom_executions").fetchone()
        except sqlite3.Error as e:
            raise AuditStoreError(f"Failed to count audit records: {e}") from e
        return row[0]

    def clear(self) -> None:
        try:
            with self._lock:
                self._conn.execute("DELETE FROM axiom_executions")
                self._conn.commit()
        except sqlite3.Error as e:
            raise AuditStoreError(f"Failed to clear audit records: {e}") from e
        logger.info("Cleared audit records in %s", self.path)

    def close(self) -> None:
        with self._lock:
            self._conn.close()
