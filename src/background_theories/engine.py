"""
background_theories/engine.py - Forward-Chaining Reasoning Engine

Runs the registered axioms over a reasoning context in sweeps (rounds) until
a sweep derives nothing new, or a bound is hit:

    round = 0
    loop:
        for executor in registry:            # registration order
            skip unless executor.is_applicable(context)
            execute, record an audit entry (success or failure)
        round += 1
        stop if nothing progressed, round >= max_execution_depth,
             elapsed >= execution_timeout, or the caller's deadline passed

A failing executor is isolated: its exception is logged, recorded with
success=False, and the sweep goes on. Bounds are only checked between
rounds so no axiom is ever partially applied. Hitting a bound is a normal
termination reported on the result, not an exception.

In parallel mode the applicable executors of a round are grouped, in
registration order, into batches whose read/write kinds are pairwise
disjoint; each batch runs on a thread pool. An executor that conflicts with
the pending batch is only checked for applicability after that batch has
run, so it sees the same facts a sequential sweep would. Audit records keep
registration order either way.

The audit store is write-only from the engine's point of view: a store
failure is logged and the run goes on with the in-memory audit log.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from .audit import AuditRecord, AuditStore
from .config import EngineSettings
from .context import ReasoningContext
from .errors import AuditStoreError, ExecutionError
from .executors import AxiomExecutor, ExecutionResult
from .registry import AxiomRegistry, build_registry

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class TerminationReason(str, Enum):
    """Why a run stopped."""

    CONVERGED = "converged"
    MAX_DEPTH = "max_depth"
    TIMEOUT = "timeout"
    DEADLINE = "deadline"


@dataclass
class EngineResult:
    """Final context plus run metadata."""

    context: ReasoningContext
    rounds: int
    termination: TerminationReason
    audit_log: list[AuditRecord] = field(default_factory=list)
    elapsed_ms: float = 0.0

    @property
    def converged(self) -> bool:
        return self.termination is TerminationReason.CONVERGED

    @property
    def bound_exceeded(self) -> bool:
        return not self.converged

    @property
    def failures(self) -> list[AuditRecord]:
        return [r for r in self.audit_log if not r.success]

    def summary(self) -> dict[str, Any]:
        return {
            "rounds": self.rounds,
            "termination": self.termination.value,
            "executions": len(self.audit_log),
            "failures": len(self.failures),
            "entities_created": sum(r.entities_created for r in self.audit_log),
            "predicates_created": sum(r.predicates_created for r in self.audit_log),
            "elapsed_ms": round(self.elapsed_ms, 3),
            "state": self.context.state(),
        }


@dataclass
class _Execution:
    """Outcome of one executor call, before it becomes an audit record."""

    executor: AxiomExecutor
    input_entity_ids: tuple[str, ...]
    result: ExecutionResult | None = None
    error: BaseException | None = None
    elapsed_ms: float = 0.0


class ReasoningEngine:
    """Drives an axiom registry over reasoning contexts."""

    def __init__(
        self,
        registry: AxiomRegistry,
        settings: EngineSettings | None = None,
        audit_store: AuditStore | None = None,
        clock: Clock = time.monotonic,
    ):
        self.registry = registry
        self.settings = settings or EngineSettings()
        self.audit_store = audit_store
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings,
        audit_store: AuditStore | None = None,
        **kwargs: Any,
    ) -> ReasoningEngine:
        """Build the registry from configuration and wrap it in an engine."""
        if settings.auto_register_executors:
            registry = build_registry(settings.axiom_executors)
        else:
            registry = AxiomRegistry()
        return cls(registry, settings, audit_store, **kwargs)

    # -------------------------------------------------------------------------
    # Main loop
    # -------------------------------------------------------------------------

    def run(self, context: ReasoningContext, deadline: float | None = None) -> EngineResult:
        """Forward-chain until convergence or a bound.

        Args:
            context: Fact pool to reason over; mutated in place.
            deadline: Absolute time on the engine clock after which no new
                round starts.
        """
        settings = self.settings
        started = self._clock()
        audit_log: list[AuditRecord] = []
        rounds = 0

        logger.info(
            "Reasoning started: %d axioms, %d facts, max_depth=%d, parallel=%s",
            len(self.registry),
            len(context),
            settings.max_execution_depth,
            settings.enable_parallel_execution,
        )

        while True:
            if settings.enable_parallel_execution:
                executions = self._sweep_parallel(context)
            else:
                executions = self._sweep(context)

            records = [
                self._record(execution, rounds, len(audit_log) + i + 1)
                for i, execution in enumerate(executions)
            ]
            audit_log.extend(records)
            self._persist(records)

            progressed = any(e.result is not None and e.result.progressed for e in executions)
            rounds += 1
            now = self._clock()

            if not progressed:
                termination = TerminationReason.CONVERGED
            elif rounds >= settings.max_execution_depth:
                termination = TerminationReason.MAX_DEPTH
            elif now - started >= settings.execution_timeout:
                termination = TerminationReason.TIMEOUT
            elif deadline is not None and now >= deadline:
                termination = TerminationReason.DEADLINE
            else:
                continue
            break

        elapsed_ms = (self._clock() - started) * 1000
        result = EngineResult(context, rounds, termination, audit_log, elapsed_ms)
        log = logger.info if result.converged else logger.warning
        log(
            "Reasoning finished after %d rounds (%s): %d executions, %d failures",
            rounds,
            termination.value,
            len(audit_log),
            len(result.failures),
        )
        return result

    def run_axiom(self, context: ReasoningContext, axiom_id: str) -> AuditRecord:
        """Execute one registered axiom once, outside the round loop.

        Raises:
            RegistryError: If the axiom is not registered.
            ExecutionError: If the axiom raises.
        """
        executor = self.registry.get(axiom_id)
        execution = self._execute(executor, context)
        record = self._record(execution, 0, 1)
        self._persist([record])
        if execution.error is not None:
            raise ExecutionError(axiom_id, str(execution.error)) from execution.error
        return record

    # -------------------------------------------------------------------------
    # Sweeps
    # -------------------------------------------------------------------------

    def _sweep(self, context: ReasoningContext) -> list[_Execution]:
        executions = []
        for executor in self.registry:
            if not executor.is_applicable(context):
                logger.debug("Axiom %s not applicable, skipped", executor.axiom_id)
                continue
            executions.append(self._execute(executor, context))
        return executions

    def _sweep_parallel(self, context: ReasoningContext) -> list[_Execution]:
        executions: list[_Execution] = []
        batch: list[AxiomExecutor] = []
        workers = self.settings.max_concurrent_axioms

        with ThreadPoolExecutor(max_workers=workers) as pool:
            for executor in self.registry:
                # Flush before the applicability check so a dependent axiom
                # sees what the batch ahead of it derived.
                if len(batch) >= workers or any(executor.conflicts_with(b) for b in batch):
                    executions.extend(self._run_batch(pool, batch, context))
                    batch = []
                if not executor.is_applicable(context):
                    logger.debug("Axiom %s not applicable, skipped", executor.axiom_id)
                    continue
                batch.append(executor)
            executions.extend(self._run_batch(pool, batch, context))
        return executions

    def _run_batch(
        self,
        pool: ThreadPoolExecutor,
        batch: list[AxiomExecutor],
        context: ReasoningContext,
    ) -> list[_Execution]:
        if len(batch) == 1:
            return [self._execute(batch[0], context)]
        if batch:
            logger.debug("Dispatching batch %s", [e.axiom_id for e in batch])
        futures = [pool.submit(self._execute, executor, context) for executor in batch]
        return [future.result() for future in futures]

    def _execute(self, executor: AxiomExecutor, context: ReasoningContext) -> _Execution:
        execution = _Execution(executor, tuple(context.entity_ids()))
        start = time.perf_counter()
        try:
            execution.result = executor.execute(context)
        except Exception as e:
            execution.error = e
            logger.exception("Axiom %s failed: %s", executor.axiom_id, e)
        execution.elapsed_ms = (time.perf_counter() - start) * 1000
        if execution.result is not None:
            logger.debug(
                "Axiom %s: +%d entities, +%d predicates (%.2f ms)",
                executor.axiom_id,
                len(execution.result.entities),
                len(execution.result.predicates),
                execution.elapsed_ms,
            )
        return execution

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    @staticmethod
    def _record(execution: _Execution, round_: int, sequence: int) -> AuditRecord:
        result = execution.result
        if result is None:
            return AuditRecord(
                axiom_id=execution.executor.axiom_id,
                round=round_,
                sequence=sequence,
                input_entity_ids=execution.input_entity_ids,
                execution_time_ms=execution.elapsed_ms,
                success=False,
                error_message=f"{type(execution.error).__name__}: {execution.error}",
            )
        return AuditRecord(
            axiom_id=execution.executor.axiom_id,
            round=round_,
            sequence=sequence,
            input_entity_ids=execution.input_entity_ids,
            output_entity_ids=tuple(e.id for e in result.entities),
            output_predicate_ids=tuple(p.id for p in result.predicates),
            predicates_created=len(result.predicates),
            entities_created=len(result.entities),
            execution_time_ms=execution.elapsed_ms,
            reasoning_trace=tuple(entry.describe() for entry in result.trace),
        )

    def _persist(self, records: list[AuditRecord]) -> None:
        if self.audit_store is None or not self.settings.log_axiom_executions:
            return
        try:
            self.audit_store.append_many(records)
        except AuditStoreError:
            logger.exception("Failed to persist %d audit records", len(records))
