"""
Engine Tests - forward chaining, bounds, fault isolation, determinism.

Covers the run loop over the real axioms plus stub axioms that always grow,
always fail, or record how many conflicting executions overlap.
"""

import threading
import time

import pytest

from background_theories import (
    AuditStore,
    AuditStoreError,
    AxiomExecutor,
    AxiomRegistry,
    EngineSettings,
    EntityKind,
    EventualityEntity,
    ExecutionError,
    ExecutionResult,
    PredicateKind,
    ReasoningContext,
    ReasoningEngine,
    RegistryError,
    RexistLinkingExecutor,
    SetEntity,
    SetUnionExecutor,
    TerminationReason,
    build_registry,
)


# =============================================================================
# STUB AXIOMS
# =============================================================================


class GrowingExecutor(AxiomExecutor):
    """Derives one new empty set every time it runs."""

    def __init__(self, axiom_id: str = "grow"):
        super().__init__(axiom_id, "always grows", reads=[EntityKind.SET], writes=[EntityKind.SET])

    def is_applicable(self, context):
        return True

    def execute(self, context):
        result = ExecutionResult()
        grown = SetEntity([], entity_id=context.new_id("grown"))
        context.add_entity(grown)
        result.entities.append(grown)
        self._step(context, result, "grew", entity_id=grown.id)
        return result


class FailingExecutor(AxiomExecutor):
    """Raises on every execution."""

    def __init__(self, axiom_id: str = "boom"):
        super().__init__(axiom_id, "always fails")

    def is_applicable(self, context):
        return True

    def execute(self, context):
        raise RuntimeError("boom")


class OverlapRecorder(AxiomExecutor):
    """Records the peak number of executors sharing ``shared`` running at once."""

    def __init__(self, axiom_id: str, kinds, shared: dict):
        super().__init__(axiom_id, "overlap recorder", reads=kinds, writes=kinds)
        self.shared = shared

    def is_applicable(self, context):
        return True

    def execute(self, context):
        with self.shared["lock"]:
            self.shared["active"] += 1
            self.shared["peak"] = max(self.shared["peak"], self.shared["active"])
        time.sleep(0.02)
        with self.shared["lock"]:
            self.shared["active"] -= 1
        return ExecutionResult()


class SetSeedingExecutor(AxiomExecutor):
    """Creates two sets while the context has none."""

    def __init__(self, axiom_id: str = "seed"):
        super().__init__(axiom_id, "seeds two sets", writes=[EntityKind.SET])

    def is_applicable(self, context):
        return not context.has_entities(EntityKind.SET)

    def execute(self, context):
        result = ExecutionResult()
        for set_id, elements in (("S1", [1]), ("S2", [2])):
            s = SetEntity(elements, entity_id=set_id)
            context.add_entity(s)
            result.entities.append(s)
        return result


class BrokenAuditStore(AuditStore):
    """Audit store whose writes always fail."""

    def append(self, record):
        raise AuditStoreError("disk full")

    def history(self, axiom_id=None, limit=None):
        return []

    def count(self):
        return 0

    def clear(self):
        pass


class FakeClock:
    """Monotonic clock that advances ``step`` seconds per reading."""

    def __init__(self, start: float = 0.0, step: float = 0.0):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value


class BarrierExecutor(AxiomExecutor):
    """Succeeds only when every party of the barrier runs at the same time."""

    def __init__(self, axiom_id: str, kinds, barrier: threading.Barrier):
        super().__init__(axiom_id, "barrier wait", reads=kinds, writes=kinds)
        self.barrier = barrier

    def is_applicable(self, context):
        return True

    def execute(self, context):
        self.barrier.wait()
        return ExecutionResult()


def _registry(*executors: AxiomExecutor) -> AxiomRegistry:
    registry = AxiomRegistry()
    for executor in executors:
        registry.register(executor.axiom_id, executor)
    return registry


def _seeded_context() -> ReasoningContext:
    ctx = ReasoningContext()
    ctx.add_entity(EventualityEntity("push", ["John", "box"], entity_id="e1"))
    ctx.add_entity(EventualityEntity("open", ["Mary", "door"], entity_id="e2"))
    ctx.add_entity(SetEntity([1, 2, 3], entity_id="A"))
    ctx.add_entity(SetEntity([3, 4], entity_id="B"))
    return ctx


# =============================================================================
# SCENARIOS
# =============================================================================


class TestScenarios:
    def test_push_john_box_after_one_round(self, push_context):
        settings = EngineSettings(max_execution_depth=1)
        engine = ReasoningEngine(build_registry(), settings)

        result = engine.run(push_context)

        assert result.rounds == 1
        rexists = push_context.predicates_of(PredicateKind.REXIST)
        assert len(rexists) == 1
        assert rexists[0].entity is push_context.get_entity("e1")
        assert push_context.get_entity("e1").really_exists

    def test_push_converges_in_two_rounds(self, push_context, settings):
        result = ReasoningEngine(build_registry(), settings).run(push_context)

        assert result.termination is TerminationReason.CONVERGED
        assert result.converged
        assert not result.bound_exceeded
        assert result.rounds == 2
        assert [(r.axiom_id, r.round) for r in result.audit_log] == [("5.1", 0), ("5.1", 1)]

    def test_union_scenario(self, sets_context, settings):
        result = ReasoningEngine(build_registry(), settings).run(sets_context)

        assert result.converged
        union = sets_context.get_entity("set-1")
        assert union.cardinality() == 4
        assert len(sets_context.predicates_referencing("set-1", PredicateKind.MEMBER)) == 4
        assert sets_context.count_entities(EntityKind.SET) == 3

    def test_empty_context_converges_immediately(self, context, settings):
        result = ReasoningEngine(build_registry(), settings).run(context)

        assert result.rounds == 1
        assert result.converged
        assert result.audit_log == []


# =============================================================================
# BOUNDS
# =============================================================================


class TestTermination:
    @pytest.mark.parametrize("depth", [1, 3, 7])
    def test_adversarial_axiom_stops_at_max_depth(self, context, depth):
        settings = EngineSettings(max_execution_depth=depth)
        engine = ReasoningEngine(_registry(GrowingExecutor()), settings)

        result = engine.run(context)

        assert result.rounds == depth
        assert result.termination is TerminationReason.MAX_DEPTH
        assert result.bound_exceeded
        assert context.count_entities(EntityKind.SET) == depth

    def test_timeout_checked_between_rounds(self, context):
        settings = EngineSettings(max_execution_depth=100, execution_timeout=5)
        clock = FakeClock(step=2)
        engine = ReasoningEngine(_registry(GrowingExecutor()), settings, clock=clock)

        result = engine.run(context)

        assert result.termination is TerminationReason.TIMEOUT
        assert result.rounds == 3
        assert len(result.audit_log) == 3

    def test_deadline_checked_between_rounds(self, context):
        settings = EngineSettings(max_execution_depth=100)
        clock = FakeClock(step=1)
        engine = ReasoningEngine(_registry(GrowingExecutor()), settings, clock=clock)

        result = engine.run(context, deadline=2.5)

        assert result.termination is TerminationReason.DEADLINE
        assert result.rounds == 3

    def test_convergence_wins_over_bounds(self, push_context):
        settings = EngineSettings(max_execution_depth=2)
        result = ReasoningEngine(build_registry(), settings).run(push_context)

        assert result.rounds == 2
        assert result.termination is TerminationReason.CONVERGED


# =============================================================================
# FAULT ISOLATION
# =============================================================================


class TestFaultIsolation:
    def test_failing_axiom_does_not_block_later_axioms(self, push_context, settings):
        engine = ReasoningEngine(
            _registry(FailingExecutor(), RexistLinkingExecutor()), settings
        )

        result = engine.run(push_context)

        first, second = result.audit_log[0], result.audit_log[1]
        assert (first.axiom_id, first.round, first.success) == ("boom", 0, False)
        assert first.error_message == "RuntimeError: boom"
        assert first.predicates_created == 0
        assert (second.axiom_id, second.round, second.success) == ("5.1", 0, True)
        assert push_context.get_entity("e1").really_exists

    def test_failures_do_not_count_as_progress(self, context, settings):
        result = ReasoningEngine(_registry(FailingExecutor()), settings).run(context)

        assert result.converged
        assert result.rounds == 1
        assert len(result.failures) == 1

    def test_failure_is_logged(self, context, settings, caplog):
        ReasoningEngine(_registry(FailingExecutor()), settings).run(context)
        assert "Axiom boom failed" in caplog.text


# =============================================================================
# DETERMINISM & MONOTONICITY
# =============================================================================


class TestDeterminism:
    def test_identical_runs_identical_audit_logs(self, settings):
        logs = []
        for _ in range(2):
            result = ReasoningEngine(build_registry(), settings).run(_seeded_context())
            logs.append([r.canonical_json() for r in result.audit_log])

        assert logs[0] == logs[1]
        assert len(logs[0]) > 2

    def test_audit_sequence_is_contiguous(self, settings):
        result = ReasoningEngine(build_registry(), settings).run(_seeded_context())
        assert [r.sequence for r in result.audit_log] == list(
            range(1, len(result.audit_log) + 1)
        )

    def test_realized_entities_stay_realized(self, settings):
        ctx = _seeded_context()
        engine = ReasoningEngine(build_registry(), settings)

        engine.run(ctx)
        realized = {e.id for e in ctx.real_entities()}
        engine.run(ctx)

        assert realized == {"e1", "e2"}
        assert realized <= {e.id for e in ctx.real_entities()}


# =============================================================================
# AUDIT RECORDS
# =============================================================================


class TestAudit:
    def test_record_contents(self, sets_context, settings):
        result = ReasoningEngine(build_registry(), settings).run(sets_context)

        record = result.audit_log[0]
        assert record.axiom_id == "6.13"
        assert record.input_entity_ids == ("A", "B")
        assert record.output_entity_ids == ("set-1",)
        assert record.entities_created == 1
        assert record.predicates_created == 4
        assert len(record.output_predicate_ids) == 4
        assert record.reasoning_trace[0] == "[6.13] axiom_6_13_start"
        assert record.execution_time_ms >= 0
        assert record.success

    def test_records_persisted(self, push_context, settings, audit_store):
        result = ReasoningEngine(build_registry(), settings, audit_store).run(push_context)

        assert audit_store.count() == len(result.audit_log) == 2
        assert audit_store.history()[0].round == 1

    def test_persistence_can_be_disabled(self, push_context, audit_store):
        settings = EngineSettings(log_axiom_executions=False)
        result = ReasoningEngine(build_registry(), settings, audit_store).run(push_context)

        assert audit_store.count() == 0
        assert len(result.audit_log) == 2

    def test_summary(self, push_context, settings):
        summary = ReasoningEngine(build_registry(), settings).run(push_context).summary()

        assert summary["termination"] == "converged"
        assert summary["executions"] == 2
        assert summary["predicates_created"] == 1
        assert summary["state"]["predicates_count"] == 1

    def test_store_failure_does_not_stop_reasoning(self, push_context, settings, caplog):
        engine = ReasoningEngine(build_registry(), settings, BrokenAuditStore())

        result = engine.run(push_context)

        assert result.converged
        assert len(result.audit_log) == 2
        assert push_context.get_entity("e1").really_exists
        assert "Failed to persist" in caplog.text

    def test_run_axiom_survives_store_failure(self, push_context, settings):
        engine = ReasoningEngine(build_registry(), settings, BrokenAuditStore())

        record = engine.run_axiom(push_context, "5.1")

        assert record.success
        assert record.predicates_created == 1


# =============================================================================
# PARALLEL MODE
# =============================================================================


class TestParallel:
    def test_same_facts_as_sequential(self):
        sequential = _seeded_context()
        parallel = _seeded_context()
        ReasoningEngine(build_registry(), EngineSettings()).run(sequential)
        result = ReasoningEngine(
            build_registry(), EngineSettings(enable_parallel_execution=True)
        ).run(parallel)

        assert result.converged
        assert parallel.state()["entities_by_type"] == sequential.state()["entities_by_type"]
        assert parallel.state()["predicates_by_name"] == sequential.state()["predicates_by_name"]

    def test_audit_log_in_registration_order(self):
        settings = EngineSettings(enable_parallel_execution=True)
        result = ReasoningEngine(build_registry(), settings).run(_seeded_context())

        first_round = [r.axiom_id for r in result.audit_log if r.round == 0]
        assert first_round == ["5.1", "6.13"]

    def test_dependent_axiom_sees_earlier_output(self):
        runs = []
        for parallel in (False, True):
            ctx = ReasoningContext()
            registry = _registry(SetSeedingExecutor(), SetUnionExecutor())
            settings = EngineSettings(enable_parallel_execution=parallel)
            result = ReasoningEngine(registry, settings).run(ctx)
            runs.append((result.rounds, [(r.axiom_id, r.round) for r in result.audit_log]))

        assert runs[0] == runs[1] == (2, [("seed", 0), ("6.13", 0), ("6.13", 1)])

    def test_conflicting_axioms_never_overlap(self, context):
        shared = {"lock": threading.Lock(), "active": 0, "peak": 0}
        registry = _registry(
            OverlapRecorder("p1", [EntityKind.SET], shared),
            OverlapRecorder("p2", [EntityKind.SET], shared),
            OverlapRecorder("p3", [EntityKind.SET, PredicateKind.MEMBER], shared),
        )
        settings = EngineSettings(enable_parallel_execution=True, max_concurrent_axioms=3)

        result = ReasoningEngine(registry, settings).run(context)

        assert shared["peak"] == 1
        assert [r.axiom_id for r in result.audit_log] == ["p1", "p2", "p3"]

    def test_disjoint_axioms_run_concurrently(self, context):
        barrier = threading.Barrier(2, timeout=5)
        registry = _registry(
            BarrierExecutor("b1", [EntityKind.EVENTUALITY], barrier),
            BarrierExecutor("b2", [EntityKind.SET], barrier),
        )
        settings = EngineSettings(enable_parallel_execution=True, max_concurrent_axioms=2)

        result = ReasoningEngine(registry, settings).run(context)

        assert [r.axiom_id for r in result.audit_log] == ["b1", "b2"]
        assert all(r.success for r in result.audit_log)

    def test_batches_capped_by_worker_count(self, context):
        barrier = threading.Barrier(2, timeout=0.2)
        registry = _registry(
            BarrierExecutor("b1", [EntityKind.EVENTUALITY], barrier),
            BarrierExecutor("b2", [EntityKind.SET], barrier),
        )
        settings = EngineSettings(enable_parallel_execution=True, max_concurrent_axioms=1)

        result = ReasoningEngine(registry, settings).run(context)

        assert not any(r.success for r in result.audit_log)

    def test_parallel_fault_isolation(self, push_context):
        settings = EngineSettings(enable_parallel_execution=True)
        engine = ReasoningEngine(
            _registry(FailingExecutor(), RexistLinkingExecutor(), SetUnionExecutor()),
            settings,
        )

        result = engine.run(push_context)

        assert not result.audit_log[0].success
        assert push_context.get_entity("e1").really_exists


# =============================================================================
# CONSTRUCTION & SINGLE AXIOMS
# =============================================================================


class TestEngineConstruction:
    def test_from_settings_builds_configured_registry(self):
        settings = EngineSettings(axiom_executors=["6.13"])
        engine = ReasoningEngine.from_settings(settings)
        assert engine.registry.ids() == ["6.13"]

    def test_auto_register_off(self, push_context):
        settings = EngineSettings(auto_register_executors=False)
        engine = ReasoningEngine.from_settings(settings)

        result = engine.run(push_context)

        assert len(engine.registry) == 0
        assert result.converged
        assert not push_context.get_entity("e1").really_exists

    def test_run_axiom(self, push_context, settings, audit_store):
        engine = ReasoningEngine(build_registry(), settings, audit_store)

        record = engine.run_axiom(push_context, "5.1")

        assert record.success
        assert record.predicates_created == 1
        assert audit_store.count() == 1

    def test_run_axiom_failure(self, context, settings, audit_store):
        engine = ReasoningEngine(_registry(FailingExecutor()), settings, audit_store)

        with pytest.raises(ExecutionError) as exc:
            engine.run_axiom(context, "boom")

        assert exc.value.axiom_id == "boom"
        assert not audit_store.history()[0].success

    def test_run_axiom_unknown(self, context, settings):
        with pytest.raises(RegistryError):
            ReasoningEngine(build_registry(), settings).run_axiom(context, "1.1")
