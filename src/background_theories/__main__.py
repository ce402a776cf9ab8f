"""CLI entry point for the background theories engine.

Usage:
    # List the configured axioms
    python -m background_theories list
    python -m background_theories list --config config/background_theories.yaml

    # Forward-chain over a seed file
    python -m background_theories run --seed facts.yaml
    python -m background_theories run --seed facts.yaml --max-depth 3 --parallel
    python -m background_theories run --seed facts.yaml --audit-db audit.db -o out.json

    # Apply one axiom once
    python -m background_theories execute --seed facts.yaml 6.13

    # Inspect the audit trail
    python -m background_theories history --audit-db audit.db --axiom 6.13 --limit 5

    # Empty the audit trail
    python -m background_theories clear --audit-db audit.db --force
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .audit import AuditStore, InMemoryAuditStore, SqliteAuditStore
from .config import EngineSettings, load_settings
from .engine import ReasoningEngine
from .errors import BackgroundTheoryError
from .state import check_integrity, export_state, load_seed


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _settings(args: argparse.Namespace) -> EngineSettings:
    return load_settings(
        args.config,
        max_execution_depth=getattr(args, "max_depth", None),
        enable_parallel_execution=getattr(args, "parallel", None),
        audit_db_path=getattr(args, "audit_db", None),
        log_level=getattr(args, "log_level", None),
    )


def _audit_store(settings: EngineSettings) -> AuditStore:
    if settings.audit_db_path:
        return SqliteAuditStore(settings.audit_db_path)
    return InMemoryAuditStore()


def _cmd_list(args: argparse.Namespace) -> int:
    """Print the registered axioms in execution order."""
    settings = _settings(args)
    engine = ReasoningEngine.from_settings(settings)
    if not len(engine.registry):
        print("No axioms registered (auto_register_executors is off)")
        return 0
    for executor in engine.registry:
        info = executor.describe()
        print(f"{info['axiom_id']:<6} {info['complexity']:<9} {info['description']}")
        print(f"       reads:  {', '.join(info['reads'])}")
        print(f"       writes: {', '.join(info['writes'])}")
        if info["fol_formula"]:
            print(f"       FOL:    {info['fol_formula']}")
    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    """Load a seed, forward-chain, report."""
    settings = _settings(args)
    _setup_logging(settings.log_level)

    seed = Path(args.seed)
    if not seed.is_file():
        print(f"Error: Seed file not found: {seed}", file=sys.stderr)
        return 1

    context = load_seed(seed, strict=False)
    engine = ReasoningEngine.from_settings(settings, audit_store=_audit_store(settings))
    result = engine.run(context)
    summary = result.summary()
    integrity = check_integrity(context)

    print(f"Rounds:      {summary['rounds']} ({summary['termination']})")
    print(f"Executions:  {summary['executions']} ({summary['failures']} failed)")
    print(f"Derived:     {summary['entities_created']} entities, "
          f"{summary['predicates_created']} predicates")
    print(f"Facts:       {summary['state']['entities_count']} entities, "
          f"{summary['state']['predicates_count']} predicates")
    if not integrity["is_valid"]:
        print(f"--- Integrity issues ({len(integrity['issues'])}) ---")
        for issue in integrity["issues"]:
            print(f"  ! {issue}")
    for record in result.failures:
        print(f"  ! axiom {record.axiom_id} round {record.round}: {record.error_message}")

    if args.output:
        output = {
            "summary": summary,
            "integrity": integrity,
            "state": export_state(context, settings),
            "audit_log": [r.to_dict() for r in result.audit_log],
        }
        Path(args.output).write_text(json.dumps(output, indent=2, default=str))
        print(f"Wrote {args.output}")
    return 0


def _cmd_execute(args: argparse.Namespace) -> int:
    """Apply a single axiom once to a seed and report what it derived."""
    settings = _settings(args)
    _setup_logging(settings.log_level)

    seed = Path(args.seed)
    if not seed.is_file():
        print(f"Error: Seed file not found: {seed}", file=sys.stderr)
        return 1

    context = load_seed(seed, strict=False)
    store = _audit_store(settings)
    engine = ReasoningEngine.from_settings(settings, audit_store=store)
    try:
        record = engine.run_axiom(context, args.axiom_id)
    finally:
        if isinstance(store, SqliteAuditStore):
            store.close()

    print(f"Axiom {record.axiom_id} executed in {record.execution_time_ms:.2f} ms")
    print(f"Derived:     {record.entities_created} entities, "
          f"{record.predicates_created} predicates")
    for line in record.reasoning_trace:
        print(f"  {line}")

    if args.output:
        output = {"record": record.to_dict(), "state": export_state(context, settings)}
        Path(args.output).write_text(json.dumps(output, indent=2, default=str))
        print(f"Wrote {args.output}")
    return 0


def _cmd_history(args: argparse.Namespace) -> int:
    """Print recent audit records from an audit database."""
    path = Path(args.audit_db)
    if not path.is_file():
        print(f"Error: Audit database not found: {path}", file=sys.stderr)
        return 1

    store = SqliteAuditStore(path)
    try:
        if args.stats:
            print(json.dumps(store.statistics(), indent=2))
            return 0
        records = store.history(args.axiom, args.limit)
        if not records:
            print("No audit records")
        for r in records:
            status = "ok" if r.success else f"FAILED ({r.error_message})"
            print(
                f"{r.created_at}  {r.axiom_id:<6} round {r.round:<3} "
                f"+{r.entities_created}e +{r.predicates_created}p "
                f"{r.execution_time_ms:8.2f} ms  {status}"
            )
    finally:
        store.close()
    return 0


def _cmd_clear(args: argparse.Namespace) -> int:
    """Delete every record from an audit database."""
    path = Path(args.audit_db)
    if not path.is_file():
        print(f"Error: Audit database not found: {path}", file=sys.stderr)
        return 1

    store = SqliteAuditStore(path)
    try:
        count = store.count()
        if not args.force:
            answer = input(f"Delete {count} audit records from {path}? [y/N] ")
            if answer.strip().lower() not in ("y", "yes"):
                print("Cancelled")
                return 0
        store.clear()
    finally:
        store.close()
    print(f"Cleared {count} audit records")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="background_theories",
        description="Forward-chaining axiom engine for background theories",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # list
    list_parser = subparsers.add_parser("list", help="List configured axioms")
    list_parser.add_argument("--config", help="YAML configuration file")

    # run
    run_parser = subparsers.add_parser("run", help="Forward-chain over a seed file")
    run_parser.add_argument("--seed", required=True, help="YAML or JSON seed file")
    run_parser.add_argument("--config", help="YAML configuration file")
    run_parser.add_argument("--audit-db", help="SQLite audit database to append to")
    run_parser.add_argument("--max-depth", type=int, help="Override max_execution_depth")
    run_parser.add_argument(
        "--parallel",
        action="store_true",
        default=None,
        help="Run non-conflicting axioms concurrently",
    )
    run_parser.add_argument("--log-level", help="Logging level (default: from config)")
    run_parser.add_argument("--output", "-o", help="Write state and audit log as JSON")

    # history
    history_parser = subparsers.add_parser("history", help="Show audit records")
    history_parser.add_argument("--audit-db", required=True, help="SQLite audit database")
    history_parser.add_argument("--axiom", help="Only this axiom id")
    history_parser.add_argument(
        "--limit", type=int, default=20, help="Number of records (default: 20)"
    )
    history_parser.add_argument(
        "--stats", action="store_true", help="Print aggregate statistics instead"
    )

    # execute
    execute_parser = subparsers.add_parser("execute", help="Apply one axiom once to a seed")
    execute_parser.add_argument("axiom_id", help="Axiom id, e.g. 6.13")
    execute_parser.add_argument("--seed", required=True, help="YAML or JSON seed file")
    execute_parser.add_argument("--config", help="YAML configuration file")
    execute_parser.add_argument("--audit-db", help="SQLite audit database to append to")
    execute_parser.add_argument("--log-level", help="Logging level (default: from config)")
    execute_parser.add_argument("--output", "-o", help="Write the record and state as JSON")

    # clear
    clear_parser = subparsers.add_parser("clear", help="Delete all audit records")
    clear_parser.add_argument("--audit-db", required=True, help="SQLite audit database")
    clear_parser.add_argument("--force", action="store_true", help="Do not ask for confirmation")

    args = parser.parse_args(argv)
    commands = {
        "list": _cmd_list,
        "run": _cmd_run,
        "execute": _cmd_execute,
        "history": _cmd_history,
        "clear": _cmd_clear,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        return 1

    try:
        return command(args)
    except BackgroundTheoryError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
