"""Run orchestration: validate -> discover -> report -> remediate.

Discovery of several kinds may run in parallel (read-only). Report writes
and remediation are always sequential, and remediation of a kind only
starts after its report is on disk.
"""
from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from sqlalchemy.orm import sessionmaker

from .. import journal as journal_mod
from .discovery import discover
from .models import AuditConfig, CandidateSet, RemediationAction
from .planner import QuerySpec, plan
from .remediation import ExecutionSummary, check_remediation_supported, remediate
from .report import resolve_report_path, write_report

log = logging.getLogger(__name__)

ClientFactory = Callable[[], Any]


@dataclass
class RunResult:
    config: AuditConfig
    candidates: CandidateSet
    report_path: Path
    rows: int
    summary: ExecutionSummary


def prepare(config: AuditConfig, now: Optional[datetime] = None) -> QuerySpec:
    """All configuration checks, before any directory access."""
    spec = plan(config.kind, config, now)
    check_remediation_supported(config.kind, config.remediation_action)
    return spec


def _report_and_remediate(
    config: AuditConfig,
    candidates: CandidateSet,
    client: Any,
    journal: Optional[sessionmaker],
) -> RunResult:
    report_path = resolve_report_path(config.report_destination, config.kind)
    rows = write_report(candidates, config.report_destination)

    if journal is None:
        summary = remediate(candidates, config.remediation_action, client)
        return RunResult(config, candidates, report_path, rows, summary)

    with journal_mod.db_session(journal) as db:
        run = journal_mod.record_run(db, config, str(report_path), len(candidates))

        def on_outcome(obj, ok: bool, reason: str) -> None:
            journal_mod.record_outcome(db, run, obj, ok, reason)

        summary = remediate(candidates, config.remediation_action, client, on_outcome=on_outcome)
        journal_mod.finish_run(db, run, summary)
    return RunResult(config, candidates, report_path, rows, summary)


def run_audit(
    config: AuditConfig,
    client: Any,
    now: Optional[datetime] = None,
    journal: Optional[sessionmaker] = None,
) -> RunResult:
    spec = prepare(config, now)
    candidates = discover(spec, client)
    return _report_and_remediate(config, candidates, client, journal)


def _discover_with_own_client(spec: QuerySpec, client_factory: ClientFactory) -> CandidateSet:
    client = client_factory()
    try:
        return discover(spec, client)
    finally:
        close = getattr(client, "close", None)
        if close:
            close()


def run_audits(
    configs: Sequence[AuditConfig],
    client_factory: ClientFactory,
    now: Optional[datetime] = None,
    journal: Optional[sessionmaker] = None,
    max_workers: int = 4,
) -> list[RunResult]:
    """Audit several kinds in one invocation.

    Fails fast: any discovery error aborts before a report is written.
    """
    now = now or datetime.now(timezone.utc)
    specs = [prepare(c, now) for c in configs]
    if not specs:
        return []

    workers = max(1, min(max_workers, len(specs)))
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(_discover_with_own_client, s, client_factory) for s in specs]
        candidate_sets = [f.result() for f in futures]

    needs_writer = any(c.remediation_action is not RemediationAction.NONE for c in configs)
    writer = client_factory() if needs_writer else None
    results: list[RunResult] = []
    try:
        for config, candidates in zip(configs, candidate_sets):
            results.append(_report_and_remediate(config, candidates, writer, journal))
    finally:
        close = getattr(writer, "close", None)
        if close:
            close()
    return results
