"""Remediation journal: one AuditRun row per run, one RemediationOutcome per attempt."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

from sqlalchemy.orm import Session, sessionmaker

from .audit.models import AuditConfig, DirectoryObject
from .audit.remediation import ExecutionSummary
from .models import AuditRun, RemediationOutcome


@contextmanager
def db_session(factory: sessionmaker) -> Iterator[Session]:
    db = factory()
    try:
        yield db
    finally:
        db.close()


def record_run(db: Session, config: AuditConfig, report_path: str, candidates: int) -> AuditRun:
    run = AuditRun(
        kind=config.kind.value,
        search_mode=config.search_mode.value,
        scope_root=config.scope_root or "",
        threshold_days=config.inactivity_threshold_days,
        action=config.remediation_action.value,
        report_path=report_path,
        candidates=candidates,
    )
    db.add(run)
    db.commit()
    db.refresh(run)
    return run


def record_outcome(db: Session, run: AuditRun, obj: DirectoryObject, success: bool, reason: str = "") -> None:
    db.add(
        RemediationOutcome(
            run_id=run.id,
            distinguished_name=obj.distinguished_name,
            action=run.action,
            success=success,
            reason=reason[:512],
        )
    )
    db.commit()


def finish_run(db: Session, run: AuditRun, summary: ExecutionSummary | None) -> None:
    if summary is not None:
        run.succeeded = summary.succeeded
        run.failed = len(summary.failed)
    run.finished_ts = datetime.now(timezone.utc).replace(tzinfo=None)
    db.commit()
