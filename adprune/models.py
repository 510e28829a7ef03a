from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import String, DateTime, Boolean, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AuditRun(Base):
    __tablename__ = "audit_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ts: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)

    kind: Mapped[str] = mapped_column(String(16), nullable=False)  # user|computer|group|ou
    search_mode: Mapped[str] = mapped_column(String(32), nullable=False)
    scope_root: Mapped[str] = mapped_column(String(1024), default="", nullable=False)
    threshold_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    action: Mapped[str] = mapped_column(String(16), default="none", nullable=False)  # none|disable|delete

    report_path: Mapped[str] = mapped_column(String(1024), default="", nullable=False)
    candidates: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    succeeded: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    finished_ts: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    outcomes: Mapped[list["RemediationOutcome"]] = relationship(back_populates="run", order_by="RemediationOutcome.id")


class RemediationOutcome(Base):
    __tablename__ = "remediation_outcomes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(ForeignKey("audit_runs.id"), nullable=False, index=True)
    ts: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)

    distinguished_name: Mapped[str] = mapped_column(String(1024), nullable=False)
    action: Mapped[str] = mapped_column(String(16), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    reason: Mapped[str] = mapped_column(String(512), default="", nullable=False)

    run: Mapped[AuditRun] = relationship(back_populates="outcomes")
