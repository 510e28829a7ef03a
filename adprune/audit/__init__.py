"""Classification and remediation pipeline.

    plan()       -> QuerySpec     (LDAP filter + post-filter)
    discover()   -> CandidateSet  (query, project, classify)
    write_report()                (CSV / XLSX)
    remediate()  -> ExecutionSummary
"""

from .models import (
    AuditConfig,
    CandidateSet,
    DirectoryObject,
    GroupCategory,
    MODES_BY_KIND,
    ObjectKind,
    RemediationAction,
    SearchMode,
    make_config,
)
from .classifier import classify, inactivity_cutoff, is_service_account
from .planner import PostFilter, QuerySpec, plan
from .discovery import discover
from .report import resolve_report_path, write_report
from .remediation import ExecutionSummary, FailedItem, check_remediation_supported, remediate
from .pipeline import RunResult, run_audit, run_audits

__all__ = [
    "AuditConfig",
    "CandidateSet",
    "DirectoryObject",
    "GroupCategory",
    "MODES_BY_KIND",
    "ObjectKind",
    "RemediationAction",
    "SearchMode",
    "make_config",
    "classify",
    "inactivity_cutoff",
    "is_service_account",
    "PostFilter",
    "QuerySpec",
    "plan",
    "discover",
    "resolve_report_path",
    "write_report",
    "ExecutionSummary",
    "FailedItem",
    "check_remediation_supported",
    "remediate",
    "RunResult",
    "run_audit",
    "run_audits",
]
