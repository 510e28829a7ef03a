from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

from ..errors import ConfigurationError, DirectoryError
from .models import CandidateSet, DirectoryObject, ObjectKind, RemediationAction

log = logging.getLogger(__name__)

OutcomeCallback = Callable[[DirectoryObject, bool, str], None]

_DISABLE_KINDS = (ObjectKind.USER, ObjectKind.COMPUTER)


class DirectoryWriter(Protocol):
    def set_enabled(self, identity: str, enabled: bool) -> str: ...

    def delete(self, identity: str) -> str: ...


@dataclass(frozen=True)
class FailedItem:
    identity: str
    reason: str  # DirectoryError.reason tag, e.g. "protected"
    detail: str = ""


@dataclass
class ExecutionSummary:
    action: RemediationAction
    attempted: int = 0
    succeeded: int = 0
    failed: list[FailedItem] = field(default_factory=list)
    skipped: bool = False


def check_remediation_supported(kind: ObjectKind, action: RemediationAction) -> None:
    action = RemediationAction(action)
    if action is RemediationAction.DISABLE and kind not in _DISABLE_KINDS:
        raise ConfigurationError(f"disable is not available for {ObjectKind(kind).value}; use delete")


def remediate(
    candidates: CandidateSet,
    action: RemediationAction,
    client: DirectoryWriter,
    on_outcome: Optional[OutcomeCallback] = None,
) -> ExecutionSummary:
    """Apply ``action`` to every candidate in order, one directory call each.

    A failing item is logged and recorded; the remaining items are still
    attempted. There is no rollback.
    """
    action = RemediationAction(action)
    summary = ExecutionSummary(action=action)
    if action is RemediationAction.NONE:
        summary.skipped = True
        return summary

    check_remediation_supported(candidates.kind, action)

    log.info("Remediation started: %s %d %s object(s)", action.value, len(candidates), candidates.kind.value)
    for obj in candidates:
        dn = obj.distinguished_name
        summary.attempted += 1
        try:
            if action is RemediationAction.DISABLE:
                client.set_enabled(dn, False)
            else:
                client.delete(dn)
        except DirectoryError as e:
            detail = e.detail or str(e)
            summary.failed.append(FailedItem(identity=dn, reason=e.reason, detail=detail))
            log.warning("FAILED %s %s: [%s] %s", action.value, dn, e.reason, detail)
            if on_outcome:
                on_outcome(obj, False, f"[{e.reason}] {detail}")
            continue

        summary.succeeded += 1
        log.info("OK %s %s", action.value, dn)
        if on_outcome:
            on_outcome(obj, True, "")

    log.info(
        "Remediation finished: %s succeeded=%d failed=%d",
        action.value, summary.succeeded, len(summary.failed),
    )
    return summary
