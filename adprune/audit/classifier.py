"""Candidate classification.

A single table keyed by (kind, mode) replaces per-kind branching. User and
computer rules work on three facts about an enabled account:

- ``stale``: has a last-logon timestamp strictly older than the cutoff
- ``never``: has no last-logon timestamp at all
- ``service``: sAMAccountName contains the service-account token

Disabled accounts are never candidates, so an already-disabled stale account
does not surface here.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, NamedTuple, Optional

from ..ad.utils import FILETIME_EPOCH
from .models import AuditConfig, DirectoryObject, ObjectKind, SearchMode


class LogonFacts(NamedTuple):
    stale: bool
    never: bool
    service: bool


_LOGON_RULES: dict[tuple[ObjectKind, SearchMode], Callable[[LogonFacts], bool]] = {
    (ObjectKind.USER, SearchMode.ALL): lambda f: f.stale or f.never,
    (ObjectKind.USER, SearchMode.ONLY_INACTIVE_USERS): lambda f: f.stale and not f.service,
    (ObjectKind.USER, SearchMode.ONLY_SERVICE_ACCOUNTS): lambda f: f.stale and f.service,
    (ObjectKind.USER, SearchMode.ONLY_NEVER_LOGGED_ON): lambda f: f.never,
    (ObjectKind.USER, SearchMode.ALL_EXCEPT_SERVICE_ACCOUNTS): lambda f: (f.stale and not f.service) or f.never,
    (ObjectKind.USER, SearchMode.ALL_EXCEPT_NEVER_LOGGED_ON): lambda f: f.stale,
    (ObjectKind.COMPUTER, SearchMode.ALL): lambda f: f.stale or f.never,
    (ObjectKind.COMPUTER, SearchMode.ONLY_INACTIVE_COMPUTERS): lambda f: f.stale,
    (ObjectKind.COMPUTER, SearchMode.ONLY_NEVER_LOGGED_ON): lambda f: f.never,
    (ObjectKind.COMPUTER, SearchMode.ALL_EXCEPT_NEVER_LOGGED_ON): lambda f: f.stale,
}


def inactivity_cutoff(days: int, now: Optional[datetime] = None) -> datetime:
    """``now - days``, never earlier than the FILETIME epoch."""
    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    try:
        cutoff = now - timedelta(days=max(0, int(days)))
    except OverflowError:
        return FILETIME_EPOCH
    return max(cutoff, FILETIME_EPOCH)


def is_service_account(sam_account_name: Optional[str], pattern: Optional[str]) -> bool:
    """Case-insensitive substring match; an empty pattern matches nothing."""
    token = (pattern or "").strip().lower()
    if not token:
        return False
    return token in (sam_account_name or "").lower()


def logon_facts(obj: DirectoryObject, config: AuditConfig, cutoff: datetime) -> LogonFacts:
    last = obj.last_logon
    service = obj.kind is ObjectKind.USER and is_service_account(
        obj.sam_account_name, config.service_account_pattern
    )
    if last is None:
        return LogonFacts(stale=False, never=True, service=service)
    return LogonFacts(stale=_as_utc(last) < cutoff, never=False, service=service)


def classify(
    obj: DirectoryObject,
    kind: ObjectKind,
    config: AuditConfig,
    now: Optional[datetime] = None,
) -> bool:
    """True when ``obj`` is a management candidate under ``config``."""
    if kind is ObjectKind.GROUP:
        return obj.member_count == 0
    if kind is ObjectKind.OU:
        return obj.child_count == 0

    rule = _LOGON_RULES.get((kind, config.search_mode))
    if rule is None or not obj.enabled:
        return False
    cutoff = inactivity_cutoff(config.inactivity_threshold_days, now)
    return bool(rule(logon_facts(obj, config, cutoff)))


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
