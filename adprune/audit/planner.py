from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from ..ad.utils import datetime_to_filetime, escape_ldap_filter_value
from ..errors import ConfigurationError
from .classifier import inactivity_cutoff
from .models import AuditConfig, MODES_BY_KIND, ObjectKind, SearchMode


class PostFilter(str, Enum):
    NONE = "none"
    NO_MEMBERS = "no_members"
    NO_CHILDREN = "no_children"


@dataclass(frozen=True)
class QuerySpec:
    kind: ObjectKind
    config: AuditConfig
    base: Optional[str]
    filter: str
    attributes: tuple[str, ...]
    post_filter: PostFilter
    now: datetime


_ENABLED = "(!(userAccountControl:1.2.840.113556.1.4.803:=2))"
_NEVER = "(!(lastLogonTimestamp=*))"
_MATCH_NOTHING = "(!(objectClass=*))"

_KIND_FILTERS = {
    ObjectKind.USER: "(objectCategory=person)(objectClass=user)",
    ObjectKind.COMPUTER: "(objectCategory=computer)",
    ObjectKind.GROUP: "(objectClass=group)",
    ObjectKind.OU: "(objectClass=organizationalUnit)",
}

_ATTRIBUTES = {
    ObjectKind.USER: ("distinguishedName", "name", "sAMAccountName", "lastLogonTimestamp", "userAccountControl"),
    ObjectKind.COMPUTER: ("distinguishedName", "name", "sAMAccountName", "lastLogonTimestamp", "userAccountControl"),
    ObjectKind.GROUP: ("distinguishedName", "name", "groupType", "member"),
    ObjectKind.OU: ("distinguishedName", "name"),
}

_POST_FILTERS = {
    ObjectKind.USER: PostFilter.NONE,
    ObjectKind.COMPUTER: PostFilter.NONE,
    ObjectKind.GROUP: PostFilter.NO_MEMBERS,
    ObjectKind.OU: PostFilter.NO_CHILDREN,
}


def _any(*clauses: str) -> str:
    return "(|" + "".join(clauses) + ")"


def _all(*clauses: str) -> str:
    return "(&" + "".join(clauses) + ")"


# (stale, never, service, not_service) -> logon clause; mirrors the classifier table
_LOGON_CLAUSES: dict[SearchMode, Callable[[str, str, str, str], str]] = {
    SearchMode.ALL: lambda stale, never, svc, not_svc: _any(stale, never),
    SearchMode.ONLY_INACTIVE_USERS: lambda stale, never, svc, not_svc: _all(stale, not_svc),
    SearchMode.ONLY_INACTIVE_COMPUTERS: lambda stale, never, svc, not_svc: stale,
    SearchMode.ONLY_SERVICE_ACCOUNTS: lambda stale, never, svc, not_svc: _all(stale, svc),
    SearchMode.ONLY_NEVER_LOGGED_ON: lambda stale, never, svc, not_svc: never,
    SearchMode.ALL_EXCEPT_SERVICE_ACCOUNTS: lambda stale, never, svc, not_svc: _any(_all(stale, not_svc), never),
    SearchMode.ALL_EXCEPT_NEVER_LOGGED_ON: lambda stale, never, svc, not_svc: stale,
}


def _service_clauses(pattern: str) -> tuple[str, str]:
    token = (pattern or "").strip()
    if not token:
        # empty pattern: nobody is a service account
        return _MATCH_NOTHING, "(objectClass=*)"
    svc = f"(sAMAccountName=*{escape_ldap_filter_value(token)}*)"
    return svc, f"(!{svc})"


def plan(kind: ObjectKind, config: AuditConfig, now: Optional[datetime] = None) -> QuerySpec:
    """Build the LDAP query for ``kind`` plus the post-filter LDAP cannot express."""
    kind = ObjectKind(kind)
    mode = config.search_mode
    if mode not in MODES_BY_KIND[kind]:
        allowed = ", ".join(m.value for m in MODES_BY_KIND[kind])
        raise ConfigurationError(
            f"search mode {getattr(mode, 'value', mode)!r} is not supported for {kind.value} (expected one of: {allowed})"
        )

    now = now or datetime.now(timezone.utc)
    clauses = [_KIND_FILTERS[kind]]

    if kind in (ObjectKind.USER, ObjectKind.COMPUTER):
        cutoff = inactivity_cutoff(config.inactivity_threshold_days, now)
        # lastLogonTimestamp < cutoff, LDAP only offers <=
        stale = f"(lastLogonTimestamp<={datetime_to_filetime(cutoff) - 1})"
        if kind is ObjectKind.USER:
            svc, not_svc = _service_clauses(config.service_account_pattern)
        else:
            svc, not_svc = _MATCH_NOTHING, "(objectClass=*)"
        clauses.append(_ENABLED)
        clauses.append(_LOGON_CLAUSES[mode](stale, _NEVER, svc, not_svc))

    return QuerySpec(
        kind=kind,
        config=config,
        base=config.scope_root,
        filter=_all(*clauses),
        attributes=_ATTRIBUTES[kind],
        post_filter=_POST_FILTERS[kind],
        now=now,
    )
