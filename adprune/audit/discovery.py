from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterable, Optional, Protocol

from ..ad.utils import filetime_to_datetime, first_value, is_account_disabled, is_security_group
from ..errors import DirectoryError, DiscoveryError
from .classifier import classify
from .models import CandidateSet, DirectoryObject, GroupCategory, ObjectKind
from .planner import PostFilter, QuerySpec

log = logging.getLogger(__name__)


class DirectoryReader(Protocol):
    def query(
        self,
        base: Optional[str],
        search_filter: str,
        attributes: Iterable[str],
        scope: str = "subtree",
        size_limit: int = 0,
    ) -> list[dict]: ...


def _str(v: Any) -> str:
    v = first_value(v)
    return "" if v is None else str(v).strip()


def _values(v: Any) -> list:
    if v is None or v == "":
        return []
    if isinstance(v, (list, tuple)):
        return [x for x in v if x not in (None, "")]
    return [v]


def project(kind: ObjectKind, record: dict) -> Optional[DirectoryObject]:
    """Raw directory record -> DirectoryObject with the fields relevant to ``kind``."""
    dn = _str(record.get("distinguishedName"))
    if not dn:
        return None
    name = _str(record.get("name")) or dn

    if kind in (ObjectKind.USER, ObjectKind.COMPUTER):
        return DirectoryObject(
            kind=kind,
            distinguished_name=dn,
            name=name,
            last_logon=filetime_to_datetime(record.get("lastLogonTimestamp")),
            enabled=not is_account_disabled(record.get("userAccountControl")),
            sam_account_name=_str(record.get("sAMAccountName")),
        )
    if kind is ObjectKind.GROUP:
        category = GroupCategory.SECURITY if is_security_group(record.get("groupType")) else GroupCategory.DISTRIBUTION
        return DirectoryObject(
            kind=kind,
            distinguished_name=dn,
            name=name,
            member_count=len(_values(record.get("member"))),
            category=category,
        )
    return DirectoryObject(kind=kind, distinguished_name=dn, name=name)


def _count_children(client: DirectoryReader, dn: str, limit: int = 1) -> int:
    """Direct children of ``dn``, counted up to ``limit``."""
    # one extra entry in case the server echoes the base on one-level searches
    children = client.query(dn, "(objectClass=*)", ["distinguishedName"], scope="level", size_limit=limit + 1)
    count = sum(1 for c in children if _str(c.get("distinguishedName")).lower() != dn.lower())
    return min(count, limit)


def discover(spec: QuerySpec, client: DirectoryReader) -> CandidateSet:
    """Execute ``spec`` and return the classified candidates in directory order.

    Any directory failure aborts discovery; no partial result is returned.
    """
    scope = spec.base or "<whole directory>"
    log.info("Discovery started: kind=%s mode=%s scope=%s", spec.kind.value, spec.config.search_mode.value, scope)

    try:
        records = client.query(spec.base, spec.filter, list(spec.attributes))
        objects: list[DirectoryObject] = []
        for record in records:
            obj = project(spec.kind, record)
            if obj is None:
                log.warning("Skipping %s record without distinguishedName", spec.kind.value)
                continue
            if spec.post_filter is PostFilter.NO_CHILDREN:
                obj = replace(obj, child_count=_count_children(client, obj.distinguished_name))
            objects.append(obj)
    except DirectoryError as e:
        raise DiscoveryError(f"{spec.kind.value} discovery failed: {e}") from e

    items = tuple(o for o in objects if classify(o, spec.kind, spec.config, now=spec.now))
    log.info(
        "Discovery finished: kind=%s scanned=%d candidates=%d",
        spec.kind.value, len(objects), len(items),
    )
    return CandidateSet(kind=spec.kind, items=items, discovered_at=spec.now)
