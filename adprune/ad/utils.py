from __future__ import annotations

import ipaddress
from datetime import datetime, timezone
from typing import Any

# userAccountControl / groupType flags
UF_ACCOUNTDISABLE = 0x2
GROUP_TYPE_SECURITY_ENABLED = 0x80000000

_FILETIME_EPOCH_OFFSET_S = 11_644_473_600
FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)
_FILETIME_TICKS_PER_S = 10_000_000


def escape_ldap_filter_value(value: str) -> str:
    """RFC 4515 escaping for LDAP filter values."""
    out: list[str] = []
    for ch in value:
        if ch == "\\":
            out.append("\\5c")
        elif ch == "*":
            out.append("\\2a")
        elif ch == "(":
            out.append("\\28")
        elif ch == ")":
            out.append("\\29")
        elif ch == "\x00":
            out.append("\\00")
        else:
            out.append(ch)
    return "".join(out)


def first_value(v: Any) -> Any:
    """Unwrap single-element lists returned for single-valued attributes."""
    if isinstance(v, (list, tuple)):
        return v[0] if v else None
    return v


def filetime_to_datetime(v: Any) -> datetime | None:
    """Windows FILETIME (100ns since 1601-01-01) -> aware UTC datetime.

    ldap3 already converts lastLogonTimestamp to a datetime when the schema is
    loaded; raw integers and digit strings are accepted too. Zero and the
    1601 epoch mean "never".
    """
    v = first_value(v)
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        dt = v if v.tzinfo else v.replace(tzinfo=timezone.utc)
        if dt.year <= 1601:
            return None
        return dt.astimezone(timezone.utc)
    try:
        n = int(v)
    except (TypeError, ValueError):
        return None
    if n <= 0:
        return None
    seconds = (n / _FILETIME_TICKS_PER_S) - _FILETIME_EPOCH_OFFSET_S
    if seconds <= 0:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def datetime_to_filetime(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    seconds = dt.timestamp() + _FILETIME_EPOCH_OFFSET_S
    return int(seconds * _FILETIME_TICKS_PER_S)


def is_account_disabled(uac: Any) -> bool:
    uac = first_value(uac)
    try:
        return bool(int(uac) & UF_ACCOUNTDISABLE)
    except (TypeError, ValueError):
        return False


def is_security_group(group_type: Any) -> bool:
    group_type = first_value(group_type)
    try:
        return bool(int(group_type) & GROUP_TYPE_SECURITY_ENABLED)
    except (TypeError, ValueError):
        return False


def domain_to_base_dn(domain: str) -> str:
    domain = (domain or "").strip().strip(".")
    if not domain or "." not in domain:
        return ""
    parts = [p for p in domain.split(".") if p]
    return ",".join([f"DC={p}" for p in parts])


def build_dc_fqdn(dc_short: str, domain: str) -> str:
    dc_short = (dc_short or "").strip()
    domain = (domain or "").strip().strip(".")
    if not dc_short:
        return domain

    try:
        ipaddress.ip_address(dc_short)
        return dc_short
    except ValueError:
        if "." in dc_short:
            return dc_short
        return f"{dc_short}.{domain}" if domain else dc_short
