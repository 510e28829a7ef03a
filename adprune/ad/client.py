from __future__ import annotations

import logging
import ssl
from typing import Any, Iterable

from ldap3 import (
    Server,
    Connection,
    ALL,
    SUBTREE,
    LEVEL,
    BASE,
    Tls,
    MODIFY_REPLACE,
)
from ldap3.core.exceptions import LDAPException

from ..errors import (
    DirectoryError,
    ObjectNotFoundError,
    AccessDeniedError,
    ProtectedFromDeletionError,
    DirectoryTransportError,
    DirectoryOperationError,
)
from .models import ADConfig
from .utils import UF_ACCOUNTDISABLE, first_value

log = logging.getLogger(__name__)

_SCOPES = {"subtree": SUBTREE, "level": LEVEL, "base": BASE}

# LDAP result codes (RFC 4511)
RC_SUCCESS = 0
RC_TIME_LIMIT_EXCEEDED = 3
RC_SIZE_LIMIT_EXCEEDED = 4
RC_NO_SUCH_OBJECT = 32
RC_INVALID_CREDENTIALS = 49
RC_INSUFFICIENT_ACCESS_RIGHTS = 50
RC_BUSY = 51
RC_UNAVAILABLE = 52
RC_UNWILLING_TO_PERFORM = 53
RC_TIMEOUT = 85

_TRANSPORT_CODES = {RC_TIME_LIMIT_EXCEEDED, RC_BUSY, RC_UNAVAILABLE, RC_TIMEOUT}


def error_from_result(identity: str, result: dict | None, action: str) -> DirectoryError:
    """Map an ldap3 result dict to the matching DirectoryError subclass."""
    res = dict(result or {})
    code = res.get("result")
    desc = res.get("description") or "unknown error"
    message = (res.get("message") or "").strip()
    detail = f"{action}: {desc}" + (f" ({message})" if message else "")

    if code == RC_NO_SUCH_OBJECT:
        return ObjectNotFoundError(identity, detail)
    if code in (RC_INSUFFICIENT_ACCESS_RIGHTS, RC_INVALID_CREDENTIALS):
        return AccessDeniedError(identity, detail)
    if code == RC_UNWILLING_TO_PERFORM:
        # systemFlags / isCriticalSystemObject deny deletion this way
        return ProtectedFromDeletionError(identity, detail)
    if code in _TRANSPORT_CODES:
        return DirectoryTransportError(identity, detail)
    return DirectoryOperationError(identity, detail)


class DirectoryClient:
    """ldap3-backed directory client: filtered queries, enable/disable, delete.

    One bound connection is opened lazily and reused until ``close()``.
    """

    def __init__(self, cfg: ADConfig) -> None:
        self.cfg = cfg

        tls_kwargs: dict[str, Any] = {
            "validate": ssl.CERT_REQUIRED if cfg.tls_validate else ssl.CERT_NONE,
        }
        if cfg.tls_validate and cfg.ca_file:
            tls_kwargs["ca_certs_file"] = cfg.ca_file

        try:
            self.server = Server(
                host=cfg.host,
                port=cfg.port,
                use_ssl=cfg.use_ssl,
                get_info=ALL,
                tls=Tls(**tls_kwargs),
                connect_timeout=cfg.timeout_s,
            )
        except LDAPException as e:
            raise DirectoryTransportError(cfg.host or "<no server>", str(e)) from e
        self._conn: Connection | None = None

    def __enter__(self) -> "DirectoryClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _connection(self) -> Connection:
        if self._conn is not None and self._conn.bound:
            return self._conn

        conn = Connection(
            self.server,
            user=self.cfg.bind_principal,
            password=self.cfg.bind_password,
            auto_bind=False,
            receive_timeout=self.cfg.timeout_s,
        )
        try:
            conn.open()
            if self.cfg.starttls:
                conn.start_tls()
            if not conn.bind():
                res = dict(conn.result or {})
                conn.unbind()
                raise error_from_result(self.cfg.host, res, "bind")
        except LDAPException as e:
            raise DirectoryTransportError(self.cfg.host, str(e)) from e

        log.debug("Bound to %s:%s as %s", self.cfg.host, self.cfg.port, self.cfg.bind_principal)
        self._conn = conn
        return conn

    def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            conn.unbind()
        except LDAPException as e:
            log.debug("Unbind failed: %s", e)

    def query(
        self,
        base: str | None,
        search_filter: str,
        attributes: Iterable[str],
        scope: str = "subtree",
        size_limit: int = 0,
    ) -> list[dict]:
        """Run a paged search and return one attribute dict per entry.

        ``base=None`` searches from the configured base DN. Every record
        carries ``distinguishedName``. A positive ``size_limit`` stops the
        search after that many entries.
        """
        search_base = (base or "").strip() or self.cfg.search_base
        if not search_base:
            raise DirectoryOperationError("<root>", "base DN is empty (check domain setting)")

        conn = self._connection()
        records: list[dict] = []
        try:
            for entry in conn.extend.standard.paged_search(
                search_base=search_base,
                search_filter=search_filter,
                search_scope=_SCOPES[scope],
                attributes=list(attributes),
                size_limit=size_limit,
                paged_size=self.cfg.page_size,
                generator=True,
            ):
                if entry.get("type") != "searchResEntry":
                    continue
                attrs = dict(entry.get("attributes") or {})
                dn = first_value(attrs.get("distinguishedName")) or entry.get("dn") or ""
                attrs["distinguishedName"] = str(dn)
                records.append(attrs)
        except LDAPException as e:
            code = getattr(e, "result", None)
            if isinstance(code, int):
                raise error_from_result(
                    search_base, {"result": code, "description": getattr(e, "description", str(e))}, "search"
                ) from e
            raise DirectoryTransportError(search_base, str(e)) from e

        res = conn.result or {}
        ok_codes = (None, RC_SUCCESS, RC_SIZE_LIMIT_EXCEEDED) if size_limit else (None, RC_SUCCESS)
        if res.get("result") not in ok_codes:
            raise error_from_result(search_base, res, "search")

        log.debug("Query base=%s scope=%s filter=%s -> %d entries", search_base, scope, search_filter, len(records))
        return records

    def set_enabled(self, identity: str, enabled: bool) -> str:
        """Flip the ACCOUNTDISABLE bit of userAccountControl."""
        dn = (identity or "").strip()
        if not dn:
            raise DirectoryOperationError("<empty>", "empty distinguished name")

        conn = self._connection()
        try:
            ok = conn.search(
                search_base=dn,
                search_filter="(objectClass=*)",
                search_scope=BASE,
                attributes=["userAccountControl"],
                size_limit=1,
            )
            if not ok or not conn.entries:
                res = dict(conn.result or {})
                if res.get("result") in (None, RC_SUCCESS):
                    res = {"result": RC_NO_SUCH_OBJECT, "description": "noSuchObject"}
                raise error_from_result(dn, res, "read userAccountControl")

            uac_raw = getattr(conn.entries[0], "userAccountControl", None)
            uac = int(uac_raw.value if uac_raw is not None and uac_raw.value is not None else 512)
            new_uac = uac & ~UF_ACCOUNTDISABLE if enabled else uac | UF_ACCOUNTDISABLE

            ok = conn.modify(dn, {"userAccountControl": [(MODIFY_REPLACE, [str(new_uac)])]})
            if not ok:
                raise error_from_result(dn, conn.result, "modify userAccountControl")
        except LDAPException as e:
            raise DirectoryTransportError(dn, str(e)) from e

        return "enabled" if enabled else "disabled"

    def delete(self, identity: str) -> str:
        dn = (identity or "").strip()
        if not dn:
            raise DirectoryOperationError("<empty>", "empty distinguished name")

        conn = self._connection()
        try:
            ok = bool(conn.delete(dn))
            if not ok:
                raise error_from_result(dn, conn.result, "delete")
        except LDAPException as e:
            raise DirectoryTransportError(dn, str(e)) from e
        return "deleted"
