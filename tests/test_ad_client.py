from unittest.mock import MagicMock

import pytest
from ldap3 import MODIFY_REPLACE, LEVEL, SUBTREE
from ldap3.core.exceptions import LDAPException, LDAPSocketOpenError

from adprune.ad import ADConfig, DirectoryClient
from adprune.ad.client import error_from_result
from adprune.errors import (
    AccessDeniedError,
    DirectoryOperationError,
    DirectoryTransportError,
    ObjectNotFoundError,
    ProtectedFromDeletionError,
)

DN = "CN=jdoe,OU=Staff,DC=corp,DC=local"


@pytest.fixture
def conn(monkeypatch):
    connection = MagicMock(name="Connection()")
    connection.bind.return_value = True
    connection.result = {"result": 0, "description": "success"}
    connection_cls = MagicMock(return_value=connection)
    monkeypatch.setattr("adprune.ad.client.Server", MagicMock())
    monkeypatch.setattr("adprune.ad.client.Connection", connection_cls)
    connection.cls = connection_cls
    return connection


@pytest.fixture
def client(conn):
    return DirectoryClient(ADConfig(server="dc1", domain="corp.local", bind_username="auditor", bind_password="pw"))


@pytest.mark.parametrize(
    "code, error",
    [
        (32, ObjectNotFoundError),
        (49, AccessDeniedError),
        (50, AccessDeniedError),
        (53, ProtectedFromDeletionError),
        (3, DirectoryTransportError),
        (51, DirectoryTransportError),
        (52, DirectoryTransportError),
        (85, DirectoryTransportError),
        (66, DirectoryOperationError),
        (None, DirectoryOperationError),
    ],
)
def test_result_code_mapping(code, error):
    err = error_from_result(DN, {"result": code, "description": "x"}, "delete")
    assert type(err) is error
    assert err.identity == DN


def test_result_detail_includes_server_message():
    err = error_from_result(
        DN,
        {"result": 53, "description": "unwillingToPerform", "message": "000020B1: SvcErr: DSID-03152B0F\n"},
        "delete",
    )
    assert err.reason == "protected"
    assert err.detail == "delete: unwillingToPerform (000020B1: SvcErr: DSID-03152B0F)"


def test_bind_uses_upn_and_is_reused(client, conn):
    conn.delete.return_value = True
    client.delete(DN)
    client.delete(DN)

    conn.cls.assert_called_once()
    assert conn.cls.call_args.kwargs["user"] == "auditor@corp.local"
    conn.bind.assert_called_once()


def test_bind_rejected_is_access_denied(client, conn):
    conn.bind.return_value = False
    conn.result = {"result": 49, "description": "invalidCredentials"}
    with pytest.raises(AccessDeniedError):
        client.query(None, "(objectClass=group)", ["name"])
    conn.unbind.assert_called_once()


def test_unreachable_server_is_transport_error(client, conn):
    conn.open.side_effect = LDAPSocketOpenError("unable to open socket")
    with pytest.raises(DirectoryTransportError):
        client.delete(DN)


def test_query_collects_entries_from_default_base(client, conn):
    conn.extend.standard.paged_search.return_value = iter([
        {"type": "searchResEntry", "dn": "CN=G1,DC=corp,DC=local", "attributes": {"name": "G1", "member": []}},
        {"type": "searchResRef", "uri": ["ldap://child.corp.local/DC=child,DC=corp,DC=local"]},
        {"type": "searchResEntry", "dn": "CN=G2,DC=corp,DC=local", "attributes": {"name": "G2"}},
    ])

    records = client.query(None, "(objectClass=group)", ["name", "member"])

    assert [r["distinguishedName"] for r in records] == ["CN=G1,DC=corp,DC=local", "CN=G2,DC=corp,DC=local"]
    kwargs = conn.extend.standard.paged_search.call_args.kwargs
    assert kwargs["search_base"] == "DC=corp,DC=local"
    assert kwargs["search_scope"] == SUBTREE
    assert kwargs["paged_size"] == 1000


def test_query_level_scope_and_explicit_base(client, conn):
    conn.extend.standard.paged_search.return_value = iter([])
    assert client.query("OU=Branch,DC=corp,DC=local", "(objectClass=*)", ["distinguishedName"], scope="level") == []
    kwargs = conn.extend.standard.paged_search.call_args.kwargs
    assert kwargs["search_base"] == "OU=Branch,DC=corp,DC=local"
    assert kwargs["search_scope"] == LEVEL


def test_query_failure_result_is_raised(client, conn):
    conn.extend.standard.paged_search.return_value = iter([])
    conn.result = {"result": 50, "description": "insufficientAccessRights"}
    with pytest.raises(AccessDeniedError):
        client.query(None, "(objectClass=user)", ["name"])


def test_query_exception_is_transport_error(client, conn):
    conn.extend.standard.paged_search.side_effect = LDAPException("connection reset")
    with pytest.raises(DirectoryTransportError, match="connection reset"):
        client.query(None, "(objectClass=user)", ["name"])


def test_disable_sets_the_disable_bit(client, conn):
    entry = MagicMock()
    entry.userAccountControl.value = 512
    conn.search.return_value = True
    conn.entries = [entry]
    conn.modify.return_value = True

    assert client.set_enabled(DN, False) == "disabled"
    conn.modify.assert_called_once_with(DN, {"userAccountControl": [(MODIFY_REPLACE, ["514"])]})


def test_enable_clears_the_disable_bit(client, conn):
    entry = MagicMock()
    entry.userAccountControl.value = 4098
    conn.search.return_value = True
    conn.entries = [entry]
    conn.modify.return_value = True

    assert client.set_enabled(DN, True) == "enabled"
    conn.modify.assert_called_once_with(DN, {"userAccountControl": [(MODIFY_REPLACE, ["4096"])]})


def test_disable_missing_object(client, conn):
    conn.search.return_value = False
    conn.entries = []
    conn.result = {"result": 32, "description": "noSuchObject"}
    with pytest.raises(ObjectNotFoundError):
        client.set_enabled(DN, False)
    conn.modify.assert_not_called()


def test_delete_success(client, conn):
    conn.delete.return_value = True
    assert client.delete(DN) == "deleted"
    conn.delete.assert_called_once_with(DN)


def test_delete_protected(client, conn):
    conn.delete.return_value = False
    conn.result = {"result": 53, "description": "unwillingToPerform"}
    with pytest.raises(ProtectedFromDeletionError):
        client.delete(DN)


def test_delete_empty_dn_is_rejected_without_a_call(client, conn):
    with pytest.raises(DirectoryOperationError):
        client.delete("  ")
    conn.delete.assert_not_called()


def test_close_unbinds_once(client, conn):
    conn.delete.return_value = True
    with client:
        client.delete(DN)
    client.close()
    conn.unbind.assert_called_once()


def test_size_limited_query_tolerates_size_limit_exceeded(client, conn):
    conn.extend.standard.paged_search.return_value = iter([
        {"type": "searchResEntry", "dn": "CN=a,OU=Staff,DC=corp,DC=local", "attributes": {}},
    ])
    conn.result = {"result": 4, "description": "sizeLimitExceeded"}

    records = client.query("OU=Staff,DC=corp,DC=local", "(objectClass=*)", ["distinguishedName"], scope="level", size_limit=2)

    assert len(records) == 1
    assert conn.extend.standard.paged_search.call_args.kwargs["size_limit"] == 2


def test_unlimited_query_treats_size_limit_exceeded_as_failure(client, conn):
    conn.extend.standard.paged_search.return_value = iter([])
    conn.result = {"result": 4, "description": "sizeLimitExceeded"}
    with pytest.raises(DirectoryOperationError):
        client.query(None, "(objectClass=user)", ["name"])
