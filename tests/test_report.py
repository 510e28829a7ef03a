import csv
from datetime import datetime, timezone
from pathlib import Path

import pytest
from openpyxl import load_workbook

from adprune.audit import (
    CandidateSet,
    DirectoryObject,
    GroupCategory,
    ObjectKind,
    resolve_report_path,
    write_report,
)
from adprune.errors import ReportWriteError


def users(n):
    return CandidateSet(
        kind=ObjectKind.USER,
        items=tuple(
            DirectoryObject(
                kind=ObjectKind.USER,
                distinguished_name=f"CN=User {i},OU=Staff,DC=corp,DC=local",
                name=f"User {i}",
                last_logon=datetime(2025, 1, i + 1, 8, 30, tzinfo=timezone.utc) if i % 2 else None,
                sam_account_name=f"user{i}",
            )
            for i in range(n)
        ),
    )


def read_csv(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


@pytest.mark.parametrize(
    "kind, filename",
    [
        (ObjectKind.OU, "EmptyOUs.csv"),
        (ObjectKind.USER, "InactiveUsers.csv"),
        (ObjectKind.GROUP, "EmptyGroups.csv"),
        (ObjectKind.COMPUTER, "InactiveComputers.csv"),
    ],
)
def test_directory_destination_gets_default_filename(tmp_path, kind, filename):
    assert resolve_report_path(tmp_path, kind) == tmp_path / filename
    assert resolve_report_path(str(tmp_path / "audit"), kind) == tmp_path / "audit" / filename


def test_file_destination_is_kept(tmp_path):
    assert resolve_report_path(tmp_path / "stale.CSV", ObjectKind.USER) == tmp_path / "stale.CSV"
    assert resolve_report_path(tmp_path / "stale.xlsx", ObjectKind.OU) == tmp_path / "stale.xlsx"
    assert resolve_report_path(tmp_path / "stale.txt", ObjectKind.OU) == tmp_path / "stale.txt" / "EmptyOUs.csv"


def test_round_trip_rows_and_identities(tmp_path):
    candidates = users(5)
    rows = write_report(candidates, tmp_path)

    data = read_csv(tmp_path / "InactiveUsers.csv")
    assert rows == 5
    assert len(data) == 6
    assert data[0] == ["Username", "Name", "LastLogonDate", "DistinguishedName"]
    assert {r[3] for r in data[1:]} == candidates.identities()
    assert data[1] == ["user0", "User 0", "", "CN=User 0,OU=Staff,DC=corp,DC=local"]
    assert data[2][2] == "2025-01-02 08:30:00"


def test_empty_candidate_set_writes_header_only(tmp_path):
    rows = write_report(CandidateSet(kind=ObjectKind.OU), tmp_path / "nested" / "dir")
    assert rows == 0
    assert read_csv(tmp_path / "nested" / "dir" / "EmptyOUs.csv") == [["Name", "DistinguishedName"]]


def test_group_and_computer_columns(tmp_path):
    groups = CandidateSet(
        kind=ObjectKind.GROUP,
        items=(
            DirectoryObject(
                kind=ObjectKind.GROUP,
                distinguished_name="CN=Old Team,OU=Groups,DC=corp,DC=local",
                name="Old Team",
                member_count=0,
                category=GroupCategory.DISTRIBUTION,
            ),
        ),
    )
    computers = CandidateSet(
        kind=ObjectKind.COMPUTER,
        items=(
            DirectoryObject(
                kind=ObjectKind.COMPUTER,
                distinguished_name="CN=PC01,OU=Workstations,DC=corp,DC=local",
                name="PC01",
                last_logon=datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc),
                sam_account_name="PC01$",
            ),
        ),
    )
    write_report(groups, tmp_path)
    write_report(computers, tmp_path)

    assert read_csv(tmp_path / "EmptyGroups.csv") == [
        ["Name", "GroupCategory", "DistinguishedName"],
        ["Old Team", "Distribution", "CN=Old Team,OU=Groups,DC=corp,DC=local"],
    ]
    assert read_csv(tmp_path / "InactiveComputers.csv") == [
        ["Name", "LastLogonDate", "DistinguishedName"],
        ["PC01", "2024-05-06 07:08:09", "CN=PC01,OU=Workstations,DC=corp,DC=local"],
    ]


def test_dn_with_commas_survives_csv_quoting(tmp_path):
    write_report(users(1), tmp_path / "u.csv")
    data = read_csv(tmp_path / "u.csv")
    assert data[1][3] == "CN=User 0,OU=Staff,DC=corp,DC=local"


def test_xlsx_report(tmp_path):
    path = tmp_path / "users.xlsx"
    rows = write_report(users(3), path)

    wb = load_workbook(path)
    ws = wb.active
    values = [[c if c is not None else "" for c in row] for row in ws.iter_rows(values_only=True)]
    assert rows == 3
    assert ws.title == "Inactive users"
    assert values[0] == ["Username", "Name", "LastLogonDate", "DistinguishedName"]
    assert [v[3] for v in values[1:]] == [o.distinguished_name for o in users(3)]


def test_unwritable_destination_is_fatal(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    with pytest.raises(ReportWriteError):
        write_report(users(1), blocker / "reports")
    assert not Path(blocker / "reports").exists()


def test_control_characters_in_xlsx_are_a_report_error(tmp_path):
    bad = CandidateSet(
        kind=ObjectKind.OU,
        items=(DirectoryObject(kind=ObjectKind.OU, distinguished_name="OU=Bad\x01,DC=corp,DC=local", name="Bad\x01"),),
    )
    with pytest.raises(ReportWriteError):
        write_report(bad, tmp_path / "ous.xlsx")
    assert not (tmp_path / "ous.xlsx").exists()
