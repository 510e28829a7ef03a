from __future__ import annotations

import csv
import logging
from pathlib import Path

from openpyxl import Workbook
from openpyxl.utils.exceptions import IllegalCharacterError

from ..errors import ReportWriteError
from .models import CandidateSet, DirectoryObject, ObjectKind

log = logging.getLogger(__name__)

DEFAULT_FILENAMES = {
    ObjectKind.OU: "EmptyOUs.csv",
    ObjectKind.USER: "InactiveUsers.csv",
    ObjectKind.GROUP: "EmptyGroups.csv",
    ObjectKind.COMPUTER: "InactiveComputers.csv",
}

COLUMNS = {
    ObjectKind.OU: ["Name", "DistinguishedName"],
    ObjectKind.GROUP: ["Name", "GroupCategory", "DistinguishedName"],
    ObjectKind.USER: ["Username", "Name", "LastLogonDate", "DistinguishedName"],
    ObjectKind.COMPUTER: ["Name", "LastLogonDate", "DistinguishedName"],
}

_SHEET_TITLES = {
    ObjectKind.OU: "Empty OUs",
    ObjectKind.GROUP: "Empty groups",
    ObjectKind.USER: "Inactive users",
    ObjectKind.COMPUTER: "Inactive computers",
}

REPORT_SUFFIXES = (".csv", ".xlsx")


def resolve_report_path(destination: str | Path, kind: ObjectKind) -> Path:
    """A path without a report extension is treated as a directory."""
    p = Path(destination).expanduser()
    if p.suffix.lower() in REPORT_SUFFIXES:
        return p
    return p / DEFAULT_FILENAMES[kind]


def _fmt_logon(obj: DirectoryObject) -> str:
    if obj.last_logon is None:
        return ""
    return obj.last_logon.strftime("%Y-%m-%d %H:%M:%S")


def report_row(obj: DirectoryObject) -> list[str]:
    if obj.kind is ObjectKind.USER:
        return [obj.sam_account_name, obj.name, _fmt_logon(obj), obj.distinguished_name]
    if obj.kind is ObjectKind.COMPUTER:
        return [obj.name, _fmt_logon(obj), obj.distinguished_name]
    if obj.kind is ObjectKind.GROUP:
        category = obj.category.value if obj.category else ""
        return [obj.name, category, obj.distinguished_name]
    return [obj.name, obj.distinguished_name]


def _write_csv(path: Path, header: list[str], rows: list[list[str]]) -> None:
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        writer.writerows(rows)


def _write_xlsx(path: Path, kind: ObjectKind, header: list[str], rows: list[list[str]]) -> None:
    wb = Workbook()
    ws = wb.active
    ws.title = _SHEET_TITLES[kind]

    ws.append(header)
    for row in rows:
        ws.append(row)

    widths = [max([len(header[i])] + [len(r[i]) for r in rows]) + 2 for i in range(len(header))]
    for i, w in enumerate(widths, start=1):
        ws.column_dimensions[chr(ord("A") + i - 1)].width = min(w, 80)

    wb.save(path)


def write_report(candidates: CandidateSet, destination: str | Path) -> int:
    """Write one row per candidate (header always present); returns the data row count."""
    path = resolve_report_path(destination, candidates.kind)
    header = COLUMNS[candidates.kind]
    rows = [report_row(o) for o in candidates]

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.suffix.lower() == ".xlsx":
            _write_xlsx(path, candidates.kind, header, rows)
        else:
            _write_csv(path, header, rows)
    except (OSError, IllegalCharacterError) as e:
        raise ReportWriteError(f"cannot write report {path}: {e}") from e

    log.info("Report written: %s (%d rows)", path, len(rows))
    return len(rows)
