"""
adprune command line.

Usage:
    adprune users --days 180 --mode OnlyInactiveUsers --report ./reports --disable
    adprune computers --scope "OU=Workstations,DC=corp,DC=local" --delete
    adprune groups --report ./reports/groups.xlsx
    adprune ous --delete
    adprune all --report ./reports

Connection settings come from ADPRUNE_* environment variables (or .env).
Exit status: 0 when the run completed (even with per-item remediation
failures), 1 on a fatal error, 2 on invalid arguments.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from .ad import DirectoryClient
from .audit import (
    MODES_BY_KIND,
    AuditConfig,
    ObjectKind,
    RemediationAction,
    RunResult,
    make_config,
    run_audit,
    run_audits,
)
from .audit.report import REPORT_SUFFIXES
from .db import make_session_factory
from .env_settings import EnvSettings, get_env
from .errors import AdPruneError, ConfigurationError
from .log_config import setup_logging

log = logging.getLogger(__name__)

_SUBCOMMAND_KINDS = {
    "users": ObjectKind.USER,
    "computers": ObjectKind.COMPUTER,
    "groups": ObjectKind.GROUP,
    "ous": ObjectKind.OU,
}


def _add_common(p: argparse.ArgumentParser, report_root: str) -> None:
    p.add_argument("-s", "--scope", help="Subtree root DN (default: whole directory)")
    p.add_argument(
        "-o", "--report",
        default=report_root,
        help=f"Report file (.csv/.xlsx) or directory (default: {report_root})",
    )
    p.add_argument("--journal", help="SQLite remediation journal path")
    p.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR")
    p.add_argument("--log-dir", help="Directory for rotated log files")


def _add_logon_options(p: argparse.ArgumentParser, kind: ObjectKind, service_pattern: bool) -> None:
    p.add_argument(
        "-d", "--days",
        type=int,
        default=90,
        help="Inactivity threshold in days (default: 90)",
    )
    if service_pattern:
        p.add_argument(
            "--service-pattern",
            default="svc",
            help="Substring identifying service accounts (default: svc)",
        )
    p.add_argument(
        "-m", "--mode",
        default="All",
        choices=[m.value for m in MODES_BY_KIND[kind]],
        help="Search mode (default: All)",
    )


def _add_actions(p: argparse.ArgumentParser, allow_disable: bool) -> None:
    actions = p.add_mutually_exclusive_group()
    if allow_disable:
        actions.add_argument("--disable", action="store_true", help="Disable every candidate")
    actions.add_argument("--delete", action="store_true", help="Delete every candidate")


def build_parser(report_root: str = "reports") -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="adprune",
        description="Find inactive users/computers and empty groups/OUs in Active Directory, "
                    "report them and optionally disable or delete them.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    users = sub.add_parser("users", help="Inactive user accounts")
    _add_common(users, report_root)
    _add_logon_options(users, ObjectKind.USER, service_pattern=True)
    _add_actions(users, allow_disable=True)

    computers = sub.add_parser("computers", help="Inactive computer accounts")
    _add_common(computers, report_root)
    _add_logon_options(computers, ObjectKind.COMPUTER, service_pattern=False)
    _add_actions(computers, allow_disable=True)

    groups = sub.add_parser("groups", help="Groups without members")
    _add_common(groups, report_root)
    _add_actions(groups, allow_disable=False)

    ous = sub.add_parser("ous", help="Organizational units without child objects")
    _add_common(ous, report_root)
    _add_actions(ous, allow_disable=False)

    sweep = sub.add_parser("all", help="Report-only sweep of all four object kinds")
    _add_common(sweep, report_root)
    sweep.add_argument("-d", "--days", type=int, default=90, help="Inactivity threshold in days (default: 90)")
    sweep.add_argument("--service-pattern", default="svc", help="Service account substring (default: svc)")

    return parser


def _action_from_args(args: argparse.Namespace) -> RemediationAction:
    if getattr(args, "delete", False):
        return RemediationAction.DELETE
    if getattr(args, "disable", False):
        return RemediationAction.DISABLE
    return RemediationAction.NONE


def configs_from_args(args: argparse.Namespace) -> list[AuditConfig]:
    if args.command == "all":
        return [
            make_config(
                kind=kind,
                scope_root=args.scope,
                inactivity_threshold_days=args.days,
                service_account_pattern=args.service_pattern,
                report_destination=args.report,
            )
            for kind in (ObjectKind.USER, ObjectKind.COMPUTER, ObjectKind.GROUP, ObjectKind.OU)
        ]

    values = {
        "kind": _SUBCOMMAND_KINDS[args.command],
        "scope_root": args.scope,
        "report_destination": args.report,
        "remediation_action": _action_from_args(args),
    }
    if hasattr(args, "days"):
        values["inactivity_threshold_days"] = args.days
        values["search_mode"] = args.mode
    if hasattr(args, "service_pattern"):
        values["service_account_pattern"] = args.service_pattern
    return [make_config(**values)]


def _load_env() -> EnvSettings:
    try:
        return get_env()
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"invalid environment settings: {problems}") from e


def _check_connection_settings(env: EnvSettings) -> None:
    if not env.ad_server.strip() or not env.ad_domain.strip():
        raise ConfigurationError("ADPRUNE_SERVER and ADPRUNE_DOMAIN must be set")


def print_result(result: RunResult) -> None:
    kind = result.config.kind.value
    print(f"{kind}: {len(result.candidates)} candidate(s), report {result.report_path} ({result.rows} rows)")
    summary = result.summary
    if summary.skipped:
        return
    print(f"{kind}: {summary.action.value} succeeded={summary.succeeded} failed={len(summary.failed)}")
    for item in summary.failed:
        print(f"  FAILED {item.identity}: [{item.reason}] {item.detail}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        env = _load_env()
    except ConfigurationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    parser = build_parser(env.report_root)
    args = parser.parse_args(argv)

    if args.command == "all" and Path(args.report).suffix.lower() in REPORT_SUFFIXES:
        parser.error("--report must be a directory for 'all'")

    setup_logging(
        level=args.log_level or env.log_level,
        log_dir=args.log_dir or env.log_dir,
        retention_days=env.log_retention_days,
    )

    try:
        configs = configs_from_args(args)
        _check_connection_settings(env)
        journal_path = args.journal or env.journal_path
        journal = make_session_factory(journal_path) if journal_path else None

        if len(configs) == 1:
            with DirectoryClient(env.ad_config()) as client:
                results = [run_audit(configs[0], client, journal=journal)]
        else:
            results = run_audits(configs, lambda: DirectoryClient(env.ad_config()), journal=journal)
    except AdPruneError as e:
        log.error("Run aborted: %s", e)
        print(f"error: {e}", file=sys.stderr)
        return 1

    for result in results:
        print_result(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
