"""Command-line interface for cleanup-audit."""

import argparse
import logging
import sys

from .config import load_audit_config
from .errors import AuditError
from .reports import REPORT_KINDS, AuditReporter
from .session_lifecycle import AuditSession

logger = logging.getLogger("cleanup_audit")


def _configure_logging(level: str) -> None:
    # Ensure logs are visible even if the host application configured nothing
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cleanup-audit",
        description="Audit trail and metrics for cleanup operations",
        epilog="""
Examples:
  cleanup-audit init-session cleanup
  cleanup-audit log-operation cleanup_20250722_123456_1a2b3c4d archive old_file.sh success
  cleanup-audit finalize-session cleanup_20250722_123456_1a2b3c4d completed
  cleanup-audit generate-report daily 20250722
  cleanup-audit generate-report session cleanup_20250722_123456_1a2b3c4d
  cleanup-audit list-files

The older `init-session <session_id> <operation_type> [user]` form is now
`init-session <operation_type> --session-id <session_id> --user <user>`.
""",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--audit-dir",
        metavar="PATH",
        help="Audit directory (default: $CLEANUP_AUDIT_DIR or ./.reports/audit)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Diagnostic log level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    init_parser = subparsers.add_parser(
        "init-session",
        help="Open an audit session",
        epilog="""
The session id is generated unless --session-id is given, and the user is a
flag. The older form `init-session <session_id> <operation_type> [user]`
becomes:
  cleanup-audit init-session <operation_type> --session-id <session_id> --user <user>
""",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    init_parser.add_argument("operation_type", help="Kind of work, e.g. cleanup")
    init_parser.add_argument("-u", "--user", help="Acting user (default: login name)")
    init_parser.add_argument(
        "-s", "--session-id", metavar="ID", help="Use this session id"
    )

    log_parser = subparsers.add_parser("log-operation", help="Log one operation")
    log_parser.add_argument("session_id")
    log_parser.add_argument("operation", help="archive, delete, scan, sync, ...")
    log_parser.add_argument("file", help="File the operation acted on")
    log_parser.add_argument("status", help="success, failed, error, skipped, ...")
    log_parser.add_argument("details", nargs="?", default="")

    fin_parser = subparsers.add_parser("finalize-session", help="Finalize a session")
    fin_parser.add_argument("session_id")
    fin_parser.add_argument(
        "status",
        nargs="?",
        default="completed",
        choices=["completed", "aborted", "failed"],
    )

    report_parser = subparsers.add_parser("generate-report", help="Write a report")
    report_parser.add_argument("type", choices=REPORT_KINDS)
    report_parser.add_argument(
        "target", nargs="?", help="YYYYMMDD for daily, session id for session"
    )

    subparsers.add_parser("list-files", help="List audit files")

    return parser


def main(argv=None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    _configure_logging(args.log_level)
    config = load_audit_config(args.audit_dir)

    try:
        with AuditSession.from_config(config) as audit:
            if args.command == "init-session":
                print(
                    audit.open_session(
                        args.operation_type, user=args.user, session_id=args.session_id
                    )
                )
            elif args.command == "log-operation":
                audit.log_operation(
                    args.session_id, args.operation, args.file, args.status, args.details
                )
            elif args.command == "finalize-session":
                metrics = audit.finalize_session(args.session_id, args.status)
                print(
                    f"{metrics.session_id}: {metrics.final_status} "
                    f"processed={metrics.files_processed} archived={metrics.files_archived} "
                    f"deleted={metrics.files_deleted} failed={metrics.files_failed}"
                )
            elif args.command == "generate-report":
                reporter = AuditReporter(audit.store, audit.event_log, audit.audit_dir)
                path = reporter.generate_report(args.type, args.target)
                print(f"Audit report generated: {path}")
            elif args.command == "list-files":
                reporter = AuditReporter(audit.store, audit.event_log, audit.audit_dir)
                for title, paths in reporter.list_audit_files().items():
                    print(f"{title.replace('_', ' ').title()}:")
                    for path in paths:
                        print(f"  {path}")
    except (AuditError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
