# =============================================================================
# main.py - CLI entry point
# =============================================================================

import argparse
import logging
import sys
from pathlib import Path

from core.ad_client import ActiveDirectoryClient
from core.exceptions import DirectoryError, ExportPathInvalid
from core.inactivity import build_criterion, filter_inactive, project_report
from core.models import AccountKind, RemediationAction, RunSummary
from core.remediation import ExclusionPolicy, RemediationExecutor
from processors.group_membership import GroupMembershipProcessor
from processors.password_reset import PasswordResetProcessor
from utils.config import Config
from utils.export import EXPORT_FORMATS, OUTCOME_FIELDNAMES, ReportExporter


EXIT_OK = 0
EXIT_FATAL = 1
EXIT_EXPORT_FAILED = 3


def setup_logging(level: str = "INFO") -> str:
    """Setup logging configuration with both console and file output"""
    from datetime import datetime

    # Create logs directory if it doesn't exist
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    # Generate date-stamped filename
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_filename = log_dir / f"ad_account_sweeper_{timestamp}.log"

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler
    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)  # Always log DEBUG to file
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # ldap3 is chatty at DEBUG
    logging.getLogger("ldap3").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized - Console: {level.upper()}, File: DEBUG")
    logger.info(f"Log file: {log_filename}")

    return str(log_filename)


def build_client(config: Config, args) -> ActiveDirectoryClient:
    timeout = args.timeout if args.timeout is not None else config.timeout
    return ActiveDirectoryClient(
        config.ad_server, config.ad_username, config.ad_password, config.base_dn,
        use_ssl=config.use_ssl, timeout=timeout, page_size=config.page_size
    )


def warn_if_dry_run(dry_run: bool) -> None:
    if dry_run:
        logging.getLogger(__name__).warning(
            "Dry run enabled: no accounts will be changed. Re-run with --confirm to apply."
        )


def export_or_print(exporter: ReportExporter, rows, output_path, fmt: str = 'csv',
                    fieldnames=None) -> bool:
    """Export rows when a path is given, else print them; falls back to console on export failure"""
    logger = logging.getLogger(__name__)

    if not output_path:
        print(exporter.render_table(rows, fieldnames))
        return True

    try:
        exporter.export(rows, output_path, fmt, fieldnames)
    except ExportPathInvalid as e:
        logger.error(f"{e} - printing to console instead")
        print(exporter.render_table(rows, fieldnames))
        return False

    logger.info(f"Saved {len(rows)} rows to {output_path}")
    return True


def handle_inactive(args, config: Config) -> int:
    """Find inactive accounts, report them and optionally disable or move them"""
    logger = logging.getLogger(__name__)

    kind = AccountKind.from_cli(args.kind)
    days = args.days if args.days is not None else config.inactive_days
    action = RemediationAction(args.action)
    dry_run = not args.confirm
    criterion = build_criterion(kind, days, args.scope)
    exporter = ReportExporter()

    if action != RemediationAction.REPORT:
        warn_if_dry_run(dry_run)

    with build_client(config, args) as ad_client:
        executor = RemediationExecutor(
            ad_client, action,
            target_container=args.target_container,
            dry_run=dry_run,
            exclusions=ExclusionPolicy(config.exclude_name_prefix, config.bypass_group_pattern)
        )
        if action == RemediationAction.MOVE:
            executor.validate()

        accounts = ad_client.list_accounts(criterion.scope, kind)
        matched = filter_inactive(accounts, criterion)
        rows = project_report(matched, criterion)

        exported = export_or_print(exporter, rows, args.output, args.format)

        outcomes = executor.execute(matched)

    if outcomes:
        exported = export_or_print(exporter, outcomes, args.results_output, 'csv',
                                   OUTCOME_FIELDNAMES) and exported

    summary = RunSummary.from_outcomes(outcomes, matched=len(matched))
    print(summary.line())
    logger.info(summary.line())

    return EXIT_OK if exported else EXIT_EXPORT_FAILED


def handle_csv_processor(args, config: Config) -> int:
    """Handle CSV-driven bulk processors (password-reset, group-sync)"""
    dry_run = not args.confirm
    warn_if_dry_run(dry_run)

    with build_client(config, args) as ad_client:
        if args.command == 'group-sync':
            processor = GroupMembershipProcessor(ad_client, dry_run=dry_run, prune=args.prune)
        else:
            processor = PasswordResetProcessor(ad_client, dry_run=dry_run)

        outcomes = processor.run(args.input_csv)

    # outcomes go to the console if the results file cannot be written
    exported = export_or_print(ReportExporter(), outcomes, args.output_csv, 'csv',
                               processor.get_output_fieldnames())

    summary = processor.summarize(outcomes)
    print(summary.line())

    return EXIT_OK if exported else EXIT_EXPORT_FAILED


def handle_stats(args, config: Config) -> int:
    """Print object counts for the directory"""
    with build_client(config, args) as ad_client:
        stats = ad_client.directory_stats()

    for label, count in stats.items():
        print(f"{label:<20}: {count}")
    return EXIT_OK


def add_mode_arguments(parser: argparse.ArgumentParser) -> None:
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('--dry-run', action='store_true',
                      help='Show what would change without changing anything (default)')
    mode.add_argument('--confirm', action='store_true',
                      help='Apply changes to the directory')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Active Directory account sweeper")
    parser.add_argument('--log-level', default='INFO', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')
    parser.add_argument('--timeout', type=int, default=None,
                        help='Directory connect/receive timeout in seconds (default: AD_TIMEOUT or 30)')

    subparsers = parser.add_subparsers(dest='command', help='Command')

    # Inactive account discovery and remediation
    inactive = subparsers.add_parser('inactive', help='Report, disable or move inactive accounts')
    inactive.add_argument('--kind', choices=['user', 'computer'], default='user', help='Account kind')
    inactive.add_argument('--days', type=int, default=None,
                          help='Inactivity threshold in days (default: INACTIVE_DAYS or 90)')
    inactive.add_argument('--scope', help='Only accounts in or below this container DN')
    inactive.add_argument('--action', choices=[a.value for a in
                                               (RemediationAction.REPORT, RemediationAction.DISABLE,
                                                RemediationAction.MOVE)],
                          default='report', help='What to do with matched accounts')
    inactive.add_argument('--target-container', help='Destination container DN for --action move')
    inactive.add_argument('--output', help='Report file path (prints a table when omitted)')
    inactive.add_argument('--format', choices=EXPORT_FORMATS, default='csv', help='Report file format')
    inactive.add_argument('--results-output', help='CSV file for per-account results')
    add_mode_arguments(inactive)

    # CSV-driven processors
    reset = subparsers.add_parser('password-reset', help='Reset passwords listed in a CSV file')
    reset.add_argument('input_csv', help='Input CSV file path (Identifier[,NewPassword,MustChange])')
    reset.add_argument('output_csv', help='Output CSV file path')
    add_mode_arguments(reset)

    groups = subparsers.add_parser('group-sync', help='Copy group membership from template accounts')
    groups.add_argument('input_csv', help='Input CSV file path (Identifier,TemplateAccount)')
    groups.add_argument('output_csv', help='Output CSV file path')
    groups.add_argument('--prune', action='store_true',
                        help='Also remove groups the template account is not in')
    add_mode_arguments(groups)

    subparsers.add_parser('stats', help='Show directory object counts')

    return parser


HANDLERS = {
    'inactive': handle_inactive,
    'password-reset': handle_csv_processor,
    'group-sync': handle_csv_processor,
    'stats': handle_stats,
}


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(EXIT_FATAL)

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    # Load configuration
    config = Config()
    if not config.validate_ad_config():
        missing_vars = config.get_missing_ad_vars()
        logger.error(f"Missing required environment variables: {missing_vars}")
        sys.exit(EXIT_FATAL)

    # Validate input file exists
    input_file = getattr(args, 'input_csv', None)
    if input_file and not Path(input_file).exists():
        logger.error(f"Input file not found: {input_file}")
        sys.exit(EXIT_FATAL)

    try:
        exit_code = HANDLERS[args.command](args, config)
    except ExportPathInvalid as e:
        logger.error(f"Export failed: {e}")
        sys.exit(EXIT_EXPORT_FAILED)
    except DirectoryError as e:
        logger.error(f"Directory error: {e}")
        sys.exit(EXIT_FATAL)
    except Exception as e:
        logger.error(f"Processing failed: {e}")
        sys.exit(EXIT_FATAL)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
