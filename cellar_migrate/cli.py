"""Command line entry point: ``cellar-migrate migrate ...``."""

import argparse
import json
import logging
import sys
import time
from datetime import datetime
from typing import List, Optional

from . import __version__
from .config import MEGABYTE, load_config, redact_config, validate_config
from .errors import ConfigurationError, ObjectStoreError
from .migrate import Migration
from .observer import LoggingObserver
from .report import RunReport, format_bytes

LOGGER_NAME = "cellar_migrate"


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def format(self, record):
        if hasattr(sys.stdout, "isatty") and sys.stdout.isatty():
            levelname = record.levelname
            if levelname in self.COLORS:
                record = logging.makeLogRecord(record.__dict__)
                record.levelname = (
                    f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
                )
        return super().format(record)


def setup_logging(args: argparse.Namespace) -> logging.Logger:
    """Configure logging with appropriate handlers and formatters."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    logger.handlers.clear()

    if args.log_file and not args.debug:
        console_level = logging.ERROR
    elif args.quiet:
        console_level = logging.ERROR
    elif args.debug:
        console_level = logging.DEBUG
    else:
        console_level = logging.INFO

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)

    if args.debug:
        console_format = ColoredFormatter("[%(levelname)s] %(message)s")
    else:
        console_format = logging.Formatter("%(message)s")

    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    if args.log_file:
        file_handler = logging.FileHandler(args.log_file, mode="a")
        file_handler.setLevel(logging.DEBUG)
        file_format = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        file_handler.setFormatter(file_format)
        logger.addHandler(file_handler)

        logger.info("")
        logger.info("#" * 70)
        logger.info("# NEW SESSION: %s", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
        logger.info("#" * 70)

    return logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cellar-migrate",
        description="Migrate Cellar C1 (Riak CS) buckets to a Cellar C2 (RadosGW) cluster",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # See what would be copied (dry run, the default)
  %(prog)s migrate --source-access-key KEY --source-secret-key SECRET \\
      --destination-access-key KEY2 --destination-secret-key SECRET2

  # Copy one bucket under another name and prune the destination
  %(prog)s migrate --config /etc/cellar-migrate.yaml --source-bucket photos \\
      --destination-bucket photos-archive --delete --execute

  # Cron friendly: everything to a log file
  %(prog)s migrate --config /etc/cellar-migrate.yaml --execute \\
      --log-file /var/log/cellar-migrate.log
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    migrate = subparsers.add_parser(
        "migrate",
        help="Migrate a cellar-c1 bucket to a cellar-c2 cluster",
        description="Migrate a cellar-c1 bucket to a cellar-c2 cluster. "
        "By default, it will dry run unless --execute is passed",
    )

    output = migrate.add_argument_group("configuration and output")
    output.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="Configuration file path (.json or .yaml)",
    )
    output.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Quiet mode - only errors (for cron)",
    )
    output.add_argument(
        "--debug",
        action="store_true",
        help="Debug mode - verbose output",
    )
    output.add_argument(
        "-l",
        "--log-file",
        metavar="FILE",
        help="Log to file (console quiet unless --debug specified)",
    )
    output.add_argument(
        "--show-config",
        action="store_true",
        help="Display configuration and exit",
    )

    source = migrate.add_argument_group("source (Cellar C1)")
    source.add_argument(
        "--source-bucket",
        help="Source bucket from which files will be copied. "
        "If omitted, all buckets of the add-on will be synchronized",
    )
    source.add_argument("--source-access-key", help="Source bucket Cellar access key")
    source.add_argument("--source-secret-key", help="Source bucket Cellar secret key")
    source.add_argument(
        "--source-endpoint",
        help="Source endpoint of the Cellar C1 cluster "
        "(default: cellar.services.clever-cloud.com)",
    )

    destination = migrate.add_argument_group("destination (Cellar C2)")
    destination.add_argument(
        "--destination-bucket",
        help="Destination bucket to which the files will be copied. "
        "If omitted, the bucket will be created if it doesn't exist",
    )
    destination.add_argument(
        "--destination-bucket-prefix",
        help="Prefix to apply to the destination bucket name",
    )
    destination.add_argument(
        "--destination-access-key", help="Destination bucket Cellar access key"
    )
    destination.add_argument(
        "--destination-secret-key", help="Destination bucket Cellar secret key"
    )
    destination.add_argument(
        "--destination-endpoint",
        help="Destination endpoint of the Cellar cluster. "
        "Defaults to Paris Cellar cluster (cellar-c2.services.clever-cloud.com)",
    )

    sync = migrate.add_argument_group("synchronization")
    sync.add_argument(
        "-t",
        "--threads",
        type=int,
        metavar="N",
        help="Number of threads used to synchronize this bucket "
        "(default: number of CPUs)",
    )
    sync.add_argument(
        "--multipart-chunk-size-mb",
        type=int,
        metavar="MB",
        help="Size of each chunk of multipart upload in Megabytes. Files bigger "
        "than this size are automatically uploaded using multipart upload "
        "(default: 100)",
    )
    sync.add_argument(
        "-m",
        "--max-keys",
        type=int,
        metavar="N",
        help="Maximum number of object keys to list per request. Lowering this "
        "might help listing huge buckets (default: 1000)",
    )
    sync.add_argument(
        "-e",
        "--execute",
        action="store_true",
        help="Execute the synchronization. THIS COMMAND WILL MAKE PRODUCTION "
        "CHANGES TO THE DESTINATION BUCKET.",
    )
    sync.add_argument(
        "-d",
        "--delete",
        action="store_true",
        help="Delete extraneous files from destination bucket",
    )

    return parser


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        sys.exit(1)
    return args


def apply_arguments(config: dict, args: argparse.Namespace) -> dict:
    """Command-line flags win over the configuration file."""
    overrides = {
        ("source", "aws_access_key_id"): args.source_access_key,
        ("source", "aws_secret_access_key"): args.source_secret_key,
        ("source", "endpoint_url"): args.source_endpoint,
        ("destination", "aws_access_key_id"): args.destination_access_key,
        ("destination", "aws_secret_access_key"): args.destination_secret_key,
        ("destination", "endpoint_url"): args.destination_endpoint,
        ("performance", "threads"): args.threads,
        ("performance", "multipart_chunk_size_mb"): args.multipart_chunk_size_mb,
        ("performance", "max_keys"): args.max_keys,
        ("sync", "source_bucket"): args.source_bucket,
        ("sync", "destination_bucket"): args.destination_bucket,
        ("sync", "destination_bucket_prefix"): args.destination_bucket_prefix,
    }
    for (section, key), value in overrides.items():
        if value is not None:
            config[section][key] = value

    if args.execute:
        config["sync"]["execute"] = True
    if args.delete:
        config["sync"]["delete_extraneous"] = True
    return config


def migrate_command(config: dict, logger: logging.Logger) -> int:
    """Run the migration described by ``config`` and log the report."""
    migration = Migration.from_config(config, LoggingObserver(logger))

    if migration.dry_run:
        logger.warning(
            "Running in dry run mode. No changes will be made. "
            "If you want to synchronize for real, use --execute"
        )

    logger.debug("Source endpoint: %s", migration.source_endpoint)
    logger.debug("Destination endpoint: %s", migration.destination_endpoint)
    logger.debug("Threads: %d", int(config["performance"]["threads"]))
    logger.debug(
        "Multipart chunk size: %s",
        format_bytes(int(config["performance"]["multipart_chunk_size_mb"]) * MEGABYTE),
    )
    logger.debug("Delete extraneous: %s", migration.delete)

    sync_start = time.monotonic()

    try:
        buckets = migration.buckets_to_migrate()
    except ObjectStoreError as err:
        logger.error("Failed to list source buckets: %s", err)
        return 1

    if migration.source_bucket:
        logger.info("Only bucket %s will be migrated", migration.source_bucket)
    else:
        logger.info(
            "All buckets of this Cellar add-on will be migrated (%d bucket(s))",
            len(buckets),
        )

    outcomes = migration.run(buckets)

    RunReport(
        outcomes,
        time.monotonic() - sync_start,
        dry_run=migration.dry_run,
        delete=migration.delete,
        log=logger,
    ).log_summary()
    return 0


def main(argv: Optional[List[str]] = None):
    """Main application entry point."""
    args = parse_arguments(argv)

    try:
        config = apply_arguments(load_config(args.config), args)
        if args.show_config:
            print(json.dumps(redact_config(config), indent=2))
            sys.exit(0)
        validate_config(config)
    except ConfigurationError as err:
        print(f"Error: {err}", file=sys.stderr)
        sys.exit(1)

    logger = setup_logging(args)

    logger.info("=" * 70)
    logger.info("CELLAR MIGRATE v%s", __version__)
    logger.info("Session started: %s", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
    logger.info("=" * 70)

    try:
        sys.exit(migrate_command(config, logger))
    except KeyboardInterrupt:
        logger.warning("\n\nOperation cancelled by user (Ctrl+C)")
        sys.exit(130)
    except Exception as err:  # pylint: disable=broad-except
        logger.exception("FATAL ERROR: %s", err)
        sys.exit(1)


if __name__ == "__main__":
    main()
