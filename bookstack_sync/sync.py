#!/usr/bin/env python3
"""
BookStack Book Sync - Main CLI Entry Point

Copies one book, with its chapters and pages in their original order, from a
source BookStack instance to a destination BookStack instance using the REST
API of each.
"""

import argparse
import logging
import sys
from typing import Any, Dict

import yaml

from . import __version__
from .clients import BookStackClient
from .config_loader import ConfigLoader, get_nested
from .errors import AuthError, BookStackSyncError, SyncError
from .logger import log_config, log_section, setup_logging
from .orchestrator import SyncOrchestrator

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_AUTH_ERROR = 3
EXIT_INTERRUPTED = 130


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog='bookstack-sync',
        description="Copy a book from one BookStack instance to another",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Copy book 42 using the settings in config.yaml
  bookstack-sync --book-id 42

  # List the books on the source instance
  bookstack-sync --list-books

  # Check both token pairs without copying anything
  bookstack-sync --verify-only

  # Preview what would be created
  bookstack-sync --book-id 42 --dry-run

  # Copy chapter pages four at a time, with debug logging
  bookstack-sync --book-id 42 --page-workers 4 -vv
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        default='config.yaml',
        help='Path to configuration YAML file (default: config.yaml)'
    )

    parser.add_argument(
        '--book-id',
        type=int,
        help='ID of the book to copy from the source instance (overrides sync.book_id)'
    )

    parser.add_argument(
        '--list-books',
        action='store_true',
        help='List the books on the source instance and exit'
    )

    parser.add_argument(
        '--verify-only',
        action='store_true',
        help='Verify source and destination credentials and exit'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Preview the sync without creating anything on the destination'
    )

    parser.add_argument(
        '--page-workers',
        type=int,
        help='Pages copied concurrently within one chapter (default: 1)'
    )

    parser.add_argument(
        '--report-path',
        type=str,
        help='Path of the JSON sync report (default: sync_report.json)'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def run_verify(orchestrator: SyncOrchestrator, logger: logging.Logger) -> int:
    """Verify both token pairs."""
    for side in ('source', 'destination'):
        try:
            orchestrator.verify_credentials(side)
        except AuthError as e:
            logger.error(f"{side.capitalize()} credentials rejected: {str(e)}")
            return EXIT_AUTH_ERROR
        except BookStackSyncError as e:
            logger.error(f"{side.capitalize()} instance unreachable: {str(e)}")
            return EXIT_FAILURE
        print(f"{side.capitalize()} credentials OK ({getattr(orchestrator, side).base_url})")

    return EXIT_OK


def run_list_books(client: BookStackClient, logger: logging.Logger) -> int:
    """Print the books available on the source instance."""
    try:
        client.verify_credentials()
        books = client.list_books()
    except AuthError as e:
        logger.error(f"Source credentials rejected: {str(e)}")
        return EXIT_AUTH_ERROR
    except BookStackSyncError as e:
        logger.error(f"Failed to list source books: {str(e)}")
        return EXIT_FAILURE

    print("\n" + "=" * 60)
    print(f"SOURCE BOOKS ({len(books)})")
    print("=" * 60)
    for book in books:
        print(f"  {book.id:>6}  {book.name}")
    print("=" * 60)

    return EXIT_OK


def run_preview(orchestrator: SyncOrchestrator, book_id: int, logger: logging.Logger) -> int:
    """Display what a sync of the book would create."""
    try:
        preview = orchestrator.preview(book_id)
    except AuthError as e:
        logger.error(f"Source credentials rejected: {str(e)}")
        return EXIT_AUTH_ERROR
    except BookStackSyncError as e:
        logger.error(f"Dry-run failed: {str(e)}")
        return EXIT_FAILURE

    _print_preview(preview)
    logger.info("Dry-run complete. No changes made.")
    return EXIT_OK


def _print_preview(preview: Dict[str, Any]) -> None:
    """Print the planned content tree of a dry run."""
    print("\n" + "=" * 60)
    print("BOOK SYNC PREVIEW (DRY RUN)")
    print("=" * 60)
    print(f"\nBook: {preview['book_name']} (ID: {preview['book_id']})")
    print(f"Cover image: {'yes' if preview['has_cover'] else 'no'}")
    print(f"Chapters to create: {preview['chapters']}")
    print(f"Pages to create: {preview['pages']}")

    print("\nContent Order:")
    print("-" * 60)
    for item in preview['plan']:
        if item['type'] == 'chapter':
            print(f"  [chapter {item['id']}] {item['name']} ({len(item['pages'])} pages)")
        else:
            print(f"  [page {item['id']}] {item['name']}")

    print("\n" + "=" * 60)


def run_sync(orchestrator: SyncOrchestrator, config: Dict[str, Any], book_id: int) -> int:
    """Execute a book sync and report its outcome."""
    report_path = get_nested(config, 'sync.report_path', 'sync_report.json')

    try:
        report = orchestrator.sync_book(book_id)
        exit_code = EXIT_OK
    except SyncError as e:
        report = e.report
        exit_code = EXIT_AUTH_ERROR if e.error_kind == 'auth' else EXIT_FAILURE

    print("\n" + report.format_console_report())
    report.export_json_report(report_path)

    return exit_code


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args()

    try:
        setup_logging(verbosity=args.verbose)
        logger = logging.getLogger(__name__)

        log_section("BookStack Book Sync")
        logger.info(f"Version: {__version__}")

        logger.info(f"Loading configuration from {args.config}")
        config = ConfigLoader.load(args.config)
        config = ConfigLoader.merge_with_args(config, args)
        ConfigLoader.validate(config)

        # Reconfigure logging with config file settings
        setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            level=get_nested(config, 'logging.level')
        )
        log_config(config)

        orchestrator = SyncOrchestrator.from_config(config)

        if args.verify_only:
            return run_verify(orchestrator, logger)

        if args.list_books:
            return run_list_books(orchestrator.source, logger)

        book_id = get_nested(config, 'sync.book_id')
        if book_id is None:
            logger.error("No book to sync: pass --book-id or set sync.book_id")
            return EXIT_CONFIG_ERROR

        if args.dry_run:
            return run_preview(orchestrator, book_id, logger)

        return run_sync(orchestrator, config, book_id)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except (ValueError, yaml.YAMLError) as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        print("\nSync interrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
