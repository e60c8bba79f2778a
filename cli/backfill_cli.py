#!/usr/bin/env python3
"""
Polygon Backfill - CLI Entry Point

Downloads daily bars, ticker lists, minute bars and trades from Polygon.io
into TimescaleDB, resuming from whatever is already committed.
"""
import argparse
import logging
import sys
from datetime import date
from typing import List, Optional

from common.config.settings import BackfillConfig
from common.errors import BackfillConfigError, StorageError
from core.orchestrator import BackfillOrchestrator, build_jobs
from ingestion.clients import PolygonClient
from ingestion.jobs import JOB_ORDER
from ingestion.pipeline import MarketCalendar
from ingestion.utils.structured_logging import get_logger
from storage.timescale.writer import TimescaleStore


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got '{value}'") from e


def _parse_jobs(value: str) -> List[str]:
    return [name.strip() for name in value.split(',') if name.strip()]


def parse_args(argv: Optional[List[str]] = None):
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description='Polygon.io historical backfill into TimescaleDB',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Everything, most recent partitions first
  %(prog)s

  # Only daily bars and trades since 2020
  %(prog)s --jobs agg1d,trades --start-date 2020-01-01

  # Append to the open partition instead of rewriting it
  %(prog)s --append-open-partition --log-level DEBUG
        """
    )

    parser.add_argument(
        '--jobs',
        type=_parse_jobs,
        default=None,
        help=f"Comma-separated jobs to run (default: {','.join(JOB_ORDER)})"
    )

    parser.add_argument(
        '--start-date',
        type=_parse_date,
        default=None,
        help='First date to backfill (default: $BACKFILL_START_DATE or 2004-01-01)'
    )

    parser.add_argument(
        '--end-date',
        type=_parse_date,
        default=None,
        help="Exclusive end date (default: today's market date)"
    )

    parser.add_argument(
        '--workers',
        type=int,
        default=None,
        help='Concurrent fetch workers (default: $BACKFILL_WORKERS or 100)'
    )

    parser.add_argument(
        '--rate-limit',
        type=int,
        default=None,
        help='Polygon requests per second (default: $POLYGON_RATE_LIMIT or 100)'
    )

    parser.add_argument(
        '--no-reverse',
        action='store_true',
        help='Process partitions oldest first'
    )

    parser.add_argument(
        '--append-open-partition',
        action='store_true',
        help=('Resume the latest partition after its last timestamp instead of rewriting it '
              '(a day-partitioned table such as trades is never refetched for its latest day)')
    )

    parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable progress bars'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Set logging level (default: INFO)'
    )

    parser.add_argument('--db-host', type=str, default=None, help='TimescaleDB host (default: $DB_HOST)')
    parser.add_argument('--db-port', type=int, default=None, help='TimescaleDB port (default: $DB_PORT)')
    parser.add_argument('--db-name', type=str, default=None, help='TimescaleDB database (default: $DB_NAME)')
    parser.add_argument('--db-user', type=str, default=None, help='TimescaleDB user (default: $DB_USER)')
    parser.add_argument('--db-password', type=str, default=None,
                        help='TimescaleDB password (default: $DB_PASSWORD)')

    return parser.parse_args(argv)


def build_config(args) -> BackfillConfig:
    """Environment configuration with CLI overrides applied."""
    config = BackfillConfig.from_env()
    if args.start_date:
        config.system.start_date = args.start_date
    if args.workers is not None:
        config.system.max_workers = args.workers
    if args.rate_limit is not None:
        config.polygon.rate_limit = args.rate_limit
    if args.no_reverse:
        config.system.reverse_order = False
    if args.append_open_partition:
        config.system.refresh_open_partition = False

    database = config.database
    database.host = args.db_host or database.host
    database.port = args.db_port or database.port
    database.database = args.db_name or database.database
    database.user = args.db_user or database.user
    database.password = args.db_password or database.password

    config.validate()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    log_level = getattr(logging, args.log_level)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    events = get_logger('backfill.events', level=log_level)

    try:
        config = build_config(args)
    except BackfillConfigError as e:
        events.error("invalid_configuration", error=str(e))
        return 1

    if not config.polygon.api_key:
        events.error("missing_polygon_api_key",
                     error="Set POLYGON_API_KEY or POLYGON_KEY_FILE")
        return 1

    try:
        store = TimescaleStore(config.database)
    except StorageError as e:
        events.error("database_connection_failed", error=str(e))
        return 1

    client = PolygonClient.from_config(config.polygon, config.http)
    try:
        calendar = MarketCalendar(config.system.calendar, config.system.start_date)
        orchestrator = BackfillOrchestrator(
            config,
            store,
            build_jobs(config, client),
            calendar,
            structured=events,
        )
        orchestrator.pool.show_progress = not args.no_progress
        report = orchestrator.run(args.jobs, config.system.start_date, args.end_date)
    except BackfillConfigError as e:
        events.error("invalid_configuration", error=str(e))
        return 1
    except KeyboardInterrupt:
        events.warn("backfill_interrupted")
        return 130
    finally:
        client.close()
        store.close()

    for result in report.results:
        print(
            f"{result.job}: {result.records} records in {result.batches} batches "
            f"({result.units} units, {result.empty_units} empty, {result.retries} retries) "
            f"in {result.elapsed:.1f}s"
        )
    if not report.ok:
        where = f" at unit {report.failed_unit}" if report.failed_unit else ""
        print(f"FATAL: {report.failed_job} failed{where}: {report.error}", file=sys.stderr)
    return report.exit_code


if __name__ == '__main__':
    sys.exit(main())
