import argparse
import asyncio
import logging
import os
import sys

from Config.config_manager import get_config
from Config.exceptions import ConfigError
from Config.validators import validate_ledger_config
from Shared_Utils.ledger_exceptions import LedgerError
from Shared_Utils.logger import get_component_logger, setup_structured_logging
from Shared_Utils.precision import format_money
from brokerage_engine import BulkAccrualSummary
from calendar_service import load_calendar_service, refresh_trading_periods
from database_manager.bootstrap_schema import ensure_ledger_schema
from database_manager.database_session_manager import DatabaseSessionManager
from trade_ledger import LedgerService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Brokerage ledger: FIFO allocation and brokerage accrual.")
    parser.add_argument('--verbose', action='store_true', help="Enable detailed DEBUG logs to console")
    parser.add_argument('--database-url', default=None, help="Override DATABASE_URL")

    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('init-db', help="Create any missing ledger tables")

    cal = sub.add_parser('refresh-calendar', help="Recount tradeable days and store trading periods")
    cal.add_argument('--years', type=int, nargs='+', required=True)

    run = sub.add_parser('run-accrual', help="Compute and finalise brokerage for a period")
    run.add_argument('--period', required=True, help="YYYY-MM, YYYY-Qn or YYYY-MM-DD")
    run.add_argument('--client', type=int, default=None, help="Single client id (default: every client)")

    drop = sub.add_parser('delete-accrual', help="Delete a period's calculations and unlock trades")
    drop.add_argument('--period', required=True)
    drop.add_argument('--client', type=int, default=None)

    val = sub.add_parser('validate', help="Audit FIFO allocations")
    val.add_argument('--client', type=int, default=None)

    pnl = sub.add_parser('pnl', help="Realized profit/loss of a client")
    pnl.add_argument('--client', type=int, required=True)

    return parser


async def run_command(args, db: DatabaseSessionManager, logger) -> int:
    if args.command == 'init-db':
        await ensure_ledger_schema(db.engine)
        logger.info("✅ Ledger schema ready")
        return 0

    calendar = await load_calendar_service(db)

    if args.command == 'refresh-calendar':
        for info in await refresh_trading_periods(db, calendar, args.years):
            print(f"{info.key}: {info.tradeable_days} tradeable days ({info.start} to {info.end})")
        return 0

    service = LedgerService(db, calendar)

    if args.command == 'run-accrual':
        result = await service.run_accrual(args.period, client_id=args.client)
        print(result)
        if isinstance(result, BulkAccrualSummary):
            for failure in result.failures:
                print(f"  ❌ client {failure.client_id}: {failure.error_type}: {failure.message}")
            return 1 if result.has_failures else 0
        return 0

    if args.command == 'delete-accrual':
        deleted = await service.delete_accrual(args.period, client_id=args.client)
        print(f"Deleted {deleted} calculation(s)")
        return 0

    if args.command == 'validate':
        result = await service.validate_allocations(client_id=args.client)
        print(result)
        return 0 if result.is_valid else 1

    if args.command == 'pnl':
        pnl = await service.realized_profit_loss(args.client)
        print(f"Client {args.client} realized P&L: {format_money(pnl)}")
        return 0

    raise ValueError(f"Unknown command {args.command}")


async def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = get_config()
        validate_ledger_config(config, raise_on_error=True)
    except ConfigError as e:
        print(f"❌ {type(e).__name__}: {e}", file=sys.stderr)
        return 2

    setup_structured_logging(
        log_dir=config.log_dir,
        console_level='DEBUG' if args.verbose else config.log_level,
    )
    logger = get_component_logger('main')

    db = DatabaseSessionManager(args.database_url or config.database_url, pool_size=config.db_pool_size)
    try:
        await db.initialize()
        return await run_command(args, db, logger)
    except LedgerError as e:
        logger.error(f"❌ {type(e).__name__}: {e}", extra=e.context)
        return 2
    finally:
        await db.disconnect()


def cli():
    os.environ['PYTHONASYNCIODEBUG'] = '0'
    logging.getLogger('asyncio').setLevel(logging.ERROR)
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
