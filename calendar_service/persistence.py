"""Loading the calendar from the holidays table and persisting TradingPeriod rows."""

from typing import Iterable, List, Optional

from database_manager.database_session_manager import DatabaseSessionManager
from Shared_Utils.logger import get_component_logger
from .service import CalendarService, QuarterInfo


async def load_calendar_service(db: DatabaseSessionManager,
                                exchanges: Optional[Iterable[str]] = None) -> CalendarService:
    holidays = await db.run_in_unit_of_work(lambda uow: uow.reference.holidays(exchanges))
    get_component_logger('calendar_service').info(f"📅 Loaded {len(holidays)} exchange holidays")
    return CalendarService(holidays)


async def refresh_trading_periods(db: DatabaseSessionManager, calendar: CalendarService,
                                  years: Iterable[int]) -> List[QuarterInfo]:
    """Reload holidays, recount every quarter of years and upsert trading_periods."""
    logger = get_component_logger('calendar_service')

    async with db.unit_of_work() as uow:
        calendar.refresh(await uow.reference.holidays())
        periods: List[QuarterInfo] = []
        for year in sorted(set(years)):
            for info in calendar.trading_periods_for_year(year):
                await uow.reference.upsert_trading_period(
                    info.year, info.quarter, info.start, info.end, info.tradeable_days
                )
                periods.append(info)

    logger.info(f"✅ Refreshed {len(periods)} trading periods")
    return periods
