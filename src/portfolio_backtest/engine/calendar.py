from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Sequence, Set

QUARTER_START_MONTHS = (1, 4, 7, 10)


@dataclass
class TradingSchedule:
    contribution_days: Set[date] = field(default_factory=set)
    rebalance_days: Set[date] = field(default_factory=set)


def is_quarter_start_month(month: int) -> bool:
    return month in QUARTER_START_MONTHS


def intersect_trading_days(date_lists: Sequence[Iterable[date]]) -> List[date]:
    """Sorted, deduplicated dates present in every one of ``date_lists``."""
    if not date_lists:
        return []
    common = set(date_lists[0])
    for dates in date_lists[1:]:
        common &= set(dates)
    return sorted(common)


def build_trading_schedules(trading_days: Iterable[date]) -> TradingSchedule:
    """
    Mark the first trading day seen in each month as a contribution day and,
    in quarter-start months, also as a rebalance day. Holidays and weekends
    need no calendar: whatever day the market opened first wins.
    """
    schedule = TradingSchedule()
    current_month = None
    for day in sorted(set(trading_days)):
        month_key = (day.year, day.month)
        if month_key == current_month:
            continue
        current_month = month_key
        schedule.contribution_days.add(day)
        if is_quarter_start_month(day.month):
            schedule.rebalance_days.add(day)
    return schedule
