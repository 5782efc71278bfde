"""
Economic and earnings calendar.

Short-dated credit spreads are exposed to scheduled events. This module
lists the ones that matter over the next few weeks:
- FOMC rate decisions
- CPI releases (mid-month)
- Non-farm payrolls (first Friday)
- The underlying's next earnings date
"""
from dataclasses import dataclass, asdict
from datetime import date, datetime, timedelta, timezone
from typing import List, Dict, Any, Optional
import logging

import pandas as pd
import yfinance as yf

from config import data_config, cache_config, calendar_config
from .cache import CacheManager

logger = logging.getLogger(__name__)


@dataclass
class EconomicEvent:
    """A scheduled market-moving event."""
    date: date
    event: str
    importance: str
    category: str
    description: str = ""
    symbol: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['date'] = self.date.isoformat()
        return data


def first_friday(year: int, month: int) -> date:
    first = date(year, month, 1)
    return first + timedelta(days=(4 - first.weekday()) % 7)


def static_economic_events(today: date,
                           fomc_dates: Optional[List[str]] = None) -> List[EconomicEvent]:
    """Recurring US macro releases from today to the end of next year."""
    if fomc_dates is None:
        fomc_dates = calendar_config.fomc_dates
    events = []

    for d in fomc_dates:
        events.append(EconomicEvent(
            date=date.fromisoformat(d),
            event='FOMC Meeting - Interest Rate Decision',
            importance='high',
            category='Federal Reserve',
            description='Federal Reserve monetary policy meeting with potential rate changes',
        ))

    for year in (today.year, today.year + 1):
        for month in range(1, 13):
            events.append(EconomicEvent(
                date=date(year, month, 15),
                event='Consumer Price Index (CPI)',
                importance='high',
                category='Inflation',
                description='Monthly inflation data that heavily influences Fed policy',
            ))
            events.append(EconomicEvent(
                date=first_friday(year, month),
                event='Non-Farm Payrolls',
                importance='high',
                category='Employment',
                description='Monthly employment data showing job growth',
            ))

    upcoming = [e for e in events if e.date >= today]
    return sorted(upcoming, key=lambda e: e.date)


def _earnings_date(calendar: Any) -> Optional[date]:
    """Pull the next earnings date out of a yfinance calendar (dict or DataFrame)."""
    if calendar is None:
        return None

    if isinstance(calendar, pd.DataFrame):
        if calendar.empty or 'Earnings Date' not in calendar.index:
            return None
        value = calendar.loc['Earnings Date'].iloc[0]
    else:
        value = calendar.get('Earnings Date')
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None

    if value is None:
        return None
    ts = pd.to_datetime(value, errors='coerce')
    if pd.isna(ts):
        return None
    return ts.date()


class CalendarFetcher:
    """Cache-fronted event calendar."""

    def __init__(self, cache_manager: CacheManager, symbol: Optional[str] = None,
                 horizon_days: int = 30):
        self.cache = cache_manager
        self.symbol = symbol or data_config.symbol
        self.horizon_days = horizon_days

    def get_earnings_events(self) -> List[EconomicEvent]:
        try:
            earnings = _earnings_date(yf.Ticker(self.symbol).calendar)
        except Exception as e:
            logger.warning(f"Error fetching earnings calendar for {self.symbol}: {e}")
            return []

        if earnings is None:
            return []

        return [EconomicEvent(
            date=earnings,
            event=f'{self.symbol} Earnings',
            importance='high',
            category='Earnings',
            symbol=self.symbol,
        )]

    def get_calendar(self, today: Optional[date] = None,
                     use_cache: bool = True) -> Dict[str, Any]:
        """
        Get upcoming events inside the horizon.

        Returns:
            Dict with: economic_events, earnings_events, last_update
        """
        if use_cache:
            key = self.cache.make_key(self.symbol, 'calendar')
            return self.cache.get_or_set(key, lambda: self._build(today),
                                         ttl_seconds=cache_config.calendar_ttl)
        return self._build(today)

    def _build(self, today: Optional[date]) -> Dict[str, Any]:
        today = today or datetime.now(timezone.utc).date()
        horizon = today + timedelta(days=self.horizon_days)

        if calendar_config.fomc_dates and max(calendar_config.fomc_dates) < horizon.isoformat():
            logger.warning(f"FOMC schedule ends {max(calendar_config.fomc_dates)}; "
                           f"extend CalendarConfig.fomc_dates or set FOMC_DATES")

        economic = [e for e in static_economic_events(today) if e.date <= horizon]
        earnings = [e for e in self.get_earnings_events() if today <= e.date <= horizon]

        data = {
            'economic_events': [e.to_dict() for e in economic[:15]],
            'earnings_events': [e.to_dict() for e in earnings],
            'last_update': datetime.now(timezone.utc).isoformat(),
        }
        return data
