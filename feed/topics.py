"""
Standard topics for the credit spread feed.

    price     current underlying price
    spreads   ranked credit spread recommendations
    news      ranked market headlines
    calendar  upcoming economic and earnings events
"""
from typing import Optional
import logging

from config import data_config
from core.cache import CacheManager
from core.data_fetcher import DataFetcher, YahooQuoteProvider
from core.news import NewsFetcher
from core.econ_calendar import CalendarFetcher
from analysis.scanner import CreditSpreadScanner
from .hub import BroadcastHub

logger = logging.getLogger(__name__)


def yahoo_probe(symbol: str):
    """Connectivity check: one live quote from Yahoo."""
    def probe() -> Optional[float]:
        return YahooQuoteProvider().fetch_price(symbol)
    return probe


def create_feed(cache_manager: CacheManager,
                symbol: Optional[str] = None,
                data_fetcher: Optional[DataFetcher] = None,
                probe=None) -> BroadcastHub:
    """
    Wire the standard topics onto a new hub.

    All topics share cache_manager, so overlapping pulls (price is read by
    both the price and spreads topics) hit the vendor once per TTL.
    """
    symbol = symbol or data_config.symbol
    fetcher = data_fetcher or DataFetcher(cache_manager, symbol=symbol)
    scanner = CreditSpreadScanner(fetcher, cache_manager, symbol=symbol)
    news = NewsFetcher(cache_manager, symbol=symbol)
    calendar = CalendarFetcher(cache_manager, symbol=symbol)

    hub = BroadcastHub(cache_manager, probe=probe)
    hub.register_topic('price', scanner.get_price_snapshot)
    hub.register_topic('spreads', lambda: scanner.get_recommendations()['data'])
    hub.register_topic('news', news.get_news)
    hub.register_topic('calendar', calendar.get_calendar)

    logger.info(f"Feed ready for {symbol}: {', '.join(hub.topics)}")
    return hub
