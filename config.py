"""
Configuration settings for the Credit Spread Feed.

Centralized config makes it easy to modify behavior without touching core logic.
"""
from dataclasses import dataclass, field
from typing import Optional, Dict, List
import os
from dotenv import load_dotenv

load_dotenv()


@dataclass
class DataConfig:
    """Data source configuration."""
    symbol: str = os.getenv("SPREAD_FEED_SYMBOL", "TSLA")
    fallback_price: float = 250.0  # Served when every quote provider fails
    timeout: int = 10
    max_expirations: int = 4  # Expirations pulled per chain refresh

    # API Keys (optional - providers without a key are skipped)
    alpha_vantage_api_key: Optional[str] = os.getenv("ALPHA_VANTAGE_API_KEY")
    fmp_api_key: Optional[str] = os.getenv("FMP_API_KEY")
    news_api_key: Optional[str] = os.getenv("NEWS_API_KEY")


@dataclass
class CacheConfig:
    """Cache time-to-live policy, in seconds."""
    price_ttl: int = 30
    options_ttl: int = 30
    news_ttl: int = 60
    calendar_ttl: int = 4 * 60 * 60
    cleanup_interval: int = 5 * 60


@dataclass
class SpreadConfig:
    """Spread construction and ranking thresholds."""
    target_dte: int = 7
    dte_window: int = 2  # Accept target +/- window
    default_iv: float = 0.30
    min_credit: float = 0.15
    min_risk_reward: float = 0.25
    min_dte: int = 5
    max_dte: int = 10
    top_n: int = 10
    min_probability: float = 20.0
    max_probability: float = 85.0


@dataclass
class FeedConfig:
    """Broadcast hub refresh intervals and connection retry policy."""
    intervals: Dict[str, float] = field(default_factory=lambda: {
        'price': 5.0,
        'spreads': 30.0,
        'news': 120.0,
        'calendar': 3600.0,
    })
    max_reconnect_attempts: int = 5
    reconnect_base_delay: float = 1.0


@dataclass
class CalendarConfig:
    """
    Scheduled event dates.

    The Fed publishes FOMC dates a year ahead; append the next year's
    decision days here, or set FOMC_DATES (comma-separated ISO dates).
    """
    fomc_dates: List[str] = field(default_factory=lambda: [
        d.strip() for d in os.getenv("FOMC_DATES", "").split(",") if d.strip()
    ] or [
        '2026-01-28', '2026-03-18', '2026-04-29', '2026-06-17',
        '2026-07-29', '2026-09-16', '2026-10-28', '2026-12-09',
    ])


# Global config instances
data_config = DataConfig()
cache_config = CacheConfig()
spread_config = SpreadConfig()
feed_config = FeedConfig()
calendar_config = CalendarConfig()
