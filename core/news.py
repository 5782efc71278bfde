"""
Market news for the underlying.

Headlines are tagged by how likely they are to move the stock:
- high: Fed decisions, CPI, earnings
- medium: jobs data, deliveries
- low: everything else

Sources: Yahoo Finance (no key), NewsAPI and Alpha Vantage (keyed).
Headlines from all enabled sources are merged, deduplicated and ranked.
"""
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import List, Dict, Any, Optional
import logging

import pandas as pd
import requests
import yfinance as yf

from config import data_config, cache_config
from .cache import CacheManager

logger = logging.getLogger(__name__)

MARKET_KEYWORDS = {
    'high': ['fed meeting', 'fomc', 'interest rate', 'cpi', 'inflation',
             'earnings', 'tesla earnings', 'elon musk'],
    'medium': ['unemployment', 'gdp', 'jobless claims', 'consumer confidence',
               'tesla delivery', 'autopilot'],
}

IMPACT_WEIGHT = {'high': 3, 'medium': 2, 'low': 1}


@dataclass
class NewsItem:
    """One headline."""
    title: str
    description: str
    url: str
    published_at: datetime
    source: str
    category: str
    impact: str

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['published_at'] = self.published_at.isoformat()
        return data


def categorize_impact(title: str, description: str = "") -> str:
    """Score a headline as high, medium or low impact."""
    text = f"{title} {description}".lower()

    for level in ('high', 'medium'):
        if any(keyword in text for keyword in MARKET_KEYWORDS[level]):
            return level
    return 'low'


def determine_category(title: str, description: str = "") -> str:
    text = f"{title} {description}".lower()

    if 'fed' in text or 'fomc' in text or 'interest rate' in text:
        return 'Federal Reserve'
    if 'cpi' in text or 'inflation' in text:
        return 'Economic Data'
    if 'earnings' in text:
        return 'Earnings'
    if 'elon musk' in text or 'tesla' in text:
        return 'Tesla'
    if 'unemployment' in text or 'jobs' in text:
        return 'Employment'
    return 'General Market'


def rank_news(items: List[NewsItem]) -> List[NewsItem]:
    """Drop duplicate titles, then sort by impact and recency."""
    seen = set()
    unique = []
    for item in items:
        if item.title in seen:
            continue
        seen.add(item.title)
        unique.append(item)

    return sorted(
        unique,
        key=lambda n: (IMPACT_WEIGHT[n.impact], n.published_at),
        reverse=True,
    )


def fallback_news(now: Optional[datetime] = None) -> List[NewsItem]:
    """Static headlines served when no source returns anything."""
    now = now or datetime.now(timezone.utc)
    samples = [
        ("Fed Signals Potential Rate Cuts",
         "Federal Reserve officials hint at possible interest rate reductions following cooling inflation data.",
         "Reuters", 0.5),
        ("Tesla Earnings Beat Expectations",
         "Tesla reports strong results with record deliveries and improved profit margins.",
         "Bloomberg", 2),
        ("CPI Data Shows Inflation Cooling",
         "Inflation data comes in below expectations, supporting a dovish Fed stance.",
         "MarketWatch", 4),
        ("Jobless Claims Fall to Multi-Month Low",
         "Weekly unemployment filings decrease, signaling continued labor market strength.",
         "CNBC", 8),
    ]
    return [
        NewsItem(
            title=title,
            description=desc,
            url="#",
            published_at=now - timedelta(hours=hours_ago),
            source=source,
            category=determine_category(title, desc),
            impact=categorize_impact(title, desc),
        )
        for title, desc, source, hours_ago in samples
    ]


def _parse_published(value: Any) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    ts = pd.to_datetime(value, utc=True, errors='coerce')
    if pd.isna(ts):
        return datetime.now(timezone.utc)
    return ts.to_pydatetime()


def _make_item(title: str, description: str, url: str, published: Any,
               source: str) -> NewsItem:
    return NewsItem(
        title=title,
        description=description,
        url=url or "#",
        published_at=_parse_published(published),
        source=source,
        category=determine_category(title, description),
        impact=categorize_impact(title, description),
    )


def parse_yahoo_item(raw: Dict[str, Any]) -> Optional[NewsItem]:
    """
    Normalize one Yahoo news entry.

    Yahoo has shipped two layouts: a flat dict, and one nested under 'content'.
    """
    content = raw.get('content') or raw
    title = content.get('title')
    if not title:
        return None

    description = content.get('summary') or content.get('description') or ""
    url = ((content.get('canonicalUrl') or {}).get('url')
           or content.get('link') or "#")
    provider = content.get('provider')
    source = provider.get('displayName') if isinstance(provider, dict) else content.get('publisher')
    published = content.get('pubDate') or content.get('providerPublishTime')

    return _make_item(title, description, url, published, source or "Yahoo Finance")


class NewsProvider:
    """A single source of headlines."""

    name = "base"

    def is_enabled(self) -> bool:
        return True

    def fetch_news(self, symbol: str, limit: int) -> List[NewsItem]:
        raise NotImplementedError


class YahooNewsProvider(NewsProvider):
    name = "yahoo"

    def fetch_news(self, symbol: str, limit: int) -> List[NewsItem]:
        raw_items = yf.Ticker(symbol).news or []
        items = []
        for raw in raw_items[:limit]:
            item = parse_yahoo_item(raw)
            if item is not None:
                items.append(item)
        return items


class NewsAPIProvider(NewsProvider):
    """Macro and company headlines from newsapi.org."""

    name = "newsapi"
    url = "https://newsapi.org/v2/everything"
    query = '{company} OR "federal reserve" OR "interest rates" OR CPI OR inflation OR earnings'

    def __init__(self, api_key: Optional[str] = None, timeout: int = None,
                 company: str = "tesla"):
        self.api_key = api_key or data_config.news_api_key
        self.timeout = timeout or data_config.timeout
        self.company = company

    def is_enabled(self) -> bool:
        return bool(self.api_key)

    def fetch_news(self, symbol: str, limit: int) -> List[NewsItem]:
        resp = requests.get(self.url, params={
            'q': self.query.format(company=self.company),
            'sortBy': 'publishedAt',
            'language': 'en',
            'apiKey': self.api_key,
        }, timeout=self.timeout)
        resp.raise_for_status()

        items = []
        for article in (resp.json().get('articles') or [])[:limit]:
            if not article.get('title'):
                continue
            items.append(_make_item(
                article['title'],
                article.get('description') or "",
                article.get('url'),
                article.get('publishedAt'),
                (article.get('source') or {}).get('name') or self.name,
            ))
        return items


class AlphaVantageNewsProvider(NewsProvider):
    """Ticker headlines from Alpha Vantage NEWS_SENTIMENT."""

    name = "alpha_vantage"
    url = "https://www.alphavantage.co/query"

    def __init__(self, api_key: Optional[str] = None, timeout: int = None):
        self.api_key = api_key or data_config.alpha_vantage_api_key
        self.timeout = timeout or data_config.timeout

    def is_enabled(self) -> bool:
        return bool(self.api_key) and self.api_key != "demo"

    def fetch_news(self, symbol: str, limit: int) -> List[NewsItem]:
        resp = requests.get(self.url, params={
            'function': 'NEWS_SENTIMENT',
            'tickers': symbol,
            'apikey': self.api_key,
        }, timeout=self.timeout)
        resp.raise_for_status()

        items = []
        for article in (resp.json().get('feed') or [])[:min(limit, 10)]:
            if not article.get('title'):
                continue
            # time_published looks like 20260105T143000
            published = pd.to_datetime(article.get('time_published'),
                                       format='%Y%m%dT%H%M%S', utc=True, errors='coerce')
            items.append(_make_item(
                article['title'],
                article.get('summary') or "",
                article.get('url'),
                None if pd.isna(published) else published,
                article.get('source') or self.name,
            ))
        return items


def default_news_providers() -> List[NewsProvider]:
    return [YahooNewsProvider(), NewsAPIProvider(), AlphaVantageNewsProvider()]


class NewsFetcher:
    """Cache-fronted market news, merged across every enabled provider."""

    def __init__(self, cache_manager: CacheManager, symbol: Optional[str] = None,
                 max_items: int = 15,
                 providers: Optional[List[NewsProvider]] = None):
        self.cache = cache_manager
        self.symbol = symbol or data_config.symbol
        self.max_items = max_items
        self.providers = providers if providers is not None else default_news_providers()

    def fetch_all(self) -> List[NewsItem]:
        """Headlines from every enabled provider; one failing source does not stop the rest."""
        items = []
        for provider in self.providers:
            if not provider.is_enabled():
                continue
            try:
                fetched = provider.fetch_news(self.symbol, self.max_items)
            except Exception as e:
                logger.warning(f"{provider.name} news fetch failed for {self.symbol}: {e}")
                continue
            logger.debug(f"{provider.name} returned {len(fetched)} headlines")
            items.extend(fetched)
        return items

    def get_news(self, use_cache: bool = True) -> Dict[str, Any]:
        """
        Get ranked headlines.

        Returns:
            Dict with: news, last_update, total_items
        """
        key = self.cache.make_key(self.symbol, 'news')
        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        items = self.fetch_all()

        if not items:
            logger.info("No live headlines, serving fallback news")
            items = fallback_news()
            live = False
        else:
            live = True

        ranked = rank_news(items)
        data = {
            'news': [n.to_dict() for n in ranked],
            'last_update': datetime.now(timezone.utc).isoformat(),
            'total_items': len(ranked),
        }

        # Only live headlines are cached
        if use_cache and live:
            self.cache.set(key, data, ttl_seconds=cache_config.news_ttl)
        return data
