"""
Tests for market news ranking and the event calendar.
"""
from datetime import date, datetime, timedelta, timezone

import pandas as pd
import pytest

from core.econ_calendar import (
    CalendarFetcher,
    EconomicEvent,
    _earnings_date,
    first_friday,
    static_economic_events,
)
from core.news import (
    AlphaVantageNewsProvider,
    NewsAPIProvider,
    NewsFetcher,
    NewsItem,
    NewsProvider,
    categorize_impact,
    determine_category,
    fallback_news,
    parse_yahoo_item,
    rank_news,
)
from config import calendar_config
from conftest import NOW


def headline(title, hours_ago=0, impact=None):
    return NewsItem(
        title=title,
        description="",
        url="#",
        published_at=NOW - timedelta(hours=hours_ago),
        source="Test",
        category=determine_category(title),
        impact=impact or categorize_impact(title),
    )


class TestNewsTagging:
    @pytest.mark.parametrize("title,impact,category", [
        ("FOMC holds interest rates steady", 'high', 'Federal Reserve'),
        ("CPI comes in hot", 'high', 'Economic Data'),
        ("Tesla earnings preview", 'high', 'Earnings'),
        ("Unemployment ticks up", 'medium', 'Employment'),
        ("Tesla delivery numbers due", 'medium', 'Tesla'),
        ("Stocks drift sideways", 'low', 'General Market'),
    ])
    def test_impact_and_category(self, title, impact, category):
        assert categorize_impact(title) == impact
        assert determine_category(title) == category

    def test_description_counts(self):
        assert categorize_impact("Markets move", "after the FOMC statement") == 'high'


class TestNewsRanking:
    def test_impact_then_recency(self):
        items = [
            headline("Stocks drift sideways", hours_ago=0),
            headline("CPI comes in hot", hours_ago=5),
            headline("FOMC holds interest rates steady", hours_ago=1),
            headline("Unemployment ticks up", hours_ago=0),
        ]

        ranked = [n.title for n in rank_news(items)]

        assert ranked == [
            "FOMC holds interest rates steady",
            "CPI comes in hot",
            "Unemployment ticks up",
            "Stocks drift sideways",
        ]

    def test_duplicate_titles_dropped(self):
        items = [headline("CPI comes in hot", 1), headline("CPI comes in hot", 2)]

        ranked = rank_news(items)

        assert len(ranked) == 1
        assert ranked[0].published_at == NOW - timedelta(hours=1)

    def test_fallback_news(self):
        items = fallback_news(NOW)

        assert len(items) == 4
        assert all(item.published_at < NOW for item in items)
        assert items[0].impact == 'high'


class TestYahooParsing:
    def test_flat_layout(self):
        item = parse_yahoo_item({
            'title': 'Tesla earnings beat',
            'link': 'https://example.com/a',
            'publisher': 'Reuters',
            'providerPublishTime': 1767625200,
        })

        assert item.url == 'https://example.com/a'
        assert item.source == 'Reuters'
        assert item.impact == 'high'
        assert item.published_at.tzinfo is not None

    def test_nested_layout(self):
        item = parse_yahoo_item({
            'id': 'abc',
            'content': {
                'title': 'Jobless claims fall',
                'summary': 'Unemployment filings drop',
                'pubDate': '2026-01-05T14:00:00Z',
                'canonicalUrl': {'url': 'https://example.com/b'},
                'provider': {'displayName': 'CNBC'},
            },
        })

        assert item.url == 'https://example.com/b'
        assert item.source == 'CNBC'
        assert item.published_at == datetime(2026, 1, 5, 14, tzinfo=timezone.utc)
        assert item.category == 'Employment'

    def test_missing_title_skipped(self):
        assert parse_yahoo_item({'content': {'summary': 'no title'}}) is None


class FakeNewsProvider(NewsProvider):
    def __init__(self, name, items=None, error=None, enabled=True):
        self.name = name
        self.items = items or []
        self.error = error
        self.enabled = enabled
        self.calls = 0

    def is_enabled(self):
        return self.enabled

    def fetch_news(self, symbol, limit):
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.items)


class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self.payload


class TestNewsFetcher:
    def test_sources_merged_and_deduplicated(self, cache):
        yahoo = FakeNewsProvider("yahoo", [
            headline("CPI comes in hot", hours_ago=1),
            headline("Stocks drift sideways", hours_ago=0),
        ])
        newsapi = FakeNewsProvider("newsapi", [
            headline("CPI comes in hot", hours_ago=2),
            headline("Unemployment ticks up", hours_ago=3),
        ])
        fetcher = NewsFetcher(cache, symbol="TSLA", providers=[yahoo, newsapi])

        data = fetcher.get_news()

        titles = [n['title'] for n in data['news']]
        assert titles == ["CPI comes in hot", "Unemployment ticks up", "Stocks drift sideways"]
        assert data['total_items'] == 3

    def test_failing_source_does_not_hide_others(self, cache):
        broken = FakeNewsProvider("newsapi", error=ConnectionError("timeout"))
        yahoo = FakeNewsProvider("yahoo", [headline("Tesla earnings preview")])
        disabled = FakeNewsProvider("alpha_vantage", [headline("Ignored")], enabled=False)
        fetcher = NewsFetcher(cache, symbol="TSLA", providers=[broken, yahoo, disabled])

        data = fetcher.get_news()

        assert [n['title'] for n in data['news']] == ["Tesla earnings preview"]
        assert disabled.calls == 0

    def test_live_headlines_cached(self, cache):
        provider = FakeNewsProvider("yahoo", [headline("CPI comes in hot")])
        fetcher = NewsFetcher(cache, symbol="TSLA", providers=[provider])

        first = fetcher.get_news()
        second = fetcher.get_news()

        assert first['total_items'] == 1
        assert second == first
        assert provider.calls == 1

    def test_fallback_on_error_not_cached(self, cache):
        provider = FakeNewsProvider("yahoo", error=ConnectionError("no network"))
        fetcher = NewsFetcher(cache, symbol="TSLA", providers=[provider])

        data = fetcher.get_news()
        fetcher.get_news()

        assert data['total_items'] == 4
        assert provider.calls == 2


class TestKeyedNewsProviders:
    def test_keys_gate_providers(self):
        unkeyed = NewsAPIProvider()
        unkeyed.api_key = None
        assert not unkeyed.is_enabled()
        assert NewsAPIProvider(api_key="key").is_enabled()
        assert not AlphaVantageNewsProvider(api_key="demo").is_enabled()
        assert AlphaVantageNewsProvider(api_key="key").is_enabled()

    def test_newsapi_articles(self, monkeypatch):
        payload = {'articles': [
            {'title': 'FOMC holds interest rates steady', 'description': 'No change',
             'url': 'https://example.com/n', 'publishedAt': '2026-01-05T14:00:00Z',
             'source': {'name': 'Reuters'}},
            {'title': None, 'description': 'removed article'},
        ]}
        monkeypatch.setattr("core.news.requests.get", lambda *a, **kw: FakeResponse(payload))

        items = NewsAPIProvider(api_key="key").fetch_news("TSLA", 15)

        assert len(items) == 1
        assert items[0].source == 'Reuters'
        assert items[0].impact == 'high'
        assert items[0].published_at == datetime(2026, 1, 5, 14, tzinfo=timezone.utc)

    def test_alpha_vantage_feed(self, monkeypatch):
        payload = {'feed': [
            {'title': 'Tesla delivery numbers due', 'summary': 'Quarterly deliveries',
             'url': 'https://example.com/a', 'time_published': '20260105T143000',
             'source': 'Benzinga'},
        ]}
        seen = {}

        def fake_get(url, params=None, timeout=None):
            seen.update(params)
            return FakeResponse(payload)

        monkeypatch.setattr("core.news.requests.get", fake_get)

        items = AlphaVantageNewsProvider(api_key="key").fetch_news("TSLA", 15)

        assert seen['function'] == 'NEWS_SENTIMENT'
        assert seen['tickers'] == 'TSLA'
        assert items[0].source == 'Benzinga'
        assert items[0].impact == 'medium'
        assert items[0].published_at == datetime(2026, 1, 5, 14, 30, tzinfo=timezone.utc)


class TestCalendar:
    @pytest.mark.parametrize("year,month,expected", [
        (2026, 1, date(2026, 1, 2)),
        (2026, 2, date(2026, 2, 6)),
        (2026, 5, date(2026, 5, 1)),
    ])
    def test_first_friday(self, year, month, expected):
        assert first_friday(year, month) == expected

    def test_static_events_upcoming_and_sorted(self):
        today = date(2026, 1, 5)
        events = static_economic_events(today)

        dates = [e.date for e in events]
        assert dates == sorted(dates)
        assert dates[0] >= today
        assert date(2026, 1, 2) not in dates
        assert any(e.date == date(2027, 1, 15) for e in events)

    @pytest.mark.parametrize("calendar,expected", [
        (None, None),
        ({}, None),
        ({'Earnings Date': [date(2026, 1, 28)]}, date(2026, 1, 28)),
        ({'Earnings Date': []}, None),
        (pd.DataFrame({0: [pd.Timestamp('2026-01-28')]}, index=['Earnings Date']), date(2026, 1, 28)),
        (pd.DataFrame(), None),
    ])
    def test_earnings_date(self, calendar, expected):
        assert _earnings_date(calendar) == expected

    def test_calendar_within_horizon(self, cache, monkeypatch):
        fetcher = CalendarFetcher(cache, symbol="TSLA")
        earnings = [
            EconomicEvent(date(2026, 1, 28), 'TSLA Earnings', 'high', 'Earnings', symbol='TSLA'),
        ]
        monkeypatch.setattr(fetcher, "get_earnings_events", lambda: earnings)

        data = fetcher.get_calendar(today=date(2026, 1, 5))

        assert [e['date'] for e in data['economic_events']] == ['2026-01-15', '2026-01-28']
        assert data['earnings_events'][0]['event'] == 'TSLA Earnings'
        assert data['earnings_events'][0]['date'] == '2026-01-28'

    def test_earnings_outside_horizon_dropped(self, cache, monkeypatch):
        fetcher = CalendarFetcher(cache, symbol="TSLA")
        later = [EconomicEvent(date(2026, 4, 22), 'TSLA Earnings', 'high', 'Earnings')]
        monkeypatch.setattr(fetcher, "get_earnings_events", lambda: later)

        data = fetcher.get_calendar(today=date(2026, 1, 5))

        assert data['earnings_events'] == []

    def test_calendar_cached(self, cache, monkeypatch):
        fetcher = CalendarFetcher(cache, symbol="TSLA")
        calls = []

        def earnings():
            calls.append(1)
            return []

        monkeypatch.setattr(fetcher, "get_earnings_events", earnings)

        first = fetcher.get_calendar(today=date(2026, 1, 5))
        second = fetcher.get_calendar(today=date(2026, 1, 5))

        assert second == first
        assert len(calls) == 1

    def test_fomc_dates_come_from_config(self):
        events = static_economic_events(date(2026, 12, 20), fomc_dates=['2027-01-27'])

        fomc = [e.date for e in events if e.category == 'Federal Reserve']
        assert fomc == [date(2027, 1, 27)]

    def test_warns_when_fomc_schedule_runs_out(self, cache, monkeypatch, caplog):
        monkeypatch.setattr(calendar_config, "fomc_dates", ['2026-12-09'])
        fetcher = CalendarFetcher(cache, symbol="TSLA")
        monkeypatch.setattr(fetcher, "get_earnings_events", lambda: [])

        with caplog.at_level("WARNING", logger="core.econ_calendar"):
            data = fetcher.get_calendar(today=date(2026, 12, 1), use_cache=False)

        assert "FOMC schedule ends 2026-12-09" in caplog.text
        assert '2026-12-09' in [e['date'] for e in data['economic_events']]
