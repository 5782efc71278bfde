"""
Data fetcher for market data.

This module abstracts multiple data sources and provides a unified interface.
Quote providers, tried in priority order:
- Yahoo Finance (free, no API key needed)
- Alpha Vantage (free key)
- Financial Modeling Prep (free key)

Option chains come from Yahoo Finance only.
"""
import math
from typing import Optional, List, Dict, Any
import logging

import requests
import yfinance as yf
import pandas as pd

from config import data_config, cache_config
from .cache import CacheManager
from .models import OptionContract
from .options_chain import OptionsChain

logger = logging.getLogger(__name__)


class DataFetchError(Exception):
    """Custom exception for data fetch failures."""
    pass


class ChainUnavailableError(DataFetchError):
    """Raised when no usable option chain could be retrieved."""
    pass


def coerce_price(value: Any) -> Optional[float]:
    """Return value as a positive finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price


class QuoteProvider:
    """A single source of the current underlying price."""

    name = "base"

    def is_enabled(self) -> bool:
        return True

    def fetch_price(self, symbol: str) -> Optional[float]:
        raise NotImplementedError


class YahooQuoteProvider(QuoteProvider):
    name = "yahoo"

    def fetch_price(self, symbol: str) -> Optional[float]:
        info = yf.Ticker(symbol).info
        return coerce_price(info.get('currentPrice') or info.get('regularMarketPrice'))


class AlphaVantageQuoteProvider(QuoteProvider):
    name = "alpha_vantage"
    url = "https://www.alphavantage.co/query"

    def __init__(self, api_key: Optional[str] = None, timeout: int = None):
        self.api_key = api_key or data_config.alpha_vantage_api_key
        self.timeout = timeout or data_config.timeout

    def is_enabled(self) -> bool:
        return bool(self.api_key) and self.api_key != "demo"

    def fetch_price(self, symbol: str) -> Optional[float]:
        resp = requests.get(self.url, params={
            'function': 'GLOBAL_QUOTE',
            'symbol': symbol,
            'apikey': self.api_key,
        }, timeout=self.timeout)
        resp.raise_for_status()
        quote = resp.json().get('Global Quote') or {}
        return coerce_price(quote.get('05. price'))


class FMPQuoteProvider(QuoteProvider):
    name = "fmp"
    url = "https://financialmodelingprep.com/api/v3/quote/{symbol}"

    def __init__(self, api_key: Optional[str] = None, timeout: int = None):
        self.api_key = api_key or data_config.fmp_api_key
        self.timeout = timeout or data_config.timeout

    def is_enabled(self) -> bool:
        return bool(self.api_key) and self.api_key != "demo"

    def fetch_price(self, symbol: str) -> Optional[float]:
        resp = requests.get(self.url.format(symbol=symbol),
                            params={'apikey': self.api_key},
                            timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, list) or not data:
            return None
        return coerce_price(data[0].get('price'))


def default_providers() -> List[QuoteProvider]:
    return [YahooQuoteProvider(), AlphaVantageQuoteProvider(), FMPQuoteProvider()]


class DataFetcher:
    """
    Unified data fetching interface with caching and error handling.

    Design principles:
    1. Quotes never fail - fall through providers, then to a fixed price
    2. Chains fail loudly - a missing chain is never papered over here
    3. Log everything - help debug issues
    4. Cache aggressively - reduce API calls
    """

    def __init__(self, cache_manager: CacheManager,
                 providers: Optional[List[QuoteProvider]] = None,
                 symbol: Optional[str] = None):
        self.cache = cache_manager
        self.providers = providers if providers is not None else default_providers()
        self.symbol = symbol or data_config.symbol
        self.config = data_config

    def get_current_price(self, symbol: Optional[str] = None,
                          use_cache: bool = True) -> float:
        """
        Get the current underlying price.

        The first provider returning a positive price wins. If every
        provider fails, the configured fallback price is returned.
        """
        symbol = symbol or self.symbol
        key = self.cache.make_key(symbol, 'quote')

        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        for provider in self.providers:
            if not provider.is_enabled():
                continue
            try:
                price = provider.fetch_price(symbol)
            except Exception as e:
                logger.warning(f"{provider.name} price fetch failed for {symbol}: {e}")
                continue

            if price is None:
                logger.warning(f"{provider.name} returned no usable price for {symbol}")
                continue

            if use_cache:
                self.cache.set(key, price, ttl_seconds=cache_config.price_ttl)
            return price

        logger.error(f"All quote providers failed for {symbol}, "
                     f"using fallback price {self.config.fallback_price}")
        return self.config.fallback_price

    def get_options_frame(self, symbol: str) -> pd.DataFrame:
        """
        Pull the nearest expirations for a symbol as one DataFrame.

        Raises:
            ChainUnavailableError: if no expiration could be fetched
        """
        try:
            ticker = yf.Ticker(symbol)
            expirations = ticker.options
        except Exception as e:
            raise ChainUnavailableError(f"Error listing expirations for {symbol}: {e}") from e

        if not expirations:
            raise ChainUnavailableError(f"No options available for {symbol}")

        frames = []
        for expiry in expirations[:self.config.max_expirations]:
            try:
                opt = ticker.option_chain(expiry)
            except Exception as e:
                logger.warning(f"Error fetching chain for {symbol} expiry {expiry}: {e}")
                continue

            calls = opt.calls.copy()
            calls['option_type'] = 'call'
            puts = opt.puts.copy()
            puts['option_type'] = 'put'

            # Listed options stop trading at the 16:00 New York close
            close = pd.Timestamp(expiry, tz='America/New_York') + pd.Timedelta(hours=16)
            calls['expiration'] = close
            puts['expiration'] = close

            frames.extend([calls, puts])

        if not frames:
            raise ChainUnavailableError(f"No option chains could be fetched for {symbol}")

        return pd.concat(frames, ignore_index=True)

    def get_option_chain(self, symbol: Optional[str] = None,
                         use_cache: bool = True) -> Dict[str, List[OptionContract]]:
        """
        Get the option chain for a symbol.

        Returns:
            {'calls': [OptionContract, ...], 'puts': [OptionContract, ...]}

        Raises:
            ChainUnavailableError: if the chain is missing or malformed
        """
        symbol = symbol or self.symbol
        key = self.cache.make_key(symbol, 'chain',
                                  expirations=self.config.max_expirations)

        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        raw = self.get_options_frame(symbol)

        try:
            chain = OptionsChain(raw)
        except ValueError as e:
            raise ChainUnavailableError(f"Malformed options data for {symbol}: {e}") from e

        split = chain.split_by_type()
        if not split['calls'] and not split['puts']:
            raise ChainUnavailableError(f"Options chain for {symbol} has no usable contracts")

        if use_cache:
            self.cache.set(key, split, ttl_seconds=cache_config.options_ttl)

        summary = chain.summary()
        logger.info(f"Fetched options chain for {symbol}: {summary['calls']} calls, "
                    f"{summary['puts']} puts across {summary['expirations']} expirations")
        return split
