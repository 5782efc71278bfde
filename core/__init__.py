"""
Core data layer for the credit spread feed.

This module handles data fetching, caching, and normalization.
Reliable data is the foundation of everything else.
"""

from .cache import CacheManager
from .data_fetcher import DataFetcher, DataFetchError, ChainUnavailableError
from .models import OptionContract, CreditSpreadRecommendation, SpreadType, RecommendationPayload
from .options_chain import OptionsChain

__all__ = [
    "CacheManager",
    "DataFetcher",
    "DataFetchError",
    "ChainUnavailableError",
    "OptionContract",
    "CreditSpreadRecommendation",
    "SpreadType",
    "RecommendationPayload",
    "OptionsChain",
]
