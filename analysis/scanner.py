"""
Credit spread scanner - the full recommendation refresh.

This is where we put it all together:
1. Fetch the current price
2. Fetch the option chain
3. Pair adjacent strikes into spreads
4. Score each spread's probability of profit
5. Filter and rank
6. Cache the payload
"""
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, List, Optional
import logging

from config import data_config, cache_config
from core.cache import CacheManager
from core.data_fetcher import DataFetcher, DataFetchError
from core.models import CreditSpreadRecommendation, RecommendationPayload, SpreadType
from .spreads import SpreadPairingEngine
from .probability import ProbabilityModel
from .ranker import RecommendationRanker

logger = logging.getLogger(__name__)

FALLBACK_PRICE = 250.75


def fallback_recommendations(now: Optional[datetime] = None) -> List[CreditSpreadRecommendation]:
    """Static example spreads served when no chain is available."""
    now = now or datetime.now(timezone.utc)
    expiration = (now + timedelta(days=7)).date()

    return [
        CreditSpreadRecommendation(
            spread_type=SpreadType.CALL,
            short_strike=260.0,
            long_strike=265.0,
            expiration=expiration,
            credit_received=1.25,
            max_profit=1.25,
            max_loss=3.75,
            breakeven=261.25,
            days_to_expiration=7,
            probability_of_profit=68.0,
        ),
        CreditSpreadRecommendation(
            spread_type=SpreadType.PUT,
            short_strike=240.0,
            long_strike=235.0,
            expiration=expiration,
            credit_received=1.10,
            max_profit=1.10,
            max_loss=3.90,
            breakeven=238.90,
            days_to_expiration=7,
            probability_of_profit=72.0,
        ),
    ]


class CreditSpreadScanner:
    """
    Produce ranked credit spread recommendations for one underlying.

    The scanner never raises for data problems. When the chain cannot be
    fetched it serves the last payload it built, or the static examples.
    """

    def __init__(self, data_fetcher: DataFetcher,
                 cache_manager: Optional[CacheManager] = None,
                 engine: Optional[SpreadPairingEngine] = None,
                 model: Optional[ProbabilityModel] = None,
                 ranker: Optional[RecommendationRanker] = None,
                 symbol: Optional[str] = None):
        self.fetcher = data_fetcher
        self.cache = cache_manager or data_fetcher.cache
        self.engine = engine or SpreadPairingEngine()
        self.model = model or ProbabilityModel()
        self.ranker = ranker or RecommendationRanker()
        self.symbol = symbol or data_fetcher.symbol or data_config.symbol
        self._last_good: Optional[RecommendationPayload] = None

    @property
    def cache_key(self) -> str:
        return self.cache.make_key(self.symbol, 'spreads')

    def build_recommendations(self, current_price: float,
                              chain: Dict[str, list],
                              now: Optional[datetime] = None) -> List[CreditSpreadRecommendation]:
        """Pair, score and rank a chain that has already been fetched."""
        contracts = list(chain.get('calls', [])) + list(chain.get('puts', []))
        candidates = self.engine.find_credit_spreads(contracts, current_price, now=now)
        scored = self.model.score_candidates(candidates, current_price)
        return self.ranker.rank(scored)

    def scan(self, use_cache: bool = True) -> RecommendationPayload:
        """
        Run one refresh.

        Returns:
            A payload whose source is 'live', 'cache' or 'fallback'
        """
        if use_cache:
            cached = self.cache.get(self.cache_key)
            if cached is not None:
                return replace(cached, source='cache')

        current_price = self.fetcher.get_current_price(self.symbol)

        try:
            chain = self.fetcher.get_option_chain(self.symbol)
            recommendations = self.build_recommendations(current_price, chain)
        except DataFetchError as e:
            logger.warning(f"No options data for {self.symbol}: {e}")
            return self._serve_stale()
        except Exception as e:
            logger.error(f"Error building recommendations for {self.symbol}: {e}")
            return self._serve_stale()

        payload = RecommendationPayload(
            symbol=self.symbol,
            current_price=current_price,
            last_update=datetime.now(timezone.utc),
            recommendations=recommendations,
        )
        self._last_good = payload

        if use_cache:
            self.cache.set(self.cache_key, payload, ttl_seconds=cache_config.options_ttl)

        logger.info(f"Found {len(recommendations)} credit spreads for {self.symbol} "
                    f"at ${current_price:.2f}")
        return payload

    def _serve_stale(self) -> RecommendationPayload:
        if self._last_good is not None:
            logger.info(f"Serving last good recommendations from "
                        f"{self._last_good.last_update.isoformat()}")
            return RecommendationPayload(
                symbol=self._last_good.symbol,
                current_price=self._last_good.current_price,
                last_update=self._last_good.last_update,
                recommendations=list(self._last_good.recommendations),
                source='cache',
            )

        logger.info("Serving fallback recommendations")
        return RecommendationPayload(
            symbol=self.symbol,
            current_price=FALLBACK_PRICE,
            last_update=datetime.now(timezone.utc),
            recommendations=fallback_recommendations(),
            source='fallback',
        )

    def get_recommendations(self, use_cache: bool = True) -> Dict[str, Any]:
        """
        Response-shaped recommendations.

        Returns:
            {'success': True, 'data': {...}, 'cached': bool}
        """
        payload = self.scan(use_cache=use_cache)
        return {
            'success': True,
            'data': payload.to_dict(),
            'cached': payload.source == 'cache',
        }

    def get_price_snapshot(self) -> Dict[str, Any]:
        """Current price for the price topic."""
        return {
            'symbol': self.symbol,
            'price': self.fetcher.get_current_price(self.symbol),
            'timestamp': datetime.now(timezone.utc).isoformat(),
        }
