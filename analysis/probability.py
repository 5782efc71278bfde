"""
Probability of profit for credit spreads.

The terminal price is treated as lognormal and the normal CDF is replaced
by a closed-form approximation:

    d   = ln(price / breakeven) / (iv * sqrt(dte / 365))
    cdf = 0.5 * (1 + sign(d) * sqrt(1 - exp(-2 * d^2 / pi)))

Two heuristic bonuses follow (time decay and distance out of the money),
and the result is clamped to [20, 85]. The ranking thresholds were tuned
against this exact output, so keep the formula as is.
"""
import dataclasses
import math
from typing import List, Optional
import logging

import numpy as np

from config import spread_config
from core.models import CreditSpreadRecommendation, SpreadType

logger = logging.getLogger(__name__)


class ProbabilityModel:
    """Estimate probability of profit for a credit spread, in percent."""

    def __init__(self, config=None):
        self.config = config or spread_config

    def resolve_iv(self, implied_vol: Optional[float]) -> float:
        """Use the given IV when usable, otherwise the configured default."""
        if implied_vol is None or not np.isfinite(implied_vol) or implied_vol <= 0:
            return self.config.default_iv
        return float(implied_vol)

    @staticmethod
    def _distance(current_price: float, breakeven: float,
                  implied_vol: float, days_to_expiration: float) -> float:
        """
        Standardized distance from price to breakeven.

        Degenerate inputs resolve to the limiting value instead of NaN.
        """
        if breakeven <= 0:
            # Put breakeven below zero: the price can never cross it
            return math.inf
        if current_price <= 0:
            return -math.inf

        log_ratio = math.log(current_price / breakeven)
        scale = implied_vol * math.sqrt(max(days_to_expiration, 0) / 365)

        if scale <= 0:
            if log_ratio == 0:
                return 0.0
            return math.copysign(math.inf, log_ratio)
        return log_ratio / scale

    @staticmethod
    def approx_cdf(d: float) -> float:
        """Erf-free normal CDF approximation."""
        if math.isinf(d):
            return 1.0 if d > 0 else 0.0
        return float(0.5 * (1 + np.sign(d) * np.sqrt(1 - np.exp(-2 * d * d / np.pi))))

    def calculate(self, current_price: float, short_strike: float,
                  credit_received: float, spread_type: SpreadType,
                  implied_vol: Optional[float] = None,
                  days_to_expiration: int = 7) -> float:
        """
        Probability of profit for one spread.

        Args:
            current_price: Current underlying price
            short_strike: Strike of the sold leg
            credit_received: Net credit per share
            spread_type: CALL (bear call) or PUT (bull put)
            implied_vol: Annualized IV as a decimal (0.30 = 30%)
            days_to_expiration: Days until expiration

        Returns:
            Probability in percent, always within [20, 85]
        """
        iv = self.resolve_iv(implied_vol)

        if spread_type == SpreadType.CALL:
            breakeven = short_strike + credit_received
        else:
            breakeven = short_strike - credit_received

        d = self._distance(current_price, breakeven, iv, days_to_expiration)
        cdf = self.approx_cdf(d)

        # Call spreads win below breakeven, put spreads above
        if spread_type == SpreadType.CALL:
            probability = (1 - cdf) * 100
        else:
            probability = cdf * 100

        # Short-dated spreads decay faster
        probability += max(0, (10 - days_to_expiration) * 2)

        if short_strike > 0:
            moneyness = current_price / short_strike
            if spread_type == SpreadType.CALL and moneyness < 0.95:
                probability += 10
            if spread_type == SpreadType.PUT and moneyness > 1.05:
                probability += 10

        if math.isnan(probability):
            probability = self.config.min_probability

        return float(np.clip(probability, self.config.min_probability,
                             self.config.max_probability))

    def score(self, spread: CreditSpreadRecommendation,
              current_price: float) -> CreditSpreadRecommendation:
        """Return a copy of spread with probability_of_profit filled in."""
        pop = self.calculate(
            current_price=current_price,
            short_strike=spread.short_strike,
            credit_received=spread.credit_received,
            spread_type=spread.spread_type,
            implied_vol=spread.average_iv,
            days_to_expiration=spread.days_to_expiration,
        )
        return dataclasses.replace(spread, probability_of_profit=pop)

    def score_candidates(self, candidates: List[CreditSpreadRecommendation],
                         current_price: float) -> List[CreditSpreadRecommendation]:
        return [self.score(c, current_price) for c in candidates]
