"""
Recommendation ranker.

Applies the risk policy to scored candidates and orders the survivors by
risk/reward, best first.
"""
from typing import List
import logging

from config import spread_config
from core.models import CreditSpreadRecommendation

logger = logging.getLogger(__name__)


class RecommendationRanker:
    """
    Filter and rank credit spread candidates.

    A candidate survives when:
    1. Credit received is above the minimum
    2. Risk/reward (max profit / max loss) is defined and above the minimum
    3. Days to expiration is inside the allowed range
    """

    def __init__(self, config=None):
        self.config = config or spread_config

    def passes_policy(self, spread: CreditSpreadRecommendation) -> bool:
        if spread.credit_received <= self.config.min_credit:
            return False

        ratio = spread.risk_reward_ratio
        if ratio is None or ratio <= self.config.min_risk_reward:
            return False

        return self.config.min_dte <= spread.days_to_expiration <= self.config.max_dte

    def rank(self, candidates: List[CreditSpreadRecommendation],
             top_n: int = None) -> List[CreditSpreadRecommendation]:
        """
        Get the top N candidates that pass the risk policy.

        Ties keep their pairing order (sorted() is stable).
        """
        top_n = top_n or self.config.top_n

        survivors = [c for c in candidates if self.passes_policy(c)]
        ranked = sorted(survivors, key=lambda c: c.risk_reward_ratio, reverse=True)

        logger.info(f"{len(survivors)} of {len(candidates)} candidates passed the risk policy")
        return ranked[:top_n]
