"""
Data model for contracts and spread recommendations.

Contracts are snapshots of one refresh cycle; recommendations are derived
from them and rebuilt every cycle. Neither is mutated after creation.
"""
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any


class SpreadType(str, Enum):
    """Side of a vertical credit spread."""
    CALL = 'call'  # Bear call spread
    PUT = 'put'    # Bull put spread


@dataclass(frozen=True)
class OptionContract:
    """One listed call or put."""
    contract_symbol: str
    option_type: str
    strike: float
    expiration: datetime
    bid: float
    ask: float
    last_price: float = 0.0
    volume: int = 0
    open_interest: int = 0
    implied_volatility: float = 0.0
    in_the_money: bool = False

    @property
    def mid(self) -> float:
        return (self.bid + self.ask) / 2

    @property
    def is_well_formed(self) -> bool:
        return self.strike > 0 and 0 <= self.bid <= self.ask

    def days_to_expiration(self, now: Optional[datetime] = None) -> int:
        """
        Days until expiration, rounding partial days up.

        A contract expiring later today counts as 1 day out.
        """
        now = now or datetime.now(timezone.utc)
        expiration = self.expiration
        if expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        seconds = (expiration - now).total_seconds()
        return math.ceil(seconds / 86400)


@dataclass(frozen=True)
class CreditSpreadRecommendation:
    """
    A vertical credit spread built from two adjacent strikes.

    max_profit is the credit; max_loss is the strike width minus the credit.
    probability_of_profit stays None until the candidate has been scored.
    """
    spread_type: SpreadType
    short_strike: float
    long_strike: float
    expiration: date
    credit_received: float
    max_profit: float
    max_loss: float
    breakeven: float
    days_to_expiration: int
    short_iv: Optional[float] = None
    long_iv: Optional[float] = None
    probability_of_profit: Optional[float] = None

    @property
    def spread_width(self) -> float:
        return abs(self.long_strike - self.short_strike)

    @property
    def risk_reward_ratio(self) -> Optional[float]:
        """max_profit / max_loss, or None when max_loss is not positive."""
        if self.max_loss <= 0:
            return None
        return self.max_profit / self.max_loss

    @property
    def average_iv(self) -> Optional[float]:
        ivs = [iv for iv in (self.short_iv, self.long_iv)
               if iv is not None and not math.isnan(iv)]
        if not ivs:
            return None
        return sum(ivs) / len(ivs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.spread_type.value,
            'short_strike': self.short_strike,
            'long_strike': self.long_strike,
            'expiration': self.expiration.isoformat(),
            'credit_received': round(self.credit_received, 4),
            'max_profit': round(self.max_profit, 4),
            'max_loss': round(self.max_loss, 4),
            'breakeven': round(self.breakeven, 4),
            'prob_of_profit': self.probability_of_profit,
            'risk_reward_ratio': self.risk_reward_ratio,
            'days_to_expiration': self.days_to_expiration,
        }


@dataclass
class RecommendationPayload:
    """Result of one recommendation refresh."""
    symbol: str
    current_price: float
    last_update: datetime
    recommendations: List[CreditSpreadRecommendation] = field(default_factory=list)
    source: str = 'live'  # live, cache, fallback

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'current_price': self.current_price,
            'last_update': self.last_update.isoformat(),
            'recommendations': [r.to_dict() for r in self.recommendations],
            'source': self.source,
        }
