"""
Spread pairing engine.

Turns a flat list of contracts into vertical credit spread candidates:
- Bear call spreads: sell a call, buy the next strike up
- Bull put spreads: sell a put, buy the next strike down

Only adjacent strikes are paired. That keeps spreads tight and close to the
money, where the chain is most liquid.
"""
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple
import logging

from config import spread_config
from core.models import OptionContract, CreditSpreadRecommendation, SpreadType

logger = logging.getLogger(__name__)


class SpreadPairingEngine:
    """
    Build unfiltered credit spread candidates from an option chain.

    Profitability is not judged here: a spread with a negative credit is
    still emitted and left for the ranker to reject.
    """

    def __init__(self, config=None):
        self.config = config or spread_config

    def filter_by_dte(self, contracts: Iterable[OptionContract], target_dte: int,
                      now: datetime) -> List[Tuple[OptionContract, int]]:
        """Keep contracts within target_dte +/- the configured window (inclusive)."""
        low = target_dte - self.config.dte_window
        high = target_dte + self.config.dte_window

        kept = []
        for contract in contracts:
            dte = contract.days_to_expiration(now)
            if low <= dte <= high:
                kept.append((contract, dte))
        return kept

    @staticmethod
    def call_side(contracts: List[Tuple[OptionContract, int]],
                  current_price: float) -> List[Tuple[OptionContract, int]]:
        """OTM calls, plus ITM-flagged calls whose strike is above the price."""
        calls = [
            (c, dte) for c, dte in contracts
            if c.option_type == 'call' and (not c.in_the_money or c.strike > current_price)
        ]
        return sorted(calls, key=lambda item: item[0].strike)

    @staticmethod
    def put_side(contracts: List[Tuple[OptionContract, int]],
                 current_price: float) -> List[Tuple[OptionContract, int]]:
        """OTM puts, plus ITM-flagged puts whose strike is below the price."""
        puts = [
            (c, dte) for c, dte in contracts
            if c.option_type == 'put' and (not c.in_the_money or c.strike < current_price)
        ]
        return sorted(puts, key=lambda item: item[0].strike, reverse=True)

    @staticmethod
    def build_spread(short_leg: OptionContract, long_leg: OptionContract,
                     spread_type: SpreadType, dte: int) -> CreditSpreadRecommendation:
        """
        Price a spread from its two legs.

        Credit is what we collect selling at the bid and buying at the ask.
        """
        credit = short_leg.bid - long_leg.ask
        width = abs(long_leg.strike - short_leg.strike)

        if spread_type == SpreadType.CALL:
            breakeven = short_leg.strike + credit
        else:
            breakeven = short_leg.strike - credit

        return CreditSpreadRecommendation(
            spread_type=spread_type,
            short_strike=short_leg.strike,
            long_strike=long_leg.strike,
            expiration=short_leg.expiration.date(),
            credit_received=credit,
            max_profit=credit,
            max_loss=width - credit,
            breakeven=breakeven,
            days_to_expiration=dte,
            short_iv=short_leg.implied_volatility,
            long_iv=long_leg.implied_volatility,
        )

    def _pair_adjacent(self, side: List[Tuple[OptionContract, int]],
                       spread_type: SpreadType) -> List[CreditSpreadRecommendation]:
        spreads = []
        for (short_leg, dte), (long_leg, _) in zip(side, side[1:]):
            if spread_type == SpreadType.CALL:
                valid = long_leg.strike > short_leg.strike
            else:
                valid = long_leg.strike < short_leg.strike

            # Duplicate strikes (e.g. two expirations) do not form a spread
            if not valid:
                continue

            spreads.append(self.build_spread(short_leg, long_leg, spread_type, dte))
        return spreads

    def find_credit_spreads(self, contracts: Iterable[OptionContract],
                            current_price: float,
                            target_dte: Optional[int] = None,
                            now: Optional[datetime] = None) -> List[CreditSpreadRecommendation]:
        """
        Build bear call and bull put candidates.

        Args:
            contracts: Calls and puts, in any order
            current_price: Current underlying price
            target_dte: Days to expiration to aim for (default from config)
            now: Reference time for DTE (default: current UTC time)

        Returns:
            Call candidates followed by put candidates, in pairing order
        """
        target_dte = target_dte if target_dte is not None else self.config.target_dte
        now = now or datetime.now(timezone.utc)

        in_window = self.filter_by_dte(contracts, target_dte, now)

        calls = self._pair_adjacent(self.call_side(in_window, current_price), SpreadType.CALL)
        puts = self._pair_adjacent(self.put_side(in_window, current_price), SpreadType.PUT)

        logger.info(f"Built {len(calls)} call and {len(puts)} put spread candidates "
                    f"from {len(in_window)} contracts near {target_dte} DTE")
        return calls + puts
