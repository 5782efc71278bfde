"""
Pytest configuration and shared fixtures for the credit spread feed tests.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Flat layout: make `core`, `analysis`, `feed` and `config` importable
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.cache import CacheManager
from core.models import OptionContract, CreditSpreadRecommendation, SpreadType

NOW = datetime(2026, 1, 5, 15, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(tmp_path, clock):
    manager = CacheManager(cache_dir=tmp_path / "cache", clock=clock)
    yield manager
    manager.close()


def make_contract(
    strike: float,
    bid: float,
    ask: float,
    option_type: str = "call",
    dte: float = 7,
    itm: bool = False,
    iv: float = 0.30,
    now: datetime = NOW,
) -> OptionContract:
    """
    Create an OptionContract expiring `dte` days after `now`.

    Usage:
        contract = make_contract(260, bid=1.50, ask=1.60)
    """
    kind = "C" if option_type == "call" else "P"
    return OptionContract(
        contract_symbol=f"TSLA260112{kind}{int(strike * 1000):08d}",
        option_type=option_type,
        strike=strike,
        expiration=now + timedelta(days=dte),
        bid=bid,
        ask=ask,
        last_price=(bid + ask) / 2,
        volume=100,
        open_interest=500,
        implied_volatility=iv,
        in_the_money=itm,
    )


def make_spread(
    credit: float,
    width: float = 5.0,
    dte: int = 7,
    short_strike: float = 260.0,
    spread_type: SpreadType = SpreadType.CALL,
) -> CreditSpreadRecommendation:
    """Create a spread that satisfies the max profit / max loss invariants."""
    if spread_type == SpreadType.CALL:
        long_strike = short_strike + width
        breakeven = short_strike + credit
    else:
        long_strike = short_strike - width
        breakeven = short_strike - credit

    return CreditSpreadRecommendation(
        spread_type=spread_type,
        short_strike=short_strike,
        long_strike=long_strike,
        expiration=(NOW + timedelta(days=dte)).date(),
        credit_received=credit,
        max_profit=credit,
        max_loss=width - credit,
        breakeven=breakeven,
        days_to_expiration=dte,
        short_iv=0.30,
        long_iv=0.30,
    )
