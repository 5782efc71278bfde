#!/usr/bin/env python3
"""
Credit Spread Feed - Demo

This script demonstrates the complete workflow:
1. Build the cache and data layer
2. Run one recommendation refresh
3. Start the live feed
4. Subscribe to topics and print updates as they arrive

Run this to verify everything works.
"""
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from core.cache import CacheManager
from core.data_fetcher import DataFetcher
from analysis.scanner import CreditSpreadScanner
from feed.topics import create_feed, yahoo_probe
from config import data_config

import logging

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def print_recommendations(data: dict) -> None:
    recs = data['recommendations']
    print(f"\n  {data['symbol']} @ ${data['current_price']:.2f} "
          f"({data['source']}, {data['last_update']})")

    if not recs:
        print("  ❌ No spreads passed the risk policy")
        return

    for rec in recs[:5]:
        label = "BEAR CALL" if rec['type'] == 'call' else "BULL PUT"
        print(f"  {label} {rec['short_strike']:.1f}/{rec['long_strike']:.1f} "
              f"exp {rec['expiration']} ({rec['days_to_expiration']}d)")
        print(f"    Credit: ${rec['credit_received']:.2f} | Max loss: ${rec['max_loss']:.2f} | "
              f"R/R: {rec['risk_reward_ratio']:.2f} | PoP: {rec['prob_of_profit']:.0f}%")


async def run_feed(symbol: str, cache: CacheManager, seconds: float) -> None:
    hub = create_feed(cache, symbol=symbol, probe=yahoo_probe(symbol))

    connected = await hub.start()
    print(f"  {'✅' if connected else '❌'} Feed status: {hub.get_connection_status().value}")

    unsubscribes = [
        hub.subscribe('price', lambda d: print(f"  💲 {d['symbol']} ${d['price']:.2f}")),
        hub.subscribe('spreads', print_recommendations),
        hub.subscribe('news', lambda d: print(f"  📰 {d['total_items']} headlines, "
                                              f"top: {d['news'][0]['title'] if d['news'] else '-'}")),
    ]

    try:
        await asyncio.sleep(seconds)
    finally:
        for unsubscribe in unsubscribes:
            unsubscribe()
        await hub.stop()


def main():
    print("""
╔══════════════════════════════════════════════════════════╗
║     CREDIT SPREAD FEED - DEMO                            ║
╚══════════════════════════════════════════════════════════╝
    """)

    SYMBOL = data_config.symbol
    RUN_SECONDS = 20

    print(f"\n📊 SYMBOL: {SYMBOL}")
    print("-" * 60)

    # Step 1: Initialize components
    print("\n[1/3] Initializing system...")
    cache = CacheManager()
    fetcher = DataFetcher(cache, symbol=SYMBOL)
    scanner = CreditSpreadScanner(fetcher)

    # Step 2: One refresh
    print("[2/3] Building recommendations...")
    response = scanner.get_recommendations()
    print_recommendations(response['data'])

    # Step 3: Live feed
    print(f"\n[3/3] Streaming for {RUN_SECONDS}s...")
    try:
        asyncio.run(run_feed(SYMBOL, cache, RUN_SECONDS))
    finally:
        cache.close()

    print("\n" + "=" * 60)
    print("DEMO COMPLETE")
    print("=" * 60)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\n\nDemo interrupted by user")
    except Exception as e:
        logger.error(f"Demo failed: {e}", exc_info=True)
        print(f"\n❌ Error: {e}")
        print("\nTroubleshooting:")
        print("  • Check internet connection")
        print("  • Verify dependencies are installed")
        print("  • Try a different symbol (set SPREAD_FEED_SYMBOL)")
