#!/usr/bin/env python3
"""
Basic Usage Example - TradeBot Signal Execution Engine

This script runs the full pipeline offline against a simulated broker.
It shows how to:
- Configure logging and load configuration
- Feed message text to the engine
- Watch a trigger fire and the entry/exit orders go out
- Inspect the audit trail and trade records

Run: python examples/basic_usage.py
"""

import itertools
import tempfile
import threading
import time
from decimal import Decimal
from pathlib import Path

from tradebot_app.broker.models import Quote
from tradebot_app.config.defaults import get_default_config
from tradebot_app.config.settings import CachedSettingsProvider, SettingsSource, TradingSettings
from tradebot_app.engine import TradingEngine
from tradebot_app.execution.journal import TradeJournal
from tradebot_app.logging.config import configure_logging
from tradebot_app.persistence.trade_store import TradeStore

FINAL_EVENTS = ("EXIT_PLACED", "SKIPPED", "ERROR")


class SimulatedBroker:
    """Broker double whose last trade price climbs a cent per read."""

    def __init__(self, start: str):
        self._prices = (Decimal(start) + Decimal("0.01") * i for i in itertools.count())
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self.last_price = Decimal(start)

    def ping(self):
        return True

    def get_last_trade_price(self, symbol):
        with self._lock:
            self.last_price = next(self._prices)
            return self.last_price

    def get_last_quote(self, symbol):
        return Quote(bid=self.last_price - Decimal("0.01"), ask=self.last_price + Decimal("0.01"))

    def place_marketable_limit_buy(self, symbol, qty, limit_price, extended_hours):
        print(f"  -> BUY {qty} {symbol} limit {limit_price:.2f} (extended_hours={extended_hours})")
        return {"id": f"order-{next(self._ids)}", "status": "filled"}

    def get_order_avg_fill_price(self, order_id):
        return self.last_price

    def place_bracket_exit(self, symbol, qty, take_profit_price, stop_price):
        print(f"  -> OCO SELL {qty} {symbol} TP {take_profit_price:.2f} SL {stop_price:.2f}")
        return {"id": f"order-{next(self._ids)}", "status": "accepted"}

    def list_orders(self, status, side, since=None, limit=100):
        return []


class FixedSettings(SettingsSource):
    def load(self):
        return TradingSettings(fixed_budget=Decimal("200.00"), take_profit_percent=Decimal("5.00"))


def main():
    config = get_default_config()
    configure_logging(level="WARNING", format_json=config.logging.format_json)

    with tempfile.TemporaryDirectory() as tmp:
        store = TradeStore(str(Path(tmp) / "tradebot.db"))
        journal = TradeJournal(audit_sink=store, trade_records=store)
        settings = CachedSettingsProvider(FixedSettings(), ttl_seconds=config.settings.cache_ttl_seconds)
        engine = TradingEngine(SimulatedBroker("6.30"), settings, journal, config=config)
        engine.start()

        message = "ASTC\nبتجاوز ٦٫٣٦\nوقف ٥٫٧٨\nاهداف ٦٫٨٦ ٧٫٤٨"
        print("📨 Incoming message:")
        print(message)

        handle = engine.on_text(message)
        print(f"\n🎯 Armed {handle.key}, waiting for the trigger...")

        event = handle.wait(timeout=30)
        if event is None:
            print("⌛ Trigger did not fire")
        else:
            print(f"🔥 Fired at {event.last_price}")
            # Execution runs on a worker thread after the watch fires
            for _ in range(50):
                if store.get_events("ASTC", limit=1)[0].event_type in FINAL_EVENTS:
                    break
                time.sleep(0.1)

        print("\n📜 Audit trail:")
        for stored in reversed(store.get_events("ASTC")):
            print(f"  [{stored.event_type}] {stored.message}")

        print("\n📒 Trade records:")
        for trade in store.get_trades("ASTC"):
            print(f"  {trade.symbol} state={trade.state} entry={trade.entry_price} qty={trade.quantity}")

        engine.shutdown()


if __name__ == "__main__":
    main()
