"""
TradeBot App - Signal-Triggered Order Execution Engine

Parses free-text trade signals, arms price-trigger watches against a
brokerage market-data feed and, once a trigger fires, places an entry
order followed by a bracketed take-profit/stop-loss exit.
"""

__version__ = "0.1.0"
__author__ = "TradeBot Team"
