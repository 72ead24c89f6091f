"""Incremental Binance trade history sync."""

__version__ = "0.1.0"
