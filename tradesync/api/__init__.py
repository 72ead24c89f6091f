"""
Binance API Module.

Provides the pieces needed to read the signed account trade list:
- Authentication (HMAC-SHA256 query signing)
- REST client with retry and backoff
- Request weight limiting with a fixed per-call delay
- Error classification

Usage:
    from tradesync.api import BinanceClient

    client = BinanceClient.from_env()  # Uses TRADESYNC_API_KEY, TRADESYNC_API_SECRET
    trades = client.get(
        "/api/v3/myTrades",
        {"limit": 100, "symbol": "BTCUSDT", "startTime": 1483228800},
        no_cache=True,
        retries=3,
    )
"""

# Authentication
from .auth import (
    BinanceAuth,
    BinanceCredentials,
    load_credentials_from_env,
)

# Rate limiting
from .rate_limiter import (
    RateLimitConfig,
    SyncRateLimiter,
)

# Error handling
from .errors import (
    BinanceAPIError,
    RateLimitError,
    AuthenticationError,
    InvalidSymbolError,
    TimestampError,
    NetworkError,
    ErrorInfo,
    ErrorCategory,
    RetryConfig,
    RetryStrategy,
    calculate_backoff,
    classify_and_raise,
)

# REST client
from .binance_client import BinanceClient


__all__ = [
    # Authentication
    "BinanceAuth",
    "BinanceCredentials",
    "load_credentials_from_env",
    # Rate limiting
    "RateLimitConfig",
    "SyncRateLimiter",
    # Errors
    "BinanceAPIError",
    "RateLimitError",
    "AuthenticationError",
    "InvalidSymbolError",
    "TimestampError",
    "NetworkError",
    "ErrorInfo",
    "ErrorCategory",
    "RetryConfig",
    "RetryStrategy",
    "calculate_backoff",
    "classify_and_raise",
    # Client
    "BinanceClient",
]
