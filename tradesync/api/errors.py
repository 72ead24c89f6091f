"""
Binance API Error Handling.

Error handling for Binance REST responses including:
- Error classification
- Retry strategy selection and backoff calculation

Binance Error Codes Reference:
- -1003 TOO_MANY_REQUESTS - Request weight exceeded (HTTP 429 / 418 ban)
- -1021 INVALID_TIMESTAMP - Timestamp outside recvWindow
- -1022 INVALID_SIGNATURE - Signature mismatch
- -1121 BAD_SYMBOL - Invalid symbol
- -2014 BAD_API_KEY_FMT - API key format invalid
- -2015 REJECTED_MBX_KEY - Invalid key, IP or permissions
"""

import logging
import random
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Categories of Binance API errors."""
    RATE_LIMIT = "rate_limit"
    AUTHENTICATION = "authentication"
    TIMESTAMP = "timestamp"
    INVALID_SYMBOL = "invalid_symbol"
    INVALID_PARAMETER = "invalid_parameter"
    NETWORK = "network"
    SERVER = "server"
    UNKNOWN = "unknown"


class RetryStrategy(Enum):
    """Retry strategies for different error types."""
    NO_RETRY = auto()
    IMMEDIATE = auto()
    LINEAR_BACKOFF = auto()
    EXPONENTIAL_BACKOFF = auto()
    RATE_LIMIT_WAIT = auto()


@dataclass
class ErrorInfo:
    """Detailed information about an error."""
    code: int
    message: str
    category: ErrorCategory
    retry_strategy: RetryStrategy
    retry_after: Optional[float] = None  # Suggested wait time


ERROR_MAPPINGS: Dict[int, ErrorInfo] = {
    -1003: ErrorInfo(
        code=-1003,
        message="Too many requests",
        category=ErrorCategory.RATE_LIMIT,
        retry_strategy=RetryStrategy.RATE_LIMIT_WAIT,
        retry_after=60.0,
    ),
    -1021: ErrorInfo(
        code=-1021,
        message="Timestamp outside of recvWindow",
        category=ErrorCategory.TIMESTAMP,
        retry_strategy=RetryStrategy.IMMEDIATE,
    ),
    -1022: ErrorInfo(
        code=-1022,
        message="Invalid request signature",
        category=ErrorCategory.AUTHENTICATION,
        retry_strategy=RetryStrategy.NO_RETRY,
    ),
    -1100: ErrorInfo(
        code=-1100,
        message="Illegal characters in parameter",
        category=ErrorCategory.INVALID_PARAMETER,
        retry_strategy=RetryStrategy.NO_RETRY,
    ),
    -1121: ErrorInfo(
        code=-1121,
        message="Invalid symbol",
        category=ErrorCategory.INVALID_SYMBOL,
        retry_strategy=RetryStrategy.NO_RETRY,
    ),
    -2014: ErrorInfo(
        code=-2014,
        message="API key format invalid",
        category=ErrorCategory.AUTHENTICATION,
        retry_strategy=RetryStrategy.NO_RETRY,
    ),
    -2015: ErrorInfo(
        code=-2015,
        message="Invalid API key, IP, or permissions",
        category=ErrorCategory.AUTHENTICATION,
        retry_strategy=RetryStrategy.NO_RETRY,
    ),
}

# HTTP status codes that carry their own meaning regardless of body
HTTP_STATUS_MAPPINGS: Dict[int, ErrorInfo] = {
    418: ErrorInfo(
        code=-1003,
        message="IP auto-banned for repeated rate limit violations",
        category=ErrorCategory.RATE_LIMIT,
        retry_strategy=RetryStrategy.NO_RETRY,
    ),
    429: ERROR_MAPPINGS[-1003],
}


class BinanceAPIError(Exception):
    """Base exception for Binance API errors."""

    def __init__(
        self,
        code: int,
        message: str = "",
        response: Optional[Dict[str, Any]] = None,
        error_info: Optional[ErrorInfo] = None,
    ):
        self.code = code
        self.response = response
        self.error_info = error_info or self._classify_error(code, message)

        super().__init__(f"Binance API error {code}: {message or self.error_info.message}")

    @staticmethod
    def _classify_error(code: int, message: str) -> ErrorInfo:
        """Classify an error code into ErrorInfo."""
        if code in ERROR_MAPPINGS:
            return ERROR_MAPPINGS[code]

        # -1000..-1099 are general server or network issues
        if -1099 <= code <= -1000:
            return ErrorInfo(
                code=code,
                message=message or "Server or network error",
                category=ErrorCategory.SERVER,
                retry_strategy=RetryStrategy.EXPONENTIAL_BACKOFF,
                retry_after=1.0,
            )

        return ErrorInfo(
            code=code,
            message=message or f"Unknown error: {code}",
            category=ErrorCategory.UNKNOWN,
            retry_strategy=RetryStrategy.EXPONENTIAL_BACKOFF,
            retry_after=5.0,
        )

    @property
    def should_retry(self) -> bool:
        """Check if request should be retried."""
        return self.error_info.retry_strategy != RetryStrategy.NO_RETRY

    @property
    def category(self) -> ErrorCategory:
        """Get error category."""
        return self.error_info.category


class RateLimitError(BinanceAPIError):
    """Request weight exceeded or IP banned."""
    pass


class AuthenticationError(BinanceAPIError):
    """Invalid key, signature or permissions."""
    pass


class InvalidSymbolError(BinanceAPIError):
    """Symbol unknown to the exchange."""
    pass


class TimestampError(BinanceAPIError):
    """Request timestamp outside the receive window."""
    pass


class NetworkError(BinanceAPIError):
    """Transport-level failure (timeout, connection reset)."""
    pass


def classify_and_raise(
    code: int,
    message: str = "",
    response: Optional[Dict[str, Any]] = None,
    http_status: Optional[int] = None,
) -> None:
    """
    Classify an error and raise the matching exception type.

    Args:
        code: Binance error code from the response body
        message: Error message from the response body
        response: Full decoded response body
        http_status: HTTP status code, if available

    Raises:
        Appropriate BinanceAPIError subclass
    """
    error_info = HTTP_STATUS_MAPPINGS.get(http_status) or ERROR_MAPPINGS.get(code)

    if error_info:
        if error_info.category == ErrorCategory.RATE_LIMIT:
            raise RateLimitError(code, message, response, error_info)
        elif error_info.category == ErrorCategory.AUTHENTICATION:
            raise AuthenticationError(code, message, response, error_info)
        elif error_info.category == ErrorCategory.INVALID_SYMBOL:
            raise InvalidSymbolError(code, message, response, error_info)
        elif error_info.category == ErrorCategory.TIMESTAMP:
            raise TimestampError(code, message, response, error_info)

    raise BinanceAPIError(code, message, response)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True


def calculate_backoff(
    attempt: int,
    strategy: RetryStrategy,
    config: RetryConfig,
    retry_after: Optional[float] = None,
) -> float:
    """
    Calculate backoff time for retry.

    Args:
        attempt: Current attempt number (0-indexed)
        strategy: Retry strategy to use
        config: Retry configuration
        retry_after: Explicit wait time from error or Retry-After header

    Returns:
        Seconds to wait before retry
    """
    if strategy == RetryStrategy.NO_RETRY:
        return 0.0

    if strategy == RetryStrategy.RATE_LIMIT_WAIT and retry_after:
        delay = retry_after
    elif strategy == RetryStrategy.LINEAR_BACKOFF:
        delay = config.base_delay
    elif strategy == RetryStrategy.EXPONENTIAL_BACKOFF:
        delay = config.base_delay * (config.exponential_base ** attempt)
    elif strategy == RetryStrategy.IMMEDIATE:
        delay = 0.1
    else:
        delay = config.base_delay

    delay = min(delay, config.max_delay)

    # Add jitter (up to 25% of delay)
    if config.jitter and delay > 0:
        delay += delay * 0.25 * random.random()

    return delay
