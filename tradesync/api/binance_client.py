"""
Binance REST client for account data retrieval.

This client is used for:
- Signed GET requests against USER_DATA endpoints (e.g. /api/v3/myTrades)
- Per-call retry budget with classified backoff
- Transport-level retry of failed connection attempts

Rate limiting is applied by the caller (see tradesync.api.rate_limiter),
so that a sync pass can sequence its calls explicitly.
"""

import logging
import time
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .auth import BinanceAuth, BinanceCredentials, load_credentials_from_env
from .errors import (
    BinanceAPIError,
    NetworkError,
    RetryConfig,
    RetryStrategy,
    calculate_backoff,
    classify_and_raise,
)

logger = logging.getLogger(__name__)


class BinanceClient:
    """
    Client for Binance signed REST endpoints.

    Responses are never cached: every get() reaches the exchange.

    Usage:
        client = BinanceClient.from_env()
        trades = client.get(
            "/api/v3/myTrades",
            {"symbol": "BTCUSDT", "limit": 100, "fromId": 12345},
            no_cache=True,
            retries=3,
        )
    """

    BASE_URL = "https://api.binance.com"

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: Optional[str] = None,
        timeout: int = 30,
        recv_window: int = 5000,
        connect_retries: int = 2,
        retry_config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize Binance client.

        Args:
            api_key: Binance API key
            api_secret: Binance API secret
            base_url: REST base URL (defaults to production)
            timeout: Request timeout in seconds
            recv_window: Signature validity window in ms
            connect_retries: Transport retries for connections that never
                reached the exchange
            retry_config: Backoff parameters between attempts
            sleep: Sleep function (injectable for tests)
        """
        self._auth = BinanceAuth(api_key, api_secret, recv_window=recv_window)
        self._base_url = (base_url or self.BASE_URL).rstrip("/")
        self._timeout = timeout
        self._retry_config = retry_config or RetryConfig()
        self._sleep = sleep

        # Only connection failures are retried by urllib3; a request that
        # reached the exchange counts against the caller's attempt budget.
        self._session = requests.Session()
        retry_strategy = Retry(
            total=None,
            connect=connect_retries,
            read=0,
            status=0,
            redirect=0,
            backoff_factor=0.5,
            allowed_methods=frozenset(["GET"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self._session.mount("https://", adapter)

    @classmethod
    def from_env(cls, **kwargs) -> "BinanceClient":
        """
        Create client from environment variables.

        Expects TRADESYNC_API_KEY and TRADESYNC_API_SECRET.
        """
        credentials = load_credentials_from_env()
        return cls.from_credentials(credentials, **kwargs)

    @classmethod
    def from_credentials(
        cls,
        credentials: BinanceCredentials,
        **kwargs,
    ) -> "BinanceClient":
        """Create client from credentials object."""
        return cls(
            api_key=credentials.api_key,
            api_secret=credentials.api_secret,
            **kwargs,
        )

    def _request_once(self, endpoint: str, params: Dict[str, Any]) -> Any:
        """
        Make a single signed GET request.

        Raises:
            BinanceAPIError: On API error responses
            NetworkError: On transport failures
        """
        headers, query_string = self._auth.sign_params(params)
        url = f"{self._base_url}{endpoint}?{query_string}"

        try:
            response = self._session.get(url, headers=headers, timeout=self._timeout)
        except requests.exceptions.Timeout:
            raise NetworkError(-1007, "Request timeout")
        except requests.exceptions.ConnectionError as e:
            raise NetworkError(-1001, f"Connection error: {e}")

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            code = int(body.get("code", -1000)) if isinstance(body, dict) else -1000
            message = body.get("msg", response.reason) if isinstance(body, dict) else response.reason

            try:
                classify_and_raise(code, message, body, http_status=response.status_code)
            except BinanceAPIError as e:
                retry_after = response.headers.get("Retry-After")
                if retry_after:
                    e.error_info = replace(e.error_info, retry_after=float(retry_after))
                raise

        return response.json()

    def get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        no_cache: bool = False,
        allow_stale: bool = False,
        retries: int = 1,
    ) -> Any:
        """
        Signed GET with a per-call attempt budget.

        Args:
            endpoint: API path (e.g. "/api/v3/myTrades")
            params: Query parameters (signature params are added here)
            no_cache: Accepted for call-site clarity; this client has no cache
            allow_stale: Accepted for call-site clarity; there is never a
                stale response to fall back to
            retries: Total attempts for this call (minimum one)

        Returns:
            Decoded JSON response

        Raises:
            BinanceAPIError: When every attempt failed
        """
        params = dict(params or {})
        attempts = max(1, retries)
        last_error: Optional[BinanceAPIError] = None

        for attempt in range(attempts):
            try:
                return self._request_once(endpoint, params)

            except BinanceAPIError as e:
                last_error = e
                if not e.should_retry or attempt >= attempts - 1:
                    break

                strategy = e.error_info.retry_strategy
                if isinstance(e, NetworkError):
                    strategy = RetryStrategy.EXPONENTIAL_BACKOFF

                backoff = calculate_backoff(
                    attempt,
                    strategy,
                    self._retry_config,
                    e.error_info.retry_after,
                )
                logger.warning(
                    f"Retry {attempt + 1}/{attempts - 1} for {endpoint}: {e}, "
                    f"waiting {backoff:.1f}s"
                )
                self._sleep(backoff)

        raise last_error

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
