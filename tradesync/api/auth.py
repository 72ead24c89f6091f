"""
Binance API Authentication.

Implements HMAC-SHA256 request signing for Binance USER_DATA endpoints.
Signed endpoints require an API key header plus a signature over the
full query string (including timestamp and recvWindow).

Usage:
    auth = BinanceAuth(api_key="...", api_secret="...")
    headers, params = auth.sign_params({"symbol": "BTCUSDT"})
"""

import hashlib
import hmac
import os
import time
import urllib.parse
from dataclasses import dataclass
from typing import Dict, Any, Optional, Tuple


@dataclass
class BinanceCredentials:
    """API credentials for Binance authentication."""
    api_key: str
    api_secret: str

    def __post_init__(self):
        """Validate credentials format."""
        if not self.api_key:
            raise ValueError("API key is required")
        if not self.api_secret:
            raise ValueError("API secret is required")


class BinanceAuth:
    """
    Authentication handler for Binance signed endpoints.

    Signing scheme:
    1. Append timestamp (ms) and recvWindow to the query parameters
    2. URL encode the parameters in insertion order
    3. HMAC-SHA256 of the encoded string using the API secret
    4. Hex-encode and append as the `signature` parameter

    The API key travels in the X-MBX-APIKEY header.
    """

    API_KEY_HEADER = "X-MBX-APIKEY"

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        recv_window: int = 5000,
    ):
        """
        Initialize authentication handler.

        Args:
            api_key: Binance API key
            api_secret: Binance API secret
            recv_window: Milliseconds the request stays valid after timestamp
        """
        self._api_key = api_key
        self._api_secret = api_secret
        self._recv_window = recv_window

    @classmethod
    def from_credentials(
        cls,
        credentials: BinanceCredentials,
        recv_window: int = 5000,
    ) -> "BinanceAuth":
        """Create from credentials object."""
        return cls(
            api_key=credentials.api_key,
            api_secret=credentials.api_secret,
            recv_window=recv_window,
        )

    def sign(self, query_string: str) -> str:
        """Hex HMAC-SHA256 signature of a query string."""
        return hmac.new(
            self._api_secret.encode("utf-8"),
            query_string.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def sign_params(
        self,
        params: Dict[str, Any],
        timestamp: Optional[int] = None,
    ) -> Tuple[Dict[str, str], str]:
        """
        Sign request parameters.

        Args:
            params: Query parameters for the request
            timestamp: Optional explicit timestamp in ms (defaults to now)

        Returns:
            Tuple of (headers, signed_query_string)
        """
        if timestamp is None:
            timestamp = int(time.time() * 1000)

        signed = {
            **params,
            "recvWindow": self._recv_window,
            "timestamp": timestamp,
        }
        query_string = urllib.parse.urlencode(signed)
        signature = self.sign(query_string)

        headers = {self.API_KEY_HEADER: self._api_key}
        return headers, f"{query_string}&signature={signature}"


def load_credentials_from_env(prefix: str = "TRADESYNC_") -> BinanceCredentials:
    """
    Load API credentials from environment variables.

    Expects:
        TRADESYNC_API_KEY: API key
        TRADESYNC_API_SECRET: API secret

    Raises:
        ValueError: If environment variables not set
    """
    api_key = os.environ.get(f"{prefix}API_KEY", "")
    api_secret = os.environ.get(f"{prefix}API_SECRET", "")

    if not api_key or not api_secret:
        raise ValueError(
            f"{prefix}API_KEY and {prefix}API_SECRET environment variables required"
        )

    return BinanceCredentials(api_key=api_key, api_secret=api_secret)
