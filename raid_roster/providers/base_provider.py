import time
from abc import ABC
from typing import Any, Dict, Optional, Tuple

import httpx
from loguru import logger
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from raid_roster.config.settings import settings

# Define common HTTP status codes that warrant a retry
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

# Refresh tokens this many seconds before the provider says they expire
TOKEN_EXPIRY_MARGIN = 300


class ProviderError(Exception):
    """Custom exception for provider-related errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderUnavailable(ProviderError):
    """The provider cannot serve requests right now (network, credentials, outage)."""

    pass


class AuthenticationError(ProviderUnavailable):
    """Exception raised for authentication failures (401, 403)."""

    pass


class RateLimitError(ProviderError):
    """Exception raised for rate limit errors (429)."""

    pass


class RetryableStatusError(ProviderError):
    """A transient HTTP status worth another attempt."""

    pass


class BaseProvider(ABC):
    """Abstract base class for external data providers."""

    name: str = "unknown"
    token_url: Optional[str] = None

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        credentials: Optional[Tuple[Optional[str], Optional[str]]] = None,
    ):
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout),
            follow_redirects=True,
            headers={
                "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
            },
        )
        self.client_id, self.client_secret = credentials or (None, None)
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0.0

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def _get_access_token(self) -> str:
        """Client-credentials OAuth token, cached in memory until near expiry."""
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        if not self.token_url or not self.has_credentials:
            logger.warning(f"{self.name} API credentials are not configured.")
            raise ProviderUnavailable(f"Missing {self.name} API credentials")

        logger.info(f"Fetching new {self.name} API access token...")
        try:
            response = await self._make_request(
                "POST",
                self.token_url,
                data={"grant_type": "client_credentials"},
                auth=(self.client_id, self.client_secret),
            )
        except httpx.TransportError as e:
            raise ProviderUnavailable(f"{self.name} token endpoint unreachable: {e}") from e
        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError(f"{self.name} token response is not JSON") from e

        token = payload.get("access_token")
        if not token:
            raise AuthenticationError(f"No access token in {self.name} response")

        expires_in = int(payload.get("expires_in") or 3600)
        self._access_token = token
        self._token_expires_at = time.monotonic() + max(
            expires_in - TOKEN_EXPIRY_MARGIN, 60
        )
        logger.success(f"{self.name} API access token obtained")
        return token

    async def _auth_headers(self) -> Dict[str, str]:
        token = await self._get_access_token()
        return {"Authorization": f"Bearer {token}"}

    @retry(
        stop=stop_after_attempt(4),  # 3 retries (4 total attempts)
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(
            (httpx.TransportError, RetryableStatusError, RateLimitError)
        ),
        reraise=True,
    )
    async def _make_request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> httpx.Response:
        """Makes an asynchronous HTTP request with retry logic."""
        logger.bind(params=params, has_json=json_data is not None).debug(f"{method} {url}")
        try:
            response = await self.client.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json_data,
                data=data,
                **kwargs,
            )
        except httpx.TransportError as e:
            # Network errors, timeouts etc. - retryable
            logger.warning(f"Request error for {self.name}, retrying: {e}")
            raise

        if response.status_code in {401, 403}:
            logger.warning(
                f"Authentication error ({response.status_code}) for {self.name} at {url}. Check credentials."
            )
            # Stale token; fetch a fresh one next time
            self._access_token = None
            raise AuthenticationError(
                f"Authentication failed ({response.status_code}) for {self.name}"
            )

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            logger.warning(
                f"Rate limit hit (429) for {self.name} at {url}. Retry-After: {retry_after}"
            )
            raise RateLimitError(f"Rate limited by {self.name}")

        if response.status_code in RETRYABLE_STATUS_CODES:
            logger.warning(
                f"Retrying request for {self.name} due to status {response.status_code}"
            )
            raise RetryableStatusError(f"HTTP {response.status_code} from {self.name}")

        if response.is_error:
            logger.debug(f"HTTP {response.status_code} from {self.name} for {url}")
            raise ProviderError(
                f"HTTP error: {response.status_code}", status_code=response.status_code
            )

        logger.debug(f"Request successful: {response.status_code} for {url}")
        return response

    async def _get_json(
        self, url: str, params: Optional[Dict[str, Any]] = None, authorized: bool = True
    ) -> Optional[Dict[str, Any]]:
        """GET a JSON document; None when the resource does not exist (404)."""
        headers = await self._auth_headers() if authorized else None
        try:
            response = await self._make_request("GET", url, headers=headers, params=params)
        except httpx.TransportError as e:
            raise ProviderUnavailable(f"{self.name} is unreachable: {e}") from e
        except ProviderError as e:
            if e.status_code == 404:
                logger.debug(f"{self.name}: nothing at {url}")
                return None
            raise
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"{self.name} returned invalid JSON for {url}") from e

    async def close(self):
        """Closes the underlying HTTP client."""
        await self.client.aclose()
        logger.info(f"Closed HTTP client for {self.name}")
