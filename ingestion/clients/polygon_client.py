"""
Polygon.io REST API Client
Base client with shared rate limiting, connection pooling and tagged errors.
"""
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from common.config.settings import HTTPConfig, PolygonConfig
from common.errors import BackfillConfigError, FatalFetchError, NoDataError, TransientFetchError
from ingestion.pipeline.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

TRANSIENT_STATUSES = frozenset({408, 425, 429, 500, 502, 503, 504})


class PolygonClient:
    """
    Polygon.io REST API base client.

    Features:
    - HTTP connection pooling sized to the source's connection ceiling
    - One RateLimiter shared by every thread that issues requests
    - HTTP outcomes mapped onto NoData / Transient / Fatal errors

    Status retries are left to the caller's RetryPolicy; the adapter only
    retries failed connection attempts.
    """

    BASE_URL = "https://api.polygon.io"

    def __init__(self, api_key: str, rate_limiter: Optional[RateLimiter] = None,
                 rate_limit: int = 100, timeout: int = 30, max_connections: int = 100,
                 connect_retries: int = 2, base_url: Optional[str] = None):
        """
        Initialize Polygon client.

        Args:
            api_key: Polygon.io API key
            rate_limiter: Shared limiter; created from ``rate_limit`` when omitted
            rate_limit: Requests per second
            timeout: Request timeout in seconds
            max_connections: Maximum HTTP connections in pool
            connect_retries: Adapter-level retries for failed connects
            base_url: Override for the API host
        """
        if not api_key:
            raise BackfillConfigError("Polygon API key is not configured")
        self.api_key = api_key
        self.rate_limiter = rate_limiter or RateLimiter(rate_limit)
        self.timeout = timeout
        self.base_url = (base_url or self.BASE_URL).rstrip("/")

        self.session = requests.Session()

        retry_strategy = Retry(
            total=connect_retries,
            connect=connect_retries,
            read=0,
            status=0,
            backoff_factor=0.5,
            allowed_methods=["GET"]
        )

        adapter = HTTPAdapter(
            pool_connections=max_connections,
            pool_maxsize=max_connections,
            max_retries=retry_strategy,
            pool_block=True
        )

        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

        logger.info(
            f"Polygon client initialized: {self.rate_limiter.rate} req/s, "
            f"{max_connections} max connections"
        )

    @classmethod
    def from_config(cls, polygon: PolygonConfig, http: HTTPConfig,
                    rate_limiter: Optional[RateLimiter] = None) -> "PolygonClient":
        limiter = rate_limiter or RateLimiter(polygon.rate_limit, capacity=polygon.burst)
        return cls(
            api_key=polygon.api_key,
            rate_limiter=limiter,
            timeout=http.timeout,
            max_connections=http.max_connections,
            connect_retries=http.connect_retries,
            base_url=polygon.base_url,
        )

    def _make_request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Make rate-limited HTTP request to Polygon API.

        Args:
            endpoint: API endpoint path
            params: Query parameters

        Returns:
            JSON response dictionary

        Raises:
            NoDataError: 404 from the source
            TransientFetchError: Network failure, timeout, throttling, 5xx, bad body
            FatalFetchError: Authentication/authorization failure or other 4xx
        """
        self.rate_limiter.acquire()

        params = dict(params or {})
        params['apiKey'] = self.api_key
        url = f"{self.base_url}{endpoint}"

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.Timeout as e:
            raise TransientFetchError(f"Timeout for {endpoint}: {e}") from e
        except requests.RequestException as e:
            raise TransientFetchError(f"Request error for {endpoint}: {e}") from e

        status = response.status_code
        if status in (401, 403):
            logger.error(f"HTTP {status} for {endpoint}: check POLYGON_API_KEY")
            raise FatalFetchError(f"HTTP {status} for {endpoint}", status_code=status)
        if status == 404:
            raise NoDataError(f"HTTP 404 for {endpoint}")
        if status in TRANSIENT_STATUSES or status >= 500:
            raise TransientFetchError(f"HTTP {status} for {endpoint}", status_code=status)
        if status >= 400:
            raise FatalFetchError(f"HTTP {status} for {endpoint}: {response.text[:200]}",
                                  status_code=status)

        try:
            payload = response.json()
        except ValueError as e:
            raise TransientFetchError(f"Invalid JSON from {endpoint}: {e}") from e

        if not isinstance(payload, dict):
            raise TransientFetchError(f"Unexpected payload type from {endpoint}")
        if payload.get('status') == 'ERROR':
            raise TransientFetchError(
                f"Polygon error for {endpoint}: {payload.get('error') or payload.get('message')}"
            )
        return payload

    @staticmethod
    def _cursor_from(next_url: Optional[str]) -> Optional[str]:
        """Extract the ``cursor`` query parameter from a ``next_url``."""
        if not next_url:
            return None
        values = parse_qs(urlparse(next_url).query).get('cursor')
        return values[0] if values else None

    def _paginate(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Follow ``next_url`` cursors until the source stops returning one.

        Used for endpoints whose cursor is opaque and unique (reference data).

        Args:
            endpoint: API endpoint path
            params: Query parameters

        Returns:
            List of result dictionaries
        """
        params = dict(params or {})
        all_results: List[Dict[str, Any]] = []
        pages = 0

        while True:
            response = self._make_request(endpoint, params)
            pages += 1
            all_results.extend(response.get('results') or [])

            cursor = self._cursor_from(response.get('next_url'))
            if not cursor:
                break
            params['cursor'] = cursor

        logger.debug(f"{endpoint}: {len(all_results)} results in {pages} pages")
        return all_results

    def close(self):
        """Close the HTTP session"""
        self.session.close()
        logger.info("Closed Polygon client session")
