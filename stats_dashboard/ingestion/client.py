"""
Stats API client for the flat per-product statistics list
"""

from typing import Any, Dict, List, Optional

import httpx
import structlog

from stats_dashboard.config import get_settings
from .records import ProductRecord, parse_products

logger = structlog.get_logger(__name__)


class StatsApiError(Exception):
    """Custom exception for stats API errors"""
    pass


class StatsApiClient:
    """Client for the upstream product statistics endpoint"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        products_path: Optional[str] = None,
        timeout: Optional[float] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the stats API client

        Args:
            base_url: API root; defaults to STATS_API_BASE_URL
            products_path: path of the full product list
            timeout: request timeout in seconds
            token: optional bearer token
            transport: custom httpx transport (tests)
        """
        api_settings = get_settings().stats_api
        self.base_url = (base_url or api_settings.base_url or "").rstrip("/")
        self.products_path = products_path or api_settings.products_path
        self.timeout = timeout if timeout is not None else api_settings.timeout_seconds
        if token is None and api_settings.token is not None:
            token = api_settings.token.get_secret_value()
        self.token = token
        self.transport = transport

        if not self.base_url:
            raise StatsApiError("No stats API base URL configured")

    @property
    def headers(self) -> Dict[str, str]:
        """Get headers for API calls"""
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def fetch_raw(self) -> List[Dict[str, Any]]:
        """
        Get the raw product list

        Returns:
            JSON-decoded product objects
        """
        url = f"{self.base_url}{self.products_path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, headers=self.headers)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            logger.error("Failed to fetch product stats", url=url, error=str(e))
            raise StatsApiError(f"Failed to fetch product stats: {e}") from e
        except ValueError as e:
            logger.error("Stats API returned invalid JSON", url=url, error=str(e))
            raise StatsApiError(f"Invalid JSON from stats API: {e}") from e

        if not isinstance(payload, list):
            raise StatsApiError(f"Expected a list of products, got {type(payload).__name__}")

        logger.info("Product stats loaded", url=url, records=len(payload))
        return payload

    async def fetch_products(self) -> List[ProductRecord]:
        """Get and validate the product list; malformed rows are skipped"""
        return parse_products(await self.fetch_raw())
