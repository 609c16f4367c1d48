"""Shopify Admin API client using httpx."""

import logging
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any
from urllib.parse import parse_qs, urlparse

import httpx

from app.core.config import settings
from app.core.exceptions import CredentialError, ShopifyAPIError

logger = logging.getLogger(__name__)

# Filters sent with the first page of each collection. Shopify rejects any
# parameter other than limit alongside a page_info cursor.
RESOURCE_FILTERS: dict[str, dict[str, str]] = {
    "customers": {},
    "products": {},
    "orders": {"status": "any"},
}


@dataclass
class ResourcePage:
    """One page of a paginated collection."""

    items: list[dict[str, Any]] = field(default_factory=list)
    next_page_info: str | None = None


class ShopifyClient:
    """Async client for the Shopify Admin REST API.

    Use as an async context manager to share one connection pool across the
    pages of a sync run:

        async with ShopifyClient(domain, token) as client:
            page = await client.fetch_page("orders")
    """

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        *,
        page_size: int | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.shop_domain = shop_domain
        self.base_url = f"https://{shop_domain}/admin/api/{settings.shopify_api_version}"
        self.headers = {
            "X-Shopify-Access-Token": access_token,
            "Content-Type": "application/json",
        }
        self.page_size = page_size or settings.shopify_page_size
        self.timeout = timeout or settings.shopify_request_timeout
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    def _build_http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=self.headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def __aenter__(self) -> "ShopifyClient":
        self._http = self._build_http()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def fetch_page(self, resource: str, page_info: str | None = None) -> ResourcePage:
        """Fetch one page of a collection.

        Args:
            resource: One of "customers", "products" or "orders".
            page_info: Cursor returned with the previous page, or None for the first page.

        Returns:
            The page items and the cursor of the next page (None on the last page).

        Raises:
            CredentialError: If Shopify rejects the access token.
            ShopifyAPIError: On transport failures and other non-2xx responses.
        """
        if resource not in RESOURCE_FILTERS:
            raise ValueError(f"Unsupported Shopify resource: {resource}")

        params: dict[str, Any] = {"limit": self.page_size}
        if page_info:
            params["page_info"] = page_info
        else:
            params.update(RESOURCE_FILTERS[resource])

        response = await self._get(f"{self.base_url}/{resource}.json", params)
        data = response.json()
        return ResourcePage(
            items=list(data.get(resource) or []),
            next_page_info=self._get_next_page_info(response),
        )

    async def get_shop(self) -> dict[str, Any]:
        """Fetch shop details (used as a connection check)."""
        response = await self._get(f"{self.base_url}/shop.json")
        shop: dict[str, Any] = response.json().get("shop", {})
        return shop

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        if self._http is not None:
            return await self._send(self._http, url, params)
        async with self._build_http() as http:
            return await self._send(http, url, params)

    async def _send(
        self,
        http: httpx.AsyncClient,
        url: str,
        params: dict[str, Any] | None,
    ) -> httpx.Response:
        try:
            response = await http.get(url, params=params)
        except httpx.TransportError as e:
            logger.warning("Shopify request to %s failed: %s", self.shop_domain, e)
            raise ShopifyAPIError(f"Could not reach {self.shop_domain}: {e}") from e

        if response.status_code in (401, 403):
            raise CredentialError(
                f"Shopify rejected the access token for {self.shop_domain} "
                f"({response.status_code})"
            )
        if not response.is_success:
            logger.warning(
                "Shopify returned %s for %s",
                response.status_code,
                response.request.url,
            )
            raise ShopifyAPIError(
                f"Shopify returned {response.status_code} for {self.shop_domain}",
                status_code=response.status_code,
            )
        return response

    def _get_next_page_info(self, response: httpx.Response) -> str | None:
        """Extract the next page cursor from the Link header."""
        link_header = response.headers.get("link", "")
        if not link_header:
            return None

        for part in link_header.split(","):
            if 'rel="next"' in part:
                url = part.split(";")[0].strip().strip("<>")
                values = parse_qs(urlparse(url).query).get("page_info")
                return values[0] if values else None
        return None
