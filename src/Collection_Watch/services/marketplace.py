"""Marketplace HTTP client: partition listings, existence probes, details, charts.

Every call is a JSON POST against the marketplace panel API. Transport and
HTTP failures surface as typed ``MarketplaceError`` subclasses; the partition
listing is the one entry point that swallows them (returning an empty list),
because a failed page must never leave a half-fetched partition behind.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Final

import httpx
from pydantic import ValidationError

from Collection_Watch.models.collection import Collection, CollectionPage, ProbeResult
from Collection_Watch.models.enums import PartitionType
from Collection_Watch.models.revenue import RevenuePoint
from Collection_Watch.services._helpers import safe_int, strip_variant_suffix
from Collection_Watch.utils.exceptions import (
    CollectionNotFoundError,
    DataSourceUnavailableError,
    RateLimitExceededError,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MARKETPLACE_SOURCE: Final[str] = "marketplace"
PARTNER_ID: Final[int] = 99
PAGE_SIZE: Final[int] = 30
PROBE_PAGE_SIZE: Final[int] = 1
REQUEST_TIMEOUT_SECONDS: Final[float] = 30.0

# Listing filter for the time-boxed kind code
_TIME_BOXED_FILTER: Final[list[int]] = [8]

_BASE_HEADERS: Final[dict[str, str]] = {
    "accept": "*/*",
    "accept-language": "en-US,en;q=0.9",
    "content-type": "text/plain;charset=UTF-8",
    "user-agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/134.0.0.0 Safari/537.36"
    ),
}


class MarketplaceClient:
    """Async client for the marketplace's collection endpoints.

    Usage::

        client = MarketplaceClient(base_url="https://sss.ortak1.me")
        regular = await client.fetch_collections(PartitionType.REGULAR)
        probe = await client.probe_collection(664)
        if probe is not None:
            detail = await client.fetch_detail(probe.slug)
        await client.aclose()
    """

    def __init__(
        self,
        base_url: str,
        public_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._public_url = (public_url or base_url).rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(connect=5.0, read=30.0, write=10.0, pool=5.0),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )

        logger.info("MarketplaceClient initialized: base_url=%s", self._base_url)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        """Close the shared httpx client."""
        await self._client.aclose()

    def collection_url(self, slug: str) -> str:
        """Public page of a collection."""
        return f"{self._public_url}/collections/{slug}/nfts"

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    async def fetch_page(self, partition: PartitionType, page: int) -> CollectionPage:
        """Fetch one page of a partition listing.

        Raises:
            DataSourceUnavailableError: On transport, HTTP, or payload errors.
            RateLimitExceededError: When the marketplace answers 429.
        """
        payload: dict[str, Any] = {"page": page, "perPage": PAGE_SIZE, "partnerId": PARTNER_ID}
        referer = f"{self._base_url}/en/marketplace/collections"
        if partition == PartitionType.REGULAR:
            payload["excludeTypes"] = _TIME_BOXED_FILTER
            referer = f"{referer}/?excludeTypes=[8]"
        elif partition == PartitionType.TIME_BOXED:
            payload["type"] = [str(kind) for kind in _TIME_BOXED_FILTER]
            referer = f"{referer}/?type=8"
        elif partition == PartitionType.PARTNER:
            payload["isPartnersPage"] = True
            referer = f"{self._base_url}/en/marketplace/partners-collections"

        body = await self._post("/panel/collections", payload, referer=referer)
        data = body.get("data") or {}
        if not isinstance(data, dict):
            msg = f"Invalid {partition} listing on page {page}: data is {type(data).__name__}"
            raise DataSourceUnavailableError(msg, source=MARKETPLACE_SOURCE)
        meta = data.get("meta") or {}
        try:
            items = [Collection.model_validate(raw) for raw in data.get("items") or []]
        except ValidationError as exc:
            msg = f"Malformed {partition} listing on page {page}: {exc}"
            raise DataSourceUnavailableError(msg, source=MARKETPLACE_SOURCE) from exc

        return CollectionPage(
            items=items,
            total_count=safe_int(meta.get("totalCount")),
            per_page=safe_int(meta.get("perPage")) or PAGE_SIZE,
        )

    async def fetch_collections(self, partition: PartitionType) -> list[Collection]:
        """Fetch every page of *partition*, or nothing at all.

        The page count is fixed from the first page's ``totalCount``. Any
        failing page discards the pages already read and returns ``[]`` so a
        partially fetched partition is never stored.
        """
        collected: list[Collection] = []
        page_number = 1
        total_pages = 1
        try:
            while page_number <= total_pages:
                page = await self.fetch_page(partition, page_number)
                collected.extend(page.items)
                if page_number == 1:
                    total_pages = math.ceil(page.total_count / page.per_page)
                page_number += 1
        except (DataSourceUnavailableError, RateLimitExceededError) as exc:
            logger.error(
                "Error fetching %s collections (page %d): %s", partition, page_number, exc
            )
            return []

        logger.info("Fetched %d %s collections", len(collected), partition)
        return collected

    # ------------------------------------------------------------------
    # Probes and details
    # ------------------------------------------------------------------

    async def probe_collection(self, collection_id: int) -> ProbeResult | None:
        """Check whether a collection ID exists by listing one of its items.

        Returns None when the listing is empty (not released or never
        created).

        Raises:
            DataSourceUnavailableError: When the probe itself failed, which is
                not the same as "absent".
        """
        payload = {
            "page": 1,
            "perPage": PROBE_PAGE_SIZE,
            "collectionId": collection_id,
            "partnerId": PARTNER_ID,
        }
        body = await self._post(
            "/panel/collections/nfts",
            payload,
            referer=f"{self._base_url}/en/marketplace/collections",
            collection_id=collection_id,
        )
        data = body.get("data") or {}
        items = data.get("items") or []
        if not items:
            logger.debug("Collection ID %d does not exist or is not released yet", collection_id)
            return None

        first_item = items[0] if isinstance(items[0], dict) else {}
        slug = strip_variant_suffix(str(first_item.get("slug") or ""))
        meta = data.get("meta") or {}
        result = ProbeResult(
            collection_id=collection_id,
            slug=slug,
            total_items=safe_int(meta.get("totalCount")) or len(items),
            url=self.collection_url(slug),
        )
        logger.info(
            "Collection ID %d exists with %d items: %s",
            collection_id,
            result.total_items,
            result.url,
        )
        return result

    async def fetch_detail(self, slug: str) -> Collection:
        """Fetch the full record of one collection by slug.

        Raises:
            CollectionNotFoundError: If the marketplace rejects the slug.
            DataSourceUnavailableError: On transport or HTTP errors.
        """
        body = await self._post(
            "/panel/collections/info",
            {"slug": slug, "partnerId": PARTNER_ID},
            referer=self.collection_url(slug),
        )
        data = body.get("data")
        if body.get("code") != 0 or not isinstance(data, dict):
            msg = f"Invalid collection info response for slug {slug!r}"
            raise CollectionNotFoundError(msg, source=MARKETPLACE_SOURCE)
        try:
            collection = Collection.model_validate(data)
        except ValidationError as exc:
            msg = f"Malformed collection info for slug {slug!r}: {exc}"
            raise DataSourceUnavailableError(msg, source=MARKETPLACE_SOURCE) from exc

        logger.info("Fetched detail for %s (ID: %d)", collection.name, collection.id)
        return collection

    async def fetch_revenue_series(
        self,
        collection: Collection,
        period: str,
    ) -> list[RevenuePoint]:
        """Fetch the chart series for *collection* over *period* (day/month/year).

        Time-boxed collections are queried in dynamic mode under their own
        slug; standard collections are charted through their first item.

        Raises:
            DataSourceUnavailableError: On transport, HTTP, or payload errors.
        """
        payload: dict[str, Any] = {
            "partnerId": PARTNER_ID,
            "period": period,
            "collectionId": collection.id,
        }
        if collection.is_time_boxed:
            payload["dynamic"] = 1
            payload["slug"] = collection.slug
        else:
            payload["slug"] = f"{collection.slug}-1"

        body = await self._post(
            "/panel/collections/chart",
            payload,
            referer=f"{self._base_url}/en/nfts/{collection.slug}",
            collection_id=collection.id,
        )
        data = body.get("data")
        if body.get("code") != 0 or not isinstance(data, list):
            msg = f"Invalid chart response for {collection.slug!r}"
            raise DataSourceUnavailableError(
                msg, source=MARKETPLACE_SOURCE, collection_id=collection.id
            )
        try:
            return [RevenuePoint.model_validate(point) for point in data]
        except ValidationError as exc:
            msg = f"Malformed chart series for {collection.slug!r}: {exc}"
            raise DataSourceUnavailableError(
                msg, source=MARKETPLACE_SOURCE, collection_id=collection.id
            ) from exc

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _post(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        referer: str,
        collection_id: int | None = None,
    ) -> dict[str, Any]:
        """POST *payload* and return the decoded JSON body."""
        headers = {**_BASE_HEADERS, "origin": self._base_url, "referer": referer}
        try:
            response = await asyncio.wait_for(
                self._client.post(f"{self._base_url}{path}", json=payload, headers=headers),
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except TimeoutError as exc:
            msg = f"Marketplace request to {path} timed out."
            raise DataSourceUnavailableError(
                msg, source=MARKETPLACE_SOURCE, collection_id=collection_id
            ) from exc
        except httpx.HTTPError as exc:
            msg = f"Marketplace request to {path} failed: {exc}"
            raise DataSourceUnavailableError(
                msg, source=MARKETPLACE_SOURCE, collection_id=collection_id
            ) from exc

        if response.status_code == 429:  # noqa: PLR2004
            retry_after = response.headers.get("retry-after")
            raise RateLimitExceededError(
                f"Marketplace rate limited {path}.",
                source=MARKETPLACE_SOURCE,
                collection_id=collection_id,
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if response.status_code != 200:  # noqa: PLR2004
            msg = f"Marketplace returned HTTP {response.status_code} for {path}."
            raise DataSourceUnavailableError(
                msg,
                source=MARKETPLACE_SOURCE,
                collection_id=collection_id,
                http_status=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            msg = f"Marketplace returned non-JSON body for {path}."
            raise DataSourceUnavailableError(
                msg, source=MARKETPLACE_SOURCE, collection_id=collection_id
            ) from exc
        if not isinstance(body, dict):
            msg = f"Marketplace returned unexpected body type for {path}."
            raise DataSourceUnavailableError(
                msg, source=MARKETPLACE_SOURCE, collection_id=collection_id
            )
        return body
