"""Health checks for the marketplace and the notification bots.

Each check runs independently with its own timeout so one dependency being
down does not block the rest of the report.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from typing import Final

import httpx

from Collection_Watch.config import Settings
from Collection_Watch.models.enums import PartitionType
from Collection_Watch.models.status import HealthStatus
from Collection_Watch.services.marketplace import MarketplaceClient
from Collection_Watch.utils.exceptions import MarketplaceError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TELEGRAM_API_URL: Final[str] = "https://api.telegram.org"

MARKETPLACE_CHECK_TIMEOUT: Final[float] = 15.0
TELEGRAM_CHECK_TIMEOUT: Final[float] = 5.0


class HealthService:
    """Check availability of every external dependency.

    Usage::

        health = HealthService(settings)
        status = await health.check_all()
        if not status.marketplace_available:
            logger.warning("Marketplace is down, cycles will come back empty.")
    """

    def __init__(
        self,
        settings: Settings,
        *,
        marketplace: MarketplaceClient | None = None,
        client: httpx.AsyncClient | None = None,
        telegram_api_url: str = TELEGRAM_API_URL,
    ) -> None:
        self._settings = settings
        self._owns_marketplace = marketplace is None
        self._marketplace = marketplace or MarketplaceClient(
            settings.base_url, public_url=settings.public_url
        )
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(TELEGRAM_CHECK_TIMEOUT),
        )
        self._telegram_api_url = telegram_api_url.rstrip("/")

    async def aclose(self) -> None:
        if self._owns_marketplace:
            await self._marketplace.aclose()
        if self._owns_client:
            await self._client.aclose()

    async def check_all(self) -> HealthStatus:
        """Run all checks concurrently and return a consolidated status."""
        results = await asyncio.gather(
            self.check_marketplace(),
            self.check_telegram(self._settings.telegram_token),
            self._check_privileged(),
            return_exceptions=True,
        )

        flags: list[bool] = []
        for name, result in zip(("marketplace", "telegram", "privileged"), results, strict=True):
            if isinstance(result, BaseException):
                logger.warning("%s health check raised: %s", name, result)
                flags.append(False)
            else:
                flags.append(result)

        status = HealthStatus(
            marketplace_available=flags[0],
            telegram_available=flags[1],
            privileged_available=flags[2],
            yo_configured=self._settings.yo_configured,
            last_check=datetime.datetime.now(datetime.UTC),
        )
        logger.info(
            "Health check complete: marketplace=%s telegram=%s privileged=%s yo=%s",
            status.marketplace_available,
            status.telegram_available,
            status.privileged_available,
            status.yo_configured,
        )
        return status

    async def check_marketplace(self) -> bool:
        """True when the first regular listing page loads."""
        try:
            page = await asyncio.wait_for(
                self._marketplace.fetch_page(PartitionType.REGULAR, 1),
                timeout=MARKETPLACE_CHECK_TIMEOUT,
            )
        except TimeoutError:
            logger.warning("Marketplace health check timed out.")
            return False
        except MarketplaceError as exc:
            logger.warning("Marketplace health check failed: %s", exc)
            return False
        logger.debug("Marketplace check passed: %d collections listed.", page.total_count)
        return True

    async def check_telegram(self, token: str | None) -> bool:
        """True when ``getMe`` succeeds for the bot *token*."""
        if not token:
            return False
        try:
            response = await asyncio.wait_for(
                self._client.get(f"{self._telegram_api_url}/bot{token}/getMe"),
                timeout=TELEGRAM_CHECK_TIMEOUT,
            )
        except TimeoutError:
            logger.warning("Telegram health check timed out.")
            return False
        except httpx.HTTPError as exc:
            logger.warning("Telegram health check failed: %s", exc)
            return False

        if response.status_code != 200:  # noqa: PLR2004
            logger.warning("Telegram returned HTTP %d.", response.status_code)
            return False
        try:
            body = response.json()
        except ValueError:
            return False
        return isinstance(body, dict) and bool(body.get("ok"))

    async def _check_privileged(self) -> bool:
        if not self._settings.privileged_configured:
            logger.debug("No privileged bot configured for health check.")
            return False
        return await self.check_telegram(self._settings.privileged_token)
