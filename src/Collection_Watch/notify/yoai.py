"""YoAI channel transport.

Messages are plain text with links spelled out. Photo messages are sent as a
multipart upload; when the upload (or fetching the source image) fails, the
same text goes out without the image.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Final

import httpx

from Collection_Watch.models.collection import Collection
from Collection_Watch.models.events import FinishingItem, PriceDropAlert, ProgressChangeAlert
from Collection_Watch.notify import formatters
from Collection_Watch.services._helpers import parse_retry_after
from Collection_Watch.services.dispatch import DispatchQueue
from Collection_Watch.utils.exceptions import NotificationError, RateLimitExceededError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

YOAI_SOURCE: Final[str] = "yoai"
YOAI_API_URL: Final[str] = "https://yoai.yophone.com/api/pub"
YOAI_TIMEOUT_SECONDS: Final[float] = 30.0
YO_BOT_KEY: Final[str] = "yo_bot"

_IMAGE_HEADERS: Final[dict[str, str]] = {
    "Accept": "image/jpeg,image/png,image/*",
    "User-Agent": "Mozilla/5.0",
}


class YoAITransport:
    """Posts alerts to a YoAI channel.

    Usage::

        transport = YoAITransport(api_key="...", channel_id="...", dispatch=queue)
        await transport.send_upcoming_rewards(collections)
    """

    name = "yoai"

    def __init__(
        self,
        api_key: str,
        channel_id: str,
        dispatch: DispatchQueue,
        *,
        timezone: str = "Asia/Yerevan",
        client: httpx.AsyncClient | None = None,
        api_url: str = YOAI_API_URL,
    ) -> None:
        self._channel_id = channel_id
        self._dispatch = dispatch
        self._timezone = timezone
        self._api_url = api_url.rstrip("/")
        self._headers = {"X-YoAI-API-Key": api_key}
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(connect=5.0, read=30.0, write=30.0, pool=5.0),
        )

        logger.info("YoAITransport initialized.")

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Alert kinds
    # ------------------------------------------------------------------

    async def send_new_collection(self, collection: Collection) -> bool:
        message = formatters.format_new_collection_message(collection, timezone=self._timezone)
        text = f"{message.text}📊 View: {message.url}"
        await self._send_photo_from_url(text, collection.bg_image)
        logger.info("Sent YoAI new collection alert for %s", collection.name)
        return True

    async def send_progress_change(
        self, alert: ProgressChangeAlert, image: bytes | None = None
    ) -> bool:
        message = formatters.format_change_message(alert)
        text = f"{message.text}🔗 View: {message.url}"
        if image is None:
            await self._send_text(text)
        else:
            await self._send_photo(text, image, filename="chart.png")
        logger.info("Sent YoAI progress change alert for %s", alert.collection.name)
        return True

    async def send_privileged_progress_change(
        self, alert: ProgressChangeAlert, image: bytes | None = None
    ) -> bool:
        # Privileged alerts only go to the privileged Telegram channel
        return False

    async def send_last_chance(self, collection: Collection) -> bool:
        message = formatters.format_last_chance_message(collection)
        text = f"{message.text}📊 View: {message.url}"
        await self._send_photo_from_url(text, collection.bg_image)
        logger.info("Sent YoAI last chance alert for %s", collection.name)
        return True

    async def send_upcoming_rewards(
        self, collections: list[Collection], *, time_boxed: bool = False
    ) -> bool:
        text = formatters.format_reward_message(collections, time_boxed=time_boxed)
        if not text:
            return False
        await self._send_text(text)
        return True

    async def send_finishing_batch(self, items: list[FinishingItem]) -> bool:
        if not items:
            return False
        await self._send_text(formatters.format_finishing_message(items))
        logger.info("Sent YoAI finishing alert for %d collections", len(items))
        return True

    async def send_price_drop(self, alert: PriceDropAlert) -> bool:
        message = formatters.format_price_drop_message(alert, with_links=True)
        await self._send_photo_from_url(message.text, alert.listing.file_thumb)
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _send_text(self, text: str) -> None:
        payload = {"to": self._channel_id, "text": text}
        await self._dispatch.execute(lambda: self._post(json_body=payload), key=YO_BOT_KEY)

    async def _send_photo(self, text: str, image: bytes, *, filename: str) -> None:
        """Upload *image* with *text*, falling back to text only on failure."""
        form = {"to": self._channel_id, "text": text}
        files = {"file": (filename, image, "image/png")}
        try:
            await self._dispatch.execute(
                lambda: self._post(form=form, files=files), key=YO_BOT_KEY
            )
        except NotificationError as exc:
            logger.warning("YoAI photo message failed (%s); sending text only", exc)
            await self._send_text(text)

    async def _send_photo_from_url(self, text: str, image_url: str | None) -> None:
        if not image_url:
            await self._send_text(text)
            return
        try:
            response = await asyncio.wait_for(
                self._client.get(image_url, headers=_IMAGE_HEADERS),
                timeout=YOAI_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
        except (TimeoutError, httpx.HTTPError) as exc:
            logger.warning("Could not fetch image %s (%s); sending text only", image_url, exc)
            await self._send_text(text)
            return
        await self._send_photo(text, response.content, filename="image.png")

    async def _post(
        self,
        *,
        json_body: dict[str, Any] | None = None,
        form: dict[str, str] | None = None,
        files: dict[str, tuple[str, bytes, str]] | None = None,
    ) -> None:
        """POST /sendMessage.

        Raises:
            RateLimitExceededError: On HTTP 429.
            NotificationError: On any other failure.
        """
        url = f"{self._api_url}/sendMessage"
        try:
            response = await asyncio.wait_for(
                self._client.post(
                    url, headers=self._headers, json=json_body, data=form, files=files
                ),
                timeout=YOAI_TIMEOUT_SECONDS,
            )
        except TimeoutError as exc:
            msg = "YoAI sendMessage timed out."
            raise NotificationError(msg, source=YOAI_SOURCE) from exc
        except httpx.HTTPError as exc:
            msg = f"YoAI sendMessage failed: {exc}"
            raise NotificationError(msg, source=YOAI_SOURCE) from exc

        if response.status_code == 429:  # noqa: PLR2004
            raise RateLimitExceededError(
                "YoAI rate limited sendMessage.",
                source=YOAI_SOURCE,
                retry_after=parse_retry_after(response.text),
            )
        if response.status_code >= 400:  # noqa: PLR2004
            raise NotificationError(
                f"YoAI returned HTTP {response.status_code}: {response.text[:200]}",
                source=YOAI_SOURCE,
                http_status=response.status_code,
            )
