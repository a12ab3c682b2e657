"""Telegram Bot API transport.

Talks to ``api.telegram.org`` directly over httpx. The main bot posts to the
public channel; the optional privileged bot posts privileged progress changes
and a "hayo" mirror of launch announcements. Every call goes through the
shared DispatchQueue under the bot's key.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Final

import httpx

from Collection_Watch.models.collection import Collection
from Collection_Watch.models.events import (
    FinishingItem,
    PriceDropAlert,
    ProgressChangeAlert,
)
from Collection_Watch.notify import formatters
from Collection_Watch.services._helpers import parse_retry_after
from Collection_Watch.services.dispatch import DispatchQueue
from Collection_Watch.utils.exceptions import NotificationError, RateLimitExceededError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TELEGRAM_SOURCE: Final[str] = "telegram"
TELEGRAM_API_URL: Final[str] = "https://api.telegram.org"
TELEGRAM_TIMEOUT_SECONDS: Final[float] = 30.0

MAIN_BOT_KEY: Final[str] = "main_bot"
PRIVILEGED_BOT_KEY: Final[str] = "farmer_bot"
HAYO_BOT_KEY: Final[str] = "hayo_bot"

# Image hosts served under the staging domain are rewritten to the public one
_STAGING_IMAGE_HOST: Final[str] = "res.ortak1.me"
_PUBLIC_IMAGE_HOST: Final[str] = "res.ortak.me"


def public_image_url(url: str | None) -> str | None:
    """Point a staging image URL at the public image host."""
    return url.replace(_STAGING_IMAGE_HOST, _PUBLIC_IMAGE_HOST) if url else url


def _keyboard(*buttons: tuple[str, str]) -> str:
    rows = [[{"text": text, "url": url} for text, url in buttons]]
    return json.dumps({"inline_keyboard": rows})


class TelegramTransport:
    """Posts alerts to Telegram channels.

    Usage::

        transport = TelegramTransport(
            token="123:abc",
            channel_id="@alerts",
            dispatch=DispatchQueue(),
        )
        await transport.send_new_collection(collection)
    """

    name = "telegram"

    def __init__(
        self,
        token: str,
        channel_id: str,
        dispatch: DispatchQueue,
        *,
        privileged_token: str | None = None,
        privileged_channel_id: str | None = None,
        timezone: str = "Asia/Yerevan",
        client: httpx.AsyncClient | None = None,
        api_url: str = TELEGRAM_API_URL,
    ) -> None:
        self._token = token
        self._channel_id = channel_id
        self._privileged_token = privileged_token
        self._privileged_channel_id = privileged_channel_id
        self._dispatch = dispatch
        self._timezone = timezone
        self._api_url = api_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(connect=5.0, read=30.0, write=30.0, pool=5.0),
        )

        logger.info(
            "TelegramTransport initialized: privileged=%s",
            "configured" if self.privileged_configured else "not configured",
        )

    @property
    def privileged_configured(self) -> bool:
        return bool(self._privileged_token and self._privileged_channel_id)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Alert kinds
    # ------------------------------------------------------------------

    async def send_new_collection(self, collection: Collection) -> bool:
        main = formatters.format_new_collection_message(
            collection, markdown=True, timezone=self._timezone
        )
        await self._send_photo_url(
            MAIN_BOT_KEY,
            public_image_url(collection.bg_image),
            main.text + formatters.new_collection_hashtags(collection),
            _keyboard((main.button_text, main.url)),
        )
        if self.privileged_configured:
            hayo = formatters.format_new_collection_message(
                collection,
                markdown=True,
                site=formatters.HAYO_SITE_URL,
                timezone=self._timezone,
            )
            await self._send_photo_url(
                HAYO_BOT_KEY,
                public_image_url(collection.bg_image),
                hayo.text,
                _keyboard((hayo.button_text, hayo.url)),
            )
        logger.info("Sent new collection alert for %s", collection.name)
        return True

    async def send_progress_change(
        self, alert: ProgressChangeAlert, image: bytes | None = None
    ) -> bool:
        message = formatters.format_change_message(alert, markdown=True)
        text = message.text + formatters.change_hashtags(alert.collection)
        await self._send_chart(
            MAIN_BOT_KEY, image, text, _keyboard((message.button_text, message.url))
        )
        logger.info("Sent progress change alert for %s", alert.collection.name)
        return True

    async def send_privileged_progress_change(
        self, alert: ProgressChangeAlert, image: bytes | None = None
    ) -> bool:
        if not self.privileged_configured:
            return False
        message = formatters.format_privileged_change_message(alert)
        markup = _keyboard(
            (message.button_text, message.url),
            ("Fast", message.secondary_url or message.url),
        )
        await self._send_chart(PRIVILEGED_BOT_KEY, image, message.text, markup)
        logger.info("Sent privileged progress change alert for %s", alert.collection.name)
        return True

    async def send_last_chance(self, collection: Collection) -> bool:
        main = formatters.format_last_chance_message(collection, markdown=True)
        await self._send_photo_url(
            MAIN_BOT_KEY,
            public_image_url(collection.bg_image),
            main.text + formatters.new_collection_hashtags(collection),
            _keyboard((main.button_text, main.url)),
        )
        if self.privileged_configured:
            hayo = formatters.format_last_chance_message(
                collection, markdown=True, site=formatters.HAYO_SITE_URL
            )
            await self._send_photo_url(
                HAYO_BOT_KEY,
                public_image_url(collection.bg_image),
                hayo.text,
                _keyboard((hayo.button_text, hayo.url)),
            )
        logger.info("Sent last chance alert for %s", collection.name)
        return True

    async def send_upcoming_rewards(
        self, collections: list[Collection], *, time_boxed: bool = False
    ) -> bool:
        text = formatters.format_reward_message(collections, time_boxed=time_boxed, markdown=True)
        if not text:
            return False
        await self._send_text(
            MAIN_BOT_KEY,
            text + formatters.reward_hashtags(time_boxed=time_boxed),
            disable_preview=False,
        )
        return True

    async def send_finishing_batch(self, items: list[FinishingItem]) -> bool:
        if not items:
            return False
        text = formatters.format_finishing_message(items, markdown=True)
        await self._send_text(MAIN_BOT_KEY, text + formatters.FINISHING_HASHTAGS)
        logger.info("Sent finishing alert for %d collections", len(items))
        return True

    async def send_price_drop(self, alert: PriceDropAlert) -> bool:
        message = formatters.format_price_drop_message(alert)
        markup = _keyboard(
            (message.button_text, message.url),
            ("📊 Collection", message.secondary_url or message.url),
        )
        await self._send_photo_url(
            MAIN_BOT_KEY, public_image_url(alert.listing.file_thumb), message.text, markup
        )
        logger.info("Sent price drop alert for %s", alert.listing.name)
        return True

    # ------------------------------------------------------------------
    # Bot API calls
    # ------------------------------------------------------------------

    def _credentials(self, key: str) -> tuple[str, str]:
        if key == MAIN_BOT_KEY:
            return self._token, self._channel_id
        if not self._privileged_token or not self._privileged_channel_id:
            msg = f"No privileged bot configured for {key}"
            raise NotificationError(msg, source=TELEGRAM_SOURCE)
        return self._privileged_token, self._privileged_channel_id

    async def _send_text(
        self,
        key: str,
        text: str,
        *,
        markup: str | None = None,
        disable_preview: bool = True,
    ) -> None:
        token, chat_id = self._credentials(key)
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "Markdown",
            "disable_web_page_preview": disable_preview,
        }
        if markup is not None:
            payload["reply_markup"] = markup
        await self._dispatch.execute(lambda: self._call(token, "sendMessage", payload), key=key)

    async def _send_photo_url(
        self, key: str, photo_url: str | None, caption: str, markup: str
    ) -> None:
        if not photo_url:
            await self._send_text(key, caption, markup=markup)
            return
        token, chat_id = self._credentials(key)
        payload = {
            "chat_id": chat_id,
            "photo": photo_url,
            "caption": caption,
            "parse_mode": "Markdown",
            "reply_markup": markup,
        }
        await self._dispatch.execute(lambda: self._call(token, "sendPhoto", payload), key=key)

    async def _send_chart(self, key: str, image: bytes | None, caption: str, markup: str) -> None:
        if image is None:
            await self._send_text(key, caption, markup=markup)
            return
        token, chat_id = self._credentials(key)
        form = {
            "chat_id": chat_id,
            "caption": caption,
            "parse_mode": "Markdown",
            "reply_markup": markup,
        }
        await self._dispatch.execute(
            lambda: self._call(
                token, "sendPhoto", form, files={"photo": ("chart.png", image, "image/png")}
            ),
            key=key,
        )

    async def _call(
        self,
        token: str,
        method: str,
        payload: dict[str, Any],
        *,
        files: dict[str, tuple[str, bytes, str]] | None = None,
    ) -> dict[str, Any]:
        """Invoke one Bot API method and return its ``result``.

        Raises:
            RateLimitExceededError: On HTTP 429 / error_code 429.
            NotificationError: On any other failure.
        """
        url = f"{self._api_url}/bot{token}/{method}"
        try:
            if files is None:
                request = self._client.post(url, json=payload)
            else:
                form = {k: str(v) for k, v in payload.items()}
                request = self._client.post(url, data=form, files=files)
            response = await asyncio.wait_for(request, timeout=TELEGRAM_TIMEOUT_SECONDS)
        except TimeoutError as exc:
            msg = f"Telegram {method} timed out."
            raise NotificationError(msg, source=TELEGRAM_SOURCE) from exc
        except httpx.HTTPError as exc:
            msg = f"Telegram {method} failed: {exc}"
            raise NotificationError(msg, source=TELEGRAM_SOURCE) from exc

        try:
            body: dict[str, Any] = response.json()
        except ValueError:
            body = {}

        description = str(body.get("description") or f"HTTP {response.status_code}")
        if response.status_code == 429 or body.get("error_code") == 429:  # noqa: PLR2004
            parameters = body.get("parameters") or {}
            retry_after = parameters.get("retry_after")
            if retry_after is None:
                retry_after = parse_retry_after(description)
            raise RateLimitExceededError(
                f"Telegram {method}: {description}",
                source=TELEGRAM_SOURCE,
                retry_after=float(retry_after) if retry_after is not None else None,
            )
        if response.status_code != 200 or not body.get("ok"):  # noqa: PLR2004
            raise NotificationError(
                f"Telegram {method}: {description}",
                source=TELEGRAM_SOURCE,
                http_status=response.status_code,
            )
        result: dict[str, Any] = body.get("result") or {}
        return result
