"""Tests for YoAITransport against a mocked HTTP API.

Covers:
- Text messages carry the API key header and the channel id
- Chart uploads go out as multipart ``file``
- A failed upload or image fetch falls back to text only
- Privileged alerts are never sent
- 429 maps to a rate limit, other 4xx/5xx to NotificationError
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from Collection_Watch.models import ChangeRecord, Collection, PartitionType, ProgressChangeAlert
from Collection_Watch.notify.yoai import YoAITransport
from Collection_Watch.services.dispatch import DispatchQueue
from Collection_Watch.utils.exceptions import NotificationError, RateLimitExceededError

API_URL = "https://yoai.test/api/pub"
IMAGE_HOST = "res.ortak1.me"


class FakeYoApi:
    """Serves sendMessage plus image downloads, recording every request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.send_statuses: list[int] = []
        self.image_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == IMAGE_HOST:
            return httpx.Response(self.image_status, content=b"\x89PNG")
        status = self.send_statuses.pop(0) if self.send_statuses else 200
        return httpx.Response(status, text="" if status < 400 else "boom, retry after 0")

    @property
    def sends(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/sendMessage")]


@pytest.fixture()
def api() -> FakeYoApi:
    return FakeYoApi()


def _transport(api: FakeYoApi, **queue_kwargs: Any) -> YoAITransport:
    return YoAITransport(
        "yo-key",
        "yo-channel",
        DispatchQueue(spacing_seconds=0.0, **queue_kwargs),
        client=httpx.AsyncClient(transport=httpx.MockTransport(api)),
        api_url=API_URL,
    )


def _alert(collection: Collection) -> ProgressChangeAlert:
    change = ChangeRecord(
        collection_id=collection.id,
        partition=PartitionType.REGULAR,
        previous=11.0,
        current=collection.percent,
        delta=1.25,
        signed_delta=1.25,
        threshold=0.5,
    )
    return ProgressChangeAlert(collection=collection, change=change)


class TestTextMessages:
    """Tests for plain sendMessage calls."""

    @pytest.mark.asyncio()
    async def test_progress_change_text(
        self, api: FakeYoApi, regular_collection: Collection
    ) -> None:
        transport = _transport(api)
        try:
            assert await transport.send_progress_change(_alert(regular_collection))
        finally:
            await transport.aclose()

        request = api.sends[0]
        assert request.headers["X-YoAI-API-Key"] == "yo-key"
        body = json.loads(request.content)
        assert body["to"] == "yo-channel"
        assert body["text"].endswith(
            "🔗 View: https://sss.ortak.me/collections/golden-goose/nfts"
        )

    @pytest.mark.asyncio()
    async def test_privileged_never_sent(
        self, api: FakeYoApi, regular_collection: Collection
    ) -> None:
        transport = _transport(api)
        try:
            assert not await transport.send_privileged_progress_change(_alert(regular_collection))
        finally:
            await transport.aclose()
        assert api.requests == []

    @pytest.mark.asyncio()
    async def test_empty_digest_skipped(self, api: FakeYoApi) -> None:
        transport = _transport(api)
        try:
            assert not await transport.send_upcoming_rewards([], time_boxed=True)
        finally:
            await transport.aclose()
        assert api.requests == []


class TestPhotoMessages:
    """Tests for uploads and their text fallback."""

    @pytest.mark.asyncio()
    async def test_chart_upload(self, api: FakeYoApi, regular_collection: Collection) -> None:
        transport = _transport(api)
        try:
            await transport.send_progress_change(_alert(regular_collection), b"\x89PNG")
        finally:
            await transport.aclose()

        request = api.sends[0]
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b'name="file"; filename="chart.png"' in request.content

    @pytest.mark.asyncio()
    async def test_new_collection_fetches_image(
        self, api: FakeYoApi, regular_collection: Collection
    ) -> None:
        transport = _transport(api)
        try:
            await transport.send_new_collection(regular_collection)
        finally:
            await transport.aclose()

        assert api.requests[0].url.host == IMAGE_HOST
        assert b'name="file"; filename="image.png"' in api.sends[0].content

    @pytest.mark.asyncio()
    async def test_image_fetch_failure_falls_back(
        self, api: FakeYoApi, regular_collection: Collection
    ) -> None:
        api.image_status = 404
        transport = _transport(api)
        try:
            await transport.send_last_chance(
                regular_collection.model_copy(update={"live_date": 120})
            )
        finally:
            await transport.aclose()

        assert len(api.sends) == 1
        assert "LAST CHANCE" in json.loads(api.sends[0].content)["text"]

    @pytest.mark.asyncio()
    async def test_upload_failure_falls_back(
        self, api: FakeYoApi, regular_collection: Collection
    ) -> None:
        api.send_statuses = [500]
        transport = _transport(api)
        try:
            assert await transport.send_progress_change(_alert(regular_collection), b"\x89PNG")
        finally:
            await transport.aclose()

        assert len(api.sends) == 2
        assert api.sends[1].headers["content-type"] == "application/json"


class TestErrors:
    """Tests for HTTP error mapping."""

    @pytest.mark.asyncio()
    async def test_client_error(self, api: FakeYoApi, regular_collection: Collection) -> None:
        api.send_statuses = [403]
        transport = _transport(api)
        try:
            with pytest.raises(NotificationError) as exc_info:
                await transport.send_progress_change(_alert(regular_collection))
        finally:
            await transport.aclose()
        assert exc_info.value.http_status == 403

    @pytest.mark.asyncio()
    async def test_rate_limit(self, api: FakeYoApi, regular_collection: Collection) -> None:
        api.send_statuses = [429, 429]
        transport = _transport(api, fallback_retry_seconds=0.0)
        try:
            with pytest.raises(RateLimitExceededError):
                await transport.send_progress_change(_alert(regular_collection))
        finally:
            await transport.aclose()
        assert len(api.sends) == 2
