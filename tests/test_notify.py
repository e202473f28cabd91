"""Tests for notification delivery and the fire-and-forget adapter."""

from __future__ import annotations

import json

import httpx
import pytest

from afkguard.errors import NotificationError
from afkguard.notify.adapter import EventKind, NotificationAdapter
from afkguard.notify.notifier import EMBED_COLORS, Severity, WebhookNotifier, build_embed

LOG_URL = "https://hooks.example.org/log"
CHAT_URL = "https://hooks.example.org/chat"


def make_client(requests: list[httpx.Request], status_code: int = 204) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_webhook_routes_by_channel() -> None:
    requests: list[httpx.Request] = []
    notifier = WebhookNotifier(LOG_URL, CHAT_URL, client=make_client(requests))

    await notifier.notify("Connected", "joined", Severity.SUCCESS, {"channel": "log"})
    await notifier.notify("Chat", "hello", Severity.INFO, {"channel": "chat", "author": "alex"})

    assert [str(r.url) for r in requests] == [LOG_URL, CHAT_URL]
    log_embed = json.loads(requests[0].content)["embeds"][0]
    assert log_embed["title"] == "Connected"
    assert log_embed["color"] == EMBED_COLORS[Severity.SUCCESS]
    chat_embed = json.loads(requests[1].content)["embeds"][0]
    assert chat_embed["author"] == {"name": "alex"}
    assert "title" not in chat_embed


@pytest.mark.asyncio
async def test_webhook_without_chat_url_skips_chat() -> None:
    requests: list[httpx.Request] = []
    notifier = WebhookNotifier(LOG_URL, None, client=make_client(requests))

    await notifier.notify("Chat", "hello", Severity.INFO, {"channel": "chat"})

    assert requests == []
    assert notifier.enabled


@pytest.mark.asyncio
async def test_webhook_http_error_raises_notification_error() -> None:
    notifier = WebhookNotifier(LOG_URL, client=make_client([], status_code=500))

    with pytest.raises(NotificationError):
        await notifier.notify("Connected", "joined")


def test_build_embed_fields() -> None:
    embed = build_embed("Status", "report", Severity.INFO, {"fields": {"Uptime": "1h 0m 0s", "Players": 3}})

    assert embed["fields"] == [
        {"name": "Uptime", "value": "1h 0m 0s", "inline": True},
        {"name": "Players", "value": "3", "inline": True},
    ]


@pytest.mark.asyncio
async def test_adapter_does_not_block_or_raise_on_failure(failing_notifier) -> None:
    adapter = NotificationAdapter(failing_notifier)

    task = adapter.notify(EventKind.DISCONNECTED, "lost", Severity.ERROR)
    assert task is not None
    await adapter.drain()

    assert adapter.failed == 1
    assert adapter.delivered == 0
    assert task.exception() is None


@pytest.mark.asyncio
async def test_adapter_builds_metadata(notifier) -> None:
    adapter = NotificationAdapter(notifier)

    adapter.notify(EventKind.PLAYER_JOINED, "**alex** joined the game.", fields={"Current Players": 1})
    adapter.notify(EventKind.CONNECTED, "joined", Severity.SUCCESS)
    await adapter.drain()

    assert adapter.delivered == 2
    by_kind = {meta["kind"]: (title, meta) for title, _, _, meta in notifier.sent}
    assert by_kind["player_joined"][1]["channel"] == "chat"
    assert by_kind["player_joined"][1]["fields"] == {"Current Players": 1}
    assert by_kind["connected"][1]["channel"] == "log"
    assert by_kind["connected"][0] == "✅ Connected"


def test_adapter_without_running_loop_skips(notifier) -> None:
    adapter = NotificationAdapter(notifier)

    assert adapter.notify(EventKind.STARTUP, "started") is None
