"""Tests for the refresh event publisher and the webhook listener."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from kubesource.models.config import NotificationConfig
from kubesource.models.properties import RefreshEvent
from kubesource.notifications import build_refresh_publisher
from kubesource.notifications.manager import RefreshEventPublisher, RefreshListener
from kubesource.notifications.webhook import WebhookRefreshListener


class _RecordingListener(RefreshListener):
    def __init__(self, name: str = "recording", result: bool = True, error: Exception | None = None) -> None:
        self._name = name
        self._result = result
        self._error = error
        self.events: list[RefreshEvent] = []

    @property
    def listener_name(self) -> str:
        return self._name

    async def on_refresh(self, event: RefreshEvent) -> bool:
        if self._error is not None:
            raise self._error
        self.events.append(event)
        return self._result


def _make_event(**changes: object) -> RefreshEvent:
    return RefreshEvent(changes=dict(changes) or {"a": "1"}, cause="ConfigMap default/app modified")


class TestRefreshEventPublisher:
    async def test_fans_out_to_every_listener(self) -> None:
        first, second = _RecordingListener("first"), _RecordingListener("second")
        publisher = RefreshEventPublisher([first, second])

        publisher.publish(_make_event())
        await publisher.drain()

        assert len(first.events) == 1
        assert len(second.events) == 1

    async def test_failing_listener_does_not_block_others(self) -> None:
        broken = _RecordingListener("broken", error=RuntimeError("boom"))
        healthy = _RecordingListener("healthy")
        publisher = RefreshEventPublisher([broken, healthy])

        publisher.publish(_make_event())
        await publisher.drain()

        assert len(healthy.events) == 1

    async def test_subscribers_receive_events(self) -> None:
        publisher = RefreshEventPublisher()
        queue = publisher.subscribe()
        event = _make_event()

        publisher.publish(event)

        assert await asyncio.wait_for(queue.get(), timeout=1) is event
        assert publisher.last_event is event

    async def test_lagging_subscriber_drops_oldest(self) -> None:
        publisher = RefreshEventPublisher(queue_size=1)
        queue = publisher.subscribe()
        publisher.publish(_make_event(a="1"))
        latest = _make_event(a="2")

        publisher.publish(latest)

        assert queue.qsize() == 1
        assert queue.get_nowait() is latest

    def test_publish_without_loop_does_not_raise(self) -> None:
        publisher = RefreshEventPublisher([_RecordingListener()])
        publisher.publish(_make_event())
        assert publisher.last_event is not None


class TestWebhookRefreshListener:
    async def test_posts_changed_keys(self) -> None:
        response = MagicMock(is_success=True)
        client = AsyncMock()
        client.post.return_value = response
        client.__aenter__.return_value = client
        listener = WebhookRefreshListener(url="https://hooks.example.com/refresh")

        with patch("kubesource.notifications.webhook.httpx.AsyncClient", return_value=client):
            ok = await listener.on_refresh(_make_event(b="2", a="1"))

        assert ok is True
        payload = client.post.call_args.kwargs["json"]
        assert payload["changed_keys"] == ["a", "b"]
        assert "1" not in payload.values()

    async def test_non_2xx_returns_false(self) -> None:
        response = MagicMock(is_success=False, status_code=500, text="error")
        client = AsyncMock()
        client.post.return_value = response
        client.__aenter__.return_value = client
        listener = WebhookRefreshListener(url="https://hooks.example.com/refresh")

        with patch("kubesource.notifications.webhook.httpx.AsyncClient", return_value=client):
            assert await listener.on_refresh(_make_event()) is False

    async def test_transport_error_returns_false(self) -> None:
        client = AsyncMock()
        client.post.side_effect = httpx.ConnectError("refused")
        client.__aenter__.return_value = client
        listener = WebhookRefreshListener(url="https://hooks.example.com/refresh")

        with patch("kubesource.notifications.webhook.httpx.AsyncClient", return_value=client):
            assert await listener.on_refresh(_make_event()) is False


class TestBuildRefreshPublisher:
    def test_webhook_enabled_from_secret_ref(self, monkeypatch) -> None:
        monkeypatch.setenv("REFRESH_HOOK_URL", "https://hooks.example.com/refresh")
        publisher = build_refresh_publisher(NotificationConfig(webhook_secret_ref="REFRESH_HOOK_URL"))
        assert [listener.listener_name for listener in publisher.listeners] == ["webhook"]

    def test_empty_secret_ref_means_no_listener(self, monkeypatch) -> None:
        monkeypatch.delenv("REFRESH_HOOK_URL", raising=False)
        publisher = build_refresh_publisher(NotificationConfig(webhook_secret_ref="REFRESH_HOOK_URL"))
        assert publisher.listeners == []
