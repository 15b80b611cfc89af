"""Refresh notifications for kubesource.

Exports:
    RefreshListener        -- Abstract base for refresh consumers.
    RefreshEventPublisher  -- Fans refresh events out without blocking the
                              reconcilers.
    WebhookRefreshListener -- Generic JSON POST webhook listener.
    build_refresh_publisher -- Factory used by the application bootstrap.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import structlog

from kubesource.notifications.manager import RefreshEventPublisher, RefreshListener
from kubesource.notifications.webhook import WebhookRefreshListener

if TYPE_CHECKING:
    from kubesource.models.config import NotificationConfig

_log = structlog.get_logger(component="notifications")

__all__ = [
    "RefreshEventPublisher",
    "RefreshListener",
    "WebhookRefreshListener",
    "build_refresh_publisher",
]


def build_refresh_publisher(config: NotificationConfig) -> RefreshEventPublisher:
    """Build a RefreshEventPublisher from environment-resolved secrets.

    ``config.webhook_secret_ref`` names an environment variable whose value
    is the webhook URL; the webhook listener is enabled only when that
    variable is non-empty.
    """
    listeners: list[RefreshListener] = []

    webhook_ref = config.webhook_secret_ref
    if webhook_ref:
        webhook_url = os.environ.get(webhook_ref, "")
        if webhook_url:
            listeners.append(WebhookRefreshListener(url=webhook_url))
            _log.info("webhook_listener_enabled")
        else:
            _log.debug("webhook_listener_skipped", reason="secret ref env var is empty")

    if not listeners:
        _log.info("no_refresh_listeners_configured")

    return RefreshEventPublisher(listeners=listeners)
