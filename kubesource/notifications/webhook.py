"""JSON webhook refresh listener.

POSTs the changed keys of every refresh event to a configured endpoint so
that out-of-process consumers can reload. Property values are never sent.
"""

from __future__ import annotations

import httpx
import structlog

from kubesource.models.properties import RefreshEvent
from kubesource.notifications.manager import RefreshListener

_log = structlog.get_logger(component="notifications.webhook")


class WebhookRefreshListener(RefreshListener):
    """Delivers refresh events by POSTing a JSON payload to *url*.

    Args:
        url:     Full endpoint URL.
        headers: Optional extra headers (e.g. Authorization).
        timeout: HTTP request timeout in seconds. Defaults to 10.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
    ) -> None:
        if not url:
            raise ValueError("Webhook url must not be empty")
        self._url = url
        self._headers = headers or {}
        self._timeout = timeout

    @property
    def listener_name(self) -> str:
        return "webhook"

    async def on_refresh(self, event: RefreshEvent) -> bool:
        """Returns True on a 2xx response, False otherwise."""
        request_headers = {"Content-Type": "application/json", **self._headers}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._url, json=self._build_payload(event), headers=request_headers)
        except httpx.TimeoutException:
            _log.warning("webhook_request_timeout", url=self._url)
            return False
        except httpx.HTTPError as exc:
            _log.warning("webhook_http_error", error=str(exc))
            return False

        if response.is_success:
            return True
        _log.warning("webhook_non_2xx_response", status_code=response.status_code, body=response.text[:200])
        return False

    @staticmethod
    def _build_payload(event: RefreshEvent) -> dict[str, object]:
        return {
            "changed_keys": event.changed_keys,
            "cause": event.cause,
            "occurred_at": event.occurred_at.isoformat(),
        }
