"""
Delivery registry client.

Thin async wrapper over the registry HTTP API. Every call has a timeout;
transport errors and timeouts surface as NetworkFailure, a 503 as
ServiceUnavailable, other non-2xx statuses as RegistryError. No retries
happen here; callers decide.
"""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from pushsync.config import settings
from pushsync.core.errors import NetworkFailure, RegistryError, ServiceUnavailable
from pushsync.core.events import NotificationKind
from pushsync.schemas.notification import NotificationPage, NotificationRecord
from pushsync.schemas.preference import NotificationPreference, PreferencePatch
from pushsync.schemas.push import DeviceRegistrationResponse, PushSubscription, VapidKey

logger = logging.getLogger(__name__)


class DeliveryRegistryClient:
    """Client for the push subscription / preference / notification registry."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json", "User-Agent": "pushsync-client/1.0"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.REGISTRY_URL,
            headers=headers,
            timeout=timeout if timeout is not None else settings.REGISTRY_TIMEOUT,
            transport=transport,
        )

    async def __aenter__(self) -> "DeliveryRegistryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out: %s", method, path, exc)
            raise NetworkFailure(f"Registry request timed out: {method} {path}", cause=exc) from exc
        except httpx.RequestError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise NetworkFailure(f"Registry unreachable: {exc}", cause=exc) from exc

        logger.debug("%s %s - Status: %s", method, path, response.status_code)
        return self._handle_response(response)

    @staticmethod
    def _handle_response(response: httpx.Response) -> Any:
        try:
            data = response.json() if response.content else None
        except ValueError:
            data = {"detail": response.text}

        if response.is_success:
            return data

        detail = (data.get("detail") or data.get("message")) if isinstance(data, dict) else None
        message = str(detail or response.reason_phrase or "Registry error")

        if response.status_code == 503:
            raise ServiceUnavailable(message)
        if response.status_code >= 500:
            raise NetworkFailure(f"Registry error {response.status_code}: {message}")
        raise RegistryError(message, status_code=response.status_code)

    # ------------------------------------------------------------------
    # Push subscriptions
    # ------------------------------------------------------------------

    async def get_vapid_key(self) -> VapidKey:
        try:
            data = await self._request("GET", "/push/vapid-key")
        except ServiceUnavailable:
            # Older registries answer 503 instead of available=false
            return VapidKey(public_key=None, available=False)
        return VapidKey.model_validate(data or {})

    async def register_subscription(self, subscription: PushSubscription, device_label: str) -> dict:
        body = {"subscription": subscription.to_json(), "deviceLabel": device_label}
        return await self._request("POST", "/push/subscriptions", json=body)

    async def delete_subscription(self, endpoint: str) -> dict:
        return await self._request("DELETE", f"/push/subscriptions/{quote(endpoint, safe='')}")

    async def list_devices(self) -> list[DeviceRegistrationResponse]:
        data = await self._request("GET", "/push/devices")
        return [DeviceRegistrationResponse.model_validate(d) for d in data or []]

    async def delete_device(self, device_id: int) -> dict:
        return await self._request("DELETE", f"/push/devices/{device_id}")

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def get_preferences(self) -> NotificationPreference:
        data = await self._request("GET", "/notifications/preferences")
        return NotificationPreference.model_validate(data or {})

    async def update_preferences(self, patch: PreferencePatch, sequence: int | None = None) -> NotificationPreference:
        headers = {"X-Client-Sequence": str(sequence)} if sequence is not None else None
        data = await self._request("PATCH", "/notifications/preferences", json=patch.to_wire(), headers=headers)
        return NotificationPreference.model_validate(data or {})

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def list_notifications(
        self,
        limit: int | None = None,
        offset: int = 0,
        unread_only: bool = False,
        kind: NotificationKind | str | None = None,
    ) -> NotificationPage:
        params: dict[str, Any] = {"limit": limit or settings.FEED_PAGE_SIZE, "offset": offset}
        if unread_only:
            params["unreadOnly"] = "true"
        if kind is not None:
            params["type"] = NotificationKind(kind).value
        data = await self._request("GET", "/notifications", params=params)
        return NotificationPage.model_validate(data or {})

    async def unread_count(self) -> int:
        data = await self._request("GET", "/notifications/unread-count")
        return int((data or {}).get("count", 0))

    async def mark_read(self, notification_id: int) -> NotificationRecord | None:
        data = await self._request("POST", f"/notifications/{notification_id}/read")
        return NotificationRecord.model_validate(data) if data else None

    async def mark_all_read(self) -> dict:
        return await self._request("POST", "/notifications/read-all")

    async def delete_notification(self, notification_id: int) -> dict:
        return await self._request("DELETE", f"/notifications/{notification_id}")

    async def send_test(self) -> dict:
        return await self._request("POST", "/notifications/test")
