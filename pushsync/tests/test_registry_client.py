"""
DeliveryRegistryClient against a scripted httpx.MockTransport.

Checks the wire shape of each call and how transport failures and HTTP
statuses map onto the error taxonomy.
"""

import json

import httpx
import pytest

from pushsync.core.errors import NetworkFailure, RegistryError, ServiceUnavailable
from pushsync.core.events import NotificationKind
from pushsync.schemas.preference import PreferencePatch
from pushsync.schemas.push import PushKeys, PushSubscription
from pushsync.tests.conftest import TEST_VAPID_KEY, notification_json


def make_subscription(endpoint="https://push.example.test/send/abc") -> PushSubscription:
    return PushSubscription(endpoint=endpoint, keys=PushKeys(p256dh="p256", auth="secret"))


class TestPushCalls:
    @pytest.mark.asyncio
    async def test_vapid_key(self, mock_registry):
        vapid = await mock_registry.client.get_vapid_key()
        assert vapid.available is True
        assert vapid.public_key == TEST_VAPID_KEY

    @pytest.mark.asyncio
    async def test_vapid_key_503_means_unavailable(self, mock_registry):
        mock_registry.fail("GET", "/push/vapid-key", 503)
        vapid = await mock_registry.client.get_vapid_key()
        assert vapid.available is False
        assert vapid.public_key is None

    @pytest.mark.asyncio
    async def test_register_sends_subscription_and_label(self, mock_registry):
        await mock_registry.client.register_subscription(make_subscription(), "Desktop Browser")
        (request,) = mock_registry.calls("POST", "/push/subscriptions")
        body = json.loads(request.content)
        assert body["deviceLabel"] == "Desktop Browser"
        assert body["subscription"]["endpoint"] == "https://push.example.test/send/abc"
        assert body["subscription"]["keys"] == {"p256dh": "p256", "auth": "secret"}
        assert request.headers["Authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    async def test_delete_quotes_endpoint(self, mock_registry):
        await mock_registry.client.delete_subscription("https://push.example.test/send/a b")
        (request,) = mock_registry.calls("DELETE", "/push/subscriptions/")
        assert request.url.raw_path.decode().endswith("https%3A%2F%2Fpush.example.test%2Fsend%2Fa%20b")


class TestPreferenceCalls:
    @pytest.mark.asyncio
    async def test_get_preferences_parses_camel_case(self, mock_registry):
        mock_registry.preferences["enableEmail"] = False
        prefs = await mock_registry.client.get_preferences()
        assert prefs.enable_email is False
        assert prefs.enable_notifications is True

    @pytest.mark.asyncio
    async def test_update_sends_only_changed_fields_with_sequence(self, mock_registry):
        patch = PreferencePatch(enable_email=False)
        prefs = await mock_registry.client.update_preferences(patch, sequence=7)
        (request,) = mock_registry.calls("PATCH", "/notifications/preferences")
        assert json.loads(request.content) == {"enableEmail": False}
        assert request.headers["X-Client-Sequence"] == "7"
        assert prefs.enable_email is False


class TestNotificationCalls:
    @pytest.mark.asyncio
    async def test_list_passes_filters(self, mock_registry):
        mock_registry.notifications = [notification_json(1), notification_json(2, kind="budget_alert")]
        page = await mock_registry.client.list_notifications(
            limit=5, unread_only=True, kind=NotificationKind.BUDGET_ALERT
        )
        (request,) = mock_registry.calls("GET", "/notifications")
        assert request.url.params["limit"] == "5"
        assert request.url.params["unreadOnly"] == "true"
        assert request.url.params["type"] == "budget_alert"
        assert page.total == 2
        assert [n.id for n in page.notifications] == [1, 2]

    @pytest.mark.asyncio
    async def test_record_accepts_legacy_field_names(self, mock_registry):
        legacy = notification_json(1)
        legacy["type"] = legacy.pop("kind")
        legacy["message"] = legacy.pop("body")
        mock_registry.notifications = [legacy]
        page = await mock_registry.client.list_notifications()
        assert page.notifications[0].kind is NotificationKind.SYSTEM
        assert page.notifications[0].body == "body"

    @pytest.mark.asyncio
    async def test_mark_read(self, mock_registry):
        mock_registry.notifications = [notification_json(3)]
        record = await mock_registry.client.mark_read(3)
        assert record.is_read is True

    @pytest.mark.asyncio
    async def test_missing_notification_is_registry_error(self, mock_registry):
        with pytest.raises(RegistryError) as exc_info:
            await mock_registry.client.delete_notification(99)
        assert exc_info.value.status_code == 404
        assert exc_info.value.retryable is False
        assert "not found" in str(exc_info.value).lower()


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_connect_error_is_network_failure(self, mock_registry):
        mock_registry.fail("GET", "/notifications", httpx.ConnectError("connection refused"))
        with pytest.raises(NetworkFailure) as exc_info:
            await mock_registry.client.list_notifications()
        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_timeout_is_network_failure(self, mock_registry):
        mock_registry.fail("GET", "/notifications/preferences", httpx.ReadTimeout("too slow"))
        with pytest.raises(NetworkFailure):
            await mock_registry.client.get_preferences()

    @pytest.mark.asyncio
    async def test_500_is_network_failure(self, mock_registry):
        mock_registry.fail("POST", "/notifications/read-all", 500)
        with pytest.raises(NetworkFailure):
            await mock_registry.client.mark_all_read()

    @pytest.mark.asyncio
    async def test_503_is_service_unavailable(self, mock_registry):
        mock_registry.fail("POST", "/push/subscriptions", 503)
        with pytest.raises(ServiceUnavailable):
            await mock_registry.client.register_subscription(make_subscription(), "x")

    @pytest.mark.asyncio
    async def test_401_is_registry_error(self, mock_registry):
        mock_registry.fail("GET", "/notifications/unread-count", 401)
        with pytest.raises(RegistryError) as exc_info:
            await mock_registry.client.unread_count()
        assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_async_context_manager_closes_client():
    from pushsync.client.registry import DeliveryRegistryClient

    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"count": 4}))
    async with DeliveryRegistryClient(base_url="http://registry.test/api", transport=transport) as registry:
        assert await registry.unread_count() == 4
    assert registry._client.is_closed
