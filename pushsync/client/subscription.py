"""
Push subscription lifecycle.

SubscriptionManager owns the device's push channel: it detects platform
support, negotiates permission, opens the channel against the registry's
VAPID key, registers it, and tears it down again. It never renders and never
retries; every failure is stored in ``last_error`` before it propagates so a
caller can always draw the right UI from ``status()``.

State machine:

  unsupported                       (terminal, resolved at construction)
  idle --check_status--> checking --> subscribed | idle
  idle|subscribed|error --subscribe--> subscribing --> subscribed | error
  subscribed --unsubscribe--> unsubscribing --> idle

subscribe() and unsubscribe() are serialised: a call made while another is
in flight waits for it. close() discards any result that arrives afterwards.
"""

import asyncio
import logging
from dataclasses import dataclass

from pushsync.client.mutations import InFlightToken
from pushsync.client.platform import PushPlatform
from pushsync.client.registry import DeliveryRegistryClient
from pushsync.client.storage import KeyValueStore, MemoryStorage
from pushsync.core.errors import (
    NotificationError,
    PermissionDenied,
    ServiceUnavailable,
    Unsupported,
    as_notification_error,
)
from pushsync.core.events import PermissionState, SubscriptionState
from pushsync.core.keys import decode_server_key
from pushsync.schemas.push import PushSubscription

logger = logging.getLogger(__name__)

ENDPOINT_KEY = "push:endpoint"
DEVICE_LABEL_KEY = "push:device_label"
ORPHANED_ENDPOINT_KEY = "push:orphaned_endpoint"


@dataclass(frozen=True)
class SubscriptionStatus:
    state: SubscriptionState
    is_supported: bool
    is_subscribed: bool
    is_loading: bool
    permission: PermissionState
    error: NotificationError | None
    device_label: str | None = None
    orphaned_endpoint: str | None = None


class SubscriptionManager:
    def __init__(
        self,
        platform: PushPlatform,
        registry: DeliveryRegistryClient,
        storage: KeyValueStore | None = None,
    ) -> None:
        self._platform = platform
        self._registry = registry
        self._storage = storage if storage is not None else MemoryStorage()
        self._lock = asyncio.Lock()
        self._token = InFlightToken()
        self._closed = False

        self.subscription: PushSubscription | None = None
        self.device_label: str | None = None
        self.permission = PermissionState.DEFAULT
        self.last_error: NotificationError | None = None
        self.orphaned_endpoint: str | None = None
        self.is_loading = False
        self.state = SubscriptionState.IDLE if platform.is_supported() else SubscriptionState.UNSUPPORTED

    @property
    def is_supported(self) -> bool:
        return self.state is not SubscriptionState.UNSUPPORTED

    @property
    def is_subscribed(self) -> bool:
        return self.subscription is not None

    def status(self) -> SubscriptionStatus:
        return SubscriptionStatus(
            state=self.state,
            is_supported=self.is_supported,
            is_subscribed=self.is_subscribed,
            is_loading=self.is_loading,
            permission=self.permission,
            error=self.last_error,
            device_label=self.device_label,
            orphaned_endpoint=self.orphaned_endpoint,
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def check_status(self) -> SubscriptionState:
        """Re-read permission and the platform's active channel.

        Read-only: never calls the registry. A failed query clears the
        subscribed flag and records the error instead of raising. While a
        subscribe/unsubscribe is in flight the current state is returned as is.
        """
        if self._closed or not self.is_supported or self._lock.locked():
            return self.state

        token = self._token.begin()
        self.state = SubscriptionState.CHECKING
        self.is_loading = True
        try:
            permission = await self._platform.get_permission()
            channel = await self._platform.get_active_channel()
            device_label = await self._storage.get(DEVICE_LABEL_KEY)
            orphaned = await self._storage.get(ORPHANED_ENDPOINT_KEY)
        except Exception as exc:
            if self._token.is_current(token):
                logger.warning("Error checking push subscription: %s", exc)
                self.subscription = None
                self.last_error = as_notification_error(exc)
                self.state = SubscriptionState.IDLE
                self.is_loading = False
            return self.state

        if not self._token.is_current(token):
            return self.state

        self.permission = PermissionState(permission)
        self.subscription = channel
        self.device_label = device_label if channel is not None else None
        self.orphaned_endpoint = orphaned
        self.last_error = None
        self.state = SubscriptionState.SUBSCRIBED if channel is not None else SubscriptionState.IDLE
        self.is_loading = False
        return self.state

    # ------------------------------------------------------------------
    # Subscribe
    # ------------------------------------------------------------------

    async def subscribe(self, device_label: str = "Web Browser") -> PushSubscription:
        """Ask for permission, open a channel and register it with the registry."""
        if not self.is_supported:
            self.last_error = Unsupported("Push notifications are not supported on this device")
            raise self.last_error

        async with self._lock:
            if self._closed:
                raise NotificationError("Subscription manager is closed")
            token = self._token.begin()
            self.state = SubscriptionState.SUBSCRIBING
            self.is_loading = True
            self.last_error = None
            try:
                return await self._subscribe(token, device_label)
            finally:
                if self._token.is_current(token):
                    self.is_loading = False

    async def _subscribe(self, token: int, device_label: str) -> PushSubscription:
        # 1. Permission. A refusal leaves whatever was subscribed before alone.
        try:
            permission = PermissionState(await self._platform.request_permission())
        except Exception as exc:
            raise self._fail(token, exc)
        if self._token.is_current(token):
            self.permission = permission
        if permission is not PermissionState.GRANTED:
            err = PermissionDenied("Notification permission denied")
            if self._token.is_current(token):
                self.last_error = err
                self.state = SubscriptionState.SUBSCRIBED if self.subscription else SubscriptionState.IDLE
            raise err

        try:
            # 2. Server key
            vapid = await self._registry.get_vapid_key()
            if not vapid.available or not vapid.public_key:
                raise ServiceUnavailable("Push notifications are not configured on the server")

            # 3. Channel
            server_key = decode_server_key(vapid.public_key)
            channel = await self._platform.open_channel(server_key, user_visible_only=True)
        except Exception as exc:
            raise self._fail(token, exc)

        # 4. Registration, only once a channel actually exists
        try:
            await self._registry.register_subscription(channel, device_label)
        except Exception as exc:
            await self._close_unregistered_channel()
            raise self._fail(token, exc, clear_subscription=True)

        # 5. Done
        if not self._token.is_current(token):
            logger.info("Discarding subscribe result for a closed manager")
            return channel
        self.subscription = channel
        self.device_label = device_label
        self.state = SubscriptionState.SUBSCRIBED
        await self._storage.set(ENDPOINT_KEY, channel.endpoint)
        await self._storage.set(DEVICE_LABEL_KEY, device_label)
        logger.info("Push subscription registered (%s)", device_label)
        return channel

    async def _close_unregistered_channel(self) -> None:
        try:
            await self._platform.close_channel()
        except Exception as exc:
            logger.warning("Could not close push channel after failed registration: %s", exc)

    def _fail(self, token: int, exc: BaseException, clear_subscription: bool = False) -> NotificationError:
        err = as_notification_error(exc)
        logger.warning("Error subscribing to push: %s", err)
        if self._token.is_current(token):
            self.last_error = err
            self.state = SubscriptionState.ERROR
            if clear_subscription:
                self.subscription = None
        return err

    # ------------------------------------------------------------------
    # Unsubscribe
    # ------------------------------------------------------------------

    async def unsubscribe(self) -> None:
        """Drop the registry record, then the local channel.

        Both steps are always attempted. Whatever happens the manager ends up
        idle; the first failure is stored and raised. If the registry call
        failed its endpoint is kept as ``orphaned_endpoint`` for reconcile().
        """
        async with self._lock:
            if self._closed or self.subscription is None:
                return

            token = self._token.begin()
            endpoint = self.subscription.endpoint
            self.state = SubscriptionState.UNSUBSCRIBING
            self.is_loading = True
            self.last_error = None

            errors: list[NotificationError] = []
            remote_failed = False
            try:
                await self._registry.delete_subscription(endpoint)
            except Exception as exc:
                logger.warning("Error removing push registration: %s", exc)
                errors.append(as_notification_error(exc))
                remote_failed = True

            try:
                await self._platform.close_channel()
            except Exception as exc:
                logger.warning("Error closing push channel: %s", exc)
                errors.append(as_notification_error(exc))

            if remote_failed:
                await self._storage.set(ORPHANED_ENDPOINT_KEY, endpoint)
            await self._storage.delete(ENDPOINT_KEY)
            await self._storage.delete(DEVICE_LABEL_KEY)

            if self._token.is_current(token):
                self.subscription = None
                self.device_label = None
                if remote_failed:
                    self.orphaned_endpoint = endpoint
                self.last_error = errors[0] if errors else None
                self.state = SubscriptionState.IDLE
                self.is_loading = False

            if errors:
                raise errors[0]

    # ------------------------------------------------------------------
    # Reconciliation / teardown
    # ------------------------------------------------------------------

    async def reconcile(self) -> bool:
        """Retry deleting a registry record left behind by a failed unsubscribe.

        Returns True when nothing is left to clean up.
        """
        async with self._lock:
            endpoint = await self._storage.get(ORPHANED_ENDPOINT_KEY)
            if not endpoint:
                self.orphaned_endpoint = None
                return True

            if self.subscription is not None and self.subscription.endpoint == endpoint:
                # Re-subscribed on the same endpoint: the record is live again
                await self._storage.delete(ORPHANED_ENDPOINT_KEY)
                self.orphaned_endpoint = None
                return True

            try:
                await self._registry.delete_subscription(endpoint)
            except Exception as exc:
                self.last_error = as_notification_error(exc)
                logger.warning("Orphaned push registration still present: %s", exc)
                return False

            await self._storage.delete(ORPHANED_ENDPOINT_KEY)
            self.orphaned_endpoint = None
            logger.info("Orphaned push registration removed")
            return True

    def close(self) -> None:
        """Teardown. Results of operations still in flight are discarded."""
        self._closed = True
        self._token.invalidate()
