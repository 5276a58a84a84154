"""
Push platform capability port.

The host platform (a browser's service worker registration and
PushManager, a mobile push SDK, ...) is reached only through this
interface so the subscription manager can run and be tested anywhere.
"""

from abc import ABC, abstractmethod

from pushsync.core.events import PermissionState
from pushsync.schemas.push import PushSubscription


class PushPlatform(ABC):
    """What the subscription manager needs from the host platform."""

    @abstractmethod
    def is_supported(self) -> bool:
        """Does this device expose a push transport at all? Must not block."""

    @abstractmethod
    async def get_permission(self) -> PermissionState:
        """Current permission without prompting."""

    @abstractmethod
    async def request_permission(self) -> PermissionState:
        """Prompt the user if needed. A ``denied`` answer is sticky for the session."""

    @abstractmethod
    async def open_channel(self, application_server_key: bytes, *, user_visible_only: bool = True) -> PushSubscription:
        """Open (or replace) this device's push channel bound to the server key."""

    @abstractmethod
    async def close_channel(self) -> bool:
        """Close the active channel. Returns False when there was none."""

    @abstractmethod
    async def get_active_channel(self) -> PushSubscription | None:
        """The channel the platform currently holds for this app, if any."""
