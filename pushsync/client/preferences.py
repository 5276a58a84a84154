"""
Notification preference store.

Holds the user's delivery switches. Writes are optimistic: ``set()`` merges
the patch locally before the request leaves, so ``get()`` reflects it at
once. A patch the registry rejects is compensated through the mutation
queue: only that patch is undone, later patches to other fields survive.

Each patch carries a monotonically increasing client sequence number. The
registry applies patches in arrival order (last write wins); locally, the
confirmed snapshot is folded in request order regardless of which response
comes back first.
"""

import itertools
import logging
from typing import Any

from pushsync.client.mutations import InFlightToken, MutationQueue
from pushsync.client.registry import DeliveryRegistryClient
from pushsync.client.storage import KeyValueStore, MemoryStorage
from pushsync.core.errors import NotificationError, as_notification_error
from pushsync.core.events import DeliveryChannel, NotificationKind
from pushsync.schemas.preference import NotificationPreference, PreferencePatch

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "preferences:snapshot"


class PreferenceStore:
    def __init__(self, registry: DeliveryRegistryClient, storage: KeyValueStore | None = None) -> None:
        self._registry = registry
        self._storage = storage if storage is not None else MemoryStorage()
        self._queue: MutationQueue[NotificationPreference] = MutationQueue(NotificationPreference())
        self._sequence = itertools.count(1)
        self._token = InFlightToken()
        self._closed = False
        self.last_error: NotificationError | None = None
        self.loaded = False

    def get(self) -> NotificationPreference:
        """Current preferences, including patches still in flight. Never None."""
        return self._queue.view

    def allows(self, kind: NotificationKind | str, channel: DeliveryChannel | str | None = None) -> bool:
        return self.get().allows(kind, channel)

    @property
    def pending(self) -> int:
        return len(self._queue.pending)

    async def load(self) -> NotificationPreference:
        """Fetch the remote record; fall back to the last cached snapshot on failure."""
        token = self._token.begin()
        mark = self._queue.begin_read()
        try:
            return await self._load(token, mark)
        finally:
            self._queue.end_read(mark)

    async def _load(self, token: int, mark: int) -> NotificationPreference:
        try:
            remote = await self._registry.get_preferences()
        except Exception as exc:
            err = as_notification_error(exc)
            logger.warning("Could not fetch notification preferences: %s", err)
            if self._closed or not self._token.is_current(token):
                return self.get()
            self.last_error = err
            cached = await self._storage.get(SNAPSHOT_KEY)
            if cached is not None and not self.loaded:
                self._queue.rebase(NotificationPreference.model_validate(cached), since=mark)
            return self.get()

        if self._closed or not self._token.is_current(token):
            return self.get()
        self._queue.rebase(remote, since=mark)
        self.loaded = True
        self.last_error = None
        await self._persist()
        return self.get()

    async def set(self, patch: dict[str, Any] | PreferencePatch) -> bool:
        """Apply ``patch`` locally now, then send it.

        Field names may be snake_case or the camelCase wire names; unknown
        names raise ValueError before anything changes. Returns False (and
        rolls the patch back) if the registry call fails.
        """
        if not isinstance(patch, PreferencePatch):
            patch = PreferencePatch.model_validate(patch)
        changes = patch.changes()
        if not changes:
            return True

        sequence = next(self._sequence)
        mutation = self._queue.push(
            f"set {sorted(changes)}",
            lambda prefs: prefs.model_copy(update=changes),
        )

        try:
            await self._registry.update_preferences(patch, sequence=sequence)
        except Exception as exc:
            err = as_notification_error(exc)
            logger.warning("Preference update #%s failed, rolling back: %s", sequence, err)
            if not self._closed:
                self._queue.rollback(mutation)
                self.last_error = err
            return False

        if self._closed:
            return True
        self._queue.commit(mutation)
        self.last_error = None
        await self._persist()
        return True

    async def _persist(self) -> None:
        await self._storage.set(SNAPSHOT_KEY, self._queue.base.model_dump(mode="json"))

    def close(self) -> None:
        self._closed = True
        self._token.invalidate()
