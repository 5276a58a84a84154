"""
Client-held notification feed.

The feed caches one page of notifications and lets the caller filter it,
mark entries read and delete them. Mutations show up immediately and are
rolled back if the registry rejects them; ``refresh()`` replaces the cached
page while keeping any mutation that is still in flight applied on top, so a
``mark_all_read()`` racing a refresh still marks the refreshed records read.
"""

import logging
from collections.abc import Callable
from typing import Literal

from pushsync.client.mutations import InFlightToken, MutationQueue
from pushsync.client.registry import DeliveryRegistryClient
from pushsync.config import settings
from pushsync.core.errors import NotificationError, as_notification_error
from pushsync.core.events import NotificationKind
from pushsync.schemas.notification import NotificationRecord

logger = logging.getLogger(__name__)

FeedFilter = Literal["all", "unread"] | NotificationKind | str
Records = dict[int, NotificationRecord]
RecordList = list[NotificationRecord]


def _newest_first(record: NotificationRecord) -> tuple:
    return (record.created_at.timestamp(), record.id)


def _mark_read(notification_id: int) -> Callable[[Records], Records]:
    def apply(records: Records) -> Records:
        record = records.get(notification_id)
        if record is None or record.is_read:
            return records
        updated = dict(records)
        updated[notification_id] = record.model_copy(update={"is_read": True})
        return updated

    return apply


def _mark_all_read(records: Records) -> Records:
    return {
        rid: (r if r.is_read else r.model_copy(update={"is_read": True}))
        for rid, r in records.items()
    }


def _remove(notification_id: int) -> Callable[[Records], Records]:
    def apply(records: Records) -> Records:
        if notification_id not in records:
            return records
        return {rid: r for rid, r in records.items() if rid != notification_id}

    return apply


class NotificationFeed:
    def __init__(self, registry: DeliveryRegistryClient, page_size: int | None = None) -> None:
        self._registry = registry
        self._page_size = page_size or settings.FEED_PAGE_SIZE
        self._queue: MutationQueue[Records] = MutationQueue({})
        self._refresh_token = InFlightToken()
        self._closed = False
        self.last_error: NotificationError | None = None
        self.total = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self, filter: FeedFilter = "all") -> list[NotificationRecord]:
        """Cached records matching ``filter``, newest first. Never hits the network."""
        records = self._queue.view.values()
        if filter == "all":
            selected = list(records)
        elif filter == "unread":
            selected = [r for r in records if not r.is_read]
        else:
            kind = NotificationKind(filter)
            selected = [r for r in records if r.kind is kind]
        return sorted(selected, key=_newest_first, reverse=True)

    def get(self, notification_id: int) -> NotificationRecord | None:
        return self._queue.view.get(notification_id)

    @property
    def unread_count(self) -> int:
        return sum(1 for r in self._queue.view.values() if not r.is_read)

    def __len__(self) -> int:
        return len(self._queue.view)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self, limit: int | None = None) -> RecordList:
        """Replace the cache with a freshly fetched page.

        If another refresh starts before this one resolves, this one's result
        is dropped. On failure the stale cache stays in place.
        """
        token = self._refresh_token.begin()
        mark = self._queue.begin_read()
        try:
            page = await self._registry.list_notifications(limit=limit or self._page_size)
        except Exception as exc:
            err = as_notification_error(exc)
            logger.warning("Could not refresh notifications: %s", err)
            if not self._closed and self._refresh_token.is_current(token):
                self.last_error = err
            return self.list()
        else:
            if self._closed or not self._refresh_token.is_current(token):
                logger.debug("Discarding superseded notification page")
                return self.list()

            self._queue.rebase({r.id: r for r in page.notifications}, since=mark)
            self.total = page.total
            self.last_error = None
            return self.list()
        finally:
            self._queue.end_read(mark)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def mark_read(self, notification_id: int) -> bool:
        return await self._mutate(
            f"read #{notification_id}",
            _mark_read(notification_id),
            lambda: self._registry.mark_read(notification_id),
        )

    async def mark_all_read(self) -> bool:
        return await self._mutate("read all", _mark_all_read, self._registry.mark_all_read)

    async def delete(self, notification_id: int) -> bool:
        ok = await self._mutate(
            f"delete #{notification_id}",
            _remove(notification_id),
            lambda: self._registry.delete_notification(notification_id),
        )
        if ok and not self._closed:
            self.total = max(self.total - 1, 0)
        return ok

    async def _mutate(self, label: str, apply: Callable[[Records], Records], call) -> bool:
        if self._closed:
            return False
        mutation = self._queue.push(label, apply)
        try:
            await call()
        except Exception as exc:
            err = as_notification_error(exc)
            logger.warning("Notification mutation '%s' failed, rolling back: %s", label, err)
            if not self._closed:
                self._queue.rollback(mutation)
                self.last_error = err
            return False

        if not self._closed:
            self._queue.commit(mutation)
        return True

    async def send_test(self) -> dict:
        """Ask the registry to push a synthetic notification (diagnostics)."""
        return await self._registry.send_test()

    def close(self) -> None:
        self._closed = True
        self._refresh_token.invalidate()
