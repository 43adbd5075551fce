from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING

from models.announcement_models import AnnouncementItem, Priority
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

__all__: list[str] = ["AnnouncementQueue"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class AnnouncementQueue(asyncio.Queue[AnnouncementItem]):
    """Priority-tiered, deduplicating queue of pending announcements.

    HIGH items are inserted right after the last queued HIGH item, NORMAL items are appended, so
    HIGH is always drained first and each tier stays FIFO. An item whose (category, text) is
    already waiting is discarded. Only waiting items take part in deduplication; once an item
    is dequeued the same text may be queued again.

    All mutating methods are synchronous, so the queue never changes across an await inside
    the owning controller.
    """

    _queue: deque[AnnouncementItem]

    def _init(self, maxsize: int) -> None:
        self._queue = deque()

    def _put(self, item: AnnouncementItem) -> None:
        if item.priority is Priority.HIGH:
            insert_at: int = 0
            for index, queued in enumerate(self._queue):
                if queued.priority is Priority.HIGH:
                    insert_at = index + 1
            self._queue.insert(insert_at, item)
        else:
            self._queue.append(item)

    def _get(self) -> AnnouncementItem:
        return self._queue.popleft()

    def contains(self, item: AnnouncementItem) -> bool:
        """Return True if an item with the same dedup key is waiting."""
        return any(queued.dedup_key == item.dedup_key for queued in self._queue)

    def enqueue(self, item: AnnouncementItem) -> bool:
        """Add an item unless a duplicate is already waiting.

        Returns:
            bool: True if the item was queued, False if it was discarded as a duplicate.
        """
        if self.contains(item):
            logger.debug("Duplicate announcement discarded: %s", item)
            return False
        self.put_nowait(item)
        return True

    def dequeue(self) -> AnnouncementItem | None:
        """Remove and return the head item, or None if the queue is empty."""
        try:
            item: AnnouncementItem = self.get_nowait()
        except asyncio.QueueEmpty:
            return None
        self.task_done()
        return item

    def snapshot(self) -> list[AnnouncementItem]:
        """Waiting items in dispatch order."""
        return list(self._queue)

    def remove(self, item_id: str) -> AnnouncementItem | None:
        """Remove a waiting item by id.

        Returns:
            AnnouncementItem | None: The removed item, or None if no waiting item has that id.
        """
        for queued in self._queue:
            if queued.id == item_id:
                self._queue.remove(queued)
                self.task_done()
                return queued
        return None

    def clear(self, callback: Callable[[AnnouncementItem], None] | None = None) -> int:
        """Remove every waiting item, optionally handing each to `callback`.

        Callback errors are logged and do not stop the clear.

        Returns:
            int: Number of items removed.
        """
        removed: int = 0
        while not self.empty():
            try:
                item: AnnouncementItem = self.get_nowait()
            except asyncio.QueueEmpty:
                break
            self.task_done()
            removed += 1
            if callback is not None:
                try:
                    callback(item)
                except Exception as err:  # noqa: BLE001
                    logger.error("Callback error for item %s: %r", item, err)
        if removed:
            logger.info("Announcement queue cleared: %d item(s)", removed)
        return removed
