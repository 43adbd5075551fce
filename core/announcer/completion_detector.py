"""Redundant completion detection for the announcement in flight.

Three detectors race for every dispatched announcement:

- native: the engine's own on_end / on_error callbacks for the utterance,
- poll: a bounded loop watching the engine's `is_speaking` flag fall from True to False,
- timeout: a one-shot timer sized from the text length and capped at an absolute maximum.

The first one to fire completes the InFlightHandle. Completing a handle detaches every other
detector before returning, so late signals from the engine are dropped instead of leaking into
the next announcement.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Final

from core.speech.interface import SpeechEngineError
from models.announcement_models import CompletionReason
from models.voice_models import SpeechErrorKind
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from core.speech.interface import SpeechEngine
    from models.announcement_models import AnnouncementItem
    from models.config_models import Detection

__all__: list[str] = ["NATIVE", "POLL", "TIMEOUT", "CompletionDetector", "InFlightHandle"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

NATIVE: Final[str] = "native"
POLL: Final[str] = "poll"
TIMEOUT: Final[str] = "timeout"


class InFlightHandle:
    """Tracks one dispatched announcement until it is completed exactly once.

    Attributes:
        item (AnnouncementItem): The announcement being spoken.
        completed (bool): Set once, by the first call to complete().
        reason (CompletionReason | None): Why the item completed.
        active_detectors (set[str]): Detectors still armed for this handle.
    """

    def __init__(self, item: AnnouncementItem, loop: asyncio.AbstractEventLoop) -> None:
        self.item: AnnouncementItem = item
        self.completed: bool = False
        self.reason: CompletionReason | None = None
        self.active_detectors: set[str] = set()
        self.started_at: float = loop.time()
        self._loop: asyncio.AbstractEventLoop = loop
        self._cancellers: dict[str, Callable[[], object]] = {}
        self._future: asyncio.Future[CompletionReason] = loop.create_future()

    def __str__(self) -> str:
        return (
            f"<{self.__class__.__name__} item: {self.item.id[:8]}, completed: {self.completed}, "
            f"reason: {self.reason.value if self.reason else None}, detectors: {sorted(self.active_detectors)}>"
        )

    def arm(self, detector: str, canceller: Callable[[], object]) -> None:
        """Register a running detector and how to stop it."""
        if self.completed:
            canceller()
            return
        self.active_detectors.add(detector)
        self._cancellers[detector] = canceller

    def disarm(self, detector: str) -> None:
        """Forget a detector that stopped on its own without completing the handle."""
        self.active_detectors.discard(detector)
        self._cancellers.pop(detector, None)

    def complete(self, reason: CompletionReason) -> bool:
        """Complete the handle and cancel every detector still armed.

        Returns:
            bool: True for the call that completed the handle, False for every later call.
        """
        if self.completed:
            logger.debug("Ignored %s for already completed item %s", reason.value, self.item.id[:8])
            return False
        self.completed = True
        self.reason = reason

        cancellers: list[Callable[[], object]] = list(self._cancellers.values())
        self._cancellers.clear()
        self.active_detectors.clear()
        for cancel in cancellers:
            cancel()

        if not self._future.done():
            self._future.set_result(reason)
        logger.debug(
            "Item %s completed by %s after %.2fs", self.item.id[:8], reason.value, self._loop.time() - self.started_at
        )
        return True

    async def wait(self) -> CompletionReason:
        """Wait until the handle is completed and return the winning reason."""
        return await asyncio.shield(self._future)


class CompletionDetector:
    """Arms the native, polling and timeout detectors for dispatched announcements."""

    def __init__(self, engine: SpeechEngine, settings: Detection) -> None:
        self.engine: SpeechEngine = engine
        self.settings: Detection = settings

    def timeout_for(self, text: str) -> float:
        """Upper bound in seconds on how long `text` may stay in flight."""
        estimate: float = len(text) * self.settings.SECONDS_PER_CHARACTER + self.settings.TIMEOUT_BUFFER
        return min(estimate, self.settings.MAX_TIMEOUT)

    def arm(self, handle: InFlightHandle) -> tuple[Callable[[], None], Callable[[SpeechErrorKind], None]]:
        """Start the poll and timeout detectors and build the native listeners.

        Must be called on the event loop before the utterance is handed to the engine.

        Returns:
            tuple: `(on_end, on_error)` to attach to the utterance. Both are safe to call from
            any thread, any number of times.
        """
        loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()

        handle.arm(NATIVE, lambda: None)

        delay: float = self.timeout_for(handle.item.text)
        timer: asyncio.TimerHandle = loop.call_later(delay, self._on_timeout, handle, delay)
        handle.arm(TIMEOUT, timer.cancel)

        if self.settings.MAX_POLLS > 0:
            poll_task: asyncio.Task[None] = loop.create_task(
                self._poll(handle), name=f"completion_poll_{handle.item.id[:8]}"
            )
            handle.arm(POLL, poll_task.cancel)

        def on_end() -> None:
            loop.call_soon_threadsafe(self._on_native, handle, CompletionReason.NATIVE_END, None)

        def on_error(kind: SpeechErrorKind) -> None:
            reason: CompletionReason = (
                CompletionReason.BLOCKED if kind is SpeechErrorKind.NOT_ALLOWED else CompletionReason.NATIVE_ERROR
            )
            loop.call_soon_threadsafe(self._on_native, handle, reason, kind)

        return on_end, on_error

    def _on_native(self, handle: InFlightHandle, reason: CompletionReason, kind: SpeechErrorKind | None) -> None:
        if NATIVE not in handle.active_detectors:
            logger.debug("Late native %s for item %s dropped", reason.value, handle.item.id[:8])
            return
        if kind is not None:
            logger.warning("Speech engine reported %s for item %s", kind.value, handle.item)
        handle.complete(reason)

    def _on_timeout(self, handle: InFlightHandle, delay: float) -> None:
        handle.disarm(TIMEOUT)
        if handle.complete(CompletionReason.TIMEOUT):
            logger.info("No completion signal after %.2fs, forcing completion of %s", delay, handle.item)

    async def _poll(self, handle: InFlightHandle) -> None:
        seen_speaking: bool = False
        try:
            for _ in range(self.settings.MAX_POLLS):
                await asyncio.sleep(self.settings.POLL_INTERVAL)
                speaking: bool = self.engine.is_speaking
                if speaking:
                    seen_speaking = True
                elif seen_speaking:
                    handle.disarm(POLL)
                    handle.complete(CompletionReason.POLL)
                    return
        except SpeechEngineError as err:
            logger.warning("Polling the speech engine failed: %s", err)
        handle.disarm(POLL)
        logger.debug("Polling gave up on item %s", handle.item.id[:8])
