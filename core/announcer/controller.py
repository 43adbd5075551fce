from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Final

from config.loader import RATE_RANGE
from core.announcer.announcement_queue import AnnouncementQueue
from core.announcer.completion_detector import CompletionDetector
from core.announcer.playback_adapter import PlaybackAdapter
from core.announcer.voice_resolver import VoiceResolver
from models.announcement_models import (
    CATEGORY_PROFILES,
    AnnouncementItem,
    CompletionReason,
    ControllerStatus,
    EngineState,
    ItemSummary,
    Priority,
    VoiceRole,
)
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from core.announcer.completion_detector import InFlightHandle
    from core.speech.interface import SpeechEngine
    from models.announcement_models import Category, CompletionCallback
    from models.config_models import Config

__all__: list[str] = ["AnnouncementController"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

CLOSE_TIMEOUT: Final[float] = 2.0

type StateListener = Callable[[EngineState, EngineState], object]


class AnnouncementController:
    """Turns game events into an ordered sequence of spoken announcements.

    One dispatcher task drains the queue: it resolves a voice, hands the item to the playback
    adapter, waits for the in-flight handle to complete, delivers the item's callback and
    pauses for the cooldown before the next item. At most one handle exists at any time.

    The controller owns its queue, in-flight handle and voice cache. Create one per game
    session, call start() once, reset() between games and close() at the end of the session.

    States:
        IDLE -> SPEAKING   an item was dispatched
        SPEAKING -> IDLE   the in-flight item completed
        * -> BLOCKED       the engine refused to speak, or disable() was called
        BLOCKED -> IDLE    enable() or reset()
    """

    def __init__(self, config: Config, engine: SpeechEngine) -> None:
        logger.debug("Initializing AnnouncementController with engine '%s'", engine.fetch_engine_name())
        self.config: Config = config
        self.engine: SpeechEngine = engine
        self.queue: AnnouncementQueue = AnnouncementQueue()
        self.detector = CompletionDetector(engine, config.DETECTION)
        self.adapter = PlaybackAdapter(engine, self.detector)
        self.resolver = VoiceResolver(
            engine,
            {
                VoiceRole.CALLER: config.VOICE.CALLER_VOICES,
                VoiceRole.CELEBRATION: config.VOICE.CELEBRATION_VOICES,
            },
            config.SPEECH.LANGUAGE,
        )
        self.rate: float = config.SPEECH.RATE
        self.force_enable: bool = config.SPEECH.FORCE_ENABLE

        self._state: EngineState = EngineState.IDLE
        self._handle: InFlightHandle | None = None
        self._supported: bool | None = None
        self._closed: bool = False
        self._completed_count: int = 0
        self._state_listeners: list[StateListener] = []
        self._dispatcher_task: asyncio.Task[None] | None = None
        # Callbacks returning coroutines run as tasks; keep references until they finish.
        self._callback_tasks: set[asyncio.Task[object]] = set()
        self._idle: asyncio.Event = asyncio.Event()
        self._idle.set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> None:
        """Enumerate voices and start the dispatcher task."""
        if self._dispatcher_task is not None:
            logger.warning("AnnouncementController is already started")
            return
        if self.engine_supported:
            self.resolver.attach()
        else:
            logger.warning(
                "Speech engine '%s' is unsupported; announcements complete silently",
                self.engine.fetch_engine_name(),
            )
        self._dispatcher_task = asyncio.create_task(self._dispatch_loop(), name="announcement_dispatcher")
        logger.info("AnnouncementController started")

    async def close(self) -> None:
        """End the session: drop pending work, stop the dispatcher and release the engine."""
        logger.info("Closing AnnouncementController")
        self.reset()
        self._closed = True
        # shutdown() makes the pending get() raise QueueShutDown, which ends the dispatcher loop.
        self.queue.shutdown()

        if self._dispatcher_task is not None:
            finished, pending = await asyncio.wait({self._dispatcher_task}, timeout=CLOSE_TIMEOUT)
            if pending:
                logger.warning("Dispatcher did not stop in time; cancelling")
                self._dispatcher_task.cancel()
            for task in finished:
                logger.debug("Task '%s' finished", task.get_name())
            self._dispatcher_task = None

        if self._callback_tasks:
            _, pending = await asyncio.wait(set(self._callback_tasks), timeout=CLOSE_TIMEOUT)
            if pending:
                logger.warning("%d on_complete coroutine(s) still running; cancelling", len(pending))
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        self.resolver.detach()
        await self.engine.close()
        logger.info("AnnouncementController closed successfully")

    @property
    def engine_supported(self) -> bool:
        if self._supported is None:
            self._supported = bool(self.engine.is_supported())
        return self._supported

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    def enqueue(
        self,
        category: Category,
        text: str,
        priority: Priority | None = None,
        on_complete: CompletionCallback | None = None,
    ) -> str | None:
        """Queue an announcement.

        Args:
            category (Category): Event kind.
            text (str): Text to speak.
            priority (Priority | None): Dispatch tier. Defaults to the category's profile.
            on_complete (CompletionCallback | None): Invoked exactly once when the item is finished,
                whether it was spoken, forced by a timeout, preempted or failed.

        Returns:
            str | None: The item id, or None if the item was not accepted because an identical
            announcement is already waiting or the controller is closed. The callback of an item
            that was not accepted is never invoked.
        """
        if priority is None:
            priority = CATEGORY_PROFILES[category].priority
        item = AnnouncementItem(category=category, text=text, priority=priority, on_complete=on_complete)

        if self._closed:
            logger.warning("Announcement after close ignored: %s", item)
            return None

        if not self.engine_supported:
            # Fail open on the next loop iteration; the adapter is never involved.
            asyncio.get_running_loop().call_soon(self._deliver, item, CompletionReason.UNSUPPORTED)
            return item.id

        if not self.queue.enqueue(item):
            return None
        logger.debug("Queued %s", item)
        self._refresh_idle()

        handle: InFlightHandle | None = self._handle
        if (
            self._state is EngineState.SPEAKING
            and handle is not None
            and not handle.completed
            and item.priority is Priority.HIGH
            and handle.item.priority is not Priority.HIGH
        ):
            logger.info("Preempting %s for %s", handle.item, item)
            handle.complete(CompletionReason.PREEMPTED)
        return item.id

    def cancel(self, item_id: str) -> bool:
        """Drop a waiting item without running its callback.

        Returns:
            bool: True if a waiting item with that id was removed.
        """
        removed: AnnouncementItem | None = self.queue.remove(item_id)
        if removed is not None:
            logger.info("Cancelled %s", removed)
        self._refresh_idle()
        return removed is not None

    def reset(self) -> None:
        """Drop the in-flight item and every waiting item without running their callbacks.

        Used between games. Afterwards the controller is IDLE with an empty queue, and any
        text may be announced again.
        """
        handle: InFlightHandle | None = self._handle
        self._handle = None
        if handle is not None:
            handle.complete(CompletionReason.CANCELLED)
        dropped: int = self.queue.clear()
        self.adapter.cancel()
        self.adapter.forget()
        self.resolver.clear()
        self._transition(EngineState.IDLE)
        self._refresh_idle()
        logger.info("Announcer reset (in flight: %s, dropped: %d)", handle.item if handle else None, dropped)

    def enable(self) -> None:
        """Leave BLOCKED after the host confirmed a genuine user interaction."""
        if self._state is not EngineState.BLOCKED:
            logger.debug("enable() ignored in state %s", self._state.value)
            return
        self._transition(EngineState.IDLE)
        logger.info("Announcements enabled")

    def disable(self) -> None:
        """Enter BLOCKED. The in-flight item and all waiting items complete without audio."""
        self._transition(EngineState.BLOCKED)
        handle: InFlightHandle | None = self._handle
        if handle is not None and handle.complete(CompletionReason.BLOCKED):
            self.adapter.cancel()
        self.queue.clear(lambda item: self._deliver(item, CompletionReason.BLOCKED))
        self._refresh_idle()
        logger.info("Announcements disabled")

    def set_rate(self, value: float) -> None:
        """Set the speech rate for future dispatches.

        Raises:
            ValueError: If `value` is outside the supported range.
        """
        if not (RATE_RANGE[0] <= value <= RATE_RANGE[1]):
            msg: str = f"Rate must be between {RATE_RANGE[0]} and {RATE_RANGE[1]}, got {value}"
            raise ValueError(msg)
        self.rate = float(value)
        logger.info("Speech rate set to %.2f", self.rate)

    async def wait_until_idle(self, timeout: float | None = None) -> bool:
        """Wait until nothing is queued or in flight.

        Returns:
            bool: False if `timeout` seconds passed first.
        """
        try:
            async with asyncio.timeout(timeout):
                await self._idle.wait()
        except TimeoutError:
            return False
        return True

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def status(self) -> ControllerStatus:
        handle: InFlightHandle | None = self._handle
        return ControllerStatus(
            state=self._state,
            queue_length=self.queue.qsize(),
            current_item=ItemSummary.of(handle.item) if handle is not None else None,
            rate=self.rate,
            engine_supported=self.engine_supported,
            completed_count=self._completed_count,
        )

    def add_state_listener(self, listener: StateListener) -> None:
        if listener not in self._state_listeners:
            self._state_listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> None:
        if listener in self._state_listeners:
            self._state_listeners.remove(listener)

    # ------------------------------------------------------------------
    # Dispatcher
    # ------------------------------------------------------------------
    async def _dispatch_loop(self) -> None:
        try:
            while True:
                item: AnnouncementItem = await self.queue.get()
                self.queue.task_done()
                try:
                    reason: CompletionReason | None = await self._dispatch(item)
                except Exception as err:  # noqa: BLE001
                    logger.exception("Dispatch of %s failed: %s", item, err)
                    self._handle = None
                    self._transition(EngineState.IDLE)
                    self._deliver(item, CompletionReason.NATIVE_ERROR)
                    reason = CompletionReason.NATIVE_ERROR
                self._refresh_idle()
                if reason is None or reason in (CompletionReason.PREEMPTED, CompletionReason.BLOCKED):
                    continue
                # Gap between utterances so the engine is not driven back-to-back.
                await asyncio.sleep(self.config.QUEUE.COOLDOWN)
        except asyncio.QueueShutDown:
            logger.debug("Announcement queue shut down")

    async def _dispatch(self, item: AnnouncementItem) -> CompletionReason | None:
        """Speak one item and settle it.

        Returns:
            CompletionReason | None: How the item completed, or None if reset() discarded it.
        """
        if self._state is EngineState.BLOCKED:
            logger.info("Blocked; completing %s without audio", item)
            self._deliver(item, CompletionReason.BLOCKED)
            return CompletionReason.BLOCKED

        voice = self.resolver.resolve(item.category)
        handle: InFlightHandle = self.adapter.play(item, voice, self.rate)
        self._handle = handle
        self._refresh_idle()
        self._transition(EngineState.SPEAKING)

        reason: CompletionReason = await handle.wait()
        if self._handle is not handle:
            # reset() took this handle away while it was in flight.
            logger.debug("Discarded completion of %s (%s)", item, reason.value)
            return None
        self._handle = None
        self._settle(item, reason)
        return reason

    def _settle(self, item: AnnouncementItem, reason: CompletionReason) -> None:
        if reason is CompletionReason.BLOCKED and not self.force_enable:
            if self._state is not EngineState.BLOCKED:
                logger.warning("Speech engine requires user interaction; announcements blocked until enable()")
            self._transition(EngineState.BLOCKED)
        elif self._state is EngineState.SPEAKING:
            self._transition(EngineState.IDLE)

        if reason is CompletionReason.NATIVE_ERROR and item.retry_count < self.config.QUEUE.MAX_RETRIES:
            item.retry_count += 1
            if self.queue.enqueue(item):
                logger.info("Retrying %s", item)
                return
            logger.info("Retry of %s dropped, identical announcement already queued", item)
        self._deliver(item, reason)

    def _deliver(self, item: AnnouncementItem, reason: CompletionReason) -> None:
        """Run an item's completion callback. Exceptions are logged, never raised."""
        self._completed_count += 1
        logger.debug("Completed %s (%s)", item, reason.value)
        if item.on_complete is None:
            return
        try:
            result: object = item.on_complete()
        except Exception as err:  # noqa: BLE001
            logger.error("on_complete callback for item %s raised: %r", item.id, err)
            return
        if asyncio.iscoroutine(result):
            task: asyncio.Task[object] = asyncio.get_running_loop().create_task(result)
            self._callback_tasks.add(task)
            task.add_done_callback(self._callback_task_done)

    def _callback_task_done(self, task: asyncio.Task[object]) -> None:
        self._callback_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("on_complete coroutine raised: %r", task.exception())

    def _transition(self, new_state: EngineState) -> None:
        old_state: EngineState = self._state
        if old_state is new_state:
            return
        self._state = new_state
        logger.debug("State %s -> %s", old_state.value, new_state.value)
        for listener in list(self._state_listeners):
            try:
                listener(old_state, new_state)
            except Exception as err:  # noqa: BLE001
                logger.error("State listener raised: %r", err)

    def _refresh_idle(self) -> None:
        if self.queue.empty() and self._handle is None:
            self._idle.set()
        else:
            self._idle.clear()
