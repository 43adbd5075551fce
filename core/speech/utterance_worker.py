from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Final

from models.voice_models import SpeechErrorKind
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable

    from models.voice_models import Utterance

__all__: list[str] = ["UtteranceWorker"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

CLOSE_TIMEOUT: Final[float] = 2.0

type RenderFunc = Callable[[Utterance, asyncio.Event], Awaitable[None]]


def _report_error(utterance: Utterance, kind: SpeechErrorKind) -> None:
    try:
        utterance.on_error(kind)
    except Exception as err:  # noqa: BLE001
        logger.error("on_error callback raised: %s", err)


class UtteranceWorker:
    """Serialises the utterances of one engine on a background task.

    speak() on an engine only enqueues; the worker renders one utterance at a time through the
    engine's render coroutine. The render coroutine owns the utterance callbacks and must watch
    the cancel event, which is set by cancel() and cleared before every utterance.
    """

    def __init__(self, name: str, render: RenderFunc) -> None:
        self.name: str = name
        self._render: RenderFunc = render
        self._queue: asyncio.Queue[Utterance] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._current: Utterance | None = None
        # Interrupts the utterance being rendered. Must be cleared before each render.
        self.cancel_event: asyncio.Event = asyncio.Event()

    @property
    def busy(self) -> bool:
        return self._current is not None or not self._queue.empty()

    def submit(self, utterance: Utterance) -> None:
        """Queue an utterance, starting the worker task on first use."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run(), name=f"{self.name}_utterance_worker")
        self._queue.put_nowait(utterance)

    def cancel(self) -> None:
        """Interrupt the current utterance and drop the waiting ones.

        Dropped utterances receive on_error(INTERRUPTED).
        """
        dropped: list[Utterance] = []
        while not self._queue.empty():
            try:
                dropped.append(self._queue.get_nowait())
                self._queue.task_done()
            except asyncio.QueueEmpty:
                break
        if self._current is not None:
            self.cancel_event.set()
        for utterance in dropped:
            _report_error(utterance, SpeechErrorKind.INTERRUPTED)
        if dropped:
            logger.debug("%s dropped %d waiting utterance(s)", self.name, len(dropped))

    async def _run(self) -> None:
        try:
            while True:
                utterance: Utterance = await self._queue.get()
                self._queue.task_done()
                self._current = utterance
                self.cancel_event.clear()
                try:
                    await self._render(utterance, self.cancel_event)
                except asyncio.CancelledError:
                    raise
                except Exception as err:  # noqa: BLE001
                    logger.error("%s failed to render utterance: %s", self.name, err)
                    _report_error(utterance, SpeechErrorKind.SYNTHESIS_FAILED)
                finally:
                    self._current = None
        except asyncio.QueueShutDown:
            logger.debug("%s utterance queue closed", self.name)

    async def close(self) -> None:
        """Stop the worker, interrupting any utterance in progress."""
        self.cancel()
        self._queue.shutdown()
        if self._task is None:
            return
        try:
            await asyncio.wait_for(self._task, timeout=CLOSE_TIMEOUT)
        except TimeoutError:
            logger.warning("%s worker did not stop in time; cancelling", self.name)
            self._task.cancel()
        except asyncio.CancelledError:
            logger.debug("%s worker cancelled", self.name)
        self._task = None
