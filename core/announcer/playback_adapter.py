from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from core.announcer.completion_detector import InFlightHandle
from core.speech.interface import SpeechEngineBlockedError, SpeechEngineError
from models.announcement_models import CompletionReason, Priority
from models.voice_models import FULL_VOLUME, NEUTRAL_PITCH, Utterance
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from core.announcer.completion_detector import CompletionDetector
    from core.speech.interface import SpeechEngine
    from models.announcement_models import AnnouncementItem
    from models.voice_models import VoiceInfo

__all__: list[str] = ["PlaybackAdapter"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class PlaybackAdapter:
    """The only component that calls into the speech engine.

    play() issues exactly one utterance per dispatch. If the engine is still speaking when a
    HIGH item is dispatched over a non-HIGH one, the old speech is cancelled first; otherwise
    nothing is cut off.
    """

    def __init__(self, engine: SpeechEngine, detector: CompletionDetector) -> None:
        self.engine: SpeechEngine = engine
        self.detector: CompletionDetector = detector
        self.play_count: int = 0
        self._last_priority: Priority | None = None

    def play(self, item: AnnouncementItem, voice: VoiceInfo | None, rate: float) -> InFlightHandle:
        """Speak an item and return its armed in-flight handle.

        Engine failures never propagate. A refusal pending user interaction completes the
        handle with BLOCKED, any other engine failure with NATIVE_ERROR.
        """
        loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        self._preempt_if_needed(item)

        handle = InFlightHandle(item, loop)
        on_end, on_error = self.detector.arm(handle)
        utterance = Utterance(
            text=item.text,
            voice=voice,
            rate=rate,
            pitch=NEUTRAL_PITCH,
            volume=FULL_VOLUME,
            on_end=on_end,
            on_error=on_error,
        )

        self.play_count += 1
        self._last_priority = item.priority
        logger.debug("Speaking %s", utterance)
        try:
            self.engine.speak(utterance)
        except SpeechEngineBlockedError as err:
            logger.warning("Speech engine blocked: %s", err)
            handle.complete(CompletionReason.BLOCKED)
        except (SpeechEngineError, OSError, RuntimeError) as err:
            logger.error("Speech engine failed to speak %s: %s", item, err)
            handle.complete(CompletionReason.NATIVE_ERROR)
        return handle

    def _preempt_if_needed(self, item: AnnouncementItem) -> None:
        try:
            speaking: bool = self.engine.is_speaking
        except SpeechEngineError as err:
            logger.warning("Could not query the speech engine: %s", err)
            return
        if speaking and item.priority is Priority.HIGH and self._last_priority is not Priority.HIGH:
            logger.info("Preempting current speech for %s", item)
            self.cancel()

    def cancel(self) -> None:
        """Stop whatever the engine is saying."""
        try:
            self.engine.cancel()
        except (SpeechEngineError, OSError, RuntimeError) as err:
            logger.error("Failed to cancel speech: %s", err)

    def forget(self) -> None:
        """Drop what is known about the last dispatch (used on reset)."""
        self._last_priority = None
