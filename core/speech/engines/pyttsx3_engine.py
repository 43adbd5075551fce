from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Final

import pyttsx3

from core.speech.interface import SpeechEngine, SpeechEngineUnsupportedError
from core.speech.utterance_worker import UtteranceWorker
from models.voice_models import SpeechErrorKind, VoiceInfo
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.config_models import Speech
    from models.voice_models import Utterance

__all__: list[str] = ["NativeSpeechEngine"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

# pyttsx3 expresses speed in words per minute; 200 is its default.
BASE_WORDS_PER_MINUTE: Final[int] = 200


def decode_language(tag: Any) -> str:
    """Decode a pyttsx3 language tag.

    espeak reports tags as bytes with a leading priority byte (b'\\x05en-gb').
    """
    if isinstance(tag, bytes):
        tag = tag.decode("utf-8", errors="ignore")
    return "".join(char for char in str(tag) if char.isprintable()).strip()


class NativeSpeechEngine(SpeechEngine):
    """Speech through the operating system's synthesiser (SAPI5, NSSpeechSynthesizer or espeak).

    pyttsx3's runAndWait() blocks, so each utterance runs in a worker thread.
    """

    def __init__(self, settings: Speech) -> None:
        logger.debug("%s initializing", self.__class__.__name__)
        super().__init__()
        self.settings: Speech = settings
        self._driver: Any | None = None
        self._default_voice: str | None = None
        self._init_failed: bool = False
        self._voices: list[VoiceInfo] = []
        self._worker = UtteranceWorker(self.fetch_engine_name(), self._render)

    @staticmethod
    def fetch_engine_name() -> str:
        return "pyttsx3"

    @property
    def driver(self) -> Any:
        """pyttsx3 engine, initialised on first use.

        Raises:
            SpeechEngineUnsupportedError: If no platform driver could be loaded.
        """
        if self._driver is None:
            if self._init_failed:
                msg = "pyttsx3 driver unavailable"
                raise SpeechEngineUnsupportedError(msg)
            try:
                self._driver = pyttsx3.init()
            except (ImportError, RuntimeError, OSError) as err:
                self._init_failed = True
                msg = f"pyttsx3 driver unavailable: {err}"
                raise SpeechEngineUnsupportedError(msg) from err
            # Properties persist on the driver, so keep the voice it started with.
            self._default_voice = self._driver.getProperty("voice")
            print("Loaded speech synthesis engine: pyttsx3")
        return self._driver

    def is_supported(self) -> bool:
        try:
            _ = self.driver
        except SpeechEngineUnsupportedError as err:
            logger.warning("%s", err)
            return False
        return True

    def speak(self, utterance: Utterance) -> None:
        _ = self.driver
        logger.debug("pyttsx3 speak: %s", utterance)
        self._worker.submit(utterance)

    def cancel(self) -> None:
        rendering: bool = self._worker.busy
        self._worker.cancel()
        if rendering and self._driver is not None:
            self._driver.stop()

    @property
    def is_speaking(self) -> bool:
        return self._worker.busy

    def get_voices(self) -> list[VoiceInfo]:
        if not self._voices:
            self.refresh_voices()
        return list(self._voices)

    def refresh_voices(self) -> None:
        try:
            native_voices: list[Any] = self.driver.getProperty("voices") or []
        except SpeechEngineUnsupportedError:
            return
        voices: list[VoiceInfo] = []
        for native in native_voices:
            languages: list[Any] = list(getattr(native, "languages", None) or [])
            lang: str = decode_language(languages[0]) if languages else ""
            voices.append(VoiceInfo(id=str(native.id), name=str(native.name or native.id), lang=lang))
        changed: bool = voices != self._voices
        self._voices = voices
        logger.info("pyttsx3 voices loaded: %d", len(voices))
        if changed:
            self.notify_voices_changed()

    def _say_blocking(self, utterance: Utterance) -> bool:
        """Speak one utterance on the calling thread.

        Returns:
            bool: The completed flag pyttsx3 reports for the utterance.
        """
        driver: Any = self.driver
        result: dict[str, bool] = {"completed": False}

        def on_finished(_name: str | None, completed: bool) -> None:
            result["completed"] = completed

        token: Any = driver.connect("finished-utterance", on_finished)
        try:
            voice_id: str | None = utterance.voice.id if utterance.voice is not None else self._default_voice
            if voice_id is not None:
                driver.setProperty("voice", voice_id)
            driver.setProperty("rate", int(BASE_WORDS_PER_MINUTE * utterance.rate))
            driver.setProperty("volume", max(min(utterance.volume, 1.0), 0.0))
            driver.say(utterance.text)
            driver.runAndWait()
        finally:
            driver.disconnect(token)
        return result["completed"]

    async def _render(self, utterance: Utterance, cancel_event: asyncio.Event) -> None:
        if cancel_event.is_set():
            utterance.on_error(SpeechErrorKind.INTERRUPTED)
            return
        try:
            completed: bool = await asyncio.to_thread(self._say_blocking, utterance)
        except OSError as err:
            logger.error("Audio device error: %s", err)
            utterance.on_error(SpeechErrorKind.AUDIO_DEVICE)
        except RuntimeError as err:
            logger.error("pyttsx3 error: %s", err)
            utterance.on_error(SpeechErrorKind.SYNTHESIS_FAILED)
        else:
            if completed and not cancel_event.is_set():
                utterance.on_end()
            else:
                utterance.on_error(SpeechErrorKind.INTERRUPTED)

    async def close(self) -> None:
        await self._worker.close()
        self._driver = None
        await super().close()
