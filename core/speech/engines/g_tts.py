from __future__ import annotations

import asyncio
from dataclasses import dataclass
from io import BytesIO
from typing import TYPE_CHECKING, Any, Final

import numpy as np
import soundfile
from gtts import gTTS, gTTSError
from gtts.lang import tts_langs
from numpy import dtype

from core.speech.audio_output import AudioOutput
from core.speech.interface import SpeechEngine, SpeechEngineUnsupportedError
from core.speech.utterance_worker import UtteranceWorker
from models.voice_models import SpeechErrorKind, VoiceInfo
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.config_models import Speech
    from models.voice_models import Utterance


__all__: list[str] = ["GoogleSpeechEngine"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

DEFAULT_TLD: Final[str] = "com"
# Below this rate gTTS' own slow mode is used instead of faster playback.
SLOW_MODE_RATE: Final[float] = 0.8
MAX_PLAYBACK_RATE: Final[float] = 2.0

# Regional accents gTTS provides through the Google Translate host (top-level domain).
# Keyed by gTTS language code: tld -> (region subtag, region name).
ACCENTS: Final[dict[str, dict[str, tuple[str, str]]]] = {
    "en": {
        "co.in": ("in", "India"),
        "co.uk": ("gb", "United Kingdom"),
        "us": ("us", "United States"),
        "com.au": ("au", "Australia"),
        "ca": ("ca", "Canada"),
        "ie": ("ie", "Ireland"),
        "co.za": ("za", "South Africa"),
        "com.ng": ("ng", "Nigeria"),
    },
    "fr": {
        "fr": ("fr", "France"),
        "ca": ("ca", "Canada"),
    },
    "pt": {
        "com.br": ("br", "Brazil"),
        "pt": ("pt", "Portugal"),
    },
    "es": {
        "es": ("es", "Spain"),
        "com.mx": ("mx", "Mexico"),
        "us": ("us", "United States"),
    },
}


def _ensure_float32_array(arr: Any, label: str = "audio data") -> np.ndarray[Any, dtype[np.float32]]:
    """Validate and cast array to float32 ndarray.

    Raises:
        TypeError: If not ndarray or wrong dtype
    """
    if not isinstance(arr, np.ndarray):
        msg: str = f"Expected ndarray for {label}, got {type(arr)}"
        raise TypeError(msg)
    if arr.dtype != np.float32:
        msg = f"Expected float32 for {label}, got {arr.dtype}"
        raise TypeError(msg)
    return arr


@dataclass
class _AudioData:
    raw_pcm: np.ndarray[Any, dtype[np.float32]]
    samplerate: int


def build_voices(languages: dict[str, str]) -> list[VoiceInfo]:
    """Turn gTTS' language table into voices, one per regional accent where gTTS has them.

    Voice ids are '<gtts language>|<tld>', e.g. 'en|co.in'.
    """
    voices: list[VoiceInfo] = []
    for code, language_name in sorted(languages.items()):
        accents: dict[str, tuple[str, str]] | None = ACCENTS.get(code)
        if not accents:
            voices.append(
                VoiceInfo(id=f"{code}|{DEFAULT_TLD}", name=f"Google {language_name}", lang=code, local_service=False)
            )
            continue
        for tld, (region, region_name) in accents.items():
            voices.append(
                VoiceInfo(
                    id=f"{code}|{tld}",
                    name=f"Google {language_name} ({region_name})",
                    lang=f"{code}-{region}",
                    local_service=False,
                )
            )
    return voices


def split_locale(locale: str) -> tuple[str, str]:
    """Map a locale tag such as 'en-in' to a gTTS language code and host tld."""
    primary, _, region = locale.partition("-")
    for tld, (accent_region, _) in ACCENTS.get(primary, {}).items():
        if region and accent_region == region:
            return primary, tld
    return primary or "en", DEFAULT_TLD


class GoogleSpeechEngine(SpeechEngine):
    """Speech through Google Text-to-Speech.

    gTTS returns an MP3 stream. The stream is decoded to float32 PCM in memory and played
    through PyAudio; no files are written. Utterances are rendered one at a time by an
    UtteranceWorker, so speak() returns immediately.
    """

    def __init__(self, settings: Speech) -> None:
        logger.debug("%s initializing", self.__class__.__name__)
        super().__init__()
        self.settings: Speech = settings
        self._audio: AudioOutput | None = None
        self._supported: bool | None = None
        self._voices: list[VoiceInfo] = []
        self._voices_task: asyncio.Task[None] | None = None
        self._worker = UtteranceWorker(self.fetch_engine_name(), self._render)

    @staticmethod
    def fetch_engine_name() -> str:
        return "gtts"

    def is_supported(self) -> bool:
        if self._supported is None:
            try:
                self._audio = AudioOutput()
                self._supported = self._audio.has_output_device()
            except OSError as err:
                logger.warning("PyAudio could not be initialised: %s", err)
                self._supported = False
            if self._supported:
                # Output a message to the console
                print("Loaded speech synthesis engine: Google Text-to-Speech")
        return self._supported

    def speak(self, utterance: Utterance) -> None:
        if not self.is_supported():
            msg = "No audio output device available for gTTS"
            raise SpeechEngineUnsupportedError(msg)
        logger.debug("gTTS speak: %s", utterance)
        self._worker.submit(utterance)

    def cancel(self) -> None:
        self._worker.cancel()

    @property
    def is_speaking(self) -> bool:
        return self._worker.busy

    def get_voices(self) -> list[VoiceInfo]:
        if not self._voices and self._voices_task is None:
            try:
                loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
            except RuntimeError:
                return []
            self._voices_task = loop.create_task(self._load_voices(), name="gtts_voice_loader")
        return list(self._voices)

    async def _load_voices(self) -> None:
        try:
            languages: dict[str, str] = await asyncio.to_thread(tts_langs)
        except (RuntimeError, OSError) as err:
            logger.error("Failed to load gTTS languages: %s", err)
            return
        self._voices = build_voices(languages)
        logger.info("gTTS voices loaded: %d", len(self._voices))
        self.notify_voices_changed()

    async def synthesize(self, utterance: Utterance) -> tuple[_AudioData, bool]:
        """Synthesise an utterance to PCM.

        Returns:
            tuple[_AudioData, bool]: Decoded audio and whether gTTS slow mode was used.
        """
        if utterance.voice is not None and "|" in utterance.voice.id:
            lang, tld = utterance.voice.id.split("|", 1)
        else:
            lang, tld = split_locale(self.settings.LANGUAGE)
        slow: bool = utterance.rate < SLOW_MODE_RATE

        mp3_data = BytesIO()
        gtts: gTTS = gTTS(utterance.text, lang=lang, tld=tld, slow=slow)
        await asyncio.to_thread(gtts.write_to_fp, mp3_data)
        # write_to_fp leaves the pointer at EOF.
        mp3_data.seek(0)

        raw_pcm, samplerate = soundfile.read(mp3_data, dtype="float32")
        audiodata = _AudioData(raw_pcm=_ensure_float32_array(raw_pcm, "mp3 audio data"), samplerate=int(samplerate))
        logger.debug("sampling rate=%d", audiodata.samplerate)

        volume: float = max(min(utterance.volume, 1.0), 0.0)
        if volume != 1.0:
            # Broadcast multiply keeps float32, which is what PyAudio expects.
            audiodata.raw_pcm *= volume
        return audiodata, slow

    async def _render(self, utterance: Utterance, cancel_event: asyncio.Event) -> None:
        try:
            audiodata, slow = await self.synthesize(utterance)
            if cancel_event.is_set():
                utterance.on_error(SpeechErrorKind.INTERRUPTED)
                return

            samplerate: int = audiodata.samplerate
            if not slow:
                samplerate = int(samplerate * max(min(utterance.rate, MAX_PLAYBACK_RATE), SLOW_MODE_RATE))

            if self._audio is None:
                self._audio = AudioOutput()
            completed: bool = await self._audio.play(audiodata.raw_pcm, samplerate, cancel_event)
        except gTTSError as err:
            logger.error("gTTS Internal Error: %s", err)
            utterance.on_error(SpeechErrorKind.SYNTHESIS_FAILED)
        except (soundfile.LibsndfileError, soundfile.SoundFileRuntimeError) as err:
            logger.error("SoundFile Error: %s", err)
            utterance.on_error(SpeechErrorKind.SYNTHESIS_FAILED)
        except PermissionError as err:
            logger.error("Audio output refused: %s", err)
            utterance.on_error(SpeechErrorKind.NOT_ALLOWED)
        except OSError as err:
            logger.error("Audio device error: %s", err)
            utterance.on_error(SpeechErrorKind.AUDIO_DEVICE)
        except (TypeError, ValueError, AssertionError) as err:
            logger.error("An error occurred in the TTS process: %s", err)
            utterance.on_error(SpeechErrorKind.SYNTHESIS_FAILED)
        else:
            if completed:
                utterance.on_end()
            else:
                utterance.on_error(SpeechErrorKind.INTERRUPTED)

    async def close(self) -> None:
        await self._worker.close()
        if self._voices_task is not None and not self._voices_task.done():
            self._voices_task.cancel()
        if self._audio is not None:
            self._audio.release_pyaudio()
            self._audio = None
        await super().close()
