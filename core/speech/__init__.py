"""Speech engines and audio output.

This package provides the `SpeechEngine` interface the announcer drives, the concrete engines
and the PyAudio playback used by engines that synthesise audio in memory.
"""

from core.speech.audio_output import AudioOutput
from core.speech.engines import GoogleSpeechEngine, NativeSpeechEngine
from core.speech.interface import (
    SpeechEngine,
    SpeechEngineBlockedError,
    SpeechEngineError,
    SpeechEngineUnsupportedError,
    SpeechSynthesisError,
)
from core.speech.utterance_worker import UtteranceWorker

__all__: list[str] = [
    "AudioOutput",
    "GoogleSpeechEngine",
    "NativeSpeechEngine",
    "SpeechEngine",
    "SpeechEngineBlockedError",
    "SpeechEngineError",
    "SpeechEngineUnsupportedError",
    "SpeechSynthesisError",
    "UtteranceWorker",
]
