"""Data models for speech synthesis.

This module defines:
- VoiceInfo: One synthesis voice offered by a speech engine.
- SpeechErrorKind: Classification of errors reported by an engine for a single utterance.
- Utterance: One unit of text submitted to a speech engine, with its per-utterance callbacks.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Callable

__all__: list[str] = [
    "NEUTRAL_PITCH",
    "FULL_VOLUME",
    "SpeechErrorKind",
    "Utterance",
    "VoiceInfo",
    "normalize_lang",
]

NEUTRAL_PITCH: Final[float] = 1.0
FULL_VOLUME: Final[float] = 1.0


def normalize_lang(lang: str | None) -> str:
    """Normalise a locale tag for comparison ('en_IN' -> 'en-in')."""
    if not lang:
        return ""
    return lang.strip().replace("_", "-").lower()


@dataclass(frozen=True)
class VoiceInfo:
    """A voice offered by a speech engine.

    Attributes:
        id (str): Engine-specific identifier handed back to the engine when speaking.
        name (str): Human readable name used for preference matching.
        lang (str): Locale tag, normalised to lower case with '-' separators.
        local_service (bool): True when synthesis happens on this machine.
    """

    id: str
    name: str
    lang: str = ""
    local_service: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "lang", normalize_lang(self.lang))

    def __str__(self) -> str:
        return f"<{self.__class__.__name__} name: {self.name}, lang: {self.lang}, local: {self.local_service}>"

    def __repr__(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

    @property
    def primary_lang(self) -> str:
        """Language subtag without region ('en-in' -> 'en')."""
        return self.lang.split("-", 1)[0]


class SpeechErrorKind(Enum):
    """Error categories an engine may report through Utterance.on_error.

    NOT_ALLOWED means the engine refuses to speak until the user has interacted with the host.
    """

    NOT_ALLOWED = "not-allowed"
    INTERRUPTED = "interrupted"
    SYNTHESIS_FAILED = "synthesis-failed"
    AUDIO_DEVICE = "audio-device"


def _noop() -> None:
    return None


def _noop_error(_kind: SpeechErrorKind) -> None:
    return None


@dataclass(eq=False)
class Utterance:
    """Text plus voice settings submitted to an engine in one speak() call.

    Engines may invoke on_end / on_error from any thread, more than once, or never.

    Attributes:
        text (str): Text to synthesise.
        voice (VoiceInfo | None): Voice to use. None selects the engine default.
        rate (float): Speaking rate multiplier, 1.0 is the engine's normal speed.
        pitch (float): Pitch multiplier.
        volume (float): Volume in the range 0.0 - 1.0.
        on_end (Callable[[], None]): Called when the engine finished speaking.
        on_error (Callable[[SpeechErrorKind], None]): Called when the engine failed or was interrupted.
    """

    text: str
    voice: VoiceInfo | None = None
    rate: float = 1.0
    pitch: float = NEUTRAL_PITCH
    volume: float = FULL_VOLUME
    on_end: Callable[[], None] = field(default=_noop)
    on_error: Callable[[SpeechErrorKind], None] = field(default=_noop_error)

    def __str__(self) -> str:
        voice_name: str = self.voice.name if self.voice else "default"
        return f"<{self.__class__.__name__} voice: {voice_name}, rate: {self.rate}, text: {self.text!r}>"
