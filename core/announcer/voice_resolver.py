from __future__ import annotations

from typing import TYPE_CHECKING

from core.speech.interface import SpeechEngineError
from models.announcement_models import CATEGORY_PROFILES, VoiceRole
from models.voice_models import normalize_lang
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from core.speech.interface import SpeechEngine
    from models.announcement_models import Category
    from models.voice_models import VoiceInfo

__all__: list[str] = ["VoiceResolver"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class VoiceResolver:
    """Maps announcement categories to engine voices.

    Each voice role has an ordered list of preferred name fragments. The first voice whose name
    contains a fragment (case-insensitive) wins; otherwise a voice in the configured language,
    then one sharing the language's primary subtag. None means "engine default".

    The resolver caches one voice per role. The cache belongs to a single controller and is
    rebuilt whenever the engine reports that its voice list changed.
    """

    def __init__(self, engine: SpeechEngine, preferences: dict[VoiceRole, list[str]], language: str) -> None:
        self.engine: SpeechEngine = engine
        self.preferences: dict[VoiceRole, list[str]] = preferences
        self.language: str = normalize_lang(language)
        self._voices: list[VoiceInfo] = []
        self._cache: dict[VoiceRole, VoiceInfo | None] = {}
        self._subscribed: bool = False

    @property
    def voices(self) -> list[VoiceInfo]:
        return list(self._voices)

    def attach(self) -> None:
        """Enumerate voices and follow the engine's voice-list changes."""
        if not self._subscribed:
            self.engine.add_voices_changed_listener(self.refresh)
            self._subscribed = True
        self.refresh()

    def detach(self) -> None:
        if self._subscribed:
            self.engine.remove_voices_changed_listener(self.refresh)
            self._subscribed = False
        self.clear()

    def refresh(self) -> None:
        """Re-read the engine's voice list and drop cached choices."""
        try:
            self._voices = list(self.engine.get_voices())
        except SpeechEngineError as err:
            logger.warning("Voice enumeration failed: %s", err)
            self._voices = []
        self._cache.clear()
        logger.debug("Voice list refreshed: %d voice(s)", len(self._voices))

    def clear(self) -> None:
        self._voices = []
        self._cache.clear()

    def resolve(self, category: Category) -> VoiceInfo | None:
        role: VoiceRole = CATEGORY_PROFILES[category].voice_role
        if role not in self._cache:
            if not self._voices:
                # The list may still be loading; do not cache the miss.
                self.refresh()
                if not self._voices:
                    return None
            self._cache[role] = self._select(role)
            logger.info("Voice for %s: %s", role.value, self._cache[role])
        return self._cache[role]

    def _select(self, role: VoiceRole) -> VoiceInfo | None:
        for fragment in self.preferences.get(role, []):
            needle: str = fragment.casefold()
            for voice in self._voices:
                if needle and needle in voice.name.casefold():
                    return voice

        for voice in self._voices:
            if voice.lang == self.language:
                return voice

        primary: str = self.language.split("-", 1)[0]
        for voice in self._voices:
            if primary and voice.primary_lang == primary:
                return voice
        return None
