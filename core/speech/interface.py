from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from models.config_models import Speech
    from models.voice_models import Utterance, VoiceInfo


__all__: list[str] = [
    "SpeechEngine",
    "SpeechEngineBlockedError",
    "SpeechEngineError",
    "SpeechEngineUnsupportedError",
    "SpeechSynthesisError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class SpeechEngineError(Exception):
    """Base class for speech engine exceptions."""


class SpeechEngineUnsupportedError(SpeechEngineError):
    """Speech synthesis is not available on this platform."""


class SpeechEngineBlockedError(SpeechEngineError):
    """The engine refuses to speak until the user has interacted with the host."""


class SpeechSynthesisError(SpeechEngineError):
    """Synthesis or playback of a single utterance failed."""


class SpeechEngine(ABC):
    """Base class for text-to-speech engines driven by the announcement controller.

    An engine speaks one utterance at a time. Completion is reported through the utterance's
    own callbacks, which may arrive on any thread, late, twice or never; callers must not rely
    on them alone. Concrete subclasses register themselves by name on definition.

    Attributes:
        _registered_engines (dict[str, type[SpeechEngine]]): Engine classes keyed by engine name.
    """

    _registered_engines: ClassVar[dict[str, type[SpeechEngine]]] = {}

    def __init__(self) -> None:
        self._voices_changed_listeners: list[Callable[[], None]] = []

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        # Abstract helpers and test doubles without a name are not registered.
        if inspect.isabstract(cls):
            return
        cls.register_engine(cls)

    @classmethod
    def register_engine(cls, engine_cls: type[SpeechEngine]) -> None:
        """Register a concrete engine class under its engine name."""
        if not issubclass(engine_cls, SpeechEngine):
            msg = "Must be a subclass of SpeechEngine"
            raise TypeError(msg)
        name: str = engine_cls.fetch_engine_name()
        SpeechEngine._registered_engines[name] = engine_cls
        logger.debug("Registered speech engine: %s", name)

    @classmethod
    def get_registered(cls) -> dict[str, type[SpeechEngine]]:
        return SpeechEngine._registered_engines

    @classmethod
    def get_engine(cls, name: str) -> type[SpeechEngine]:
        """Retrieve a registered engine class by name.

        Raises:
            ValueError: If no engine is registered under `name`.
        """
        try:
            return SpeechEngine._registered_engines[name]
        except KeyError:
            msg: str = f"No such speech engine registered: {name}"
            raise ValueError(msg) from None

    @classmethod
    def create(cls, settings: Speech) -> SpeechEngine:
        """Instantiate the engine named in the [SPEECH] section."""
        engine_cls: type[SpeechEngine] = cls.get_engine(settings.ENGINE)
        return engine_cls(settings)  # type: ignore[call-arg]

    @staticmethod
    @abstractmethod
    def fetch_engine_name() -> str:
        """Get the distinguished name of the engine."""
        raise NotImplementedError

    @abstractmethod
    def is_supported(self) -> bool:
        """Return False when the platform cannot synthesise or play speech at all."""
        raise NotImplementedError

    @abstractmethod
    def speak(self, utterance: Utterance) -> None:
        """Submit an utterance.

        Raises:
            SpeechEngineBlockedError: If speech is refused pending user interaction.
            SpeechEngineError: If the utterance could not be submitted.
        """
        raise NotImplementedError

    @abstractmethod
    def cancel(self) -> None:
        """Stop the current utterance and drop any the engine still holds."""
        raise NotImplementedError

    @property
    @abstractmethod
    def is_speaking(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def get_voices(self) -> list[VoiceInfo]:
        """Return the voices known so far.

        The list may be empty at first and fill in later; engines announce that through
        notify_voices_changed().
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release engine resources (override if necessary)."""
        logger.info("%s closed", self.__class__.__name__)

    def add_voices_changed_listener(self, listener: Callable[[], None]) -> None:
        if listener not in self._voices_changed_listeners:
            self._voices_changed_listeners.append(listener)

    def remove_voices_changed_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._voices_changed_listeners:
            self._voices_changed_listeners.remove(listener)

    def notify_voices_changed(self) -> None:
        """Tell subscribers the voice list changed. Listener errors are logged and ignored."""
        for listener in list(self._voices_changed_listeners):
            try:
                listener()
            except Exception as err:  # noqa: BLE001
                logger.error("Voices-changed listener failed: %s", err)
