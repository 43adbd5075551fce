from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest

from core.speech.engines import pyttsx3_engine as native_module
from core.speech.interface import SpeechEngineUnsupportedError
from models.config_models import Speech
from models.voice_models import SpeechErrorKind, Utterance, VoiceInfo


class FakeDriver:
    """Mimics the parts of pyttsx3.Engine the engine uses."""

    def __init__(
        self, voices: list[Any] | None = None, completed: bool = True, voice: str | None = None
    ) -> None:
        self.properties: dict[str, Any] = {"voices": voices or [], "voice": voice}
        self.said: list[str] = []
        self.completed: bool = completed
        self.stopped: int = 0
        self._callbacks: dict[int, Any] = {}

    def getProperty(self, name: str) -> Any:  # noqa: N802
        return self.properties.get(name)

    def setProperty(self, name: str, value: Any) -> None:  # noqa: N802
        self.properties[name] = value

    def connect(self, _topic: str, callback: Any) -> int:
        token = len(self._callbacks) + 1
        self._callbacks[token] = callback
        return token

    def disconnect(self, token: int) -> None:
        self._callbacks.pop(token, None)

    def say(self, text: str) -> None:
        self.said.append(text)

    def runAndWait(self) -> None:  # noqa: N802
        for callback in list(self._callbacks.values()):
            callback(None, self.completed)

    def stop(self) -> None:
        self.stopped += 1


async def fake_to_thread(func: Any, *args: Any, **kwargs: Any) -> Any:
    return func(*args, **kwargs)


def _engine(monkeypatch: pytest.MonkeyPatch, driver: FakeDriver) -> native_module.NativeSpeechEngine:
    monkeypatch.setattr(native_module.pyttsx3, "init", MagicMock(return_value=driver))
    monkeypatch.setattr(native_module.asyncio, "to_thread", fake_to_thread)
    return native_module.NativeSpeechEngine(Speech(ENGINE="pyttsx3"))


def _utterance(**kwargs: Any) -> tuple[Utterance, list[str]]:
    events: list[str] = []
    utterance = Utterance(
        text="Kelly's Eyes, number 1",
        on_end=lambda: events.append("end"),
        on_error=lambda kind: events.append(kind.value),
        **kwargs,
    )
    return utterance, events


@pytest.mark.parametrize(
    ("tag", "expected"),
    [
        (b"\x05en-gb", "en-gb"),
        ("en_US", "en_US"),
        (b"hi", "hi"),
    ],
)
def test_decode_language(tag: Any, expected: str) -> None:
    assert native_module.decode_language(tag) == expected


def test_unsupported_when_driver_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    init = MagicMock(side_effect=RuntimeError("no espeak"))
    monkeypatch.setattr(native_module.pyttsx3, "init", init)
    engine = native_module.NativeSpeechEngine(Speech(ENGINE="pyttsx3"))

    assert engine.is_supported() is False
    with pytest.raises(SpeechEngineUnsupportedError):
        engine.speak(Utterance(text="hello"))
    init.assert_called_once()


def test_voices_are_read_from_driver(monkeypatch: pytest.MonkeyPatch) -> None:
    native_voices = [
        SimpleNamespace(id="english-in", name="English (India)", languages=[b"\x05en-in"]),
        SimpleNamespace(id="zira", name="Microsoft Zira", languages=[]),
    ]
    engine = _engine(monkeypatch, FakeDriver(voices=native_voices))
    notified: list[bool] = []
    engine.add_voices_changed_listener(lambda: notified.append(True))

    voices = engine.get_voices()

    assert voices == [
        VoiceInfo(id="english-in", name="English (India)", lang="en-in"),
        VoiceInfo(id="zira", name="Microsoft Zira", lang=""),
    ]
    assert notified == [True]


@pytest.mark.asyncio
async def test_render_applies_voice_rate_volume(monkeypatch: pytest.MonkeyPatch) -> None:
    driver = FakeDriver()
    engine = _engine(monkeypatch, driver)
    voice = VoiceInfo(id="english-in", name="English (India)", lang="en-in")
    utterance, events = _utterance(voice=voice, rate=1.5, volume=0.8)

    await engine._render(utterance, asyncio.Event())

    assert events == ["end"]
    assert driver.said == ["Kelly's Eyes, number 1"]
    assert driver.properties["voice"] == "english-in"
    assert driver.properties["rate"] == 300
    assert driver.properties["volume"] == 0.8
    assert driver._callbacks == {}


@pytest.mark.asyncio
async def test_render_without_voice_restores_driver_default(monkeypatch: pytest.MonkeyPatch) -> None:
    driver = FakeDriver(voice="default-voice")
    engine = _engine(monkeypatch, driver)
    caller_voice = VoiceInfo(id="caller-voice", name="Caller", lang="en-in")
    voiced, _ = _utterance(voice=caller_voice)
    plain, events = _utterance()

    await engine._render(voiced, asyncio.Event())
    assert driver.properties["voice"] == "caller-voice"
    await engine._render(plain, asyncio.Event())

    assert events == ["end"]
    assert driver.properties["voice"] == "default-voice"


@pytest.mark.asyncio
async def test_render_reports_interrupted_when_not_completed(monkeypatch: pytest.MonkeyPatch) -> None:
    engine = _engine(monkeypatch, FakeDriver(completed=False))
    utterance, events = _utterance()

    await engine._render(utterance, asyncio.Event())

    assert events == [SpeechErrorKind.INTERRUPTED.value]


@pytest.mark.asyncio
async def test_render_maps_runtime_error(monkeypatch: pytest.MonkeyPatch) -> None:
    driver = FakeDriver()
    engine = _engine(monkeypatch, driver)
    driver.runAndWait = MagicMock(side_effect=RuntimeError("run loop already started"))  # type: ignore[method-assign]
    utterance, events = _utterance()

    await engine._render(utterance, asyncio.Event())

    assert events == [SpeechErrorKind.SYNTHESIS_FAILED.value]


@pytest.mark.asyncio
async def test_cancel_stops_driver_while_rendering(monkeypatch: pytest.MonkeyPatch) -> None:
    driver = FakeDriver()
    engine = _engine(monkeypatch, driver)
    _ = engine.driver
    engine._worker._current = Utterance(text="busy")

    engine.cancel()

    assert driver.stopped == 1
    assert engine._worker.cancel_event.is_set()
    engine._worker._current = None
    await engine.close()
