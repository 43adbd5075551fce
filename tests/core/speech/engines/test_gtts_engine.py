from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from core.speech.engines import g_tts as g_tts_module
from core.speech.interface import SpeechEngineUnsupportedError
from models.config_models import Speech
from models.voice_models import SpeechErrorKind, Utterance, VoiceInfo


class FakeGTTS:
    created: list[FakeGTTS] = []

    def __init__(self, text: str, lang: str, tld: str, slow: bool) -> None:
        self.text: str = text
        self.lang: str = lang
        self.tld: str = tld
        self.slow: bool = slow
        FakeGTTS.created.append(self)

    def write_to_fp(self, fp) -> None:
        fp.write(b"fake")


async def fake_to_thread(func: Any, *args: Any, **kwargs: Any) -> Any:
    return func(*args, **kwargs)


@pytest.fixture
def engine(monkeypatch: pytest.MonkeyPatch) -> g_tts_module.GoogleSpeechEngine:
    FakeGTTS.created = []
    raw_pcm = np.array([0.5, -0.5], dtype=np.float32)

    def fake_read(_fp: Any, dtype: Any = None) -> tuple[np.ndarray[Any, Any], int]:
        _ = dtype
        return raw_pcm.copy(), 24000

    monkeypatch.setattr(g_tts_module, "gTTS", FakeGTTS)
    monkeypatch.setattr(g_tts_module.asyncio, "to_thread", fake_to_thread)
    monkeypatch.setattr(g_tts_module.soundfile, "read", fake_read)
    return g_tts_module.GoogleSpeechEngine(Speech(LANGUAGE="en-in"))


def _utterance(text: str = "hello", **kwargs: Any) -> tuple[Utterance, list[str]]:
    events: list[str] = []
    utterance = Utterance(
        text=text,
        on_end=lambda: events.append("end"),
        on_error=lambda kind: events.append(kind.value),
        **kwargs,
    )
    return utterance, events


def test_ensure_float32_array_rejects_wrong_dtype() -> None:
    data = np.array([0.0, 1.0], dtype=np.float64)
    with pytest.raises(TypeError, match="Expected float32 for test data"):
        g_tts_module._ensure_float32_array(data, "test data")


def test_build_voices_expands_accents() -> None:
    voices = g_tts_module.build_voices({"en": "English", "hi": "Hindi"})
    by_id = {voice.id: voice for voice in voices}

    assert by_id["en|co.in"].name == "Google English (India)"
    assert by_id["en|co.in"].lang == "en-in"
    assert by_id["hi|com"].lang == "hi"
    assert all(not voice.local_service for voice in voices)


@pytest.mark.parametrize(
    ("locale", "expected"),
    [
        ("en-in", ("en", "co.in")),
        ("en-gb", ("en", "co.uk")),
        ("en", ("en", "com")),
        ("hi-in", ("hi", "com")),
        ("", ("en", "com")),
    ],
)
def test_split_locale(locale: str, expected: tuple[str, str]) -> None:
    assert g_tts_module.split_locale(locale) == expected


def test_is_supported_reflects_output_device(
    monkeypatch: pytest.MonkeyPatch, engine: g_tts_module.GoogleSpeechEngine
) -> None:
    audio = MagicMock()
    audio.has_output_device.return_value = False
    monkeypatch.setattr(g_tts_module, "AudioOutput", MagicMock(return_value=audio))

    assert engine.is_supported() is False
    with pytest.raises(SpeechEngineUnsupportedError):
        engine.speak(Utterance(text="hello"))


@pytest.mark.asyncio
async def test_synthesize_uses_configured_locale_and_volume(engine: g_tts_module.GoogleSpeechEngine) -> None:
    utterance, _ = _utterance(volume=0.5)

    audiodata, slow = await engine.synthesize(utterance)

    assert slow is False
    assert FakeGTTS.created[0].lang == "en"
    assert FakeGTTS.created[0].tld == "co.in"
    np.testing.assert_allclose(audiodata.raw_pcm, [0.25, -0.25])
    assert audiodata.samplerate == 24000


@pytest.mark.asyncio
async def test_synthesize_uses_voice_id_and_slow_mode(engine: g_tts_module.GoogleSpeechEngine) -> None:
    voice = VoiceInfo(id="en|co.uk", name="Google English (United Kingdom)", lang="en-gb", local_service=False)
    utterance, _ = _utterance(voice=voice, rate=0.5)

    _, slow = await engine.synthesize(utterance)

    assert slow is True
    assert FakeGTTS.created[0].tld == "co.uk"
    assert FakeGTTS.created[0].slow is True


@pytest.mark.asyncio
async def test_render_plays_at_rate_and_reports_end(engine: g_tts_module.GoogleSpeechEngine) -> None:
    engine._audio = MagicMock()
    engine._audio.play = AsyncMock(return_value=True)
    utterance, events = _utterance(rate=1.5)

    await engine._render(utterance, asyncio.Event())

    assert events == ["end"]
    _pcm, samplerate, _cancel = engine._audio.play.call_args.args
    assert samplerate == 36000


@pytest.mark.asyncio
async def test_render_reports_interrupted_when_playback_cancelled(engine: g_tts_module.GoogleSpeechEngine) -> None:
    engine._audio = MagicMock()
    engine._audio.play = AsyncMock(return_value=False)
    utterance, events = _utterance()

    await engine._render(utterance, asyncio.Event())

    assert events == [SpeechErrorKind.INTERRUPTED.value]


@pytest.mark.asyncio
async def test_render_maps_gtts_error(monkeypatch: pytest.MonkeyPatch, engine: g_tts_module.GoogleSpeechEngine) -> None:
    class FailingGTTS(FakeGTTS):
        def write_to_fp(self, fp) -> None:
            _ = fp
            msg = "429 (Too Many Requests)"
            raise g_tts_module.gTTSError(msg)

    monkeypatch.setattr(g_tts_module, "gTTS", FailingGTTS)
    engine._audio = MagicMock()
    utterance, events = _utterance()

    await engine._render(utterance, asyncio.Event())

    assert events == [SpeechErrorKind.SYNTHESIS_FAILED.value]
    engine._audio.play.assert_not_called()


@pytest.mark.asyncio
async def test_render_maps_audio_device_error(engine: g_tts_module.GoogleSpeechEngine) -> None:
    engine._audio = MagicMock()
    engine._audio.play = AsyncMock(side_effect=OSError("Invalid output device"))
    utterance, events = _utterance()

    await engine._render(utterance, asyncio.Event())

    assert events == [SpeechErrorKind.AUDIO_DEVICE.value]


@pytest.mark.asyncio
async def test_get_voices_loads_in_background(
    monkeypatch: pytest.MonkeyPatch, engine: g_tts_module.GoogleSpeechEngine
) -> None:
    monkeypatch.setattr(g_tts_module, "tts_langs", lambda: {"en": "English"})
    notified: list[bool] = []
    engine.add_voices_changed_listener(lambda: notified.append(True))

    assert engine.get_voices() == []
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert notified == [True]
    assert "en|co.in" in {voice.id for voice in engine.get_voices()}
