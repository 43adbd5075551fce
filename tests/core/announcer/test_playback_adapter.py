from __future__ import annotations

import asyncio

import pytest

from core.announcer.completion_detector import CompletionDetector
from core.announcer.playback_adapter import PlaybackAdapter
from models.announcement_models import AnnouncementItem, Category, CompletionReason, Priority
from models.voice_models import FULL_VOLUME, NEUTRAL_PITCH, VoiceInfo
from tests.fakes import NEVER, RAISE, RAISE_BLOCKED, FakeSpeechEngine, make_config


def _adapter(engine: FakeSpeechEngine) -> PlaybackAdapter:
    return PlaybackAdapter(engine, CompletionDetector(engine, make_config().DETECTION))


def _item(text: str, priority: Priority) -> AnnouncementItem:
    category = Category.NUMBER if priority is Priority.HIGH else Category.PRIZE
    return AnnouncementItem(category=category, text=text, priority=priority)


@pytest.mark.asyncio
async def test_play_speaks_once_with_voice_rate_pitch_volume() -> None:
    engine = FakeSpeechEngine()
    adapter = _adapter(engine)
    voice = VoiceInfo(id="v1", name="Jenny", lang="en-US")

    handle = adapter.play(_item("Hello", Priority.NORMAL), voice, 1.5)

    assert len(engine.spoken) == 1
    utterance = engine.spoken[0]
    assert utterance.text == "Hello"
    assert utterance.voice is voice
    assert utterance.rate == 1.5
    assert utterance.pitch == NEUTRAL_PITCH
    assert utterance.volume == FULL_VOLUME
    assert adapter.play_count == 1
    assert await asyncio.wait_for(handle.wait(), timeout=1.0) in (CompletionReason.NATIVE_END, CompletionReason.POLL)


@pytest.mark.asyncio
async def test_high_item_cancels_normal_speech() -> None:
    engine = FakeSpeechEngine(default=NEVER)
    adapter = _adapter(engine)
    first = adapter.play(_item("Prize", Priority.NORMAL), None, 1.0)
    first.complete(CompletionReason.PREEMPTED)

    second = adapter.play(_item("Number", Priority.HIGH), None, 1.0)

    assert engine.cancel_count == 1
    second.complete(CompletionReason.CANCELLED)


@pytest.mark.asyncio
async def test_high_item_does_not_cancel_high_speech() -> None:
    engine = FakeSpeechEngine(default=NEVER)
    adapter = _adapter(engine)
    adapter.play(_item("One", Priority.HIGH), None, 1.0).complete(CompletionReason.TIMEOUT)

    adapter.play(_item("Two", Priority.HIGH), None, 1.0).complete(CompletionReason.CANCELLED)

    assert engine.cancel_count == 0


@pytest.mark.asyncio
async def test_normal_item_never_cancels() -> None:
    engine = FakeSpeechEngine(default=NEVER)
    adapter = _adapter(engine)
    adapter.play(_item("Number", Priority.HIGH), None, 1.0).complete(CompletionReason.TIMEOUT)

    adapter.play(_item("Prize", Priority.NORMAL), None, 1.0).complete(CompletionReason.CANCELLED)

    assert engine.cancel_count == 0


@pytest.mark.asyncio
async def test_blocked_engine_completes_handle_as_blocked() -> None:
    engine = FakeSpeechEngine(script=[RAISE_BLOCKED])
    handle = _adapter(engine).play(_item("Hello", Priority.NORMAL), None, 1.0)

    assert handle.completed
    assert handle.reason is CompletionReason.BLOCKED
    assert handle.active_detectors == set()


@pytest.mark.asyncio
async def test_engine_failure_completes_handle_as_error() -> None:
    engine = FakeSpeechEngine(script=[RAISE])
    handle = _adapter(engine).play(_item("Hello", Priority.NORMAL), None, 1.0)

    assert handle.reason is CompletionReason.NATIVE_ERROR
    assert len(engine.spoken) == 1
