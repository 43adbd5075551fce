from __future__ import annotations

import asyncio
import threading

import pytest

from core.announcer.completion_detector import NATIVE, POLL, TIMEOUT, CompletionDetector, InFlightHandle
from models.announcement_models import AnnouncementItem, Category, CompletionReason
from models.voice_models import SpeechErrorKind
from tests.fakes import FakeSpeechEngine, make_config


def _handle(text: str = "Lucky Seven, number 7") -> InFlightHandle:
    item = AnnouncementItem(category=Category.NUMBER, text=text)
    return InFlightHandle(item, asyncio.get_running_loop())


def _detector(engine: FakeSpeechEngine | None = None) -> CompletionDetector:
    return CompletionDetector(engine or FakeSpeechEngine(), make_config().DETECTION)


def test_timeout_scales_with_text_and_is_capped() -> None:
    config = make_config()
    config.DETECTION.SECONDS_PER_CHARACTER = 0.1
    config.DETECTION.TIMEOUT_BUFFER = 2.0
    config.DETECTION.MAX_TIMEOUT = 15.0
    detector = CompletionDetector(FakeSpeechEngine(), config.DETECTION)

    assert detector.timeout_for("x" * 10) == pytest.approx(3.0)
    assert detector.timeout_for("x" * 1000) == 15.0


@pytest.mark.asyncio
async def test_complete_is_idempotent_and_cancels_detectors() -> None:
    handle = _handle()
    cancelled: list[str] = []
    handle.arm("a", lambda: cancelled.append("a"))
    handle.arm("b", lambda: cancelled.append("b"))

    assert handle.complete(CompletionReason.NATIVE_END) is True
    assert handle.complete(CompletionReason.TIMEOUT) is False

    assert handle.reason is CompletionReason.NATIVE_END
    assert sorted(cancelled) == ["a", "b"]
    assert handle.active_detectors == set()
    assert await handle.wait() is CompletionReason.NATIVE_END


@pytest.mark.asyncio
async def test_arm_after_completion_cancels_immediately() -> None:
    handle = _handle()
    handle.complete(CompletionReason.CANCELLED)
    cancelled: list[bool] = []

    handle.arm("late", lambda: cancelled.append(True))

    assert cancelled == [True]
    assert "late" not in handle.active_detectors


@pytest.mark.asyncio
async def test_all_detectors_armed_on_dispatch() -> None:
    handle = _handle()
    _detector().arm(handle)

    assert handle.active_detectors == {NATIVE, POLL, TIMEOUT}
    handle.complete(CompletionReason.CANCELLED)


@pytest.mark.asyncio
async def test_native_end_completes() -> None:
    handle = _handle()
    on_end, _ = _detector().arm(handle)

    on_end()

    assert await asyncio.wait_for(handle.wait(), timeout=1.0) is CompletionReason.NATIVE_END


@pytest.mark.asyncio
async def test_native_end_from_another_thread() -> None:
    handle = _handle()
    on_end, _ = _detector().arm(handle)

    thread = threading.Thread(target=on_end)
    thread.start()
    thread.join()

    assert await asyncio.wait_for(handle.wait(), timeout=1.0) is CompletionReason.NATIVE_END


@pytest.mark.asyncio
async def test_native_end_twice_completes_once() -> None:
    handle = _handle()
    on_end, _ = _detector().arm(handle)

    on_end()
    on_end()
    await asyncio.sleep(0.01)

    assert handle.completed
    assert handle.reason is CompletionReason.NATIVE_END


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        (SpeechErrorKind.NOT_ALLOWED, CompletionReason.BLOCKED),
        (SpeechErrorKind.SYNTHESIS_FAILED, CompletionReason.NATIVE_ERROR),
        (SpeechErrorKind.AUDIO_DEVICE, CompletionReason.NATIVE_ERROR),
    ],
)
@pytest.mark.asyncio
async def test_native_error_maps_to_reason(kind: SpeechErrorKind, expected: CompletionReason) -> None:
    handle = _handle()
    _, on_error = _detector().arm(handle)

    on_error(kind)

    assert await asyncio.wait_for(handle.wait(), timeout=1.0) is expected


@pytest.mark.asyncio
async def test_poll_detects_speaking_falling_to_false() -> None:
    engine = FakeSpeechEngine()
    engine._speaking = True
    handle = _handle()
    _detector(engine).arm(handle)

    # First poll at 0.05s sees the engine speaking.
    await asyncio.sleep(0.08)
    engine._speaking = False

    assert await asyncio.wait_for(handle.wait(), timeout=1.0) is CompletionReason.POLL


@pytest.mark.asyncio
async def test_poll_ignores_engine_that_never_started_speaking() -> None:
    handle = _handle()
    _detector(FakeSpeechEngine()).arm(handle)

    # Never speaking: polling cannot decide, so the timeout wins.
    assert await asyncio.wait_for(handle.wait(), timeout=1.0) is CompletionReason.TIMEOUT


@pytest.mark.asyncio
async def test_timeout_fires_within_bound() -> None:
    engine = FakeSpeechEngine()
    engine._speaking = True
    detector = _detector(engine)
    handle = _handle("x" * 50)
    loop = asyncio.get_running_loop()
    started: float = loop.time()

    detector.arm(handle)
    reason = await asyncio.wait_for(handle.wait(), timeout=2.0)

    assert reason is CompletionReason.TIMEOUT
    assert loop.time() - started <= detector.timeout_for(handle.item.text) + 0.1


@pytest.mark.asyncio
async def test_late_native_signal_after_timeout_is_dropped() -> None:
    engine = FakeSpeechEngine()
    engine._speaking = True
    handle = _handle()
    on_end, on_error = _detector(engine).arm(handle)
    await asyncio.wait_for(handle.wait(), timeout=2.0)

    on_end()
    on_error(SpeechErrorKind.SYNTHESIS_FAILED)
    await asyncio.sleep(0.01)

    assert handle.reason is CompletionReason.TIMEOUT


@pytest.mark.asyncio
async def test_completion_stops_poll_and_timer() -> None:
    engine = FakeSpeechEngine()
    engine._speaking = True
    handle = _handle()
    on_end, _ = _detector(engine).arm(handle)

    on_end()
    await handle.wait()
    engine._speaking = False
    await asyncio.sleep(0.6)

    assert handle.reason is CompletionReason.NATIVE_END
    assert handle.active_detectors == set()
