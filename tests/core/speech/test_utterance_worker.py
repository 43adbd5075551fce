from __future__ import annotations

import asyncio

import pytest

from core.speech.utterance_worker import UtteranceWorker
from models.voice_models import SpeechErrorKind, Utterance


def _utterance(text: str, ended: list[str], errors: list[tuple[str, SpeechErrorKind]]) -> Utterance:
    return Utterance(
        text=text,
        on_end=lambda: ended.append(text),
        on_error=lambda kind: errors.append((text, kind)),
    )


@pytest.mark.asyncio
async def test_renders_one_utterance_at_a_time_in_order() -> None:
    rendered: list[str] = []
    active: list[int] = [0]
    overlaps: list[str] = []

    async def render(utterance: Utterance, _cancel: asyncio.Event) -> None:
        active[0] += 1
        if active[0] > 1:
            overlaps.append(utterance.text)
        await asyncio.sleep(0.01)
        rendered.append(utterance.text)
        active[0] -= 1
        utterance.on_end()

    worker = UtteranceWorker("test", render)
    ended: list[str] = []
    for text in ("a", "b", "c"):
        worker.submit(_utterance(text, ended, []))
    assert worker.busy

    async with asyncio.timeout(1.0):
        while worker.busy:
            await asyncio.sleep(0.005)

    assert rendered == ["a", "b", "c"]
    assert ended == ["a", "b", "c"]
    assert overlaps == []
    await worker.close()


@pytest.mark.asyncio
async def test_cancel_interrupts_current_and_drops_waiting() -> None:
    async def render(utterance: Utterance, cancel: asyncio.Event) -> None:
        await cancel.wait()
        utterance.on_error(SpeechErrorKind.INTERRUPTED)

    worker = UtteranceWorker("test", render)
    errors: list[tuple[str, SpeechErrorKind]] = []
    worker.submit(_utterance("current", [], errors))
    worker.submit(_utterance("waiting", [], errors))
    await asyncio.sleep(0.01)

    worker.cancel()
    await asyncio.sleep(0.01)

    assert sorted(errors) == [("current", SpeechErrorKind.INTERRUPTED), ("waiting", SpeechErrorKind.INTERRUPTED)]
    assert not worker.busy
    await worker.close()


@pytest.mark.asyncio
async def test_render_failure_reports_synthesis_error_and_continues() -> None:
    async def render(utterance: Utterance, _cancel: asyncio.Event) -> None:
        if utterance.text == "bad":
            msg = "synthesis exploded"
            raise RuntimeError(msg)
        utterance.on_end()

    worker = UtteranceWorker("test", render)
    ended: list[str] = []
    errors: list[tuple[str, SpeechErrorKind]] = []
    worker.submit(_utterance("bad", ended, errors))
    worker.submit(_utterance("good", ended, errors))
    await asyncio.sleep(0.02)

    assert errors == [("bad", SpeechErrorKind.SYNTHESIS_FAILED)]
    assert ended == ["good"]
    await worker.close()


@pytest.mark.asyncio
async def test_close_stops_worker() -> None:
    async def render(_utterance: Utterance, cancel: asyncio.Event) -> None:
        await cancel.wait()

    worker = UtteranceWorker("test", render)
    worker.submit(Utterance(text="long"))
    await asyncio.sleep(0.01)

    await asyncio.wait_for(worker.close(), timeout=1.0)

    assert worker._task is None
    assert not worker.busy
