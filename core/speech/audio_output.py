from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any, Final

import numpy as np
import pyaudio

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from numpy.typing import NDArray

__all__: list[str] = ["AudioOutput"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

# Buffer length in seconds of audio; the callback is asked for this many frames at a time.
BUFFER_SECONDS: Final[float] = 0.2
MIN_BUFFER_FRAMES: Final[int] = 2048


@dataclass
class _PcmCursor:
    """Read position over an in-memory float32 PCM buffer shaped (frames,) or (frames, channels)."""

    pcm: NDArray[np.float32]
    position: int = 0

    @property
    def channels(self) -> int:
        return 1 if self.pcm.ndim == 1 else int(self.pcm.shape[1])

    def read(self, frames: int) -> NDArray[np.float32]:
        chunk: NDArray[np.float32] = self.pcm[self.position : self.position + frames]
        self.position += chunk.shape[0]
        return chunk


def _stream_callback_logic(
    in_data,
    frame_count,
    time_info,
    status,
    /,
    cursor: _PcmCursor,
    loop: asyncio.AbstractEventLoop,
    finished_event: asyncio.Event,
    cancel_event: asyncio.Event,
) -> tuple[bytes | None, int]:
    """PyAudio stream callback feeding frames from a PCM cursor.

    Runs on PyAudio's thread. Completion and abort are reported back to the event loop by
    setting `finished_event` through `call_soon_threadsafe`.

    Returns:
        tuple[bytes | None, int]: Audio data and stream status flag.
    """
    # The first four arguments are positional-only and fixed by PyAudio.
    _ = in_data, time_info, status
    try:
        if cancel_event.is_set():
            loop.call_soon_threadsafe(finished_event.set)
            return (None, pyaudio.paAbort)

        data: NDArray[np.float32] = cursor.read(frame_count)
        if data.shape[0] < frame_count:
            loop.call_soon_threadsafe(finished_event.set)
            return (data.tobytes(), pyaudio.paComplete)
    except RuntimeError as err:
        # Event loop already closed
        logger.critical("Runtime error in audio callback: %s", err)
        return (None, pyaudio.paAbort)

    return (data.tobytes(), pyaudio.paContinue)


class AudioOutput:
    """Plays float32 PCM buffers through PyAudio without blocking the event loop."""

    def __init__(self) -> None:
        self._pyaudio: pyaudio.PyAudio | None = pyaudio.PyAudio()
        self.stream: pyaudio.Stream | None = None

    @property
    def pyaudio(self) -> pyaudio.PyAudio:
        """PyAudio instance, recreated after release_pyaudio()."""
        if self._pyaudio is None:
            self._pyaudio = pyaudio.PyAudio()
            logger.info("PyAudio instance recreated")
        return self._pyaudio

    def has_output_device(self) -> bool:
        try:
            info: dict[str, Any] = self.pyaudio.get_default_output_device_info()
        except OSError as err:
            logger.warning("No audio output device: %s", err)
            return False
        return int(info.get("maxOutputChannels", 0)) > 0

    @property
    def is_playing(self) -> bool:
        if self.stream is None:
            return False
        return self.stream.is_active()

    async def play(self, pcm: NDArray[np.float32], samplerate: int, cancel_event: asyncio.Event) -> bool:
        """Play a buffer until it ends or `cancel_event` is set.

        Args:
            pcm (NDArray[np.float32]): Samples shaped (frames,) or (frames, channels).
            samplerate (int): Output sample rate in Hz.
            cancel_event (asyncio.Event): Stops playback when set.

        Returns:
            bool: True if the buffer played to the end, False if playback was cancelled.

        Raises:
            OSError: If the output stream cannot be opened.
        """
        loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
        finished_event = asyncio.Event()
        cursor = _PcmCursor(np.ascontiguousarray(pcm, dtype=np.float32))

        callback_fn: partial[tuple[bytes | None, int]] = partial(
            _stream_callback_logic,
            cursor=cursor,
            loop=loop,
            finished_event=finished_event,
            cancel_event=cancel_event,
        )
        frame_buffer_size: int = max(MIN_BUFFER_FRAMES, int(samplerate * BUFFER_SECONDS))
        logger.debug(
            "Audio properties - Channels: %s, Sampling rate: %s, Buffer size: %s",
            cursor.channels,
            samplerate,
            frame_buffer_size,
        )

        self.stream = self.pyaudio.open(
            format=pyaudio.paFloat32,
            channels=cursor.channels,
            rate=samplerate,
            output=True,
            frames_per_buffer=frame_buffer_size,
            stream_callback=callback_fn,
        )
        waiters: set[asyncio.Task[Any]] = {
            asyncio.create_task(finished_event.wait()),
            asyncio.create_task(cancel_event.wait()),
        }
        try:
            self.stream.start_stream()
            _, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            for waiter in pending:
                waiter.cancel()
        finally:
            for waiter in waiters:
                waiter.cancel()
            self._close_stream()

        return not cancel_event.is_set()

    def _close_stream(self) -> None:
        if self.stream is None:
            return
        with contextlib.suppress(OSError):
            self.stream.stop_stream()
        with contextlib.suppress(OSError):
            self.stream.close()
        self.stream = None

    def release_pyaudio(self) -> None:
        self._close_stream()
        if self._pyaudio is not None:
            self._pyaudio.terminate()
            self._pyaudio = None
            logger.info("PyAudio resources released")
