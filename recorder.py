"""Microphone recorder emitting fixed time-slice segments."""

from __future__ import annotations

import io
import logging
import threading
import time
import wave
from queue import Full, Queue
from typing import Any, Iterable

from models import AudioFrame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


def capture_available() -> bool:
    return sd is not None and np is not None


def pcm_to_wav_bytes(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> bytes:
    """Wrap raw PCM bytes in a WAV container."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buf.getvalue()


def frames_to_wav_bytes(frames: Iterable[AudioFrame]) -> bytes:
    """Concatenate recorded segments into one WAV payload."""
    pcm = bytearray()
    sample_rate = 16000
    channels = 1
    for frame in frames:
        pcm.extend(frame.pcm16_bytes)
        sample_rate = frame.sample_rate
        channels = frame.channels
    return pcm_to_wav_bytes(bytes(pcm), sample_rate, channels)


class SoundDeviceRecorder:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
        segment_ms: int | None = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.segment_ms = segment_ms or chunk_ms
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._pending = bytearray()
        self.dropped_chunks = 0
        self._audio_queue: Queue[AudioFrame | None] | None = None

    @property
    def segment_bytes(self) -> int:
        return int(self.sample_rate * self.segment_ms / 1000.0) * self.channels * 2

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            self._audio_queue = audio_queue
            self._pending = bytearray()
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=blocksize,
                callback=self._on_audio,
            )
            try:
                stream.start()
            except Exception:
                stream.close()
                raise
            self._stream = stream
            self._running = True
            logger.debug("Microphone stream opened (%d Hz, %d ch)", self.sample_rate, self.channels)

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                self._emit_sentinel_if_needed()
                return
            self._running = False
            if self._stream is not None:
                try:
                    self._stream.stop()
                finally:
                    self._stream.close()
                    self._stream = None
            logger.debug("Microphone stream released")
            self._flush_pending()
            self._emit_sentinel_if_needed()

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or self._audio_queue is None:
            return
        if np is None:
            return
        self._pending.extend(np.asarray(indata, dtype=np.int16).tobytes())
        size = self.segment_bytes
        while len(self._pending) >= size:
            self._put(bytes(self._pending[:size]))
            del self._pending[:size]

    def _flush_pending(self) -> None:
        if self._pending:
            self._put(bytes(self._pending))
            self._pending = bytearray()

    def _put(self, payload: bytes) -> None:
        if self._audio_queue is None:
            return
        frame = AudioFrame(
            pcm16_bytes=payload,
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )
        try:
            self._audio_queue.put_nowait(frame)
        except Full:
            self.dropped_chunks += 1

    def _emit_sentinel_if_needed(self) -> None:
        if self._audio_queue is None:
            return
        try:
            self._audio_queue.put_nowait(None)
        except Full:
            pass
