"""Tests for SoundDeviceRecorder and the WAV helpers."""

from __future__ import annotations

import io
import wave
from queue import Queue
from unittest.mock import MagicMock, patch

import pytest

from models import AudioFrame
from recorder import SoundDeviceRecorder, frames_to_wav_bytes, pcm_to_wav_bytes


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

class _FakeNp:
    """Minimal numpy stand-in so recorder._on_audio doesn't bail."""

    class int16:
        pass

    @staticmethod
    def asarray(data, dtype=None):
        return data


class _FakeAudioInput:
    """Fake audio input similar to what sounddevice callback provides."""

    def __init__(self, n_samples: int = 1600) -> None:
        self._data = b"\x01\x00" * n_samples

    def tobytes(self) -> bytes:
        return self._data


def _drain(q: Queue) -> list:
    out = []
    while not q.empty():
        out.append(q.get_nowait())
    return out


# ---------------------------------------------------------------
# Basic start / stop
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_start_creates_stream_and_stop_releases_it(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue()
    recorder.start(q)

    mock_sd.InputStream.assert_called_once()
    mock_stream.start.assert_called_once()
    assert recorder.is_running is True

    recorder.stop()
    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()
    assert recorder.is_running is False
    assert q.get_nowait() is None


@patch("recorder.sd")
def test_start_is_idempotent(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue()
    recorder.start(q)
    recorder.start(q)

    assert mock_sd.InputStream.call_count == 1
    recorder.stop()


@patch("recorder.sd")
def test_failed_stream_start_closes_stream(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_stream.start.side_effect = RuntimeError("device busy")
    mock_sd.InputStream.return_value = mock_stream

    recorder = SoundDeviceRecorder()
    with pytest.raises(RuntimeError, match="device busy"):
        recorder.start(Queue())

    mock_stream.close.assert_called_once()
    assert recorder.is_running is False


def test_start_raises_without_sounddevice(monkeypatch) -> None:  # noqa: ANN001
    import recorder as rec_mod
    monkeypatch.setattr(rec_mod, "sd", None)

    recorder = SoundDeviceRecorder()
    with pytest.raises(RuntimeError, match="sounddevice is not installed"):
        recorder.start(Queue())


# ---------------------------------------------------------------
# Time-slice segments
# ---------------------------------------------------------------

@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_callbacks_are_grouped_into_segments(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    # 100 ms callbacks grouped into 300 ms segments.
    recorder = SoundDeviceRecorder(sample_rate=16000, channels=1, chunk_ms=100, segment_ms=300)
    q: Queue[AudioFrame | None] = Queue()
    recorder.start(q)

    for _ in range(7):
        recorder._on_audio(_FakeAudioInput(1600), frames=1600, time_info=None, status=None)

    frames = _drain(q)
    assert len(frames) == 2
    assert all(len(f.pcm16_bytes) == 4800 * 2 for f in frames)

    recorder.stop()
    rest = _drain(q)
    # Trailing 100 ms is flushed before the sentinel.
    assert len(rest[0].pcm16_bytes) == 1600 * 2
    assert rest[1] is None


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_queue_full_increments_dropped_chunks(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue(maxsize=1)
    recorder.start(q)

    recorder._on_audio(_FakeAudioInput(1600), frames=1600, time_info=None, status=None)
    assert recorder.dropped_chunks == 0
    recorder._on_audio(_FakeAudioInput(1600), frames=1600, time_info=None, status=None)
    assert recorder.dropped_chunks == 1

    recorder.stop()


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_callback_after_stop_is_noop(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue()
    recorder.start(q)
    recorder.stop()
    assert q.get_nowait() is None

    recorder._on_audio(_FakeAudioInput(1600), frames=1600, time_info=None, status=None)
    assert q.empty()


# ---------------------------------------------------------------
# WAV helpers
# ---------------------------------------------------------------

def test_pcm_to_wav_bytes_has_riff_header() -> None:
    wav = pcm_to_wav_bytes(b"\x00\x00" * 1600, sample_rate=16000, channels=1)
    assert wav[:4] == b"RIFF"
    with wave.open(io.BytesIO(wav), "rb") as wf:
        assert wf.getframerate() == 16000
        assert wf.getnframes() == 1600


def test_frames_to_wav_bytes_concatenates_segments() -> None:
    frames = [
        AudioFrame(pcm16_bytes=b"\x00\x00" * 100, sample_rate=8000),
        AudioFrame(pcm16_bytes=b"\x00\x00" * 50, sample_rate=8000),
    ]
    with wave.open(io.BytesIO(frames_to_wav_bytes(frames)), "rb") as wf:
        assert wf.getframerate() == 8000
        assert wf.getnframes() == 150
