from __future__ import annotations

from queue import Queue
from typing import Optional

import pytest

from models import AudioFrame, LiveEvent, LiveEventKind, RecognitionConfig


class FakeRecorder:
    """Records start/stop calls and optionally queues canned segments."""

    def __init__(self, segments: int = 2, fail_with: Optional[Exception] = None) -> None:
        self.segments = segments
        self.fail_with = fail_with
        self.started = False
        self.stopped = False
        self.queue: Queue[AudioFrame | None] | None = None

    @property
    def holding_microphone(self) -> bool:
        return self.started and not self.stopped

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.started = True
        self.queue = audio_queue

    def stop(self) -> None:
        self.stopped = True
        if self.queue is None:
            return
        for _ in range(self.segments):
            self.queue.put_nowait(AudioFrame(pcm16_bytes=b"\x00\x00" * 160))
        self.queue.put_nowait(None)


class FakeResponse:
    def __init__(self, status_code: int = 200, body=None, reason: str = "OK") -> None:  # noqa: ANN001
        self.status_code = status_code
        self.reason = reason
        self._body = body

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self):  # noqa: ANN201
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeLiveEngine:
    def __init__(self, available: bool = True, fail_starts: int = 0) -> None:
        self.available = available
        self.fail_starts = fail_starts
        self.on_event = None
        self.start_calls = 0
        self.stop_calls = 0

    def start(self, on_event) -> None:  # noqa: ANN001
        self.start_calls += 1
        if self.fail_starts > 0:
            self.fail_starts -= 1
            raise RuntimeError("engine busy")
        self.on_event = on_event

    def stop(self) -> None:
        self.stop_calls += 1

    def emit(self, kind: LiveEventKind, **kwargs) -> None:  # noqa: ANN003
        assert self.on_event is not None
        self.on_event(LiveEvent(kind=kind.value, **kwargs))


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def config() -> RecognitionConfig:
    return RecognitionConfig(
        endpoint="http://asr.test/api/transcribe",
        single_upload_enabled=True,
        openai_api_key="sk-test",
        openai_url="http://openai.test/v1/audio/transcriptions",
        dashscope_api_key="ds-test",
    )
