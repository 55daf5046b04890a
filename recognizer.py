"""Live recognition engine using DashScope realtime recognition.

The SDK reports progress through ``RecognitionCallback`` methods on its own
threads. We translate them into ``LiveEvent`` messages on a queue and let a
single dispatcher thread per session hand them to the consumer, so the
consumer can restart the engine from inside its handler.
"""

from __future__ import annotations

import logging
import threading
from queue import Empty, Queue
from typing import Any, Callable, Optional

from errors import NO_SPEECH, RECOGNITION_ERROR
from interfaces import Recorder
from models import AudioFrame, LiveEvent, LiveEventKind
from recorder import SoundDeviceRecorder, capture_available

try:
    import dashscope
    from dashscope.audio.asr import Recognition, RecognitionCallback, RecognitionResult
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore
    Recognition = None  # type: ignore
    RecognitionCallback = object  # type: ignore
    RecognitionResult = None  # type: ignore

logger = logging.getLogger(__name__)

_NO_SPEECH_MARKERS = ("no_valid_audio", "no valid audio", "no speech", "no-speech")


def _classify_error(code: str, message: str) -> str:
    low = f"{code} {message}".lower()
    if any(marker in low for marker in _NO_SPEECH_MARKERS):
        return NO_SPEECH
    return RECOGNITION_ERROR


class _EventForwarder(RecognitionCallback):
    def __init__(self, events: Queue[LiveEvent]) -> None:
        super().__init__()
        self._events = events
        self._closed = False
        self._lock = threading.Lock()

    def on_open(self) -> None:
        self._events.put(LiveEvent(kind=LiveEventKind.START.value))

    def on_event(self, result: Any) -> None:
        sentence = result.get_sentence()
        if not isinstance(sentence, dict):
            return
        text = str(sentence.get("text", ""))
        if not text:
            return
        self._events.put(
            LiveEvent(
                kind=LiveEventKind.RESULT.value,
                text=text,
                is_final=bool(RecognitionResult.is_sentence_end(sentence)),
            )
        )

    def on_error(self, result: Any) -> None:
        code = str(getattr(result, "code", "") or "")
        message = str(getattr(result, "message", "") or code or "unknown")
        self._events.put(
            LiveEvent(
                kind=LiveEventKind.ERROR.value,
                code=_classify_error(code, message),
                message=message,
            )
        )
        # The SDK does not always close after an error.
        self.on_close()

    def on_complete(self) -> None:
        logger.debug("Live recognition completed")

    def on_close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._events.put(LiveEvent(kind=LiveEventKind.END.value))


class _LiveSession:
    def __init__(self, recognition: Any, recorder: Recorder, forwarder: _EventForwarder) -> None:
        self.recognition = recognition
        self.recorder = recorder
        self.forwarder = forwarder
        self.audio_queue: Queue[AudioFrame | None] = Queue(maxsize=100)
        self.pump: Optional[threading.Thread] = None
        self.closed = False
        self.released = False


class DashscopeLiveEngine:
    def __init__(
        self,
        api_key: str,
        model: str = "paraformer-realtime-v2",
        language: str = "en-US",
        sample_rate: int = 16000,
        recorder_factory: Optional[Callable[[], Recorder]] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._language = language
        self._sample_rate = sample_rate
        self._capture_available = recorder_factory is not None or capture_available()
        self._recorder_factory = recorder_factory or (
            lambda: SoundDeviceRecorder(sample_rate=sample_rate, channels=1, chunk_ms=100)
        )
        self._lock = threading.Lock()
        self._session: Optional[_LiveSession] = None

    @property
    def available(self) -> bool:
        return Recognition is not None and bool(self._api_key) and self._capture_available

    def start(self, on_event: Callable[[LiveEvent], None]) -> None:
        with self._lock:
            if self._session is not None and not self._session.closed:
                return
            if Recognition is None:
                raise RuntimeError("dashscope is not installed")

            events: Queue[LiveEvent] = Queue()
            forwarder = _EventForwarder(events)
            if dashscope is not None:
                dashscope.api_key = self._api_key
            recognition = Recognition(
                model=self._model,
                format="pcm",
                sample_rate=self._sample_rate,
                callback=forwarder,
                language_hints=[self._language.split("-", 1)[0]],
            )
            recognition.start()

            session = _LiveSession(recognition, self._recorder_factory(), forwarder)
            try:
                session.recorder.start(session.audio_queue)
            except Exception:
                self._safe_stop_recognition(session)
                raise

            session.pump = threading.Thread(target=self._pump_audio, args=(session,), daemon=True)
            session.pump.start()
            threading.Thread(
                target=self._dispatch, args=(session, events, on_event), daemon=True
            ).start()
            self._session = session

    def stop(self) -> None:
        with self._lock:
            session = self._session
        if session is not None:
            self._teardown(session, stop_recognition=True)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _pump_audio(self, session: _LiveSession) -> None:
        while True:
            try:
                frame = session.audio_queue.get(timeout=0.2)
            except Empty:
                if session.released:
                    return
                continue
            if frame is None:  # Sentinel
                return
            try:
                session.recognition.send_audio_frame(frame.pcm16_bytes)
            except Exception:
                logger.debug("send_audio_frame failed, stopping audio pump", exc_info=True)
                return

    def _dispatch(
        self,
        session: _LiveSession,
        events: Queue[LiveEvent],
        on_event: Callable[[LiveEvent], None],
    ) -> None:
        while True:
            event = events.get()
            if event.kind == LiveEventKind.END.value:
                # Release the microphone before the consumer may restart.
                self._teardown(session, stop_recognition=False)
                on_event(event)
                return
            on_event(event)

    def _teardown(self, session: _LiveSession, stop_recognition: bool) -> None:
        with self._lock:
            if session.closed:
                return
            session.closed = True
            if self._session is session:
                self._session = None
        try:
            session.recorder.stop()
        except Exception:
            logger.exception("Failed to release microphone")
        session.released = True
        if session.pump is not None and session.pump is not threading.current_thread():
            session.pump.join(timeout=1.0)
        if stop_recognition:
            self._safe_stop_recognition(session)
            # Guarantees a terminal END even if the SDK never calls on_close.
            session.forwarder.on_close()

    def _safe_stop_recognition(self, session: _LiveSession) -> None:
        try:
            session.recognition.stop()
        except Exception:
            logger.debug("Recognition.stop failed", exc_info=True)
