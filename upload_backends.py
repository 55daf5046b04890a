"""Record-then-upload recognition backends.

Both backends capture microphone audio into time-slice segments while
listening. ``stop()`` releases the microphone immediately, then a worker
thread concatenates the segments into one WAV payload and posts it as
multipart form data. The transcription is appended to the transcript when
the round trip completes, even if the caller has moved on since.
"""

from __future__ import annotations

import logging
import mimetypes
import threading
from pathlib import Path
from queue import Empty, Queue
from typing import Any, Callable, Optional

import requests
from requests import RequestException

from backend_base import BaseBackend
from errors import (
    API_SEMANTIC_ERROR,
    ERROR_MESSAGES,
    PERMISSION_DENIED,
    TRANSPORT_ERROR,
    TranscriptionError,
)
from interfaces import Recorder
from models import AudioFrame, BackendId, RecognitionConfig, RecognitionStatus
from recorder import SoundDeviceRecorder, capture_available, frames_to_wav_bytes

logger = logging.getLogger(__name__)

RecorderFactory = Callable[[], Recorder]


def upload_filename(mime_type: str, stem: str = "recording") -> str:
    """``audio/webm;codecs=opus`` -> ``recording.webm``."""
    subtype = mime_type.split(";", 1)[0].split("/")[-1].strip() or "wav"
    if subtype in ("x-wav", "wave"):
        subtype = "wav"
    return f"{stem}.{subtype}"


def short_language(language: str) -> str:
    """``en-US`` -> ``en``."""
    return language.split("-", 1)[0]


def _json_body(response: Any) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise TranscriptionError(API_SEMANTIC_ERROR, "Invalid JSON response from API") from exc


def _nested_error_message(body: Any) -> str:
    if not isinstance(body, dict):
        return ""
    err = body.get("error")
    if isinstance(err, dict):
        return str(err.get("message") or "")
    return ""


class UploadBackend(BaseBackend):
    dedupe_anywhere = True

    def __init__(
        self,
        config: RecognitionConfig,
        recorder_factory: Optional[RecorderFactory] = None,
        session: Optional[requests.Session] = None,
        **callbacks: Any,
    ) -> None:
        super().__init__(**callbacks)
        self._config = config
        self._capture_available = recorder_factory is not None or capture_available()
        self._recorder_factory = recorder_factory or self._default_recorder
        self._http = session or requests.Session()
        self._recorder: Optional[Recorder] = None
        self._queue: Optional[Queue[AudioFrame | None]] = None
        self._workers: list[threading.Thread] = []
        self._supported = self._detect_support()

    @property
    def is_transcribing(self) -> bool:
        return any(worker.is_alive() for worker in self._workers)

    def start(self) -> None:
        with self._lock:
            if self.is_listening:
                return
            if not self._supported:
                self._reject_unsupported()
                return
            self._clear_error()
            queue: Queue[AudioFrame | None] = Queue()
            recorder = self._recorder_factory()
            try:
                recorder.start(queue)
            except Exception as exc:
                self._safe_stop_recorder(recorder)
                self._fail(PERMISSION_DENIED, str(exc) or ERROR_MESSAGES[PERMISSION_DENIED])
                return
            self._recorder = recorder
            self._queue = queue
            self._transition(RecognitionStatus.LISTENING)

    def stop(self) -> None:
        with self._lock:
            if not self.is_listening or self._queue is None:
                return
            recorder, queue = self._recorder, self._queue
            self._recorder = None
            self._queue = None
            self._safe_stop_recorder(recorder)
            self._transition(RecognitionStatus.IDLE)
            worker = threading.Thread(target=self._upload_worker, args=(queue,), daemon=True)
            self._workers = [w for w in self._workers if w.is_alive()]
            self._workers.append(worker)
            worker.start()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Join pending uploads; True when none is left running."""
        for worker in list(self._workers):
            worker.join(timeout)
        return not self.is_transcribing

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _default_recorder(self) -> Recorder:
        return SoundDeviceRecorder(
            sample_rate=self._config.sample_rate,
            channels=self._config.channels,
            segment_ms=self._config.time_slice_ms,
        )

    def _detect_support(self) -> bool:
        return self._capture_available

    def _upload_worker(self, queue: Queue[AudioFrame | None]) -> None:
        frames: list[AudioFrame] = []
        while True:
            try:
                frame = queue.get_nowait()
            except Empty:
                break
            if frame is None:  # Sentinel
                break
            frames.append(frame)

        if not frames:
            logger.debug("[%s] no audio captured, skipping upload", self.backend_id.value)
            return

        payload = frames_to_wav_bytes(frames)
        try:
            text = self._transcribe(payload)
        except TranscriptionError as exc:
            self._set_error(exc.code, exc.message)
            return
        self._append_text(text, anywhere=self.dedupe_anywhere)

    def _transcribe(self, payload: bytes) -> str:
        raise NotImplementedError

    def _post(self, url: str, **kwargs: Any) -> Any:
        try:
            return self._http.post(url, timeout=self._config.request_timeout_s, **kwargs)
        except RequestException as exc:
            raise TranscriptionError(TRANSPORT_ERROR, str(exc)) from exc

    def _safe_stop_recorder(self, recorder: Optional[Recorder]) -> None:
        if recorder is None:
            return
        try:
            recorder.stop()
        except Exception:
            logger.exception("[%s] failed to release microphone", self.backend_id.value)


class ChunkedUploadBackend(UploadBackend):
    """Uploads to the transcription server (``audio`` + ``language`` fields)."""

    backend_id = BackendId.CHUNK_UPLOAD
    unsupported_message = "Media recording is not supported in this environment"

    def _detect_support(self) -> bool:
        return self._capture_available and bool(self._config.endpoint)

    def _transcribe(self, payload: bytes) -> str:
        mime_type = self._config.mime_type
        return self.transcribe_bytes(payload, upload_filename(mime_type), mime_type)

    def transcribe_file(self, path: str | Path) -> str:
        """Transcribe an existing audio file through the same endpoint."""
        path = Path(path)
        try:
            payload = path.read_bytes()
        except OSError as exc:
            raise TranscriptionError(TRANSPORT_ERROR, f"Cannot read {path}: {exc}") from exc
        mime_type = mimetypes.guess_type(path.name)[0] or self._config.mime_type
        return self.transcribe_bytes(payload, path.name, mime_type)

    def transcribe_bytes(self, payload: bytes, filename: str, mime_type: str) -> str:
        response = self._post(
            self._config.endpoint,
            files={"audio": (filename, payload, mime_type)},
            data={"language": self._config.language},
        )
        if not response.ok:
            raise TranscriptionError(
                TRANSPORT_ERROR, f"API error: {response.status_code} {response.reason}"
            )

        result = _json_body(response)
        if not isinstance(result, dict):
            raise TranscriptionError(API_SEMANTIC_ERROR, ERROR_MESSAGES[API_SEMANTIC_ERROR])
        if result.get("success") and not result.get("error"):
            data = result.get("data")
            raw_text = data.get("rawText") if isinstance(data, dict) else None
            return str(raw_text or "").strip()
        message = _nested_error_message(result)
        raise TranscriptionError(API_SEMANTIC_ERROR, message or ERROR_MESSAGES[API_SEMANTIC_ERROR])


class SingleShotUploadBackend(UploadBackend):
    """Uploads to an OpenAI-compatible transcription endpoint with bearer auth."""

    backend_id = BackendId.SINGLE_UPLOAD
    unsupported_message = (
        "OpenAI Whisper API is not configured or audio capture is not supported"
    )

    def _detect_support(self) -> bool:
        return (
            self._capture_available
            and self._config.single_upload_enabled
            and bool(self._config.openai_api_key)
        )

    def _transcribe(self, payload: bytes) -> str:
        cfg = self._config
        response = self._post(
            cfg.openai_url,
            headers={"Authorization": f"Bearer {cfg.openai_api_key}"},
            files={"file": (upload_filename(cfg.mime_type), payload, cfg.mime_type)},
            data={"model": cfg.openai_model, "language": short_language(cfg.language)},
        )
        if not response.ok:
            try:
                body = response.json()
            except ValueError:
                body = {"error": {"message": ERROR_MESSAGES[API_SEMANTIC_ERROR]}}
            message = _nested_error_message(body)
            raise TranscriptionError(
                TRANSPORT_ERROR,
                message or f"API error: {response.status_code} {response.reason}",
            )

        body = _json_body(response)
        message = _nested_error_message(body)
        if message:
            raise TranscriptionError(API_SEMANTIC_ERROR, message)
        text = body.get("text") if isinstance(body, dict) else None
        if not text or not str(text).strip():
            raise TranscriptionError(API_SEMANTIC_ERROR, "No transcription returned from API")
        return str(text).strip()
