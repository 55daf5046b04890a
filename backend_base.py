"""State handling shared by every recognition backend."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from errors import ERROR_MESSAGES, UNSUPPORTED_ENVIRONMENT
from models import BackendId, ErrorInfo, RecognitionState, RecognitionStatus

StateCallback = Callable[[BackendId, RecognitionStatus, RecognitionStatus], None]
TranscriptCallback = Callable[[BackendId, str], None]
ErrorCallback = Callable[[BackendId, str, str], None]

logger = logging.getLogger(__name__)


def append_if_new(transcript: str, text: str, *, anywhere: bool = False) -> str:
    """Append ``text`` unless the transcript already ends with (or contains) it."""
    text = text.strip()
    if not text:
        return transcript
    if not transcript:
        return text
    seen = text in transcript if anywhere else transcript.endswith(text)
    if seen:
        return transcript
    return f"{transcript} {text}".strip()


class BaseBackend:
    """Owns one RecognitionState and reports every change through callbacks.

    Subclasses set ``backend_id`` and implement ``start``/``stop``. All
    mutations go through ``_lock`` so callbacks from capture or network
    threads see a consistent state.
    """

    backend_id: BackendId
    unsupported_message = ERROR_MESSAGES[UNSUPPORTED_ENVIRONMENT]

    def __init__(
        self,
        on_state_change: Optional[StateCallback] = None,
        on_transcript: Optional[TranscriptCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self.on_state_change = on_state_change
        self.on_transcript = on_transcript
        self.on_error = on_error
        self._lock = threading.RLock()
        self._state = RecognitionState()
        self._supported = False

    @property
    def supported(self) -> bool:
        return self._supported

    @property
    def state(self) -> RecognitionState:
        return self._state

    @property
    def status(self) -> RecognitionStatus:
        return self._state.status

    @property
    def transcript(self) -> str:
        return self._state.transcript

    @property
    def is_listening(self) -> bool:
        return self._state.status == RecognitionStatus.LISTENING

    @property
    def is_active(self) -> bool:
        """True while the backend holds (or is acquiring) the microphone."""
        return self.is_listening

    @property
    def error(self) -> Optional[str]:
        err = self._state.last_error
        return err.message if err else None

    @property
    def error_code(self) -> Optional[str]:
        err = self._state.last_error
        return err.code if err else None

    def reset_transcript(self) -> None:
        with self._lock:
            if not self._state.transcript:
                return
            self._state.transcript = ""
            self._emit_transcript()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return True

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _reject_unsupported(self) -> None:
        self._set_error(UNSUPPORTED_ENVIRONMENT, self.unsupported_message)

    def _append_text(self, text: str, *, anywhere: bool = False) -> None:
        with self._lock:
            updated = append_if_new(self._state.transcript, text, anywhere=anywhere)
            if updated == self._state.transcript:
                return
            self._state.transcript = updated
            logger.debug("[%s] transcript: %s", self.backend_id.value, updated)
            self._emit_transcript()

    def _clear_error(self) -> None:
        self._state.last_error = None

    def _set_error(self, code: str, message: str) -> None:
        with self._lock:
            self._state.last_error = ErrorInfo(code=code, message=message)
            logger.warning("[%s] %s: %s", self.backend_id.value, code, message)
            if self.on_error:
                self.on_error(self.backend_id, code, message)

    def _fail(self, code: str, message: str) -> None:
        """Surface a fatal error: LISTENING -> ERRORING -> IDLE."""
        with self._lock:
            if self._state.status != RecognitionStatus.LISTENING:
                self._set_error(code, message)
                return
            self._transition(RecognitionStatus.ERRORING)
            self._set_error(code, message)
            self._transition(RecognitionStatus.IDLE)

    def _transition(self, to_status: RecognitionStatus) -> None:
        with self._lock:
            from_status = self._state.status
            if from_status == to_status:
                return
            self._state.status = to_status
            logger.debug(
                "[%s] %s -> %s", self.backend_id.value, from_status.value, to_status.value
            )
            if self.on_state_change:
                self.on_state_change(self.backend_id, from_status, to_status)

    def _emit_transcript(self) -> None:
        if self.on_transcript:
            self.on_transcript(self.backend_id, self._state.transcript)
