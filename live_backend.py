"""Continuous event-stream recognition backend."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from backend_base import BaseBackend
from errors import BENIGN_CODES, ERROR_MESSAGES, RECOGNITION_ERROR
from interfaces import LiveEngine
from models import BackendId, LiveEvent, LiveEventKind, RecognitionConfig, RecognitionStatus
from recognizer import DashscopeLiveEngine

logger = logging.getLogger(__name__)


class LiveEventBackend(BaseBackend):
    """Wraps a live engine and keeps it running while the caller wants to listen.

    The engine may end a session on its own (silence timeout). While
    listening is still wanted the session is re-armed; sessions that end
    within ``min_session_s`` or fail to start count toward
    ``max_restart_failures`` and exhausting it surfaces an error.
    """

    backend_id = BackendId.LIVE
    unsupported_message = "Speech recognition is not supported in this environment"

    def __init__(
        self,
        config: RecognitionConfig,
        engine: Optional[LiveEngine] = None,
        clock: Callable[[], float] = time.monotonic,
        **callbacks: Any,
    ) -> None:
        super().__init__(**callbacks)
        self._engine = engine or DashscopeLiveEngine(
            api_key=config.dashscope_api_key,
            model=config.dashscope_model,
            language=config.language,
            sample_rate=config.sample_rate,
        )
        self._max_restart_failures = config.max_restart_failures
        self._min_session_s = config.min_session_s
        self._clock = clock
        self._wanted = False
        self._restart_failures = 0
        self._session_started_at: Optional[float] = None
        self._generation = 0
        self._interim = ""
        self._supported = bool(self._engine.available)

    @property
    def interim(self) -> str:
        return self._interim

    @property
    def is_active(self) -> bool:
        # The engine holds the microphone before its START event arrives.
        return self._wanted or self.is_listening

    def start(self) -> None:
        with self._lock:
            if self._wanted or self.is_listening:
                return
            if not self._supported:
                self._reject_unsupported()
                return
            self._wanted = True
            self._restart_failures = 0
            self._generation += 1
            self._session_started_at = None
            try:
                self._engine.start(self._event_handler())
            except Exception as exc:
                self._wanted = False
                logger.warning("Failed to start speech recognition: %s", exc)
                self._fail(RECOGNITION_ERROR, ERROR_MESSAGES[RECOGNITION_ERROR])

    def stop(self) -> None:
        with self._lock:
            if not self._wanted and not self.is_listening:
                return
            self._wanted = False
            self._interim = ""
            self._generation += 1
            self._session_started_at = None
            try:
                self._engine.stop()
            except Exception:
                logger.exception("Failed to stop speech recognition")
            self._transition(RecognitionStatus.IDLE)

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def _event_handler(self) -> Callable[[LiveEvent], None]:
        generation = self._generation

        def handle(event: LiveEvent) -> None:
            self._handle_event(event, generation)

        return handle

    def _handle_event(self, event: LiveEvent, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                logger.debug("Dropping %s event from a stopped session", event.kind)
                return
            kind = event.kind
            if kind == LiveEventKind.START.value:
                self._session_started_at = self._clock()
                if not self._wanted:
                    return
                self._clear_error()
                self._transition(RecognitionStatus.LISTENING)
                return
            if kind == LiveEventKind.RESULT.value:
                if event.is_final:
                    self._interim = ""
                    self._append_text(event.text)
                else:
                    self._interim = event.text
                return
            if kind == LiveEventKind.ERROR.value:
                if event.code in BENIGN_CODES:
                    logger.debug("Ignoring benign recognition error: %s", event.message)
                    return
                self._wanted = False
                self._fail(
                    event.code or RECOGNITION_ERROR,
                    f"Speech recognition error: {event.message or event.code}",
                )
                return
            if kind == LiveEventKind.END.value:
                self._interim = ""
                if self._wanted:
                    self._rearm()
                else:
                    self._transition(RecognitionStatus.IDLE)

    def _rearm(self) -> None:
        started_at = self._session_started_at
        self._session_started_at = None
        if started_at is None or self._clock() - started_at < self._min_session_s:
            self._restart_failures += 1
        else:
            self._restart_failures = 0

        while self._wanted:
            if self._restart_failures > self._max_restart_failures:
                self._wanted = False
                self._fail(
                    RECOGNITION_ERROR,
                    "Speech recognition stopped after repeated restart failures",
                )
                return
            logger.info("Live recognition ended, restarting (failures=%d)", self._restart_failures)
            try:
                self._engine.start(self._event_handler())
                return
            except Exception:
                self._restart_failures += 1
                logger.debug("Restart failed", exc_info=True)
