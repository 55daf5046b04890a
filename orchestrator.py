"""Selects one of the recognition backends and fails over between them."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Mapping, Optional

from errors import ERROR_MESSAGES, UNSUPPORTED_ENVIRONMENT
from interfaces import RecognitionBackend
from live_backend import LiveEventBackend
from models import (
    BackendDescriptor,
    BackendId,
    RecognitionConfig,
    RecognitionMethod,
    RecognitionStatus,
)
from upload_backends import ChunkedUploadBackend, SingleShotUploadBackend

logger = logging.getLogger(__name__)

PRIORITY = (BackendId.LIVE, BackendId.SINGLE_UPLOAD, BackendId.CHUNK_UPLOAD)

StateCallback = Callable[[RecognitionStatus, RecognitionStatus], None]
TranscriptCallback = Callable[[str], None]
ErrorCallback = Callable[[str, str], None]
BackendFactory = Callable[[RecognitionConfig], Mapping[BackendId, RecognitionBackend]]


def build_backends(config: RecognitionConfig) -> dict[BackendId, RecognitionBackend]:
    return {
        BackendId.LIVE: LiveEventBackend(config),
        BackendId.CHUNK_UPLOAD: ChunkedUploadBackend(config),
        BackendId.SINGLE_UPLOAD: SingleShotUploadBackend(config),
    }


class RecognitionOrchestrator:
    """Uniform start/stop surface over the live, chunked and single-shot backends.

    Only the active backend is ever asked to capture audio. Observed state
    (``transcript``, ``is_listening``, ``error``) mirrors the active backend,
    while ``supported`` is true if any backend works.
    """

    def __init__(
        self,
        config: RecognitionConfig,
        backend_factory: BackendFactory = build_backends,
        on_state_change: Optional[StateCallback] = None,
        on_transcript: Optional[TranscriptCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._backend_factory = backend_factory
        self._on_state_change = on_state_change
        self._on_transcript = on_transcript
        self._on_error = on_error

        self._lock = threading.RLock()
        self._config = config
        self._preferred = config.preferred_method
        self._error: Optional[str] = None
        self._backends: dict[BackendId, RecognitionBackend] = {}
        self._active: Optional[BackendId] = None
        self._install_backends(config)

    # ------------------------------------------------------------------
    # Projection of the active backend
    # ------------------------------------------------------------------

    @property
    def active_method(self) -> RecognitionMethod:
        if self._active is None:
            return RecognitionMethod.AUTO
        return RecognitionMethod(self._active.value)

    @property
    def preferred_method(self) -> RecognitionMethod:
        return self._preferred

    @property
    def active_backend(self) -> Optional[RecognitionBackend]:
        if self._active is None:
            return None
        return self._backends[self._active]

    @property
    def transcript(self) -> str:
        backend = self.active_backend
        return backend.transcript if backend else ""

    @property
    def is_listening(self) -> bool:
        backend = self.active_backend
        return bool(backend and backend.is_listening)

    @property
    def is_active(self) -> bool:
        backend = self.active_backend
        return bool(backend and backend.is_active)

    @property
    def error(self) -> Optional[str]:
        if self._error:
            return self._error
        backend = self.active_backend
        return backend.error if backend else None

    @property
    def supported(self) -> bool:
        return any(backend.supported for backend in self._backends.values())

    def backend(self, backend_id: BackendId) -> RecognitionBackend:
        return self._backends[backend_id]

    def descriptors(self) -> list[BackendDescriptor]:
        return [
            BackendDescriptor(id=backend_id, supported=self._backends[backend_id].supported)
            for backend_id in PRIORITY
        ]

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    def start(self) -> None:
        with self._lock:
            backend = self.active_backend
            if backend is None or not backend.supported:
                fallback = self._first_supported()
                if fallback is None:
                    self._error = ERROR_MESSAGES[UNSUPPORTED_ENVIRONMENT]
                    logger.warning("No speech recognition backend is usable")
                    if self._on_error:
                        self._on_error(UNSUPPORTED_ENVIRONMENT, self._error)
                    return
                if fallback != self._active:
                    logger.info(
                        "Falling back from %s to %s",
                        self._active.value if self._active else "none",
                        fallback.value,
                    )
                self._active = fallback
                backend = self._backends[fallback]
            self._error = None
            self._stop_others(self._active)
            backend.start()

    def stop(self) -> None:
        with self._lock:
            backend = self.active_backend
            if backend is not None:
                backend.stop()

    def reset_transcript(self) -> None:
        with self._lock:
            backend = self.active_backend
            if backend is not None:
                backend.reset_transcript()

    def set_method(self, method: RecognitionMethod) -> None:
        with self._lock:
            backend = self.active_backend
            if backend is not None and backend.is_active:
                backend.stop()
            self._preferred = RecognitionMethod(method)
            self._error = None
            self._active = self._select(self._preferred)
            logger.info(
                "Recognition method set to %s (active: %s)",
                self._preferred.value,
                self.active_method.value,
            )

    def reconfigure(self, config: RecognitionConfig) -> None:
        """Rebuild the backends for a new configuration and reselect."""
        with self._lock:
            for backend in self._backends.values():
                if backend.is_active:
                    backend.stop()
            self._config = config
            self._preferred = config.preferred_method
            self._error = None
            self._install_backends(config)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait for a pending upload on the active backend."""
        backend = self.active_backend
        if backend is None:
            return True
        return backend.wait(timeout)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _install_backends(self, config: RecognitionConfig) -> None:
        self._backends = dict(self._backend_factory(config))
        for backend in self._backends.values():
            backend.on_state_change = self._handle_state_change
            backend.on_transcript = self._handle_transcript
            backend.on_error = self._handle_error
        self._active = self._select(self._preferred)
        logger.debug(
            "Backends: %s; active: %s",
            ", ".join(f"{d.id.value}={d.supported}" for d in self.descriptors()),
            self.active_method.value,
        )

    def _select(self, method: RecognitionMethod) -> Optional[BackendId]:
        explicit = method.backend_id()
        if explicit is not None:
            return explicit
        return self._first_supported()

    def _first_supported(self) -> Optional[BackendId]:
        for backend_id in PRIORITY:
            if backend_id == BackendId.SINGLE_UPLOAD and not self._config.single_upload_enabled:
                continue
            if self._backends[backend_id].supported:
                return backend_id
        return None

    def _stop_others(self, keep: Optional[BackendId]) -> None:
        for backend_id, backend in self._backends.items():
            if backend_id != keep and backend.is_active:
                logger.debug("Stopping %s before starting %s", backend_id.value, keep)
                backend.stop()

    def _handle_state_change(
        self, backend_id: BackendId, from_status: RecognitionStatus, to_status: RecognitionStatus
    ) -> None:
        if backend_id == self._active and self._on_state_change:
            self._on_state_change(from_status, to_status)

    def _handle_transcript(self, backend_id: BackendId, transcript: str) -> None:
        if backend_id == self._active and self._on_transcript:
            self._on_transcript(transcript)

    def _handle_error(self, backend_id: BackendId, code: str, message: str) -> None:
        if backend_id == self._active and self._on_error:
            self._on_error(code, message)
