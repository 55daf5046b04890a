"""Protocol interfaces used by the backends and the orchestrator."""

from __future__ import annotations

from queue import Queue
from typing import Callable, Optional, Protocol

from models import AudioFrame, BackendId, LiveEvent


class Recorder(Protocol):
    def start(self, audio_queue: Queue[AudioFrame | None]) -> None: ...

    def stop(self) -> None: ...


class LiveEngine(Protocol):
    @property
    def available(self) -> bool: ...

    def start(self, on_event: Callable[[LiveEvent], None]) -> None: ...

    def stop(self) -> None: ...


class RecognitionBackend(Protocol):
    backend_id: BackendId
    on_state_change: Optional[Callable[..., None]]
    on_transcript: Optional[Callable[..., None]]
    on_error: Optional[Callable[..., None]]

    @property
    def supported(self) -> bool: ...

    @property
    def transcript(self) -> str: ...

    @property
    def is_listening(self) -> bool: ...

    @property
    def is_active(self) -> bool: ...

    @property
    def error(self) -> Optional[str]: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def reset_transcript(self) -> None: ...

    def wait(self, timeout: Optional[float] = None) -> bool: ...
