"""Core data models for the voice list."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class RecognitionStatus(str, Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"
    ERRORING = "ERRORING"


class BackendId(str, Enum):
    LIVE = "live"
    CHUNK_UPLOAD = "chunk_upload"
    SINGLE_UPLOAD = "single_upload"


class RecognitionMethod(str, Enum):
    AUTO = "auto"
    LIVE = "live"
    CHUNK_UPLOAD = "chunk_upload"
    SINGLE_UPLOAD = "single_upload"

    def backend_id(self) -> Optional[BackendId]:
        if self is RecognitionMethod.AUTO:
            return None
        return BackendId(self.value)


class LiveEventKind(str, Enum):
    START = "start"
    RESULT = "result"
    ERROR = "error"
    END = "end"


class Command(str, Enum):
    CLEAR = "clear"
    DELETE_LAST = "delete_last"
    MARK_ALL_COMPLETED = "mark_all_completed"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class LiveEvent:
    kind: str
    text: str = ""
    is_final: bool = False
    code: str = ""
    message: str = ""


@dataclass
class ErrorInfo:
    code: str
    message: str


@dataclass
class RecognitionState:
    status: RecognitionStatus = RecognitionStatus.IDLE
    transcript: str = ""
    last_error: Optional[ErrorInfo] = None


@dataclass(frozen=True)
class BackendDescriptor:
    id: BackendId
    supported: bool


@dataclass
class RecognitionConfig:
    preferred_method: RecognitionMethod = RecognitionMethod.AUTO
    language: str = "en-US"
    endpoint: str = "http://localhost:3001/api/transcribe"
    mime_type: str = "audio/wav"
    time_slice_ms: int = 1000
    sample_rate: int = 16000
    channels: int = 1
    request_timeout_s: float = 30.0

    # Single-shot (OpenAI-compatible) transcription
    single_upload_enabled: bool = False
    openai_api_key: str = ""
    openai_url: str = "https://api.openai.com/v1/audio/transcriptions"
    openai_model: str = "whisper-1"

    # Live (DashScope realtime) recognition
    dashscope_api_key: str = ""
    dashscope_model: str = "paraformer-realtime-v2"
    max_restart_failures: int = 3
    min_session_s: float = 1.0


@dataclass
class Item:
    id: str
    text: str
    completed: bool = False
    created_at: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "createdAt": self.created_at,
        }


@dataclass
class Interpretation:
    """Result of interpreting one transcript: a command or new items, never both."""

    command: Optional[Command] = None
    items: list[Item] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.command is None and not self.items
