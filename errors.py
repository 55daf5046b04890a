"""Shared error codes and user-facing messages."""

from __future__ import annotations

UNSUPPORTED_ENVIRONMENT = "UNSUPPORTED_ENVIRONMENT"
PERMISSION_DENIED = "PERMISSION_DENIED"
TRANSPORT_ERROR = "TRANSPORT_ERROR"
API_SEMANTIC_ERROR = "API_SEMANTIC_ERROR"
NO_SPEECH = "NO_SPEECH"
RECOGNITION_ERROR = "RECOGNITION_ERROR"

BENIGN_CODES = frozenset({NO_SPEECH})

ERROR_MESSAGES = {
    UNSUPPORTED_ENVIRONMENT: "Speech recognition is not supported in this environment",
    PERMISSION_DENIED: "Failed to start recording",
    TRANSPORT_ERROR: "Failed to transcribe audio",
    API_SEMANTIC_ERROR: "Unknown API error",
    NO_SPEECH: "No speech detected",
    RECOGNITION_ERROR: "Failed to start speech recognition",
}


class TranscriptionError(Exception):
    """Raised by upload transports; never escapes a backend's public methods."""

    def __init__(self, code: str, message: str = "") -> None:
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, code)
        super().__init__(self.message)
