"""Simple JSON-based config store."""

from __future__ import annotations

import json
from pathlib import Path

from models import RecognitionConfig, RecognitionMethod

CONFIG_DIR = Path.home() / ".config" / "voice_list"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or CONFIG_DIR / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_method(self) -> RecognitionMethod:
        value = str(self._read_all().get("method", RecognitionMethod.AUTO.value))
        try:
            return RecognitionMethod(value)
        except ValueError:
            return RecognitionMethod.AUTO

    def set_method(self, method: RecognitionMethod) -> None:
        self._set("method", RecognitionMethod(method).value)

    def get_openai_api_key(self) -> str:
        return str(self._read_all().get("openai_api_key", ""))

    def set_openai_api_key(self, key: str) -> None:
        self._set("openai_api_key", key)

    def get_dashscope_api_key(self) -> str:
        return str(self._read_all().get("dashscope_api_key", ""))

    def set_dashscope_api_key(self, key: str) -> None:
        self._set("dashscope_api_key", key)

    def get_max_items(self) -> int:
        try:
            return max(1, int(self._read_all().get("max_items", 100)))
        except (TypeError, ValueError):
            return 100

    def load_recognition_config(self) -> RecognitionConfig:
        data = self._read_all()
        defaults = RecognitionConfig()
        return RecognitionConfig(
            preferred_method=self.get_method(),
            language=str(data.get("language", defaults.language)),
            endpoint=str(data.get("endpoint", defaults.endpoint)),
            mime_type=str(data.get("mime_type", defaults.mime_type)),
            single_upload_enabled=bool(data.get("use_openai_api", defaults.single_upload_enabled)),
            openai_api_key=self.get_openai_api_key(),
            openai_url=str(data.get("openai_url", defaults.openai_url)),
            openai_model=str(data.get("openai_model", defaults.openai_model)),
            dashscope_api_key=self.get_dashscope_api_key(),
            dashscope_model=str(data.get("dashscope_model", defaults.dashscope_model)),
        )

    def _set(self, key: str, value: object) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
