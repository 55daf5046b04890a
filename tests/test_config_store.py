from __future__ import annotations

from pathlib import Path

from config import JsonConfigStore
from models import RecognitionConfig, RecognitionMethod


def test_config_read_write(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    store = JsonConfigStore(path=path)

    assert store.get_method() == RecognitionMethod.AUTO
    assert store.get_openai_api_key() == ""
    assert store.get_max_items() == 100

    store.set_method(RecognitionMethod.CHUNK_UPLOAD)
    store.set_openai_api_key("sk-abc")
    store.set_dashscope_api_key("ds-abc")

    reloaded = JsonConfigStore(path=path)
    assert reloaded.get_method() == RecognitionMethod.CHUNK_UPLOAD
    assert reloaded.get_openai_api_key() == "sk-abc"
    assert reloaded.get_dashscope_api_key() == "ds-abc"


def test_load_recognition_config(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        '{"method": "single_upload", "language": "pl-PL", "use_openai_api": true,'
        ' "openai_api_key": "sk-x", "endpoint": "http://asr.local/api/transcribe"}',
        encoding="utf-8",
    )

    config = JsonConfigStore(path=path).load_recognition_config()

    assert config.preferred_method == RecognitionMethod.SINGLE_UPLOAD
    assert config.language == "pl-PL"
    assert config.single_upload_enabled is True
    assert config.openai_api_key == "sk-x"
    assert config.endpoint == "http://asr.local/api/transcribe"
    assert config.openai_model == RecognitionConfig().openai_model


def test_config_invalid_json_fallback(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{invalid", encoding="utf-8")

    store = JsonConfigStore(path=path)
    assert store.get_method() == RecognitionMethod.AUTO
    assert store.load_recognition_config() == RecognitionConfig()


def test_unknown_values_fall_back(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text('{"method": "telepathy", "max_items": "lots"}', encoding="utf-8")

    store = JsonConfigStore(path=path)
    assert store.get_method() == RecognitionMethod.AUTO
    assert store.get_max_items() == 100
