from __future__ import annotations

import io
from pathlib import Path

import pytest

import main
from config import JsonConfigStore
from models import RecognitionMethod


class FakeOrchestrator:
    def __init__(self, config, on_state_change=None, on_error=None, **_kwargs) -> None:  # noqa: ANN001
        self.config = config
        self.active_method = RecognitionMethod.AUTO
        self.supported = True
        self.is_listening = False
        self.is_active = False
        self.transcript = ""
        self.calls: list[str] = []

    def start(self) -> None:
        self.calls.append("start")
        self.is_listening = True
        self.is_active = True

    def stop(self) -> None:
        self.calls.append("stop")
        self.is_listening = False
        self.is_active = False

    def wait_idle(self, timeout: float) -> bool:
        return True

    def reset_transcript(self) -> None:
        self.transcript = ""

    def set_method(self, method: RecognitionMethod) -> None:
        self.active_method = method

    def backend(self, backend_id):  # noqa: ANN001, ANN201
        return None


@pytest.fixture
def app(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> main.App:
    monkeypatch.setattr(main, "JsonConfigStore", lambda: JsonConfigStore(path=tmp_path / "config.json"))
    monkeypatch.setattr(main, "RecognitionOrchestrator", FakeOrchestrator)
    return main.App(out=io.StringIO())


def _output(app: main.App) -> str:
    return app.out.getvalue()  # type: ignore[attr-defined]


def test_typed_line_adds_items(app: main.App) -> None:
    app.handle_line("milk, eggs and bread\n")

    assert [i.text for i in app.shopping_list.items] == ["Milk", "Eggs", "Bread"]
    assert "[ ] Eggs" in _output(app)


def test_toggle_and_delete_by_number(app: main.App) -> None:
    app.handle_line("milk, eggs")
    app.handle_line(":toggle 1")
    app.handle_line(":delete 2")
    app.handle_line(":delete 9")

    items = app.shopping_list.items
    assert [(i.text, i.completed) for i in items] == [("Milk", True)]
    assert "No item 9." in _output(app)


def test_enter_toggles_listening_and_consumes_transcript(app: main.App) -> None:
    orch = app.orchestrator

    app.handle_line("\n")
    assert orch.calls == ["start"]

    orch.transcript = "apples and pears"
    app.handle_line("\n")

    assert orch.calls == ["start", "stop"]
    assert [i.text for i in app.shopping_list.items] == ["Apples", "Pears"]
    assert orch.transcript == ""


def test_spoken_command_is_applied(app: main.App) -> None:
    app.handle_line("milk, eggs")
    app.orchestrator.transcript = "delete the last one"
    app.consume_transcript()

    assert [i.text for i in app.shopping_list.items] == ["Milk"]


def test_set_method_is_persisted(app: main.App) -> None:
    app.handle_line(":method chunk")

    assert app.orchestrator.active_method == RecognitionMethod.CHUNK_UPLOAD
    assert app.config_store.get_method() == RecognitionMethod.CHUNK_UPLOAD
    assert "Using Transcription server" in _output(app)


def test_unknown_method_is_rejected(app: main.App) -> None:
    app.handle_line(":method telepathy")

    assert app.config_store.get_method() == RecognitionMethod.AUTO
    assert "Unknown method" in _output(app)


def test_quit_and_help(app: main.App) -> None:
    assert app.handle_line(":help") is True
    assert ":clear-completed" in _output(app)
    assert app.handle_line(":quit") is False


def test_run_reads_until_quit(app: main.App) -> None:
    code = app.run(io.StringIO("milk\n:quit\nbread\n"))

    assert code == 0
    assert [i.text for i in app.shopping_list.items] == ["Milk"]
    assert app.orchestrator.calls == ["stop"]


def test_enter_stops_a_start_that_is_still_pending(app: main.App) -> None:
    orch = app.orchestrator

    app.handle_line("\n")
    orch.is_listening = False
    app.handle_line("\n")

    assert orch.calls == ["start", "stop"]
    assert orch.is_active is False
