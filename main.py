"""Application entrypoint: a console voice shopping list."""

from __future__ import annotations

import sys
from typing import Optional, TextIO

from config import JsonConfigStore
from errors import TranscriptionError
from interpreter import parse_transcript_to_items
from logging_config import setup_logging, shutdown_logging
from models import BackendId, Item, RecognitionMethod, RecognitionStatus
from orchestrator import RecognitionOrchestrator
from shopping_list import ShoppingList
from upload_backends import ChunkedUploadBackend

UPLOAD_WAIT_S = 60.0

METHOD_ALIASES = {
    "auto": RecognitionMethod.AUTO,
    "live": RecognitionMethod.LIVE,
    "chunk": RecognitionMethod.CHUNK_UPLOAD,
    "single": RecognitionMethod.SINGLE_UPLOAD,
}

METHOD_NAMES = {
    RecognitionMethod.AUTO: "Auto",
    RecognitionMethod.LIVE: "Live (DashScope)",
    RecognitionMethod.CHUNK_UPLOAD: "Transcription server",
    RecognitionMethod.SINGLE_UPLOAD: "OpenAI Whisper",
}

HELP = """\
Enter              start / stop listening
:method NAME       auto | live | chunk | single
:file PATH         transcribe an audio file into items
:toggle N          toggle item N done / not done
:delete N          delete item N
:clear-completed   remove completed items
:list              show the list
:quit              exit
anything else      interpreted like dictated speech"""


class App:
    def __init__(self, out: TextIO = sys.stdout) -> None:
        self.out = out
        self.config_store = JsonConfigStore()
        self.orchestrator = RecognitionOrchestrator(
            self.config_store.load_recognition_config(),
            on_state_change=self._on_state_change,
            on_error=self._on_error,
        )
        self.shopping_list = ShoppingList(max_items=self.config_store.get_max_items())

    # ------------------------------------------------------------------
    # Callbacks (may run on worker threads)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: RecognitionStatus, to_state: RecognitionStatus) -> None:
        if to_state == RecognitionStatus.LISTENING:
            self._print("Listening... press Enter to stop.")

    def _on_error(self, code: str, message: str) -> None:
        self._print(f"! {message}")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def toggle_listening(self) -> None:
        orch = self.orchestrator
        if not orch.is_active:
            orch.start()
            return
        orch.stop()
        if not orch.wait_idle(UPLOAD_WAIT_S):
            self._print("Transcription is still running; its text will show up later.")
            return
        self.consume_transcript()

    def consume_transcript(self) -> None:
        transcript = self.orchestrator.transcript
        if not transcript.strip():
            return
        self._print(f"Heard: {transcript}")
        if self.shopping_list.process_transcript(transcript):
            self.orchestrator.reset_transcript()
            self.show_list()

    def set_method(self, name: str) -> None:
        method = METHOD_ALIASES.get(name.strip().lower())
        if method is None:
            self._print(f"Unknown method {name!r}; use one of {', '.join(METHOD_ALIASES)}.")
            return
        self.orchestrator.set_method(method)
        self.config_store.set_method(method)
        self._print(f"Using {METHOD_NAMES[self.orchestrator.active_method]}")

    def transcribe_file(self, path: str) -> None:
        backend = self.orchestrator.backend(BackendId.CHUNK_UPLOAD)
        if not isinstance(backend, ChunkedUploadBackend):
            return
        try:
            text = backend.transcribe_file(path)
        except TranscriptionError as exc:
            self._print(f"! Failed to process audio file: {exc.message}")
            return
        items = parse_transcript_to_items(text)
        self.shopping_list.add_items(items)
        self.show_list()

    def show_list(self) -> None:
        items = self.shopping_list.items
        if not items:
            self._print("(list is empty)")
            return
        for index, item in enumerate(items, start=1):
            self._print(_format_item(index, item))

    def handle_line(self, line: str) -> bool:
        """Run one input line; False means quit."""
        stripped = line.strip()
        if not stripped:
            self.toggle_listening()
            return True
        if not stripped.startswith(":"):
            if not self.shopping_list.process_transcript(stripped):
                self._print("Nothing to add.")
            else:
                self.show_list()
            return True

        command, _, arg = stripped[1:].partition(" ")
        if command in ("quit", "q"):
            return False
        if command == "method":
            self.set_method(arg)
        elif command == "file":
            self.transcribe_file(arg.strip())
        elif command in ("toggle", "delete"):
            item = self._item_at(arg)
            if item is not None:
                if command == "toggle":
                    self.shopping_list.toggle(item.id)
                else:
                    self.shopping_list.remove(item.id)
                self.show_list()
        elif command == "clear-completed":
            self.shopping_list.clear_completed()
            self.show_list()
        elif command == "list":
            self.show_list()
        else:
            self._print(HELP)
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self, stdin: TextIO = sys.stdin) -> int:
        if not self.orchestrator.supported:
            self._print("Speech recognition is not available; typed input still works.")
        self._print(f"Using {METHOD_NAMES[self.orchestrator.active_method]}. Type :help for commands.")
        try:
            for line in stdin:
                if not self.handle_line(line):
                    break
        except KeyboardInterrupt:
            pass
        self.quit()
        return 0

    def quit(self) -> None:
        self.orchestrator.stop()

    def _item_at(self, arg: str) -> Optional[Item]:
        items = self.shopping_list.items
        try:
            index = int(arg.strip())
        except ValueError:
            self._print("Expected an item number.")
            return None
        if not 1 <= index <= len(items):
            self._print(f"No item {index}.")
            return None
        return items[index - 1]

    def _print(self, text: str) -> None:
        print(text, file=self.out, flush=True)


def _format_item(index: int, item: Item) -> str:
    mark = "x" if item.completed else " "
    return f"{index:>3}. [{mark}] {item.text}"


def main() -> int:
    setup_logging()
    try:
        return App().run()
    finally:
        shutdown_logging()


if __name__ == "__main__":
    raise SystemExit(main())
