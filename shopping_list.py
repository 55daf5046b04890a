"""In-memory shopping list driven by interpreted transcripts."""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Iterable, Optional

from interpreter import interpret, now_ms
from models import Command, Interpretation, Item

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[list[Item]], None]


class ShoppingList:
    def __init__(
        self,
        items: Optional[Iterable[Item]] = None,
        max_items: int = 100,
        on_change: Optional[ChangeCallback] = None,
    ) -> None:
        self.max_items = max_items
        self._items: list[Item] = list(items or [])[-max_items:]
        self._on_change = on_change

    @property
    def items(self) -> list[Item]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def add_text(self, text: str) -> Optional[Item]:
        """Add a typed entry verbatim (no interpretation)."""
        text = text.strip()
        if not text:
            return None
        item = Item(id=uuid.uuid4().hex, text=text, completed=False, created_at=now_ms())
        self.add_items([item])
        return item

    def add_items(self, items: Iterable[Item]) -> None:
        items = list(items)
        if not items:
            return
        # Keep only the newest max_items entries.
        self._items = (self._items + items)[-self.max_items:]
        self._changed()

    def apply_command(self, command: Command) -> None:
        if command is Command.CLEAR:
            self._items = []
        elif command is Command.DELETE_LAST:
            if not self._items:
                return
            self._items = self._items[:-1]
        elif command is Command.MARK_ALL_COMPLETED:
            for item in self._items:
                item.completed = True
        logger.info("Applied command %s", command.value)
        self._changed()

    def apply(self, interpretation: Interpretation) -> bool:
        if interpretation.command is not None:
            self.apply_command(interpretation.command)
            return True
        if interpretation.items:
            self.add_items(interpretation.items)
            return True
        return False

    def process_transcript(self, transcript: str) -> bool:
        """Interpret a finished transcript; True when it was consumed."""
        if not transcript or not transcript.strip():
            return False
        return self.apply(interpret(transcript))

    def toggle(self, item_id: str) -> None:
        for item in self._items:
            if item.id == item_id:
                item.completed = not item.completed
                self._changed()
                return

    def remove(self, item_id: str) -> None:
        remaining = [item for item in self._items if item.id != item_id]
        if len(remaining) != len(self._items):
            self._items = remaining
            self._changed()

    def edit(self, item_id: str, text: str) -> None:
        text = text.strip()
        if not text:
            return
        for item in self._items:
            if item.id == item_id:
                item.text = text
                self._changed()
                return

    def clear_completed(self) -> None:
        self._items = [item for item in self._items if not item.completed]
        self._changed()

    def clear(self) -> None:
        self._items = []
        self._changed()

    def _changed(self) -> None:
        if self._on_change:
            self._on_change(self.items)
