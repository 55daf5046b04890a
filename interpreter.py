"""Turns a finished transcript into a list command or new list items.

Pure functions: nothing here keeps state, and empty or unusable input
gives an empty result instead of raising.
"""

from __future__ import annotations

import re
import time
import uuid
from typing import Iterable, Optional

from models import Command, Interpretation, Item

CLEAR_KEYWORDS = (
    "clear list",
    "clear the list",
    "empty list",
    "empty the list",
    "delete all",
    "delete everything",
    "remove all",
    "remove everything",
    "start over",
    "start a new list",
    "reset list",
    "reset the list",
)

DELETE_LAST_KEYWORDS = (
    "delete last",
    "delete the last",
    "remove last",
    "remove the last",
    "undo last",
    "undo the last",
    "forget last",
    "forget the last",
)

MARK_ALL_KEYWORDS = (
    "mark all",
    "mark all as done",
    "mark all as completed",
    "complete all",
    "complete everything",
    "finish all",
    "finish everything",
    "all done",
    "everything done",
    "check all",
    "check everything",
)

# First match wins.
COMMAND_KEYWORDS = (
    (Command.CLEAR, CLEAR_KEYWORDS),
    (Command.DELETE_LAST, DELETE_LAST_KEYWORDS),
    (Command.MARK_ALL_COMPLETED, MARK_ALL_KEYWORDS),
)

FILLER_WORDS = (
    "add",
    "put",
    "include",
    "get",
    "buy",
    "need",
    "i need",
    "we need",
    "i want",
    "we want",
    "let's add",
    "grab",
    "pick up",
    "please add",
    "maybe",
    "probably",
    "actually",
    "um",
    "uh",
    "like",
    "you know",
)

_FILLER_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(word) for word in FILLER_WORDS) + r")\b",
    re.IGNORECASE,
)
_LIST_PHRASE_RE = re.compile(
    r"\b(?:(?:to|on) (?:the|my|our) (?:list|shopping list)|to shopping list)\b",
    re.IGNORECASE,
)
_BULLET_RE = re.compile(r"[•*\-]+\s*")
_AND_WORD_RE = re.compile(r"\band\b", re.IGNORECASE)
_AND_SEPARATOR_RE = re.compile(r" and ", re.IGNORECASE)

MIN_ITEM_LENGTH = 2


def now_ms() -> int:
    return int(time.time() * 1000)


def contains_keywords(text: str, keywords: Iterable[str]) -> bool:
    low = text.lower()
    return any(keyword.lower() in low for keyword in keywords)


def is_clear_command(text: str) -> bool:
    return bool(text) and contains_keywords(text, CLEAR_KEYWORDS)


def is_delete_last_command(text: str) -> bool:
    return bool(text) and contains_keywords(text, DELETE_LAST_KEYWORDS)


def is_mark_all_completed_command(text: str) -> bool:
    return bool(text) and contains_keywords(text, MARK_ALL_KEYWORDS)


def detect_command(text: Optional[str]) -> Optional[Command]:
    if not text or not isinstance(text, str):
        return None
    for command, keywords in COMMAND_KEYWORDS:
        if contains_keywords(text, keywords):
            return command
    return None


def strip_fillers(text: str) -> str:
    cleaned = _FILLER_RE.sub("", text)
    cleaned = _LIST_PHRASE_RE.sub("", cleaned)
    return cleaned.strip()


def split_segments(cleaned: str) -> list[str]:
    """Split on one delimiter kind: bullets, then commas/"and", periods, newlines."""
    if any(mark in cleaned for mark in "•*-"):
        return _BULLET_RE.split(cleaned)
    if "," in cleaned or _AND_WORD_RE.search(cleaned):
        return _AND_SEPARATOR_RE.sub(",", cleaned).split(",")
    if "." in cleaned:
        return cleaned.split(".")
    if "\n" in cleaned:
        return cleaned.split("\n")
    return [cleaned]


def extract_items_from_text(text: Optional[str]) -> list[str]:
    if not text or not isinstance(text, str):
        return []
    items = []
    for segment in split_segments(strip_fillers(text)):
        segment = segment.strip()
        if len(segment) < MIN_ITEM_LENGTH:
            continue
        items.append(segment[0].upper() + segment[1:])
    return items


def create_items(texts: Iterable[str], created_at: Optional[int] = None) -> list[Item]:
    """All items from one call share a timestamp but get distinct ids."""
    stamp = now_ms() if created_at is None else created_at
    return [Item(id=uuid.uuid4().hex, text=text, completed=False, created_at=stamp) for text in texts]


def parse_transcript_to_items(transcript: Optional[str]) -> list[Item]:
    return create_items(extract_items_from_text(transcript))


def interpret(transcript: Optional[str]) -> Interpretation:
    command = detect_command(transcript)
    if command is not None:
        return Interpretation(command=command)
    return Interpretation(items=parse_transcript_to_items(transcript))
