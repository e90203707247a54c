import threading
import time
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

NEW_CONVERSATION_TITLE = "New Conversation"
TITLE_MAX_CHARS = 50

Sender = Literal["user", "agent"]


class _MillisecondClock:
    """Issues strictly increasing millisecond ids, even within one millisecond."""

    def __init__(self):
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            now = time.time_ns() // 1_000_000
            self._last = max(now, self._last + 1)
            return self._last


_clock = _MillisecondClock()


def new_id() -> str:
    return str(_clock.next())


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Message(BaseModel):
    id: str = Field(default_factory=new_id)
    text: str
    sender: Sender
    timestamp: str = Field(default_factory=utc_now_iso)


class Conversation(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str = NEW_CONVERSATION_TITLE
    messages: list[Message] = []
    createdAt: str = Field(default_factory=utc_now_iso)
    lastMessage: str = ""


class ConversationSummary(BaseModel):
    """Lightweight metadata for the sidebar list."""

    id: str
    title: str
    lastMessage: str = ""
    createdAt: str = ""
    message_count: int = 0
    created_label: str = ""  # e.g. "5m ago"
