from typing import Sequence

from .models import Message

CONTEXT_WINDOW = 10

_ROLE_LABELS = {"user": "User", "agent": "Assistant"}


def build_context(history: Sequence[Message], new_text: str, window: int = CONTEXT_WINDOW) -> str:
    """Render the trailing ``window`` messages plus the new user turn.

    With no history the new text goes out unmodified.
    """
    recent = list(history)[-window:] if window > 0 else []
    if not recent:
        return new_text
    lines = [f"{_ROLE_LABELS[m.sender]}: {m.text}" for m in recent]
    lines.append(f"User: {new_text}")
    return "\n".join(lines)
