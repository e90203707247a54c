from datetime import datetime, timezone
from typing import Optional


def format_time(raw_timestamp: str, now: Optional[datetime] = None) -> str:
    """Render an ISO timestamp relative to now ("just now", "5m ago", ...).

    Anything older than a week is shown as a plain M/D/YYYY date.
    """
    if not isinstance(raw_timestamp, str):
        return ""
    if raw_timestamp.endswith("Z"):
        # datetime.fromisoformat only accepts "Z" from Python 3.11 on
        raw_timestamp = raw_timestamp[:-1] + "+00:00"
    try:
        value = datetime.fromisoformat(raw_timestamp)
    except ValueError:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)

    diff_seconds = (now - value).total_seconds()
    minutes = int(diff_seconds // 60)
    hours = int(diff_seconds // 3600)
    days = int(diff_seconds // 86400)

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"

    local = value.astimezone()
    return f"{local.month}/{local.day}/{local.year}"
