"""
Named value formatters.

A template variable may name one of these in ``value_format``; the renderer
applies it to the resolved value before falling back to the default.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional


def format_clock_time(value: Any) -> Optional[str]:
    """
    Format a timestamp as 24h HH:MM.

    Args:
        value: ISO-8601 string (a trailing "Z" is accepted) or datetime

    Returns:
        "HH:MM", the raw value as text if it is not a parseable time, or None if absent
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.strftime("%H:%M")
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%H:%M")
        except ValueError:
            return value
    return str(value)


VALUE_FORMATTERS: Dict[str, Callable[[Any], Optional[str]]] = {
    "time": format_clock_time,
}
