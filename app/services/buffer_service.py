"""
Buffer time parsing for transport grouping windows
"""

import logging
import re
from typing import Optional

from app.core.config import settings
from app.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

BUFFER_PATTERN = re.compile(r"^\s*(\d{1,3}):(\d{2})\s*$")


def parse_buffer_time(value: str) -> int:
    """Convert an HH:MM duration into minutes.

    Raises ConfigError when the text is not HH:MM or the minutes part is 60 or more.
    """
    if not isinstance(value, str):
        raise ConfigError(f"Buffer time must be HH:MM text, got {value!r}", context={"value": value})

    match = BUFFER_PATTERN.match(value)
    if not match:
        raise ConfigError(f"Buffer time '{value}' is not in HH:MM format", context={"value": value})

    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes >= 60:
        raise ConfigError(f"Buffer time '{value}' has {minutes} minutes (must be below 60)", context={"value": value})

    return hours * 60 + minutes


def default_buffer_minutes(direction: str) -> int:
    if direction == "departure":
        return settings.DEFAULT_DEPARTURE_BUFFER_MINUTES
    return settings.DEFAULT_ARRIVAL_BUFFER_MINUTES


def buffer_minutes(value: Optional[str], direction: str = "arrival") -> int:
    """Buffer in minutes for a raw setting, falling back to the direction default.

    A malformed value is logged and replaced by the default so grouping never fails on it.
    """
    if value is None or str(value).strip() == "":
        return default_buffer_minutes(direction)

    try:
        return parse_buffer_time(value)
    except ConfigError as e:
        fallback = default_buffer_minutes(direction)
        logger.warning(f"{e.message}; using default {direction} buffer of {fallback} minutes")
        return fallback


def resolve_buffer_minutes(event, direction: str = "arrival") -> int:
    """Buffer window for an event and transport direction"""
    raw = event.departure_buffer_time if direction == "departure" else event.arrival_buffer_time
    return buffer_minutes(raw, direction)


def format_buffer_time(minutes: int) -> str:
    """Inverse of parse_buffer_time"""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
