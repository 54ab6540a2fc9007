"""
Input Parsing
Parsers for the free-form replies collected during setup and edit conversations.

Each parser either returns a value or raises ValidationError, which aborts
the conversation that asked for it.
"""

import re
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from constants import SNOWFLAKE_PATTERN

from .errors import ValidationError
from .models import Question

SKIP_TOKEN = "skip"

_DAYS = re.compile(r"(\d+)\s*days?")
_WEEKS = re.compile(r"(\d+)\s*weeks?")
_HOURS = re.compile(r"(\d+)\s*hours?")
_QUESTION_LINE = re.compile(r"^\d+\.\s*(.+?)\s*\|\s*(text|image)$", re.IGNORECASE)
_SNOWFLAKE = re.compile(SNOWFLAKE_PATTERN)

_CONFIG_KEYS = {
    "admin_roles": re.compile(r"adminroles?:\s*([^|\n]+)", re.IGNORECASE),
    "admin_users": re.compile(r"adminusers?:\s*([^|\n]+)", re.IGNORECASE),
    "voter_roles": re.compile(r"voterroles?:\s*([^|\n]+)", re.IGNORECASE),
}
_CONFIG_CHANNEL = re.compile(r"channels?:\s*<#(\d+)>", re.IGNORECASE)


def parse_duration(text: str) -> timedelta:
    """
    Parse "N days", "N weeks" or "N hours".

    Patterns are tried in the order days, weeks, hours and the first one
    found anywhere in the text wins.
    """
    lowered = text.lower()

    for pattern, unit in ((_DAYS, "days"), (_WEEKS, "weeks"), (_HOURS, "hours")):
        match = pattern.search(lowered)
        if match:
            try:
                return timedelta(**{unit: int(match.group(1))})
            except OverflowError:
                raise ValidationError("Invalid format")

    raise ValidationError("Invalid format")


def parse_deadline(text: str, now: datetime) -> datetime:
    """Parse a duration and return the deadline it gives from now."""
    duration = parse_duration(text)
    try:
        return now + duration
    except OverflowError:
        raise ValidationError("Invalid format")


def parse_optional_count(text: str) -> Optional[int]:
    """Parse a positive whole number, or "skip" for no limit."""
    value = text.strip()
    if value.lower() == SKIP_TOKEN:
        return None
    try:
        number = int(value, 10)
    except ValueError:
        raise ValidationError("Invalid number")
    if number < 1:
        raise ValidationError("Invalid number")
    return number


def parse_optional_text(text: str) -> Optional[str]:
    value = text.strip()
    if value.lower() == SKIP_TOKEN:
        return None
    return value


def parse_question_list(text: str) -> List[Question]:
    """
    Parse a custom question list, one question per line.

    Format: "1. Why join? | text". Lines that don't match are dropped.
    """
    questions = []
    for line in text.split("\n"):
        match = _QUESTION_LINE.match(line.strip())
        if match:
            questions.append(Question(prompt=match.group(1).strip(), kind=match.group(2).lower()))

    if not questions:
        raise ValidationError("No valid questions found")
    return questions


def parse_channel_id(text: str) -> int:
    """Parse a raw channel id or a <#channel> mention."""
    match = re.search(r"\d+", text)
    if not match:
        raise ValidationError("Invalid channel ID")
    return int(match.group(0))


def parse_snowflakes(text: Optional[str]) -> List[int]:
    """Pull every user/role id out of mentions or comma separated ids."""
    if not text:
        return []
    return [int(value) for value in _SNOWFLAKE.findall(text)]


def parse_config_block(text: str) -> Dict[str, object]:
    """
    Parse the prefix-command config block.

    Example:
        adminroles: @Role1, @Role2
        adminusers: @User1
        voterroles: @Voters
        channel: #mod-review
    """
    parsed = {}
    for key, pattern in _CONFIG_KEYS.items():
        match = pattern.search(text)
        parsed[key] = parse_snowflakes(match.group(1)) if match else []

    channel = _CONFIG_CHANNEL.search(text)
    parsed["mod_channel"] = int(channel.group(1)) if channel else None
    return parsed
