"""Utility functions for the bot."""

import re
import logging
import yaml
from datetime import timedelta
from pathlib import Path
from typing import Dict, Any, Iterable, Optional
from constants import (
    SPAM_MIN_ANSWER_LENGTH,
    SPAM_REPEATED_CHAR_RUN,
    SPAM_SYMBOL_RUN,
)

logger = logging.getLogger(__name__)

_REPEATED_CHAR_PATTERN = re.compile(r"(.)\1{%d,}" % (SPAM_REPEATED_CHAR_RUN - 1))
_SYMBOL_RUN_PATTERN = re.compile(r"(?:[^\w\s]|_){%d,}" % SPAM_SYMBOL_RUN)


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge two config dictionaries, values in override winning.

    Args:
        base: Default configuration
        override: Values loaded from disk

    Returns:
        New merged dictionary (inputs are not modified)
    """
    merged = dict(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_branch_config(config_path: Path, default_config: Dict[str, Any], branch_name: str) -> Dict[str, Any]:
    """
    Load branch configuration from YAML file with fallback to defaults.

    Args:
        config_path: Path to config.yml file
        default_config: Default configuration dictionary
        branch_name: Name of the branch (for logging)

    Returns:
        Defaults overlaid with the file's values, or the defaults if the file is missing
    """
    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
            logger.info(f"Loaded config for {branch_name}")
            return deep_merge(default_config, config)
        except Exception as e:
            logger.error(f"Failed to load config for {branch_name}: {e}")

    return default_config


def sanitize_text(text: str, max_length: int = 2000) -> str:
    """
    Sanitize user input text.

    Args:
        text: The text to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized text
    """
    if not text:
        return ""

    # Truncate to max length
    text = text[:max_length]

    # Remove null bytes
    text = text.replace('\x00', '')

    return text.strip()


def truncate_text(text: str, limit: int = 1024, suffix: str = '...') -> str:
    """
    Truncate text to a specified limit with a suffix.

    Args:
        text: The text to truncate
        limit: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated text
    """
    if not text:
        return ""

    if len(text) <= limit:
        return text

    return text[:limit - len(suffix)] + suffix


def format_time_left(remaining: timedelta) -> str:
    """
    Format the time until a deadline as whole days or hours.

    Args:
        remaining: Time left until the deadline

    Returns:
        "3 days", "1 hour" or "Less than 1 hour"
    """
    seconds = int(remaining.total_seconds())
    days = seconds // 86400
    hours = (seconds % 86400) // 3600

    if days > 0:
        return f"{days} day{'s' if days > 1 else ''}"
    elif hours > 0:
        return f"{hours} hour{'s' if hours > 1 else ''}"
    else:
        return "Less than 1 hour"


def check_submission_spam(text_answers: Iterable[str]) -> tuple[bool, Optional[str]]:
    """
    Heuristic troll/spam check over the text answers of one submission.

    Image answers are not passed in. The checks run in order and the first
    one that trips decides the reason.

    Args:
        text_answers: Text answers of the candidate submission

    Returns:
        Tuple of (is_spam, reason)
    """
    answers = [a.lower() for a in text_answers]
    if not answers:
        return False, None

    short = sum(1 for a in answers if len(a) < SPAM_MIN_ANSWER_LENGTH)
    if short >= len(answers) / 2:
        return True, "Answers too short"

    if len(answers) > 1 and all(a == answers[0] for a in answers):
        return True, "All answers identical"

    for answer in answers:
        if _REPEATED_CHAR_PATTERN.search(answer) or _SYMBOL_RUN_PATTERN.search(answer):
            return True, "Spam detected"

    return False, None
