"""
Application Helper Functions
Config loading, embed styling and permission checks for the application system.
"""

import copy
import discord
import logging
from pathlib import Path
from typing import Iterable, List, Optional
from utils import load_branch_config
from constants import (
    ANSWER_TIMEOUT,
    BRANCH_CONFIG_FILE,
    EMBED_TITLE_MAX,
    EDIT_MENU_TIMEOUT,
    PREFIX_CONFIG_TIMEOUT,
    QUESTION_LIST_TIMEOUT,
    SETUP_STEP_TIMEOUT,
    STATUS_TOP_APPLICANTS,
    SWEEP_INTERVAL_SECONDS,
    truncate_for_embed_description,
)
from .models import GuildConfig, Question

logger = logging.getLogger(__name__)


# Default configuration for this branch
DEFAULT_CONFIG = {
    "enabled": True,
    "version": "1.0.0",
    "settings": {
        "sweep_interval_seconds": SWEEP_INTERVAL_SECONDS,
        "status_top_applicants": STATUS_TOP_APPLICANTS,

        "timeouts": {
            "setup_step": SETUP_STEP_TIMEOUT,
            "edit_menu": EDIT_MENU_TIMEOUT,
            "question_list": QUESTION_LIST_TIMEOUT,
            "answer": ANSWER_TIMEOUT,
            "prefix_config": PREFIX_CONFIG_TIMEOUT,
        },

        "default_questions": [
            {"question": "Why do you want to apply for this position?", "type": "text"},
            {"question": "What experience do you have related to this role?", "type": "text"},
            {"question": "What would you bring to the team?", "type": "text"},
            {"question": "How many hours per week can you dedicate?", "type": "text"},
        ],

        "ui": {
            "footer": "Application System",
            "embed_colors": {
                "info": 0x65A2C4,
                "warning": 0xFFAA00,
                "error": 0xFF0000,
            },
        },
    }
}


def get_config_path() -> Path:
    return Path(__file__).parent / BRANCH_CONFIG_FILE


def get_applications_config():
    """Load application config from config.yml, falling back to defaults."""
    return load_branch_config(get_config_path(), copy.deepcopy(DEFAULT_CONFIG), "Applications")


def get_settings():
    return get_applications_config().get("settings", {})


def get_embed_colors():
    """Get embed colors from config."""
    ui_settings = get_settings().get("ui", {})
    embed_colors = ui_settings.get("embed_colors", {})
    return {
        "info": embed_colors.get("info", 0x65A2C4),
        "warning": embed_colors.get("warning", 0xFFAA00),
        "error": embed_colors.get("error", 0xFF0000),
    }


def get_timeouts():
    """Conversation step timeouts in seconds."""
    timeouts = get_settings().get("timeouts", {})
    return {
        "setup_step": timeouts.get("setup_step", SETUP_STEP_TIMEOUT),
        "edit_menu": timeouts.get("edit_menu", EDIT_MENU_TIMEOUT),
        "question_list": timeouts.get("question_list", QUESTION_LIST_TIMEOUT),
        "answer": timeouts.get("answer", ANSWER_TIMEOUT),
        "prefix_config": timeouts.get("prefix_config", PREFIX_CONFIG_TIMEOUT),
    }


def get_default_questions() -> List[Question]:
    """Get the standard question set used when an admin picks "default"."""
    raw = get_settings().get("default_questions") or DEFAULT_CONFIG["settings"]["default_questions"]
    return [Question(prompt=q["question"], kind=q.get("type", "text")) for q in raw]


def create_embed(title: str, description: str, color: Optional[int] = None) -> discord.Embed:
    """Build an embed in the bot's standard style."""
    embed = discord.Embed(
        title=title[:EMBED_TITLE_MAX],
        description=truncate_for_embed_description(description),
        color=color if color is not None else get_embed_colors()["info"],
        timestamp=discord.utils.utcnow(),
    )
    footer = get_settings().get("ui", {}).get("footer", "Application System")
    embed.set_footer(text=footer)
    return embed


def error_embed(title: str, description: str) -> discord.Embed:
    return create_embed(title, description, get_embed_colors()["error"])


def warning_embed(title: str, description: str) -> discord.Embed:
    return create_embed(title, description, get_embed_colors()["warning"])


# ============================================================================
# Permission checks
# ============================================================================

def has_manage_permission(config: Optional[GuildConfig], user_id: int, role_ids: Iterable[int]) -> bool:
    """Admin users always pass; otherwise the member needs an admin role."""
    if config is None:
        return False
    if user_id in config.admin_user_ids:
        return True
    return any(role_id in config.admin_role_ids for role_id in role_ids)


def can_vote(config: Optional[GuildConfig], user_id: int, role_ids: Iterable[int]) -> bool:
    """
    Check the voting capability.

    Admin users can always vote. When voter roles are configured, members of
    those roles can vote. With no voter roles configured, admin role members
    vote instead.
    """
    if config is None:
        return False
    if user_id in config.admin_user_ids:
        return True
    role_ids = set(role_ids)
    if config.voter_role_ids:
        return bool(role_ids & config.voter_role_ids)
    return bool(role_ids & config.admin_role_ids)


def can_dismiss(config: Optional[GuildConfig], user_id: int) -> bool:
    """Only admin users (not roles) can dismiss submissions."""
    return config is not None and user_id in config.admin_user_ids
