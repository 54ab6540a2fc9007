"""
Global constants for the application bot.

Contains Discord API limits, conversation timeouts, spam filter thresholds
and other constant values used throughout the bot and branches.
"""

# ============================================================================
# Discord API Limits
# ============================================================================

# Embed Limits (from Discord API documentation)
EMBED_TITLE_MAX = 256
EMBED_DESCRIPTION_MAX = 4096
EMBED_FIELD_NAME_MAX = 256
EMBED_FIELD_VALUE_MAX = 1024
EMBED_MAX_FIELDS = 25  # Maximum number of fields in an embed

# Snowflake ids are 17-19 digits
SNOWFLAKE_PATTERN = r"\d{17,19}"

# ============================================================================
# Bot Constants
# ============================================================================

# Branch Configuration
BRANCH_CONFIG_FILE = "config.yml"

# Logging
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Prefix commands stay disabled in a guild until this code is posted there
DEFAULT_PREFIX_ACTIVATION_CODE = "112233112233"
DEFAULT_COMMAND_PREFIX = "!"

# Conversation Timeouts (in seconds)
SETUP_STEP_TIMEOUT = 120
EDIT_MENU_TIMEOUT = 60
QUESTION_LIST_TIMEOUT = 300
ANSWER_TIMEOUT = 600
PREFIX_CONFIG_TIMEOUT = 60

# Deadline sweep cadence (in seconds)
SWEEP_INTERVAL_SECONDS = 60

# Spam Filter Thresholds
SPAM_MIN_ANSWER_LENGTH = 10   # Answers shorter than this count as "short"
SPAM_REPEATED_CHAR_RUN = 6    # e.g. "aaaaaa"
SPAM_SYMBOL_RUN = 10          # e.g. "!!!!!!!!!!"

# Status command
STATUS_TOP_APPLICANTS = 10

# ============================================================================
# Helper Functions
# ============================================================================

def truncate_for_embed_field(text: str, suffix: str = "...") -> str:
    """
    Truncate text to fit in an embed field value.

    Args:
        text: Text to truncate
        suffix: Suffix to add if truncated (default: "...")

    Returns:
        Truncated text that fits within EMBED_FIELD_VALUE_MAX
    """
    if not text:
        return ""

    if len(text) <= EMBED_FIELD_VALUE_MAX:
        return text

    return text[:EMBED_FIELD_VALUE_MAX - len(suffix)] + suffix


def truncate_for_embed_description(text: str, suffix: str = "...") -> str:
    """
    Truncate text to fit in an embed description.

    Args:
        text: Text to truncate
        suffix: Suffix to add if truncated (default: "...")

    Returns:
        Truncated text that fits within EMBED_DESCRIPTION_MAX
    """
    if not text:
        return ""

    if len(text) <= EMBED_DESCRIPTION_MAX:
        return text

    return text[:EMBED_DESCRIPTION_MAX - len(suffix)] + suffix
