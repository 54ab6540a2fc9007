"""
Global configuration loader for the application bot.
Loads environment variables from .env file.
"""
from dotenv import load_dotenv
import os
import sys
from constants import DEFAULT_COMMAND_PREFIX, DEFAULT_PREFIX_ACTIVATION_CODE

load_dotenv()

def get_env(key: str, required: bool = True, default=None):
    """Safely get environment variable with validation."""
    value = os.getenv(key, default)
    if required and value is None:
        print(f"ERROR: Missing required environment variable: {key}")
        print(f"Please add {key} to your .env file")
        sys.exit(1)
    return value

def get_env_int(key: str, required: bool = True, default=None):
    """Get environment variable as integer."""
    value = get_env(key, required, default)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        print(f"ERROR: Environment variable {key} must be a valid integer, got: {value}")
        sys.exit(1)

# ============================================================================
# Global Bot Configuration (from .env)
# ============================================================================
# Discord Bot Token (checked at startup by validate_startup_config)
DISCORD_TOKEN = get_env("DISCORD_TOKEN", required=False)

# Optional guild to sync slash commands to (global sync when unset)
GUILD_ID = get_env_int("GUILD_ID", required=False)

# Code that switches on prefix commands in a guild
PREFIX_ACTIVATION_CODE = get_env("PREFIX_ACTIVATION_CODE", required=False, default=DEFAULT_PREFIX_ACTIVATION_CODE)

COMMAND_PREFIX = get_env("COMMAND_PREFIX", required=False, default=DEFAULT_COMMAND_PREFIX)

PLACEHOLDER_TOKENS = ["your_bot_token_here", "your_token_here", "placeholder", ""]


def validate_startup_config() -> None:
    """Exit with a readable message if the bot can't start with the current .env."""
    if DISCORD_TOKEN is None:
        print("ERROR: Missing required environment variable: DISCORD_TOKEN")
        print("Please add DISCORD_TOKEN to your .env file")
        sys.exit(1)

    # Validate token is not a placeholder
    if DISCORD_TOKEN in PLACEHOLDER_TOKENS:
        print("ERROR: DISCORD_TOKEN is still set to a placeholder value!")
        print("Please update your .env file with a real Discord bot token.")
        print("Get one from: https://discord.com/developers/applications")
        sys.exit(1)

    # Validate Guild ID is not placeholder
    if GUILD_ID == 0:
        print("ERROR: GUILD_ID is still set to 0 (placeholder)!")
        print("Remove it to sync commands globally, or set your Discord server ID.")
        sys.exit(1)
