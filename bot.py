"""
Recruitment application bot.

Loads feature branches from branches/ and syncs their slash commands.
"""

import discord
from discord.ext import commands
from config import COMMAND_PREFIX, DISCORD_TOKEN, GUILD_ID, validate_startup_config
from constants import LOG_DATE_FORMAT, LOG_FORMAT
import logging
import sys
from datetime import datetime
from pathlib import Path

# Create logs directory if it doesn't exist
logs_dir = Path("logs")
logs_dir.mkdir(exist_ok=True)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATE_FORMAT,
    handlers=[
        logging.FileHandler(logs_dir / f'applications_{datetime.now().strftime("%Y%m%d")}.log'),
        logging.StreamHandler(sys.stdout)
    ]
)

# Set discord.py logging level
logging.getLogger('discord').setLevel(logging.WARNING)
logging.getLogger('discord.http').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# Configure Discord intents
intents = discord.Intents.default()
intents.message_content = True  # Required for DM replies and prefix commands
intents.messages = True          # Required for message events
intents.dm_messages = True       # Required for DM conversations
intents.guilds = True            # Required for guild information
intents.members = True           # Required for role checking

# Validate required intents are enabled
REQUIRED_INTENTS = {
    "message_content": "Required for reading DM answers and prefix commands",
    "dm_messages": "Required for application conversations in DMs",
    "guilds": "Required for accessing guild information",
    "members": "Required for role checking"
}

for intent_name, reason in REQUIRED_INTENTS.items():
    if not getattr(intents, intent_name, False):
        logger.error(f"Missing required intent: {intent_name}")
        logger.error(f"Reason: {reason}")
        logger.error("Please enable this intent in the Discord Developer Portal:")
        logger.error("https://discord.com/developers/applications")
        sys.exit(1)


class ApplicationBot(commands.Bot):
    """Recruitment application bot."""

    def __init__(self):
        super().__init__(command_prefix=COMMAND_PREFIX, intents=intents, help_command=None)
        self._synced = False

    async def setup_hook(self):
        try:
            logger.info("Loading branches...")
            await self.load_branches()

            logger.info("Setup complete!")
        except Exception as e:
            logger.critical(f"Failed to set up bot: {e}", exc_info=True)
            raise

    async def load_branches(self):
        """Load every enabled branch, generating its config on first run."""
        from core.branch_loader import get_branch_loader

        loader = get_branch_loader()
        branch_names = loader.discover_branches()

        loaded_branches = []
        skipped_branches = []
        failed_branches = []

        logger.info(f"Discovered {len(branch_names)} branches")

        for branch_name in branch_names:
            try:
                # Load/generate config
                config = loader.load_config(branch_name)

                # Check if enabled
                if not config.get("enabled", True):
                    skipped_branches.append(branch_name)
                    logger.info(f"⏭️  Skipped {branch_name} (disabled in config)")
                    continue

                await self.load_extension(loader.get_load_path(branch_name))
                loaded_branches.append(branch_name)
                logger.info(f"✅ Loaded branch: {branch_name}")

            except Exception as e:
                failed_branches.append((branch_name, str(e)))
                logger.error(f"❌ Failed to load branch {branch_name}: {e}")

        logger.info(f"Loaded {len(loaded_branches)}/{len(branch_names)} branches: {', '.join(loaded_branches)}")

        if skipped_branches:
            logger.info(f"Skipped {len(skipped_branches)} disabled branches: {', '.join(skipped_branches)}")

        if failed_branches:
            logger.warning(f"Failed to load {len(failed_branches)} branches:")
            for branch_name, error in failed_branches:
                logger.warning(f"  - {branch_name}: {error}")

    async def on_ready(self):
        logger.info(f"Logged in as {self.user} (ID: {self.user.id})")
        logger.info(f"Connected to {len(self.guilds)} guild(s)")
        logger.info("Post the activation code in a server to enable prefix commands")

        if not self._synced:
            await self.sync_commands()
            self._synced = True

        logger.info("Bot is ready!")

    async def sync_commands(self):
        """Sync slash commands to GUILD_ID when set, otherwise globally."""
        try:
            logger.info("Syncing slash commands...")
            if GUILD_ID:
                guild = discord.Object(id=GUILD_ID)
                self.tree.copy_global_to(guild=guild)
                synced = await self.tree.sync(guild=guild)
                logger.info(f"Synced {len(synced)} slash commands to guild {GUILD_ID}")
            else:
                synced = await self.tree.sync()
                logger.info(f"Synced {len(synced)} slash commands globally")
        except Exception as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event_method: str, *args, **kwargs):
        logger.error(f"Error in {event_method}", exc_info=True)

    async def on_command_error(self, ctx, error):
        if ctx.cog is not None and ctx.cog.has_error_handler():
            return
        if isinstance(error, commands.CommandNotFound):
            return
        elif isinstance(error, (commands.MissingPermissions, commands.MissingRole, commands.MissingAnyRole, commands.CheckFailure)):
            await ctx.send("❌ You don't have permission to use this command.")
        elif isinstance(error, commands.MissingRequiredArgument):
            await ctx.send(f"❌ Missing required argument: `{error.param.name}`")
        else:
            logger.error(f"Command error in {ctx.command}: {error}", exc_info=True)
            await ctx.send("❌ An error occurred while executing the command.")


def main():
    validate_startup_config()
    try:
        logger.info("Starting application bot...")
        bot = ApplicationBot()
        bot.run(DISCORD_TOKEN, log_handler=None)  # We handle logging ourselves
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)

if __name__ == "__main__":
    main()
