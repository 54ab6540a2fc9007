"""
Applications Branch Implementation
Recruitment applications: setup over DMs, applicant submissions, moderator
voting and automatic closing at the deadline.
"""

import discord
from discord import app_commands
from discord.ext import commands, tasks
import logging
from typing import Optional

from config import PREFIX_ACTIVATION_CODE

from .context import build_context
from .gateway import DiscordGateway
from .helpers import DEFAULT_CONFIG, create_embed, get_settings
from .invocation import ButtonPress, CommandInvocation
from .parsing import parse_snowflakes
from .service import ApplicationService

logger = logging.getLogger(__name__)

__all__ = ["Applications", "DEFAULT_CONFIG"]


class PrefixCommandsDisabled(commands.CheckFailure):
    """Prefix commands haven't been activated in this guild."""


class Applications(commands.Cog):
    """Recruitment applications with voting and deadlines."""

    def __init__(self, bot):
        self.bot = bot
        self.context = build_context(DiscordGateway(bot))
        self.service = ApplicationService(self.context)

        self.sweep_interval = get_settings().get("sweep_interval_seconds", 60)
        logger.info(f"Applications branch initialized (sweep every {self.sweep_interval}s)")

    async def cog_load(self):
        """Start the deadline sweep."""
        self.deadline_sweep.change_interval(seconds=self.sweep_interval)
        self.deadline_sweep.start()
        logger.info("Deadline sweep task started")

    async def cog_unload(self):
        """Stop background tasks."""
        if self.deadline_sweep.is_running():
            self.deadline_sweep.cancel()
        logger.info("Applications branch unloaded")

    # ========================================================================
    # Background tasks
    # ========================================================================

    @tasks.loop(seconds=60)
    async def deadline_sweep(self):
        """Close every application whose deadline has passed."""
        try:
            await self.context.sweeper.sweep()
        except Exception as e:
            logger.error(f"Error in deadline sweep: {e}", exc_info=True)

    @deadline_sweep.before_loop
    async def before_deadline_sweep(self):
        """Wait for bot to be ready before starting the sweep."""
        await self.bot.wait_until_ready()

    # ========================================================================
    # Listeners
    # ========================================================================

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message):
        """Switch on prefix commands when the activation code is posted."""
        if message.author.bot or message.guild is None:
            return
        if message.content.strip() != PREFIX_ACTIVATION_CODE:
            return

        self.context.configs.enable_prefix(message.guild.id)
        logger.info(f"Prefix commands enabled in guild {message.guild.id} by {message.author}")
        try:
            await message.reply(embed=create_embed("🔧 Dev Mode", "Prefix commands enabled. Use `!help`"))
        except discord.HTTPException as e:
            logger.warning(f"Failed to confirm prefix activation: {e}")

    @commands.Cog.listener()
    async def on_interaction(self, interaction: discord.Interaction):
        """Route clicks on application buttons by custom_id."""
        if interaction.type != discord.InteractionType.component:
            return
        if not interaction.data or "custom_id" not in interaction.data:
            return

        await self.service.handle_button(ButtonPress.from_interaction(interaction))

    # ========================================================================
    # Prefix command gate
    # ========================================================================

    async def cog_check(self, ctx: commands.Context) -> bool:
        if ctx.guild is None or not self.context.configs.prefix_enabled(ctx.guild.id):
            raise PrefixCommandsDisabled()
        return True

    async def cog_command_error(self, ctx: commands.Context, error):
        if isinstance(error, PrefixCommandsDisabled):
            return
        if isinstance(error, commands.MissingRequiredArgument):
            await ctx.send(f"❌ Missing required argument: `{error.param.name}`")
            return
        logger.error(f"Command error in {ctx.command}: {error}", exc_info=True)
        await ctx.send("❌ An error occurred while executing the command.")

    # ========================================================================
    # Slash commands
    # ========================================================================

    @app_commands.command(name="conf", description="Configure application permissions")
    @app_commands.describe(
        adminroles="Roles that can manage applications",
        adminusers="Users with full permissions",
        voterroles="Roles that can vote on submissions",
        modchannel="Channel where submissions are posted for review",
    )
    @app_commands.default_permissions(administrator=True)
    @app_commands.guild_only()
    async def slash_conf(
        self,
        interaction: discord.Interaction,
        adminroles: Optional[str] = None,
        adminusers: Optional[str] = None,
        voterroles: Optional[str] = None,
        modchannel: Optional[discord.TextChannel] = None,
    ):
        await self.service.handle(CommandInvocation.from_interaction(
            interaction,
            "conf",
            admin_roles=parse_snowflakes(adminroles),
            admin_users=parse_snowflakes(adminusers),
            voter_roles=parse_snowflakes(voterroles),
            mod_channel=modchannel.id if modchannel else None,
        ))

    @app_commands.command(name="setupnew", description="Create a new application")
    @app_commands.guild_only()
    async def slash_setupnew(self, interaction: discord.Interaction):
        await self.service.handle(CommandInvocation.from_interaction(interaction, "setupnew"))

    @app_commands.command(name="edit", description="Edit an application")
    @app_commands.describe(name="Application name")
    @app_commands.guild_only()
    async def slash_edit(self, interaction: discord.Interaction, name: str):
        await self.service.handle(CommandInvocation.from_interaction(interaction, "edit", name=name))

    @app_commands.command(name="remove", description="Remove an application")
    @app_commands.describe(name="Application name")
    @app_commands.guild_only()
    async def slash_remove(self, interaction: discord.Interaction, name: str):
        await self.service.handle(CommandInvocation.from_interaction(interaction, "remove", name=name))

    @app_commands.command(name="end", description="Close an application and announce the results")
    @app_commands.describe(name="Application name")
    @app_commands.guild_only()
    async def slash_end(self, interaction: discord.Interaction, name: str):
        await self.service.handle(CommandInvocation.from_interaction(interaction, "end", name=name))

    @app_commands.command(name="status", description="Show application status")
    @app_commands.describe(name="Application name (optional)")
    @app_commands.guild_only()
    async def slash_status(self, interaction: discord.Interaction, name: Optional[str] = None):
        await self.service.handle(CommandInvocation.from_interaction(interaction, "status", name=name))

    @app_commands.command(name="help", description="Show all commands")
    async def slash_help(self, interaction: discord.Interaction):
        await self.service.handle(CommandInvocation.from_interaction(interaction, "help"))

    @app_commands.command(name="ping", description="Check bot latency")
    async def slash_ping(self, interaction: discord.Interaction):
        await self.service.handle(CommandInvocation.from_interaction(interaction, "ping"))

    # ========================================================================
    # Prefix commands (available after activation)
    # ========================================================================

    @commands.command(name="conf")
    async def prefix_conf(self, ctx: commands.Context):
        await self.service.handle(CommandInvocation.from_context(ctx, "conf-block"))

    @commands.command(name="setupnew")
    async def prefix_setupnew(self, ctx: commands.Context):
        await self.service.handle(CommandInvocation.from_context(ctx, "setupnew"))

    @commands.command(name="edit")
    async def prefix_edit(self, ctx: commands.Context, *, name: str):
        await self.service.handle(CommandInvocation.from_context(ctx, "edit", name=name))

    @commands.command(name="remove")
    async def prefix_remove(self, ctx: commands.Context, *, name: str):
        await self.service.handle(CommandInvocation.from_context(ctx, "remove", name=name))

    @commands.command(name="end")
    async def prefix_end(self, ctx: commands.Context, *, name: str):
        await self.service.handle(CommandInvocation.from_context(ctx, "end", name=name))

    @commands.command(name="status")
    async def prefix_status(self, ctx: commands.Context, *, name: Optional[str] = None):
        await self.service.handle(CommandInvocation.from_context(ctx, "status", name=name))

    @commands.command(name="help")
    async def prefix_help(self, ctx: commands.Context):
        await self.service.handle(CommandInvocation.from_context(ctx, "help"))

    @commands.command(name="ping")
    async def prefix_ping(self, ctx: commands.Context):
        await self.service.handle(CommandInvocation.from_context(ctx, "ping"))
