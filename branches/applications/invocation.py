"""
Command Invocations
Platform-neutral records of a command call or a button click.

Slash commands and prefix commands both end up as a CommandInvocation so the
service layer handles them the same way. Button clicks become a ButtonPress.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Optional

import discord
from discord.ext import commands

ReplyFn = Callable[..., Awaitable[Any]]


def _role_ids(member) -> FrozenSet[int]:
    return frozenset(role.id for role in getattr(member, "roles", []))


def _is_guild_admin(member) -> bool:
    permissions = getattr(member, "guild_permissions", None)
    return bool(permissions and permissions.administrator)


def _interaction_reply(interaction: discord.Interaction) -> ReplyFn:
    async def reply(embed: discord.Embed, ephemeral: bool = True):
        if interaction.response.is_done():
            return await interaction.followup.send(embed=embed, ephemeral=ephemeral)
        return await interaction.response.send_message(embed=embed, ephemeral=ephemeral)
    return reply


@dataclass
class CommandInvocation:
    """One command call, whichever surface it came from."""
    caller_id: int
    caller_role_ids: FrozenSet[int]
    guild_id: Optional[int]
    channel_id: Optional[int]
    command: str
    reply: ReplyFn
    args: Dict[str, Any] = field(default_factory=dict)
    is_guild_admin: bool = False

    @classmethod
    def from_interaction(cls, interaction: discord.Interaction, command: str, **args) -> "CommandInvocation":
        return cls(
            caller_id=interaction.user.id,
            caller_role_ids=_role_ids(interaction.user),
            guild_id=interaction.guild_id,
            channel_id=interaction.channel_id,
            command=command,
            reply=_interaction_reply(interaction),
            args=args,
            is_guild_admin=_is_guild_admin(interaction.user),
        )

    @classmethod
    def from_context(cls, ctx: commands.Context, command: str, **args) -> "CommandInvocation":
        async def reply(embed: discord.Embed, ephemeral: bool = True):
            # Prefix replies are always public
            return await ctx.reply(embed=embed, mention_author=False)

        return cls(
            caller_id=ctx.author.id,
            caller_role_ids=_role_ids(ctx.author),
            guild_id=ctx.guild.id if ctx.guild else None,
            channel_id=ctx.channel.id,
            command=command,
            reply=reply,
            args=args,
            is_guild_admin=_is_guild_admin(ctx.author),
        )


@dataclass
class ButtonPress:
    """A click on one of the routed buttons."""
    caller_id: int
    caller_role_ids: FrozenSet[int]
    guild_id: Optional[int]
    custom_id: str
    message: Any
    reply: ReplyFn

    @classmethod
    def from_interaction(cls, interaction: discord.Interaction) -> "ButtonPress":
        return cls(
            caller_id=interaction.user.id,
            caller_role_ids=_role_ids(interaction.user),
            guild_id=interaction.guild_id,
            custom_id=interaction.data.get("custom_id", ""),
            message=interaction.message,
            reply=_interaction_reply(interaction),
        )
