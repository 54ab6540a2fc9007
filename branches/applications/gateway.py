"""
Messaging Gateway
The narrow set of chat-platform primitives the application core depends on.

MessagingGateway describes what the core needs. DiscordGateway implements
it on top of a discord.py bot. Tests substitute an in-memory fake.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol, Sequence

import discord

from .errors import ConversationTimeout, DeliveryFailure
from .views import ButtonSpec, RoutedButtonView

logger = logging.getLogger(__name__)


@dataclass
class Reply:
    """One message received while a conversation waits for input."""
    content: str
    attachment_urls: List[str] = field(default_factory=list)


class MessagingGateway(Protocol):
    async def send_to_channel(self, channel_id: int, embed: discord.Embed, buttons: Sequence[ButtonSpec] = ()) -> Any: ...

    async def send_dm(self, user_id: int, embed: discord.Embed, buttons: Sequence[ButtonSpec] = ()) -> Any: ...

    async def await_reply(self, user_id: int, timeout: float, channel_id: Optional[int] = None) -> Reply: ...

    async def channel_exists(self, guild_id: int, channel_id: int) -> bool: ...

    async def set_footer(self, message: Any, text: str) -> None: ...

    async def delete_message(self, message: Any) -> None: ...

    def display_name(self, user_id: int) -> str: ...

    def latency_ms(self) -> int: ...


class DiscordGateway:
    """MessagingGateway backed by a discord.py client."""

    def __init__(self, bot):
        self.bot = bot

    async def _resolve_channel(self, channel_id: int):
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            channel = await self.bot.fetch_channel(channel_id)
        return channel

    async def send_to_channel(self, channel_id, embed, buttons=()):
        channel = await self._resolve_channel(channel_id)
        if buttons:
            return await channel.send(embed=embed, view=RoutedButtonView(buttons))
        return await channel.send(embed=embed)

    async def send_dm(self, user_id, embed, buttons=()):
        try:
            user = self.bot.get_user(user_id) or await self.bot.fetch_user(user_id)
            if buttons:
                return await user.send(embed=embed, view=RoutedButtonView(buttons))
            return await user.send(embed=embed)
        except discord.Forbidden:
            raise DeliveryFailure("Can't send you DMs. Enable DMs from server members first.")
        except discord.NotFound:
            raise DeliveryFailure(f"User {user_id} not found")

    async def await_reply(self, user_id, timeout, channel_id=None):
        """
        Wait for the next message from a user.

        Args:
            user_id: Author to wait for
            timeout: Seconds before giving up
            channel_id: Channel to listen in; None means the user's DM channel

        Returns:
            The reply's text and attachment urls
        """
        def check(message: discord.Message) -> bool:
            if message.author.id != user_id:
                return False
            if channel_id is None:
                return isinstance(message.channel, discord.DMChannel)
            return message.channel.id == channel_id

        try:
            message = await self.bot.wait_for("message", check=check, timeout=timeout)
        except asyncio.TimeoutError:
            raise ConversationTimeout()

        return Reply(
            content=message.content,
            attachment_urls=[attachment.url for attachment in message.attachments],
        )

    async def channel_exists(self, guild_id, channel_id):
        guild = self.bot.get_guild(guild_id)
        if guild is None:
            return False
        if guild.get_channel(channel_id) is not None:
            return True
        try:
            await guild.fetch_channel(channel_id)
            return True
        except (discord.NotFound, discord.Forbidden, discord.InvalidData):
            return False
        except discord.HTTPException as e:
            logger.warning(f"Couldn't look up channel {channel_id}: {e}")
            return False

    async def set_footer(self, message, text):
        if not message.embeds:
            return
        embed = message.embeds[0]
        embed.set_footer(text=text)
        await message.edit(embed=embed)

    async def delete_message(self, message):
        await message.delete()

    def display_name(self, user_id):
        user = self.bot.get_user(user_id)
        return str(user) if user else str(user_id)

    def latency_ms(self):
        return round(self.bot.latency * 1000)
