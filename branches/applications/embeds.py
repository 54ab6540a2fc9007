"""
Application Embeds
Builders for every embed the application system sends.
"""

from datetime import datetime
from typing import Dict, List, Sequence

import discord

from constants import EMBED_FIELD_NAME_MAX, EMBED_MAX_FIELDS, truncate_for_embed_field
from utils import format_time_left, truncate_text

from .helpers import create_embed, get_embed_colors, warning_embed
from .models import Answer, Application, GuildConfig


def _ts(moment: datetime, style: str = "F") -> str:
    return discord.utils.format_dt(moment, style=style)


def application_embed(application: Application, now: datetime) -> discord.Embed:
    """Public announcement posted in the application's target channel."""
    embed = create_embed(f"📋 {application.name}", application.description)
    embed.add_field(
        name="⏰ Deadline",
        value=f"{_ts(application.deadline)}\n{format_time_left(application.deadline - now)} left",
        inline=True,
    )
    embed.add_field(
        name="👥 Positions",
        value=str(application.accepted_count) if application.accepted_count else "Unlimited",
        inline=True,
    )
    embed.add_field(name="📝 Questions", value=str(len(application.questions)), inline=True)
    if application.image_url:
        embed.set_image(url=application.image_url)
    return embed


def vote_footer(accept: int, deny: int) -> str:
    return f"Votes: ✅ {accept} | ❌ {deny}"


def review_embed(
    application: Application,
    applicant_id: int,
    applicant_name: str,
    answers: Sequence[Answer],
    now: datetime,
) -> discord.Embed:
    """Submission card posted in the moderator channel."""
    embed = create_embed(
        f"📋 New: {application.name}",
        f"**Applicant:** {applicant_name} (<@{applicant_id}>)\n**ID:** {applicant_id}\n**Time:** {_ts(now, 'R')}",
    )

    for answer in answers[:EMBED_MAX_FIELDS]:
        name = truncate_text(answer.question, EMBED_FIELD_NAME_MAX - 3)
        if answer.kind == "image":
            embed.add_field(name=f"📷 {name}", value=f"[Image]({answer.answer})", inline=False)
        else:
            embed.add_field(name=f"❓ {name}", value=truncate_for_embed_field(answer.answer) or "No answer", inline=False)

    first_image = next((a.answer for a in answers if a.kind == "image"), None)
    if first_image:
        embed.set_image(url=first_image)

    embed.set_footer(text=vote_footer(0, 0))
    return embed


def vote_confirmation_embed(choice: str, accept: int, deny: int) -> discord.Embed:
    label = "✅ **Accept**" if choice == "accept" else "❌ **Deny**"
    return create_embed("✅ Voted", f"Your vote: {label}\n\n**Votes:**\n✅ {accept}\n❌ {deny}")


def results_embed(application: Application, winners, total: int) -> discord.Embed:
    """Closing summary posted in the application's target channel."""
    winner_tags = ", ".join(f"<@{w.applicant_id}>" for w in winners)
    embed = create_embed(
        "🎉 Application Closed",
        f"**{application.name}** closed!\n\n**Accepted:**\n{winner_tags or 'None'}\n\nMods will contact you soon.",
    )
    embed.add_field(name="📊 Stats", value=f"Total: {total}\nAccepted: {len(winners)}", inline=True)
    return embed


def accepted_dm_embed(application: Application) -> discord.Embed:
    return create_embed(
        "🎉 Congratulations!",
        f"You've been **accepted** for:\n**{application.name}**\n\nMods will contact you soon.",
    )


def not_selected_dm_embed(application: Application) -> discord.Embed:
    return warning_embed(
        "📋 Update",
        f"Thanks for applying to **{application.name}**.\n\nUnfortunately not selected this time. Feel free to apply again!",
    )


def status_embed(application: Application, ranked, top: int) -> discord.Embed:
    """Detailed status of one application with its leading applicants."""
    embed = create_embed(
        f"📊 {application.name}",
        f"**Status:** {'🔴 Closed' if application.closed else '🟢 Active'}\n"
        f"**Deadline:** {_ts(application.deadline, 'R')}\n"
        f"**Positions:** {application.accepted_count or 'Unlimited'}\n"
        f"**Submissions:** {len(ranked)}",
    )

    if ranked:
        lines = [
            f"`{i + 1}.` <@{entry.applicant_id}> - ✅ {entry.accept} | ❌ {entry.deny}"
            for i, entry in enumerate(ranked[:top])
        ]
        embed.add_field(name="🏆 Top Applicants", value=truncate_for_embed_field("\n".join(lines)), inline=False)
    else:
        embed.add_field(name="📭 No Submissions", value="None yet", inline=False)
    return embed


def status_overview_embed(applications: List[Application], submission_counts: Dict[str, int]) -> discord.Embed:
    """Every application in a guild, one block each."""
    blocks = [
        f"**{app.name}**\n{'🔴' if app.closed else '🟢'} | 📝 {submission_counts.get(app.id, 0)} | ⏰ {_ts(app.deadline, 'R')}"
        for app in applications
    ]
    return create_embed("📋 All Applications", "\n\n".join(blocks))


def help_embed() -> discord.Embed:
    embed = create_embed("📚 Commands", "Available commands:")
    embed.add_field(name="⚙️ Config", value="`/conf` - Setup\n`/ping` - Latency", inline=False)
    embed.add_field(
        name="📝 Management",
        value="`/setupnew` - New app\n`/edit <name>` - Edit\n`/remove <name>` - Remove\n`/end <name>` - Close",
        inline=False,
    )
    embed.add_field(name="📊 Info", value="`/status [name]` - Status\n`/help` - This menu", inline=False)
    embed.add_field(
        name="💡 Permissions",
        value="**Admin Users:** Full control\n**Admin Roles:** Manage apps\n**Voter Roles:** Vote only",
        inline=False,
    )
    return embed


def config_embed(config: GuildConfig) -> discord.Embed:
    """Summary of a guild's configuration after /conf."""
    embed = create_embed("✅ Config Saved", "Settings updated")
    embed.add_field(
        name="👥 Admin Roles",
        value=", ".join(f"<@&{i}>" for i in sorted(config.admin_role_ids)) or "None",
        inline=False,
    )
    embed.add_field(
        name="👤 Admin Users (Full Perms)",
        value=", ".join(f"<@{i}>" for i in sorted(config.admin_user_ids)) or "None",
        inline=False,
    )
    embed.add_field(
        name="🗳️ Voter Roles",
        value=", ".join(f"<@&{i}>" for i in sorted(config.voter_role_ids)) or "None",
        inline=False,
    )
    embed.add_field(
        name="📢 Mod Channel",
        value=f"<#{config.mod_channel_id}>" if config.mod_channel_id else "Not set",
        inline=False,
    )
    return embed


def ping_embed(latency_ms: int) -> discord.Embed:
    return create_embed("🏓 Pong!", f"**Latency:** {latency_ms}ms\n**Status:** Online")


def step_embed(title: str, description: str) -> discord.Embed:
    """Prompt for one step of a conversation."""
    return create_embed(title, description)


def question_embed(index: int, total: int, prompt: str, kind: str) -> discord.Embed:
    hint = "📷 Upload image" if kind == "image" else "✍️ Type answer"
    return create_embed(f"Question {index}/{total}", f"{prompt}\n\n{hint}")


def abort_embed(title: str, message: str) -> discord.Embed:
    return create_embed(title, message, get_embed_colors()["error"])
