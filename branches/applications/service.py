"""
Application Service
Command and button dispatch for the application system.

The service checks permissions, calls the stores, flows and resolver, and
answers every invocation exactly once. ApplicationError subclasses become an
error embed with the error's own title. Anything unexpected is logged and
answered with a generic error.
"""

import logging
from typing import Awaitable, Callable, Dict

from .context import BranchContext
from .embeds import (
    config_embed,
    help_embed,
    ping_embed,
    status_embed,
    status_overview_embed,
    vote_confirmation_embed,
    vote_footer,
)
from .errors import (
    ApplicationClosed,
    ApplicationError,
    NotConfigured,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from .flows import EditFlow, FillFlow, SetupFlow
from .helpers import (
    can_dismiss,
    can_vote,
    create_embed,
    error_embed,
    get_settings,
    has_manage_permission,
)
from .invocation import ButtonPress, CommandInvocation
from .lifecycle import rank_submissions
from .models import Application
from .parsing import parse_config_block
from .views import APPLY_PREFIX, DISMISS_PREFIX, VOTE_PREFIX

logger = logging.getLogger(__name__)

CHECK_DMS = "Check your DMs to continue."


class ApplicationService:
    """Entry point for every command and routed button click."""

    def __init__(self, ctx: BranchContext):
        self.ctx = ctx
        self._commands: Dict[str, Callable[[CommandInvocation], Awaitable[None]]] = {
            "conf": self.configure,
            "conf-block": self.configure_from_block,
            "setupnew": self.setup_new,
            "edit": self.edit,
            "remove": self.remove,
            "end": self.end,
            "status": self.status,
            "help": self.show_help,
            "ping": self.ping,
        }

    # ========================================================================
    # Dispatch
    # ========================================================================

    async def handle(self, invocation: CommandInvocation) -> None:
        handler = self._commands.get(invocation.command)
        if handler is None:
            logger.warning(f"Unknown command '{invocation.command}' from {invocation.caller_id}")
            return
        await self._guarded(invocation.reply, f"/{invocation.command}", handler(invocation))

    async def handle_button(self, press: ButtonPress) -> bool:
        """
        Route a button click by its custom_id prefix.

        Returns:
            False if the button doesn't belong to this system
        """
        custom_id = press.custom_id
        if custom_id.startswith(APPLY_PREFIX):
            action = self.apply(press, custom_id[len(APPLY_PREFIX):])
        elif custom_id.startswith(VOTE_PREFIX):
            choice, _, submission_id = custom_id[len(VOTE_PREFIX):].partition("-")
            action = self.vote(press, submission_id, choice)
        elif custom_id.startswith(DISMISS_PREFIX):
            action = self.dismiss(press, custom_id[len(DISMISS_PREFIX):])
        else:
            return False

        await self._guarded(press.reply, f"button {custom_id}", action)
        return True

    async def _guarded(self, reply, label: str, action: Awaitable[None]) -> None:
        try:
            await action
        except ApplicationError as e:
            await self._reply_error(reply, e.title, e.message)
        except Exception as e:
            logger.error(f"Error handling {label}: {e}", exc_info=True)
            await self._reply_error(reply, "❌ Error", "Something went wrong. Please try again later.")

    async def _reply_error(self, reply, title: str, message: str) -> None:
        try:
            await reply(error_embed(title, message), ephemeral=True)
        except Exception as e:
            logger.error(f"Failed to send error reply '{title}': {e}")

    # ========================================================================
    # Checks
    # ========================================================================

    def require_manager(self, invocation: CommandInvocation) -> None:
        if invocation.guild_id is None:
            raise ValidationError("This command only works in a server")
        config = self.ctx.configs.get(invocation.guild_id)
        if config is None:
            raise NotConfigured()
        if not has_manage_permission(config, invocation.caller_id, invocation.caller_role_ids):
            raise PermissionDenied("Admin only")

    def require_guild_admin(self, invocation: CommandInvocation) -> None:
        if invocation.guild_id is None:
            raise ValidationError("This command only works in a server")
        if not invocation.is_guild_admin:
            raise PermissionDenied("Administrator permission required")

    def find_application(self, guild_id: int, name: str) -> Application:
        application = self.ctx.registry.find_by_name(guild_id, name)
        if application is None:
            raise NotFound(f"**{name}** not found")
        return application

    # ========================================================================
    # Commands
    # ========================================================================

    async def configure(self, invocation: CommandInvocation) -> None:
        self.require_guild_admin(invocation)
        args = invocation.args
        config = self.ctx.configs.merge(
            invocation.guild_id,
            admin_role_ids=args.get("admin_roles") or (),
            admin_user_ids=args.get("admin_users") or (),
            voter_role_ids=args.get("voter_roles") or (),
            mod_channel_id=args.get("mod_channel"),
        )
        logger.info(f"Config updated for guild {invocation.guild_id} by {invocation.caller_id}")
        await invocation.reply(config_embed(config))

    async def configure_from_block(self, invocation: CommandInvocation) -> None:
        """Prompt for a config block in the channel, then apply it like /conf."""
        self.require_guild_admin(invocation)
        await invocation.reply(create_embed(
            "⚙️ Config",
            "Reply with:\n```\nadminroles: @Role1, @Role2\nadminusers: @User1\n"
            "voterroles: @Voters\nchannel: #mod-review\n```",
        ))

        reply = await self.ctx.gateway.await_reply(
            invocation.caller_id,
            self.ctx.timeouts["prefix_config"],
            channel_id=invocation.channel_id,
        )
        invocation.args.update(parse_config_block(reply.content))
        await self.configure(invocation)

    async def setup_new(self, invocation: CommandInvocation) -> None:
        self.require_manager(invocation)
        with self.ctx.conversations.hold(invocation.caller_id):
            await invocation.reply(create_embed("📬 Check DMs", CHECK_DMS))
            await SetupFlow(self.ctx, invocation.caller_id, invocation.guild_id).run()

    async def edit(self, invocation: CommandInvocation) -> None:
        self.require_manager(invocation)
        application = self.find_application(invocation.guild_id, invocation.args["name"])
        with self.ctx.conversations.hold(invocation.caller_id):
            await invocation.reply(create_embed("📬 Check DMs", CHECK_DMS))
            await EditFlow(self.ctx, invocation.caller_id, application.id).run()

    async def remove(self, invocation: CommandInvocation) -> None:
        self.require_manager(invocation)
        application = self.find_application(invocation.guild_id, invocation.args["name"])
        self.ctx.registry.remove(application.id)
        await invocation.reply(create_embed("✅ Removed", f"**{application.name}** removed"))

    async def end(self, invocation: CommandInvocation) -> None:
        self.require_manager(invocation)
        application = self.find_application(invocation.guild_id, invocation.args["name"])
        outcome = self.ctx.resolver.decide(application.id)
        try:
            await invocation.reply(create_embed(
                "✅ Closed",
                f"**{application.name}** closed\n\nAccepted: {len(outcome.winners)}\nDMs sent",
            ))
        except Exception as e:
            logger.error(f"Failed to confirm closing {application.id}: {e}")
        await self.ctx.resolver.notify(outcome)

    async def status(self, invocation: CommandInvocation) -> None:
        self.require_manager(invocation)
        name = invocation.args.get("name")

        if name:
            application = self.find_application(invocation.guild_id, name)
            ranked = rank_submissions(self.ctx.submissions, self.ctx.votes, application.id)
            top = get_settings().get("status_top_applicants", 10)
            await invocation.reply(status_embed(application, ranked, top))
            return

        applications = self.ctx.registry.list_for_guild(invocation.guild_id)
        if not applications:
            await invocation.reply(create_embed("📋 No Applications", "Use `/setupnew` to create one"))
            return

        counts = {app.id: len(self.ctx.submissions.list_by_application(app.id)) for app in applications}
        await invocation.reply(status_overview_embed(applications, counts))

    async def show_help(self, invocation: CommandInvocation) -> None:
        await invocation.reply(help_embed())

    async def ping(self, invocation: CommandInvocation) -> None:
        await invocation.reply(ping_embed(self.ctx.gateway.latency_ms()))

    # ========================================================================
    # Buttons
    # ========================================================================

    async def apply(self, press: ButtonPress, application_id: str) -> None:
        application = self.ctx.registry.require(application_id)
        self.ctx.submissions.check_can_submit(application, press.caller_id)

        with self.ctx.conversations.hold(press.caller_id):
            await press.reply(create_embed("📬 Check DMs", CHECK_DMS), ephemeral=True)
            await FillFlow(self.ctx, press.caller_id, application).run()

    async def vote(self, press: ButtonPress, submission_id: str, choice: str) -> None:
        config = self.ctx.configs.get(press.guild_id)
        if config is None:
            raise NotConfigured()
        if not can_vote(config, press.caller_id, press.caller_role_ids):
            raise PermissionDenied("Only voters can vote")

        submission = self.ctx.submissions.get(submission_id)
        if submission is None:
            raise NotFound("Submission not found")
        application = self.ctx.registry.get(submission.application_id)
        if application is None or application.closed:
            raise ApplicationClosed("Voting has ended for this application")

        tally = self.ctx.votes.cast(submission_id, press.caller_id, choice)
        logger.info(f"User {press.caller_id} voted {choice} on {submission_id}")

        await press.reply(vote_confirmation_embed(choice, tally.accept_count, tally.deny_count), ephemeral=True)
        try:
            await self.ctx.gateway.set_footer(press.message, vote_footer(tally.accept_count, tally.deny_count))
        except Exception as e:
            logger.warning(f"Couldn't update vote counts on review message for {submission_id}: {e}")

    async def dismiss(self, press: ButtonPress, submission_id: str) -> None:
        config = self.ctx.configs.get(press.guild_id)
        if not can_dismiss(config, press.caller_id):
            raise PermissionDenied("Only admin users can dismiss")

        self.ctx.submissions.dismiss(submission_id)
        await press.reply(create_embed("🗑️ Dismissed", "Submission dismissed"), ephemeral=True)
        try:
            await self.ctx.gateway.delete_message(press.message)
        except Exception as e:
            logger.warning(f"Couldn't delete review message for {submission_id}: {e}")
