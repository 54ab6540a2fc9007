"""
Application Flows
The three DM conversations: creating an application, editing one, and filling one in.

Each flow builds its steps, runs them through the conversation engine and
commits only when every step succeeded. Stores are re-read by id at commit
time because other users' events may have changed them while a flow was
waiting for replies.
"""

import logging
from typing import List, Optional

from utils import check_submission_spam, sanitize_text

from .context import BranchContext
from .conversation import Conversation, Step, run_conversation
from .embeds import (
    abort_embed,
    application_embed,
    question_embed,
    review_embed,
    step_embed,
)
from .errors import (
    ApplicationError,
    ConversationCancelled,
    ConversationTimeout,
    DeliveryFailure,
    NotFound,
    ValidationError,
)
from .helpers import create_embed, error_embed, get_default_questions
from .models import Answer, Application, Question, Submission
from .parsing import (
    parse_channel_id,
    parse_deadline,
    parse_optional_count,
    parse_optional_text,
    parse_question_list,
)
from .views import apply_buttons, review_buttons

logger = logging.getLogger(__name__)

QUESTION_FORMAT_HELP = (
    "Format:\n\n```\n1. Question | type\n2. Question | type\n```\n"
    "**Types:**\n• `text`\n• `image`\n\n"
    "**Example:**\n```\n1. Why join? | text\n2. Upload screenshot | image\n```"
)

EDIT_CHOICES = {
    "1": "name",
    "2": "description",
    "3": "deadline",
    "4": "accepted_count",
    "5": "image_url",
    "6": "questions",
}


def _required_text(max_length: int):
    def parse(reply, answers):
        text = sanitize_text(reply.content, max_length=max_length)
        if not text:
            raise ValidationError("Please send a text reply")
        return text
    return parse


def _prompt(title: str, description: str):
    return lambda answers: step_embed(title, description)


class Flow:
    """Shared run/abort handling for the DM flows."""

    name = "Flow"
    timeout_message = "Cancelled or timed out"

    def __init__(self, ctx: BranchContext, user_id: int):
        self.ctx = ctx
        self.user_id = user_id

    def steps(self) -> List[Step]:
        raise NotImplementedError

    async def commit(self, answers):
        raise NotImplementedError

    async def run(self):
        """
        Run the conversation and commit its result.

        Returns:
            Whatever commit returns, or None if the flow was aborted

        Raises:
            DeliveryFailure: the user's DMs are closed, so the caller has to
                report it somewhere else
        """
        conversation = Conversation(self.user_id, self.steps(), name=self.name)
        try:
            answers = await run_conversation(self.ctx.gateway, conversation)
            return await self.commit(answers)
        except DeliveryFailure as e:
            logger.warning(f"{self.name} for user {self.user_id} stopped: {e.message}")
            raise
        except ConversationTimeout:
            await self.dm_quietly(error_embed("❌ Failed", self.timeout_message))
            return None
        except ApplicationError as e:
            await self.dm_quietly(abort_embed(e.title, e.message))
            return None

    async def dm_quietly(self, embed) -> None:
        try:
            await self.ctx.gateway.send_dm(self.user_id, embed)
        except Exception as e:
            logger.warning(f"Couldn't DM {self.user_id}: {e}")


class SetupFlow(Flow):
    """Seven fixed steps plus question definition; creates and announces an application."""

    name = "Setup"
    timeout_message = "Setup cancelled or timed out"

    def __init__(self, ctx: BranchContext, user_id: int, guild_id: int):
        super().__init__(ctx, user_id)
        self.guild_id = guild_id

    def steps(self) -> List[Step]:
        step_timeout = self.ctx.timeouts["setup_step"]

        async def parse_channel(reply, answers):
            channel_id = parse_channel_id(reply.content)
            if not await self.ctx.gateway.channel_exists(self.guild_id, channel_id):
                raise ValidationError("Invalid channel ID")
            return channel_id

        def parse_deadline_reply(reply, answers):
            return parse_deadline(reply.content, self.ctx.clock())

        def parse_mode(reply, answers):
            return "default" if reply.content.strip().lower() == "default" else "custom"

        def custom_questions(mode):
            if mode != "custom":
                return []
            return [Step(
                key="questions",
                prompt=_prompt("Custom Questions", QUESTION_FORMAT_HELP),
                parse=lambda reply, answers: parse_question_list(reply.content),
                timeout=self.ctx.timeouts["question_list"],
            )]

        return [
            Step("name", _prompt("Step 1/7", "📌 Enter a name for this application:\n\n*Example: Staff Application*"),
                 _required_text(100), step_timeout),
            Step("description", _prompt("Step 2/7", "📄 Enter the description:\n\n*This will be shown to applicants*"),
                 _required_text(4000), step_timeout),
            Step("channel_id", _prompt("Step 3/7", "📢 Enter the **Channel ID** where application will be posted:\n\n*Right-click channel → Copy Channel ID*"),
                 parse_channel, step_timeout),
            Step("deadline", _prompt("Step 4/7", "⏰ Duration:\n\n**Examples:**\n• `3 days`\n• `1 week`\n• `24 hours`"),
                 parse_deadline_reply, step_timeout),
            Step("accepted_count", _prompt("Step 5/7", "👥 How many will be **accepted**?\n\n*Type \"skip\" for no limit*"),
                 lambda reply, answers: parse_optional_count(reply.content), step_timeout),
            Step("image_url", _prompt("Step 6/7", "🖼️ Image URL (optional):\n\n*Type \"skip\" to continue without image*"),
                 lambda reply, answers: parse_optional_text(reply.content), step_timeout),
            Step("submission_limit", _prompt("Step 7/7", "🔢 Max submissions per user:\n\n*Type \"skip\" for no limit*"),
                 lambda reply, answers: parse_optional_count(reply.content), step_timeout),
            Step("question_mode", _prompt("Questions", "❓ Choose:\n\n• Type **\"default\"** - Use 4 standard questions\n• Type **\"custom\"** - Make your own"),
                 parse_mode, step_timeout, branch=custom_questions),
        ]

    async def commit(self, answers) -> Application:
        name = answers["name"]
        if self.ctx.registry.find_by_name(self.guild_id, name):
            raise ValidationError(f"An application named **{name}** already exists")

        questions = answers.get("questions") or get_default_questions()
        now = self.ctx.clock()
        application = self.ctx.registry.create(
            self.guild_id,
            name=name,
            description=answers["description"],
            channel_id=answers["channel_id"],
            deadline=answers["deadline"],
            questions=questions,
            created_at=now,
            accepted_count=answers["accepted_count"],
            image_url=answers["image_url"],
            submission_limit=answers["submission_limit"],
        )

        try:
            await self.ctx.gateway.send_to_channel(
                application.channel_id,
                application_embed(application, now),
                apply_buttons(application.id),
            )
        except Exception as e:
            logger.error(f"Failed to post application {application.id} in channel {application.channel_id}: {e}")
            self.ctx.registry.remove(application.id)
            raise ValidationError("Couldn't post the application in that channel. Check my permissions there.")

        await self.dm_quietly(
            create_embed("✅ Done", f"**{name}** posted in <#{application.channel_id}>\n\nID: `{application.id}`"),
        )
        return application


class EditFlow(Flow):
    """Menu-driven single field edit of an existing application."""

    name = "Edit"
    timeout_message = "Edit timed out"

    def __init__(self, ctx: BranchContext, user_id: int, application_id: str):
        super().__init__(ctx, user_id)
        self.application_id = application_id

    def _current(self) -> Application:
        return self.ctx.registry.require(self.application_id)

    def steps(self) -> List[Step]:
        def menu(answers):
            return step_embed(
                "✏️ Edit Menu",
                f"Current: **{self._current().name}**\n\nWhat to edit?\n\n"
                "`1` - Name\n`2` - Description\n`3` - Deadline\n`4` - Positions\n`5` - Image\n`6` - Questions\n`cancel` - Cancel",
            )

        def parse_choice(reply, answers):
            choice = reply.content.strip().lower()
            if choice == "cancel":
                raise ConversationCancelled("Edit cancelled")
            if choice not in EDIT_CHOICES:
                raise ValidationError("Invalid choice")
            return EDIT_CHOICES[choice]

        return [Step("field", menu, parse_choice, self.ctx.timeouts["edit_menu"], branch=lambda field: [self._field_step(field)])]

    def _field_step(self, field: str) -> Step:
        step_timeout = self.ctx.timeouts["setup_step"]

        if field == "name":
            return Step("value", lambda a: step_embed("Edit Name", f"Current: **{self._current().name}**\n\nNew name:"),
                        _required_text(100), step_timeout)
        if field == "description":
            return Step("value", lambda a: step_embed("Edit Description", f"Current: **{self._current().description}**\n\nNew:"),
                        _required_text(4000), step_timeout)
        if field == "deadline":
            return Step("value", lambda a: step_embed("Edit Deadline", f"Current: <t:{int(self._current().deadline.timestamp())}:F>\n\nNew duration:"),
                        lambda reply, a: parse_deadline(reply.content, self.ctx.clock()), step_timeout)
        if field == "accepted_count":
            return Step("value", lambda a: step_embed("Edit Positions", f"Current: **{self._current().accepted_count or 'Unlimited'}**\n\nNew (or \"skip\"):"),
                        lambda reply, a: parse_optional_count(reply.content), step_timeout)
        if field == "image_url":
            return Step("value", lambda a: step_embed("Edit Image", f"Current: {self._current().image_url or 'None'}\n\nNew URL (or \"skip\"):"),
                        lambda reply, a: parse_optional_text(reply.content), step_timeout)

        def parse_questions(reply, a):
            if reply.content.strip().lower() == "default":
                return get_default_questions()
            return parse_question_list(reply.content)

        return Step("value", lambda a: step_embed("Edit Questions", "Type \"default\" or custom:\n```\n1. Question | type\n```"),
                    parse_questions, self.ctx.timeouts["question_list"])

    async def commit(self, answers) -> Application:
        application = self.ctx.registry.edit(self.application_id, answers["field"], answers["value"])
        await self.dm_quietly(create_embed("✅ Updated", f"**{application.name}** updated"))
        return application


class FillFlow(Flow):
    """One step per configured question; stores the submission only if all answers pass."""

    name = "Application"
    timeout_message = "Application timed out. Nothing was submitted."

    def __init__(self, ctx: BranchContext, user_id: int, application: Application):
        super().__init__(ctx, user_id)
        self.application_id = application.id
        self.guild_id = application.guild_id
        self.questions: List[Question] = list(application.questions)

    def steps(self) -> List[Step]:
        total = len(self.questions)
        return [self._question_step(i, q, total) for i, q in enumerate(self.questions)]

    def _question_step(self, index: int, question: Question, total: int) -> Step:
        def parse(reply, answers):
            if question.kind == "image":
                if not reply.attachment_urls:
                    raise ValidationError("Image required")
                return Answer(question.prompt, reply.attachment_urls[0], "image")
            return Answer(question.prompt, sanitize_text(reply.content, max_length=4000), "text")

        return Step(
            key=f"answer_{index}",
            prompt=lambda answers: question_embed(index + 1, total, question.prompt, question.kind),
            parse=parse,
            timeout=self.ctx.timeouts["answer"],
        )

    async def commit(self, answers) -> Optional[Submission]:
        collected = [answers[f"answer_{i}"] for i in range(len(self.questions))]

        is_spam, reason = check_submission_spam(a.answer for a in collected if a.kind == "text")
        if is_spam:
            logger.info(f"Rejected submission from {self.user_id} for {self.application_id}: {reason}")
            await self.dm_quietly(
                error_embed("❌ Rejected", f"Auto-rejected.\n\n**Reason:** {reason}\n\nSubmit a real application."),
            )
            return None

        application = self.ctx.registry.get(self.application_id)
        if application is None:
            raise NotFound("This application was removed while you were answering")

        now = self.ctx.clock()
        submission = self.ctx.submissions.accept(application, self.user_id, collected, now)

        await self.dm_quietly(
            create_embed(
                "✅ Submitted",
                f"Thanks for applying to **{application.name}**!\n\nYour app was sent to mods. We'll contact you soon.",
            ),
        )
        await self._post_for_review(application, submission)
        return submission

    async def _post_for_review(self, application: Application, submission: Submission) -> None:
        config = self.ctx.configs.get(self.guild_id)
        if config is None or not config.mod_channel_id:
            logger.warning(f"No mod channel configured for guild {self.guild_id}; submission {submission.id} not posted")
            return

        try:
            await self.ctx.gateway.send_to_channel(
                config.mod_channel_id,
                review_embed(
                    application,
                    self.user_id,
                    self.ctx.gateway.display_name(self.user_id),
                    submission.answers,
                    submission.created_at,
                ),
                review_buttons(submission.id),
            )
        except Exception as e:
            logger.error(f"Failed to post submission {submission.id} to mod channel {config.mod_channel_id}: {e}")
