"""Pytest configuration for shared test fixtures."""

from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone

import pytest

from branches.applications.context import build_context
from branches.applications.errors import ConversationTimeout, DeliveryFailure
from branches.applications.gateway import Reply
from branches.applications.invocation import ButtonPress, CommandInvocation
from branches.applications.models import Question
from branches.applications.service import ApplicationService

GUILD_ID = 1000
ADMIN_USER = 1
ADMIN_ROLE = 10
VOTER_ROLE = 20
MOD_CHANNEL = 500
POST_CHANNEL = 600
APPLICANT = 7

LONG_ANSWERS = [
    "I have been moderating communities for three years and enjoy it.",
    "I can help out most evenings and on weekends during the summer.",
]


class FakeClock:
    def __init__(self, start: datetime = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMessage:
    def __init__(self, target: int, embed, buttons):
        self.target = target
        self.embed = embed
        self.buttons = list(buttons)
        self.footer = None
        self.deleted = False


class FakeGateway:
    """In-memory MessagingGateway that records traffic and plays scripted replies."""

    def __init__(self):
        self.channel_messages = []
        self.dms = []
        self.waits = []
        self.replies = defaultdict(deque)
        self.blocked_dm_users = set()
        self.failing_channels = set()
        self.channels = {MOD_CHANNEL, POST_CHANNEL}

    def queue_replies(self, user_id, *replies) -> None:
        """
        Script replies for a user.

        Items may be strings, Reply objects, exceptions to raise, or
        callables run at wait time that return one of those.
        """
        self.replies[user_id].extend(replies)

    def dms_to(self, user_id):
        return [m.embed for m in self.dms if m.target == user_id]

    def messages_in(self, channel_id):
        return [m for m in self.channel_messages if m.target == channel_id]

    async def send_to_channel(self, channel_id, embed, buttons=()):
        if channel_id in self.failing_channels:
            raise RuntimeError("Missing Access")
        message = FakeMessage(channel_id, embed, buttons)
        self.channel_messages.append(message)
        return message

    async def send_dm(self, user_id, embed, buttons=()):
        if user_id in self.blocked_dm_users:
            raise DeliveryFailure("Can't send you DMs. Enable DMs from server members first.")
        message = FakeMessage(user_id, embed, buttons)
        self.dms.append(message)
        return message

    async def await_reply(self, user_id, timeout, channel_id=None):
        self.waits.append((user_id, timeout, channel_id))
        queue = self.replies[user_id]
        if not queue:
            raise ConversationTimeout()

        item = queue.popleft()
        if callable(item):
            item = item()
        if isinstance(item, Exception):
            raise item
        if isinstance(item, str):
            return Reply(item)
        return item

    async def channel_exists(self, guild_id, channel_id):
        return channel_id in self.channels

    async def set_footer(self, message, text):
        message.footer = text

    async def delete_message(self, message):
        message.deleted = True

    def display_name(self, user_id):
        return f"user{user_id}"

    def latency_ms(self):
        return 42


class ReplyRecorder:
    """Stands in for an interaction or context reply."""

    def __init__(self):
        self.embeds = []

    async def __call__(self, embed, ephemeral=True):
        self.embeds.append(embed)

    @property
    def titles(self):
        return [e.title for e in self.embeds]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def ctx(gateway, clock):
    return build_context(gateway, clock)


@pytest.fixture
def configured(ctx):
    """A context whose guild has admins, voters and a mod channel set up."""
    ctx.configs.merge(
        GUILD_ID,
        admin_role_ids=[ADMIN_ROLE],
        admin_user_ids=[ADMIN_USER],
        voter_role_ids=[VOTER_ROLE],
        mod_channel_id=MOD_CHANNEL,
    )
    return ctx


@pytest.fixture
def service(configured):
    return ApplicationService(configured)


def make_application(ctx, name="Staff", *, days=3, accepted_count=None, submission_limit=None, questions=None):
    return ctx.registry.create(
        GUILD_ID,
        name=name,
        description="Join the staff team",
        channel_id=POST_CHANNEL,
        deadline=ctx.clock() + timedelta(days=days),
        questions=questions or [Question("Why?"), Question("When?")],
        created_at=ctx.clock(),
        accepted_count=accepted_count,
        submission_limit=submission_limit,
    )


def make_invocation(command, caller_id=ADMIN_USER, roles=(), guild_admin=False, guild_id=GUILD_ID, **args):
    return CommandInvocation(
        caller_id=caller_id,
        caller_role_ids=frozenset(roles),
        guild_id=guild_id,
        channel_id=42,
        command=command,
        reply=ReplyRecorder(),
        args=args,
        is_guild_admin=guild_admin,
    )


def make_press(custom_id, caller_id=ADMIN_USER, roles=(), message=None):
    return ButtonPress(
        caller_id=caller_id,
        caller_role_ids=frozenset(roles),
        guild_id=GUILD_ID,
        custom_id=custom_id,
        message=message or FakeMessage(MOD_CHANNEL, None, ()),
        reply=ReplyRecorder(),
    )
