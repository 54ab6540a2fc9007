import asyncio

import pytest

from branches.applications.conversation import (
    ActiveConversations,
    Conversation,
    ConversationState,
    Step,
    run_conversation,
)
from branches.applications.embeds import step_embed
from branches.applications.errors import ConversationTimeout, DeliveryFailure, ValidationError
from branches.applications.gateway import Reply

USER = 55


def _text_step(key, timeout=30, branch=None):
    def parse(reply, answers):
        if reply.content == "bad":
            raise ValidationError("bad input")
        return reply.content
    return Step(key, lambda answers: step_embed(key, f"Enter {key}"), parse, timeout, branch)


def test_feed_advances_and_completes():
    conversation = Conversation(USER, [_text_step("a"), _text_step("b")])

    async def runner():
        await conversation.feed(Reply("first"))
        assert conversation.current_step.key == "b"
        await conversation.feed(Reply("second"))

    asyncio.run(runner())
    assert conversation.state is ConversationState.COMPLETED
    assert conversation.answers == {"a": "first", "b": "second"}


def test_branch_inserts_steps_after_the_current_one():
    extra = _text_step("extra")
    steps = [_text_step("mode", branch=lambda value: [extra] if value == "custom" else []), _text_step("last")]
    conversation = Conversation(USER, steps)

    async def runner():
        await conversation.feed(Reply("custom"))
        assert conversation.current_step.key == "extra"
        await conversation.feed(Reply("x"))
        await conversation.feed(Reply("y"))

    asyncio.run(runner())
    assert conversation.answers == {"mode": "custom", "extra": "x", "last": "y"}


def test_invalid_reply_aborts_and_clears_answers():
    conversation = Conversation(USER, [_text_step("a"), _text_step("b")])

    async def runner():
        await conversation.feed(Reply("ok"))
        with pytest.raises(ValidationError):
            await conversation.feed(Reply("bad"))

    asyncio.run(runner())
    assert conversation.state is ConversationState.ABORTED
    assert conversation.answers == {}


def test_async_parse_is_awaited():
    async def parse(reply, answers):
        return reply.content.upper()

    conversation = Conversation(USER, [Step("a", lambda answers: step_embed("a", "a"), parse, 10)])
    asyncio.run(conversation.feed(Reply("hi")))
    assert conversation.answers == {"a": "HI"}


def test_run_conversation_uses_each_step_timeout(gateway):
    gateway.queue_replies(USER, "one", "two")
    conversation = Conversation(USER, [_text_step("a", timeout=120), _text_step("b", timeout=300)])

    answers = asyncio.run(run_conversation(gateway, conversation))

    assert answers == {"a": "one", "b": "two"}
    assert [timeout for _, timeout, _ in gateway.waits] == [120, 300]
    assert [e.title for e in gateway.dms_to(USER)] == ["a", "b"]


def test_run_conversation_timeout_aborts(gateway):
    gateway.queue_replies(USER, "one")
    conversation = Conversation(USER, [_text_step("a"), _text_step("b")])

    with pytest.raises(ConversationTimeout):
        asyncio.run(run_conversation(gateway, conversation))
    assert conversation.state is ConversationState.ABORTED
    assert conversation.answers == {}


def test_run_conversation_with_closed_dms(gateway):
    gateway.blocked_dm_users.add(USER)
    conversation = Conversation(USER, [_text_step("a")])

    with pytest.raises(DeliveryFailure):
        asyncio.run(run_conversation(gateway, conversation))
    assert gateway.waits == []
    assert conversation.state is ConversationState.ABORTED


def test_one_conversation_per_user():
    active = ActiveConversations()

    with active.hold(USER):
        assert USER in active
        with pytest.raises(ValidationError):
            with active.hold(USER):
                pass
        with active.hold(USER + 1):
            pass

    assert USER not in active
