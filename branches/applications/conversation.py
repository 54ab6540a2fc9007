"""
Conversation Engine
Per-user question/answer sequences conducted over direct messages.

A Conversation is a small state machine: a list of steps, the index of the
current step and the answers collected so far. run_conversation drives it
by sending each prompt and suspending until the user replies or the step's
timeout passes. Any failure aborts the conversation and clears its answers,
so callers commit only after it completes.
"""

import inspect
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import discord

from .errors import ApplicationError, ValidationError
from .gateway import Reply

logger = logging.getLogger(__name__)


class ConversationState(Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class Step:
    """
    One prompt/reply exchange.

    parse receives the reply and the answers so far and returns the value
    stored under key. It may be a coroutine function. It raises
    ValidationError (or ConversationCancelled) to abort. branch, when set,
    returns extra steps to run right after this one based on the parsed value.
    """
    key: str
    prompt: Callable[[Dict[str, Any]], discord.Embed]
    parse: Callable[[Reply, Dict[str, Any]], Any]
    timeout: float
    branch: Optional[Callable[[Any], List["Step"]]] = None


class Conversation:
    def __init__(self, user_id: int, steps: List[Step], name: str = "conversation"):
        if not steps:
            raise ValueError("A conversation needs at least one step")
        self.user_id = user_id
        self.name = name
        self.steps = list(steps)
        self.index = 0
        self.answers: Dict[str, Any] = {}
        self.state = ConversationState.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.state is ConversationState.ACTIVE

    @property
    def current_step(self) -> Step:
        return self.steps[self.index]

    def prompt(self) -> discord.Embed:
        return self.current_step.prompt(self.answers)

    async def feed(self, reply: Reply) -> Any:
        """Apply a reply to the current step and advance."""
        if not self.is_active:
            raise RuntimeError(f"Conversation is {self.state.value}")

        step = self.current_step
        try:
            value = step.parse(reply, self.answers)
            if inspect.isawaitable(value):
                value = await value
        except ApplicationError:
            self.abort()
            raise

        self.answers[step.key] = value
        if step.branch is not None:
            self.steps[self.index + 1:self.index + 1] = step.branch(value)

        self.index += 1
        if self.index >= len(self.steps):
            self.state = ConversationState.COMPLETED
        return value

    def abort(self) -> None:
        """Drop everything collected so far."""
        self.state = ConversationState.ABORTED
        self.answers.clear()


class ActiveConversations:
    """Tracks users with a conversation in progress, one per user."""

    def __init__(self):
        self._users = set()

    def __contains__(self, user_id: int) -> bool:
        return user_id in self._users

    @contextmanager
    def hold(self, user_id: int):
        if user_id in self._users:
            raise ValidationError("You already have a conversation in progress. Finish it in your DMs first.")
        self._users.add(user_id)
        try:
            yield
        finally:
            self._users.discard(user_id)


async def run_conversation(gateway, conversation: Conversation) -> Dict[str, Any]:
    """
    Drive a conversation to completion.

    Returns:
        The collected answers keyed by step key

    Raises:
        ConversationTimeout, ValidationError, ConversationCancelled or
        DeliveryFailure. The conversation is aborted before the error propagates.
    """
    while conversation.is_active:
        step = conversation.current_step
        try:
            await gateway.send_dm(conversation.user_id, conversation.prompt())
            reply = await gateway.await_reply(conversation.user_id, step.timeout)
        except ApplicationError:
            conversation.abort()
            logger.info(f"{conversation.name} for user {conversation.user_id} aborted at step '{step.key}'")
            raise

        try:
            await conversation.feed(reply)
        except ApplicationError as e:
            logger.info(f"{conversation.name} for user {conversation.user_id} rejected step '{step.key}': {e.message}")
            raise

    return dict(conversation.answers)
