"""
Application Models
Plain data records for guild configuration, applications, submissions and vote tallies.

Records reference each other by id only. Lookups always go through the
owning store in stores.py.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Set


QUESTION_KINDS = ("text", "image")


@dataclass
class Question:
    """A single prompt on an application form."""
    prompt: str
    kind: str = "text"


@dataclass
class Answer:
    question: str
    answer: str
    kind: str = "text"


@dataclass
class GuildConfig:
    """Per-guild permission and channel setup."""
    guild_id: int
    admin_user_ids: Set[int] = field(default_factory=set)
    admin_role_ids: Set[int] = field(default_factory=set)
    voter_role_ids: Set[int] = field(default_factory=set)
    mod_channel_id: Optional[int] = None


@dataclass
class Application:
    """A recruitment form with a deadline and optional capacity."""
    id: str
    guild_id: int
    name: str
    description: str
    channel_id: int
    deadline: datetime
    questions: List[Question]
    created_at: datetime
    accepted_count: Optional[int] = None
    image_url: Optional[str] = None
    submission_limit: Optional[int] = None
    closed: bool = False


# Fields the edit flow may change in place
EDITABLE_FIELDS = ("name", "description", "deadline", "accepted_count", "image_url", "questions")


@dataclass
class Submission:
    """One applicant's completed set of answers."""
    id: str
    application_id: str
    applicant_id: int
    answers: List[Answer]
    created_at: datetime


@dataclass
class VoteTally:
    """Accept/deny voter sets for one submission. The sets are kept disjoint."""
    submission_id: str
    accept: Set[int] = field(default_factory=set)
    deny: Set[int] = field(default_factory=set)

    @property
    def accept_count(self) -> int:
        return len(self.accept)

    @property
    def deny_count(self) -> int:
        return len(self.deny)
