"""
Application Stores
In-memory repositories for guild config, applications, submissions and votes.

All state lives for the process lifetime only. Each store exposes a narrow
interface so callers never touch the underlying dicts directly.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .errors import ApplicationClosed, LimitExceeded, NotFound, ValidationError
from .models import (
    EDITABLE_FIELDS,
    Answer,
    Application,
    GuildConfig,
    Question,
    Submission,
    VoteTally,
)

logger = logging.getLogger(__name__)

VOTE_CHOICES = ("accept", "deny")


def _epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


class ConfigStore:
    """Per-guild configuration plus the set of guilds with prefix commands enabled."""

    def __init__(self):
        self._configs: Dict[int, GuildConfig] = {}
        self._prefix_guilds = set()

    def get(self, guild_id: int) -> Optional[GuildConfig]:
        return self._configs.get(guild_id)

    def is_configured(self, guild_id: int) -> bool:
        return guild_id in self._configs

    def merge(
        self,
        guild_id: int,
        admin_role_ids: Iterable[int] = (),
        admin_user_ids: Iterable[int] = (),
        voter_role_ids: Iterable[int] = (),
        mod_channel_id: Optional[int] = None,
    ) -> GuildConfig:
        """
        Union new ids into the guild's config, creating it on first use.

        A new moderator channel replaces the previous one; id sets only grow.
        """
        config = self._configs.get(guild_id)
        if config is None:
            config = GuildConfig(guild_id=guild_id)
            self._configs[guild_id] = config
            logger.info(f"Created config for guild {guild_id}")

        config.admin_role_ids.update(admin_role_ids)
        config.admin_user_ids.update(admin_user_ids)
        config.voter_role_ids.update(voter_role_ids)
        if mod_channel_id is not None:
            config.mod_channel_id = mod_channel_id

        return config

    def enable_prefix(self, guild_id: int) -> None:
        self._prefix_guilds.add(guild_id)

    def prefix_enabled(self, guild_id: int) -> bool:
        return guild_id in self._prefix_guilds


class ApplicationRegistry:
    """Owns application records and their open/closed flag."""

    def __init__(self):
        self._applications: Dict[str, Application] = {}

    def create(
        self,
        guild_id: int,
        *,
        name: str,
        description: str,
        channel_id: int,
        deadline: datetime,
        questions: List[Question],
        created_at: datetime,
        accepted_count: Optional[int] = None,
        image_url: Optional[str] = None,
        submission_limit: Optional[int] = None,
    ) -> Application:
        """Create an application. Name collisions are not checked here."""
        stamp = _epoch_ms(created_at)
        app_id = f"{guild_id}-{stamp}"
        while app_id in self._applications:
            stamp += 1
            app_id = f"{guild_id}-{stamp}"

        application = Application(
            id=app_id,
            guild_id=guild_id,
            name=name,
            description=description,
            channel_id=channel_id,
            deadline=deadline,
            questions=list(questions),
            created_at=created_at,
            accepted_count=accepted_count,
            image_url=image_url,
            submission_limit=submission_limit,
        )
        self._applications[app_id] = application
        logger.info(f"Created application '{name}' ({app_id}) in guild {guild_id}")
        return application

    def get(self, application_id: str) -> Optional[Application]:
        return self._applications.get(application_id)

    def require(self, application_id: str) -> Application:
        application = self._applications.get(application_id)
        if application is None:
            raise NotFound("Application not found")
        return application

    def find_by_name(self, guild_id: int, name: str) -> Optional[Application]:
        """Case-insensitive exact match; first match in creation order wins."""
        wanted = name.lower()
        for application in self._applications.values():
            if application.guild_id == guild_id and application.name.lower() == wanted:
                return application
        return None

    def list_for_guild(self, guild_id: int) -> List[Application]:
        return [a for a in self._applications.values() if a.guild_id == guild_id]

    def list_open(self) -> List[Application]:
        return [a for a in self._applications.values() if not a.closed]

    def edit(self, application_id: str, field_name: str, value) -> Application:
        if field_name not in EDITABLE_FIELDS:
            raise ValidationError(f"Can't edit field '{field_name}'")
        application = self.require(application_id)
        setattr(application, field_name, value)
        logger.info(f"Edited {field_name} of application {application_id}")
        return application

    def remove(self, application_id: str) -> Application:
        application = self._applications.pop(application_id, None)
        if application is None:
            raise NotFound("Application not found")
        logger.info(f"Removed application '{application.name}' ({application_id})")
        return application

    def mark_closed(self, application_id: str) -> bool:
        """Flip the closed flag. Returns False if it was already closed."""
        application = self.require(application_id)
        if application.closed:
            return False
        application.closed = True
        return True


class VoteAggregator:
    """Accept/deny tallies keyed by submission id."""

    def __init__(self):
        self._tallies: Dict[str, VoteTally] = {}

    def open_tally(self, submission_id: str) -> VoteTally:
        tally = VoteTally(submission_id=submission_id)
        self._tallies[submission_id] = tally
        return tally

    def get(self, submission_id: str) -> Optional[VoteTally]:
        return self._tallies.get(submission_id)

    def counts(self, submission_id: str) -> tuple:
        tally = self._tallies.get(submission_id)
        if tally is None:
            return 0, 0
        return tally.accept_count, tally.deny_count

    def cast(self, submission_id: str, voter_id: int, choice: str) -> VoteTally:
        """
        Record a vote, replacing any earlier vote by the same user.

        Args:
            submission_id: Submission being voted on
            voter_id: User casting the vote
            choice: "accept" or "deny"

        Returns:
            The updated tally
        """
        if choice not in VOTE_CHOICES:
            raise ValidationError(f"Unknown vote '{choice}'")
        tally = self._tallies.get(submission_id)
        if tally is None:
            raise NotFound("Vote data not found")

        tally.accept.discard(voter_id)
        tally.deny.discard(voter_id)
        getattr(tally, choice).add(voter_id)
        return tally

    def discard(self, submission_id: str) -> None:
        self._tallies.pop(submission_id, None)


class SubmissionStore:
    """Submissions keyed by id. Each submission owns the tally with the same id."""

    def __init__(self, votes: VoteAggregator):
        self._submissions: Dict[str, Submission] = {}
        self.votes = votes

    def get(self, submission_id: str) -> Optional[Submission]:
        return self._submissions.get(submission_id)

    def list_by_application(self, application_id: str) -> List[Submission]:
        return [s for s in self._submissions.values() if s.application_id == application_id]

    def count_for(self, application_id: str, applicant_id: int) -> int:
        return sum(
            1 for s in self._submissions.values()
            if s.application_id == application_id and s.applicant_id == applicant_id
        )

    def check_can_submit(self, application: Application, applicant_id: int) -> None:
        """Raise if the applicant may not submit to this application right now."""
        if application.closed:
            raise ApplicationClosed("No longer accepting submissions")
        limit = application.submission_limit
        if limit and self.count_for(application.id, applicant_id) >= limit:
            raise LimitExceeded(f"Max {limit} submissions")

    def accept(
        self,
        application: Application,
        applicant_id: int,
        answers: List[Answer],
        now: datetime,
    ) -> Submission:
        """Store a completed submission and open its empty vote tally."""
        self.check_can_submit(application, applicant_id)

        stamp = _epoch_ms(now)
        submission_id = f"{application.id}-{applicant_id}-{stamp}"
        while submission_id in self._submissions:
            stamp += 1
            submission_id = f"{application.id}-{applicant_id}-{stamp}"

        submission = Submission(
            id=submission_id,
            application_id=application.id,
            applicant_id=applicant_id,
            answers=list(answers),
            created_at=now,
        )
        self._submissions[submission_id] = submission
        self.votes.open_tally(submission_id)
        logger.info(f"Stored submission {submission_id} from user {applicant_id}")
        return submission

    def dismiss(self, submission_id: str) -> Submission:
        """Delete a submission together with its vote tally."""
        submission = self._submissions.pop(submission_id, None)
        if submission is None:
            raise NotFound("Submission not found")
        self.votes.discard(submission_id)
        logger.info(f"Dismissed submission {submission_id}")
        return submission
