"""
Application Lifecycle
Ranking, resolution (close) and the deadline sweep.

Resolution takes one atomic snapshot: it ranks submissions, partitions them
into winners and losers and marks the application closed without yielding
to the event loop. Notifications go out afterwards and never undo the close.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from .embeds import accepted_dm_embed, not_selected_dm_embed, results_embed
from .errors import AlreadyClosed, DeliveryFailure, NotFound
from .stores import ApplicationRegistry, SubmissionStore, VoteAggregator

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RankedSubmission:
    submission_id: str
    applicant_id: int
    accept: int
    deny: int


@dataclass
class Outcome:
    """Result of closing an application."""
    application_id: str
    ranked: List[RankedSubmission]
    winners: List[RankedSubmission]
    losers: List[RankedSubmission]


def rank_submissions(submissions: SubmissionStore, votes: VoteAggregator, application_id: str) -> List[RankedSubmission]:
    """Submissions with their vote counts, most accept votes first (stable)."""
    entries = []
    for submission in submissions.list_by_application(application_id):
        accept, deny = votes.counts(submission.id)
        entries.append(RankedSubmission(submission.id, submission.applicant_id, accept, deny))
    return sorted(entries, key=lambda entry: -entry.accept)


def partition(ranked: Sequence[RankedSubmission], cap: Optional[int]) -> Tuple[List[RankedSubmission], List[RankedSubmission]]:
    """
    Split ranked submissions into winners and losers.

    With a cap, the top ``cap`` entries win regardless of deny votes. Without
    one, an entry wins only with strictly more accept than deny votes.
    """
    if cap:
        return list(ranked[:cap]), list(ranked[cap:])

    winners = [entry for entry in ranked if entry.accept > entry.deny]
    losers = [entry for entry in ranked if entry.accept <= entry.deny]
    return winners, losers


class LifecycleResolver:
    """Closes applications and sends out the results."""

    def __init__(self, gateway, registry: ApplicationRegistry, submissions: SubmissionStore):
        self.gateway = gateway
        self.registry = registry
        self.submissions = submissions

    def decide(self, application_id: str) -> Outcome:
        """Snapshot the tallies, pick winners and mark the application closed."""
        application = self.registry.require(application_id)
        if application.closed:
            raise AlreadyClosed(f"**{application.name}** already closed")

        ranked = rank_submissions(self.submissions, self.submissions.votes, application_id)
        winners, losers = partition(ranked, application.accepted_count)
        self.registry.mark_closed(application_id)

        logger.info(
            f"Closed application '{application.name}' ({application_id}): "
            f"{len(winners)} accepted, {len(losers)} not selected"
        )
        return Outcome(application_id, ranked, winners, losers)

    async def close(self, application_id: str) -> Outcome:
        """Resolve an application and notify everyone involved."""
        outcome = self.decide(application_id)
        await self.notify(outcome)
        return outcome

    async def notify(self, outcome: Outcome) -> None:
        application = self.registry.get(outcome.application_id)
        if application is None:
            logger.warning(f"Application {outcome.application_id} removed before results were sent")
            return

        try:
            await self.gateway.send_to_channel(
                application.channel_id,
                results_embed(application, outcome.winners, len(outcome.ranked)),
            )
        except Exception as e:
            logger.error(f"Failed to post results for {application.id} in channel {application.channel_id}: {e}")

        for winner in outcome.winners:
            await self._send_result_dm(winner.applicant_id, accepted_dm_embed(application))

        for loser in outcome.losers:
            await self._send_result_dm(loser.applicant_id, not_selected_dm_embed(application))

    async def _send_result_dm(self, user_id: int, embed) -> None:
        try:
            await self.gateway.send_dm(user_id, embed)
        except DeliveryFailure:
            logger.warning(f"Couldn't DM {user_id} - DMs closed")
        except Exception as e:
            logger.error(f"Failed to DM {user_id}: {e}")


class DeadlineSweeper:
    """Closes every open application whose deadline has passed."""

    def __init__(self, registry: ApplicationRegistry, resolver: LifecycleResolver, clock: Callable[[], datetime] = utcnow):
        self.registry = registry
        self.resolver = resolver
        self.clock = clock

    async def sweep(self) -> List[str]:
        """
        Run one sweep tick.

        Returns:
            Ids of the applications closed during this tick
        """
        now = self.clock()
        closed = []

        for application in self.registry.list_open():
            if now < application.deadline:
                continue
            try:
                await self.resolver.close(application.id)
                closed.append(application.id)
            except (AlreadyClosed, NotFound) as e:
                # Ended or removed while an earlier application was notifying
                logger.debug(f"Skipped expired application {application.id}: {e}")
            except Exception as e:
                logger.error(f"Error closing expired application {application.id}: {e}", exc_info=True)

        if closed:
            logger.info(f"Deadline sweep closed {len(closed)} application(s)")
        return closed
