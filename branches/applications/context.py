"""
Branch Context
Bundles the stores and collaborators shared by the flows and the command service.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from .conversation import ActiveConversations
from .helpers import get_timeouts
from .lifecycle import DeadlineSweeper, LifecycleResolver, utcnow
from .stores import ApplicationRegistry, ConfigStore, SubmissionStore, VoteAggregator


@dataclass
class BranchContext:
    gateway: object
    configs: ConfigStore
    registry: ApplicationRegistry
    votes: VoteAggregator
    submissions: SubmissionStore
    resolver: LifecycleResolver
    sweeper: DeadlineSweeper
    clock: Callable[[], datetime] = utcnow
    conversations: ActiveConversations = field(default_factory=ActiveConversations)
    timeouts: dict = field(default_factory=get_timeouts)


def build_context(gateway, clock: Callable[[], datetime] = utcnow) -> BranchContext:
    """Wire up a fresh, empty set of stores around a gateway."""
    configs = ConfigStore()
    registry = ApplicationRegistry()
    votes = VoteAggregator()
    submissions = SubmissionStore(votes)
    resolver = LifecycleResolver(gateway, registry, submissions)
    sweeper = DeadlineSweeper(registry, resolver, clock)
    return BranchContext(
        gateway=gateway,
        configs=configs,
        registry=registry,
        votes=votes,
        submissions=submissions,
        resolver=resolver,
        sweeper=sweeper,
        clock=clock,
    )
