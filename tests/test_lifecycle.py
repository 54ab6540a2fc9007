import asyncio

import pytest

from branches.applications.errors import AlreadyClosed
from branches.applications.lifecycle import RankedSubmission, partition, rank_submissions
from branches.applications.models import Answer

from conftest import POST_CHANNEL, make_application


def _entry(n, accept, deny):
    return RankedSubmission(f"s{n}", n, accept, deny)


def _submit(ctx, application, applicant_id, accepts=0, denies=0):
    submission = ctx.submissions.accept(
        application, applicant_id, [Answer("Why?", "Because I like helping people.")], ctx.clock()
    )
    for voter in range(accepts):
        ctx.votes.cast(submission.id, 1000 + voter, "accept")
    for voter in range(denies):
        ctx.votes.cast(submission.id, 2000 + voter, "deny")
    return submission


def test_capped_partition_takes_top_entries_regardless_of_denies():
    ranked = [_entry(1, 5, 9), _entry(2, 3, 0), _entry(3, 3, 1), _entry(4, 0, 0)]
    winners, losers = partition(ranked, 2)
    assert [w.applicant_id for w in winners] == [1, 2]
    assert [l.applicant_id for l in losers] == [3, 4]


def test_capped_partition_with_fewer_submissions_than_slots():
    ranked = [_entry(1, 1, 0), _entry(2, 0, 3)]
    winners, losers = partition(ranked, 5)
    assert len(winners) == 2
    assert losers == []


def test_uncapped_partition_needs_more_accepts_than_denies():
    ranked = [_entry(1, 3, 2), _entry(2, 2, 2), _entry(3, 0, 0)]
    winners, losers = partition(ranked, None)
    assert [w.applicant_id for w in winners] == [1]
    assert [l.applicant_id for l in losers] == [2, 3]


def test_ranking_is_stable_for_equal_accept_counts(ctx):
    application = make_application(ctx)
    _submit(ctx, application, 11, accepts=1)
    _submit(ctx, application, 12, accepts=3)
    _submit(ctx, application, 13, accepts=1)
    _submit(ctx, application, 14, accepts=0)

    ranked = rank_submissions(ctx.submissions, ctx.votes, application.id)
    assert [r.applicant_id for r in ranked] == [12, 11, 13, 14]


def test_close_notifies_winners_and_losers(ctx, gateway):
    application = make_application(ctx, accepted_count=1)
    _submit(ctx, application, 11, accepts=1)
    _submit(ctx, application, 12, accepts=2)

    async def runner():
        return await ctx.resolver.close(application.id)

    outcome = asyncio.run(runner())

    assert application.closed
    assert [w.applicant_id for w in outcome.winners] == [12]
    assert [l.applicant_id for l in outcome.losers] == [11]

    results = gateway.messages_in(POST_CHANNEL)
    assert len(results) == 1
    assert "<@12>" in results[0].embed.description
    assert gateway.dms_to(12)[0].title == "🎉 Congratulations!"
    assert gateway.dms_to(11)[0].title == "📋 Update"


def test_closing_twice_raises_already_closed(ctx, gateway):
    application = make_application(ctx)

    async def runner():
        await ctx.resolver.close(application.id)
        with pytest.raises(AlreadyClosed):
            await ctx.resolver.close(application.id)

    asyncio.run(runner())
    assert application.closed
    assert len(gateway.messages_in(POST_CHANNEL)) == 1


def test_dm_failures_do_not_stop_other_notifications(ctx, gateway):
    application = make_application(ctx)
    _submit(ctx, application, 11, accepts=2)
    _submit(ctx, application, 12, accepts=2)
    _submit(ctx, application, 13, denies=1)
    gateway.blocked_dm_users.add(11)

    asyncio.run(ctx.resolver.close(application.id))

    assert application.closed
    assert gateway.dms_to(11) == []
    assert gateway.dms_to(12)[0].title == "🎉 Congratulations!"
    assert gateway.dms_to(13)[0].title == "📋 Update"


def test_results_channel_failure_still_sends_dms(ctx, gateway):
    application = make_application(ctx)
    _submit(ctx, application, 11, accepts=1)
    gateway.failing_channels.add(POST_CHANNEL)

    asyncio.run(ctx.resolver.close(application.id))

    assert application.closed
    assert gateway.dms_to(11)[0].title == "🎉 Congratulations!"


def test_decide_snapshots_without_notifying(ctx, gateway):
    application = make_application(ctx)
    _submit(ctx, application, 11, accepts=1)

    outcome = ctx.resolver.decide(application.id)

    assert application.closed
    assert len(outcome.ranked) == 1
    assert gateway.dms == []
