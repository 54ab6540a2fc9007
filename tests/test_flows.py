import asyncio
from datetime import timedelta

import pytest

from branches.applications.errors import DeliveryFailure
from branches.applications.flows import EditFlow, FillFlow, SetupFlow
from branches.applications.gateway import Reply
from branches.applications.helpers import get_default_questions
from branches.applications.models import Question

from conftest import ADMIN_USER, APPLICANT, GUILD_ID, LONG_ANSWERS, MOD_CHANNEL, POST_CHANNEL, make_application

SETUP_REPLIES = ["Staff Application", "Join the staff team", str(POST_CHANNEL), "3 days", "2", "skip", "1"]


def _run(flow):
    return asyncio.run(flow.run())


def _last_dm(gateway, user_id):
    return gateway.dms_to(user_id)[-1]


# ============================================================================
# Setup
# ============================================================================

def test_setup_with_default_questions(configured, gateway, clock):
    gateway.queue_replies(ADMIN_USER, *SETUP_REPLIES, "default")

    application = _run(SetupFlow(configured, ADMIN_USER, GUILD_ID))

    assert application is configured.registry.find_by_name(GUILD_ID, "staff application")
    assert application.deadline == clock() + timedelta(days=3)
    assert application.accepted_count == 2
    assert application.image_url is None
    assert application.submission_limit == 1
    assert application.questions == get_default_questions()

    announcement = gateway.messages_in(POST_CHANNEL)[0]
    assert [b.custom_id for b in announcement.buttons] == [f"apply-{application.id}"]
    done = _last_dm(gateway, ADMIN_USER)
    assert done.title == "✅ Done"
    assert application.id in done.description


def test_setup_with_custom_questions(configured, gateway):
    gateway.queue_replies(
        ADMIN_USER, *SETUP_REPLIES, "custom", "1. Why join? | text\n2. Upload screenshot | image"
    )

    application = _run(SetupFlow(configured, ADMIN_USER, GUILD_ID))

    assert application.questions == [Question("Why join?", "text"), Question("Upload screenshot", "image")]
    assert gateway.waits[-1][1] == 300


@pytest.mark.parametrize(
    "bad_index, bad_reply, message",
    [
        (2, "123", "Invalid channel ID"),
        (3, "garbage", "Invalid format"),
        (3, "3000000 days", "Invalid format"),
        (4, "lots", "Invalid number"),
    ],
)
def test_setup_invalid_reply_creates_nothing(configured, gateway, bad_index, bad_reply, message):
    replies = list(SETUP_REPLIES)
    replies[bad_index] = bad_reply
    gateway.queue_replies(ADMIN_USER, *replies, "default")

    assert _run(SetupFlow(configured, ADMIN_USER, GUILD_ID)) is None

    assert configured.registry.list_for_guild(GUILD_ID) == []
    assert gateway.channel_messages == []
    notice = _last_dm(gateway, ADMIN_USER)
    assert notice.title == "❌ Invalid"
    assert notice.description == message


def test_setup_custom_questions_without_valid_lines(configured, gateway):
    gateway.queue_replies(ADMIN_USER, *SETUP_REPLIES, "custom", "why join?")

    assert _run(SetupFlow(configured, ADMIN_USER, GUILD_ID)) is None
    assert configured.registry.list_for_guild(GUILD_ID) == []
    assert _last_dm(gateway, ADMIN_USER).description == "No valid questions found"


def test_setup_timeout(configured, gateway):
    gateway.queue_replies(ADMIN_USER, "Staff Application", "Join the staff team")

    assert _run(SetupFlow(configured, ADMIN_USER, GUILD_ID)) is None
    assert configured.registry.list_for_guild(GUILD_ID) == []
    notice = _last_dm(gateway, ADMIN_USER)
    assert notice.title == "❌ Failed"
    assert notice.description == "Setup cancelled or timed out"


def test_setup_refuses_duplicate_name(configured, gateway):
    make_application(configured, "STAFF APPLICATION")
    gateway.queue_replies(ADMIN_USER, *SETUP_REPLIES, "default")

    assert _run(SetupFlow(configured, ADMIN_USER, GUILD_ID)) is None
    assert len(configured.registry.list_for_guild(GUILD_ID)) == 1
    assert "already exists" in _last_dm(gateway, ADMIN_USER).description


def test_setup_rolls_back_when_announcement_fails(configured, gateway):
    gateway.failing_channels.add(POST_CHANNEL)
    gateway.queue_replies(ADMIN_USER, *SETUP_REPLIES, "default")

    assert _run(SetupFlow(configured, ADMIN_USER, GUILD_ID)) is None
    assert configured.registry.list_for_guild(GUILD_ID) == []
    assert _last_dm(gateway, ADMIN_USER).title == "❌ Invalid"


def test_setup_with_closed_dms_raises(configured, gateway):
    gateway.blocked_dm_users.add(ADMIN_USER)

    with pytest.raises(DeliveryFailure):
        _run(SetupFlow(configured, ADMIN_USER, GUILD_ID))
    assert gateway.waits == []


# ============================================================================
# Edit
# ============================================================================

def test_edit_deadline_counts_from_now(configured, gateway, clock):
    application = make_application(configured)
    clock.advance(days=1)
    gateway.queue_replies(ADMIN_USER, "3", "1 week")

    _run(EditFlow(configured, ADMIN_USER, application.id))

    assert application.deadline == clock() + timedelta(weeks=1)
    assert _last_dm(gateway, ADMIN_USER).title == "✅ Updated"


def test_edit_deadline_out_of_range(configured, gateway):
    application = make_application(configured)
    deadline = application.deadline
    gateway.queue_replies(ADMIN_USER, "3", "3000000 days")

    assert _run(EditFlow(configured, ADMIN_USER, application.id)) is None
    assert application.deadline == deadline
    notice = _last_dm(gateway, ADMIN_USER)
    assert notice.title == "❌ Invalid"
    assert notice.description == "Invalid format"


def test_edit_positions_and_questions(configured, gateway):
    application = make_application(configured, accepted_count=3)
    gateway.queue_replies(ADMIN_USER, "4", "skip")
    _run(EditFlow(configured, ADMIN_USER, application.id))
    assert application.accepted_count is None

    gateway.queue_replies(ADMIN_USER, "6", "default")
    _run(EditFlow(configured, ADMIN_USER, application.id))
    assert application.questions == get_default_questions()


def test_edit_cancel_changes_nothing(configured, gateway):
    application = make_application(configured, "Staff")
    gateway.queue_replies(ADMIN_USER, "cancel")

    assert _run(EditFlow(configured, ADMIN_USER, application.id)) is None
    assert application.name == "Staff"
    assert _last_dm(gateway, ADMIN_USER).description == "Edit cancelled"


def test_edit_invalid_choice(configured, gateway):
    application = make_application(configured)
    gateway.queue_replies(ADMIN_USER, "9")

    assert _run(EditFlow(configured, ADMIN_USER, application.id)) is None
    assert _last_dm(gateway, ADMIN_USER).description == "Invalid choice"


def test_edit_of_application_removed_mid_flow(configured, gateway):
    application = make_application(configured, "Staff")

    def remove_then_answer():
        configured.registry.remove(application.id)
        return "Builders"

    gateway.queue_replies(ADMIN_USER, "1", remove_then_answer)

    assert _run(EditFlow(configured, ADMIN_USER, application.id)) is None
    assert configured.registry.find_by_name(GUILD_ID, "Builders") is None
    assert _last_dm(gateway, ADMIN_USER).title == "❌ Not Found"


# ============================================================================
# Fill
# ============================================================================

def _image_application(ctx):
    return make_application(ctx, questions=[Question("Why?"), Question("When?"), Question("Screenshot", "image")])


def test_fill_stores_submission_and_posts_review(configured, gateway):
    application = _image_application(configured)
    gateway.queue_replies(APPLICANT, *LONG_ANSWERS, Reply("", ["https://cdn.example/shot.png"]))

    submission = _run(FillFlow(configured, APPLICANT, application))

    assert configured.submissions.get(submission.id) is submission
    assert [a.kind for a in submission.answers] == ["text", "text", "image"]
    assert submission.answers[2].answer == "https://cdn.example/shot.png"
    assert configured.votes.counts(submission.id) == (0, 0)
    assert [timeout for _, timeout, _ in gateway.waits] == [600, 600, 600]

    review = gateway.messages_in(MOD_CHANNEL)[0]
    assert [b.custom_id for b in review.buttons] == [
        f"vote-accept-{submission.id}",
        f"vote-deny-{submission.id}",
        f"dismiss-{submission.id}",
    ]
    assert review.embed.image.url == "https://cdn.example/shot.png"
    assert _last_dm(gateway, APPLICANT).title == "✅ Submitted"


def test_fill_image_question_requires_attachment(configured, gateway):
    application = _image_application(configured)
    gateway.queue_replies(APPLICANT, *LONG_ANSWERS, "here is my screenshot")

    assert _run(FillFlow(configured, APPLICANT, application)) is None
    assert configured.submissions.list_by_application(application.id) == []
    assert _last_dm(gateway, APPLICANT).description == "Image required"


def test_fill_rejects_spam(configured, gateway):
    application = make_application(configured)
    gateway.queue_replies(APPLICANT, "ok", "ok")

    assert _run(FillFlow(configured, APPLICANT, application)) is None
    assert configured.submissions.list_by_application(application.id) == []
    assert gateway.messages_in(MOD_CHANNEL) == []
    rejected = _last_dm(gateway, APPLICANT)
    assert rejected.title == "❌ Rejected"
    assert "Answers too short" in rejected.description


def test_fill_refused_when_closed_while_answering(configured, gateway):
    application = make_application(configured)

    def close_then_answer():
        configured.resolver.decide(application.id)
        return LONG_ANSWERS[1]

    gateway.queue_replies(APPLICANT, LONG_ANSWERS[0], close_then_answer)

    assert _run(FillFlow(configured, APPLICANT, application)) is None
    assert configured.submissions.list_by_application(application.id) == []
    assert _last_dm(gateway, APPLICANT).title == "❌ Closed"


def test_fill_timeout_stores_nothing(configured, gateway):
    application = make_application(configured)
    gateway.queue_replies(APPLICANT, LONG_ANSWERS[0])

    assert _run(FillFlow(configured, APPLICANT, application)) is None
    assert configured.submissions.list_by_application(application.id) == []
    assert _last_dm(gateway, APPLICANT).title == "❌ Failed"


def test_fill_without_mod_channel_still_stores(ctx, gateway):
    ctx.configs.merge(GUILD_ID, admin_user_ids=[ADMIN_USER])
    application = make_application(ctx)
    gateway.queue_replies(APPLICANT, *LONG_ANSWERS)

    submission = _run(FillFlow(ctx, APPLICANT, application))

    assert ctx.submissions.get(submission.id) is submission
    assert gateway.channel_messages == []
