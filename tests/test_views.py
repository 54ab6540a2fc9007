import asyncio

from branches.applications.views import RoutedButtonView, apply_buttons, review_buttons


def _build(buttons):
    async def build():
        return RoutedButtonView(buttons)
    return asyncio.run(build())


def test_review_view_carries_routed_custom_ids():
    view = _build(review_buttons("abc123"))

    assert [item.custom_id for item in view.children] == [
        "vote-accept-abc123",
        "vote-deny-abc123",
        "dismiss-abc123",
    ]


def test_views_are_finished_before_sending():
    # Finished views are never added to the client's view store on send
    assert _build(apply_buttons("abc123")).is_finished()
    assert _build(review_buttons("abc123")).is_finished()
