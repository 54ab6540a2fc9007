"""
Application Views
Button layouts for the application system.

Buttons carry the target id in their custom_id and have no callback of
their own. Clicks are routed by the branch's on_interaction listener, so the
buttons keep working for messages sent before a reload.
"""

from dataclasses import dataclass
from typing import Sequence

import discord
from discord.ui import View, Button

_STYLES = {
    "primary": discord.ButtonStyle.primary,
    "success": discord.ButtonStyle.success,
    "danger": discord.ButtonStyle.danger,
    "secondary": discord.ButtonStyle.secondary,
}

APPLY_PREFIX = "apply-"
VOTE_PREFIX = "vote-"
DISMISS_PREFIX = "dismiss-"


@dataclass(frozen=True)
class ButtonSpec:
    custom_id: str
    label: str
    style: str = "primary"


def apply_buttons(application_id: str):
    return [ButtonSpec(f"{APPLY_PREFIX}{application_id}", "📝 Apply Now", "primary")]


def review_buttons(submission_id: str):
    return [
        ButtonSpec(f"{VOTE_PREFIX}accept-{submission_id}", "✅ Accept", "success"),
        ButtonSpec(f"{VOTE_PREFIX}deny-{submission_id}", "❌ Deny", "danger"),
        ButtonSpec(f"{DISMISS_PREFIX}{submission_id}", "🗑️ Dismiss", "secondary"),
    ]


class RoutedButtonView(View):
    """
    Button layout with no callbacks of its own.

    The view is stopped as soon as it is built, so sending it never
    registers it in the client's view store.
    """

    def __init__(self, buttons: Sequence[ButtonSpec]):
        super().__init__(timeout=None)
        for spec in buttons:
            self.add_item(Button(
                label=spec.label,
                style=_STYLES.get(spec.style, discord.ButtonStyle.primary),
                custom_id=spec.custom_id,
            ))
        self.stop()
