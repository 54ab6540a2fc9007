"""
Application Errors
Exception types raised by the application stores, flows and resolver.

Every error carries a short title and a user-facing message so the dispatch
layer can turn it into a single reply without knowing where it came from.
"""


class ApplicationError(Exception):
    """Base class for all errors reported back to a user."""

    title = "❌ Error"

    def __init__(self, message: str = "Something went wrong"):
        super().__init__(message)
        self.message = message


class NotFound(ApplicationError):
    """Unknown application or submission."""

    title = "❌ Not Found"


class PermissionDenied(ApplicationError):
    """Caller lacks the capability required for the action."""

    title = "❌ No Permission"


class NotConfigured(ApplicationError):
    """Guild has not been configured with /conf yet."""

    title = "⚠️ Setup Required"

    def __init__(self, message: str = "Use `/conf` first"):
        super().__init__(message)


class AlreadyClosed(ApplicationError):
    """Redundant close of an application."""

    title = "⚠️ Already Closed"


class ApplicationClosed(ApplicationError):
    """Application no longer accepts submissions or votes."""

    title = "❌ Closed"


class LimitExceeded(ApplicationError):
    """Applicant reached the per-user submission limit."""

    title = "❌ Limit Reached"


class ValidationError(ApplicationError):
    """Malformed duration, number, question list or other input."""

    title = "❌ Invalid"


class DeliveryFailure(ApplicationError):
    """A private message could not be delivered (DMs closed)."""

    title = "❌ Can't DM"


class ConversationTimeout(ApplicationError):
    """No reply arrived before the step deadline."""

    title = "⏱️ Timed Out"

    def __init__(self, message: str = "No reply received in time. Cancelled."):
        super().__init__(message)


class ConversationCancelled(ApplicationError):
    """User cancelled a conversation."""

    title = "❌ Cancelled"

    def __init__(self, message: str = "Cancelled"):
        super().__init__(message)
