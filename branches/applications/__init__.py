"""
Applications Branch
Recruitment applications with DM conversations, moderator voting and deadlines.

Structure:
- branch.py: Applications cog (slash/prefix commands, listeners, deadline sweep)
- service.py: ApplicationService (command and button dispatch)
- flows.py: SetupFlow, EditFlow, FillFlow (DM conversations)
- conversation.py: Conversation state machine and driver
- stores.py: ConfigStore, ApplicationRegistry, SubmissionStore, VoteAggregator
- lifecycle.py: LifecycleResolver, DeadlineSweeper, ranking
- gateway.py: MessagingGateway protocol and its discord.py implementation
- invocation.py: CommandInvocation, ButtonPress
- embeds.py, views.py: Discord UI
- parsing.py, helpers.py, models.py, errors.py, context.py: supporting code
"""

from .branch import Applications

__all__ = ['Applications', 'setup']

async def setup(bot):
    """Load the Applications branch."""
    await bot.add_cog(Applications(bot))
