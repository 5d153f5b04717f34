"""Communication infrastructure adapters.

Default channel collaborators for the inbound pipeline:
- HttpOutboundSender: deliver replies to the chat server
- TextCommandDetector: recognize control commands
- BindingAgentRouter: resolve agent and session key
- EnvelopeFormatter: render the agent-facing body
"""

from chatgate.infrastructure.communication.agent_router import BindingAgentRouter
from chatgate.infrastructure.communication.envelope import EnvelopeFormatter
from chatgate.infrastructure.communication.outbound_sender import HttpOutboundSender
from chatgate.infrastructure.communication.text_commands import TextCommandDetector

__all__ = [
    "BindingAgentRouter",
    "EnvelopeFormatter",
    "HttpOutboundSender",
    "TextCommandDetector",
]
