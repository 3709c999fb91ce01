"""Chat endpoint client, context assembly and the auto-submit scheduler."""

from .client import ChatClient
from .context import ContextAssembler, ASSISTANT_PERSONA
from .auto_submit import AutoSubmitScheduler

__all__ = [
    "ChatClient",
    "ContextAssembler",
    "ASSISTANT_PERSONA",
    "AutoSubmitScheduler",
]
