"""Client package - API client and conversation lifecycle controller."""

from .api import ConversationApiClient
from .controller import ConversationController, ClientState, PendingMessage, POLL_INTERVAL

__all__ = [
    "ConversationApiClient",
    "ConversationController",
    "ClientState",
    "PendingMessage",
    "POLL_INTERVAL",
]
