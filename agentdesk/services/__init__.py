"""Services package."""

from .conversation_service import ConversationService
from .session_gateway import SandboxSessionGateway, SessionHandle
from .session_log import SessionLogReader, parse_session_log, order_entries

__all__ = [
    "ConversationService",
    "SandboxSessionGateway",
    "SessionHandle",
    "SessionLogReader",
    "parse_session_log",
    "order_entries",
]
