"""Pydantic models for API request/response."""

from .session import SessionEntry, MessageContent
from .conversation import (
    ConversationStatus,
    TerminalStatus,
    TERMINAL_STATUSES,
    SubmitMessageRequest,
    SubmitMessageResponse,
    ConversationStateResponse,
    StatusCallbackRequest,
    StatusCallbackResponse,
    ErrorResponse,
)
from .file import FileInfo

__all__ = [
    "SessionEntry",
    "MessageContent",
    "ConversationStatus",
    "TerminalStatus",
    "TERMINAL_STATUSES",
    "SubmitMessageRequest",
    "SubmitMessageResponse",
    "ConversationStateResponse",
    "StatusCallbackRequest",
    "StatusCallbackResponse",
    "ErrorResponse",
    "FileInfo",
]
