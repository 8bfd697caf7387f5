"""Conversation API models."""

from typing import Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field

from .session import SessionEntry

ConversationStatus = Literal["idle", "running", "completed", "error"]
TerminalStatus = Literal["completed", "error"]

TERMINAL_STATUSES = ("completed", "error")


class SubmitMessageRequest(BaseModel):
    """Request model for creating or continuing a conversation."""

    model_config = ConfigDict(populate_by_name=True)

    conversation_id: Optional[str] = Field(
        None, alias="conversationId", description="Existing conversation to continue"
    )
    content: str = Field(description="Message content", min_length=1)


class SubmitMessageResponse(BaseModel):
    """Response model for a submitted message."""

    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(alias="conversationId", description="Conversation ID")
    status: ConversationStatus = Field(description="Conversation status")


class ConversationStateResponse(BaseModel):
    """Combined record state and live session log of a conversation."""

    model_config = ConfigDict(populate_by_name=True)

    status: ConversationStatus = Field(description="Conversation status")
    messages: List[SessionEntry] = Field(default_factory=list, description="Ordered session entries")
    error_message: Optional[str] = Field(None, alias="errorMessage", description="Error message when status is error")


class StatusCallbackRequest(BaseModel):
    """Terminal status reported by the sandboxed agent."""

    model_config = ConfigDict(populate_by_name=True)

    status: TerminalStatus = Field(description="Terminal status")
    error_message: Optional[str] = Field(None, alias="errorMessage", description="Error details")
    session_id: Optional[str] = Field(None, alias="sessionId", description="Resumable agent session ID")


class StatusCallbackResponse(BaseModel):
    """Acknowledgement of a status callback."""

    success: bool = Field(default=True)


class ErrorResponse(BaseModel):
    """Error body returned by every failing route."""

    error: str = Field(description="Error message")
