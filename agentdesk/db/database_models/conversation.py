"""Conversation database model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class ConversationDO:
    """Conversation data object - maps to conversations table."""

    id: str
    volume_id: str
    status: str = "idle"
    session_id: Optional[str] = None
    sandbox_id: Optional[str] = None
    agent_pid: Optional[int] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def has_active_session(self) -> bool:
        return self.sandbox_id is not None
