"""Error taxonomy shared by the server and the client."""

from typing import Optional


class AgentDeskError(Exception):
    """Base class for all agentdesk errors."""


class ConversationNotFoundError(AgentDeskError):
    """Raised when a conversation id is unknown."""

    def __init__(self, conversation_id: str):
        super().__init__("Conversation not found")
        self.conversation_id = conversation_id


class ProvisioningError(AgentDeskError):
    """Raised when a volume or sandbox session could not be set up."""


class SandboxError(AgentDeskError):
    """Raised when the sandbox provider rejects or fails an operation."""


class SandboxNotFoundError(SandboxError):
    """Raised when a sandbox (or its process) no longer exists."""


class VolumeFileNotFoundError(SandboxError):
    """Raised when a path does not exist in a volume."""


class ConversationApiError(AgentDeskError):
    """Raised by the client when the server answers with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
