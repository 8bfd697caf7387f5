"""Conversation lifecycle service.

Ties the conversation record, the sandbox session gateway and the session
log together:

    submit ──► running ──(status callback)──► completed | error

The record is written by two independent actors (submit and the status
callback) with plain overwrites; the last write wins. Submissions for the
same conversation are serialised with a per-conversation lock so that at
most one sandbox session is started at a time.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Optional, Tuple

from ..db.database_models.conversation import ConversationDO
from ..db.repositories.conversation import ConversationRepository
from ..exceptions import (
    AgentDeskError,
    ConversationNotFoundError,
    ProvisioningError,
    SandboxError,
)
from ..models.file import FileInfo
from ..models.session import SessionEntry
from ..utils.logger import get_app_logger
from .session_gateway import SandboxSessionGateway, SessionHandle
from .session_log import SessionLogReader

DEFAULT_AGENT_ERROR = "Agent reported an error"


@dataclass
class _ConversationLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class ConversationService:
    """Creates/continues conversations and reconciles agent callbacks."""

    def __init__(
        self,
        repo: ConversationRepository,
        gateway: SandboxSessionGateway,
        session_log: SessionLogReader,
    ):
        self.repo = repo
        self.gateway = gateway
        self.session_log = session_log
        self.logger = get_app_logger()
        self._locks: Dict[str, _ConversationLock] = {}

    @asynccontextmanager
    async def _conversation_lock(self, conversation_id: str) -> AsyncIterator[None]:
        """Hold the conversation's lock; the entry is dropped once nobody holds or awaits it."""
        entry = self._locks.setdefault(conversation_id, _ConversationLock())
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._locks.pop(conversation_id, None)

    def get_conversation(self, conversation_id: str) -> ConversationDO:
        """
        Look up a conversation.

        Raises:
            ConversationNotFoundError: If it does not exist
        """
        conversation = self.repo.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    # === Submit ===
    async def submit(self, content: str, conversation_id: Optional[str] = None) -> ConversationDO:
        """
        Create a conversation or continue an existing one with a message.

        Exactly one message is delivered to the agent per call.

        Args:
            content: User message
            conversation_id: Conversation to continue; None starts a new one

        Returns:
            The conversation, now running

        Raises:
            ConversationNotFoundError: If conversation_id is unknown
            ProvisioningError: If the volume/session could not be set up
        """
        if conversation_id is None:
            return await self._start_conversation(content)

        self.get_conversation(conversation_id)
        async with self._conversation_lock(conversation_id):
            # Re-read: a callback may have landed while waiting for the lock
            conversation = self.get_conversation(conversation_id)
            return await self._continue_conversation(conversation, content)

    async def _start_conversation(self, content: str) -> ConversationDO:
        conversation_id = str(uuid.uuid4())
        volume_id = await self.gateway.create_volume(conversation_id)

        conversation = ConversationDO(id=conversation_id, volume_id=volume_id, status="idle")
        if not self.repo.create(conversation):
            await self.gateway.discard_volume(volume_id)
            raise ProvisioningError("Failed to create conversation")

        async with self._conversation_lock(conversation_id):
            try:
                await self._launch(conversation, content)
            except Exception as e:
                # Creation and provisioning are one unit: leave nothing behind
                self.repo.delete(conversation_id)
                await self.gateway.discard_volume(volume_id)
                if isinstance(e, ProvisioningError):
                    raise
                raise ProvisioningError(f"Failed to start conversation: {e}") from e

        self.logger.info(f"Started conversation {conversation_id} in sandbox {conversation.sandbox_id}")
        return conversation

    async def _continue_conversation(self, conversation: ConversationDO, content: str) -> ConversationDO:
        if conversation.has_active_session and conversation.agent_pid is not None:
            handle = SessionHandle(sandbox_id=conversation.sandbox_id, pid=conversation.agent_pid)
            try:
                await self.gateway.send_message(handle, content)
            except SandboxError as e:
                self.logger.warning(
                    f"Session {conversation.sandbox_id} of {conversation.id} is unreachable ({e}), replacing it"
                )
                await self.gateway.terminate(conversation.sandbox_id)
            else:
                self.repo.update(conversation.id, {"status": "running"})
                conversation.status = "running"
                self.logger.info(f"Delivered message to running conversation {conversation.id}")
                return conversation
        elif conversation.has_active_session:
            await self.gateway.terminate(conversation.sandbox_id)

        previous_status = conversation.status
        previous_error = conversation.error_message
        try:
            await self._launch(conversation, content)
        except Exception as e:
            if previous_status == "running":
                # The old session is gone, so running would be a lie
                restore = {"status": "error", "error_message": str(e)}
            else:
                restore = {"status": previous_status, "error_message": previous_error}
            self.repo.update(conversation.id, {**restore, "sandbox_id": None, "agent_pid": None})
            if isinstance(e, ProvisioningError):
                raise
            raise ProvisioningError(f"Failed to resume conversation: {e}") from e

        self.logger.info(
            f"Resumed conversation {conversation.id} in sandbox {conversation.sandbox_id} "
            f"(session={conversation.session_id or '-'})"
        )
        return conversation

    async def _launch(self, conversation: ConversationDO, content: str) -> None:
        """Start a fresh session for the conversation and deliver the message."""
        handle = await self.gateway.start_session(
            conversation.volume_id,
            conversation.id,
            conversation.session_id,
        )

        # Record the session before the agent can possibly call back
        updates = {
            "status": "running",
            "sandbox_id": handle.sandbox_id,
            "agent_pid": handle.pid,
            "error_message": None,
        }
        if not self.repo.update(conversation.id, updates):
            await self.gateway.terminate(handle.sandbox_id)
            raise ProvisioningError("Failed to record sandbox session")

        try:
            await self.gateway.send_message(handle, content)
        except SandboxError as e:
            await self.gateway.terminate(handle.sandbox_id)
            raise ProvisioningError(f"Failed to deliver message: {e}") from e

        conversation.status = "running"
        conversation.sandbox_id = handle.sandbox_id
        conversation.agent_pid = handle.pid
        conversation.error_message = None

    # === Read ===
    async def get_state(self, conversation_id: str) -> Tuple[ConversationDO, List[SessionEntry]]:
        """
        Current record state plus the session log read live from the volume.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
        """
        conversation = self.get_conversation(conversation_id)
        messages = await self.session_log.read_entries(conversation.volume_id, conversation.session_id)
        return conversation, messages

    # === Status callback ===
    async def apply_status_callback(
        self,
        conversation_id: str,
        status: str,
        error_message: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> ConversationDO:
        """
        Record the terminal state reported by the agent.

        The sandbox reference is cleared and the sandbox killed
        best-effort; cleanup failures never fail the callback. A known
        session id is never replaced by an empty one.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
            AgentDeskError: If the record could not be written
        """
        conversation = self.get_conversation(conversation_id)

        if status == "error":
            error_message = error_message or DEFAULT_AGENT_ERROR
        else:
            error_message = None

        updates = {
            "status": status,
            "error_message": error_message,
            "session_id": session_id or conversation.session_id,
            "sandbox_id": None,
            "agent_pid": None,
        }
        if not self.repo.update(conversation_id, updates):
            raise AgentDeskError("Failed to update conversation")

        self.logger.info(
            f"Conversation {conversation_id} finished with status={status}, "
            f"session={updates['session_id'] or '-'}"
        )

        if conversation.sandbox_id:
            await self.gateway.terminate(conversation.sandbox_id)

        conversation.status = status
        conversation.error_message = error_message
        conversation.session_id = updates["session_id"]
        conversation.sandbox_id = None
        conversation.agent_pid = None
        return conversation

    # === Files ===
    async def file_tree(self, conversation_id: str, path: str = "/") -> List[FileInfo]:
        conversation = self.get_conversation(conversation_id)
        return await self.gateway.build_file_tree(conversation.volume_id, path)

    async def read_file(self, conversation_id: str, path: str) -> bytes:
        conversation = self.get_conversation(conversation_id)
        return await self.gateway.read_file(conversation.volume_id, "/" + path.lstrip("/"))
