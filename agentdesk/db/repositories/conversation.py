"""Conversation repository for database operations."""

from datetime import datetime
from typing import Optional, List, Dict, Any
from .base import BaseRepository
from ..database_models.conversation import ConversationDO

_COLUMNS = (
    "id, status, session_id, sandbox_id, agent_pid, volume_id, "
    "error_message, created_at, updated_at"
)

# Fields update() is allowed to touch; id, volume_id and created_at are immutable
_UPDATABLE = (
    "status",
    "session_id",
    "sandbox_id",
    "agent_pid",
    "error_message",
    "updated_at",
)


def _row_to_do(row) -> ConversationDO:
    return ConversationDO(
        id=row[0],
        status=row[1],
        session_id=row[2],
        sandbox_id=row[3],
        agent_pid=row[4],
        volume_id=row[5],
        error_message=row[6],
        created_at=row[7],
        updated_at=row[8],
    )


class ConversationRepository(BaseRepository):
    """Repository for Conversation CRUD operations."""

    def create(self, conversation: ConversationDO) -> bool:
        """
        Create a new conversation record.

        Args:
            conversation: ConversationDO instance

        Returns:
            True if successful, False otherwise
        """
        created = self._write(
            "create conversation",
            f"INSERT INTO conversations ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                conversation.id,
                conversation.status,
                conversation.session_id,
                conversation.sandbox_id,
                conversation.agent_pid,
                conversation.volume_id,
                conversation.error_message,
                conversation.created_at,
                conversation.updated_at,
            ],
        )
        if created:
            self.logger.info(f"Created conversation record: {conversation.id}")
        return created

    def get(self, conversation_id: str) -> Optional[ConversationDO]:
        """
        Get conversation by ID.

        Args:
            conversation_id: Conversation ID

        Returns:
            ConversationDO instance or None
        """
        row = self._fetch_one(
            f"SELECT {_COLUMNS} FROM conversations WHERE id = ?",
            [conversation_id],
        )
        return _row_to_do(row) if row else None

    def list_all(self) -> List[ConversationDO]:
        """List all conversations, most recently updated first."""
        rows = self._fetch_all(f"SELECT {_COLUMNS} FROM conversations ORDER BY updated_at DESC")
        return [_row_to_do(row) for row in rows]

    def update(self, conversation_id: str, updates: Dict[str, Any]) -> bool:
        """
        Update conversation fields.

        Keys present in ``updates`` are written as given, so an explicit
        None clears the column. ``updated_at`` is refreshed unless supplied.

        Args:
            conversation_id: Conversation ID
            updates: Dictionary of fields to update

        Returns:
            True if successful, False otherwise
        """
        unknown = set(updates) - set(_UPDATABLE)
        if unknown:
            self.logger.error(f"Refusing to update conversation fields: {sorted(unknown)}")
            return False

        if not updates:
            return True

        values = dict(updates)
        values.setdefault("updated_at", datetime.utcnow())

        columns = [c for c in _UPDATABLE if c in values]
        set_clause = ", ".join(f"{c} = ?" for c in columns)
        params = [values[c] for c in columns] + [conversation_id]

        return self._write(
            f"update conversation {conversation_id}",
            f"UPDATE conversations SET {set_clause} WHERE id = ?",
            params,
        )

    def delete(self, conversation_id: str) -> bool:
        """
        Delete conversation by ID.

        Args:
            conversation_id: Conversation ID

        Returns:
            True if successful, False otherwise
        """
        deleted = self._write(
            "delete conversation",
            "DELETE FROM conversations WHERE id = ?",
            [conversation_id],
        )
        if deleted:
            self.logger.info(f"Deleted conversation record: {conversation_id}")
        return deleted
