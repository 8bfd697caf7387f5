"""Repositories - CRUD access to database tables."""

from .base import BaseRepository
from .conversation import ConversationRepository

__all__ = ["BaseRepository", "ConversationRepository"]
