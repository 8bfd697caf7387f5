"""API v1 routers."""

from . import conversations, files

__all__ = ["conversations", "files"]
