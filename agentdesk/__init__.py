"""AgentDesk - web API and client for conversations with a sandboxed coding agent."""

__version__ = "1.0.0"
