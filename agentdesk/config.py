"""Configuration management using pydantic-settings."""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=7788, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")
    base_url: str = Field(default="http://localhost:7788", description="Public base URL used for sandbox callbacks")

    # Database Configuration
    database_path: str = Field(default="./data/agentdesk.db", description="DuckDB database file")

    # Sandbox Provider Configuration
    sandbox_provider: str = Field(default="local", description="Sandbox backend: local or remote")
    sandbox_api_url: str = Field(default="https://api.sandbox.example.com/v1", description="Remote sandbox provider API URL")
    sandbox_api_key: Optional[str] = Field(default=None, description="Remote sandbox provider API key")
    sandbox_template: str = Field(default="hackathon-ts-agent", description="Sandbox template name")
    sandbox_timeout: int = Field(default=30 * 60, description="Sandbox wall-clock budget in seconds")
    agent_command: str = Field(default="node /app/agent.js", description="Agent command started inside the sandbox")
    agent_cwd: str = Field(default="/workspace", description="Agent working directory inside the sandbox")
    volume_mount_path: str = Field(default="/workspace/data", description="Volume mount path inside the sandbox")
    volume_name_prefix: str = Field(default="hackathon-", description="Prefix for volume names")
    local_volumes_dir: str = Field(default="./data/volumes", description="Volume directory for the local backend")

    # Model Provider Configuration
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API key forwarded to the agent")

    # Session Log / Files
    session_log_dir: str = Field(
        default="/.claude/projects/-workspace",
        description="Volume directory holding the agent's <sessionId>.jsonl logs"
    )
    file_tree_max_depth: int = Field(default=5, description="Maximum depth of the volume file tree")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")
    log_file: str = Field(default="./logs/app.log", description="Log file path")
    log_max_bytes: int = Field(default=10 * 1024 * 1024, description="Rotate the log file at this size")
    log_backup_count: int = Field(default=5, description="Rotated log files to keep")

    @property
    def callback_base_url(self) -> str:
        """Base URL without a trailing slash."""
        return self.base_url.rstrip("/")

    def callback_url(self, conversation_id: str) -> str:
        """Status callback URL handed to the sandbox for a conversation."""
        return f"{self.callback_base_url}/api/v1/conversations/{conversation_id}/status"


# Global settings instance
settings = Settings()
