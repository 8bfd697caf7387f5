"""Shared pytest fixtures."""

import pytest

from agentdesk.config import Settings
from agentdesk.db import DatabaseConnection, ConversationRepository
from agentdesk.services import ConversationService, SandboxSessionGateway, SessionLogReader
from fakes import FakeSandboxProvider, LOG_DIR


@pytest.fixture
def test_settings(tmp_path):
    """Settings isolated from the environment and .env files."""
    return Settings(
        _env_file=None,
        database_path=str(tmp_path / "test.db"),
        base_url="http://test",
        sandbox_provider="local",
        local_volumes_dir=str(tmp_path / "volumes"),
        anthropic_api_key="sk-ant-test-key-0123456789",
        session_log_dir=LOG_DIR,
        log_level="WARNING",
        log_file=str(tmp_path / "logs" / "test.log"),
    )


@pytest.fixture
def provider():
    """Provide a fake sandbox provider."""
    return FakeSandboxProvider()


@pytest.fixture
def db_conn(test_settings):
    """Provide a fresh database connection."""
    db = DatabaseConnection(test_settings.database_path)
    yield db
    db.close()


@pytest.fixture
def repo(db_conn):
    """Provide a ConversationRepository."""
    return ConversationRepository(db_conn.conn)


@pytest.fixture
def gateway(provider, test_settings):
    """Provide a gateway over the fake provider."""
    return SandboxSessionGateway(provider, test_settings)


@pytest.fixture
def service(repo, gateway, test_settings):
    """Provide a ConversationService wired to the fake provider."""
    return ConversationService(
        repo=repo,
        gateway=gateway,
        session_log=SessionLogReader(gateway, test_settings.session_log_dir),
    )
