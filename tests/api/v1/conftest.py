"""Pytest fixtures for API testing."""

import pytest
from httpx import AsyncClient, ASGITransport
from fastapi import FastAPI

from agentdesk.api import register_exception_handlers
from agentdesk.api.v1 import conversations, files


@pytest.fixture(scope="function")
async def client(service):
    """Create async HTTP client over a test app backed by the fake provider."""
    # Inject dependencies into routers
    conversations.conversation_service = service
    files.conversation_service = service

    # Create a test app without lifespan (to avoid conflicts)
    test_app = FastAPI(title="AgentDesk Test")
    register_exception_handlers(test_app)
    test_app.include_router(conversations.router)
    test_app.include_router(files.router)

    @test_app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": "AgentDesk"}

    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    conversations.conversation_service = None
    files.conversation_service = None
