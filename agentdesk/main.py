"""FastAPI main application."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import settings
from .db import DatabaseConnection, ConversationRepository
from .sandbox import create_provider
from .services import ConversationService, SandboxSessionGateway, SessionLogReader
from .utils.logger import init_app_logger, mask_secret
from .api import register_exception_handlers
from .api.v1 import conversations, files


# Initialize logger
logger = init_app_logger(settings)


def build_conversation_service(db_conn: DatabaseConnection, provider) -> ConversationService:
    """Wire repository, gateway and session log reader into a service."""
    gateway = SandboxSessionGateway(provider, settings)
    return ConversationService(
        repo=ConversationRepository(db_conn.conn),
        gateway=gateway,
        session_log=SessionLogReader(gateway, settings.session_log_dir),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    Args:
        app: FastAPI application instance
    """
    # Startup
    logger.info("=" * 70)
    logger.info("Starting AgentDesk...")
    logger.info("=" * 70)

    logger.info("")
    logger.info("📡 Server Configuration:")
    logger.info(f"  Host: {settings.host}")
    logger.info(f"  Port: {settings.port}")
    logger.info(f"  Debug: {settings.debug}")
    logger.info(f"  Callback Base URL: {settings.callback_base_url}")
    logger.info(f"  Log Level: {settings.log_level}")
    logger.info(f"  Log File: {settings.log_file}")

    logger.info("")
    logger.info("📦 Sandbox Configuration:")
    logger.info(f"  Provider: {settings.sandbox_provider}")
    if settings.sandbox_provider == "remote":
        logger.info(f"  API URL: {settings.sandbox_api_url}")
        logger.info(f"  API Key: {mask_secret(settings.sandbox_api_key)}")
    else:
        logger.info(f"  Volumes Dir: {settings.local_volumes_dir}")
    logger.info(f"  Template: {settings.sandbox_template}")
    logger.info(f"  Agent Command: {settings.agent_command}")
    logger.info(f"  Timeout: {settings.sandbox_timeout}s")
    logger.info(f"  Anthropic API Key: {mask_secret(settings.anthropic_api_key)}")

    logger.info("")
    logger.info("🗄️  Storage Configuration:")
    logger.info(f"  Database: {settings.database_path}")
    logger.info(f"  Session Log Dir: {settings.session_log_dir}")

    db_conn = DatabaseConnection(settings.database_path)
    provider = create_provider(settings)
    service = build_conversation_service(db_conn, provider)

    # Set service in API modules
    conversations.conversation_service = service
    files.conversation_service = service

    logger.info("")
    logger.info("=" * 70)
    logger.info("✅ AgentDesk started successfully!")
    logger.info(f"📍 Access at: http://{settings.host}:{settings.port}")
    logger.info(f"📚 API Docs: http://{settings.host}:{settings.port}/docs")
    logger.info("=" * 70)

    yield

    # Shutdown
    logger.info("Shutting down AgentDesk...")
    conversations.conversation_service = None
    files.conversation_service = None
    await provider.close()
    db_conn.close()
    logger.info("✅ AgentDesk shut down successfully")


# Create FastAPI application
app = FastAPI(
    title="AgentDesk",
    description="Conversations with a coding agent running in a provider-managed sandbox",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify allowed origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routers
app.include_router(conversations.router)
app.include_router(files.router)


@app.get("/health")
async def health():
    """
    Simple health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": "AgentDesk"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "agentdesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
