"""Conversation REST API routes - V1."""

from fastapi import APIRouter, HTTPException, Depends

from ..errors import ERROR_RESPONSES
from ...exceptions import ConversationNotFoundError, ProvisioningError, SandboxError
from ...models.conversation import (
    SubmitMessageRequest,
    SubmitMessageResponse,
    ConversationStateResponse,
    StatusCallbackRequest,
    StatusCallbackResponse,
)
from ...services import ConversationService
from ...utils.logger import get_app_logger

router = APIRouter(prefix="/api/v1/conversations", tags=["Conversations"], responses=ERROR_RESPONSES)

# Conversation service (set by main.py)
conversation_service: ConversationService = None


def get_conversation_service() -> ConversationService:
    """Dependency to get the conversation service."""
    if conversation_service is None:
        raise HTTPException(status_code=500, detail="Conversation service not initialized")
    return conversation_service


@router.post("", response_model=SubmitMessageResponse)
async def submit_message(
    request: SubmitMessageRequest,
    service: ConversationService = Depends(get_conversation_service)
):
    """Create a conversation, or continue one, with a user message."""
    try:
        conversation = await service.submit(request.content, request.conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except ProvisioningError as e:
        get_app_logger().error(f"Error in POST /api/v1/conversations: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return SubmitMessageResponse(conversation_id=conversation.id, status=conversation.status)


@router.get("/{conversation_id}", response_model=ConversationStateResponse)
async def get_conversation(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service)
):
    """Get conversation status together with its session log."""
    try:
        conversation, messages = await service.get_state(conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except SandboxError as e:
        raise HTTPException(status_code=500, detail=f"Failed to read session log: {e}")

    return ConversationStateResponse(
        status=conversation.status,
        messages=messages,
        error_message=conversation.error_message,
    )


@router.post("/{conversation_id}/status", response_model=StatusCallbackResponse)
async def report_status(
    conversation_id: str,
    request: StatusCallbackRequest,
    service: ConversationService = Depends(get_conversation_service)
):
    """Callback endpoint for the sandboxed agent to report completion."""
    try:
        await service.apply_status_callback(
            conversation_id,
            status=request.status,
            error_message=request.error_message,
            session_id=request.session_id,
        )
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return StatusCallbackResponse(success=True)
