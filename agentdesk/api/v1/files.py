"""Volume file REST API routes - V1."""

from typing import List

from fastapi import APIRouter, HTTPException, Depends, Query
from fastapi.responses import PlainTextResponse, Response

from ..errors import ERROR_RESPONSES
from ...exceptions import ConversationNotFoundError, SandboxError, VolumeFileNotFoundError
from ...models.file import FileInfo
from ...services import ConversationService

router = APIRouter(prefix="/api/v1/conversations", tags=["Files"], responses=ERROR_RESPONSES)

# Conversation service (set by main.py)
conversation_service: ConversationService = None


def get_conversation_service() -> ConversationService:
    """Dependency to get the conversation service."""
    if conversation_service is None:
        raise HTTPException(status_code=500, detail="Conversation service not initialized")
    return conversation_service


@router.get(
    "/{conversation_id}/files",
    response_model=List[FileInfo],
    response_model_exclude_none=True,
)
async def get_file_tree(
    conversation_id: str,
    path: str = Query("/", description="Volume directory to list"),
    service: ConversationService = Depends(get_conversation_service)
):
    """Get the file tree of the conversation's volume."""
    try:
        files = await service.file_tree(conversation_id, path)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return files


@router.get("/{conversation_id}/files/{file_path:path}")
async def read_file(
    conversation_id: str,
    file_path: str,
    service: ConversationService = Depends(get_conversation_service)
):
    """Read one file from the conversation's volume."""
    try:
        data = await service.read_file(conversation_id, file_path)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except VolumeFileNotFoundError:
        raise HTTPException(status_code=404, detail=f"File not found: {file_path}")
    except SandboxError as e:
        raise HTTPException(status_code=500, detail=f"Failed to read file: {e}")

    try:
        return PlainTextResponse(data.decode("utf-8"))
    except UnicodeDecodeError:
        return Response(content=data, media_type="application/octet-stream")
