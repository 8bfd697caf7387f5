"""HTTP client for the conversation API."""

from typing import List, Optional

import httpx

from ..exceptions import ConversationApiError
from ..models.conversation import ConversationStateResponse, SubmitMessageResponse
from ..models.file import FileInfo

API_PREFIX = "/api/v1/conversations"


class ConversationApiClient:
    """Thin async wrapper around the server's conversation routes."""

    def __init__(
        self,
        base_url: str = "http://localhost:7788",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def _check(response: httpx.Response, fallback: str) -> httpx.Response:
        """Raise ConversationApiError carrying the server's error text."""
        if response.is_success:
            return response

        message = None
        try:
            body = response.json()
            if isinstance(body, dict):
                message = body.get("error")
        except ValueError:
            pass
        raise ConversationApiError(message or fallback, response.status_code)

    async def submit(self, content: str, conversation_id: Optional[str] = None) -> SubmitMessageResponse:
        """Send a message, creating the conversation when no id is given."""
        body = {"content": content}
        if conversation_id:
            body["conversationId"] = conversation_id

        response = await self._client.post(API_PREFIX, json=body)
        self._check(response, "Failed to send message")
        return SubmitMessageResponse.model_validate(response.json())

    async def get_conversation(self, conversation_id: str) -> ConversationStateResponse:
        response = await self._client.get(f"{API_PREFIX}/{conversation_id}")
        self._check(response, "Failed to fetch conversation")
        return ConversationStateResponse.model_validate(response.json())

    async def get_files(self, conversation_id: str, path: str = "/") -> List[FileInfo]:
        response = await self._client.get(f"{API_PREFIX}/{conversation_id}/files", params={"path": path})
        self._check(response, "Failed to list files")
        return [FileInfo.model_validate(node) for node in response.json()]

    async def read_file(self, conversation_id: str, path: str) -> bytes:
        response = await self._client.get(f"{API_PREFIX}/{conversation_id}/files/{path.lstrip('/')}")
        self._check(response, "Failed to read file")
        return response.content

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
