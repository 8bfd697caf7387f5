"""Session log models."""

import json
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, ConfigDict, Field


class MessageContent(BaseModel):
    """Single content block within a session entry."""

    type: str = Field(description="Content type: text, tool_use, tool_result, etc.")
    content: str = Field(description="Text content / tool input JSON / tool output")
    tool_name: Optional[str] = Field(None, description="Tool name or tool_use id (for tool_use/tool_result)")


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


class SessionEntry(BaseModel):
    """
    One turn of the agent's session log.

    Field names on the wire follow the log format written by the agent
    (``parentUuid``, ``sessionId``, ``isSidechain``).
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str = Field(description="Entry type: user or assistant")
    uuid: str = Field(description="Unique identifier of this entry")
    parent_uuid: Optional[str] = Field(None, alias="parentUuid", description="Preceding entry UUID")
    session_id: str = Field("", alias="sessionId", description="Agent session identifier")
    timestamp: str = Field("", description="ISO 8601 timestamp")
    is_sidechain: bool = Field(False, alias="isSidechain", description="Whether the entry belongs to a sidechain")
    message: Dict[str, Any] = Field(default_factory=dict, description="Role and content of the turn")

    @property
    def role(self) -> str:
        return self.message.get("role") or self.type

    def contents(self) -> List[MessageContent]:
        """Flatten ``message.content`` into typed content blocks."""
        raw_content = self.message.get("content", "")
        if isinstance(raw_content, str):
            return [MessageContent(type="text", content=raw_content)] if raw_content else []
        if not isinstance(raw_content, list):
            return []

        contents: List[MessageContent] = []
        for block in raw_content:
            if not isinstance(block, dict):
                continue
            block_type = block.get("type", "")
            if block_type == "text":
                contents.append(MessageContent(type="text", content=block.get("text", "")))
            elif block_type == "tool_use":
                contents.append(MessageContent(
                    type="tool_use",
                    content=json.dumps(block.get("input", {}), ensure_ascii=False),
                    tool_name=block.get("name")
                ))
            elif block_type == "tool_result":
                contents.append(MessageContent(
                    type="tool_result",
                    content=_stringify(block.get("content", "")),
                    tool_name=block.get("tool_use_id")
                ))
            else:
                contents.append(MessageContent(type=block_type, content=json.dumps(block, ensure_ascii=False)))
        return contents

    def text(self) -> str:
        """Concatenated text blocks of this entry."""
        return "\n".join(c.content for c in self.contents() if c.type == "text")
