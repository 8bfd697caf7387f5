"""Volume file API models."""

from typing import Optional, List, Literal
from pydantic import BaseModel, Field


class FileInfo(BaseModel):
    """A node of a volume file tree."""

    name: str = Field(description="Base name")
    type: Literal["file", "directory"] = Field(description="Node type")
    size: Optional[int] = Field(None, description="Size in bytes")
    path: str = Field(description="Volume-relative path")
    children: Optional[List["FileInfo"]] = Field(None, description="Child nodes (directories only)")
