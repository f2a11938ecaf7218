from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class AgentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    api_url: str = Field(..., min_length=1)
    description: str | None = None
    graph: dict[str, Any] | None = None


class AgentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    api_url: str | None = Field(default=None, min_length=1)
    description: str | None = None
    graph: dict[str, Any] | None = None


class AgentResponse(BaseModel):
    id: str
    name: str
    api_url: str
    description: str | None
    graph: dict[str, Any] | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AgentListResponse(BaseModel):
    total: int
    offset: int
    limit: int
    items: list[AgentResponse]


class NodeResponse(BaseModel):
    id: str
    label: str
    type: str
    system_message_prompt: str | None = None
    human_message_prompt: str | None = None
