"""Pydantic v2 models for durable session records."""

from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class SessionRecord(BaseModel):
    """Durable session state. Timestamps are epoch milliseconds."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    created_at: int = Field(alias="createdAt")
    updated_at: int = Field(alias="updatedAt")
    user_id: Optional[str] = Field(default=None, alias="userId")
    data: Dict[str, Any] = Field(default_factory=dict)

    def to_json(self) -> Dict[str, Any]:
        """Wire/storage shape: camelCase, ``userId`` omitted when unset."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def idle_ms(self, now: int) -> int:
        return now - self.updated_at


class CreateSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")
    data: Optional[Dict[str, Any]] = None


class UpdateSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")
    data: Dict[str, Any] = Field(default_factory=dict)
