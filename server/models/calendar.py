"""Pydantic v2 models for calendar data held in the resource cache.

Only the fields needed to key and serialize cached results are modelled;
the backend owns the full shape.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class CalendarPermissions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    can_read: bool = Field(default=True, alias="canRead")
    can_write: bool = Field(default=False, alias="canWrite")
    can_share: bool = Field(default=False, alias="canShare")
    can_delete: bool = Field(default=False, alias="canDelete")


class Calendar(BaseModel):
    """A calendar owned by (or shared with) a user."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    display_name: str = Field(alias="displayName")
    color: Optional[str] = None
    owner: Optional[str] = None
    is_default: Optional[bool] = Field(default=None, alias="isDefault")
    is_shared: Optional[bool] = Field(default=None, alias="isShared")
    is_read_only: Optional[bool] = Field(default=None, alias="isReadOnly")
    permissions: Optional[CalendarPermissions] = None


class Event(BaseModel):
    """A calendar event."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    calendar_id: str = Field(alias="calendarId")
    summary: str
    start: datetime
    end: datetime
    all_day: Optional[bool] = Field(default=None, alias="allDay")
    description: Optional[str] = None
    location: Optional[str] = None
    categories: List[str] = Field(default_factory=list)


def dump_models(items: List[BaseModel]) -> List[Dict[str, Any]]:
    """JSON-safe wire shape for a list of models."""
    return [item.model_dump(mode="json", by_alias=True, exclude_none=True) for item in items]
