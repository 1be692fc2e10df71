from datetime import datetime
from typing import List, Literal, Optional

from pydantic import field_validator

from tasktracker.schemas.collaboration import AttachmentOut, CommentOut
from tasktracker.schemas.common import CamelModel
from tasktracker.schemas.team import TeamSummary
from tasktracker.schemas.user import UserSummary

Status = Literal["open", "in_progress", "completed"]
Priority = Literal["low", "medium", "high"]


def _clean_title(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("title cannot be empty")
    if len(v) > 255:
        raise ValueError("title must not exceed 255 characters")
    return v


class TaskCreate(CamelModel):
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: Priority = "medium"
    assigned_to_id: Optional[int] = None
    team_id: Optional[int] = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v):
        return _clean_title(v)

    @field_validator("description")
    @classmethod
    def strip_description(cls, v):
        return v.strip() if v is not None else v


class TaskUpdate(CamelModel):
    """Partial update; only fields present in the request body are applied."""

    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    status: Optional[Status] = None
    priority: Optional[Priority] = None
    assigned_to_id: Optional[int] = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v):
        return _clean_title(v) if v is not None else v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v):
        return v.strip() if v is not None else v


class TaskAssign(CamelModel):
    user_id: int


class TaskOut(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    status: Status
    priority: Priority
    created_by_id: int
    assigned_to_id: Optional[int] = None
    team_id: Optional[int] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    creator: UserSummary
    assignee: Optional[UserSummary] = None
    team: Optional[TeamSummary] = None


class TaskDetail(TaskOut):
    comments: List[CommentOut] = []
    attachments: List[AttachmentOut] = []
