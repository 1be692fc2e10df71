from datetime import datetime

from pydantic import field_validator

from tasktracker.schemas.common import CamelModel
from tasktracker.schemas.user import UserSummary


class CommentCreate(CamelModel):
    content: str

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("comment content is required")
        return v


class CommentOut(CamelModel):
    id: int
    task_id: int
    user_id: int
    content: str
    author: UserSummary
    created_at: datetime
    updated_at: datetime


class AttachmentOut(CamelModel):
    id: int
    task_id: int
    user_id: int
    filename: str
    filesize: int
    mimetype: str
    uploader: UserSummary
    created_at: datetime
