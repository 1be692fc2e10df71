from datetime import datetime
from typing import Optional

from pydantic import EmailStr, field_validator

from tasktracker.schemas.common import CamelModel


def _clean_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("name cannot be empty")
    if len(v) > 100:
        raise ValueError("name must not exceed 100 characters")
    return v


class UserCreate(CamelModel):
    email: EmailStr
    password: str
    first_name: str
    last_name: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        """Passwords need 6+ characters and must fit bcrypt's 72-byte limit when UTF-8 encoded."""
        if len(v) < 6:
            raise ValueError("password must be at least 6 characters long")
        if len(v.encode("utf-8")) > 72:
            raise ValueError("password too long: must be at most 72 bytes when UTF-8 encoded")
        return v

    @field_validator("first_name", "last_name")
    @classmethod
    def names_not_empty(cls, v: str) -> str:
        return _clean_name(v)


class UserLogin(CamelModel):
    email: EmailStr
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def password_required(cls, v: str) -> str:
        if not v:
            raise ValueError("password is required")
        return v


class ProfileUpdate(CamelModel):
    email: Optional[EmailStr] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v

    @field_validator("first_name", "last_name")
    @classmethod
    def names_not_empty(cls, v: Optional[str]) -> Optional[str]:
        return _clean_name(v)


class UserSummary(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str


class UserOut(UserSummary):
    created_at: datetime
    updated_at: datetime
