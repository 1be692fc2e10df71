from datetime import datetime
from typing import List, Optional

from pydantic import field_validator

from tasktracker.schemas.common import CamelModel
from tasktracker.schemas.user import UserSummary


def _clean_team_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("team name is required")
    if len(v) > 255:
        raise ValueError("team name must not exceed 255 characters")
    return v


class TeamCreate(CamelModel):
    name: str
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        return _clean_team_name(v)

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v


class TeamUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: Optional[str]) -> Optional[str]:
        return _clean_team_name(v) if v is not None else v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v


class AddMember(CamelModel):
    user_id: int


class TeamSummary(CamelModel):
    id: int
    name: str


class MemberOut(UserSummary):
    role: str
    joined_at: datetime

    @classmethod
    def from_membership(cls, membership) -> "MemberOut":
        user = membership.user
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=membership.role,
            joined_at=membership.joined_at,
        )


class TeamOut(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    owner_id: int
    owner: UserSummary
    members: List[MemberOut] = []
    created_at: datetime
    updated_at: datetime
    user_role: Optional[str] = None

    @classmethod
    def from_team(cls, team, user_role: Optional[str] = None) -> "TeamOut":
        return cls(
            id=team.id,
            name=team.name,
            description=team.description,
            owner_id=team.owner_id,
            owner=UserSummary.model_validate(team.owner),
            members=[MemberOut.from_membership(m) for m in team.memberships],
            created_at=team.created_at,
            updated_at=team.updated_at,
            user_role=user_role,
        )
