from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tasktracker.database import get_db
from tasktracker.deps import get_notifier
from tasktracker.models.user import User
from tasktracker.realtime.notifier import NotificationRouter
from tasktracker.schemas.common import dump, envelope
from tasktracker.schemas.task import TaskOut
from tasktracker.schemas.team import AddMember, TeamCreate, TeamOut, TeamUpdate
from tasktracker.services import teams as team_service
from tasktracker.utils.auth import get_current_user

router = APIRouter(prefix="/teams", tags=["teams"])


def _team(team, user_role=None):
    return dump(TeamOut.from_team(team, user_role))


@router.post("", status_code=201)
def create_team(data: TeamCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    team = team_service.create_team(db, current_user, data)
    return envelope("Team created successfully", team=_team(team, "owner"))

@router.get("")
def list_teams(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    teams = team_service.list_teams(db, current_user)
    return envelope(teams=[_team(team, role) for team, role in teams])

@router.get("/{team_id}")
def get_team(team_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    team, role = team_service.get_team(db, current_user, team_id)
    return envelope(team=_team(team, role))

@router.put("/{team_id}")
def update_team(team_id: int, data: TeamUpdate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    team = team_service.update_team(db, current_user, team_id, data)
    return envelope("Team updated successfully", team=_team(team))

@router.delete("/{team_id}")
def delete_team(team_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    team_service.delete_team(db, current_user, team_id)
    return envelope("Team deleted successfully")

@router.post("/{team_id}/members")
def add_member(
    team_id: int,
    data: AddMember,
    db: Session = Depends(get_db),
    notifier: NotificationRouter = Depends(get_notifier),
    current_user: User = Depends(get_current_user),
):
    team = team_service.add_member(db, notifier, current_user, team_id, data.user_id)
    return envelope("Member added successfully", team=_team(team))

@router.delete("/{team_id}/members/{user_id}")
def remove_member(team_id: int, user_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    team_service.remove_member(db, current_user, team_id, user_id)
    return envelope("Member removed successfully")

@router.get("/{team_id}/tasks")
def team_tasks(
    team_id: int,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    tasks, pagination = team_service.team_tasks(db, current_user, team_id, status=status, page=page, limit=limit)
    return envelope(tasks=[dump(TaskOut.model_validate(t)) for t in tasks], pagination=dump(pagination))
