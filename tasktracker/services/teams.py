import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from tasktracker.database import commit_or_conflict
from tasktracker.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from tasktracker.models.task import Task, TASK_STATUSES
from tasktracker.models.team import Team, TeamMember
from tasktracker.models.user import User
from tasktracker.realtime.notifier import NotificationRouter
from tasktracker.schemas.common import Pagination
from tasktracker.schemas.team import TeamCreate, TeamUpdate
from tasktracker.services.tasks import normalize_page

logger = logging.getLogger(__name__)

TEAM_INVITATION = "team_invitation"
ALREADY_MEMBER = "User is already a member of this team"


def get_team_or_404(db: Session, team_id: int) -> Team:
    team = db.get(Team, team_id)
    if not team:
        raise NotFoundError("Team not found")
    return team


def get_membership(db: Session, team_id: int, user_id: int) -> Optional[TeamMember]:
    return (
        db.query(TeamMember)
        .filter(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
        .first()
    )


def _require_member(db: Session, team: Team, user: User) -> TeamMember:
    membership = get_membership(db, team.id, user.id)
    if not membership:
        raise ForbiddenError("You are not a member of this team")
    return membership


def _require_owner(team: Team, user: User, message: str) -> None:
    if team.owner_id != user.id:
        raise ForbiddenError(message)


def create_team(db: Session, actor: User, data: TeamCreate) -> Team:
    team = Team(name=data.name, description=data.description, owner_id=actor.id)
    # owner membership is written in the same transaction as the team
    team.memberships.append(TeamMember(user_id=actor.id, role="owner"))
    db.add(team)
    db.commit()
    db.refresh(team)
    logger.info("User %s created team %s", actor.id, team.id)
    return team


def list_teams(db: Session, actor: User) -> List[Tuple[Team, str]]:
    memberships = (
        db.query(TeamMember)
        .filter(TeamMember.user_id == actor.id)
        .order_by(TeamMember.joined_at, TeamMember.id)
        .all()
    )
    return [(m.team, m.role) for m in memberships]


def get_team(db: Session, actor: User, team_id: int) -> Tuple[Team, str]:
    team = get_team_or_404(db, team_id)
    membership = _require_member(db, team, actor)
    return team, membership.role


def update_team(db: Session, actor: User, team_id: int, data: TeamUpdate) -> Team:
    team = get_team_or_404(db, team_id)
    _require_owner(team, actor, "Only the team owner can update this team")

    if data.name:
        team.name = data.name
    if "description" in data.model_fields_set:
        team.description = data.description
    db.commit()
    db.refresh(team)
    return team


def delete_team(db: Session, actor: User, team_id: int) -> None:
    team = get_team_or_404(db, team_id)
    _require_owner(team, actor, "Only the team owner can delete this team")

    db.query(Task).filter(Task.team_id == team.id).update({Task.team_id: None}, synchronize_session=False)
    db.delete(team)
    db.commit()
    logger.info("User %s deleted team %s", actor.id, team_id)


def add_member(db: Session, notifier: NotificationRouter, actor: User, team_id: int, user_id: int) -> Team:
    team = get_team_or_404(db, team_id)
    if not db.get(User, user_id):
        raise NotFoundError("User not found")
    _require_owner(team, actor, "Only the team owner can add members")
    if get_membership(db, team.id, user_id):
        raise ConflictError(ALREADY_MEMBER)

    db.add(TeamMember(team_id=team.id, user_id=user_id, role="member"))
    commit_or_conflict(db, ALREADY_MEMBER)
    db.refresh(team)

    notifier.notify(user_id, {
        "type": TEAM_INVITATION,
        "message": f"You have been added to team: {team.name}",
        "teamId": team.id,
    })
    return team


def remove_member(db: Session, actor: User, team_id: int, user_id: int) -> None:
    """The owner may remove anyone but themself; members may only leave.

    Removing the owner is rejected for every caller.
    """
    team = get_team_or_404(db, team_id)
    if user_id == team.owner_id:
        raise ValidationError("Cannot remove the team owner. Transfer ownership or delete the team instead.")
    if actor.id != team.owner_id and actor.id != user_id:
        raise ForbiddenError("You do not have permission to remove this member")

    membership = get_membership(db, team.id, user_id)
    if not membership:
        raise NotFoundError("User is not a member of this team")
    db.delete(membership)
    db.commit()


def team_tasks(
    db: Session,
    actor: User,
    team_id: int,
    *,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Task], Pagination]:
    team = get_team_or_404(db, team_id)
    _require_member(db, team, actor)
    if status is not None and status not in TASK_STATUSES:
        raise ValidationError(
            "Validation failed",
            errors=[{"field": "status", "message": "Status must be open, in_progress, or completed"}],
        )

    query = db.query(Task).filter(Task.team_id == team.id)
    if status:
        query = query.filter(Task.status == status)

    page, limit = normalize_page(page, limit)
    total = query.count()
    tasks = (
        query.order_by(Task.created_at.desc(), Task.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    return tasks, Pagination.build(total, page, limit)
