"""Task CRUD, authorization rules and notification fan-out.

Authorization:
  * update / complete: creator or current assignee
  * delete / assign:   creator only

Existence of every referenced entity is checked before permissions.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from tasktracker.database import utcnow
from tasktracker.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from tasktracker.models.task import Task, TASK_STATUSES
from tasktracker.models.team import Team, TeamMember
from tasktracker.models.user import User
from tasktracker.realtime.notifier import NotificationRouter
from tasktracker.schemas.common import Pagination
from tasktracker.schemas.task import TaskCreate, TaskUpdate
from tasktracker.utils.files import BlobStore

logger = logging.getLogger(__name__)

TASK_ASSIGNED = "task_assigned"
TASK_UPDATED = "task_updated"
TASK_COMPLETED = "task_completed"

SORT_FIELDS = {
    "createdAt": Task.created_at,
    "updatedAt": Task.updated_at,
    "dueDate": Task.due_date,
    "priority": Task.priority,
    "status": Task.status,
    "title": Task.title,
}

MAX_PAGE_SIZE = 100


def get_task_or_404(db: Session, task_id: int) -> Task:
    task = db.get(Task, task_id)
    if not task:
        raise NotFoundError("Task not found")
    return task


def _require_user(db: Session, user_id: int, message: str = "Assigned user not found") -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError(message)
    return user


def _save(db: Session, task: Task) -> None:
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConflictError("Task was modified by another request, reload it and try again")
    db.refresh(task)


def _can_edit(task: Task, user: User) -> bool:
    return user.id in (task.created_by_id, task.assigned_to_id)


def _event(kind: str, message: str, task: Task) -> dict:
    return {"type": kind, "message": message, "taskId": task.id}


def normalize_page(page: int, limit: int) -> Tuple[int, int]:
    if page < 1:
        page = 1
    if limit < 1:
        limit = 10
    return page, min(limit, MAX_PAGE_SIZE)


def create_task(db: Session, notifier: NotificationRouter, actor: User, data: TaskCreate) -> Task:
    if data.assigned_to_id is not None:
        _require_user(db, data.assigned_to_id)
    if data.team_id is not None and not db.get(Team, data.team_id):
        raise NotFoundError("Team not found")

    task = Task(
        title=data.title,
        description=data.description,
        due_date=data.due_date,
        priority=data.priority,
        status="open",
        created_by_id=actor.id,
        assigned_to_id=data.assigned_to_id,
        team_id=data.team_id,
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info("User %s created task %s", actor.id, task.id)

    if task.assigned_to_id is not None:
        notifier.notify(task.assigned_to_id, _event(TASK_ASSIGNED, f"You have been assigned a new task: {task.title}", task))
    return task


def list_tasks(
    db: Session,
    actor: User,
    *,
    status: Optional[str] = None,
    assigned_to: Optional[int] = None,
    team_id: Optional[int] = None,
    search: Optional[str] = None,
    sort_by: str = "createdAt",
    order: str = "desc",
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[Task], Pagination]:
    """Filtered, sorted, paginated listing.

    With no filter at all the caller sees the tasks they created or were
    assigned. Filtering by team requires membership of that team.
    """
    if sort_by not in SORT_FIELDS:
        raise ValidationError(
            "Validation failed",
            errors=[{"field": "sortBy", "message": f"sortBy must be one of {', '.join(SORT_FIELDS)}"}],
        )
    if order.lower() not in ("asc", "desc"):
        raise ValidationError("Validation failed", errors=[{"field": "order", "message": "order must be asc or desc"}])
    if status is not None and status not in TASK_STATUSES:
        raise ValidationError(
            "Validation failed",
            errors=[{"field": "status", "message": "Status must be open, in_progress, or completed"}],
        )

    if team_id is not None:
        if not db.get(Team, team_id):
            raise NotFoundError("Team not found")
        membership = (
            db.query(TeamMember)
            .filter(TeamMember.team_id == team_id, TeamMember.user_id == actor.id)
            .first()
        )
        if not membership:
            raise ForbiddenError("You are not a member of this team")

    query = db.query(Task)
    if status:
        query = query.filter(Task.status == status)
    if assigned_to is not None:
        query = query.filter(Task.assigned_to_id == assigned_to)
    if team_id is not None:
        query = query.filter(Task.team_id == team_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))
    if not status and assigned_to is None and team_id is None and not search:
        query = query.filter(or_(Task.created_by_id == actor.id, Task.assigned_to_id == actor.id))

    page, limit = normalize_page(page, limit)
    total = query.count()
    column = SORT_FIELDS[sort_by]
    direction = column.asc() if order.lower() == "asc" else column.desc()
    tasks = query.order_by(direction, Task.id).limit(limit).offset((page - 1) * limit).all()
    return tasks, Pagination.build(total, page, limit)


def update_task(db: Session, notifier: NotificationRouter, actor: User, task_id: int, data: TaskUpdate) -> Task:
    task = get_task_or_404(db, task_id)
    fields = data.model_fields_set

    new_assignee = data.assigned_to_id if "assigned_to_id" in fields else None
    if new_assignee is not None and new_assignee != task.assigned_to_id:
        _require_user(db, new_assignee)

    if not _can_edit(task, actor):
        raise ForbiddenError("You do not have permission to update this task")

    assignment_changed = new_assignee is not None and new_assignee != task.assigned_to_id
    previous_assignee = task.assigned_to_id

    if "title" in fields and data.title is not None:
        task.title = data.title
    if "description" in fields:
        task.description = data.description
    if "due_date" in fields:
        task.due_date = data.due_date
    if "status" in fields and data.status is not None:
        if data.status == "completed" and task.status != "completed":
            task.completed_at = utcnow()
        task.status = data.status
    if "priority" in fields and data.priority is not None:
        task.priority = data.priority
    if "assigned_to_id" in fields:
        task.assigned_to_id = data.assigned_to_id

    _save(db, task)

    if assignment_changed:
        notifier.notify(new_assignee, _event(TASK_ASSIGNED, f"You have been assigned to task: {task.title}", task))
        if previous_assignee is not None:
            notifier.notify(previous_assignee, _event(TASK_UPDATED, f'Task "{task.title}" has been reassigned', task))
    elif task.assigned_to_id is not None and task.assigned_to_id != actor.id:
        notifier.notify(task.assigned_to_id, _event(TASK_UPDATED, f'Task "{task.title}" has been updated', task))
    return task


def delete_task(db: Session, blob_store: BlobStore, actor: User, task_id: int) -> None:
    task = get_task_or_404(db, task_id)
    if task.created_by_id != actor.id:
        raise ForbiddenError("Only the task creator can delete this task")

    blobs = [a.filepath for a in task.attachments]
    db.delete(task)
    db.commit()
    for path in blobs:
        blob_store.delete(path)
    logger.info("User %s deleted task %s", actor.id, task_id)


def complete_task(db: Session, notifier: NotificationRouter, actor: User, task_id: int) -> Task:
    task = get_task_or_404(db, task_id)
    if not _can_edit(task, actor):
        raise ForbiddenError("You do not have permission to complete this task")

    task.status = "completed"
    task.completed_at = utcnow()
    _save(db, task)

    if task.created_by_id != actor.id:
        notifier.notify(task.created_by_id, _event(TASK_COMPLETED, f'Task "{task.title}" has been completed', task))
    return task


def assign_task(db: Session, notifier: NotificationRouter, actor: User, task_id: int, user_id: int) -> Task:
    """Creator-only reassignment.

    Unlike ``update_task`` the current assignee may not use this action.
    Assigning to the current assignee changes nothing and notifies no one.
    """
    task = get_task_or_404(db, task_id)
    _require_user(db, user_id, "User not found")
    if task.created_by_id != actor.id:
        raise ForbiddenError("Only the task creator can assign this task")

    previous_assignee = task.assigned_to_id
    if previous_assignee == user_id:
        return task

    task.assigned_to_id = user_id
    _save(db, task)

    notifier.notify(user_id, _event(TASK_ASSIGNED, f"You have been assigned to task: {task.title}", task))
    if previous_assignee is not None:
        notifier.notify(previous_assignee, _event(TASK_UPDATED, f'Task "{task.title}" has been reassigned', task))
    return task
