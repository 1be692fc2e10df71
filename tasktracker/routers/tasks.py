from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tasktracker.database import get_db
from tasktracker.deps import get_blob_store, get_notifier
from tasktracker.models.user import User
from tasktracker.realtime.notifier import NotificationRouter
from tasktracker.schemas.common import dump, envelope
from tasktracker.schemas.task import TaskAssign, TaskCreate, TaskDetail, TaskOut, TaskUpdate
from tasktracker.services import tasks as task_service
from tasktracker.utils.auth import get_current_user
from tasktracker.utils.files import BlobStore

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _task(task):
    return dump(TaskOut.model_validate(task))


@router.post("", status_code=201)
def create_task(
    task: TaskCreate,
    db: Session = Depends(get_db),
    notifier: NotificationRouter = Depends(get_notifier),
    current_user: User = Depends(get_current_user),
):
    new = task_service.create_task(db, notifier, current_user, task)
    return envelope("Task created successfully", task=_task(new))

@router.get("")
def list_tasks(
    status: Optional[str] = None,
    assigned_to: Optional[int] = Query(None, alias="assignedTo"),
    team_id: Optional[int] = Query(None, alias="teamId"),
    search: Optional[str] = Query(None, description="Search in title and description"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    order: str = "desc",
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    tasks, pagination = task_service.list_tasks(
        db,
        current_user,
        status=status,
        assigned_to=assigned_to,
        team_id=team_id,
        search=search,
        sort_by=sort_by,
        order=order,
        page=page,
        limit=limit,
    )
    return envelope(tasks=[_task(t) for t in tasks], pagination=dump(pagination))

@router.get("/{task_id}")
def get_task(task_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    task = task_service.get_task_or_404(db, task_id)
    return envelope(task=dump(TaskDetail.model_validate(task)))

@router.put("/{task_id}")
def update_task(
    task_id: int,
    data: TaskUpdate,
    db: Session = Depends(get_db),
    notifier: NotificationRouter = Depends(get_notifier),
    current_user: User = Depends(get_current_user),
):
    task = task_service.update_task(db, notifier, current_user, task_id, data)
    return envelope("Task updated successfully", task=_task(task))

@router.delete("/{task_id}")
def delete_task(
    task_id: int,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    current_user: User = Depends(get_current_user),
):
    task_service.delete_task(db, blob_store, current_user, task_id)
    return envelope("Task deleted successfully")

@router.patch("/{task_id}/complete")
def complete_task(
    task_id: int,
    db: Session = Depends(get_db),
    notifier: NotificationRouter = Depends(get_notifier),
    current_user: User = Depends(get_current_user),
):
    task = task_service.complete_task(db, notifier, current_user, task_id)
    return envelope("Task marked as completed", task=_task(task))

@router.patch("/{task_id}/assign")
def assign_task(
    task_id: int,
    data: TaskAssign,
    db: Session = Depends(get_db),
    notifier: NotificationRouter = Depends(get_notifier),
    current_user: User = Depends(get_current_user),
):
    task = task_service.assign_task(db, notifier, current_user, task_id, data.user_id)
    return envelope("Task assigned successfully", task=_task(task))
