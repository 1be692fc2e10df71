from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

import tasktracker.config as config
from tasktracker.database import get_db
from tasktracker.deps import get_blob_store, get_notifier
from tasktracker.models.user import User
from tasktracker.realtime.notifier import NotificationRouter
from tasktracker.schemas.collaboration import AttachmentOut, CommentCreate, CommentOut
from tasktracker.schemas.common import dump, envelope
from tasktracker.services import collaboration as collab_service
from tasktracker.utils.auth import get_current_user
from tasktracker.utils.files import BlobStore

router = APIRouter(prefix="/tasks/{task_id}", tags=["collaboration"])

@router.post("/comments", status_code=201)
def add_comment(
    task_id: int,
    data: CommentCreate,
    db: Session = Depends(get_db),
    notifier: NotificationRouter = Depends(get_notifier),
    current_user: User = Depends(get_current_user),
):
    comment = collab_service.add_comment(db, notifier, current_user, task_id, data)
    return envelope("Comment added successfully", comment=dump(CommentOut.model_validate(comment)))

@router.get("/comments")
def list_comments(task_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    comments = collab_service.list_comments(db, task_id)
    return envelope(comments=[dump(CommentOut.model_validate(c)) for c in comments])

@router.delete("/comments/{comment_id}")
def delete_comment(task_id: int, comment_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    collab_service.delete_comment(db, current_user, task_id, comment_id)
    return envelope("Comment deleted successfully")

@router.post("/attachments", status_code=201)
def upload_attachment(
    task_id: int,
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    current_user: User = Depends(get_current_user),
):
    attachment = collab_service.upload_attachment(db, blob_store, current_user, task_id, file, config.MAX_FILE_SIZE)
    return envelope("Attachment uploaded successfully", attachment=dump(AttachmentOut.model_validate(attachment)))

@router.get("/attachments")
def list_attachments(task_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    attachments = collab_service.list_attachments(db, task_id)
    return envelope(attachments=[dump(AttachmentOut.model_validate(a)) for a in attachments])

@router.get("/attachments/{attachment_id}/download")
def download_attachment(
    task_id: int,
    attachment_id: int,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    current_user: User = Depends(get_current_user),
):
    attachment = collab_service.get_attachment_file(db, blob_store, task_id, attachment_id)
    return FileResponse(attachment.filepath, media_type=attachment.mimetype, filename=attachment.filename)

@router.delete("/attachments/{attachment_id}")
def delete_attachment(
    task_id: int,
    attachment_id: int,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    current_user: User = Depends(get_current_user),
):
    collab_service.delete_attachment(db, blob_store, current_user, task_id, attachment_id)
    return envelope("Attachment deleted successfully")
