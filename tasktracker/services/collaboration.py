import logging
from typing import List, Optional

from fastapi import UploadFile
from sqlalchemy.orm import Session

from tasktracker.errors import ForbiddenError, NotFoundError, ValidationError
from tasktracker.models.attachment import Attachment
from tasktracker.models.comment import Comment
from tasktracker.models.user import User
from tasktracker.realtime.notifier import NotificationRouter
from tasktracker.schemas.collaboration import CommentCreate
from tasktracker.services.tasks import get_task_or_404
from tasktracker.utils.files import BlobStore, is_allowed_file_type

logger = logging.getLogger(__name__)

NEW_COMMENT = "new_comment"


def add_comment(db: Session, notifier: NotificationRouter, actor: User, task_id: int, data: CommentCreate) -> Comment:
    task = get_task_or_404(db, task_id)

    comment = Comment(task_id=task.id, user_id=actor.id, content=data.content)
    db.add(comment)
    db.commit()
    db.refresh(comment)

    recipients = {task.created_by_id, task.assigned_to_id} - {actor.id, None}
    notifier.notify_many(sorted(recipients), {
        "type": NEW_COMMENT,
        "message": f"New comment on task: {task.title}",
        "taskId": task.id,
        "commentId": comment.id,
    })
    return comment


def list_comments(db: Session, task_id: int) -> List[Comment]:
    get_task_or_404(db, task_id)
    return (
        db.query(Comment)
        .filter(Comment.task_id == task_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )


def delete_comment(db: Session, actor: User, task_id: int, comment_id: int) -> None:
    comment = db.query(Comment).filter(Comment.id == comment_id, Comment.task_id == task_id).first()
    if not comment:
        raise NotFoundError("Comment not found")
    if comment.user_id != actor.id:
        raise ForbiddenError("You can only delete your own comments")
    db.delete(comment)
    db.commit()


def upload_attachment(
    db: Session,
    blob_store: BlobStore,
    actor: User,
    task_id: int,
    upload: Optional[UploadFile],
    max_size: int,
) -> Attachment:
    task = get_task_or_404(db, task_id)
    if upload is None or not upload.filename:
        raise ValidationError("No file uploaded", errors=[{"field": "file", "message": "A file is required"}])
    if not is_allowed_file_type(upload.content_type):
        raise ValidationError("File type not allowed. Please upload images, documents, or text files.")

    with blob_store.staged(upload.filename) as path:
        size = blob_store.write(path, upload.file, max_size)
        attachment = Attachment(
            task_id=task.id,
            user_id=actor.id,
            filename=upload.filename,
            filepath=str(path),
            filesize=size,
            mimetype=upload.content_type,
        )
        db.add(attachment)
        db.commit()
    db.refresh(attachment)
    logger.info("User %s attached %s to task %s", actor.id, attachment.filename, task.id)
    return attachment


def list_attachments(db: Session, task_id: int) -> List[Attachment]:
    get_task_or_404(db, task_id)
    return (
        db.query(Attachment)
        .filter(Attachment.task_id == task_id)
        .order_by(Attachment.created_at.desc(), Attachment.id.desc())
        .all()
    )


def get_attachment_or_404(db: Session, task_id: int, attachment_id: int) -> Attachment:
    attachment = (
        db.query(Attachment)
        .filter(Attachment.id == attachment_id, Attachment.task_id == task_id)
        .first()
    )
    if not attachment:
        raise NotFoundError("Attachment not found")
    return attachment


def get_attachment_file(db: Session, blob_store: BlobStore, task_id: int, attachment_id: int) -> Attachment:
    attachment = get_attachment_or_404(db, task_id, attachment_id)
    if not blob_store.exists(attachment.filepath):
        raise NotFoundError("File not found on server")
    return attachment


def delete_attachment(db: Session, blob_store: BlobStore, actor: User, task_id: int, attachment_id: int) -> None:
    attachment = get_attachment_or_404(db, task_id, attachment_id)
    if attachment.user_id != actor.id:
        raise ForbiddenError("You can only delete your own attachments")

    # the record goes even when the blob cannot be removed
    blob_store.delete(attachment.filepath)
    db.delete(attachment)
    db.commit()
