from sqlalchemy.orm import Session

from tasktracker.database import commit_or_conflict
from tasktracker.errors import ConflictError
from tasktracker.models.user import User
from tasktracker.schemas.user import ProfileUpdate
from tasktracker.services.auth import find_by_email

EMAIL_IN_USE = "Email already in use"


def update_profile(db: Session, user: User, data: ProfileUpdate) -> User:
    if data.email and data.email != user.email:
        if find_by_email(db, data.email):
            raise ConflictError(EMAIL_IN_USE)
        user.email = data.email
    if data.first_name:
        user.first_name = data.first_name
    if data.last_name:
        user.last_name = data.last_name

    commit_or_conflict(db, EMAIL_IN_USE)
    db.refresh(user)
    return user
