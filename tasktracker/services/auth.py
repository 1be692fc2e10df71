import logging
from typing import Optional

from sqlalchemy.orm import Session

from tasktracker.database import commit_or_conflict
from tasktracker.errors import ConflictError, ValidationError
from tasktracker.models.user import User
from tasktracker.schemas.user import UserCreate
from tasktracker.utils.auth import hash_password, verify_password

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL = "User with this email already exists"


def find_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower()).first()


def register_user(db: Session, data: UserCreate) -> User:
    if find_by_email(db, data.email):
        raise ConflictError(DUPLICATE_EMAIL)

    try:
        hashed = hash_password(data.password)
    except ValueError as e:
        raise ValidationError(str(e), errors=[{"field": "password", "message": str(e)}])

    user = User(
        email=data.email,
        password=hashed,
        first_name=data.first_name,
        last_name=data.last_name,
    )
    db.add(user)
    commit_or_conflict(db, DUPLICATE_EMAIL)
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    user = find_by_email(db, email)
    if not user or not verify_password(password, user.password):
        return None
    return user
