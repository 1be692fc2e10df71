from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tasktracker.database import get_db
from tasktracker.models.user import User
from tasktracker.schemas.common import dump, envelope
from tasktracker.schemas.user import ProfileUpdate, UserOut
from tasktracker.services import users as user_service
from tasktracker.utils.auth import get_current_user

router = APIRouter(prefix="/users", tags=["users"])

@router.get("/profile")
def get_profile(current_user: User = Depends(get_current_user)):
    return envelope(user=dump(UserOut.model_validate(current_user)))

@router.put("/profile")
def update_profile(data: ProfileUpdate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    user = user_service.update_profile(db, current_user, data)
    return envelope("Profile updated successfully", user=dump(UserOut.model_validate(user)))
