from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from tasktracker.database import get_db
from tasktracker.models.user import User
from tasktracker.schemas.common import dump, envelope
from tasktracker.schemas.user import UserCreate, UserLogin, UserOut
from tasktracker.services import auth as auth_service
from tasktracker.utils.auth import get_current_user, token_for

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/register", status_code=201)
def register(user: UserCreate, db: Session = Depends(get_db)):
    new_user = auth_service.register_user(db, user)
    return envelope("User registered successfully", user=dump(UserOut.model_validate(new_user)), token=token_for(new_user))

@router.post("/login")
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    db_user = auth_service.authenticate(db, credentials.email, credentials.password)
    if not db_user:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return envelope("Login successful", user=dump(UserOut.model_validate(db_user)), token=token_for(db_user))

@router.post("/logout")
def logout(current_user: User = Depends(get_current_user)):
    # tokens are stateless; the client drops its copy
    return envelope("Logout successful")

@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return envelope(user=dump(UserOut.model_validate(current_user)))
