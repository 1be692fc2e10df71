from datetime import datetime, timedelta, UTC
from typing import Optional

from fastapi import Depends, Header, HTTPException
from jose import jwt, JWTError, ExpiredSignatureError
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from tasktracker.config import SECRET_KEY, ALGORITHM
from tasktracker.database import get_db
from tasktracker.models.user import User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str):
    """Hash a password after validating bcrypt's 72-byte limit.

    Raises ValueError if the UTF-8 encoding of the password exceeds 72 bytes.
    """
    if isinstance(password, str):
        b = password.encode("utf-8")
        if len(b) > 72:
            # make the failure explicit and consistent
            raise ValueError("password too long: must be at most 72 bytes when UTF-8 encoded")
    return pwd_context.hash(password)


def verify_password(plain, hashed):
    """Verify a plaintext password against a hash.

    If verification raises a ValueError (for example plain >72 bytes), return False
    to allow the caller to respond with an authentication failure instead of an error.
    """
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        return False

def create_token(data: dict):
    data = data.copy()
    # read expiry at call-time so tests (and runtime overrides) that modify
    # tasktracker.config.ACCESS_TOKEN_EXPIRE_MINUTES take effect immediately
    import tasktracker.config as _cfg
    expire = datetime.now(UTC) + timedelta(minutes=_cfg.ACCESS_TOKEN_EXPIRE_MINUTES)
    data.update({"exp": int(expire.timestamp())})  # exp is a Unix timestamp
    return jwt.encode(data, SECRET_KEY, algorithm=ALGORITHM)


def token_for(user: User) -> str:
    return create_token({"sub": str(user.id), "email": user.email})


def _extract_token(authorization: Optional[str], token_query: Optional[str]) -> Optional[str]:
    """Return token from Authorization header (Bearer ...) or token query param (compat).
    Header has precedence.
    """
    if authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
    return token_query


def decode_user_id(tok: str) -> int:
    try:
        # jwt.decode validates exp automatically
        payload = jwt.decode(tok, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    sub = payload.get("sub")
    if not sub or not str(sub).isdigit():
        raise HTTPException(status_code=401, detail="Invalid token: missing user")
    return int(sub)


def get_current_user(
    authorization: Optional[str] = Header(None),
    token: Optional[str] = None,
    db: Session = Depends(get_db),
) -> User:
    tok = _extract_token(authorization, token)
    if not tok:
        raise HTTPException(status_code=401, detail="Authentication required. Please login to access this resource.")
    user = db.get(User, decode_user_id(tok))
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid token: user no longer exists")
    return user
