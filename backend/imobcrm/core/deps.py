from datetime import datetime, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from imobcrm.core.database import get_db
from imobcrm.core.security import decode_token
from imobcrm.models.user import User, UserRole

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def get_current_user(db: Session = Depends(get_db), token: str = Depends(oauth2_scheme)) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )
    try:
        payload = decode_token(token)
        if payload.get("typ") != "access":
            raise credentials_exception
        user_id = payload.get("sub")
        token_session_version = payload.get("sv")
        if not user_id or token_session_version is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = db.query(User).filter(User.id == int(user_id)).first()
    if not user:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User inactive")
    if user.session_version != int(token_session_version):
        raise HTTPException(status_code=401, detail="Session revoked")
    if user.locked_until and user.locked_until > datetime.now(timezone.utc).replace(tzinfo=None):
        raise HTTPException(status_code=423, detail="Account locked")

    return user


def require_roles(*roles: UserRole):
    allowed = {role.value for role in roles}

    def role_dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return current_user

    return role_dependency


def is_manager(user: User) -> bool:
    return user.role == UserRole.manager
