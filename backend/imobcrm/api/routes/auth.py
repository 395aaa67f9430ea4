from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from imobcrm.core.config import get_settings
from imobcrm.core.database import get_db
from imobcrm.core.deps import get_current_user, require_roles
from imobcrm.core.rate_limit import limiter
from imobcrm.core.security import create_access_token, get_password_hash, validate_password_strength, verify_password
from imobcrm.models.user import User, UserDepartment, UserRole
from imobcrm.schemas.auth import TokenResponse, UserCreate, UserResponse
from imobcrm.services.audit import audit_event

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
@limiter.limit("20/minute")
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    settings = get_settings()
    user = db.query(User).filter(User.email == form_data.username).first()
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    ip_address = request.client.host if request.client else None

    if not user:
        raise HTTPException(status_code=400, detail="Incorrect email or password")

    if user.locked_until and user.locked_until > now:
        raise HTTPException(status_code=423, detail="Account is temporarily locked")

    if not verify_password(form_data.password, user.hashed_password):
        user.failed_login_attempts += 1
        if user.failed_login_attempts >= settings.LOGIN_MAX_ATTEMPTS:
            user.locked_until = now + timedelta(minutes=settings.LOGIN_LOCK_MINUTES)
            user.failed_login_attempts = 0
        db.commit()
        audit_event(db, "login_failed", "auth", user_id=user.id, ip_address=ip_address)
        raise HTTPException(status_code=400, detail="Incorrect email or password")

    if not user.is_active:
        raise HTTPException(status_code=403, detail="User inactive")

    user.failed_login_attempts = 0
    user.locked_until = None
    db.commit()

    access = create_access_token(str(user.id), user.role, user.session_version)
    audit_event(db, "login_success", "auth", user_id=user.id, ip_address=ip_address)
    return TokenResponse(access_token=access)


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/users", response_model=UserResponse)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.manager)),
):
    if payload.role not in {r.value for r in UserRole}:
        raise HTTPException(status_code=400, detail=f"Unknown role {payload.role}")
    if db.query(User).filter(User.email == payload.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    if not validate_password_strength(payload.password):
        raise HTTPException(
            status_code=400,
            detail="Weak password. Use 8+ chars with upper/lowercase and a number.",
        )

    user = User(
        full_name=payload.full_name,
        email=payload.email,
        phone=payload.phone,
        hashed_password=get_password_hash(payload.password),
        role=payload.role,
        department=payload.department or UserDepartment.atendimento.value,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    audit_event(db, "user_create", "user", user_id=current_user.id, resource_id=user.id)
    return user


@router.get("/users", response_model=list[UserResponse])
def list_users(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return db.query(User).filter(User.is_active == True).order_by(User.full_name).all()  # noqa: E712


@router.post("/revoke")
def revoke_sessions(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    current_user.session_version += 1
    db.commit()
    return {"status": "revoked"}
