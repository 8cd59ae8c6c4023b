from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from datetime import timedelta

from core.security import verify_password, hash_password, create_access_token, get_current_user
from core.deps import get_audit, get_anonymous_context, get_request_context
from core.context import RequestContext
from core.config import settings
from db.session import get_db
from schemas.auth import LoginIn, Token, RegisterIn, ChangePasswordIn
from schemas.user import UserOut, UserUpdate
from models.user import User
from services.audit import AuditSink
from services.store import store_errors

router = APIRouter()

MIN_PASSWORD_LENGTH = 6


def _issue_token(user: User) -> dict:
    token = create_access_token(
        {"sub": str(user.id)},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return {"access_token": token, "token_type": "bearer", "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60}


@router.post("/register", response_model=UserOut, status_code=201)
def register(
    data: RegisterIn,
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit),
    ctx: RequestContext = Depends(get_anonymous_context),
):
    if not data.name.strip() or "@" not in data.email:
        raise HTTPException(status_code=400, detail="A name and a valid email are required")
    if len(data.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must have at least {MIN_PASSWORD_LENGTH} characters")
    existing = db.query(User).filter(User.email == data.email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    user = User(name=data.name.strip(), email=data.email, password_hash=hash_password(data.password))
    with store_errors(db, "Email already registered"):
        db.add(user)
        db.commit()
        db.refresh(user)
    audit.record(RequestContext(user.id, ctx.ip_address, ctx.user_agent), "user_create", "user", user.id)
    return user


@router.post("/login", response_model=Token)
def login(
    data: LoginIn,
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit),
    ctx: RequestContext = Depends(get_anonymous_context),
):
    user = db.query(User).filter(User.email == data.email, User.is_active.is_(True)).first()
    if not user or not verify_password(data.password, user.password_hash):
        if user:
            audit.record(RequestContext(user.id, ctx.ip_address, ctx.user_agent), "login_failed")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    user.last_login = ctx.now
    db.commit()
    audit.record(RequestContext(user.id, ctx.ip_address, ctx.user_agent), "login_success")
    return _issue_token(user)


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/me", response_model=UserOut)
def update_me(
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit),
    ctx: RequestContext = Depends(get_request_context),
):
    if not data.name.strip():
        raise HTTPException(status_code=400, detail="Name cannot be empty")
    current_user.name = data.name.strip()
    db.commit()
    db.refresh(current_user)
    audit.record(ctx, "user_update", "user", current_user.id)
    return current_user


@router.post("/change_password")
def change_password(
    data: ChangePasswordIn,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit),
    ctx: RequestContext = Depends(get_request_context),
):
    if not verify_password(data.old_password, current_user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    if len(data.new_password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must have at least {MIN_PASSWORD_LENGTH} characters")
    current_user.password_hash = hash_password(data.new_password)
    db.commit()
    audit.record(ctx, "password_change", "user", current_user.id)
    return {"ok": True}


@router.post("/logout")
def logout(audit: AuditSink = Depends(get_audit), ctx: RequestContext = Depends(get_request_context)):
    # frontend should discard token; server can implement blacklist if desired
    audit.record(ctx, "logout")
    return {"ok": True}
