# backend/pulsevote/routers/auth.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pulsevote.core.limiter import auth_limit, limiter
from pulsevote.db import get_db
from pulsevote.db_models import BootstrapMarker, RoleAssignment, User as DBUser
from pulsevote.models import TokenResponse
from pulsevote.security import Principal, Role, require_role
from pulsevote.security.logger import auth_logger as logger
from pulsevote.security.passwords import (
    burn_verification,
    hash_password,
    password_problems,
    verify_password,
)
from pulsevote.security.tokens import create_access_token, role_claims

router = APIRouter(prefix="/api/auth", tags=["auth"])

BOOTSTRAP_MARKER = "initial-admin"


# ---------------- Payloads ----------------
class LoginPayload(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class RegisterPayload(BaseModel):
    email: EmailStr
    password: str

    @field_validator("password")
    @classmethod
    def _password_rules(cls, v: str) -> str:
        problems = password_problems(v)
        if problems:
            raise ValueError("; ".join(problems))
        return v


# ---------------- Utilities ----------------
def _normalize(email: str) -> str:
    return (email or "").strip().lower()


def _client_ip(request: Request) -> str:
    client = request.client
    return client.host if client and client.host else "0.0.0.0"


def issue_token(user: DBUser) -> TokenResponse:
    token = create_access_token(user.id, user.email, role_claims(user.roles))
    return TokenResponse(access_token=token)


def _email_taken(db: Session, email: str) -> bool:
    return db.execute(select(DBUser.id).where(DBUser.email == email)).first() is not None


def _create_account(db: Session, payload: RegisterPayload, role: Role, *, bootstrap: bool = False) -> DBUser:
    email = _normalize(payload.email)
    if _email_taken(db, email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="email_already_registered")

    user = DBUser(email=email, password_hash=hash_password(payload.password))
    user.roles.append(RoleAssignment(organisation_id=None, role=role))
    db.add(user)
    if bootstrap:
        db.add(BootstrapMarker(name=BOOTSTRAP_MARKER))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if bootstrap and not _email_taken(db, email):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="admin_already_exists")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="email_already_registered")
    db.refresh(user)
    return user


# ---------------- Bootstrap ----------------
@router.post("/init-admin", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def init_admin(payload: RegisterPayload, db: Session = Depends(get_db)) -> TokenResponse:
    """Create the first admin. Only succeeds while no admin exists."""
    existing = db.execute(select(RoleAssignment.id).where(RoleAssignment.role == "admin")).first()
    if existing is not None:
        logger.warning(f"Rejected bootstrap admin for {_normalize(payload.email)}: admin exists")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="admin_already_exists")

    user = _create_account(db, payload, "admin", bootstrap=True)
    logger.info(f"Bootstrap admin created: {user.email}")
    return issue_token(user)


# ---------------- Registration ----------------
@router.post("/register-user", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(auth_limit)
def register_user(request: Request, payload: RegisterPayload, db: Session = Depends(get_db)) -> TokenResponse:
    user = _create_account(db, payload, "user")
    logger.info(f"Registered user {user.email} from IP {_client_ip(request)}")
    return issue_token(user)


@router.post("/register-manager", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(auth_limit)
def register_manager(
    request: Request,
    payload: RegisterPayload,
    actor: Principal = Depends(require_role("admin", "manager")),
    db: Session = Depends(get_db),
) -> TokenResponse:
    user = _create_account(db, payload, "manager")
    logger.info(f"Registered manager {user.email} by {actor.email}")
    return issue_token(user)


@router.post("/register-admin", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(auth_limit)
def register_admin(
    request: Request,
    payload: RegisterPayload,
    actor: Principal = Depends(require_role("admin")),
    db: Session = Depends(get_db),
) -> TokenResponse:
    user = _create_account(db, payload, "admin")
    logger.info(f"Registered admin {user.email} by {actor.email}")
    return issue_token(user)


# ---------------- Login ----------------
def _authenticate_user(db: Session, email: str, password: str) -> Optional[DBUser]:
    user = db.execute(select(DBUser).where(DBUser.email == email)).scalars().first()
    if user is None:
        burn_verification(password)
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


@router.post("/login", response_model=TokenResponse)
@limiter.limit(auth_limit)
def login(request: Request, payload: LoginPayload, db: Session = Depends(get_db)) -> TokenResponse:
    email = _normalize(payload.email)
    ip = _client_ip(request)
    logger.info(f"Login attempt for {email} from IP {ip} Password:[REDACTED]")

    user = _authenticate_user(db, email, payload.password)
    if user is None:
        logger.warning(f"Failed login for {email} from IP {ip}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_credentials")

    logger.info(f"Successful login for {email} from IP {ip}")
    return issue_token(user)
