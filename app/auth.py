# app/auth.py
from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from jose import jwt
from jose.exceptions import JOSEError
from passlib.context import CryptContext
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from .errors import ConflictError
from .models import Role, User

log = structlog.get_logger(__name__)

pwd = CryptContext(schemes=["argon2"], deprecated="auto")

# verified against when the email is unknown, so both failure paths cost a hash
_DUMMY_HASH = pwd.hash("not-a-real-password")


class UserPayload(BaseModel):
    """Identity carried inside the session token."""

    id: int
    email: str
    name: str
    role: Role
    language: str = "en"

    @classmethod
    def from_user(cls, u: User) -> "UserPayload":
        return cls(id=u.id, email=u.email, name=u.name, role=Role(u.role), language=u.language)


def _jwt_secret() -> str:
    return os.getenv("JWT_SECRET", "dev-secret-change-me")


def _jwt_alg() -> str:
    return os.getenv("JWT_ALG", "HS256")


def _jwt_expire_minutes() -> int:
    # default 24h
    raw = os.getenv("JWT_EXPIRE_MIN", "1440")
    try:
        return int(raw)
    except ValueError:
        return 1440


def hash_password(p: str) -> str:
    return pwd.hash(p)


def verify_password(p: str, h: str) -> bool:
    try:
        return pwd.verify(p, h)
    except (ValueError, TypeError):
        # unrecognised or corrupt hash
        return False


def create_token(payload: UserPayload, expires_delta: Optional[timedelta] = None) -> str:
    delta = expires_delta if expires_delta is not None else timedelta(minutes=_jwt_expire_minutes())
    exp = datetime.now(timezone.utc) + delta
    claims = payload.model_dump(mode="json")
    claims["exp"] = exp
    return jwt.encode(claims, _jwt_secret(), algorithm=_jwt_alg())


def decode_token(token: str) -> Optional[UserPayload]:
    try:
        data = jwt.decode(token, _jwt_secret(), algorithms=[_jwt_alg()])
    except (JOSEError, ValueError):
        return None
    data.pop("exp", None)
    try:
        return UserPayload.model_validate(data)
    except PydanticValidationError:
        return None


def validate_credentials(db: Session, email: str, password: str) -> Optional[UserPayload]:
    email = (email or "").strip().lower()
    u = db.query(User).filter(User.email == email).first()
    if not u:
        verify_password(password, _DUMMY_HASH)
        log.info("login_failed", email=email)
        return None
    if not verify_password(password, u.password_hash):
        log.info("login_failed", email=email)
        return None
    return UserPayload.from_user(u)


def create_user(
    db: Session,
    *,
    email: str,
    name: str,
    password: str,
    role: Role,
    language: str = "en",
) -> User:
    email = email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise ConflictError("User with this email already exists")

    u = User(
        email=email,
        name=name,
        password_hash=hash_password(password),
        role=Role(role).value,
        language=language or "en",
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    log.info("user_created", user_id=u.id, role=u.role)
    return u
