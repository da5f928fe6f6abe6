import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import models
from .config import get_settings
from .database import get_db
from .exceptions import Forbidden, Unauthorized

security_logger = logging.getLogger("security")

pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__rounds=4,
    argon2__memory_cost=65536,
    argon2__parallelism=1,
)

bearer_scheme = HTTPBearer(auto_error=False)


# Password utilities
def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash"""
    if not plain_password or not hashed_password:
        # Accounts created without login access store an empty hash
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception:
        # Unknown/legacy hash formats should not crash login; treat as non-match
        return False


def get_password_hash(password: str) -> str:
    """Generate password hash"""
    return pwd_context.hash(password)


# JWT utilities
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    settings = get_settings()
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

    to_encode.update({
        "exp": expire,
        "type": "access",
        "iat": now,
        "jti": secrets.token_urlsafe(16),
    })

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_user_token(user: models.User, expires_delta: Optional[timedelta] = None) -> str:
    role = user.role.value if hasattr(user.role, "value") else user.role
    return create_access_token(
        {"sub": user.id, "role": role, "email": user.email},
        expires_delta=expires_delta,
    )


def verify_token(token: str, token_type: str = "access") -> Optional[Dict[str, Any]]:
    """Verify and decode JWT token; ``None`` for bad signature, expiry or wrong type."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("type") != token_type:
        return None
    return payload


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Bearer header wins; the auth cookie is the fallback used by browser forms."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(get_settings().auth_cookie_name) or None


# Dependencies for FastAPI
def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> models.User:
    """Resolve the caller from a signed token; any failure is Unauthorized."""
    token = extract_token(request, credentials)
    if not token:
        raise Unauthorized("Unauthorized")

    payload = verify_token(token)
    if not payload:
        security_logger.warning(f"Rejected invalid or expired token on {request.method} {request.url.path}")
        raise Unauthorized("Could not validate credentials")

    user_id = payload.get("sub")
    if not user_id:
        raise Unauthorized("Could not validate credentials")

    user = db.get(models.User, user_id)
    if not user or not user.is_active:
        security_logger.warning(f"Token for unknown or inactive user {user_id} rejected")
        raise Unauthorized("Could not validate credentials")

    return user


def require_role(*allowed_roles: models.UserRole):
    """Dependency factory for role-based access control"""
    allowed = {models.UserRole(role) for role in allowed_roles}

    def role_dependency(current_user: models.User = Depends(get_current_user)) -> models.User:
        if current_user.role not in allowed:
            security_logger.warning(
                f"User {current_user.id} with role {current_user.role.value} denied; requires {sorted(r.value for r in allowed)}"
            )
            raise Forbidden(f"Access denied. Required roles: {', '.join(sorted(r.value for r in allowed))}")
        return current_user

    return role_dependency


def is_admin(user: models.User) -> bool:
    return user.role == models.UserRole.ADMIN


def ensure_owner_or_admin(user: models.User, owner_user_id: Optional[str]) -> None:
    """Owned resources may be changed by ADMIN or by the owning user only."""
    if is_admin(user):
        return
    if owner_user_id is not None and user.id == owner_user_id:
        return
    security_logger.warning(f"User {user.id} denied access to resource owned by {owner_user_id}")
    raise Forbidden("You do not have permission to modify this resource")


# Specific role dependencies
require_admin = require_role(models.UserRole.ADMIN)
require_staff = require_role(models.UserRole.ADMIN, models.UserRole.STAFF)
