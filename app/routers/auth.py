# app/routers/auth.py
import logging

from fastapi import APIRouter, Depends, Response
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..config import get_settings
from ..database import get_db
from ..exceptions import Unauthorized

logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)


def _authenticate(db: Session, email: str, password: str) -> models.User:
    user = crud.get_user_by_email(db, email)
    if not user or not user.is_active or not security.verify_password(password, user.password):
        security.security_logger.warning(f"Failed login attempt for email: {email}")
        raise Unauthorized("Incorrect email or password")
    logger.info(f"User '{user.email}' successfully authenticated.")
    return user


def _issue_token(response: Response, user: models.User) -> dict:
    """Sign a token for the user and mirror it into the auth cookie."""
    settings = get_settings()
    access_token = security.create_user_token(user)
    expires_in = settings.access_token_expire_minutes * 60
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=access_token,
        max_age=expires_in,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
    return {"access_token": access_token, "token_type": "bearer", "expires_in": expires_in, "user": user}


@router.post("/token", response_model=schemas.TokenResponse)
def login_for_access_token(
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    """OAuth2 password flow; the username field carries the email."""
    user = _authenticate(db, form_data.username, form_data.password)
    return _issue_token(response, user)


@router.post("/login", response_model=schemas.TokenResponse)
def login(credentials: schemas.LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = _authenticate(db, credentials.email, credentials.password)
    return _issue_token(response, user)


@router.post("/logout", response_model=schemas.MessageResponse)
def logout(response: Response):
    response.delete_cookie(get_settings().auth_cookie_name)
    return {"message": "Logged out"}


@router.get("/me", response_model=schemas.UserResponse)
def read_users_me(current_user: models.User = Depends(security.get_current_user)):
    """
    Get the current logged in user's details.
    """
    return current_user
