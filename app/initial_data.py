# app/initial_data.py
# Seeds the admin account and default reference rows on startup.
import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from . import crud, models, schemas
from .config import Settings, get_settings
from .database import Database
from .exceptions import AppError

logger = logging.getLogger(__name__)

DEFAULT_STATUSES = (
    ("Scheduled", "#3b82f6"),
    ("Completed", "#22c55e"),
    ("Cancelled", "#ef4444"),
)
DEFAULT_PAYERS = ("Self Pay",)


def create_initial_data(database: Database):
    """Creates default statuses and payers if they don't exist."""
    db = database.session()
    try:
        for name, color in DEFAULT_STATUSES:
            if not crud.get_status_by_name(db, name):
                crud.create_status(db, schemas.StatusCreate(name=name, color=color))
                logger.info(f"Initial status '{name}' created.")
        for name in DEFAULT_PAYERS:
            if not crud.get_payer_by_name(db, name):
                crud.create_payer(db, schemas.PayerCreate(name=name))
                logger.info(f"Initial payer '{name}' created.")
    except AppError as e:
        logger.error(f"CRITICAL: Error during initial data creation: {e.message}")
    finally:
        db.close()


def create_or_update_admin(database: Database, settings: Optional[Settings] = None):
    """
    Make sure the configured admin account exists and is an active ADMIN.
    An existing account keeps its password; only a missing one is created.
    """
    settings = settings or get_settings()
    if not settings.admin_password:
        logger.warning("ADMIN_DEFAULT_PASSWORD not set. Skipping admin user setup.")
        return

    db = database.session()
    try:
        user = crud.get_user_by_email(db, settings.admin_email)
        if user:
            if user.role != models.UserRole.ADMIN or not user.is_active:
                crud.update_user(db, user.id, schemas.UserUpdate(role=models.UserRole.ADMIN, is_active=True))
                logger.info("Admin user role and status restored on startup.")
            return

        user_in = schemas.UserCreate(
            email=settings.admin_email,
            name=settings.admin_name,
            password=settings.admin_password,
            role=models.UserRole.ADMIN,
        )
        crud.create_user(db, user_in)
        logger.info(f"Admin user {settings.admin_email} created.")
    except PydanticValidationError as e:
        logger.error(f"Admin defaults are invalid, admin not created: {e.errors()}")
    except AppError as e:
        logger.error(f"CRITICAL: Error during admin setup: {e.message}")
    finally:
        db.close()
