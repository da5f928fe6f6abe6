# app/crud.py
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

from pydantic.alias_generators import to_camel
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from . import models, schemas
from .exceptions import ConflictError, InternalError, NotFoundError, ValidationError
from .security import get_password_hash

logger = logging.getLogger(__name__)


# ==================== TRANSACTION HELPERS ====================

def _is_unique_violation(error: IntegrityError) -> bool:
    text = str(getattr(error, "orig", error)).lower()
    return "unique" in text or "duplicate" in text


@contextmanager
def _transaction(db: Session, conflict_message: Optional[str] = None, in_use_message: Optional[str] = None):
    """Commit everything done inside the block at once, or nothing.

    Unique violations that slip past the pre-flight reads (concurrent
    writers) surface as ConflictError. When ``in_use_message`` is given the
    block is a delete guarded by a reference count, and any other constraint
    failure means a reference appeared after the count: also ConflictError.
    Remaining constraint failures are ValidationError. Raw storage errors
    never leave this module.
    """
    try:
        yield
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if _is_unique_violation(e):
            logger.info(f"Unique constraint violation: {e.orig}")
            raise ConflictError(conflict_message or "A record with the same unique value already exists")
        if in_use_message:
            logger.info(f"Delete blocked by a new reference: {e.orig}")
            raise ConflictError(in_use_message)
        logger.warning(f"Constraint violation: {e.orig}")
        raise ValidationError("The request violates a data constraint")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error: {e}", exc_info=True)
        raise InternalError(f"Database error: {e}")
    except Exception:
        db.rollback()
        raise


def _reference_count(db: Session, record_id: str, *columns) -> int:
    """Rows in other tables whose foreign key ``columns`` point at ``record_id``."""
    return sum(db.query(column).filter(column == record_id).count() for column in columns)


def _get_or_404(db: Session, model, record_id: str, label: str, options: Iterable = ()):
    record = db.query(model).options(*options).filter(model.id == record_id).first()
    if record is None:
        raise NotFoundError(f"{label} not found")
    return record


def _require_reference(db: Session, model, record_id: Optional[str], field_name: str, label: str):
    """Foreign keys must point at an existing row before anything is written."""
    if record_id is None:
        return None
    record = db.get(model, record_id)
    if record is None:
        raise ValidationError.for_field(to_camel(field_name), f"{label} {record_id} does not exist")
    return record


def _reject_nulls(update_data: Dict[str, Any], required: Iterable[str]) -> None:
    for field_name in required:
        if field_name in update_data and update_data[field_name] is None:
            raise ValidationError.for_field(to_camel(field_name), f"{to_camel(field_name)} cannot be empty")


def _apply_updates(record, update_data: Dict[str, Any]) -> None:
    for key, value in update_data.items():
        setattr(record, key, value)


def _record_event(
    db: Session,
    action: models.EventAction,
    entity_type: str,
    entity_id: Optional[str],
    actor: Optional[models.User],
    description: Optional[str] = None,
    patient_id: Optional[str] = None,
) -> models.Event:
    event = models.Event(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
        patient_id=patient_id,
        user_id=actor.id if actor is not None else None,
    )
    db.add(event)
    return event


def _full_name(first: Optional[str], last: Optional[str]) -> str:
    return " ".join(part for part in (first, last) if part)


# ==================== USER CRUD OPERATIONS ====================

def get_user(db: Session, user_id: str) -> models.User:
    return _get_or_404(db, models.User, user_id, "User")


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email).first()


def get_users(db: Session, skip: int = 0, limit: Optional[int] = None, role: Optional[models.UserRole] = None) -> List[models.User]:
    query = db.query(models.User)
    if role:
        query = query.filter(models.User.role == role)
    return query.order_by(models.User.created_at.desc()).offset(skip).limit(limit).all()


def create_user(db: Session, user: schemas.UserCreate, actor: Optional[models.User] = None) -> models.User:
    if get_user_by_email(db, user.email):
        raise ConflictError("Email already registered")

    with _transaction(db, "Email already registered"):
        db_user = models.User(
            email=user.email,
            name=user.name,
            role=user.role,
            password=get_password_hash(user.password) if user.password else "",
            is_active=True,
        )
        db.add(db_user)
        db.flush()
        _record_event(db, models.EventAction.CREATE, "User", db_user.id, actor, f"Created user {db_user.email} with role {db_user.role.value}")
    logger.info(f"Created new user: {db_user.email} (ID: {db_user.id})")
    return get_user(db, db_user.id)


def update_user(db: Session, user_id: str, user_update: schemas.UserUpdate, actor: Optional[models.User] = None) -> models.User:
    db_user = get_user(db, user_id)
    update_data = user_update.model_dump(exclude_unset=True)
    _reject_nulls(update_data, ("email", "name", "role", "is_active"))

    if "email" in update_data and update_data["email"] != db_user.email:
        if get_user_by_email(db, update_data["email"]):
            raise ConflictError("Email already registered")
    if "password" in update_data:
        password = update_data.pop("password")
        update_data["password"] = get_password_hash(password) if password else ""

    with _transaction(db, "Email already registered"):
        _apply_updates(db_user, update_data)
        changed = sorted(key for key in update_data if key != "password")
        if "password" in update_data:
            changed.append("password")
        _record_event(db, models.EventAction.UPDATE, "User", db_user.id, actor, f"Updated user fields: {', '.join(changed) or 'none'}")
    return get_user(db, user_id)


def _delete_attorney_records(db: Session, attorney: models.Attorney) -> None:
    # Case managers go through the delete-orphan cascade; patients keep their
    # row with attorney_id cleared.
    user = attorney.user
    for patient in list(attorney.patients):
        patient.attorney_id = None
    db.delete(attorney)
    db.flush()
    db.expire(user, ["attorney"])


def delete_user(db: Session, user_id: str, actor: Optional[models.User] = None) -> None:
    db_user = get_user(db, user_id)
    if actor is not None and actor.id == db_user.id:
        raise ValidationError("You cannot delete your own account")

    with _transaction(db):
        if db_user.attorney is not None:
            _delete_attorney_records(db, db_user.attorney)
        # Tasks are unassigned and events detached by the relationships
        db.delete(db_user)
        db.flush()
        _record_event(db, models.EventAction.DELETE, "User", user_id, actor, f"Deleted user {db_user.email}")
    logger.info(f"Deleted user {user_id}")


# ==================== ATTORNEY CRUD OPERATIONS ====================

ATTORNEY_OPTIONS = (
    joinedload(models.Attorney.user),
    selectinload(models.Attorney.case_managers),
)

_ATTORNEY_USER_FIELDS = ("name", "email", "password")


def get_attorney(db: Session, attorney_id: str) -> models.Attorney:
    return _get_or_404(db, models.Attorney, attorney_id, "Attorney", ATTORNEY_OPTIONS)


def get_attorneys(db: Session, skip: int = 0, limit: Optional[int] = None) -> List[models.Attorney]:
    return (
        db.query(models.Attorney)
        .options(*ATTORNEY_OPTIONS)
        .order_by(models.Attorney.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_attorney_owner_id(db: Session, attorney_id: str, field_name: Optional[str] = None) -> str:
    """User id owning an attorney profile.

    With ``field_name`` a missing attorney is a validation failure on that
    field (the id came from a request body), otherwise a 404.
    """
    attorney = db.get(models.Attorney, attorney_id)
    if attorney is None:
        if field_name:
            raise ValidationError.for_field(field_name, f"Attorney {attorney_id} does not exist")
        raise NotFoundError("Attorney not found")
    return attorney.user_id


def _complete_case_managers(case_managers: Iterable[schemas.CaseManagerInput]) -> List[schemas.CaseManagerInput]:
    return [manager for manager in case_managers if manager.name and manager.email and manager.phone]


def create_attorney(db: Session, attorney: schemas.AttorneyCreate, actor: Optional[models.User] = None) -> models.Attorney:
    """Create the login user, the attorney profile and its case managers together."""
    if get_user_by_email(db, attorney.email):
        logger.info(f"Attorney creation rejected, email already exists: {attorney.email}")
        raise ConflictError("Email already registered")

    with _transaction(db, "A unique constraint violation occurred. The email may already be registered."):
        user = models.User(
            email=attorney.email,
            name=attorney.name,
            role=models.UserRole.ATTORNEY,
            password=get_password_hash(attorney.password) if attorney.has_login and attorney.password else "",
        )
        db.add(user)
        db.flush()

        profile = attorney.model_dump(
            exclude={"name", "email", "password", "has_login", "case_managers"}
        )
        db_attorney = models.Attorney(user_id=user.id, **profile)
        db.add(db_attorney)
        db.flush()

        valid_managers = _complete_case_managers(attorney.case_managers)
        for manager in valid_managers:
            db.add(models.CaseManager(attorney_id=db_attorney.id, **manager.model_dump()))
        skipped = len(attorney.case_managers) - len(valid_managers)
        if skipped:
            logger.info(f"Skipped {skipped} incomplete case manager rows for attorney {db_attorney.id}")

        _record_event(
            db, models.EventAction.CREATE, "Attorney", db_attorney.id, actor,
            f"Created attorney {attorney.name} with {len(valid_managers)} case managers",
        )
    logger.info(f"Attorney created: {db_attorney.id} (user {user.id})")
    return get_attorney(db, db_attorney.id)


def update_attorney(db: Session, attorney_id: str, attorney_update: schemas.AttorneyUpdate, actor: Optional[models.User] = None) -> models.Attorney:
    db_attorney = get_attorney(db, attorney_id)
    update_data = attorney_update.model_dump(exclude_unset=True)
    _reject_nulls(update_data, ("name", "email"))

    user_data = {key: update_data.pop(key) for key in _ATTORNEY_USER_FIELDS if key in update_data}
    user = db_attorney.user
    if "email" in user_data and user_data["email"] != user.email:
        if get_user_by_email(db, user_data["email"]):
            raise ConflictError("Email already registered")

    with _transaction(db, "Email already registered"):
        _apply_updates(db_attorney, update_data)
        password = user_data.pop("password", None)
        if password:
            user.password = get_password_hash(password)
        _apply_updates(user, user_data)
        changed = sorted(update_data) + sorted(user_data) + (["password"] if password else [])
        _record_event(
            db, models.EventAction.UPDATE, "Attorney", attorney_id, actor,
            f"Updated attorney fields: {', '.join(changed) or 'none'}",
        )
    return get_attorney(db, attorney_id)


def delete_attorney(db: Session, attorney_id: str, actor: Optional[models.User] = None) -> None:
    """Remove case managers, the profile and the linked user in one transaction."""
    db_attorney = get_attorney(db, attorney_id)
    user = db_attorney.user
    # An attorney deleting their own profile also deletes the acting user
    event_actor = None if actor is not None and actor.id == user.id else actor

    with _transaction(db):
        _delete_attorney_records(db, db_attorney)
        db.delete(user)
        db.flush()
        _record_event(db, models.EventAction.DELETE, "Attorney", attorney_id, event_actor, f"Deleted attorney {user.name}")
    logger.info(f"Deleted attorney {attorney_id} and user {user.id}")


# ==================== CASE MANAGER CRUD OPERATIONS ====================

def get_case_manager(db: Session, case_manager_id: str) -> models.CaseManager:
    return _get_or_404(db, models.CaseManager, case_manager_id, "Case manager")


def get_case_managers(db: Session, attorney_id: Optional[str] = None, skip: int = 0, limit: Optional[int] = None) -> List[models.CaseManager]:
    query = db.query(models.CaseManager)
    if attorney_id:
        query = query.filter(models.CaseManager.attorney_id == attorney_id)
    return query.order_by(models.CaseManager.created_at.desc()).offset(skip).limit(limit).all()


def create_case_manager(db: Session, case_manager: schemas.CaseManagerCreate, actor: Optional[models.User] = None) -> models.CaseManager:
    _require_reference(db, models.Attorney, case_manager.attorney_id, "attorney_id", "Attorney")
    with _transaction(db):
        db_manager = models.CaseManager(**case_manager.model_dump())
        db.add(db_manager)
        db.flush()
        _record_event(db, models.EventAction.CREATE, "CaseManager", db_manager.id, actor, f"Created case manager {db_manager.name}")
    return get_case_manager(db, db_manager.id)


def update_case_manager(db: Session, case_manager_id: str, update: schemas.CaseManagerUpdate, actor: Optional[models.User] = None) -> models.CaseManager:
    db_manager = get_case_manager(db, case_manager_id)
    update_data = update.model_dump(exclude_unset=True)
    _reject_nulls(update_data, ("name", "email", "phone"))
    with _transaction(db):
        _apply_updates(db_manager, update_data)
        _record_event(db, models.EventAction.UPDATE, "CaseManager", case_manager_id, actor, f"Updated case manager fields: {', '.join(sorted(update_data)) or 'none'}")
    return get_case_manager(db, case_manager_id)


def delete_case_manager(db: Session, case_manager_id: str, actor: Optional[models.User] = None) -> None:
    db_manager = get_case_manager(db, case_manager_id)
    with _transaction(db):
        db.delete(db_manager)
        _record_event(db, models.EventAction.DELETE, "CaseManager", case_manager_id, actor, f"Deleted case manager {db_manager.name}")


# ==================== PAYER & STATUS CRUD OPERATIONS ====================

def get_payer(db: Session, payer_id: str) -> models.Payer:
    return _get_or_404(db, models.Payer, payer_id, "Payer")


def get_payer_by_name(db: Session, name: str) -> Optional[models.Payer]:
    return db.query(models.Payer).filter(models.Payer.name == name).first()


def get_payers(db: Session, is_active: Optional[bool] = None, skip: int = 0, limit: Optional[int] = None) -> List[models.Payer]:
    query = db.query(models.Payer)
    if is_active is not None:
        query = query.filter(models.Payer.is_active == is_active)
    return query.order_by(models.Payer.created_at.desc()).offset(skip).limit(limit).all()


def create_payer(db: Session, payer: schemas.PayerCreate, actor: Optional[models.User] = None) -> models.Payer:
    message = f"A payer named '{payer.name}' already exists"
    if get_payer_by_name(db, payer.name):
        raise ConflictError(message)
    with _transaction(db, message):
        db_payer = models.Payer(**payer.model_dump())
        db.add(db_payer)
        db.flush()
        _record_event(db, models.EventAction.CREATE, "Payer", db_payer.id, actor, f"Created payer {db_payer.name}")
    return get_payer(db, db_payer.id)


def update_payer(db: Session, payer_id: str, update: schemas.PayerUpdate, actor: Optional[models.User] = None) -> models.Payer:
    db_payer = get_payer(db, payer_id)
    update_data = update.model_dump(exclude_unset=True)
    _reject_nulls(update_data, ("name", "is_active"))
    message = f"A payer named '{update_data.get('name')}' already exists"
    if "name" in update_data and update_data["name"] != db_payer.name and get_payer_by_name(db, update_data["name"]):
        raise ConflictError(message)
    with _transaction(db, message):
        _apply_updates(db_payer, update_data)
        _record_event(db, models.EventAction.UPDATE, "Payer", payer_id, actor, f"Updated payer fields: {', '.join(sorted(update_data)) or 'none'}")
    return get_payer(db, payer_id)


def delete_payer(db: Session, payer_id: str, actor: Optional[models.User] = None) -> None:
    db_payer = get_payer(db, payer_id)
    in_use = _reference_count(db, payer_id, models.Patient.payer_id)
    if in_use:
        raise ConflictError(f"Payer is assigned to {in_use} patient(s) and cannot be deleted")
    with _transaction(db, in_use_message="Payer is assigned to patients and cannot be deleted"):
        db.delete(db_payer)
        _record_event(db, models.EventAction.DELETE, "Payer", payer_id, actor, f"Deleted payer {db_payer.name}")


def get_status(db: Session, status_id: str) -> models.Status:
    return _get_or_404(db, models.Status, status_id, "Status")


def get_status_by_name(db: Session, name: str) -> Optional[models.Status]:
    return db.query(models.Status).filter(models.Status.name == name).first()


def get_statuses(db: Session, skip: int = 0, limit: Optional[int] = None) -> List[models.Status]:
    return db.query(models.Status).order_by(models.Status.created_at.desc()).offset(skip).limit(limit).all()


def create_status(db: Session, status: schemas.StatusCreate, actor: Optional[models.User] = None) -> models.Status:
    message = f"A status named '{status.name}' already exists"
    if get_status_by_name(db, status.name):
        raise ConflictError(message)
    with _transaction(db, message):
        db_status = models.Status(**status.model_dump())
        db.add(db_status)
        db.flush()
        _record_event(db, models.EventAction.CREATE, "Status", db_status.id, actor, f"Created status {db_status.name}")
    return get_status(db, db_status.id)


def update_status(db: Session, status_id: str, update: schemas.StatusUpdate, actor: Optional[models.User] = None) -> models.Status:
    db_status = get_status(db, status_id)
    update_data = update.model_dump(exclude_unset=True)
    _reject_nulls(update_data, ("name",))
    message = f"A status named '{update_data.get('name')}' already exists"
    if "name" in update_data and update_data["name"] != db_status.name and get_status_by_name(db, update_data["name"]):
        raise ConflictError(message)
    with _transaction(db, message):
        _apply_updates(db_status, update_data)
        _record_event(db, models.EventAction.UPDATE, "Status", status_id, actor, f"Updated status fields: {', '.join(sorted(update_data)) or 'none'}")
    return get_status(db, status_id)


def delete_status(db: Session, status_id: str, actor: Optional[models.User] = None) -> None:
    db_status = get_status(db, status_id)
    in_use = _reference_count(db, status_id, models.Patient.status_id, models.Procedure.status_id)
    if in_use:
        raise ConflictError(f"Status is used by {in_use} record(s) and cannot be deleted")
    with _transaction(db, in_use_message="Status is in use and cannot be deleted"):
        db.delete(db_status)
        _record_event(db, models.EventAction.DELETE, "Status", status_id, actor, f"Deleted status {db_status.name}")


# ==================== DOCTOR / PHYSICIAN / FACILITY CRUD OPERATIONS ====================

def get_doctor(db: Session, doctor_id: str) -> models.Doctor:
    return _get_or_404(db, models.Doctor, doctor_id, "Doctor")


def get_doctors(db: Session, skip: int = 0, limit: Optional[int] = None) -> List[models.Doctor]:
    return db.query(models.Doctor).order_by(models.Doctor.created_at.desc()).offset(skip).limit(limit).all()


def create_doctor(db: Session, doctor: schemas.DoctorCreate, actor: Optional[models.User] = None) -> models.Doctor:
    with _transaction(db):
        db_doctor = models.Doctor(**doctor.model_dump())
        db.add(db_doctor)
        db.flush()
        _record_event(db, models.EventAction.CREATE, "Doctor", db_doctor.id, actor, f"Created doctor {db_doctor.name}")
    return get_doctor(db, db_doctor.id)


def update_doctor(db: Session, doctor_id: str, update: schemas.DoctorUpdate, actor: Optional[models.User] = None) -> models.Doctor:
    db_doctor = get_doctor(db, doctor_id)
    update_data = update.model_dump(exclude_unset=True)
    _reject_nulls(update_data, ("name", "status"))
    with _transaction(db):
        _apply_updates(db_doctor, update_data)
        _record_event(db, models.EventAction.UPDATE, "Doctor", doctor_id, actor, f"Updated doctor fields: {', '.join(sorted(update_data)) or 'none'}")
    return get_doctor(db, doctor_id)


def delete_doctor(db: Session, doctor_id: str, actor: Optional[models.User] = None) -> None:
    db_doctor = get_doctor(db, doctor_id)
    with _transaction(db):
        # Appointments and referred patients keep their rows without the doctor
        for appointment in list(db_doctor.appointments):
            appointment.doctor_id = None
        for patient in list(db_doctor.referred_patients):
            patient.referring_doctor_id = None
        db.delete(db_doctor)
        _record_event(db, models.EventAction.DELETE, "Doctor", doctor_id, actor, f"Deleted doctor {db_doctor.name}")


def get_physician(db: Session, physician_id: str) -> models.Physician:
    return _get_or_404(db, models.Physician, physician_id, "Physician")


def get_physician_by_email(db: Session, email: str) -> Optional[models.Physician]:
    return db.query(models.Physician).filter(models.Physician.email == email).first()


def get_physicians(db: Session, is_active: Optional[bool] = None, skip: int = 0, limit: Optional[int] = None) -> List[models.Physician]:
    query = db.query(models.Physician)
    if is_active is not None:
        query = query.filter(models.Physician.is_active == is_active)
    return query.order_by(models.Physician.created_at.desc()).offset(skip).limit(limit).all()


def create_physician(db: Session, physician: schemas.PhysicianCreate, actor: Optional[models.User] = None) -> models.Physician:
    message = "A physician with this email already exists"
    if physician.email and get_physician_by_email(db, physician.email):
        raise ConflictError(message)
    with _transaction(db, message):
        db_physician = models.Physician(**physician.model_dump())
        db.add(db_physician)
        db.flush()
        _record_event(db, models.EventAction.CREATE, "Physician", db_physician.id, actor, f"Created physician {db_physician.name}")
    return get_physician(db, db_physician.id)


def update_physician(db: Session, physician_id: str, update: schemas.PhysicianUpdate, actor: Optional[models.User] = None) -> models.Physician:
    db_physician = get_physician(db, physician_id)
    update_data = update.model_dump(exclude_unset=True)
    _reject_nulls(update_data, ("name", "status", "is_active"))
    message = "A physician with this email already exists"
    new_email = update_data.get("email")
    if new_email and new_email != db_physician.email and get_physician_by_email(db, new_email):
        raise ConflictError(message)
    with _transaction(db, message):
        _apply_updates(db_physician, update_data)
        _record_event(db, models.EventAction.UPDATE, "Physician", physician_id, actor, f"Updated physician fields: {', '.join(sorted(update_data)) or 'none'}")
    return get_physician(db, physician_id)


def delete_physician(db: Session, physician_id: str, actor: Optional[models.User] = None) -> None:
    db_physician = get_physician(db, physician_id)
    in_use = _reference_count(db, physician_id, models.Procedure.physician_id)
    if in_use:
        raise ConflictError(f"Physician is assigned to {in_use} procedure(s) and cannot be deleted")
    with _transaction(db, in_use_message="Physician is assigned to procedures and cannot be deleted"):
        db.delete(db_physician)
        _record_event(db, models.EventAction.DELETE, "Physician", physician_id, actor, f"Deleted physician {db_physician.name}")


def get_facility(db: Session, facility_id: str) -> models.Facility:
    return _get_or_404(db, models.Facility, facility_id, "Facility")


def get_facilities(db: Session, skip: int = 0, limit: Optional[int] = None) -> List[models.Facility]:
    return db.query(models.Facility).order_by(models.Facility.created_at.desc()).offset(skip).limit(limit).all()


def create_facility(db: Session, facility: schemas.FacilityCreate, actor: Optional[models.User] = None) -> models.Facility:
    with _transaction(db):
        db_facility = models.Facility(**facility.model_dump())
        db.add(db_facility)
        db.flush()
        _record_event(db, models.EventAction.CREATE, "Facility", db_facility.id, actor, f"Created facility {db_facility.name}")
    return get_facility(db, db_facility.id)


def update_facility(db: Session, facility_id: str, update: schemas.FacilityUpdate, actor: Optional[models.User] = None) -> models.Facility:
    db_facility = get_facility(db, facility_id)
    update_data = update.model_dump(exclude_unset=True)
    _reject_nulls(update_data, ("name", "status"))
    with _transaction(db):
        _apply_updates(db_facility, update_data)
        _record_event(db, models.EventAction.UPDATE, "Facility", facility_id, actor, f"Updated facility fields: {', '.join(sorted(update_data)) or 'none'}")
    return get_facility(db, facility_id)


def delete_facility(db: Session, facility_id: str, actor: Optional[models.User] = None) -> None:
    db_facility = get_facility(db, facility_id)
    in_use = _reference_count(db, facility_id, models.Procedure.facility_id)
    if in_use:
        raise ConflictError(f"Facility is used by {in_use} procedure(s) and cannot be deleted")
    with _transaction(db, in_use_message="Facility is used by procedures and cannot be deleted"):
        db.delete(db_facility)
        _record_event(db, models.EventAction.DELETE, "Facility", facility_id, actor, f"Deleted facility {db_facility.name}")


# ==================== EXAM CRUD OPERATIONS ====================

EXAM_OPTIONS = (selectinload(models.Exam.sub_exams),)


def get_exam(db: Session, exam_id: str) -> models.Exam:
    return _get_or_404(db, models.Exam, exam_id, "Exam", EXAM_OPTIONS)


def get_exams(db: Session, skip: int = 0, limit: Optional[int] = None) -> List[models.Exam]:
    return (
        db.query(models.Exam)
        .options(*EXAM_OPTIONS)
        .order_by(models.Exam.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def _sync_sub_exams(db_exam: models.Exam, sub_exams: List[schemas.SubExamInput]) -> None:
    """Replace the exam's sub-exam set: known ids update, new rows insert, the rest go."""
    existing = {sub.id: sub for sub in db_exam.sub_exams}
    kept = []
    for index, item in enumerate(sub_exams):
        data = item.model_dump(exclude={"id"})
        if item.id:
            current = existing.get(item.id)
            if current is None:
                raise ValidationError.for_field(f"subExams.{index}.id", f"Sub-exam {item.id} does not belong to this exam")
            _apply_updates(current, data)
            kept.append(current)
        else:
            kept.append(models.SubExam(**data))
    # delete-orphan removes rows dropped from the collection
    db_exam.sub_exams = kept


def create_exam(db: Session, exam: schemas.ExamCreate, actor: Optional[models.User] = None) -> models.Exam:
    with _transaction(db):
        db_exam = models.Exam(**exam.model_dump(exclude={"sub_exams"}))
        db_exam.sub_exams = [models.SubExam(**item.model_dump(exclude={"id"})) for item in exam.sub_exams]
        db.add(db_exam)
        db.flush()
        _record_event(db, models.EventAction.CREATE, "Exam", db_exam.id, actor, f"Created exam {db_exam.name}")
    return get_exam(db, db_exam.id)


def update_exam(db: Session, exam_id: str, update: schemas.ExamUpdate, actor: Optional[models.User] = None) -> models.Exam:
    db_exam = get_exam(db, exam_id)
    update_data = update.model_dump(exclude_unset=True, exclude={"sub_exams"})
    _reject_nulls(update_data, ("name", "status", "is_active"))
    with _transaction(db):
        _apply_updates(db_exam, update_data)
        if update.sub_exams is not None:
            _sync_sub_exams(db_exam, update.sub_exams)
        changed = sorted(update_data) + (["subExams"] if update.sub_exams is not None else [])
        _record_event(db, models.EventAction.UPDATE, "Exam", exam_id, actor, f"Updated exam fields: {', '.join(changed) or 'none'}")
    return get_exam(db, exam_id)


def delete_exam(db: Session, exam_id: str, actor: Optional[models.User] = None) -> None:
    db_exam = get_exam(db, exam_id)
    in_use = _reference_count(db, exam_id, models.Procedure.exam_id)
    if in_use:
        raise ConflictError(f"Exam is used by {in_use} procedure(s) and cannot be deleted")
    with _transaction(db, in_use_message="Exam is used by procedures and cannot be deleted"):
        for appointment in list(db_exam.appointments):
            appointment.exam_id = None
        db.delete(db_exam)
        _record_event(db, models.EventAction.DELETE, "Exam", exam_id, actor, f"Deleted exam {db_exam.name}")


# ==================== PROCEDURE CRUD OPERATIONS ====================

PROCEDURE_OPTIONS = (
    joinedload(models.Procedure.exam),
    joinedload(models.Procedure.facility),
    joinedload(models.Procedure.physician),
    joinedload(models.Procedure.status),
)

_PROCEDURE_REFERENCES = (
    ("exam_id", models.Exam, "Exam"),
    ("facility_id", models.Facility, "Facility"),
    ("physician_id", models.Physician, "Physician"),
    ("status_id", models.Status, "Status"),
)


def _check_procedure_references(db: Session, data: Dict[str, Any], prefix: str = "") -> None:
    for field_name, model, label in _PROCEDURE_REFERENCES:
        value = data.get(field_name)
        if value is not None and db.get(model, value) is None:
            raise ValidationError.for_field(f"{prefix}{to_camel(field_name)}", f"{label} {value} does not exist")


def get_procedure(db: Session, procedure_id: str) -> models.Procedure:
    return _get_or_404(db, models.Procedure, procedure_id, "Procedure", PROCEDURE_OPTIONS)


def get_procedures(
    db: Session,
    patient_id: Optional[str] = None,
    is_completed: Optional[bool] = None,
    skip: int = 0,
    limit: Optional[int] = None,
) -> List[models.Procedure]:
    query = db.query(models.Procedure).options(*PROCEDURE_OPTIONS)
    if patient_id:
        query = query.filter(models.Procedure.patient_id == patient_id)
    if is_completed is not None:
        query = query.filter(models.Procedure.is_completed == is_completed)
    return query.order_by(models.Procedure.created_at.desc()).offset(skip).limit(limit).all()


def create_procedure(db: Session, procedure: schemas.ProcedureCreate, actor: Optional[models.User] = None) -> models.Procedure:
    _require_reference(db, models.Patient, procedure.patient_id, "patient_id", "Patient")
    data = procedure.model_dump()
    _check_procedure_references(db, data)
    with _transaction(db):
        db_procedure = models.Procedure(**data)
        db.add(db_procedure)
        db.flush()
        _record_event(
            db, models.EventAction.CREATE, "Procedure", db_procedure.id, actor,
            f"Scheduled procedure for {db_procedure.schedule_date.isoformat()}", patient_id=procedure.patient_id,
        )
    return get_procedure(db, db_procedure.id)


def update_procedure(db: Session, procedure_id: str, update: schemas.ProcedureUpdate, actor: Optional[models.User] = None) -> models.Procedure:
    db_procedure = get_procedure(db, procedure_id)
    update_data = update.model_dump(exclude_unset=True)
    _reject_nulls(update_data, ("exam_id", "facility_id", "physician_id", "status_id", "schedule_date", "schedule_time", "is_completed"))
    _check_procedure_references(db, update_data)
    with _transaction(db):
        _apply_updates(db_procedure, update_data)
        _record_event(
            db, models.EventAction.UPDATE, "Procedure", procedure_id, actor,
            f"Updated procedure fields: {', '.join(sorted(update_data)) or 'none'}", patient_id=db_procedure.patient_id,
        )
    return get_procedure(db, procedure_id)


def delete_procedure(db: Session, procedure_id: str, actor: Optional[models.User] = None) -> None:
    db_procedure = get_procedure(db, procedure_id)
    with _transaction(db):
        db.delete(db_procedure)
        _record_event(db, models.EventAction.DELETE, "Procedure", procedure_id, actor, "Deleted procedure", patient_id=db_procedure.patient_id)


# ==================== PATIENT CRUD OPERATIONS ====================

PATIENT_OPTIONS = (
    joinedload(models.Patient.payer),
    joinedload(models.Patient.status),
    joinedload(models.Patient.attorney).joinedload(models.Attorney.user),
    joinedload(models.Patient.referring_doctor),
    selectinload(models.Patient.procedures).options(*PROCEDURE_OPTIONS),
)

_PATIENT_REFERENCES = (
    ("payer_id", models.Payer, "Payer"),
    ("status_id", models.Status, "Status"),
    ("attorney_id", models.Attorney, "Attorney"),
    ("referring_doctor_id", models.Doctor, "Doctor"),
)


def _check_patient_references(db: Session, data: Dict[str, Any]) -> None:
    for field_name, model, label in _PATIENT_REFERENCES:
        if field_name in data:
            _require_reference(db, model, data[field_name], field_name, label)


def _check_nested_procedures(db: Session, procedures: List[schemas.PatientProcedureInput]) -> None:
    for index, item in enumerate(procedures):
        _check_procedure_references(db, item.model_dump(), prefix=f"procedures.{index}.")


def _sync_procedures(db_patient: models.Patient, procedures: List[schemas.PatientProcedureInput]) -> None:
    """Make the patient's procedure set match the submitted rows."""
    existing = {proc.id: proc for proc in db_patient.procedures}
    kept = []
    for index, item in enumerate(procedures):
        data = item.model_dump(exclude={"id"})
        if item.id:
            current = existing.get(item.id)
            if current is None:
                raise ValidationError.for_field(f"procedures.{index}.id", f"Procedure {item.id} does not belong to this patient")
            _apply_updates(current, data)
            kept.append(current)
        else:
            kept.append(models.Procedure(**data))
    db_patient.procedures = kept


def get_patient(db: Session, patient_id: str) -> models.Patient:
    return _get_or_404(db, models.Patient, patient_id, "Patient", PATIENT_OPTIONS)


def get_patients(
    db: Session,
    search: Optional[str] = None,
    status_id: Optional[str] = None,
    payer_id: Optional[str] = None,
    skip: int = 0,
    limit: Optional[int] = None,
) -> List[models.Patient]:
    """Get patients with optional search"""
    query = db.query(models.Patient).options(*PATIENT_OPTIONS)
    if search:
        for term in search.split():
            pattern = f"%{term}%"
            query = query.filter(or_(
                models.Patient.first_name.ilike(pattern),
                models.Patient.last_name.ilike(pattern),
            ))
    if status_id:
        query = query.filter(models.Patient.status_id == status_id)
    if payer_id:
        query = query.filter(models.Patient.payer_id == payer_id)
    return query.order_by(models.Patient.created_at.desc()).offset(skip).limit(limit).all()


def create_patient(db: Session, patient: schemas.PatientCreate, actor: Optional[models.User] = None) -> models.Patient:
    data = patient.model_dump(exclude={"procedures"})
    _check_patient_references(db, data)
    _check_nested_procedures(db, patient.procedures)

    with _transaction(db):
        db_patient = models.Patient(**data)
        db_patient.procedures = [models.Procedure(**item.model_dump(exclude={"id"})) for item in patient.procedures]
        db.add(db_patient)
        db.flush()
        _record_event(
            db, models.EventAction.CREATE, "Patient", db_patient.id, actor,
            f"Created patient {_full_name(db_patient.first_name, db_patient.last_name)}", patient_id=db_patient.id,
        )
    logger.info(f"Created patient {db_patient.id} with {len(patient.procedures)} procedures")
    return get_patient(db, db_patient.id)


def update_patient(db: Session, patient_id: str, patient_update: schemas.PatientUpdate, actor: Optional[models.User] = None) -> models.Patient:
    db_patient = get_patient(db, patient_id)
    update_data = patient_update.model_dump(exclude_unset=True, exclude={"procedures"})
    _reject_nulls(update_data, ("first_name", "last_name", "payer_id", "status_id"))
    _check_patient_references(db, update_data)
    if patient_update.procedures is not None:
        _check_nested_procedures(db, patient_update.procedures)

    with _transaction(db):
        _apply_updates(db_patient, update_data)
        if patient_update.procedures is not None:
            _sync_procedures(db_patient, patient_update.procedures)
        changed = sorted(update_data) + (["procedures"] if patient_update.procedures is not None else [])
        _record_event(
            db, models.EventAction.UPDATE, "Patient", patient_id, actor,
            f"Updated patient fields: {', '.join(changed) or 'none'}", patient_id=patient_id,
        )
    return get_patient(db, patient_id)


def delete_patient(db: Session, patient_id: str, actor: Optional[models.User] = None) -> None:
    """Procedures, appointments and cases go with the patient; events stay detached."""
    db_patient = get_patient(db, patient_id)
    name = _full_name(db_patient.first_name, db_patient.last_name)
    with _transaction(db):
        for event in list(db_patient.events):
            event.patient_id = None
        db.delete(db_patient)
        db.flush()
        _record_event(db, models.EventAction.DELETE, "Patient", patient_id, actor, f"Deleted patient {name}")
    logger.info(f"Deleted patient {patient_id}")


# ==================== APPOINTMENT CRUD OPERATIONS ====================

APPOINTMENT_OPTIONS = (
    joinedload(models.Appointment.patient),
    joinedload(models.Appointment.doctor),
    joinedload(models.Appointment.exam),
)


def get_appointment(db: Session, appointment_id: str) -> models.Appointment:
    return _get_or_404(db, models.Appointment, appointment_id, "Appointment", APPOINTMENT_OPTIONS)


def get_appointments(
    db: Session,
    patient_id: Optional[str] = None,
    doctor_id: Optional[str] = None,
    on_date=None,
    skip: int = 0,
    limit: Optional[int] = None,
) -> List[models.Appointment]:
    query = db.query(models.Appointment).options(*APPOINTMENT_OPTIONS)
    if patient_id:
        query = query.filter(models.Appointment.patient_id == patient_id)
    if doctor_id:
        query = query.filter(models.Appointment.doctor_id == doctor_id)
    if on_date:
        query = query.filter(models.Appointment.date == on_date)
    return query.order_by(models.Appointment.created_at.desc()).offset(skip).limit(limit).all()


def _check_appointment_references(db: Session, data: Dict[str, Any]) -> None:
    if "patient_id" in data:
        _require_reference(db, models.Patient, data["patient_id"], "patient_id", "Patient")
    if "doctor_id" in data:
        _require_reference(db, models.Doctor, data["doctor_id"], "doctor_id", "Doctor")
    if "exam_id" in data:
        _require_reference(db, models.Exam, data["exam_id"], "exam_id", "Exam")


def create_appointment(db: Session, appointment: schemas.AppointmentCreate, actor: Optional[models.User] = None) -> models.Appointment:
    data = appointment.model_dump()
    _check_appointment_references(db, data)
    with _transaction(db):
        db_appointment = models.Appointment(**data)
        db.add(db_appointment)
        db.flush()
        _record_event(
            db, models.EventAction.CREATE, "Appointment", db_appointment.id, actor,
            f"Created appointment on {db_appointment.date.isoformat()}", patient_id=db_appointment.patient_id,
        )
    return get_appointment(db, db_appointment.id)


def update_appointment(db: Session, appointment_id: str, update: schemas.AppointmentUpdate, actor: Optional[models.User] = None) -> models.Appointment:
    db_appointment = get_appointment(db, appointment_id)
    update_data = update.model_dump(exclude_unset=True)
    _reject_nulls(update_data, ("date", "status"))
    _check_appointment_references(db, update_data)
    with _transaction(db):
        _apply_updates(db_appointment, update_data)
        _record_event(
            db, models.EventAction.UPDATE, "Appointment", appointment_id, actor,
            f"Updated appointment fields: {', '.join(sorted(update_data)) or 'none'}", patient_id=db_appointment.patient_id,
        )
    return get_appointment(db, appointment_id)


def delete_appointment(db: Session, appointment_id: str, actor: Optional[models.User] = None) -> None:
    db_appointment = get_appointment(db, appointment_id)
    with _transaction(db):
        db.delete(db_appointment)
        _record_event(db, models.EventAction.DELETE, "Appointment", appointment_id, actor, "Deleted appointment", patient_id=db_appointment.patient_id)


# ==================== CASE CRUD OPERATIONS ====================

CASE_OPTIONS = (joinedload(models.Case.patient),)


def get_case(db: Session, case_id: str) -> models.Case:
    return _get_or_404(db, models.Case, case_id, "Case", CASE_OPTIONS)


def get_case_by_number(db: Session, case_number: str) -> Optional[models.Case]:
    return db.query(models.Case).filter(models.Case.case_number == case_number).first()


def get_cases(db: Session, patient_id: Optional[str] = None, skip: int = 0, limit: Optional[int] = None) -> List[models.Case]:
    query = db.query(models.Case).options(*CASE_OPTIONS)
    if patient_id:
        query = query.filter(models.Case.patient_id == patient_id)
    return query.order_by(models.Case.created_at.desc()).offset(skip).limit(limit).all()


def create_case(db: Session, case: schemas.CaseCreate, actor: Optional[models.User] = None) -> models.Case:
    _require_reference(db, models.Patient, case.patient_id, "patient_id", "Patient")
    message = f"Case number {case.case_number} already exists"
    if get_case_by_number(db, case.case_number):
        raise ConflictError(message)
    with _transaction(db, message):
        db_case = models.Case(**case.model_dump())
        db.add(db_case)
        db.flush()
        _record_event(db, models.EventAction.CREATE, "Case", db_case.id, actor, f"Opened case {db_case.case_number}", patient_id=db_case.patient_id)
    return get_case(db, db_case.id)


def update_case(db: Session, case_id: str, update: schemas.CaseUpdate, actor: Optional[models.User] = None) -> models.Case:
    db_case = get_case(db, case_id)
    update_data = update.model_dump(exclude_unset=True)
    _reject_nulls(update_data, ("case_number", "status"))
    message = f"Case number {update_data.get('case_number')} already exists"
    new_number = update_data.get("case_number")
    if new_number and new_number != db_case.case_number and get_case_by_number(db, new_number):
        raise ConflictError(message)
    with _transaction(db, message):
        _apply_updates(db_case, update_data)
        _record_event(
            db, models.EventAction.UPDATE, "Case", case_id, actor,
            f"Updated case fields: {', '.join(sorted(update_data)) or 'none'}", patient_id=db_case.patient_id,
        )
    return get_case(db, case_id)


def delete_case(db: Session, case_id: str, actor: Optional[models.User] = None) -> None:
    db_case = get_case(db, case_id)
    with _transaction(db):
        db.delete(db_case)
        _record_event(db, models.EventAction.DELETE, "Case", case_id, actor, f"Deleted case {db_case.case_number}", patient_id=db_case.patient_id)


# ==================== TASK CRUD OPERATIONS ====================

TASK_OPTIONS = (joinedload(models.Task.assigned_to),)


def get_task(db: Session, task_id: str) -> models.Task:
    return _get_or_404(db, models.Task, task_id, "Task", TASK_OPTIONS)


def get_tasks(
    db: Session,
    assigned_to_id: Optional[str] = None,
    status: Optional[models.TaskStatus] = None,
    skip: int = 0,
    limit: Optional[int] = None,
) -> List[models.Task]:
    query = db.query(models.Task).options(*TASK_OPTIONS)
    if assigned_to_id:
        query = query.filter(models.Task.assigned_to_id == assigned_to_id)
    if status:
        query = query.filter(models.Task.status == status)
    return query.order_by(models.Task.created_at.desc()).offset(skip).limit(limit).all()


def create_task(db: Session, task: schemas.TaskCreate, actor: Optional[models.User] = None) -> models.Task:
    _require_reference(db, models.User, task.assigned_to_id, "assigned_to_id", "User")
    with _transaction(db):
        db_task = models.Task(**task.model_dump())
        db.add(db_task)
        db.flush()
        _record_event(db, models.EventAction.CREATE, "Task", db_task.id, actor, f"Created task {db_task.title}")
    return get_task(db, db_task.id)


def update_task(db: Session, task_id: str, update: schemas.TaskUpdate, actor: Optional[models.User] = None) -> models.Task:
    db_task = get_task(db, task_id)
    update_data = update.model_dump(exclude_unset=True)
    _reject_nulls(update_data, ("title", "priority", "status"))
    if "assigned_to_id" in update_data:
        _require_reference(db, models.User, update_data["assigned_to_id"], "assigned_to_id", "User")
    with _transaction(db):
        _apply_updates(db_task, update_data)
        _record_event(db, models.EventAction.UPDATE, "Task", task_id, actor, f"Updated task fields: {', '.join(sorted(update_data)) or 'none'}")
    return get_task(db, task_id)


def delete_task(db: Session, task_id: str, actor: Optional[models.User] = None) -> None:
    db_task = get_task(db, task_id)
    with _transaction(db):
        db.delete(db_task)
        _record_event(db, models.EventAction.DELETE, "Task", task_id, actor, f"Deleted task {db_task.title}")


# ==================== EVENT OPERATIONS ====================

EVENT_OPTIONS = (joinedload(models.Event.user),)


def get_event(db: Session, event_id: str) -> models.Event:
    return _get_or_404(db, models.Event, event_id, "Event", EVENT_OPTIONS)


def get_events(
    db: Session,
    patient_id: Optional[str] = None,
    user_id: Optional[str] = None,
    entity_type: Optional[str] = None,
    skip: int = 0,
    limit: Optional[int] = None,
) -> List[models.Event]:
    query = db.query(models.Event).options(*EVENT_OPTIONS)
    if patient_id:
        query = query.filter(models.Event.patient_id == patient_id)
    if user_id:
        query = query.filter(models.Event.user_id == user_id)
    if entity_type:
        query = query.filter(models.Event.entity_type == entity_type)
    return query.order_by(models.Event.created_at.desc()).offset(skip).limit(limit).all()


def create_event(db: Session, event: schemas.EventCreate, actor: Optional[models.User] = None) -> models.Event:
    _require_reference(db, models.Patient, event.patient_id, "patient_id", "Patient")
    with _transaction(db):
        db_event = _record_event(
            db, event.action, event.entity_type, event.entity_id, actor,
            event.description, patient_id=event.patient_id,
        )
        db.flush()
    return get_event(db, db_event.id)


def delete_event(db: Session, event_id: str) -> None:
    db_event = get_event(db, event_id)
    with _transaction(db):
        db.delete(db_event)


def update_event(db: Session, event_id: str, update: schemas.EventUpdate) -> models.Event:
    """Only the free-text description of an event can be corrected."""
    db_event = get_event(db, event_id)
    update_data = update.model_dump(exclude_unset=True)
    with _transaction(db):
        _apply_updates(db_event, update_data)
    return get_event(db, event_id)
