# app/models.py
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, DateTime, Time, ForeignKey, Text, Date,
    Enum as SQLAlchemyEnum, Boolean, Numeric, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from .database import Base


def generate_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    ATTORNEY = "ATTORNEY"
    STAFF = "STAFF"


class TaskPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TaskStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class EventAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    NOTE = "NOTE"


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ==================== USERS & ATTORNEYS ====================

class User(TimestampMixin, Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        Index('idx_users_role_active', 'role', 'is_active'),
    )

    id = Column(String(32), primary_key=True, default=generate_id)
    email = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    # Empty string means the account cannot log in
    password = Column(String(255), nullable=False, default="")
    role = Column(SQLAlchemyEnum(UserRole, name='user_role'), default=UserRole.STAFF, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    attorney = relationship("Attorney", back_populates="user", uselist=False)
    tasks = relationship("Task", back_populates="assigned_to")
    events = relationship("Event", back_populates="user")


class Attorney(TimestampMixin, Base):
    __tablename__ = "attorneys"

    id = Column(String(32), primary_key=True, default=generate_id)
    user_id = Column(String(32), ForeignKey("users.id"), nullable=False, unique=True)
    phone = Column(String(20), nullable=True)
    fax_number = Column(String(20), nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    zipcode = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)
    bar_number = Column(String(50), nullable=True)
    firm = Column(String(255), nullable=True)

    user = relationship("User", back_populates="attorney")
    case_managers = relationship(
        "CaseManager", back_populates="attorney", cascade="all, delete-orphan",
        order_by="CaseManager.created_at",
    )
    patients = relationship("Patient", back_populates="attorney")


class CaseManager(TimestampMixin, Base):
    __tablename__ = "case_managers"

    id = Column(String(32), primary_key=True, default=generate_id)
    attorney_id = Column(String(32), ForeignKey("attorneys.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    phone_ext = Column(String(10), nullable=True)
    fax_number = Column(String(20), nullable=True)

    attorney = relationship("Attorney", back_populates="case_managers")


# ==================== REFERENCE DATA ====================

class Payer(TimestampMixin, Base):
    __tablename__ = "payers"
    __table_args__ = (UniqueConstraint("name", name="uq_payers_name"),)

    id = Column(String(32), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    patients = relationship("Patient", back_populates="payer")


class Status(TimestampMixin, Base):
    __tablename__ = "statuses"
    __table_args__ = (UniqueConstraint("name", name="uq_statuses_name"),)

    id = Column(String(32), primary_key=True, default=generate_id)
    name = Column(String(100), nullable=False)
    color = Column(String(20), nullable=True)

    patients = relationship("Patient", back_populates="status")
    procedures = relationship("Procedure", back_populates="status")


class Doctor(TimestampMixin, Base):
    """Referring doctor."""
    __tablename__ = "doctors"

    id = Column(String(32), primary_key=True, default=generate_id)
    prefix = Column(String(20), nullable=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    clinic_name = Column(String(255), nullable=True)
    phone_number = Column(String(20), nullable=True)
    status = Column(String(50), nullable=False, default="ACTIVE")

    appointments = relationship("Appointment", back_populates="doctor")
    referred_patients = relationship("Patient", back_populates="referring_doctor")


class Physician(TimestampMixin, Base):
    """Reading/performing physician."""
    __tablename__ = "physicians"
    __table_args__ = (UniqueConstraint("email", name="uq_physicians_email"),)

    id = Column(String(32), primary_key=True, default=generate_id)
    prefix = Column(String(20), nullable=True)
    name = Column(String(255), nullable=False)
    suffix = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    status = Column(String(50), nullable=False, default="ACTIVE")
    is_active = Column(Boolean, default=True, nullable=False)

    procedures = relationship("Procedure", back_populates="physician")


class Facility(TimestampMixin, Base):
    __tablename__ = "facilities"

    id = Column(String(32), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    status = Column(String(50), nullable=False, default="ACTIVE")

    procedures = relationship("Procedure", back_populates="facility")


class Exam(TimestampMixin, Base):
    __tablename__ = "exams"

    id = Column(String(32), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    status = Column(String(50), nullable=False, default="ACTIVE")
    is_active = Column(Boolean, default=True, nullable=False)

    sub_exams = relationship(
        "SubExam", back_populates="exam", cascade="all, delete-orphan",
        order_by="SubExam.created_at",
    )
    procedures = relationship("Procedure", back_populates="exam")
    appointments = relationship("Appointment", back_populates="exam")


class SubExam(TimestampMixin, Base):
    __tablename__ = "sub_exams"

    id = Column(String(32), primary_key=True, default=generate_id)
    exam_id = Column(String(32), ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=True)

    exam = relationship("Exam", back_populates="sub_exams")


# ==================== PATIENTS ====================

class Patient(TimestampMixin, Base):
    __tablename__ = "patients"
    __table_args__ = (
        Index('idx_patients_name', 'last_name', 'first_name'),
    )

    id = Column(String(32), primary_key=True, default=generate_id)
    first_name = Column(String(100), nullable=False)
    middle_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    phone = Column(String(20), nullable=True)
    alt_number = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    doidol = Column(Date, nullable=True)  # date of injury / date of loss
    gender = Column(String(20), nullable=True, default="unknown")
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    zip = Column(String(20), nullable=True)
    lawyer = Column(String(255), nullable=True)
    order_date = Column(Date, nullable=True)
    order_for = Column(String(255), nullable=True)

    payer_id = Column(String(32), ForeignKey("payers.id"), nullable=False, index=True)
    status_id = Column(String(32), ForeignKey("statuses.id"), nullable=False, index=True)
    attorney_id = Column(String(32), ForeignKey("attorneys.id"), nullable=True, index=True)
    referring_doctor_id = Column(String(32), ForeignKey("doctors.id"), nullable=True)

    payer = relationship("Payer", back_populates="patients")
    status = relationship("Status", back_populates="patients")
    attorney = relationship("Attorney", back_populates="patients")
    referring_doctor = relationship("Doctor", back_populates="referred_patients")
    procedures = relationship(
        "Procedure", back_populates="patient", cascade="all, delete-orphan",
        order_by="Procedure.schedule_date",
    )
    appointments = relationship("Appointment", back_populates="patient", cascade="all, delete-orphan")
    cases = relationship("Case", back_populates="patient", cascade="all, delete-orphan")
    events = relationship("Event", back_populates="patient")


class Procedure(TimestampMixin, Base):
    __tablename__ = "procedures"
    __table_args__ = (
        Index('idx_procedures_patient_date', 'patient_id', 'schedule_date'),
    )

    id = Column(String(32), primary_key=True, default=generate_id)
    patient_id = Column(String(32), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    exam_id = Column(String(32), ForeignKey("exams.id"), nullable=False)
    facility_id = Column(String(32), ForeignKey("facilities.id"), nullable=False)
    physician_id = Column(String(32), ForeignKey("physicians.id"), nullable=False)
    status_id = Column(String(32), ForeignKey("statuses.id"), nullable=False)
    schedule_date = Column(Date, nullable=False)
    schedule_time = Column(Time, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    lop = Column(Text, nullable=True)  # letter of protection

    patient = relationship("Patient", back_populates="procedures")
    exam = relationship("Exam", back_populates="procedures")
    facility = relationship("Facility", back_populates="procedures")
    physician = relationship("Physician", back_populates="procedures")
    status = relationship("Status", back_populates="procedures")


class Appointment(TimestampMixin, Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index('idx_appointments_patient_date', 'patient_id', 'date'),
    )

    id = Column(String(32), primary_key=True, default=generate_id)
    patient_id = Column(String(32), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    doctor_id = Column(String(32), ForeignKey("doctors.id"), nullable=True)
    exam_id = Column(String(32), ForeignKey("exams.id"), nullable=True)
    date = Column(Date, nullable=False)
    time = Column(Time, nullable=True)
    type = Column(String(50), nullable=True)
    status = Column(String(50), nullable=False, default="SCHEDULED")
    notes = Column(Text, nullable=True)

    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")
    exam = relationship("Exam", back_populates="appointments")


class Case(TimestampMixin, Base):
    __tablename__ = "cases"
    __table_args__ = (UniqueConstraint("case_number", name="uq_cases_case_number"),)

    id = Column(String(32), primary_key=True, default=generate_id)
    patient_id = Column(String(32), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    case_number = Column(String(100), nullable=False)
    filing_date = Column(Date, nullable=True)
    status = Column(String(50), nullable=False, default="OPEN")

    patient = relationship("Patient", back_populates="cases")


# ==================== STAFF WORK ====================

class Task(TimestampMixin, Base):
    __tablename__ = "tasks"

    id = Column(String(32), primary_key=True, default=generate_id)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(SQLAlchemyEnum(TaskPriority, name='task_priority'), default=TaskPriority.MEDIUM, nullable=False)
    status = Column(SQLAlchemyEnum(TaskStatus, name='task_status'), default=TaskStatus.PENDING, nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=True)
    assigned_to_id = Column(String(32), ForeignKey("users.id"), nullable=True, index=True)

    assigned_to = relationship("User", back_populates="tasks")


class Event(Base):
    """Audit trail entry written alongside every mutation."""
    __tablename__ = "events"
    __table_args__ = (
        Index('idx_events_entity', 'entity_type', 'entity_id'),
        Index('idx_events_created', 'created_at'),
    )

    id = Column(String(32), primary_key=True, default=generate_id)
    action = Column(SQLAlchemyEnum(EventAction, name='event_action'), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(32), nullable=True)
    description = Column(Text, nullable=True)
    patient_id = Column(String(32), ForeignKey("patients.id"), nullable=True, index=True)
    user_id = Column(String(32), ForeignKey("users.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    patient = relationship("Patient", back_populates="events")
    user = relationship("User", back_populates="events")
