# app/schemas.py
import datetime as dt
from typing import List, Optional

from pydantic import (
    BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, StringConstraints, model_validator
)
from pydantic.alias_generators import to_camel
from typing_extensions import Annotated

from . import formatting
from .models import EventAction, TaskPriority, TaskStatus, UserRole


def _blank_to_none(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


# --- Field types shared by every entity ---
RequiredStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
RequiredStr100 = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
RequiredStr50 = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
OptionalStr = Annotated[Optional[Annotated[str, StringConstraints(max_length=255)]], BeforeValidator(_blank_to_none)]
OptionalStr100 = Annotated[Optional[Annotated[str, StringConstraints(max_length=100)]], BeforeValidator(_blank_to_none)]
OptionalStr50 = Annotated[Optional[Annotated[str, StringConstraints(max_length=50)]], BeforeValidator(_blank_to_none)]
OptionalStr20 = Annotated[Optional[Annotated[str, StringConstraints(max_length=20)]], BeforeValidator(_blank_to_none)]
OptionalStr10 = Annotated[Optional[Annotated[str, StringConstraints(max_length=10)]], BeforeValidator(_blank_to_none)]
LongText = Annotated[Optional[str], BeforeValidator(_blank_to_none)]
RequiredId = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=32)]
OptionalId = Annotated[Optional[Annotated[str, StringConstraints(max_length=32)]], BeforeValidator(_blank_to_none)]
OptionalEmail = Annotated[Optional[EmailStr], BeforeValidator(_blank_to_none)]
Phone = Annotated[Optional[Annotated[str, StringConstraints(max_length=formatting.PHONE_DIGITS)]], BeforeValidator(formatting.normalize_phone)]
RequiredPhone = Annotated[Annotated[str, StringConstraints(min_length=1, max_length=formatting.PHONE_DIGITS)], BeforeValidator(formatting.normalize_phone)]
DateField = Annotated[Optional[dt.date], BeforeValidator(formatting.coerce_date)]
RequiredDate = Annotated[dt.date, BeforeValidator(formatting.coerce_date)]
TimeField = Annotated[Optional[dt.time], BeforeValidator(formatting.parse_time)]
RequiredTime = Annotated[dt.time, BeforeValidator(formatting.parse_time)]
DateTimeField = Annotated[Optional[dt.datetime], BeforeValidator(formatting.coerce_datetime)]


# --- Base Schemas ---
class BaseSchema(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class TimestampedResponse(BaseSchema):
    id: str
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None


class MessageResponse(BaseSchema):
    message: str


# --- User Schemas ---
class UserBrief(BaseSchema):
    id: str
    name: str
    email: str


class UserCreate(BaseSchema):
    email: EmailStr
    name: RequiredStr
    role: UserRole = UserRole.STAFF
    password: Optional[str] = Field(None, min_length=8, max_length=128)


class UserUpdate(BaseSchema):
    email: Optional[EmailStr] = None
    name: Optional[RequiredStr] = None
    role: Optional[UserRole] = None
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    is_active: Optional[bool] = None


class UserResponse(TimestampedResponse):
    email: str
    name: str
    role: UserRole
    is_active: bool


# --- Auth Schemas ---
class LoginRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


# --- Case Manager Schemas ---
class CaseManagerInput(BaseSchema):
    """Case manager row submitted with an attorney; incomplete rows are skipped."""
    name: OptionalStr = None
    email: OptionalEmail = None
    phone: Phone = None
    phone_ext: OptionalStr10 = None
    fax_number: Phone = None


class CaseManagerCreate(BaseSchema):
    attorney_id: RequiredId
    name: RequiredStr
    email: EmailStr
    phone: RequiredPhone
    phone_ext: OptionalStr10 = None
    fax_number: Phone = None


class CaseManagerUpdate(BaseSchema):
    name: Optional[RequiredStr] = None
    email: Optional[EmailStr] = None
    phone: Optional[RequiredPhone] = None
    phone_ext: OptionalStr10 = None
    fax_number: Phone = None


class CaseManagerResponse(TimestampedResponse):
    attorney_id: str
    name: str
    email: str
    phone: str
    phone_ext: Optional[str] = None
    fax_number: Optional[str] = None


# --- Attorney Schemas ---
class AttorneyProfileFields(BaseSchema):
    phone: Phone = None
    fax_number: Phone = None
    address: OptionalStr = None
    city: OptionalStr100 = None
    state: OptionalStr50 = None
    zipcode: OptionalStr20 = None
    notes: LongText = None
    bar_number: OptionalStr50 = None
    firm: OptionalStr = None


class AttorneyCreate(AttorneyProfileFields):
    name: RequiredStr
    email: EmailStr
    password: Optional[str] = None
    has_login: bool = False
    case_managers: List[CaseManagerInput] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_login_password(self):
        if self.has_login and not self.password:
            raise ValueError("Password is required when login access is enabled")
        return self


class AttorneyUpdate(AttorneyProfileFields):
    name: Optional[RequiredStr] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=1, max_length=128)


class AttorneyUser(BaseSchema):
    id: str
    name: str
    email: str
    role: UserRole


class AttorneyResponse(TimestampedResponse):
    user_id: str
    phone: Optional[str] = None
    fax_number: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None
    notes: Optional[str] = None
    bar_number: Optional[str] = None
    firm: Optional[str] = None
    user: AttorneyUser
    case_managers: List[CaseManagerResponse] = Field(default_factory=list)


class AttorneySummary(BaseSchema):
    id: str
    user: UserBrief


# --- Payer / Status Schemas ---
class PayerCreate(BaseSchema):
    name: RequiredStr
    is_active: bool = True


class PayerUpdate(BaseSchema):
    name: Optional[RequiredStr] = None
    is_active: Optional[bool] = None


class PayerResponse(TimestampedResponse):
    name: str
    is_active: bool


class StatusCreate(BaseSchema):
    name: RequiredStr100
    color: OptionalStr20 = None


class StatusUpdate(BaseSchema):
    name: Optional[RequiredStr100] = None
    color: OptionalStr20 = None


class StatusResponse(TimestampedResponse):
    name: str
    color: Optional[str] = None


# --- Doctor / Physician / Facility Schemas ---
class DoctorCreate(BaseSchema):
    prefix: OptionalStr20 = None
    name: RequiredStr
    email: OptionalEmail = None
    clinic_name: OptionalStr = None
    phone_number: Phone = None
    status: RequiredStr50 = "ACTIVE"


class DoctorUpdate(BaseSchema):
    prefix: OptionalStr20 = None
    name: Optional[RequiredStr] = None
    email: OptionalEmail = None
    clinic_name: OptionalStr = None
    phone_number: Phone = None
    status: Optional[RequiredStr50] = None


class DoctorResponse(TimestampedResponse):
    prefix: Optional[str] = None
    name: str
    email: Optional[str] = None
    clinic_name: Optional[str] = None
    phone_number: Optional[str] = None
    status: str


class PhysicianCreate(BaseSchema):
    prefix: OptionalStr20 = None
    name: RequiredStr
    suffix: OptionalStr20 = None
    email: OptionalEmail = None
    status: RequiredStr50 = "ACTIVE"
    is_active: bool = True


class PhysicianUpdate(BaseSchema):
    prefix: OptionalStr20 = None
    name: Optional[RequiredStr] = None
    suffix: OptionalStr20 = None
    email: OptionalEmail = None
    status: Optional[RequiredStr50] = None
    is_active: Optional[bool] = None


class PhysicianResponse(TimestampedResponse):
    prefix: Optional[str] = None
    name: str
    suffix: Optional[str] = None
    email: Optional[str] = None
    status: str
    is_active: bool


class PhysicianSummary(BaseSchema):
    id: str
    prefix: Optional[str] = None
    name: str
    suffix: Optional[str] = None


class FacilityCreate(BaseSchema):
    name: RequiredStr
    address: OptionalStr = None
    city: OptionalStr100 = None
    status: RequiredStr50 = "ACTIVE"


class FacilityUpdate(BaseSchema):
    name: Optional[RequiredStr] = None
    address: OptionalStr = None
    city: OptionalStr100 = None
    status: Optional[RequiredStr50] = None


class FacilityResponse(TimestampedResponse):
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    status: str


class NamedSummary(BaseSchema):
    id: str
    name: str


# --- Exam Schemas ---
class SubExamInput(BaseSchema):
    id: OptionalId = None
    name: RequiredStr
    price: Optional[float] = Field(None, ge=0)


class SubExamResponse(TimestampedResponse):
    exam_id: str
    name: str
    price: Optional[float] = None


class ExamCreate(BaseSchema):
    name: RequiredStr
    description: LongText = None
    category: OptionalStr100 = None
    status: RequiredStr50 = "ACTIVE"
    is_active: bool = True
    sub_exams: List[SubExamInput] = Field(default_factory=list)


class ExamUpdate(BaseSchema):
    name: Optional[RequiredStr] = None
    description: LongText = None
    category: OptionalStr100 = None
    status: Optional[RequiredStr50] = None
    is_active: Optional[bool] = None
    sub_exams: Optional[List[SubExamInput]] = None


class ExamResponse(TimestampedResponse):
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    status: str
    is_active: bool
    sub_exams: List[SubExamResponse] = Field(default_factory=list)


# --- Procedure Schemas ---
class ProcedureFields(BaseSchema):
    exam_id: RequiredId
    schedule_date: RequiredDate
    schedule_time: RequiredTime
    facility_id: RequiredId
    physician_id: RequiredId
    status_id: RequiredId
    lop: LongText = None
    is_completed: bool = False


class PatientProcedureInput(ProcedureFields):
    """Procedure row submitted inside a patient form; ``id`` marks an existing row."""
    id: OptionalId = None


class ProcedureCreate(ProcedureFields):
    patient_id: RequiredId


class ProcedureUpdate(BaseSchema):
    exam_id: Optional[RequiredId] = None
    schedule_date: Optional[RequiredDate] = None
    schedule_time: Optional[RequiredTime] = None
    facility_id: Optional[RequiredId] = None
    physician_id: Optional[RequiredId] = None
    status_id: Optional[RequiredId] = None
    lop: LongText = None
    is_completed: Optional[bool] = None


class ProcedureResponse(TimestampedResponse):
    patient_id: str
    exam_id: str
    facility_id: str
    physician_id: str
    status_id: str
    schedule_date: dt.date
    schedule_time: dt.time
    is_completed: bool
    lop: Optional[str] = None
    exam: NamedSummary
    facility: NamedSummary
    physician: PhysicianSummary
    status: StatusResponse


# --- Patient Schemas ---
class PatientFields(BaseSchema):
    middle_name: OptionalStr100 = None
    date_of_birth: DateField = None
    phone: Phone = None
    alt_number: Phone = None
    email: OptionalEmail = None
    doidol: DateField = None
    gender: OptionalStr20 = None
    address: OptionalStr = None
    city: OptionalStr100 = None
    zip: OptionalStr20 = None
    lawyer: OptionalStr = None
    attorney_id: OptionalId = None
    order_date: DateField = None
    order_for: OptionalStr = None
    referring_doctor_id: OptionalId = None


class PatientCreate(PatientFields):
    first_name: RequiredStr100
    last_name: RequiredStr100
    payer_id: RequiredId
    status_id: RequiredId
    gender: OptionalStr20 = "unknown"
    procedures: List[PatientProcedureInput] = Field(default_factory=list)


class PatientUpdate(PatientFields):
    first_name: Optional[RequiredStr100] = None
    last_name: Optional[RequiredStr100] = None
    payer_id: Optional[RequiredId] = None
    status_id: Optional[RequiredId] = None
    procedures: Optional[List[PatientProcedureInput]] = None


class PatientSummary(BaseSchema):
    id: str
    first_name: str
    last_name: str
    date_of_birth: Optional[dt.date] = None


class PatientResponse(TimestampedResponse):
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    date_of_birth: Optional[dt.date] = None
    phone: Optional[str] = None
    alt_number: Optional[str] = None
    email: Optional[str] = None
    doidol: Optional[dt.date] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    zip: Optional[str] = None
    lawyer: Optional[str] = None
    order_date: Optional[dt.date] = None
    order_for: Optional[str] = None
    payer_id: str
    status_id: str
    attorney_id: Optional[str] = None
    referring_doctor_id: Optional[str] = None
    payer: PayerResponse
    status: StatusResponse
    attorney: Optional[AttorneySummary] = None
    referring_doctor: Optional[DoctorResponse] = None
    procedures: List[ProcedureResponse] = Field(default_factory=list)


# --- Appointment Schemas ---
class AppointmentCreate(BaseSchema):
    patient_id: RequiredId
    doctor_id: OptionalId = None
    exam_id: OptionalId = None
    date: RequiredDate
    time: TimeField = None
    type: OptionalStr50 = None
    status: RequiredStr50 = "SCHEDULED"
    notes: LongText = None


class AppointmentUpdate(BaseSchema):
    doctor_id: OptionalId = None
    exam_id: OptionalId = None
    date: Optional[RequiredDate] = None
    time: TimeField = None
    type: OptionalStr50 = None
    status: Optional[RequiredStr50] = None
    notes: LongText = None


class AppointmentResponse(TimestampedResponse):
    patient_id: str
    doctor_id: Optional[str] = None
    exam_id: Optional[str] = None
    date: dt.date
    time: Optional[dt.time] = None
    type: Optional[str] = None
    status: str
    notes: Optional[str] = None
    patient: PatientSummary
    doctor: Optional[DoctorResponse] = None
    exam: Optional[NamedSummary] = None


# --- Case Schemas ---
class CaseCreate(BaseSchema):
    patient_id: RequiredId
    case_number: RequiredStr100
    filing_date: DateField = None
    status: RequiredStr50 = "OPEN"


class CaseUpdate(BaseSchema):
    case_number: Optional[RequiredStr100] = None
    filing_date: DateField = None
    status: Optional[RequiredStr50] = None


class CaseResponse(TimestampedResponse):
    patient_id: str
    case_number: str
    filing_date: Optional[dt.date] = None
    status: str
    patient: PatientSummary


# --- Task Schemas ---
class TaskCreate(BaseSchema):
    title: RequiredStr
    description: LongText = None
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    due_date: DateTimeField = None
    assigned_to_id: OptionalId = None


class TaskUpdate(BaseSchema):
    title: Optional[RequiredStr] = None
    description: LongText = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    due_date: DateTimeField = None
    assigned_to_id: OptionalId = None


class TaskResponse(TimestampedResponse):
    title: str
    description: Optional[str] = None
    priority: TaskPriority
    status: TaskStatus
    due_date: Optional[dt.datetime] = None
    assigned_to_id: Optional[str] = None
    assigned_to: Optional[UserBrief] = None


# --- Event Schemas ---
class EventCreate(BaseSchema):
    action: EventAction = EventAction.NOTE
    entity_type: RequiredStr50
    entity_id: OptionalId = None
    description: LongText = None
    patient_id: OptionalId = None


class EventUpdate(BaseSchema):
    description: LongText = None


class EventResponse(BaseSchema):
    id: str
    action: EventAction
    entity_type: str
    entity_id: Optional[str] = None
    description: Optional[str] = None
    patient_id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: dt.datetime
    user: Optional[UserBrief] = None


# --- Health ---
class HealthResponse(BaseSchema):
    status: str
    database: str
    version: str
