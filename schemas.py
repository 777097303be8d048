"""Request bodies for the JSON endpoints. Field names are camelCase on the wire."""
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from config import GRADES, MIN_PASSWORD_LENGTH
from models import GENDERS, ORGANIZATION_TYPES


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


def _normalize_gender(value):
    if value is None or value == "":
        return None
    value = value.lower()
    if value not in GENDERS:
        raise ValueError(f"gender must be one of {', '.join(GENDERS)}")
    return value


Gender = Annotated[Optional[str], AfterValidator(_normalize_gender)]


# Auth
class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class DoctorSignupRequest(CamelModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    specialty: Optional[str] = Field(None, max_length=50)
    organization_id: Optional[str] = None


class OrganizationSignupRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    type: Literal[ORGANIZATION_TYPES] = "hospital"


class PasswordChangeRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


# Organization
class OrganizationUpdateRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    type: Optional[Literal[ORGANIZATION_TYPES]] = None


class RosterDoctorRequest(CamelModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    specialty: Optional[str] = Field(None, max_length=50)


# Doctor
class AssignPatientRequest(CamelModel):
    patient_id: int
    doctor_id: Optional[str] = None


# Patients
class PatientCreateRequest(CamelModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    gender: Gender = None
    age: Optional[int] = Field(None, ge=0, le=150)


class PatientUpdateRequest(CamelModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    gender: Gender = None
    age: Optional[int] = Field(None, ge=0, le=150)


# Medical images
class MedicalImageUpdateRequest(CamelModel):
    description: Optional[str] = Field(None, max_length=500)
    grade: Optional[Literal[tuple(GRADES)]] = None
    confidence: Optional[float] = Field(None, ge=0, le=100)


# Chat
class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class PatientContext(CamelModel):
    name: str
    id: Optional[str] = None
    grade: Optional[str] = None
    confidence: Optional[float] = None
    date: Optional[str] = None


class ChatRequest(CamelModel):
    message: str = Field(..., min_length=1, max_length=4000)
    history: List[ChatTurn] = []
    patient: Optional[PatientContext] = None
