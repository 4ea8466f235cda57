from pydantic import AliasChoices, BaseModel, EmailStr, Field, StrictBool, model_validator
from typing import Any, Dict, Optional
from datetime import datetime

from .models import MeasurementNumber


# =========================
# ACCOUNT SCHEMAS
# =========================
class StudentSignUp(BaseModel):
    username: str
    password: str
    email: EmailStr
    institution: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    classroom_code: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("classroom_code", "classroomCode")
    )


class EducatorSignUp(BaseModel):
    first_name: str = Field(validation_alias=AliasChoices("first_name", "firstName"))
    last_name: str = Field(validation_alias=AliasChoices("last_name", "lastName"))
    password: str
    email: EmailStr
    institution: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginRead(BaseModel):
    result: str
    id: Optional[int] = None
    success: bool


class CreateClassRequest(BaseModel):
    educator_id: int = Field(validation_alias=AliasChoices("educator_id", "educatorID"))
    name: str


class StudentRead(BaseModel):
    id: int
    username: str
    email: str
    verified: bool
    institution: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    visits: int
    last_visit: Optional[datetime] = None

    class Config:
        from_attributes = True


class EducatorRead(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    verified: bool
    institution: Optional[str] = None
    visits: int
    last_visit: Optional[datetime] = None

    class Config:
        from_attributes = True


class ClassRead(BaseModel):
    id: int
    educator_id: int
    name: str
    code: str

    class Config:
        from_attributes = True


# =========================
# GALAXY SCHEMAS
# =========================
class GalaxyRead(BaseModel):
    id: int
    name: str
    ra: Optional[float] = None
    decl: Optional[float] = None
    z: Optional[float] = None
    type: Optional[str] = None
    element: Optional[str] = None
    is_sample: bool = False

    class Config:
        from_attributes = True


class GalaxyMark(BaseModel):
    galaxy_id: Optional[int] = None
    galaxy_name: Optional[str] = None


class SpectrumStatus(BaseModel):
    galaxy_name: str
    good: StrictBool


# =========================
# MEASUREMENT SCHEMAS
# =========================
class MeasurementFields(BaseModel):
    rest_wave_value: Optional[float] = None
    rest_wave_unit: Optional[str] = None
    obs_wave_value: Optional[float] = None
    obs_wave_unit: Optional[str] = None
    velocity_value: Optional[float] = None
    velocity_unit: Optional[str] = None
    ang_size_value: Optional[float] = None
    ang_size_unit: Optional[str] = None
    est_dist_value: Optional[float] = None
    est_dist_unit: Optional[str] = None
    brightness: Optional[float] = None


class MeasurementSubmit(MeasurementFields):
    student_id: int
    galaxy_id: Optional[int] = None
    galaxy_name: Optional[str] = None

    @model_validator(mode="after")
    def _needs_galaxy(self):
        if not self.galaxy_id and not (self.galaxy_name or "").strip():
            raise ValueError("either galaxy_id or galaxy_name is required")
        return self

    def measurement_fields(self) -> Dict[str, Any]:
        # only what the client actually sent; absent fields must not overwrite stored ones
        return self.model_dump(include=set(MeasurementFields.model_fields), exclude_unset=True)


class SampleMeasurementSubmit(MeasurementSubmit):
    measurement_number: MeasurementNumber = MeasurementNumber.first


class MeasurementRead(MeasurementFields):
    student_id: int
    galaxy_id: int
    last_modified: Optional[datetime] = None

    class Config:
        from_attributes = True


class SampleMeasurementRead(MeasurementRead):
    measurement_number: MeasurementNumber


class HubbleFitRead(BaseModel):
    hubble_fit_value: Optional[float] = None
    hubble_fit_unit: str
    age_value: Optional[float] = None
    age_unit: str
    measurement_count: int
    last_data_update: Optional[datetime] = None


class StudentDataRead(HubbleFitRead):
    student_id: int


class ClassDataRead(HubbleFitRead):
    class_id: int


# =========================
# STORY / ROSTER SCHEMAS
# =========================
class RosterStudent(BaseModel):
    username: str
    email: str

    class Config:
        from_attributes = True


class RosterEntry(BaseModel):
    student_id: int
    story_name: str
    story_state: Any = None
    student: Optional[RosterStudent] = None

    class Config:
        from_attributes = True


class StudentOptionsRead(BaseModel):
    student_id: int
    speech_autoread: bool = False
    speech_rate: float = 1.0
    speech_pitch: float = 1.0

    class Config:
        from_attributes = True


class StudentOptionsUpdate(BaseModel):
    speech_autoread: Optional[bool] = None
    speech_rate: Optional[float] = None
    speech_pitch: Optional[float] = None
