from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Union
from datetime import datetime
from ujian_gto.models.user import UserRole
from ujian_gto.models.content import ExamStatus
from ujian_gto.models.session import SubmissionStatus


class CamelModel(BaseModel):
    """Entities travel to clients with camelCase field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Entity(CamelModel):
    """Immutable snapshot of a stored row."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


def normalize_duration(value: Union[int, str, None]) -> Optional[str]:
    """A bare number of minutes becomes "<n> Menit"; anything else is kept."""
    if value is None:
        return None
    text = str(value).strip()
    if text.isdigit():
        return f"{int(text)} Menit"
    return text


def normalize_due_date(value: Optional[str]) -> Optional[str]:
    """datetime-local input "2025-01-31T08:00" is stored as "2025-01-31, 08:00"."""
    if value is None:
        return None
    return value.replace("T", ", ", 1)


# =============================================================================
# Exams
# =============================================================================

class Exam(Entity):
    id: str
    title: str
    description: str = ""
    duration: str
    status: ExamStatus = ExamStatus.ACTIVE
    due_date: Optional[str] = None
    image_url: Optional[str] = None


class ExamCreate(CamelModel):
    """Request to create a new exam packet."""
    title: str = Field(min_length=1)
    description: str = ""
    duration: Union[int, str] = "120 Menit"
    status: ExamStatus = ExamStatus.ACTIVE
    due_date: Optional[str] = None
    image_url: Optional[str] = None

    @field_validator("duration")
    @classmethod
    def _duration(cls, v):
        return normalize_duration(v)

    @field_validator("due_date")
    @classmethod
    def _due_date(cls, v):
        return normalize_due_date(v)


class ExamUpdate(CamelModel):
    """Partial update; only fields present in the request are written."""
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    duration: Optional[Union[int, str]] = None
    status: Optional[ExamStatus] = None
    due_date: Optional[str] = None
    image_url: Optional[str] = None

    # Stored NOT NULL: may be omitted, but never sent as null
    @field_validator("title", "duration", "status", mode="before")
    @classmethod
    def _not_null(cls, v):
        if v is None:
            raise ValueError("must not be null")
        return v

    @field_validator("duration")
    @classmethod
    def _duration(cls, v):
        return normalize_duration(v)

    @field_validator("due_date")
    @classmethod
    def _due_date(cls, v):
        return normalize_due_date(v)


class BlueprintUploadResponse(CamelModel):
    url: str
    path: str


# =============================================================================
# Submissions
# =============================================================================

class Criteria(Entity):
    """Rubric breakdown: dimension accuracy, modeling efficiency, aesthetics."""
    dimension: int = 0
    efficiency: int = 0
    aesthetics: int = 0


class Submission(Entity):
    id: str
    student_name: str
    nis: str
    exam_id: str
    exam_title: str
    submit_time: str
    status: SubmissionStatus = SubmissionStatus.PENDING
    score: Optional[int] = None
    onshape_link: str
    is_late: bool = False
    criteria: Optional[Criteria] = None
    feedback: Optional[str] = None


class NewSubmission(CamelModel):
    student_name: str
    nis: str
    exam_id: str
    exam_title: str
    submit_time: str
    status: SubmissionStatus = SubmissionStatus.PENDING
    score: Optional[int] = None
    onshape_link: str
    is_late: bool = False
    criteria: Optional[Criteria] = None
    feedback: Optional[str] = None


class SubmissionUpdate(CamelModel):
    status: Optional[SubmissionStatus] = None
    score: Optional[int] = None
    onshape_link: Optional[str] = None
    is_late: Optional[bool] = None
    criteria: Optional[Criteria] = None
    feedback: Optional[str] = None


class GradeRequest(CamelModel):
    dimension: int
    efficiency: int
    aesthetics: int
    feedback: Optional[str] = None


class SubmissionStats(CamelModel):
    pending: int
    graded: int
    total: int


# =============================================================================
# Students & authentication
# =============================================================================

class StudentOut(CamelModel):
    id: str
    name: str
    nisn: str
    class_: str = Field(alias="class")
    created_at: Optional[datetime] = None


class ImportResult(CamelModel):
    imported: int
    skipped: int
    message: str


class LoginRequest(CamelModel):
    role: UserRole = UserRole.STUDENT
    username: str
    password: str


class UserInfo(CamelModel):
    """Session identity the client keeps as `user_info`."""
    name: str
    role: UserRole
    nisn: Optional[str] = None
    class_: Optional[str] = Field(default=None, alias="class")


# =============================================================================
# Exam attempts
# =============================================================================

class AttemptRequest(CamelModel):
    nisn: str


class SubmitAttemptRequest(CamelModel):
    nisn: str
    onshape_link: str


class ProctorPolicy(CamelModel):
    """
    Client-side restrictions while an attempt is running.

    Purely cosmetic: the browser can always be forced to navigate away or
    open developer tools, so `enforcing` is always False.
    """
    confirm_on_unload: bool = False
    block_context_menu: bool = False
    blocked_shortcuts: List[str] = []
    enforcing: bool = False


class AttemptState(CamelModel):
    exam_id: str
    started: bool = False
    agreed_to_rules: bool = False
    start_timestamp: Optional[float] = None
    total_seconds: int
    remaining_seconds: int
    remaining_display: str
    is_low_time: bool = False
    is_expired: bool = False
    submitted: bool = False
    proctor: ProctorPolicy = ProctorPolicy()


# =============================================================================
# Live monitoring
# =============================================================================

class ActiveStudent(CamelModel):
    nisn: str
    name: str
    class_: str = Field(default="", alias="class")
    online_at: str


class WarningRequest(CamelModel):
    message: str
    target_nisn: Optional[str] = None  # None = every active student


class WarningResult(CamelModel):
    sent: bool
    target_nisn: Optional[str] = None
