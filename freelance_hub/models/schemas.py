from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, EmailStr, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    CLIENT = "client"
    FREELANCER = "freelancer"


class ProjectStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# Statuses in which a project must have a freelancer bound to it
ASSIGNED_STATUSES = (ProjectStatus.IN_PROGRESS, ProjectStatus.COMPLETED)


class Principal(BaseModel):
    """The authenticated caller of a service operation."""
    id: UUID
    role: Role


class UserBase(BaseModel):
    username: str
    email: EmailStr
    full_name: str
    role: Role
    bio: Optional[str] = None
    profile_picture_url: Optional[str] = None


class UserCreate(UserBase):
    password: str


class User(UserBase):
    user_id: UUID = Field(default_factory=uuid4)
    registration_date: datetime = Field(default_factory=utcnow)
    last_login_date: Optional[datetime] = None
    is_active: bool = True

    def as_principal(self) -> Principal:
        return Principal(id=self.user_id, role=self.role)


class Question(BaseModel):
    text: str


class Answer(BaseModel):
    question_text: str
    answer_text: str = ""


class AnswerIn(BaseModel):
    # question_text is accepted for client convenience but never stored
    question_text: Optional[str] = None
    answer_text: str = ""


class Application(BaseModel):
    application_id: UUID = Field(default_factory=uuid4)
    freelancer_user_id: UUID
    answers: List[Answer] = Field(default_factory=list)
    resume_url: Optional[str] = None
    status: ApplicationStatus = ApplicationStatus.PENDING
    submission_date: datetime = Field(default_factory=utcnow)


class ProgressUpdate(BaseModel):
    progress: int = Field(ge=0, le=100)
    note: str
    freelancer_user_id: UUID
    timestamp: datetime = Field(default_factory=utcnow)


class ProjectBase(BaseModel):
    title: str
    description: str
    budget: float
    deadline: Optional[datetime] = None
    category: Optional[str] = None
    image_url: Optional[str] = None


class ProjectCreate(BaseModel):
    # Required fields are checked by the lifecycle service so that a missing
    # value is reported as invalid input rather than a schema error.
    title: Optional[str] = None
    description: Optional[str] = None
    budget: Optional[float] = None
    deadline: Optional[datetime] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    questions: List[Question] = Field(default_factory=list)

    @field_validator("questions", mode="before")
    @classmethod
    def _coerce_questions(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [{"text": item} if isinstance(item, str) else item for item in value]
        return value


class ProjectDetailsUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    budget: Optional[float] = None
    deadline: Optional[datetime] = None
    category: Optional[str] = None
    image_url: Optional[str] = None


class Project(ProjectBase):
    project_id: UUID = Field(default_factory=uuid4)
    client_user_id: UUID
    freelancer_user_id: Optional[UUID] = None
    status: ProjectStatus = ProjectStatus.OPEN
    questions: List[Question] = Field(default_factory=list)
    applications: List[Application] = Field(default_factory=list)
    updates: List[ProgressUpdate] = Field(default_factory=list)
    version: int = 1
    creation_date: datetime = Field(default_factory=utcnow)
    last_updated_date: datetime = Field(default_factory=utcnow)

    def to_document(self) -> Dict[str, Any]:
        """Firestore-ready dict (UUIDs and datetimes as JSON scalars)."""
        return self.model_dump(mode="json")

    def invariant_violations(self) -> List[str]:
        problems = []
        if self.status in ASSIGNED_STATUSES and self.freelancer_user_id is None:
            problems.append(f"status '{self.status.value}' requires an assigned freelancer")
        if self.status not in ASSIGNED_STATUSES and self.freelancer_user_id is not None:
            problems.append(f"status '{self.status.value}' cannot have an assigned freelancer")
        accepted = [a for a in self.applications if a.status == ApplicationStatus.ACCEPTED]
        if len(accepted) > 1:
            problems.append("more than one application is accepted")
        applicants = [a.freelancer_user_id for a in self.applications]
        if len(applicants) != len(set(applicants)):
            problems.append("a freelancer has more than one application")
        return problems


class ApplicationCreate(BaseModel):
    answers: List[AnswerIn] = Field(default_factory=list)
    resume_url: Optional[str] = None

    @field_validator("answers", mode="before")
    @classmethod
    def _coerce_answers(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [{"answer_text": item} if isinstance(item, str) else item for item in value]
        return value


class ApplicationDecision(BaseModel):
    status: ApplicationStatus


class UpdateCreate(BaseModel):
    # Bounds are enforced by the progress ledger
    progress: Optional[int] = None
    note: Optional[str] = None


class StatusChange(BaseModel):
    status: ProjectStatus


class UpdateFeedItem(ProgressUpdate):
    """A progress update annotated with the project it belongs to."""
    project_id: UUID
    project_title: str


class NotificationType(str, Enum):
    APPLICATION_SUBMITTED = "application_submitted"
    APPLICATION_ACCEPTED = "application_accepted"
    APPLICATION_REJECTED = "application_rejected"
    FREELANCER_ASSIGNED = "freelancer_assigned"


class Notification(BaseModel):
    notification_id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    type: NotificationType
    message: str
    project_id: Optional[UUID] = None
    read: bool = False
    creation_date: datetime = Field(default_factory=utcnow)
