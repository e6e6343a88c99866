from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any, Literal

from pydantic import BaseModel, Field


CustomFieldScalar = str | int | float | bool | None

# Accepted forms of a daily entry date; see daily_service.normalize_entry_date.
DateInput = str | datetime | date | int


class RegisterPayload(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1)


class LoginPayload(BaseModel):
    username: str
    password: str


class DailyTaskCreate(BaseModel):
    title: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    assignee: Optional[str] = None
    custom_fields: Dict[str, CustomFieldScalar] = Field(default_factory=dict)


class DailyTaskIn(DailyTaskCreate):
    id: Optional[str] = None
    completed: bool = False


class DailyTaskPatch(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    type: Optional[str] = Field(None, min_length=1)
    completed: Optional[bool] = None
    assignee: Optional[str] = None
    custom_fields: Optional[Dict[str, CustomFieldScalar]] = None


class DailyEntryPatch(BaseModel):
    tasks: Optional[List[DailyTaskIn]] = None
    dsa_completed: Optional[float] = Field(None, ge=0)
    backend_learning: Optional[float] = Field(None, ge=0)
    system_design: Optional[float] = Field(None, ge=0)
    project_work: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None
    time_spent_hours: Optional[float] = Field(None, ge=0)
    energy_level: Optional[float] = Field(None, ge=0, le=5)


class DailyEntryUpsert(DailyEntryPatch):
    date: DateInput


class DailyEntryUpdate(DailyEntryPatch):
    date: Optional[DateInput] = None


class TaskOrderPayload(BaseModel):
    # Left untyped so a non-array order is reported as a 400 by the daily service.
    order: Any = None


class WorkspaceCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class WorkspacePatch(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None


class SharePayload(BaseModel):
    user_id: str
    role: str


class CustomFieldDefinition(BaseModel):
    name: str = Field(..., min_length=1)
    kind: Literal["text", "number", "boolean", "date"]
    label: str = Field(..., min_length=1)


class CustomFieldRemove(BaseModel):
    field_name: str


class SectionOrderPayload(BaseModel):
    order: List[str]


# Generic record kinds. Each kind has a create model (full document) and a
# patch model where every field is optional.


class WeeklyCreate(BaseModel):
    week_start: date
    week_end: date
    dsa_total: float = 0
    backend_topics_completed: float = 0
    system_design_topics: float = 0
    project_commits: float = 0
    wins: List[str] = Field(default_factory=list)
    failures: List[str] = Field(default_factory=list)
    fixes: List[str] = Field(default_factory=list)
    status: str = "on-track"


class WeeklyPatch(BaseModel):
    week_start: Optional[date] = None
    week_end: Optional[date] = None
    dsa_total: Optional[float] = None
    backend_topics_completed: Optional[float] = None
    system_design_topics: Optional[float] = None
    project_commits: Optional[float] = None
    wins: Optional[List[str]] = None
    failures: Optional[List[str]] = None
    fixes: Optional[List[str]] = None
    status: Optional[str] = None


class MonthlyCreate(BaseModel):
    month: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    dsa_total: float = 0
    backend_topics: float = 0
    system_design_topics: float = 0
    project_progress_percent: float = Field(0, ge=0, le=100)
    resume_updates: List[str] = Field(default_factory=list)
    confidence_level: float = 3
    switch_stage: Optional[str] = None


class MonthlyPatch(BaseModel):
    month: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}$")
    dsa_total: Optional[float] = None
    backend_topics: Optional[float] = None
    system_design_topics: Optional[float] = None
    project_progress_percent: Optional[float] = Field(None, ge=0, le=100)
    resume_updates: Optional[List[str]] = None
    confidence_level: Optional[float] = None
    switch_stage: Optional[str] = None


class BackendTopicCreate(BaseModel):
    topic: str = Field(..., min_length=1)
    category: Optional[str] = None
    status: str = "todo"
    notes: Optional[str] = None
    github_link: Optional[str] = None


class BackendTopicPatch(BaseModel):
    topic: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    status: Optional[str] = None
    notes: Optional[str] = None
    github_link: Optional[str] = None


class SystemDesignCreate(BaseModel):
    concept: str = Field(..., min_length=1)
    category: Optional[str] = None
    status: str = "todo"
    diagram_link: Optional[str] = None
    notes: Optional[str] = None


class SystemDesignPatch(BaseModel):
    concept: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    status: Optional[str] = None
    diagram_link: Optional[str] = None
    notes: Optional[str] = None


class DsaProblemCreate(BaseModel):
    name: str = Field(..., min_length=1)
    link: Optional[str] = None
    difficulty: Optional[Literal["Easy", "Medium", "Hard"]] = None
    pattern: Optional[str] = None
    topic: Optional[str] = None
    status: str = "todo"
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class DsaProblemPatch(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    link: Optional[str] = None
    difficulty: Optional[Literal["Easy", "Medium", "Hard"]] = None
    pattern: Optional[str] = None
    topic: Optional[str] = None
    status: Optional[str] = None
    notes: Optional[str] = None
    tags: Optional[List[str]] = None


class BoardTaskCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    column: str = "Backlog"
    priority: Literal["Low", "Medium", "High"] = "Medium"
    area: Optional[str] = None
    notes: Optional[str] = None
    order: int = 0


class BoardTaskPatch(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    column: Optional[str] = None
    priority: Optional[Literal["Low", "Medium", "High"]] = None
    area: Optional[str] = None
    notes: Optional[str] = None
    order: Optional[int] = None


class SectionCreate(BaseModel):
    name: str = Field(..., min_length=1)
    order: int = 0


class SectionPatch(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    order: Optional[int] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobCreate(BaseModel):
    company: str = Field(..., min_length=1)
    role: Optional[str] = None
    location: Optional[str] = None
    referral: Optional[str] = None
    stage: str = "applied"
    notes: Optional[str] = None
    applied_at: datetime = Field(default_factory=_utcnow)


class JobPatch(BaseModel):
    company: Optional[str] = Field(None, min_length=1)
    role: Optional[str] = None
    location: Optional[str] = None
    referral: Optional[str] = None
    stage: Optional[str] = None
    notes: Optional[str] = None
    applied_at: Optional[datetime] = None


class TaskTypeCreate(BaseModel):
    name: str = Field(..., min_length=1)
    color: str = Field("#6366F1", pattern=r"^#[0-9A-Fa-f]{6}$")
    custom_fields: List[CustomFieldDefinition] = Field(default_factory=list)


class TaskTypePatch(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    custom_fields: Optional[List[CustomFieldDefinition]] = None
