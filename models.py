"""
models.py
Domain records (dataclasses), enums and storage keys.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any

# Storage keys per collection ("localStorage" names)
STORAGE_KEYS = {
    "users": "socagent_users_db",
    "session": "socagent_user",
    "clients": "socagent_clients",
    "profiles": "socagent_profiles",
    "plans": "socagent_plans",
    "events": "socagent_events",
    "reviews": "socagent_reviews",
    "notes": "socagent_notes",
    "documents": "socagent_documents",
    "meetings": "socagent_meetings",
    "contacts": "socagent_contacts",
    "tasks": "socagent_tasks",
    "settings": "socagent_settings",
}

# Array-valued collections (everything except the session and settings records)
COLLECTIONS = (
    "users",
    "clients",
    "profiles",
    "plans",
    "events",
    "reviews",
    "notes",
    "documents",
    "meetings",
    "contacts",
    "tasks",
)

USER_ROLES = ("admin", "worker")
EVENT_TYPES = ("meeting", "accompaniment", "community", "planning", "review", "other")
TASK_PRIORITIES = ("low", "medium", "high")
TASK_STATUSES = ("todo", "in-progress", "done")
PLAN_STATUSES = ("active", "completed", "cancelled")
PROGRESS_FLAGS = ("green", "yellow", "red")
DISABILITY_LEVELS = ("1", "2", "3")

LIFE_DOMAINS = (
    "housing",
    "work",
    "finances",
    "education",
    "recreation",
    "health",
    "self_care",
    "relationships",
    "safety",
)

# Months between two semi-annual reviews
REVIEW_INTERVAL_MONTHS = 6


def _pick(cls, data: dict) -> dict:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


class Record:
    """Mixin: JSON-shaped dict in, dataclass out (unknown keys are dropped)."""

    @classmethod
    def from_dict(cls, data: dict):
        return cls(**_pick(cls, data))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------- clients ----------

@dataclass(frozen=True)
class Guardianship(Record):
    has_guardian: bool = False
    guardian_name: str | None = None


@dataclass(frozen=True)
class Disability(Record):
    level: str  # '1' | '2' | '3'
    with_benefit: bool = False
    benefit_amount: float | None = None


@dataclass(frozen=True)
class CareAllowance(Record):
    level: str | None = None
    date_granted: str | None = None


@dataclass(frozen=True)
class Employment(Record):
    id: str
    workplace: str
    income: float | None = None


@dataclass(frozen=True)
class SocialService(Record):
    id: str
    name: str
    notes: str = ""


@dataclass(frozen=True)
class Client(Record):
    id: str
    first_name: str
    last_name: str
    date_of_birth: str
    address: str
    key_worker: str
    contract_date: str
    contract_number: str
    phone: str | None = None
    email: str | None = None
    contract_end_date: str | None = None
    guardianship: Guardianship | None = None
    disability: Disability | None = None
    care_allowance: CareAllowance | None = None
    treatment_support: bool = False
    medication: str | None = None
    employments: list[Employment] = field(default_factory=list)
    social_services: list[SocialService] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_dict(cls, data: dict) -> "Client":
        values = _pick(cls, data)
        if values.get("guardianship") is not None:
            values["guardianship"] = Guardianship.from_dict(values["guardianship"])
        if values.get("disability") is not None:
            values["disability"] = Disability.from_dict(values["disability"])
        if values.get("care_allowance") is not None:
            values["care_allowance"] = CareAllowance.from_dict(values["care_allowance"])
        values["employments"] = [Employment.from_dict(e) for e in values.get("employments") or []]
        values["social_services"] = [SocialService.from_dict(s) for s in values.get("social_services") or []]
        return cls(**values)


# ---------- client records ----------

@dataclass(frozen=True)
class ClientNote(Record):
    id: str
    client_id: str
    title: str
    content: str
    created_by: str = ""
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class Meeting(Record):
    id: str
    client_id: str
    title: str
    content: str
    start_time: str
    end_time: str | None = None
    created_by: str = ""
    participants: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class ClientDocument(Record):
    """File metadata only; the bytes are never stored."""

    id: str
    client_id: str
    file_name: str
    file_type: str
    file_size: int
    uploaded_by: str
    uploaded_at: str = ""
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class CalendarEvent(Record):
    id: str
    title: str
    type: str
    date: str
    duration: int = 60  # minutes
    client_id: str | None = None
    client_name: str | None = None
    notes: str | None = None
    created_by: str = ""
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class Task(Record):
    id: str
    title: str
    description: str | None = None
    priority: str = "medium"
    status: str = "todo"
    due_date: str | None = None
    client_id: str | None = None
    client_name: str | None = None
    assigned_to: str | None = None
    created_by: str = ""
    completed_at: str | None = None
    created_at: str = ""
    updated_at: str = ""


# ---------- plans & profiles ----------

@dataclass(frozen=True)
class PlanStep(Record):
    id: str
    client_action: str
    deadline: str
    others_action: str = ""
    completed: bool = False
    completed_date: str | None = None
    notes: str = ""


@dataclass(frozen=True)
class PersonalPlan(Record):
    id: str
    client_id: str
    goal: str
    importance: str = ""
    deadline: str | None = None
    status: str = "active"
    steps: list[PlanStep] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "PersonalPlan":
        values = _pick(cls, data)
        values["steps"] = [PlanStep.from_dict(s) for s in values.get("steps") or []]
        return cls(**values)


@dataclass(frozen=True)
class ProfileArea(Record):
    current_skills: str = ""
    wishes: str = ""
    past_skills: str = ""


def _empty_profile_areas() -> dict[str, ProfileArea]:
    return {domain: ProfileArea() for domain in LIFE_DOMAINS}


@dataclass(frozen=True)
class PersonalProfile(Record):
    id: str
    client_id: str
    areas: dict[str, ProfileArea] = field(default_factory=_empty_profile_areas)
    priorities: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "PersonalProfile":
        values = _pick(cls, data)
        areas = values.get("areas") or {}
        values["areas"] = {d: ProfileArea.from_dict(areas.get(d) or {}) for d in LIFE_DOMAINS}
        return cls(**values)


# ---------- reviews ----------

@dataclass(frozen=True)
class ReviewArea(Record):
    client_view: str = ""
    worker_view: str = ""
    progress: str = "yellow"  # green/yellow/red


@dataclass(frozen=True)
class ReviewPeriod(Record):
    start: str
    end: str


def _empty_review_areas() -> dict[str, ReviewArea]:
    return {domain: ReviewArea() for domain in LIFE_DOMAINS}


@dataclass(frozen=True)
class SemiAnnualReview(Record):
    id: str
    client_id: str
    period: ReviewPeriod
    areas: dict[str, ReviewArea] = field(default_factory=_empty_review_areas)
    client_satisfaction: str = ""
    worker_notes: str = ""
    signed_by_client: bool = False
    signed_by_worker: bool = False
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "SemiAnnualReview":
        values = _pick(cls, data)
        values["period"] = ReviewPeriod.from_dict(values["period"])
        areas = values.get("areas") or {}
        values["areas"] = {d: ReviewArea.from_dict(areas.get(d) or {}) for d in LIFE_DOMAINS}
        return cls(**values)


# ---------- contacts, users, settings ----------

@dataclass(frozen=True)
class ClientContact(Record):
    id: str
    name: str
    relationship: str
    phone: str = ""
    email: str = ""
    address: str = ""
    notes: str = ""
    has_consent: bool = False
    client_ids: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class User(Record):
    id: str
    email: str
    name: str
    role: str  # 'admin' or 'worker'
    password_hash: str = ""
    created_at: str = ""
    updated_at: str = ""

    def public_dict(self) -> dict[str, Any]:
        data = self.to_dict()
        data.pop("password_hash", None)
        return data


@dataclass(frozen=True)
class AppSettings(Record):
    deadline_warning_days: int = 14
    review_reminder_days: int = 30
    profile_update_months: int = 6
    show_completed_plans: bool = False
    step_deadline_warning_days: int = 14
    event_reminder_days: int = 7
    task_reminder_days: int = 7
