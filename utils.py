"""
utils.py
Validation, dates, report exports, sample data.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING

import pandas as pd

from models import (
    DISABILITY_LEVELS,
    EVENT_TYPES,
    LIFE_DOMAINS,
    PLAN_STATUSES,
    PROGRESS_FLAGS,
    TASK_PRIORITIES,
    TASK_STATUSES,
    AppSettings,
    CalendarEvent,
    Client,
    ClientContact,
    ClientDocument,
    ClientNote,
    Meeting,
    PersonalPlan,
    PersonalProfile,
    PlanStep,
    ReviewPeriod,
    SemiAnnualReview,
    Task,
)

if TYPE_CHECKING:
    from services import Services


class ValidationError(ValueError):
    """Raised with the list of messages produced by a validate_* helper."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = list(errors)


# ---------- dates & ids ----------

def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


def parse_iso(d: str) -> date:
    return date.fromisoformat(d)


def to_date(value: str | date | datetime) -> date:
    """
    Accept a date, a datetime, or an ISO string of either ('2024-05-01', '2024-05-01T09:30:00Z').
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    if len(text) == 10:
        return parse_iso(text)
    return datetime.fromisoformat(text.replace("Z", "+00:00")).date()


def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    # last day of target month
    if m == 12:
        next_month = date(y + 1, 1, 1)
    else:
        next_month = date(y, m + 1, 1)
    last_day = next_month - timedelta(days=1)
    day = min(start.day, last_day.day)
    return date(y, m, day)


def months_between(earlier: date, later: date) -> int:
    """Whole calendar months from earlier to later (negative if reversed)."""
    months = (later.year - earlier.year) * 12 + (later.month - earlier.month)
    if later.day < earlier.day:
        months -= 1
    return months


def days_between(start: date, end: date) -> int:
    return (end - start).days


def _is_iso(value: str | None) -> bool:
    if not value:
        return False
    try:
        to_date(value)
    except ValueError:
        return False
    return True


# ---------- validation ----------

def validate_client_inputs(client: Client) -> list[str]:
    errors: list[str] = []
    if not client.first_name.strip():
        errors.append("First name is required.")
    if not client.last_name.strip():
        errors.append("Last name is required.")
    if not client.key_worker.strip():
        errors.append("Key worker is required.")
    if not client.contract_number.strip():
        errors.append("Contract number is required.")
    if not _is_iso(client.date_of_birth):
        errors.append("Date of birth must be a valid ISO date (YYYY-MM-DD).")
    if not _is_iso(client.contract_date):
        errors.append("Contract date must be a valid ISO date (YYYY-MM-DD).")
    elif client.contract_end_date:
        if not _is_iso(client.contract_end_date):
            errors.append("Contract end date must be a valid ISO date (YYYY-MM-DD).")
        elif to_date(client.contract_end_date) <= to_date(client.contract_date):
            errors.append("Contract end date must be after contract date.")
    if client.disability is not None and client.disability.level not in DISABILITY_LEVELS:
        errors.append("Disability level must be 1, 2 or 3.")
    if client.guardianship is not None and client.guardianship.has_guardian:
        if not (client.guardianship.guardian_name or "").strip():
            errors.append("Guardian name is required when the client has a guardian.")
    for employment in client.employments:
        if not employment.workplace.strip():
            errors.append("Employment workplace is required.")
    for service in client.social_services:
        if not service.name.strip():
            errors.append("Social service name is required.")
    return errors


def validate_note_inputs(note: ClientNote) -> list[str]:
    errors: list[str] = []
    if not note.client_id:
        errors.append("Note must belong to a client.")
    if not note.title.strip():
        errors.append("Note title is required.")
    if not note.content.strip():
        errors.append("Note content is required.")
    return errors


def validate_meeting_inputs(meeting: Meeting) -> list[str]:
    errors: list[str] = []
    if not meeting.client_id:
        errors.append("Meeting must belong to a client.")
    if not meeting.title.strip():
        errors.append("Meeting title is required.")
    if not _is_iso(meeting.start_time):
        errors.append("Meeting start time must be a valid ISO date/time.")
    elif meeting.end_time and not _is_iso(meeting.end_time):
        errors.append("Meeting end time must be a valid ISO date/time.")
    return errors


def validate_document_inputs(document: ClientDocument) -> list[str]:
    errors: list[str] = []
    if not document.client_id:
        errors.append("Document must belong to a client.")
    if not document.file_name.strip():
        errors.append("File name is required.")
    if document.file_size < 0:
        errors.append("File size cannot be negative.")
    return errors


def validate_event_inputs(event: CalendarEvent) -> list[str]:
    errors: list[str] = []
    if not event.title.strip():
        errors.append("Event title is required.")
    if event.type not in EVENT_TYPES:
        errors.append(f"Event type must be one of: {', '.join(EVENT_TYPES)}.")
    if not _is_iso(event.date):
        errors.append("Event date must be a valid ISO date/time.")
    if event.duration <= 0:
        errors.append("Event duration must be > 0.")
    return errors


def validate_task_inputs(task: Task) -> list[str]:
    errors: list[str] = []
    if not task.title.strip():
        errors.append("Task title is required.")
    if task.priority not in TASK_PRIORITIES:
        errors.append(f"Task priority must be one of: {', '.join(TASK_PRIORITIES)}.")
    if task.status not in TASK_STATUSES:
        errors.append(f"Task status must be one of: {', '.join(TASK_STATUSES)}.")
    if task.due_date and not _is_iso(task.due_date):
        errors.append("Task due date must be a valid ISO date.")
    return errors


def validate_step_inputs(step: PlanStep) -> list[str]:
    errors: list[str] = []
    if not step.client_action.strip():
        errors.append("Step action is required.")
    if not _is_iso(step.deadline):
        errors.append("Step deadline must be a valid ISO date.")
    return errors


def validate_plan_inputs(plan: PersonalPlan) -> list[str]:
    errors: list[str] = []
    if not plan.client_id:
        errors.append("Plan must belong to a client.")
    if not plan.goal.strip():
        errors.append("Plan goal is required.")
    if plan.status not in PLAN_STATUSES:
        errors.append(f"Plan status must be one of: {', '.join(PLAN_STATUSES)}.")
    if plan.deadline and not _is_iso(plan.deadline):
        errors.append("Plan deadline must be a valid ISO date.")
    for step in plan.steps:
        errors.extend(validate_step_inputs(step))
    return errors


def validate_profile_inputs(profile: PersonalProfile) -> list[str]:
    errors: list[str] = []
    if not profile.client_id:
        errors.append("Profile must belong to a client.")
    unknown = set(profile.areas) - set(LIFE_DOMAINS)
    if unknown:
        errors.append(f"Unknown profile areas: {', '.join(sorted(unknown))}.")
    return errors


def validate_review_inputs(review: SemiAnnualReview) -> list[str]:
    errors: list[str] = []
    if not review.client_id:
        errors.append("Review must belong to a client.")
    try:
        start = parse_iso(review.period.start)
        end = parse_iso(review.period.end)
        if end <= start:
            errors.append("Review period end must be after its start.")
    except (TypeError, ValueError):
        errors.append("Review period dates must be valid ISO dates (YYYY-MM-DD).")
    missing = set(LIFE_DOMAINS) - set(review.areas)
    if missing:
        errors.append(f"Review is missing areas: {', '.join(sorted(missing))}.")
    for domain, area in review.areas.items():
        if area.progress not in PROGRESS_FLAGS:
            errors.append(f"Progress for {domain} must be green, yellow or red.")
    return errors


def validate_contact_inputs(contact: ClientContact) -> list[str]:
    errors: list[str] = []
    if not contact.name.strip():
        errors.append("Contact name is required.")
    if not contact.relationship.strip():
        errors.append("Contact relationship is required.")
    return errors


def validate_settings_inputs(settings: AppSettings) -> list[str]:
    errors: list[str] = []
    for name in (
        "deadline_warning_days",
        "review_reminder_days",
        "profile_update_months",
        "step_deadline_warning_days",
        "event_reminder_days",
        "task_reminder_days",
    ):
        value = getattr(settings, name)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            errors.append(f"{name} must be a non-negative whole number.")
    return errors


# ---------- reports ----------

CLIENT_CSV_COLUMNS = [
    "id", "first_name", "last_name", "date_of_birth", "phone", "email",
    "key_worker", "contract_number", "contract_date", "contract_end_date",
]
TASK_CSV_COLUMNS = [
    "id", "title", "priority", "status", "due_date", "client_name", "assigned_to", "completed_at",
]


def _records_frame(records, columns: list[str]) -> pd.DataFrame:
    df = pd.DataFrame([r.to_dict() for r in records])
    if df.empty:
        return pd.DataFrame(columns=columns)
    return df[columns]


def clients_to_csv_bytes(clients: list[Client]) -> bytes:
    return _records_frame(clients, CLIENT_CSV_COLUMNS).to_csv(index=False).encode("utf-8")


def tasks_to_csv_bytes(tasks: list[Task]) -> bytes:
    return _records_frame(tasks, TASK_CSV_COLUMNS).to_csv(index=False).encode("utf-8")


def task_summary_by_status(tasks: list[Task]) -> pd.DataFrame:
    df = pd.DataFrame([{"status": t.status} for t in tasks])
    if df.empty:
        return pd.DataFrame(columns=["status", "count"])
    counts = df.groupby("status").size().reindex(pd.Index(TASK_STATUSES, name="status"), fill_value=0)
    return counts.rename("count").reset_index()


# ---------- sample data ----------

def insert_sample_data(services: "Services", today: date | None = None) -> list[Client]:
    """
    Insert 3 clients with a review, a plan, events and tasks (adds new rows each run).
    """
    today = today or date.today()

    # Client 1: contract almost six months old, review due soon
    c1 = Client(
        id=new_id(), first_name="Jana", last_name="Dvořáková", date_of_birth="1985-03-12",
        address="Lipová 12, Brno", key_worker="Karel Novák",
        contract_date=(today - timedelta(days=170)).isoformat(), contract_number="SB-001",
        phone="+420600000001",
    )
    # Client 2: reviewed recently, has an active plan
    c2 = Client(
        id=new_id(), first_name="Petr", last_name="Svoboda", date_of_birth="1979-11-02",
        address="Dlouhá 5, Brno", key_worker="Karel Novák",
        contract_date=(today - timedelta(days=400)).isoformat(), contract_number="SB-002",
    )
    # Client 3: review overdue
    c3 = Client(
        id=new_id(), first_name="Eva", last_name="Malá", date_of_birth="1992-07-21",
        address="Krátká 9, Brno", key_worker="Administrátor",
        contract_date=(today - timedelta(days=260)).isoformat(), contract_number="SB-003",
    )
    clients = [services.clients.save(c) for c in (c1, c2, c3)]

    services.reviews.save(
        SemiAnnualReview(
            id=new_id(), client_id=c2.id,
            period=ReviewPeriod(
                start=(today - timedelta(days=220)).isoformat(),
                end=(today - timedelta(days=40)).isoformat(),
            ),
            client_satisfaction="Spokojený", signed_by_client=True, signed_by_worker=True,
        )
    )
    services.plans.save(
        PersonalPlan(
            id=new_id(), client_id=c2.id, goal="Najít si práci", importance="Vysoká",
            deadline=(today + timedelta(days=10)).isoformat(),
            steps=[
                PlanStep(id=new_id(), client_action="Sepsat životopis",
                         deadline=(today + timedelta(days=3)).isoformat()),
                PlanStep(id=new_id(), client_action="Navštívit úřad práce",
                         deadline=(today + timedelta(days=30)).isoformat()),
            ],
        )
    )
    services.events.save(
        CalendarEvent(
            id=new_id(), title="Doprovod na úřad", type="accompaniment",
            date=(today + timedelta(days=2)).isoformat(), client_id=c1.id, client_name=c1.full_name,
        )
    )
    services.tasks.save(
        Task(
            id=new_id(), title="Připravit hodnocení", priority="high",
            due_date=(today + timedelta(days=5)).isoformat(), client_id=c1.id, client_name=c1.full_name,
        )
    )
    services.tasks.save(
        Task(
            id=new_id(), title="Zavolat opatrovníkovi",
            due_date=(today - timedelta(days=2)).isoformat(), client_id=c3.id, client_name=c3.full_name,
        )
    )
    return clients
