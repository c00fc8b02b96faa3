"""
reminders.py
Deadline and review reminders for the dashboard.

Review, plan, step and event reminders look forward only: an item whose date
is already past is not surfaced (reviews excepted, see clients_needing_review).
Task reminders additionally look back OVERDUE_LOOKBACK_DAYS days.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import TYPE_CHECKING

from models import REVIEW_INTERVAL_MONTHS, AppSettings, Client, SemiAnnualReview
import utils

if TYPE_CHECKING:
    from services import Services

# Fixed look-back for overdue tasks in the task reminder list
OVERDUE_LOOKBACK_DAYS = 7


@dataclass(frozen=True)
class Reminder:
    kind: str  # review / plan / step / event / task
    ref_id: str
    title: str
    due_date: date
    days_left: int
    client_id: str | None = None

    @property
    def overdue(self) -> bool:
        return self.days_left < 0


def _in_window(d: date, start: date, end: date) -> bool:
    return start <= d <= end


def next_review_date(client: Client, reviews: list[SemiAnnualReview]) -> date:
    """Last review period end (or contract date) + 6 months."""
    if reviews:
        anchor = max(utils.parse_iso(r.period.end) for r in reviews)
    else:
        anchor = utils.to_date(client.contract_date)
    return utils.add_months(anchor, REVIEW_INTERVAL_MONTHS)


def needs_review(
    client: Client,
    reviews: list[SemiAnnualReview],
    settings: AppSettings,
    today: date | None = None,
) -> bool:
    today = today or date.today()
    due = next_review_date(client, reviews)
    return today >= due - timedelta(days=settings.review_reminder_days)


def clients_needing_review(
    services: "Services",
    settings: AppSettings | None = None,
    today: date | None = None,
) -> list[Reminder]:
    settings = settings or services.get_settings()
    today = today or date.today()
    reviews = services.reviews.list()

    out: list[Reminder] = []
    for client in services.clients.list():
        own = [r for r in reviews if r.client_id == client.id]
        if not needs_review(client, own, settings, today):
            continue
        due = next_review_date(client, own)
        out.append(
            Reminder(
                kind="review",
                ref_id=client.id,
                title=client.full_name,
                due_date=due,
                days_left=utils.days_between(today, due),
                client_id=client.id,
            )
        )
    return sorted(out, key=lambda r: r.due_date)


def plan_deadline_reminders(
    services: "Services",
    settings: AppSettings | None = None,
    today: date | None = None,
) -> list[Reminder]:
    settings = settings or services.get_settings()
    today = today or date.today()
    horizon = today + timedelta(days=settings.deadline_warning_days)

    out: list[Reminder] = []
    for plan in services.plans.list():
        if plan.status != "active" or not plan.deadline:
            continue
        due = utils.to_date(plan.deadline)
        if _in_window(due, today, horizon):
            out.append(Reminder("plan", plan.id, plan.goal, due, utils.days_between(today, due), plan.client_id))
    return sorted(out, key=lambda r: r.due_date)


def step_deadline_reminders(
    services: "Services",
    settings: AppSettings | None = None,
    today: date | None = None,
) -> list[Reminder]:
    settings = settings or services.get_settings()
    today = today or date.today()
    horizon = today + timedelta(days=settings.step_deadline_warning_days)

    out: list[Reminder] = []
    for plan in services.plans.list():
        if plan.status != "active":
            continue
        for step in plan.steps:
            if step.completed:
                continue
            due = utils.to_date(step.deadline)
            if _in_window(due, today, horizon):
                out.append(
                    Reminder("step", step.id, step.client_action, due, utils.days_between(today, due), plan.client_id)
                )
    return sorted(out, key=lambda r: r.due_date)


def event_reminders(
    services: "Services",
    settings: AppSettings | None = None,
    today: date | None = None,
) -> list[Reminder]:
    settings = settings or services.get_settings()
    today = today or date.today()
    horizon = today + timedelta(days=settings.event_reminder_days)

    out: list[Reminder] = []
    for event in services.events.list():
        when = utils.to_date(event.date)
        if _in_window(when, today, horizon):
            out.append(Reminder("event", event.id, event.title, when, utils.days_between(today, when), event.client_id))
    return sorted(out, key=lambda r: r.due_date)


def task_reminders(
    services: "Services",
    settings: AppSettings | None = None,
    today: date | None = None,
) -> list[Reminder]:
    """Open tasks due within the window, including up to a week overdue."""
    settings = settings or services.get_settings()
    today = today or date.today()
    start = today - timedelta(days=OVERDUE_LOOKBACK_DAYS)
    horizon = today + timedelta(days=settings.task_reminder_days)

    out: list[Reminder] = []
    for task in services.tasks.list():
        if task.status == "done" or not task.due_date:
            continue
        due = utils.to_date(task.due_date)
        if _in_window(due, start, horizon):
            out.append(Reminder("task", task.id, task.title, due, utils.days_between(today, due), task.client_id))
    return sorted(out, key=lambda r: r.due_date)


def overdue_tasks(services: "Services", today: date | None = None) -> list[Reminder]:
    today = today or date.today()
    out: list[Reminder] = []
    for task in services.tasks.list():
        if task.status == "done" or not task.due_date:
            continue
        due = utils.to_date(task.due_date)
        if due < today:
            out.append(Reminder("task", task.id, task.title, due, utils.days_between(today, due), task.client_id))
    return sorted(out, key=lambda r: r.due_date)


def clients_needing_planning(
    services: "Services",
    settings: AppSettings | None = None,
    today: date | None = None,
) -> list[Client]:
    """Clients with no active plan, or whose profile has gone stale."""
    settings = settings or services.get_settings()
    today = today or date.today()
    plans = services.plans.list()
    profiles = {p.client_id: p for p in services.profiles.list()}

    out: list[Client] = []
    for client in services.clients.list():
        has_active_plan = any(p.client_id == client.id and p.status == "active" for p in plans)
        if not has_active_plan:
            out.append(client)
            continue
        profile = profiles.get(client.id)
        if profile and profile.updated_at:
            age = utils.months_between(utils.to_date(profile.updated_at), today)
            if age >= settings.profile_update_months:
                out.append(client)
    return out


def dashboard_summary(services: "Services", today: date | None = None) -> dict[str, int]:
    settings = services.get_settings()
    today = today or date.today()

    review = clients_needing_review(services, settings, today)
    planning = clients_needing_planning(services, settings, today)
    deadlines = plan_deadline_reminders(services, settings, today) + step_deadline_reminders(services, settings, today)

    return {
        "total_clients": len(services.clients.list()),
        "upcoming_events": len(event_reminders(services, settings, today)),
        "needs_attention": len(review) + len(planning),
        "approaching_deadlines": len(deadlines),
        "due_tasks": len(task_reminders(services, settings, today)),
        "overdue_tasks": len(overdue_tasks(services, today)),
    }
