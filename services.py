"""
services.py
Typed CRUD per collection plus the multi-record case operations
(cascading client delete, plan steps, task cycling, settings).
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Callable, Generic, TypeVar

from db import CorruptRecordError, RecordNotFound, RecordStore
from models import (
    PLAN_STATUSES,
    STORAGE_KEYS,
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
    SemiAnnualReview,
    Task,
    User,
)
from utils import (
    ValidationError,
    new_id,
    now_iso,
    validate_client_inputs,
    validate_contact_inputs,
    validate_document_inputs,
    validate_event_inputs,
    validate_meeting_inputs,
    validate_note_inputs,
    validate_plan_inputs,
    validate_profile_inputs,
    validate_review_inputs,
    validate_settings_inputs,
    validate_task_inputs,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Collections whose records belong to exactly one client
OWNED_BY_CLIENT = ("notes", "documents", "meetings", "plans", "reviews", "profiles")
# Collections that may optionally point at a client
LINKED_TO_CLIENT = ("events", "tasks")


class Repository(Generic[T]):
    """CRUD accessors for one collection of the record store."""

    def __init__(
        self,
        store: RecordStore,
        collection: str,
        model: type[T],
        validator: Callable[[T], list[str]] | None = None,
    ) -> None:
        self.store = store
        self.collection = collection
        self.model = model
        self.validator = validator

    def _load(self, data: dict) -> T:
        try:
            return self.model.from_dict(data)
        except (TypeError, ValueError, AttributeError) as exc:
            raise CorruptRecordError(
                f"Cannot load {self.collection} record {data.get('id')!r}: {exc}"
            ) from exc

    def list(self) -> list[T]:
        return [self._load(r) for r in self.store.list(self.collection)]

    def get(self, record_id: str) -> T | None:
        data = self.store.find(self.collection, record_id)
        return self._load(data) if data is not None else None

    def require(self, record_id: str) -> T:
        record = self.get(record_id)
        if record is None:
            logger.warning("Missing %s record %s", self.collection, record_id)
            raise RecordNotFound(self.collection, record_id)
        return record

    def by_client(self, client_id: str) -> list[T]:
        return [r for r in self.list() if getattr(r, "client_id", None) == client_id]

    def _client_ids(self, record: T) -> list[str]:
        client_id = getattr(record, "client_id", None)
        return [client_id] if client_id else []

    def _check_client_links(self, record: T) -> None:
        for client_id in self._client_ids(record):
            if self.store.find("clients", client_id) is None:
                raise RecordNotFound("clients", client_id)

    def _prepare(self, record: T, now: str | None) -> T:
        return record

    def save(self, record: T, now: str | None = None) -> T:
        """Validate and upsert; records without an id get a fresh one."""
        if not record.id:
            record = replace(record, id=new_id())
        if self.validator is not None:
            errors = self.validator(record)
            if errors:
                logger.warning("Rejected %s record: %s", self.collection, "; ".join(errors))
                raise ValidationError(errors)
        with self.store.transaction():
            self._check_client_links(record)
            record = self._prepare(record, now)
            saved = self.store.save(self.collection, record.to_dict(), now=now)
        return self._load(saved)

    def update(self, record_id: str, now: str | None = None, **changes) -> T:
        return self.save(replace(self.require(record_id), **changes), now=now)

    def delete(self, record_id: str) -> None:
        self.store.remove(self.collection, record_id)


class ContactRepository(Repository[ClientContact]):
    """Contacts can be linked to several clients through client_ids."""

    def by_client(self, client_id: str) -> list[ClientContact]:
        return [c for c in self.list() if client_id in c.client_ids]

    def _client_ids(self, record: ClientContact) -> list[str]:
        return list(record.client_ids)


class ClientLinkedRepository(Repository[T]):
    """Events and tasks: optional client link, denormalised client_name."""

    def link_client_name(self, record: T) -> T:
        if record.client_id and not record.client_name:
            client = self.store.find("clients", record.client_id)
            if client is None:
                raise RecordNotFound("clients", record.client_id)
            record = replace(record, client_name=f"{client['first_name']} {client['last_name']}")
        elif not record.client_id and record.client_name:
            record = replace(record, client_name=None)
        return record

    def _prepare(self, record: T, now: str | None) -> T:
        return self.link_client_name(record)


class TaskRepository(ClientLinkedRepository[Task]):
    def stamp_completion(self, record: Task, now: str | None = None) -> Task:
        """Done tasks keep or get a completed_at; any other status clears it."""
        if record.status != "done":
            return replace(record, completed_at=None)
        if not record.completed_at:
            existing = self.store.find(self.collection, record.id)
            completed_at = (existing or {}).get("completed_at") or now or now_iso()
            record = replace(record, completed_at=completed_at)
        return record

    def _prepare(self, record: Task, now: str | None) -> Task:
        return self.stamp_completion(self.link_client_name(record), now)


class Services:
    """One repository per collection, bound to a single injected store."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store
        self.clients = Repository(store, "clients", Client, validate_client_inputs)
        self.profiles = Repository(store, "profiles", PersonalProfile, validate_profile_inputs)
        self.plans = Repository(store, "plans", PersonalPlan, validate_plan_inputs)
        self.events = ClientLinkedRepository(store, "events", CalendarEvent, validate_event_inputs)
        self.reviews = Repository(store, "reviews", SemiAnnualReview, validate_review_inputs)
        self.notes = Repository(store, "notes", ClientNote, validate_note_inputs)
        self.documents = Repository(store, "documents", ClientDocument, validate_document_inputs)
        self.meetings = Repository(store, "meetings", Meeting, validate_meeting_inputs)
        self.contacts = ContactRepository(store, "contacts", ClientContact, validate_contact_inputs)
        self.tasks = TaskRepository(store, "tasks", Task, validate_task_inputs)
        self.users = Repository(store, "users", User)

    # ---------- clients ----------

    def search_clients(self, term: str = "") -> list[Client]:
        needle = term.strip().lower()
        clients = self.clients.list()
        if needle:
            clients = [
                c for c in clients
                if needle in c.full_name.lower()
                or needle in c.contract_number.lower()
                or needle in c.key_worker.lower()
            ]
        return sorted(clients, key=lambda c: (c.last_name.lower(), c.first_name.lower()))

    def delete_client(self, client_id: str, now: str | None = None) -> None:
        """Delete a client and everything that hangs off it, in one transaction.

        Owned records (notes, documents, meetings, plans, reviews, profile) are
        removed; events and tasks are kept but unlinked; contacts drop the id.
        """
        stamp = now or now_iso()
        with self.store.transaction():
            self.clients.require(client_id)
            for collection in OWNED_BY_CLIENT:
                records = self.store.list(collection)
                self.store.replace(collection, [r for r in records if r.get("client_id") != client_id])
            for collection in LINKED_TO_CLIENT:
                records = self.store.list(collection)
                self.store.replace(
                    collection,
                    [
                        {**r, "client_id": None, "client_name": None, "updated_at": stamp}
                        if r.get("client_id") == client_id else r
                        for r in records
                    ],
                )
            contacts = self.store.list("contacts")
            self.store.replace(
                "contacts",
                [
                    {**c, "client_ids": [i for i in c["client_ids"] if i != client_id], "updated_at": stamp}
                    if client_id in (c.get("client_ids") or []) else c
                    for c in contacts
                ],
            )
            self.store.remove("clients", client_id)
        logger.info("Deleted client %s with its records", client_id)

    # ---------- profiles & plans ----------

    def profile_for_client(self, client_id: str) -> PersonalProfile | None:
        profiles = self.profiles.by_client(client_id)
        return profiles[0] if profiles else None

    def plans_for_client(self, client_id: str, include_completed: bool | None = None) -> list[PersonalPlan]:
        if include_completed is None:
            include_completed = self.get_settings().show_completed_plans
        plans = self.plans.by_client(client_id)
        if not include_completed:
            plans = [p for p in plans if p.status == "active"]
        return plans

    def set_plan_status(self, plan_id: str, status: str, now: str | None = None) -> PersonalPlan:
        if status not in PLAN_STATUSES:
            raise ValidationError([f"Plan status must be one of: {', '.join(PLAN_STATUSES)}."])
        return self.plans.update(plan_id, now=now, status=status)

    def add_plan_step(self, plan_id: str, step: PlanStep, now: str | None = None) -> PersonalPlan:
        plan = self.plans.require(plan_id)
        if not step.id:
            step = replace(step, id=new_id())
        return self.plans.save(replace(plan, steps=[*plan.steps, step]), now=now)

    def toggle_step(self, plan_id: str, step_id: str, today: date | None = None, now: str | None = None) -> PersonalPlan:
        plan = self.plans.require(plan_id)
        if not any(s.id == step_id for s in plan.steps):
            raise RecordNotFound("plan steps", step_id)
        completed_on = (today or date.today()).isoformat()
        steps = [
            replace(s, completed=not s.completed, completed_date=None if s.completed else completed_on)
            if s.id == step_id else s
            for s in plan.steps
        ]
        return self.plans.save(replace(plan, steps=steps), now=now)

    # ---------- events & tasks ----------

    def link_client_name(self, record: CalendarEvent | Task) -> CalendarEvent | Task:
        repository = self.tasks if isinstance(record, Task) else self.events
        return repository.link_client_name(record)

    def save_task(self, task: Task, now: str | None = None) -> Task:
        return self.tasks.save(task, now=now)

    def toggle_task_status(self, task_id: str, now: str | None = None) -> Task:
        task = self.tasks.require(task_id)
        index = TASK_STATUSES.index(task.status)
        new_status = TASK_STATUSES[(index + 1) % len(TASK_STATUSES)]
        completed_at = (now or now_iso()) if new_status == "done" else None
        return self.tasks.save(replace(task, status=new_status, completed_at=completed_at), now=now)

    # ---------- documents & contacts ----------

    def add_document(
        self,
        client_id: str,
        file_name: str,
        file_type: str,
        file_size: int,
        uploaded_by: str,
        now: str | None = None,
    ) -> ClientDocument:
        document = ClientDocument(
            id=new_id(),
            client_id=client_id,
            file_name=file_name,
            file_type=file_type,
            file_size=file_size,
            uploaded_by=uploaded_by,
            uploaded_at=now or now_iso(),
        )
        return self.documents.save(document, now=now)

    def contacts_sorted(self, by: str = "name", term: str = "") -> list[ClientContact]:
        if by not in ("name", "relationship"):
            raise ValueError(f"Cannot sort contacts by {by!r}")
        needle = term.strip().lower()
        contacts = self.contacts.list()
        if needle:
            contacts = [
                c for c in contacts
                if any(needle in (v or "").lower() for v in (c.name, c.relationship, c.phone, c.email))
            ]
        return sorted(contacts, key=lambda c: (getattr(c, by).lower(), c.name.lower()))

    # ---------- settings ----------

    def get_settings(self) -> AppSettings:
        data = self.store.get_json(STORAGE_KEYS["settings"])
        return AppSettings.from_dict(data) if data else AppSettings()

    def save_settings(self, settings: AppSettings) -> AppSettings:
        errors = validate_settings_inputs(settings)
        if errors:
            raise ValidationError(errors)
        self.store.set_json(STORAGE_KEYS["settings"], settings.to_dict())
        logger.info("Saved settings")
        return settings
