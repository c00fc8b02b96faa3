"""
backup.py
Whole-store JSON export and validated, all-or-nothing import.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from db import RecordStore
from models import (
    COLLECTIONS,
    STORAGE_KEYS,
    CalendarEvent,
    Client,
    ClientContact,
    ClientDocument,
    ClientNote,
    Meeting,
    PersonalPlan,
    PersonalProfile,
    SemiAnnualReview,
    Task,
    User,
)
from utils import now_iso

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"

MODELS = {
    "users": User,
    "clients": Client,
    "profiles": PersonalProfile,
    "plans": PersonalPlan,
    "events": CalendarEvent,
    "reviews": SemiAnnualReview,
    "notes": ClientNote,
    "documents": ClientDocument,
    "meetings": Meeting,
    "contacts": ClientContact,
    "tasks": Task,
}


class ImportValidationError(ValueError):
    """The import document does not have the expected shape."""


def _check_records(collection: str, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Every record needs a unique string id and must load as its model."""
    model = MODELS[collection]
    seen: set[str] = set()
    for record in records:
        record_id = record.get("id")
        if not isinstance(record_id, str) or not record_id:
            raise ValueError("every record needs a string id")
        if record_id in seen:
            raise ValueError(f"duplicate id {record_id!r}")
        seen.add(record_id)
        try:
            model.from_dict(record)
        except (TypeError, ValueError, AttributeError) as exc:
            raise ValueError(f"record {record_id!r} is not a valid {model.__name__}: {exc}") from exc
    return records


class ExportCollections(BaseModel):
    model_config = ConfigDict(extra="ignore")

    users: list[dict[str, Any]]
    clients: list[dict[str, Any]]
    profiles: list[dict[str, Any]]
    plans: list[dict[str, Any]]
    events: list[dict[str, Any]]
    reviews: list[dict[str, Any]]
    # Added after 1.0 exports were in the wild; absent means empty
    notes: list[dict[str, Any]] = Field(default_factory=list)
    documents: list[dict[str, Any]] = Field(default_factory=list)
    meetings: list[dict[str, Any]] = Field(default_factory=list)
    contacts: list[dict[str, Any]] = Field(default_factory=list)
    tasks: list[dict[str, Any]] = Field(default_factory=list)
    settings: Optional[dict[str, Any]] = None

    @field_validator(*COLLECTIONS)
    @classmethod
    def loadable_records(cls, records: list[dict[str, Any]], info: ValidationInfo) -> list[dict[str, Any]]:
        return _check_records(info.field_name, records)


class ExportDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: str
    export_date: str = Field(alias="exportDate")
    data: ExportCollections


def export_all_data(store: RecordStore, now: str | None = None) -> dict[str, Any]:
    data: dict[str, Any] = {name: store.list(name) for name in COLLECTIONS}
    data["settings"] = store.get_json(STORAGE_KEYS["settings"])
    logger.info("Exported %d collections", len(COLLECTIONS))
    return {
        "version": EXPORT_VERSION,
        "exportDate": now or now_iso(),
        "data": data,
    }


def export_json(store: RecordStore, now: str | None = None) -> str:
    return json.dumps(export_all_data(store, now=now), ensure_ascii=False, indent=2)


def import_data(store: RecordStore, document: Any) -> ExportDocument:
    """
    Replace every collection with the document's contents. Nothing is written
    unless the whole document validates; collections are never merged.
    """
    try:
        parsed = ExportDocument.model_validate(document)
    except ValidationError as exc:
        logger.warning("Rejected import document with %d errors", exc.error_count())
        raise ImportValidationError(f"Invalid data format: {exc}") from exc

    with store.transaction():
        for name in COLLECTIONS:
            store.replace(name, getattr(parsed.data, name))
        if parsed.data.settings is None:
            store.remove_item(STORAGE_KEYS["settings"])
        else:
            store.set_json(STORAGE_KEYS["settings"], parsed.data.settings)
    logger.info("Imported export version %s from %s", parsed.version, parsed.export_date)
    return parsed


def import_json(store: RecordStore, text: str) -> ExportDocument:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ImportValidationError(f"Import is not valid JSON: {exc}") from exc
    return import_data(store, document)


def clear_all_data(store: RecordStore) -> None:
    """Remove every stored key except the signed-in session."""
    session_key = STORAGE_KEYS["session"]
    with store.transaction():
        for key in store.keys():
            if key != session_key:
                store.remove_item(key)
    logger.info("Cleared all data")
