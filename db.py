"""
db.py
SQLite-backed record store. One key/value table holds a JSON blob per key,
and every collection is a JSON array of records unique by id.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from models import STORAGE_KEYS
from utils import now_iso

logger = logging.getLogger(__name__)

DB_FILE = Path(__file__).with_name("socagent.db")


class StoreError(Exception):
    """Base class for record store failures."""


class RecordNotFound(StoreError):
    def __init__(self, collection: str, record_id: str) -> None:
        super().__init__(f"{collection} record {record_id!r} not found")
        self.collection = collection
        self.record_id = record_id


class CorruptRecordError(StoreError):
    """Stored blob is not valid JSON or not the expected shape."""


def _storage_key(collection: str) -> str:
    try:
        return STORAGE_KEYS[collection]
    except KeyError:
        raise StoreError(f"Unknown collection: {collection}") from None


class RecordStore:
    """Synchronous key/value store with whole-collection read-modify-write."""

    def __init__(self, db_file: Path = DB_FILE) -> None:
        self.db_file = Path(db_file)
        self._tx_conn: sqlite3.Connection | None = None

    @contextmanager
    def get_conn(self) -> Iterator[sqlite3.Connection]:
        # Inside a transaction every call shares its connection and commit.
        if self._tx_conn is not None:
            yield self._tx_conn
            return
        conn = sqlite3.connect(self.db_file, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator["RecordStore"]:
        """Group several writes into one commit; roll all of them back on error."""
        if self._tx_conn is not None:
            yield self
            return
        conn = sqlite3.connect(self.db_file, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        self._tx_conn = conn
        try:
            yield self
            conn.commit()
        except BaseException:
            conn.rollback()
            logger.warning("Transaction rolled back")
            raise
        finally:
            self._tx_conn = None
            conn.close()

    def init_db(self) -> None:
        self.db_file.parent.mkdir(parents=True, exist_ok=True)
        with self.get_conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS storage (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    # ---------- raw key/value ----------

    def get_item(self, key: str) -> str | None:
        with self.get_conn() as conn:
            row = conn.execute("SELECT value FROM storage WHERE key = ?", (key,)).fetchone()
        return str(row["value"]) if row else None

    def set_item(self, key: str, value: str) -> None:
        with self.get_conn() as conn:
            conn.execute(
                """
                INSERT INTO storage(key, value) VALUES(?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                (key, value),
            )

    def remove_item(self, key: str) -> None:
        with self.get_conn() as conn:
            conn.execute("DELETE FROM storage WHERE key = ?", (key,))

    def keys(self) -> list[str]:
        with self.get_conn() as conn:
            rows = conn.execute("SELECT key FROM storage ORDER BY key").fetchall()
        return [r["key"] for r in rows]

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CorruptRecordError(f"Malformed JSON under {key!r}: {exc}") from exc

    def set_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value, ensure_ascii=False))

    # ---------- collections ----------

    def list(self, collection: str) -> list[dict]:
        key = _storage_key(collection)
        items = self.get_json(key, [])
        if not isinstance(items, list):
            raise CorruptRecordError(f"Expected a JSON array under {key!r}")
        return items

    def replace(self, collection: str, records: list[dict]) -> None:
        self.set_json(_storage_key(collection), list(records))

    def find(self, collection: str, record_id: str) -> dict | None:
        for record in self.list(collection):
            if record.get("id") == record_id:
                return record
        return None

    def save(self, collection: str, record: dict, now: str | None = None) -> dict:
        """Upsert by id. Stamps updated_at, and created_at for new records."""
        record_id = record.get("id")
        if not record_id:
            raise StoreError(f"Cannot save {collection} record without an id")
        stamp = now or now_iso()

        with self.transaction():
            records = self.list(collection)
            for index, existing in enumerate(records):
                if existing.get("id") == record_id:
                    saved = {
                        **record,
                        "created_at": existing.get("created_at") or record.get("created_at") or stamp,
                        "updated_at": stamp,
                    }
                    records[index] = saved
                    logger.info("Updated %s record %s", collection, record_id)
                    break
            else:
                saved = {**record, "created_at": stamp, "updated_at": stamp}
                records.append(saved)
                logger.info("Created %s record %s", collection, record_id)
            self.replace(collection, records)
        return saved

    def remove(self, collection: str, record_id: str) -> None:
        with self.transaction():
            records = self.list(collection)
            kept = [r for r in records if r.get("id") != record_id]
            if len(kept) == len(records):
                logger.warning("Delete of missing %s record %s", collection, record_id)
                raise RecordNotFound(collection, record_id)
            self.replace(collection, kept)
        logger.info("Deleted %s record %s", collection, record_id)
