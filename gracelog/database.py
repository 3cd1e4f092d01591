from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, TypeVar

from .models import Draft, Entry, LastReference, UserProfile

log = logging.getLogger(__name__)

USER_RECORD = "user"
ENTRIES_RECORD = "entries"
DRAFT_RECORD = "draft"
LAST_REFERENCE_RECORD = "last_reference"

_MALFORMED = (KeyError, TypeError, ValueError, AttributeError)

T = TypeVar("T")


class GraceLogDatabase:
    """Durable copies of the profile, entries, draft and last reference.

    Each record is one JSON document that is read and overwritten whole.
    When SQLite fails the store logs the error once and keeps working from
    memory for the rest of the process.
    """

    def __init__(self, db_file: Path):
        self._db_file = Path(db_file)
        self._lock = threading.Lock()
        # (table, key) -> serialized value, or None for a deleted record
        self._memory: dict[tuple[str, str], str | None] = {}
        self.degraded = False
        try:
            self._db_file.parent.mkdir(parents=True, exist_ok=True)
            self._init_schema()
        except (OSError, sqlite3.Error) as exc:
            self._degrade("open", exc)

    @property
    def path(self) -> Path:
        return self._db_file

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_file, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    @contextmanager
    def _connection(self):
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._lock, self._connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS records (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS app_settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )
            conn.commit()

    def _degrade(self, action: str, exc: BaseException) -> None:
        if not self.degraded:
            log.error(
                "Storage %s failed for %s (%s); continuing in memory only.",
                action,
                self._db_file,
                exc,
            )
        self.degraded = True

    def _read(self, table: str, key: str) -> str | None:
        if (table, key) in self._memory:
            return self._memory[(table, key)]
        try:
            with self._lock, self._connection() as conn:
                row = conn.execute(
                    f"SELECT value FROM {table} WHERE key = ?",
                    (key,),
                ).fetchone()
        except sqlite3.Error as exc:
            self._degrade("read", exc)
            return None
        if row is None:
            return None
        return str(row["value"])

    def _write(self, table: str, key: str, value: str | None) -> None:
        if self.degraded:
            self._memory[(table, key)] = value
            return
        try:
            with self._lock, self._connection() as conn:
                if value is None:
                    conn.execute(f"DELETE FROM {table} WHERE key = ?", (key,))
                elif table == "records":
                    conn.execute(
                        """
                        INSERT INTO records(key, value, updated_at)
                        VALUES(?, ?, ?)
                        ON CONFLICT(key) DO UPDATE SET
                            value = excluded.value,
                            updated_at = excluded.updated_at
                        """,
                        (key, value, datetime.now().astimezone().isoformat()),
                    )
                else:
                    conn.execute(
                        """
                        INSERT INTO app_settings(key, value)
                        VALUES(?, ?)
                        ON CONFLICT(key) DO UPDATE SET value = excluded.value
                        """,
                        (key, value),
                    )
                conn.commit()
        except sqlite3.Error as exc:
            self._degrade("write", exc)
            self._memory[(table, key)] = value

    def get_record(self, key: str) -> Any | None:
        raw = self._read("records", key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            log.warning("Ignoring malformed %s record.", key)
            return None

    def set_record(self, key: str, value: Any) -> None:
        self._write("records", key, json.dumps(value, ensure_ascii=False))

    def delete_record(self, key: str) -> None:
        self._write("records", key, None)

    def _load_one(self, key: str, parse: Callable[[dict[str, Any]], T]) -> T | None:
        data = self.get_record(key)
        if data is None:
            return None
        try:
            return parse(data)
        except _MALFORMED:
            log.warning("Ignoring malformed %s record.", key)
            return None

    def load_user(self) -> UserProfile:
        return self._load_one(USER_RECORD, UserProfile.from_record) or UserProfile()

    def save_user(self, profile: UserProfile) -> None:
        self.set_record(USER_RECORD, profile.to_record())

    def load_entries(self) -> list[Entry]:
        data = self.get_record(ENTRIES_RECORD)
        if data is None:
            return []
        if not isinstance(data, list):
            log.warning("Ignoring malformed %s record.", ENTRIES_RECORD)
            return []
        entries: list[Entry] = []
        for item in data:
            try:
                entry = Entry.from_record(item)
            except _MALFORMED:
                log.warning("Skipping malformed entry: %r", item)
                continue
            if not entry.reflection_text.strip():
                log.warning("Skipping entry %s without reflection text.", entry.id)
                continue
            entries.append(entry)
        return entries

    def save_entries(self, entries: list[Entry]) -> None:
        self.set_record(ENTRIES_RECORD, [entry.to_record() for entry in entries])

    def load_draft(self) -> Draft | None:
        return self._load_one(DRAFT_RECORD, Draft.from_record)

    def save_draft(self, draft: Draft) -> None:
        self.set_record(DRAFT_RECORD, draft.to_record())

    def clear_draft(self) -> None:
        self.delete_record(DRAFT_RECORD)

    def load_last_reference(self) -> LastReference | None:
        return self._load_one(LAST_REFERENCE_RECORD, LastReference.from_record)

    def save_last_reference(self, reference: LastReference) -> None:
        self.set_record(LAST_REFERENCE_RECORD, reference.to_record())

    def get_setting(self, key: str, default: str | None = None) -> str | None:
        value = self._read("app_settings", key)
        if value is None:
            return default
        return value

    def get_setting_float(self, key: str, default: float) -> float:
        value = self.get_setting(key)
        if value is None:
            return default
        try:
            parsed = float(value)
        except ValueError:
            return default
        if parsed <= 0:
            return default
        return parsed

    def set_setting(self, key: str, value: str) -> None:
        self._write("app_settings", key, value)
