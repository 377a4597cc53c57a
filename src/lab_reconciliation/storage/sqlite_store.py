# ============================================================================
# src/lab_reconciliation/storage/sqlite_store.py
# ============================================================================
"""
SQLite Store

Raw sqlite3, one short-lived connection per operation, JSON text columns
for structured fields and ISO-8601 text for timestamps.

Tables:
- accounts, profiles, documents, readings: per-account data
- biomarkers: read-only catalog, seeded from knowledge/biomarkers.json
"""

import json
import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import fields as dataclass_fields
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Type
import logging

from ..constants.enums import DocumentSource, DocumentStatus, ReadingFlag
from ..core.models import Account, Biomarker, Document, Profile, Reading
from ..matching.name_key import name_key
from ..utils.exceptions import RecordNotFoundError, StoreError
from ..utils.text_normalizer import title_case_name
from .base import BaseStore

logger = logging.getLogger(__name__)

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS accounts (
        id                          TEXT PRIMARY KEY,
        external_id                 TEXT NOT NULL UNIQUE,
        username                    TEXT,
        display_name                TEXT,
        locale                      TEXT NOT NULL DEFAULT 'ru',
        plan                        TEXT NOT NULL DEFAULT 'free',
        plan_expires_at             TEXT,
        monthly_uploads             INTEGER NOT NULL DEFAULT 0,
        monthly_uploads_reset_at    TEXT,
        created_at                  TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS profiles (
        id              TEXT PRIMARY KEY,
        account_id      TEXT NOT NULL REFERENCES accounts(id),
        full_name       TEXT NOT NULL,
        normalized_name TEXT NOT NULL,
        avatar_color    TEXT NOT NULL,
        is_primary      INTEGER NOT NULL DEFAULT 0,
        date_of_birth   TEXT,
        sex             TEXT,
        created_at      TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS documents (
        id                  TEXT PRIMARY KEY,
        account_id          TEXT NOT NULL REFERENCES accounts(id),
        storage_path        TEXT NOT NULL,
        file_type           TEXT NOT NULL,
        status              TEXT NOT NULL DEFAULT 'pending',
        source              TEXT NOT NULL DEFAULT 'telegram',
        file_size           INTEGER,
        profile_id          TEXT REFERENCES profiles(id),
        error_message       TEXT,
        parsed_name         TEXT,
        parsed_date         TEXT,
        parsed_dob          TEXT,
        parsed_sex          TEXT,
        document_type       TEXT,
        lab_name            TEXT,
        language            TEXT,
        is_partial          INTEGER NOT NULL DEFAULT 0,
        parsed_json         TEXT,
        ai_model            TEXT,
        ai_tokens_in        INTEGER NOT NULL DEFAULT 0,
        ai_tokens_out       INTEGER NOT NULL DEFAULT 0,
        processing_time_ms  INTEGER,
        continuation_of     TEXT REFERENCES documents(id),
        created_at          TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS readings (
        id              TEXT PRIMARY KEY,
        document_id     TEXT NOT NULL REFERENCES documents(id),
        profile_id      TEXT NOT NULL REFERENCES profiles(id),
        original_name   TEXT NOT NULL,
        tested_at       TEXT NOT NULL,
        flag            TEXT NOT NULL DEFAULT 'normal',
        biomarker_id    TEXT REFERENCES biomarkers(id),
        value           REAL,
        value_text      TEXT,
        is_qualitative  INTEGER NOT NULL DEFAULT 0,
        unit            TEXT,
        ref_min         REAL,
        ref_max         REAL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS biomarkers (
        id                      TEXT PRIMARY KEY,
        canonical_name          TEXT NOT NULL UNIQUE,
        display_name_en         TEXT NOT NULL,
        display_name_local      TEXT,
        aliases                 TEXT NOT NULL DEFAULT '[]',
        category                TEXT NOT NULL DEFAULT 'other',
        unit_default            TEXT,
        ref_range_male_min      REAL,
        ref_range_male_max      REAL,
        ref_range_female_min    REAL,
        ref_range_female_max    REAL,
        sort_order              INTEGER NOT NULL DEFAULT 0
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_profiles_account ON profiles (account_id)",
    "CREATE INDEX IF NOT EXISTS idx_documents_account_date ON documents (account_id, parsed_date, status)",
    "CREATE INDEX IF NOT EXISTS idx_readings_document ON readings (document_id)",
]

# Column kinds that need conversion between Python and SQLite
_JSON_FIELDS = {"parsed_json", "aliases"}
_BOOL_FIELDS = {"is_primary", "is_partial", "is_qualitative"}
_DATETIME_FIELDS = {"created_at", "plan_expires_at", "monthly_uploads_reset_at"}
_ENUM_FIELDS = {"status": DocumentStatus, "source": DocumentSource, "flag": ReadingFlag}


def _encode(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in _JSON_FIELDS:
        return json.dumps(value, ensure_ascii=False, default=str)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _decode(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in _JSON_FIELDS:
        return json.loads(value)
    if name in _BOOL_FIELDS:
        return bool(value)
    if name in _DATETIME_FIELDS:
        return datetime.fromisoformat(value)
    if name in _ENUM_FIELDS:
        return _ENUM_FIELDS[name](value)
    return value


def _from_row(model: Type, row: sqlite3.Row):
    return model(**{key: _decode(key, row[key]) for key in row.keys()})


def _field_names(model: Type) -> List[str]:
    return [f.name for f in dataclass_fields(model)]


class SQLiteStore(BaseStore):
    """
    SQLite-backed implementation of BaseStore.

    Args:
        db_path: Database file (parent directories are created)
        clock: Source of "now" for created_at columns
    """

    def __init__(self, db_path: Path, clock: Optional[Callable[[], datetime]] = None):
        self.db_path = Path(db_path)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._init_database()

    # ------------------------------------------------------------------
    # Connection / schema
    # ------------------------------------------------------------------
    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(str(e)) from e
        finally:
            conn.close()

    def _init_database(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)
        logger.info(f"SQLite store initialized: {self.db_path}")

    def _insert(self, conn: sqlite3.Connection, table: str, record) -> None:
        names = _field_names(type(record))
        placeholders = ", ".join("?" for _ in names)
        conn.execute(
            f"INSERT INTO {table} ({', '.join(names)}) VALUES ({placeholders})",
            [_encode(n, getattr(record, n)) for n in names],
        )

    def _update(self, table: str, model: Type, record_id: str, values: Dict[str, Any]) -> None:
        allowed = set(_field_names(model)) - {"id"}
        unknown = set(values) - allowed
        if unknown:
            raise StoreError(f"Unknown {table} columns: {sorted(unknown)}")
        if not values:
            return

        assignments = ", ".join(f"{name} = ?" for name in values)
        params = [_encode(name, value) for name, value in values.items()]
        with self._connect() as conn:
            cur = conn.execute(f"UPDATE {table} SET {assignments} WHERE id = ?", [*params, record_id])
            if cur.rowcount == 0:
                raise RecordNotFoundError(f"{table} row {record_id} not found", table, record_id)

    def _get(self, table: str, model: Type, record_id: str):
        with self._connect() as conn:
            row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (record_id,)).fetchone()
        return _from_row(model, row) if row else None

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    def get_or_create_account(
        self,
        external_id: str,
        username: Optional[str] = None,
        display_name: Optional[str] = None,
        locale: Optional[str] = None,
    ) -> Account:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM accounts WHERE external_id = ?", (external_id,)
            ).fetchone()

            if row is not None:
                account = _from_row(Account, row)
                if username and username != account.username:
                    conn.execute(
                        "UPDATE accounts SET username = ? WHERE id = ?", (username, account.id)
                    )
                    account.username = username
                return account

            account = Account(
                id=str(uuid.uuid4()),
                external_id=external_id,
                username=username,
                display_name=display_name,
                locale=locale or "ru",
                created_at=self.clock(),
            )
            self._insert(conn, "accounts", account)

        logger.info(f"Created account {account.id} for external user {external_id}")
        return account

    def get_account(self, account_id: str) -> Optional[Account]:
        return self._get("accounts", Account, account_id)

    def update_account(self, account_id: str, **fields: Any) -> None:
        self._update("accounts", Account, account_id, fields)

    def increment_monthly_uploads(self, account_id: str) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE accounts SET monthly_uploads = monthly_uploads + 1 WHERE id = ?",
                (account_id,),
            )
            if cur.rowcount == 0:
                raise RecordNotFoundError(f"accounts row {account_id} not found", "accounts", account_id)
            row = conn.execute(
                "SELECT monthly_uploads FROM accounts WHERE id = ?", (account_id,)
            ).fetchone()
        return row["monthly_uploads"]

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------
    def list_profiles(self, account_id: str) -> List[Profile]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM profiles WHERE account_id = ?
                ORDER BY is_primary DESC, created_at ASC, rowid ASC
                """,
                (account_id,),
            ).fetchall()
        return [_from_row(Profile, r) for r in rows]

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        return self._get("profiles", Profile, profile_id)

    def insert_profile(self, profile: Profile) -> Profile:
        if profile.created_at is None:
            profile.created_at = self.clock()
        with self._connect() as conn:
            self._insert(conn, "profiles", profile)
        return profile

    def rename_profile(self, profile_id: str, full_name: str) -> Profile:
        display = title_case_name(full_name.strip())
        self._update(
            "profiles", Profile, profile_id,
            {"full_name": display, "normalized_name": name_key(display)},
        )
        return self.get_profile(profile_id)

    def delete_profile(self, profile_id: str) -> bool:
        """Delete a profile with its readings; its documents are kept, unassigned."""
        with self._connect() as conn:
            conn.execute("DELETE FROM readings WHERE profile_id = ?", (profile_id,))
            conn.execute("UPDATE documents SET profile_id = NULL WHERE profile_id = ?", (profile_id,))
            cur = conn.execute("DELETE FROM profiles WHERE id = ?", (profile_id,))
            deleted = cur.rowcount > 0
        if deleted:
            logger.info(f"Deleted profile {profile_id}")
        return deleted

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------
    def insert_document(self, document: Document) -> Document:
        if document.created_at is None:
            document.created_at = self.clock()
        with self._connect() as conn:
            self._insert(conn, "documents", document)
        return document

    def get_document(self, document_id: str) -> Optional[Document]:
        return self._get("documents", Document, document_id)

    def update_document(self, document_id: str, **fields: Any) -> None:
        self._update("documents", Document, document_id, fields)

    def find_completed_documents(
        self,
        account_id: str,
        test_date: str,
        document_type: Optional[str],
        exclude_id: Optional[str] = None,
    ) -> List[Document]:
        # IS compares NULL document types as equal
        query = """
            SELECT * FROM documents
            WHERE account_id = ? AND status = ? AND parsed_date = ?
              AND document_type IS ? AND continuation_of IS NULL
        """
        params: list = [account_id, DocumentStatus.DONE.value, test_date, document_type]
        if exclude_id:
            query += " AND id != ?"
            params.append(exclude_id)
        query += " ORDER BY created_at ASC"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_from_row(Document, r) for r in rows]

    # ------------------------------------------------------------------
    # Readings
    # ------------------------------------------------------------------
    def insert_readings(self, readings: List[Reading]) -> int:
        if not readings:
            return 0
        with self._connect() as conn:
            for reading in readings:
                if reading.id is None:
                    reading.id = str(uuid.uuid4())
                self._insert(conn, "readings", reading)
        return len(readings)

    def list_readings(self, document_id: str) -> List[Reading]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM readings WHERE document_id = ? ORDER BY rowid ASC", (document_id,)
            ).fetchall()
        return [_from_row(Reading, r) for r in rows]

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------
    def load_biomarkers(self) -> List[Biomarker]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM biomarkers ORDER BY sort_order ASC, canonical_name ASC"
            ).fetchall()
        return [_from_row(Biomarker, r) for r in rows]

    def upsert_biomarkers(self, biomarkers: List[Biomarker]) -> int:
        names = _field_names(Biomarker)
        updates = ", ".join(f"{n} = excluded.{n}" for n in names if n != "id")
        sql = (
            f"INSERT INTO biomarkers ({', '.join(names)}) VALUES ({', '.join('?' for _ in names)}) "
            f"ON CONFLICT(id) DO UPDATE SET {updates}"
        )
        with self._connect() as conn:
            for bm in biomarkers:
                conn.execute(sql, [_encode(n, getattr(bm, n)) for n in names])
        return len(biomarkers)

    def seed_catalog(self, path: Path) -> int:
        """Load biomarker entries from a JSON seed file into the catalog."""
        with open(path, "r", encoding="utf-8") as f:
            entries = json.load(f)

        known = set(_field_names(Biomarker))
        biomarkers = []
        for entry in entries:
            entry = dict(entry)
            if "display_name_local" not in entry and "display_name_ru" in entry:
                entry["display_name_local"] = entry.pop("display_name_ru")
            biomarkers.append(Biomarker(**{k: v for k, v in entry.items() if k in known}))

        count = self.upsert_biomarkers(biomarkers)
        logger.info(f"Seeded {count} biomarkers from {path}")
        return count
