from __future__ import annotations

import logging
import unicodedata
from dataclasses import dataclass
from typing import Sequence
from urllib.parse import urlparse

import aiosqlite

from carefile.config import DATABASE_MAX_CONNECTIONS, DATABASE_PATH, DATABASE_URL

try:  # Optional: only required when DATABASE_URL points at Postgres
    import asyncpg  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    asyncpg = None

logger = logging.getLogger(__name__)


class DatabaseAdapter:
    engine: str

    async def execute(self, query: str, params: Sequence | None = None) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def fetch_one(self, query: str, params: Sequence | None = None):  # pragma: no cover - interface
        raise NotImplementedError

    async def fetch_all(self, query: str, params: Sequence | None = None):  # pragma: no cover - interface
        raise NotImplementedError

    async def commit(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def close(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError


@dataclass
class SQLiteAdapter(DatabaseAdapter):
    conn: aiosqlite.Connection
    engine: str = "sqlite"

    async def execute(self, query: str, params: Sequence | None = None) -> None:
        await self.conn.execute(query, params or ())

    async def fetch_one(self, query: str, params: Sequence | None = None):
        cursor = await self.conn.execute(query, params or ())
        return await cursor.fetchone()

    async def fetch_all(self, query: str, params: Sequence | None = None):
        cursor = await self.conn.execute(query, params or ())
        return await cursor.fetchall()

    async def commit(self) -> None:
        await self.conn.commit()

    async def close(self) -> None:
        await self.conn.close()


@dataclass
class PostgresAdapter(DatabaseAdapter):
    pool: "asyncpg.Pool"  # type: ignore[name-defined]
    engine: str = "postgres"

    @staticmethod
    def _translate_query(query: str) -> str:
        # Convert SQLite-style ? placeholders to asyncpg-style $1, $2, ...
        if "$1" in query:
            return query
        idx = 1
        out = []
        for ch in query:
            if ch == "?":
                out.append(f"${idx}")
                idx += 1
            else:
                out.append(ch)
        return "".join(out)

    async def execute(self, query: str, params: Sequence | None = None) -> None:
        q = self._translate_query(query)
        async with self.pool.acquire() as conn:
            await conn.execute(q, *(params or ()))

    async def fetch_one(self, query: str, params: Sequence | None = None):
        q = self._translate_query(query)
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(q, *(params or ()))

    async def fetch_all(self, query: str, params: Sequence | None = None):
        q = self._translate_query(query)
        async with self.pool.acquire() as conn:
            return await conn.fetch(q, *(params or ()))

    async def commit(self) -> None:
        # asyncpg autocommits per statement unless an explicit transaction is used.
        return

    async def close(self) -> None:
        await self.pool.close()


_db: DatabaseAdapter | None = None


async def _connect_sqlite(path: str) -> SQLiteAdapter:
    conn = await aiosqlite.connect(path)
    conn.row_factory = aiosqlite.Row
    await conn.execute("PRAGMA foreign_keys = ON")
    logger.info("Connected to SQLite database at %s", path)
    return SQLiteAdapter(conn)


async def get_db() -> DatabaseAdapter:
    global _db
    if _db is None:
        if DATABASE_URL:
            if DATABASE_URL.startswith("sqlite"):
                sqlite_path = _sqlite_path_from_url(DATABASE_URL) or DATABASE_PATH
                _db = await _connect_sqlite(sqlite_path)
            else:
                if asyncpg is None:
                    raise RuntimeError(
                        "DATABASE_URL is set but asyncpg is not installed. "
                        "Install asyncpg or unset DATABASE_URL."
                    )
                pool = await asyncpg.create_pool(
                    dsn=DATABASE_URL,
                    min_size=1,
                    max_size=DATABASE_MAX_CONNECTIONS,
                )
                _db = PostgresAdapter(pool)
                logger.info("Connected to Postgres database")
        else:
            _db = await _connect_sqlite(DATABASE_PATH)
    return _db


def _sqlite_path_from_url(url: str) -> str:
    parsed = urlparse(url)
    path = parsed.path or ""
    if not path or path == "/":
        return ""
    # sqlite:////absolute/path.db -> keep absolute path
    if url.startswith("sqlite:////"):
        return path
    # sqlite:///relative.db -> strip leading slash
    if path.startswith("/"):
        return path[1:]
    return path


# Timestamps are stored as ISO-8601 text on both engines.
SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT,
        name TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'STAFF',
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS patients (
        id TEXT PRIMARY KEY,
        patient_code TEXT NOT NULL,
        full_name TEXT NOT NULL,
        nationality TEXT,
        passport_number TEXT,
        date_of_birth TEXT,
        gender TEXT,
        phone TEXT,
        email TEXT,
        address TEXT,
        full_name_key TEXT,
        passport_key TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cases (
        id TEXT PRIMARY KEY,
        patient_id TEXT NOT NULL REFERENCES patients(id),
        status TEXT NOT NULL DEFAULT 'PENDING',
        ai_pre_analysis TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS documents (
        id TEXT PRIMARY KEY,
        case_id TEXT NOT NULL REFERENCES cases(id),
        file_name TEXT NOT NULL,
        file_type TEXT NOT NULL,
        file_data TEXT,
        google_drive_id TEXT,
        google_drive_url TEXT,
        extracted_text TEXT,
        text_extracted_at TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notes (
        id TEXT PRIMARY KEY,
        case_id TEXT NOT NULL REFERENCES cases(id),
        author_id TEXT NOT NULL REFERENCES users(id),
        content TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS counters (
        id TEXT PRIMARY KEY,
        value INTEGER NOT NULL
    )
    """,
]

# Columns added after the first release, applied to databases that predate them.
MIGRATIONS = [
    ("patients", "full_name_key", "TEXT"),
    ("patients", "passport_key", "TEXT"),
    ("documents", "text_extracted_at", "TEXT"),
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_patients_code ON patients (patient_code)",
    "CREATE INDEX IF NOT EXISTS idx_patients_name_key ON patients (full_name_key)",
    "CREATE INDEX IF NOT EXISTS idx_patients_passport_key ON patients (passport_key)",
    "CREATE INDEX IF NOT EXISTS idx_cases_patient ON cases (patient_id)",
    "CREATE INDEX IF NOT EXISTS idx_documents_case ON documents (case_id)",
    "CREATE INDEX IF NOT EXISTS idx_notes_case ON notes (case_id)",
]


def search_key(value: str | None) -> str | None:
    """Normalised form of a name or passport used for matching.

    SQL LOWER() and LIKE only fold ASCII on SQLite, so comparisons run against
    this precomputed value instead: NFC, whitespace collapsed, casefolded.
    """
    if value is None or not value.strip():
        return None
    return " ".join(unicodedata.normalize("NFC", value).split()).casefold()


async def init_db() -> None:
    db = await get_db()
    for stmt in SCHEMA:
        await db.execute(stmt)

    for table, column, kind in MIGRATIONS:
        if db.engine == "sqlite":
            try:
                await db.execute(f"ALTER TABLE {table} ADD COLUMN {column} {kind}")
            except aiosqlite.OperationalError:
                pass  # column already present
        else:
            await db.execute(f"ALTER TABLE {table} ADD COLUMN IF NOT EXISTS {column} {kind}")

    for stmt in INDEXES:
        await db.execute(stmt)
    await db.commit()

    await _backfill_search_keys(db)


async def _backfill_search_keys(db: DatabaseAdapter) -> None:
    rows = await db.fetch_all(
        "SELECT id, full_name, passport_number FROM patients WHERE full_name_key IS NULL"
    )
    for row in rows:
        await db.execute(
            "UPDATE patients SET full_name_key = ?, passport_key = ? WHERE id = ?",
            (search_key(row["full_name"]), search_key(row["passport_number"]), row["id"]),
        )
    if rows:
        await db.commit()
        logger.info("Backfilled search keys for %d patient(s)", len(rows))


async def close_db() -> None:
    global _db
    if _db is not None:
        await _db.close()
        _db = None
