"""Persistence gateway for patients, cases, documents, notes and users.

Every function takes the database adapter explicitly and issues plain SQL with
``?`` placeholders, so it runs unchanged against SQLite and Postgres. Writes are
single statements; nothing here spans a transaction.
"""

import logging
import math
import uuid
from datetime import datetime, timezone

from carefile.database import DatabaseAdapter, search_key
from carefile.errors import ConflictError, NotFoundError, ValidationError
from carefile.models.admin import DeletionCounts
from carefile.models.base import Pagination
from carefile.models.case import (
    Case,
    CaseDetail,
    CaseListItem,
    CaseListResponse,
    CaseRecords,
    CaseStatus,
    CaseUpdate,
    PatientDetail,
    PatientListItem,
    PatientListResponse,
)
from carefile.models.document import Document, DocumentCreate
from carefile.models.note import Note, NoteAuthor, NoteCreate
from carefile.models.patient import (
    Patient,
    PatientCreate,
    PatientRef,
    PatientSearchResult,
    PatientUpdate,
)

logger = logging.getLogger(__name__)

PATIENT_COUNTER_ID = "patient_counter"
PATIENT_CODE_PREFIX = "IN"

DEFAULT_USER_EMAIL = "admin@inaya.health"
DEFAULT_USER_NAME = "Admin"
DEFAULT_USER_ROLE = "ADMIN"

SEARCH_MIN_LENGTH = 2
SEARCH_MAX_RESULTS = 5

_PATIENT_COLUMNS = (
    "full_name",
    "nationality",
    "passport_number",
    "date_of_birth",
    "gender",
    "phone",
    "email",
    "address",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def format_patient_code(value: int) -> str:
    return f"{PATIENT_CODE_PREFIX}{value:04d}"


def _pagination(total: int, page: int, limit: int) -> Pagination:
    return Pagination(total=total, pages=math.ceil(total / limit) if limit else 0, page=page, limit=limit)


def _like_pattern(term: str) -> str:
    """Substring pattern for ``LIKE ? ESCAPE '\\'`` with the term's wildcards taken literally."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _collapse(value: str) -> str:
    return " ".join(value.split())


# --- Patients ---


async def next_patient_code(db: DatabaseAdapter) -> str:
    """Issue the next sequential patient code.

    The increment happens inside a single upsert so two registrations never
    read the same counter value.
    """
    rows = await db.fetch_all(
        "INSERT INTO counters (id, value) VALUES (?, 1) "
        "ON CONFLICT (id) DO UPDATE SET value = counters.value + 1 "
        "RETURNING value",
        (PATIENT_COUNTER_ID,),
    )
    await db.commit()
    return format_patient_code(int(rows[0]["value"]))


async def find_patient(db: DatabaseAdapter, patient_id: str) -> Patient | None:
    row = await db.fetch_one("SELECT * FROM patients WHERE id = ?", (patient_id,))
    return Patient.model_validate(dict(row)) if row else None


async def find_duplicate_patient(
    db: DatabaseAdapter,
    full_name: str,
    passport_number: str | None = None,
) -> Patient | None:
    """Return an existing patient with the same passport or the same name.

    Matching ignores case (including accented letters) and runs of whitespace.
    """
    passport_key = search_key(passport_number)
    if passport_key:
        row = await db.fetch_one(
            "SELECT * FROM patients WHERE passport_key = ? LIMIT 1",
            (passport_key,),
        )
        if row:
            return Patient.model_validate(dict(row))

    row = await db.fetch_one(
        "SELECT * FROM patients WHERE full_name_key = ? LIMIT 1",
        (search_key(full_name),),
    )
    return Patient.model_validate(dict(row)) if row else None


def _conflict(existing: Patient) -> ConflictError:
    return ConflictError(
        "A patient with this name or passport number already exists",
        existing={
            "id": existing.id,
            "patientCode": existing.patient_code,
            "fullName": existing.full_name,
            "passportNumber": existing.passport_number,
        },
    )


async def create_patient(db: DatabaseAdapter, body: PatientCreate) -> Patient:
    if _blank(body.full_name):
        raise ValidationError("Patient full name is required")

    full_name = _collapse(body.full_name)
    passport = body.passport_number.strip() if not _blank(body.passport_number) else None

    existing = await find_duplicate_patient(db, full_name, passport)
    if existing:
        raise _conflict(existing)

    patient_id = str(uuid.uuid4())
    patient_code = await next_patient_code(db)
    now = _now()
    await db.execute(
        """INSERT INTO patients (
            id, patient_code, full_name, nationality, passport_number, date_of_birth,
            gender, phone, email, address, full_name_key, passport_key, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            patient_id,
            patient_code,
            full_name,
            body.nationality or None,
            passport,
            body.date_of_birth.isoformat() if body.date_of_birth else None,
            body.gender or None,
            body.phone or None,
            body.email or None,
            body.address or None,
            search_key(full_name),
            search_key(passport),
            now,
            now,
        ),
    )
    await db.commit()
    logger.info("Registered patient %s (%s)", patient_code, patient_id)
    return await find_patient(db, patient_id)


async def update_patient(db: DatabaseAdapter, patient_id: str, body: PatientUpdate) -> Patient:
    if not await find_patient(db, patient_id):
        raise NotFoundError("Patient not found")

    changes = body.model_dump(exclude_unset=True)
    if "full_name" in changes:
        if _blank(changes["full_name"]):
            raise ValidationError("Patient full name cannot be blank")
        changes["full_name"] = _collapse(changes["full_name"])
    if "passport_number" in changes:
        passport = changes["passport_number"]
        changes["passport_number"] = passport.strip() if not _blank(passport) else None

    assignments = []
    params: list = []
    for column in _PATIENT_COLUMNS:
        if column not in changes:
            continue
        value = changes[column]
        if column == "date_of_birth" and value is not None:
            value = value.isoformat()
        assignments.append(f"{column} = ?")
        params.append(value)
    if "full_name" in changes:
        assignments.append("full_name_key = ?")
        params.append(search_key(changes["full_name"]))
    if "passport_number" in changes:
        assignments.append("passport_key = ?")
        params.append(search_key(changes["passport_number"]))

    if assignments:
        assignments.append("updated_at = ?")
        params.extend([_now(), patient_id])
        await db.execute(
            f"UPDATE patients SET {', '.join(assignments)} WHERE id = ?",
            params,
        )
        await db.commit()
    return await find_patient(db, patient_id)


async def list_patients(
    db: DatabaseAdapter,
    search: str = "",
    page: int = 1,
    limit: int = 10,
) -> PatientListResponse:
    where = ""
    params: list = []
    if search.strip():
        pattern = _like_pattern(search_key(search))
        where = (
            "WHERE full_name_key LIKE ? ESCAPE '\\' OR LOWER(patient_code) LIKE ? ESCAPE '\\' "
            "OR passport_key LIKE ? ESCAPE '\\'"
        )
        params = [pattern, pattern, pattern]

    count_row = await db.fetch_one(f"SELECT COUNT(*) AS count FROM patients {where}", params)
    total = int(count_row["count"]) if count_row else 0

    rows = await db.fetch_all(
        f"SELECT * FROM patients {where} ORDER BY created_at DESC LIMIT ? OFFSET ?",
        [*params, limit, (page - 1) * limit],
    )

    patients = []
    for row in rows:
        latest = await db.fetch_one(
            "SELECT * FROM cases WHERE patient_id = ? ORDER BY created_at DESC LIMIT 1",
            (row["id"],),
        )
        count = await db.fetch_one(
            "SELECT COUNT(*) AS count FROM cases WHERE patient_id = ?", (row["id"],)
        )
        patients.append(PatientListItem.model_validate({
            **dict(row),
            "case_count": int(count["count"]) if count else 0,
            "latest_case": Case.model_validate(dict(latest)) if latest else None,
        }))

    return PatientListResponse(patients=patients, pagination=_pagination(total, page, limit))


async def search_patients(db: DatabaseAdapter, query: str) -> list[PatientSearchResult]:
    """Autocomplete lookup by name or patient code."""
    query = query.strip()
    if len(query) < SEARCH_MIN_LENGTH:
        return []

    pattern = _like_pattern(search_key(query))
    rows = await db.fetch_all(
        """SELECT p.id, p.patient_code, p.full_name, p.nationality,
                  (SELECT COUNT(*) FROM cases c WHERE c.patient_id = p.id) AS case_count
           FROM patients p
           WHERE p.full_name_key LIKE ? ESCAPE '\\' OR LOWER(p.patient_code) LIKE ? ESCAPE '\\'
           ORDER BY p.full_name ASC
           LIMIT ?""",
        (pattern, pattern, SEARCH_MAX_RESULTS),
    )
    return [PatientSearchResult.model_validate(dict(row)) for row in rows]


async def get_patient_detail(db: DatabaseAdapter, patient_id: str) -> PatientDetail:
    patient = await find_patient(db, patient_id)
    if not patient:
        raise NotFoundError("Patient not found")

    rows = await db.fetch_all(
        "SELECT * FROM cases WHERE patient_id = ? ORDER BY created_at DESC",
        (patient_id,),
    )
    cases = []
    for row in rows:
        cases.append(CaseRecords.model_validate({
            **dict(row),
            "documents": await _documents_for_case(db, row["id"]),
            "notes": await _notes_for_case(db, row["id"]),
        }))
    return PatientDetail.model_validate({**patient.model_dump(), "cases": cases})


# --- Cases ---


async def find_case(db: DatabaseAdapter, case_id: str) -> Case | None:
    row = await db.fetch_one("SELECT * FROM cases WHERE id = ?", (case_id,))
    return Case.model_validate(dict(row)) if row else None


async def create_case(db: DatabaseAdapter, patient_id: str | None) -> CaseDetail:
    if _blank(patient_id):
        raise ValidationError("Patient ID is required")
    if not await find_patient(db, patient_id):
        raise NotFoundError("Patient not found")

    case_id = str(uuid.uuid4())
    now = _now()
    await db.execute(
        "INSERT INTO cases (id, patient_id, status, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
        (case_id, patient_id, CaseStatus.PENDING.value, now, now),
    )
    await db.commit()
    logger.info("Opened case %s for patient %s", case_id, patient_id)
    return await get_case_detail(db, case_id)


async def get_case_detail(db: DatabaseAdapter, case_id: str) -> CaseDetail:
    case = await find_case(db, case_id)
    if not case:
        raise NotFoundError("Case not found")
    patient = await find_patient(db, case.patient_id)
    return CaseDetail.model_validate({
        **case.model_dump(),
        "patient": patient.model_dump(),
        "documents": await _documents_for_case(db, case_id),
        "notes": await _notes_for_case(db, case_id),
    })


async def list_cases(
    db: DatabaseAdapter,
    patient_id: str | None = None,
    status: CaseStatus | None = None,
    page: int = 1,
    limit: int = 10,
) -> CaseListResponse:
    clauses = []
    params: list = []
    if patient_id:
        clauses.append("c.patient_id = ?")
        params.append(patient_id)
    if status:
        clauses.append("c.status = ?")
        params.append(status.value)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    count_row = await db.fetch_one(f"SELECT COUNT(*) AS count FROM cases c {where}", params)
    total = int(count_row["count"]) if count_row else 0

    rows = await db.fetch_all(
        f"""SELECT c.*, p.patient_code, p.full_name,
                   (SELECT COUNT(*) FROM documents d WHERE d.case_id = c.id) AS document_count,
                   (SELECT COUNT(*) FROM notes n WHERE n.case_id = c.id) AS note_count
            FROM cases c JOIN patients p ON p.id = c.patient_id
            {where}
            ORDER BY c.created_at DESC
            LIMIT ? OFFSET ?""",
        [*params, limit, (page - 1) * limit],
    )
    cases = [
        CaseListItem.model_validate({
            **dict(row),
            "patient": PatientRef(
                id=row["patient_id"],
                patient_code=row["patient_code"],
                full_name=row["full_name"],
            ),
        })
        for row in rows
    ]
    return CaseListResponse(cases=cases, pagination=_pagination(total, page, limit))


async def update_case(db: DatabaseAdapter, case_id: str, body: CaseUpdate) -> CaseDetail:
    case = await find_case(db, case_id)
    if not case:
        raise NotFoundError("Case not found")

    changes = body.model_dump(exclude_unset=True)
    status = changes.get("status")
    if status == CaseStatus.PENDING and case.status != CaseStatus.PENDING:
        raise ValidationError(f"A case cannot move back to PENDING from {case.status.value}")

    assignments = []
    params: list = []
    if status is not None:
        assignments.append("status = ?")
        params.append(CaseStatus(status).value)
    if "ai_pre_analysis" in changes:
        assignments.append("ai_pre_analysis = ?")
        params.append(changes["ai_pre_analysis"])

    if assignments:
        assignments.append("updated_at = ?")
        params.extend([_now(), case_id])
        await db.execute(f"UPDATE cases SET {', '.join(assignments)} WHERE id = ?", params)
        await db.commit()
    return await get_case_detail(db, case_id)


async def update_case_analysis(db: DatabaseAdapter, case_id: str, analysis: str) -> None:
    """Overwrite the stored pre-analysis and mark the case ANALYZED."""
    await db.execute(
        "UPDATE cases SET ai_pre_analysis = ?, status = ?, updated_at = ? WHERE id = ?",
        (analysis, CaseStatus.ANALYZED.value, _now(), case_id),
    )
    await db.commit()


# --- Documents ---


async def _documents_for_case(db: DatabaseAdapter, case_id: str) -> list[Document]:
    rows = await db.fetch_all(
        "SELECT * FROM documents WHERE case_id = ? ORDER BY created_at DESC",
        (case_id,),
    )
    return [Document.model_validate(dict(row)) for row in rows]


async def append_document(db: DatabaseAdapter, case_id: str, body: DocumentCreate) -> Document:
    if _blank(body.file_name) or _blank(body.file_type):
        raise ValidationError("File name and file type are required")
    if not await find_case(db, case_id):
        raise NotFoundError("Case not found")

    document_id = str(uuid.uuid4())
    await db.execute(
        """INSERT INTO documents (
            id, case_id, file_name, file_type, file_data, google_drive_id,
            google_drive_url, extracted_text, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            document_id,
            case_id,
            body.file_name.strip(),
            body.file_type.strip(),
            body.file_data,
            body.google_drive_id,
            body.google_drive_url,
            body.extracted_text,
            _now(),
        ),
    )
    await db.commit()
    row = await db.fetch_one("SELECT * FROM documents WHERE id = ?", (document_id,))
    return Document.model_validate(dict(row))


async def list_documents(db: DatabaseAdapter, case_id: str) -> list[Document]:
    if not await find_case(db, case_id):
        raise NotFoundError("Case not found")
    return await _documents_for_case(db, case_id)


async def cache_extracted_text(db: DatabaseAdapter, document_id: str, text: str | None) -> None:
    """Store an extraction result and mark the document as extracted.

    A blank result is stored as NULL; the marker alone keeps it from being
    extracted again.
    """
    await db.execute(
        "UPDATE documents SET extracted_text = ?, text_extracted_at = ? WHERE id = ?",
        (text if not _blank(text) else None, _now(), document_id),
    )
    await db.commit()


async def cache_file_data(db: DatabaseAdapter, document_id: str, file_data: str) -> None:
    await db.execute(
        "UPDATE documents SET file_data = ? WHERE id = ?",
        (file_data, document_id),
    )
    await db.commit()


# --- Notes & users ---


async def ensure_default_user(db: DatabaseAdapter) -> str:
    """Return the first user's id, creating the default admin when there is none."""
    row = await db.fetch_one("SELECT id FROM users ORDER BY created_at ASC LIMIT 1")
    if row:
        return row["id"]

    user_id = str(uuid.uuid4())
    await db.execute(
        "INSERT INTO users (id, email, name, role, created_at) VALUES (?, ?, ?, ?, ?)",
        (user_id, DEFAULT_USER_EMAIL, DEFAULT_USER_NAME, DEFAULT_USER_ROLE, _now()),
    )
    await db.commit()
    logger.info("Created default admin user %s", user_id)
    return user_id


def _note_from_row(row) -> Note:
    data = dict(row)
    name = data.pop("author_name", None)
    role = data.pop("author_role", None)
    author = NoteAuthor(name=name, role=role) if name is not None else None
    return Note.model_validate({**data, "author": author})


_NOTE_SELECT = (
    "SELECT n.*, u.name AS author_name, u.role AS author_role "
    "FROM notes n LEFT JOIN users u ON u.id = n.author_id"
)


async def _notes_for_case(db: DatabaseAdapter, case_id: str) -> list[Note]:
    rows = await db.fetch_all(
        f"{_NOTE_SELECT} WHERE n.case_id = ? ORDER BY n.created_at DESC",
        (case_id,),
    )
    return [_note_from_row(row) for row in rows]


async def append_note(db: DatabaseAdapter, case_id: str, body: NoteCreate) -> Note:
    if _blank(body.content):
        raise ValidationError("Note content is required")
    if not await find_case(db, case_id):
        raise NotFoundError("Case not found")

    if body.author_id:
        author = await db.fetch_one("SELECT id FROM users WHERE id = ?", (body.author_id,))
        if not author:
            raise NotFoundError("Author not found")
        author_id = body.author_id
    else:
        author_id = await ensure_default_user(db)

    note_id = str(uuid.uuid4())
    await db.execute(
        "INSERT INTO notes (id, case_id, author_id, content, created_at) VALUES (?, ?, ?, ?, ?)",
        (note_id, case_id, author_id, body.content, _now()),
    )
    await db.commit()
    row = await db.fetch_one(f"{_NOTE_SELECT} WHERE n.id = ?", (note_id,))
    return _note_from_row(row)


async def list_notes(db: DatabaseAdapter, case_id: str) -> list[Note]:
    if not await find_case(db, case_id):
        raise NotFoundError("Case not found")
    return await _notes_for_case(db, case_id)


# --- Administration ---

# Child tables first so foreign keys hold at every step.
_CLEAN_ORDER = ("notes", "documents", "cases", "patients", "users")


async def count_entities(db: DatabaseAdapter) -> DeletionCounts:
    counts = {}
    for table in _CLEAN_ORDER:
        row = await db.fetch_one(f"SELECT COUNT(*) AS count FROM {table}")
        counts[table] = int(row["count"]) if row else 0
    return DeletionCounts(**counts)


async def clean_database(db: DatabaseAdapter) -> DeletionCounts:
    """Delete every record and reset the patient counter."""
    counts = await count_entities(db)
    for table in _CLEAN_ORDER:
        await db.execute(f"DELETE FROM {table}")
    await db.execute("DELETE FROM counters WHERE id = ?", (PATIENT_COUNTER_ID,))
    await db.commit()
    logger.warning(
        "Database cleaned: %d notes, %d documents, %d cases, %d patients, %d users",
        counts.notes, counts.documents, counts.cases, counts.patients, counts.users,
    )
    return counts
