import logging

from fastapi import APIRouter, Query

from carefile.database import get_db
from carefile.models.case import CaseCreate, CaseDetail, CaseListResponse, CaseStatus, CaseUpdate
from carefile.models.document import Document, DocumentCreate
from carefile.models.note import Note, NoteCreate
from carefile.services import records
from carefile.services.event_bus import event_bus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cases", tags=["cases"])


@router.post("", response_model=CaseDetail, status_code=201)
async def create_case(body: CaseCreate):
    """Open a new PENDING case for an existing patient."""
    db = await get_db()
    return await records.create_case(db, body.patient_id)


@router.get("", response_model=CaseListResponse)
async def list_cases(
    patient_id: str | None = Query(None, alias="patientId"),
    status: CaseStatus | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
):
    db = await get_db()
    return await records.list_cases(db, patient_id=patient_id, status=status, page=page, limit=limit)


@router.get("/{case_id}", response_model=CaseDetail)
async def get_case(case_id: str):
    """Get a case with its patient, documents and notes."""
    db = await get_db()
    return await records.get_case_detail(db, case_id)


@router.patch("/{case_id}", response_model=CaseDetail)
async def update_case(case_id: str, body: CaseUpdate):
    db = await get_db()
    case = await records.update_case(db, case_id, body)
    await event_bus.publish(case_id, {"type": "case_updated", "status": case.status.value})
    return case


@router.post("/{case_id}/documents", response_model=Document, status_code=201)
async def add_document(case_id: str, body: DocumentCreate):
    db = await get_db()
    document = await records.append_document(db, case_id, body)
    logger.info("Attached document %s (%s) to case %s", document.id, document.file_type, case_id)
    return document


@router.get("/{case_id}/documents", response_model=list[Document])
async def list_documents(case_id: str):
    db = await get_db()
    return await records.list_documents(db, case_id)


@router.post("/{case_id}/notes", response_model=Note, status_code=201)
async def add_note(case_id: str, body: NoteCreate):
    db = await get_db()
    return await records.append_note(db, case_id, body)


@router.get("/{case_id}/notes", response_model=list[Note])
async def list_notes(case_id: str):
    db = await get_db()
    return await records.list_notes(db, case_id)
