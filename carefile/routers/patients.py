import logging

from fastapi import APIRouter, Query

from carefile.database import get_db
from carefile.models.case import PatientDetail, PatientListResponse
from carefile.models.patient import Patient, PatientCreate, PatientSearchResult, PatientUpdate
from carefile.services import records

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/patients", tags=["patients"])


@router.post("", response_model=Patient, status_code=201)
async def create_patient(body: PatientCreate):
    """Register a patient and assign the next patient code."""
    db = await get_db()
    return await records.create_patient(db, body)


@router.get("", response_model=PatientListResponse)
async def list_patients(
    search: str = "",
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
):
    db = await get_db()
    return await records.list_patients(db, search=search, page=page, limit=limit)


@router.get("/search", response_model=list[PatientSearchResult])
async def search_patients(q: str = ""):
    """Autocomplete lookup by name or patient code."""
    db = await get_db()
    return await records.search_patients(db, q)


@router.get("/{patient_id}", response_model=PatientDetail)
async def get_patient(patient_id: str):
    """Get a patient with every case, its documents and notes."""
    db = await get_db()
    return await records.get_patient_detail(db, patient_id)


@router.patch("/{patient_id}", response_model=Patient)
async def update_patient(patient_id: str, body: PatientUpdate):
    db = await get_db()
    return await records.update_patient(db, patient_id, body)
