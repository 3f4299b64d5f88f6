from enum import Enum

from carefile.models.base import CamelModel, Pagination
from carefile.models.document import Document
from carefile.models.note import Note
from carefile.models.patient import Patient, PatientRef


class CaseStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    ANALYZED = "ANALYZED"
    COMPLETED = "COMPLETED"


class CaseCreate(CamelModel):
    patient_id: str | None = None


class CaseUpdate(CamelModel):
    status: CaseStatus | None = None
    ai_pre_analysis: str | None = None


class Case(CamelModel):
    id: str
    patient_id: str
    status: CaseStatus
    ai_pre_analysis: str | None = None
    created_at: str
    updated_at: str | None = None


class CaseRecords(Case):
    documents: list[Document] = []
    notes: list[Note] = []


class CaseDetail(CaseRecords):
    patient: Patient


class CaseListItem(Case):
    patient: PatientRef
    document_count: int = 0
    note_count: int = 0


class CaseListResponse(CamelModel):
    cases: list[CaseListItem]
    pagination: Pagination


class PatientListItem(Patient):
    case_count: int = 0
    latest_case: Case | None = None


class PatientListResponse(CamelModel):
    patients: list[PatientListItem]
    pagination: Pagination


class PatientDetail(Patient):
    cases: list[CaseRecords] = []
