from datetime import date
from enum import Enum

from pydantic import Field, field_validator

from carefile.models.base import CamelModel
from carefile.models.case import CaseStatus


class PatientInfo(CamelModel):
    """Patient context interpolated into model prompts."""

    full_name: str | None = None
    patient_code: str | None = None
    date_of_birth: date | None = None
    gender: str | None = None
    nationality: str | None = None
    passport_number: str | None = None


class AnalyzeRequest(CamelModel):
    case_id: str | None = None


class AnalyzeDirectRequest(CamelModel):
    texts: list[str] | None = None
    images: list[str] | None = None
    patient_info: PatientInfo | None = None


class AnalysisResponse(CamelModel):
    success: bool = True
    analysis: str
    case_id: str | None = None
    status: CaseStatus | None = None


class InvoiceRequest(CamelModel):
    case_id: str | None = None
    structure_name: str | None = None
    structure_address: str | None = None
    invoice_number: str | None = None
    currency: str | None = None
    country: str | None = None
    city: str | None = None
    bank_details: str | None = None
    legal_mentions: str | None = None


class InvoiceResponse(CamelModel):
    success: bool = True
    invoice: str
    invoice_number: str


class ExtractTextResponse(CamelModel):
    success: bool = True
    text: str
    file_name: str | None = None


class PassportData(CamelModel):
    full_name: str = ""
    nationality: str = ""
    passport_number: str = ""
    date_of_birth: str = ""
    gender: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        # The OCR prompt lets the model answer null for unreadable fields.
        return "" if value is None else value


class OcrResponse(CamelModel):
    success: bool = True
    data: PassportData = Field(default_factory=PassportData)
    raw: str = ""


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def finished(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


class AnalysisJob(CamelModel):
    job_id: str
    case_id: str
    status: JobStatus
    submitted_at: str
    started_at: str | None = None
    finished_at: str | None = None
    error: str | None = None
