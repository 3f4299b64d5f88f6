from datetime import date

from carefile.models.base import CamelModel


class PatientCreate(CamelModel):
    full_name: str | None = None
    nationality: str | None = None
    passport_number: str | None = None
    date_of_birth: date | None = None
    gender: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None


class PatientUpdate(CamelModel):
    """Partial edit; fields left out are not touched."""

    full_name: str | None = None
    nationality: str | None = None
    passport_number: str | None = None
    date_of_birth: date | None = None
    gender: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None


class Patient(CamelModel):
    id: str
    patient_code: str
    full_name: str
    nationality: str | None = None
    passport_number: str | None = None
    date_of_birth: date | None = None
    gender: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    created_at: str
    updated_at: str | None = None


class PatientRef(CamelModel):
    id: str
    patient_code: str
    full_name: str


class PatientSearchResult(CamelModel):
    id: str
    patient_code: str
    full_name: str
    nationality: str | None = None
    case_count: int = 0
