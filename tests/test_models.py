"""Tests for wire models."""

from carefile.models.ai import AnalysisResponse, PassportData
from carefile.models.case import CaseStatus
from carefile.models.document import Document
from carefile.models.patient import PatientCreate


def _document(file_type: str, **fields) -> Document:
    return Document(
        id="d1",
        case_id="c1",
        file_name="f",
        file_type=file_type,
        created_at="2024-01-01T00:00:00+00:00",
        **fields,
    )


def test_camel_case_round_trip():
    body = PatientCreate.model_validate({"fullName": "Jean Dupont", "passportNumber": "FR1"})
    assert body.full_name == "Jean Dupont"
    assert body.model_dump(by_alias=True, exclude_none=True) == {"fullName": "Jean Dupont", "passportNumber": "FR1"}


def test_analysis_response_shape():
    resp = AnalysisResponse(analysis="ok", case_id="c1", status=CaseStatus.ANALYZED)
    assert resp.model_dump(mode="json", by_alias=True) == {
        "success": True,
        "analysis": "ok",
        "caseId": "c1",
        "status": "ANALYZED",
    }


def test_document_kind():
    assert _document("image/PNG").is_image
    assert _document("application/pdf").is_pdf
    assert not _document("text/plain").is_image
    assert not _document("text/plain").has_storage_reference
    assert _document("image/jpeg", google_drive_url="https://drive.google.com/file/d/x").has_storage_reference


def test_passport_null_fields_become_empty():
    data = PassportData.model_validate({"fullName": None, "gender": "F"})
    assert data.full_name == ""
    assert data.gender == "F"
