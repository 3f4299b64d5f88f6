import logging

from fastapi import APIRouter, File, HTTPException, UploadFile

from carefile.errors import CarefileError
from carefile.models.ai import (
    AnalysisJob,
    AnalysisResponse,
    AnalyzeDirectRequest,
    AnalyzeRequest,
    ExtractTextResponse,
    InvoiceRequest,
    InvoiceResponse,
    OcrResponse,
)
from carefile.models.document import IMAGE_PREFIX, PDF_TYPE
from carefile.services import analysis
from carefile.services.analysis_queue import analysis_queue
from carefile.services.extraction import extract_document_text, extract_passport_data
from carefile.services.media import encode_bytes

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])


def _upstream_error(action: str, e: Exception) -> HTTPException:
    logger.error("%s failed: %s", action, e)
    return HTTPException(status_code=500, detail=f"{action} failed: {e}")


async def _read_upload(file: UploadFile | None, images_only: bool = False) -> tuple[str, str]:
    """Return (data_uri, mime_type) for an uploaded file."""
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")
    mime_type = (file.content_type or "").lower()
    if not mime_type.startswith(IMAGE_PREFIX) and (images_only or mime_type != PDF_TYPE):
        allowed = "an image" if images_only else "an image or a PDF"
        raise HTTPException(status_code=400, detail=f"Unsupported file type {mime_type!r}: upload {allowed}")
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    return encode_bytes(content, mime_type), mime_type


@router.post("/analyze", response_model=AnalysisResponse)
async def analyze(body: AnalyzeRequest):
    """Analyze every document of a case and store the result on the case."""
    try:
        return await analysis.analyze_case(body.case_id)
    except CarefileError:
        raise
    except Exception as e:
        raise _upstream_error("Analysis", e)


@router.post("/analyze-direct", response_model=AnalysisResponse)
async def analyze_direct(body: AnalyzeDirectRequest):
    try:
        return await analysis.analyze_direct(body)
    except CarefileError:
        raise
    except Exception as e:
        raise _upstream_error("Analysis", e)


@router.post("/analyze/jobs", response_model=AnalysisJob, status_code=202)
async def submit_analysis_job(body: AnalyzeRequest):
    """Queue a case analysis; poll the job or the case, or subscribe to /ws/cases/{case_id}."""
    return await analysis_queue.submit(body.case_id)


@router.get("/analyze/jobs/{job_id}", response_model=AnalysisJob)
async def get_analysis_job(job_id: str):
    job = analysis_queue.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.post("/extract-text", response_model=ExtractTextResponse)
async def extract_text(file: UploadFile | None = File(None)):
    data_uri, mime_type = await _read_upload(file)
    try:
        text = await extract_document_text(data_uri, mime_type)
    except Exception as e:
        raise _upstream_error("Text extraction", e)
    return ExtractTextResponse(text=text, file_name=file.filename)


@router.post("/ocr", response_model=OcrResponse)
async def passport_ocr(file: UploadFile | None = File(None)):
    """Read identity fields off a passport scan to prefill patient registration."""
    data_uri, _ = await _read_upload(file, images_only=True)
    try:
        data, raw = await extract_passport_data(data_uri)
    except Exception as e:
        raise _upstream_error("Passport OCR", e)
    return OcrResponse(data=data, raw=raw)


@router.post("/invoice", response_model=InvoiceResponse)
async def invoice(body: InvoiceRequest):
    """Draft a proforma invoice from the case's stored pre-analysis."""
    try:
        return await analysis.generate_invoice(body)
    except CarefileError:
        raise
    except Exception as e:
        raise _upstream_error("Invoice generation", e)
