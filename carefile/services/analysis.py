"""Case analysis and proforma invoice generation.

The case pipeline reads the case and its documents, aggregates their text and
images, assembles the prompt, calls the model once and writes the reply back
onto the case. Nothing is retried: a model or transport failure propagates to
the caller and leaves the case status untouched.
"""

import logging
import time
from datetime import date

from carefile.config import ANALYSIS_MAX_TOKENS, DUMMY_MODE, INVOICE_MAX_TOKENS
from carefile.database import get_db
from carefile.errors import DependentStateError, NotFoundError, ValidationError
from carefile.models.ai import (
    AnalysisResponse,
    AnalyzeDirectRequest,
    InvoiceRequest,
    InvoiceResponse,
    PatientInfo,
)
from carefile.models.case import CaseStatus
from carefile.models.patient import Patient
from carefile.services import records
from carefile.services.aggregator import aggregate_documents
from carefile.services.event_bus import event_bus
from carefile.services.llm import get_llm_client
from carefile.services.media import to_data_uri
from carefile.services.prompts import (
    InvoiceInput,
    ModelPrompt,
    build_analysis_prompt,
    build_invoice_prompt,
)

logger = logging.getLogger(__name__)

NO_ANALYSIS_FALLBACK = "No analysis available."
DEFAULT_CURRENCY = "EUR"


def patient_info_from(patient: Patient) -> PatientInfo:
    return PatientInfo(
        full_name=patient.full_name,
        patient_code=patient.patient_code,
        date_of_birth=patient.date_of_birth,
        gender=patient.gender,
        nationality=patient.nationality,
        passport_number=patient.passport_number,
    )


def _dummy_reply(prompt: ModelPrompt) -> str:
    """Deterministic reply for demo mode, built from the prompt itself."""
    first_line = prompt.user.splitlines()[0] if prompt.user else ""
    return (
        "## Pre-analysis (demo mode)\n\n"
        f"{first_line}\n\n"
        f"Input: {len(prompt.user)} characters of text, {len(prompt.images)} image(s).\n\n"
        "This content was generated without a model provider and is not a medical diagnosis."
    )


async def invoke_model(prompt: ModelPrompt, max_tokens: int = ANALYSIS_MAX_TOKENS) -> str:
    """Send the prompt and return the reply verbatim, or the fallback when it is empty."""
    client = get_llm_client()
    if not client.available():
        if DUMMY_MODE:
            return _dummy_reply(prompt)
        raise RuntimeError("LLM provider unavailable: set OPENAI_API_KEY or ANTHROPIC_API_KEY")

    reply = await client.generate_text(
        system=prompt.system,
        user=prompt.user,
        images=prompt.images,
        max_tokens=max_tokens,
    )
    if not reply or not reply.strip():
        logger.warning("Model returned an empty reply")
        return NO_ANALYSIS_FALLBACK
    return reply


async def persist_analysis(case_id: str, analysis: str) -> None:
    db = await get_db()
    await records.update_case_analysis(db, case_id, analysis)
    logger.info("Stored pre-analysis for case %s (%d chars)", case_id, len(analysis))


async def analyze_case(case_id: str | None) -> AnalysisResponse:
    if not case_id or not case_id.strip():
        raise ValidationError("Case ID is required")

    db = await get_db()
    case = await records.find_case(db, case_id)
    if not case:
        raise NotFoundError("Case not found")
    patient = await records.find_patient(db, case.patient_id)

    documents = await records.list_documents(db, case_id)
    if not documents:
        raise DependentStateError("No documents are attached to this case")

    # Oldest first, so the prompt follows upload order.
    documents.sort(key=lambda d: d.created_at)
    content = await aggregate_documents(db, documents)
    if content.is_empty:
        if content.missing_image_payloads:
            raise DependentStateError(
                "Image documents are attached to this case but their file data is missing"
            )
        raise DependentStateError(
            "Documents are attached to this case but no readable text could be extracted"
        )

    prompt = build_analysis_prompt(content.texts, content.images, patient_info_from(patient))
    logger.info(
        "Analyzing case %s: %d text blocks, %d images",
        case_id, len(content.texts), len(content.images),
    )
    analysis = await invoke_model(prompt, ANALYSIS_MAX_TOKENS)

    await persist_analysis(case_id, analysis)
    await event_bus.publish(case_id, {"type": "analysis_complete", "status": CaseStatus.ANALYZED.value})
    return AnalysisResponse(analysis=analysis, case_id=case_id, status=CaseStatus.ANALYZED)


async def analyze_direct(body: AnalyzeDirectRequest) -> AnalysisResponse:
    """Analyze caller-supplied texts and images without touching any case."""
    texts = [text for text in body.texts or [] if text and text.strip()]
    images = [to_data_uri(image) for image in body.images or [] if image and image.strip()]
    if not texts and not images:
        raise ValidationError("Nothing to analyze: provide texts or images")

    prompt = build_analysis_prompt(texts, images, body.patient_info)
    analysis = await invoke_model(prompt, ANALYSIS_MAX_TOKENS)
    return AnalysisResponse(analysis=analysis)


def _invoice_number(patient_code: str) -> str:
    return f"INV-{patient_code}-{str(int(time.time() * 1000))[-6:]}"


async def generate_invoice(body: InvoiceRequest) -> InvoiceResponse:
    if not body.case_id or not body.case_id.strip():
        raise ValidationError("Case ID is required")

    db = await get_db()
    case = await records.find_case(db, body.case_id)
    if not case:
        raise NotFoundError("Case not found")
    if not case.ai_pre_analysis or not case.ai_pre_analysis.strip():
        raise DependentStateError("Run an analysis on this case before generating an invoice")
    patient = await records.find_patient(db, case.patient_id)

    invoice_input = InvoiceInput(
        patient=patient_info_from(patient),
        medical_object=case.ai_pre_analysis,
        invoice_number=body.invoice_number or _invoice_number(patient.patient_code),
        invoice_date=date.today().strftime("%d/%m/%Y"),
        currency=body.currency or DEFAULT_CURRENCY,
        structure_name=body.structure_name,
        structure_address=body.structure_address,
        country=body.country,
        city=body.city,
        bank_details=body.bank_details,
        legal_mentions=body.legal_mentions,
    )
    invoice = await invoke_model(build_invoice_prompt(invoice_input), INVOICE_MAX_TOKENS)
    logger.info("Generated proforma invoice %s for case %s", invoice_input.invoice_number, case.id)
    return InvoiceResponse(invoice=invoice, invoice_number=invoice_input.invoice_number)
