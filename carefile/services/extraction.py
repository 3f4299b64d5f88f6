"""Text extraction for uploaded documents and passport scans.

PDFs are read locally with pypdf. Images go to the vision model, which is the
only OCR engine available to the service.
"""

import io
import logging

from pypdf import PdfReader

from carefile.config import DUMMY_MODE
from carefile.models.ai import PassportData
from carefile.models.document import PDF_TYPE
from carefile.services.llm import get_llm_client, strip_json
from carefile.services.media import decode_payload, split_data_uri

logger = logging.getLogger(__name__)

DOCUMENT_OCR_PROMPT = (
    "You are a medical document OCR specialist. Extract ALL text from the document image. "
    "Return the text in a structured format, preserving headings and sections where possible."
)

PASSPORT_OCR_PROMPT = """You are a passport OCR specialist. Extract the following information from the passport image and return ONLY a JSON object with these exact fields:
- fullName: The full name as shown on the passport
- nationality: The nationality
- passportNumber: The passport number
- dateOfBirth: Date of birth in YYYY-MM-DD format
- gender: M or F

If you cannot find a field, use an empty string. Return ONLY the JSON object, no other text."""

DOCUMENT_OCR_MAX_TOKENS = 4000
PASSPORT_OCR_MAX_TOKENS = 500


def extract_text_from_pdf(content: bytes) -> str:
    """Extract the text layer of a PDF. Scanned PDFs come back empty."""
    reader = PdfReader(io.BytesIO(content))
    pages = []
    for page in reader.pages:
        pages.append(page.extract_text() or "")
    return "\n".join(pages).strip()


async def extract_document_text(data_uri: str, file_type: str | None = None) -> str:
    """Return the text of one document given as a data URI (or bare base64)."""
    mime_type = (file_type or split_data_uri(data_uri)[0]).lower()

    if mime_type == PDF_TYPE:
        text = extract_text_from_pdf(decode_payload(data_uri))
        if not text:
            logger.info("PDF has no text layer; nothing extracted")
        return text

    client = get_llm_client()
    if not client.available():
        if DUMMY_MODE:
            return f"[DUMMY OCR] {mime_type} document"
        raise RuntimeError("LLM provider unavailable for OCR")

    return await client.generate_text(
        system=DOCUMENT_OCR_PROMPT,
        user="Extract all text from this medical document.",
        images=[data_uri],
        max_tokens=DOCUMENT_OCR_MAX_TOKENS,
    )


async def extract_passport_data(data_uri: str) -> tuple[PassportData, str]:
    """Read identity fields off a passport scan.

    Returns the parsed fields and the raw model reply. A reply that is not
    valid JSON yields empty fields rather than an error.
    """
    client = get_llm_client()
    if not client.available():
        if DUMMY_MODE:
            return PassportData(), "{}"
        raise RuntimeError("LLM provider unavailable for OCR")

    raw = await client.generate_text(
        system=PASSPORT_OCR_PROMPT,
        user="Extract the passport fields from this image.",
        images=[data_uri],
        max_tokens=PASSPORT_OCR_MAX_TOKENS,
    )
    try:
        return PassportData.model_validate_json(strip_json(raw)), raw
    except ValueError as exc:
        logger.warning("Passport OCR reply could not be parsed: %s", exc)
        return PassportData(), raw
